import pytest
from pydantic import ValidationError as PydanticValidationError

from errors import ValidationError
from validation import (
    PASSWORD_MESSAGE,
    CreateOrder,
    CreateProduct,
    Login,
    Register,
    ResetPassword,
    UpdateProduct,
    UpdateProfile,
    UpdateStatus,
    VerifyOtp,
    _field_errors,
    validate,
)

USER_ID = "64b7f0c2a1b2c3d4e5f60718"
PRODUCT_ID = "64b7f0c2a1b2c3d4e5f60719"


def messages(exc_info):
    return {e.field: e.message for e in exc_info.value.errors}


def order_payload(**overrides):
    payload = {
        "user_id": USER_ID,
        "items": [
            {"product_id": PRODUCT_ID, "quantity": 2, "price": 19.5, "name": "Crew Tee",
             "image": "https://cdn.example.com/crew.jpg"},
        ],
        "shippingAddress": {
            "street": "12 Market St", "city": "Springfield", "state": "IL",
            "postalCode": "62701", "country": "US",
        },
        "paymentMethod": "stripe",
        "itemsPrice": 39.0,
        "taxPrice": 3.12,
        "shippingPrice": 5.0,
        "totalPrice": 47.12,
    }
    payload.update(overrides)
    return payload


class TestAuthRules:
    def test_register_normalizes(self):
        data = validate(Register, {
            "name": "  Jane Doe ",
            "email": " Jane@Example.COM ",
            "password": "Sup3r$ecret",
            "phone": "5551234567",
        })
        assert data["name"] == "Jane Doe"
        assert data["email"] == "jane@example.com"
        assert data["role"] == "user"

    def test_register_password_complexity(self):
        with pytest.raises(ValidationError) as exc:
            validate(Register, {
                "name": "Jane", "email": "jane@example.com",
                "password": "abcdefgh", "phone": "5551234567",
            })
        assert messages(exc) == {"password": PASSWORD_MESSAGE}

    def test_register_reports_every_field(self):
        with pytest.raises(ValidationError) as exc:
            validate(Register, {"name": "J", "email": "nope", "password": "x", "phone": "12"})
        errors = messages(exc)
        assert errors == {
            "name": "Name must be at least 2 characters long",
            "email": "Please enter a valid email address",
            "password": PASSWORD_MESSAGE,
            "phone": "Please enter a valid phone number",
        }

    def test_register_empty_name_is_required(self):
        with pytest.raises(ValidationError) as exc:
            validate(Register, {"name": "", "email": "jane@example.com",
                                "password": "Sup3r$ecret", "phone": "5551234567"})
        assert messages(exc) == {"name": "Name is required"}

    def test_register_rejects_unknown_role_and_keys(self):
        with pytest.raises(ValidationError) as exc:
            validate(Register, {"name": "Jane", "email": "jane@example.com", "password": "Sup3r$ecret",
                                "phone": "5551234567", "role": "owner", "isAdmin": True})
        errors = messages(exc)
        assert set(errors) == {"role", "isAdmin"}
        assert errors["isAdmin"] == '"isAdmin" is not allowed'

    def test_login_accepts_username(self):
        username = "a" * 20 + "12345"
        data = validate(Login, {"email": username, "password": "whatever"})
        assert data["email"] == username

    def test_login_prefers_email(self):
        data = validate(Login, {"email": "Someone@Example.com", "password": "x"})
        assert data["email"] == "someone@example.com"

    @pytest.mark.parametrize("value,message", [
        ("ab", "Username must be at least 3 characters long"),
        ("a" * 31, "Username cannot be longer than 30 characters"),
        ("john_doe", "Username can only contain letters and numbers"),
        ("broken@", "Please enter a valid email address or username"),
    ])
    def test_login_rejects(self, value, message):
        with pytest.raises(ValidationError) as exc:
            validate(Login, {"email": value, "password": "x"})
        assert messages(exc) == {"email": message}

    def test_login_requires_both_fields(self):
        with pytest.raises(ValidationError) as exc:
            validate(Login, {})
        assert messages(exc) == {
            "email": "Email or username is required",
            "password": "Password is required",
        }

    def test_reset_password_requires_token(self):
        with pytest.raises(ValidationError) as exc:
            validate(ResetPassword, {"password": "Sup3r$ecret"})
        assert messages(exc) == {"token": "Reset token is required"}

    @pytest.mark.parametrize("payload,expected", [
        ({"userId": "123", "otp": "123456"}, {"userId": "Invalid user ID format"}),
        ({"userId": USER_ID, "otp": "123"}, {"otp": "OTP must be 6 digits"}),
        ({"userId": USER_ID, "otp": "12ab56"}, {"otp": "OTP must contain only numbers"}),
    ])
    def test_verify_otp(self, payload, expected):
        with pytest.raises(ValidationError) as exc:
            validate(VerifyOtp, payload)
        assert messages(exc) == expected

    @pytest.mark.parametrize("password", ["Abcdef1!\n", "Abcdefg١!", "Abcdef1!éx"])
    def test_password_is_matched_whole_and_ascii(self, password):
        with pytest.raises(ValidationError) as exc:
            validate(Register, {"name": "Jane", "email": "jane@example.com",
                                "password": password, "phone": "5551234567"})
        assert messages(exc) == {"password": PASSWORD_MESSAGE}

    def test_otp_digits_are_ascii(self):
        with pytest.raises(ValidationError) as exc:
            validate(VerifyOtp, {"userId": USER_ID, "otp": "12345٦"})
        assert messages(exc) == {"otp": "OTP must contain only numbers"}

    def test_every_violated_constraint_is_reported(self):
        exc = PydanticValidationError.from_exception_data("Register", [
            {"type": "string_too_short", "loc": ("name",), "input": "J", "ctx": {"min_length": 2}},
            {"type": "string_pattern_mismatch", "loc": ("name",), "input": "J", "ctx": {"pattern": "^[A-Z]"}},
        ])
        assert _field_errors(Register, exc) == [
            ("name", "Name must be at least 2 characters long"),
            ("name", "name has an invalid format"),
        ]


class TestProfileRules:
    def test_empty_update_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate(UpdateProfile, {})
        assert exc.value.fields() == ["payload"]

    def test_partial_update_keeps_only_given_fields(self):
        data = validate(UpdateProfile, {"address": {"city": " Austin "}})
        assert data == {"address": {"city": "Austin"}}

    def test_non_object_payload(self):
        with pytest.raises(ValidationError):
            validate(UpdateProfile, ["name"])


class TestOrderRules:
    def test_valid_order(self):
        data = validate(CreateOrder, order_payload())
        assert data["items"][0]["quantity"] == 2
        assert data["paymentMethod"] == "stripe"

    def test_empty_items(self):
        with pytest.raises(ValidationError) as exc:
            validate(CreateOrder, order_payload(items=[]))
        assert "items" in exc.value.fields()

    def test_prices_rounded_to_cents(self):
        data = validate(CreateOrder, order_payload(taxPrice=3.119))
        assert data["taxPrice"] == 3.12

    def test_totals_not_cross_checked(self):
        data = validate(CreateOrder, order_payload(totalPrice=1.0))
        assert data["totalPrice"] == 1.0

    def test_item_errors_are_located(self):
        item = {"product_id": "bad", "quantity": 1.5, "price": -2, "name": "Tee", "image": "not a uri"}
        with pytest.raises(ValidationError) as exc:
            validate(CreateOrder, order_payload(items=[item]))
        assert set(exc.value.fields()) == {
            "items.0.product_id", "items.0.quantity", "items.0.price", "items.0.image",
        }

    @pytest.mark.parametrize("value", [float("inf"), float("-inf"), float("nan")])
    def test_aggregates_must_be_finite(self, value):
        with pytest.raises(ValidationError) as exc:
            validate(CreateOrder, order_payload(itemsPrice=value, totalPrice=value))
        assert messages(exc) == {
            "itemsPrice": "itemsPrice must be a finite number",
            "totalPrice": "totalPrice must be a finite number",
        }

    def test_shipping_address_must_be_complete(self):
        address = {"street": "1 Main", "state": "IL", "postalCode": "1", "country": "US"}
        with pytest.raises(ValidationError) as exc:
            validate(CreateOrder, order_payload(shippingAddress=address))
        assert messages(exc) == {"shippingAddress.city": "city is required"}

    def test_payment_method_enumerated(self):
        with pytest.raises(ValidationError) as exc:
            validate(CreateOrder, order_payload(paymentMethod="bitcoin"))
        assert exc.value.fields() == ["paymentMethod"]

    def test_status_values(self):
        assert validate(UpdateStatus, {"status": "shipped"}) == {"status": "shipped"}
        with pytest.raises(ValidationError):
            validate(UpdateStatus, {"status": "lost"})


class TestProductRules:
    def test_create_product_sizes_restricted(self):
        with pytest.raises(ValidationError) as exc:
            validate(CreateProduct, {
                "name": "Tee", "category_id": USER_ID, "price": 10, "stock_quantity": 1,
                "sizes": ["M", "XXXL"], "colors": ["red"], "image_url": "https://cdn.example.com/t.jpg",
            })
        assert exc.value.fields() == ["sizes.1"]

    def test_update_product_needs_a_field(self):
        with pytest.raises(ValidationError):
            validate(UpdateProduct, {})
        assert validate(UpdateProduct, {"price": 12.349}) == {"price": 12.35}

    def test_dimensions_must_be_finite(self):
        with pytest.raises(ValidationError) as exc:
            validate(UpdateProduct, {"weight": float("inf"), "price": float("nan")})
        assert messages(exc) == {
            "weight": "weight must be a finite number",
            "price": "price must be a finite number",
        }

    def test_uri_keeps_its_spelling(self):
        data = validate(UpdateProduct, {
            "image_url": "https://cdn.example.com",
            "video_url": " https://v.example.com/a.mp4 ",
        })
        assert data == {"image_url": "https://cdn.example.com", "video_url": "https://v.example.com/a.mp4"}

    @pytest.mark.parametrize("value", ["cdn.example.com/t.jpg", "http://", "not a uri"])
    def test_uri_rejected(self, value):
        with pytest.raises(ValidationError) as exc:
            validate(UpdateProduct, {"image_url": value})
        assert messages(exc) == {"image_url": "image_url must be a valid uri"}
