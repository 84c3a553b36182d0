"""
Request validation rule sets.

Each rule set is a pydantic model describing one operation's payload. Call
``validate(RuleSet, payload)`` to get back the normalized payload (trimmed
strings, lower-cased emails, prices rounded to cents) or a ``ValidationError``
listing every offending field with a readable message.
"""
import re
from typing import Annotated, Any, ClassVar, Dict, List, Literal, Optional, Type

from pydantic import AnyUrl, BaseModel, ConfigDict, Field, StringConstraints, TypeAdapter, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.functional_validators import AfterValidator, BeforeValidator
from pydantic.networks import validate_email
from pydantic_core import PydanticCustomError

from errors import FieldError, ValidationError
from schemas import OBJECT_ID_PATTERN, Fit, OrderStatus, PaymentMethod, ProductStatus, Size, StockStatus

PASSWORD_PATTERN = re.compile(r"(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]{8,}", re.ASCII)
PASSWORD_MESSAGE = (
    "Password must contain at least 8 characters, one uppercase, one lowercase, "
    "one number and one special character"
)
USERNAME_PATTERN = re.compile(r"[A-Za-z0-9]+", re.ASCII)
OBJECT_ID_RE = re.compile(OBJECT_ID_PATTERN, re.ASCII)

_url_adapter = TypeAdapter(AnyUrl)

# Fallback messages keyed by pydantic error type; "{label}" is the field name.
DEFAULT_MESSAGES = {
    "missing": "{label} is required",
    "extra_forbidden": '"{label}" is not allowed',
    "string_type": "{label} must be a string",
    "string_too_short": "{label} must be at least {min_length} characters long",
    "string_too_long": "{label} cannot be longer than {max_length} characters",
    "string_pattern_mismatch": "{label} has an invalid format",
    "int_type": "{label} must be an integer",
    "int_parsing": "{label} must be an integer",
    "int_from_float": "{label} must be an integer",
    "float_type": "{label} must be a number",
    "float_parsing": "{label} must be a number",
    "finite_number": "{label} must be a finite number",
    "bool_type": "{label} must be a boolean",
    "bool_parsing": "{label} must be a boolean",
    "greater_than_equal": "{label} must be greater than or equal to {ge}",
    "literal_error": "{label} must be one of {expected}",
    "list_type": "{label} must be an array",
    "too_short": "{label} must contain at least {min_length} items",
    "dict_type": "{label} must be an object",
    "model_type": "{label} must be an object",
    "model_attributes_type": "{label} must be an object",
    "object_id": "{label} must be a valid id",
    "email": "Please enter a valid email address",
    "url_type": "{label} must be a valid uri",
    "url_parsing": "{label} must be a valid uri",
    "url_scheme": "{label} must be a valid uri",
    "url_syntax_violation": "{label} must be a valid uri",
    "url_too_long": "{label} must be a valid uri",
}


def _lower_trim(v: Any) -> Any:
    return v.strip().lower() if isinstance(v, str) else v


def _check_email(v: str) -> str:
    try:
        return validate_email(v)[1].lower()
    except PydanticCustomError:
        raise PydanticCustomError("email", "Please enter a valid email address") from None


def _check_password(v: str) -> str:
    if not PASSWORD_PATTERN.fullmatch(v):
        raise PydanticCustomError("password_complexity", PASSWORD_MESSAGE)
    return v


def _check_object_id(v: str) -> str:
    if not OBJECT_ID_RE.fullmatch(v):
        raise PydanticCustomError("object_id", "must be a valid id")
    return v


def _check_uri(v: str) -> str:
    """Accept what pydantic's ``AnyUrl`` accepts, keeping the caller's spelling."""
    try:
        _url_adapter.validate_python(v)
    except PydanticValidationError as exc:
        err = exc.errors(include_url=False)[0]
        raise PydanticCustomError(err["type"], err["msg"]) from None
    return v


def _email_or_username(v: str) -> str:
    if "@" in v:
        try:
            return _check_email(v)
        except PydanticCustomError:
            raise PydanticCustomError("alternatives", "Please enter a valid email address or username") from None
    if len(v) < 3:
        raise PydanticCustomError("alternatives", "Username must be at least 3 characters long")
    if len(v) > 30:
        raise PydanticCustomError("alternatives", "Username cannot be longer than 30 characters")
    if not USERNAME_PATTERN.fullmatch(v):
        raise PydanticCustomError("alternatives", "Username can only contain letters and numbers")
    return v


Text = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=50)]
Email = Annotated[str, StringConstraints(min_length=1), BeforeValidator(_lower_trim), AfterValidator(_check_email)]
Password = Annotated[str, StringConstraints(min_length=1), AfterValidator(_check_password)]
Phone = Annotated[str, StringConstraints(strip_whitespace=True, pattern=r"^[0-9]{10,15}$")]
ObjectIdStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1), AfterValidator(_check_object_id)]
Uri = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1), AfterValidator(_check_uri)]
Price = Annotated[float, Field(ge=0, allow_inf_nan=False), AfterValidator(lambda v: round(v, 2))]
Measure = Annotated[float, Field(allow_inf_nan=False)]
Quantity = Annotated[int, Field(ge=0)]
Sizes = Annotated[List[Size], Field(min_length=1)]
Colors = Annotated[List[Text], Field(min_length=1)]


class RuleSet(BaseModel):
    """Base for all rule sets: unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid")

    # "<field>.<error type>" -> message, overriding DEFAULT_MESSAGES
    messages: ClassVar[Dict[str, str]] = {}
    # minimum number of recognised keys that must be present
    min_fields: ClassVar[int] = 0

    @model_validator(mode="after")
    def check_min_fields(self):
        if self.min_fields and len(self.model_fields_set) < self.min_fields:
            raise PydanticCustomError(
                "object_min",
                "At least {min_fields} field(s) must be provided",
                {"min_fields": self.min_fields},
            )
        return self


# -----------------------------
# Auth
# -----------------------------
NAME_MESSAGES = {
    "name.string_too_short": "Name must be at least 2 characters long",
    "name.string_too_long": "Name cannot be longer than 50 characters",
    "name.missing": "Name is required",
}
EMAIL_MESSAGES = {"email.missing": "Email is required"}
PASSWORD_MESSAGES = {"password.missing": "Password is required"}


class Register(RuleSet):
    messages = {
        **NAME_MESSAGES,
        **EMAIL_MESSAGES,
        **PASSWORD_MESSAGES,
        "phone.string_pattern_mismatch": "Please enter a valid phone number",
        "phone.missing": "Phone number is required",
    }

    name: Name
    email: Email
    password: Password
    phone: Phone
    role: Literal["user", "vendor", "admin"] = "user"


class SendOtp(RuleSet):
    messages = {**NAME_MESSAGES, **EMAIL_MESSAGES, **PASSWORD_MESSAGES}

    email: Email
    name: Name
    password: Password


class VerifyOtp(RuleSet):
    messages = {
        "userId.object_id": "Invalid user ID format",
        "userId.missing": "User ID is required",
        "otp.string_too_short": "OTP must be 6 digits",
        "otp.string_too_long": "OTP must be 6 digits",
        "otp.string_pattern_mismatch": "OTP must contain only numbers",
        "otp.missing": "OTP is required",
    }

    userId: ObjectIdStr
    otp: Annotated[str, StringConstraints(min_length=6, max_length=6, pattern=r"^[0-9]+$")]


class Login(RuleSet):
    """``email`` takes either an email address or an alphanumeric username."""

    messages = {
        "email.missing": "Email or username is required",
        **PASSWORD_MESSAGES,
    }

    email: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1), AfterValidator(_email_or_username)]
    password: Annotated[str, StringConstraints(min_length=1)]


class ForgotPassword(RuleSet):
    messages = EMAIL_MESSAGES

    email: Email


class ResetPassword(RuleSet):
    messages = {"token.missing": "Reset token is required", **PASSWORD_MESSAGES}

    token: Annotated[str, StringConstraints(min_length=1)]
    password: Password


# -----------------------------
# Users
# -----------------------------
class AddressRules(RuleSet):
    street: Optional[Text] = None
    city: Optional[Text] = None
    state: Optional[Text] = None
    postalCode: Optional[Text] = None
    country: Optional[Text] = None


class UpdateProfile(RuleSet):
    messages = {**NAME_MESSAGES, "phone.string_pattern_mismatch": "Please enter a valid phone number"}
    min_fields = 1

    name: Optional[Name] = None
    email: Optional[Email] = None
    phone: Optional[Phone] = None
    address: Optional[AddressRules] = None


class CreateAdmin(RuleSet):
    messages = {**NAME_MESSAGES, **EMAIL_MESSAGES, **PASSWORD_MESSAGES}

    name: Name
    email: Email
    password: Password
    phone: Optional[Phone] = None


class UpdateUser(RuleSet):
    """Fields an administrator may change on another account."""

    messages = NAME_MESSAGES
    min_fields = 1

    name: Optional[Name] = None
    email: Optional[Email] = None
    phone: Optional[Phone] = None
    role: Optional[Literal["user", "vendor", "admin"]] = None
    is_admin: Optional[bool] = None
    is_active: Optional[bool] = None
    email_verified: Optional[bool] = None


# -----------------------------
# Orders
# -----------------------------
class OrderItemRules(RuleSet):
    product_id: ObjectIdStr
    quantity: Quantity
    price: Price
    name: Text
    image: Optional[Uri] = None


class ShippingAddressRules(RuleSet):
    street: Text
    city: Text
    state: Text
    postalCode: Text
    country: Text


class CreateOrder(RuleSet):
    messages = {"items.too_short": "Order must contain at least one item"}

    user_id: ObjectIdStr
    items: Annotated[List[OrderItemRules], Field(min_length=1)]
    shippingAddress: ShippingAddressRules
    paymentMethod: PaymentMethod
    itemsPrice: Price
    taxPrice: Price
    shippingPrice: Price
    totalPrice: Price


class UpdateStatus(RuleSet):
    status: OrderStatus


# -----------------------------
# Catalog
# -----------------------------
class CreateCategory(RuleSet):
    name: Name
    slug: Optional[Text] = None
    description: Optional[str] = None


class CreateProduct(RuleSet):
    name: Text
    slug: Optional[Text] = None
    sku: Optional[Text] = None
    category_id: ObjectIdStr
    short_description: Optional[Annotated[str, StringConstraints(max_length=500)]] = None
    description: Optional[str] = None
    specifications: Optional[Dict[str, Any]] = None
    price: Price
    sale_price: Optional[Price] = None
    currency: Optional[Text] = None
    stock_quantity: Quantity
    stock_status: Optional[StockStatus] = None
    sizes: Sizes
    colors: Colors
    material: Optional[Text] = None
    fit: Optional[Fit] = None
    weight: Optional[Measure] = None
    length: Optional[Measure] = None
    width: Optional[Measure] = None
    height: Optional[Measure] = None
    image_url: Uri
    gallery_images: Optional[List[Uri]] = None
    video_url: Optional[Uri] = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    tags: Optional[List[Text]] = None
    is_featured: Optional[bool] = None
    brand: Optional[Text] = None
    vendor_id: Optional[ObjectIdStr] = None
    shipping_class: Optional[str] = None
    delivery_time: Optional[str] = None
    status: Optional[ProductStatus] = None


class UpdateProduct(RuleSet):
    min_fields = 1

    name: Optional[Text] = None
    slug: Optional[Text] = None
    sku: Optional[Text] = None
    category_id: Optional[ObjectIdStr] = None
    short_description: Optional[Annotated[str, StringConstraints(max_length=500)]] = None
    description: Optional[str] = None
    specifications: Optional[Dict[str, Any]] = None
    price: Optional[Price] = None
    sale_price: Optional[Price] = None
    currency: Optional[Text] = None
    stock_quantity: Optional[Quantity] = None
    stock_status: Optional[StockStatus] = None
    sizes: Optional[Sizes] = None
    colors: Optional[Colors] = None
    material: Optional[Text] = None
    fit: Optional[Fit] = None
    weight: Optional[Measure] = None
    length: Optional[Measure] = None
    width: Optional[Measure] = None
    height: Optional[Measure] = None
    image_url: Optional[Uri] = None
    gallery_images: Optional[List[Uri]] = None
    video_url: Optional[Uri] = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    tags: Optional[List[Text]] = None
    is_featured: Optional[bool] = None
    brand: Optional[Text] = None
    vendor_id: Optional[ObjectIdStr] = None
    shipping_class: Optional[str] = None
    delivery_time: Optional[str] = None
    status: Optional[ProductStatus] = None


# -----------------------------
# Running rule sets
# -----------------------------
def _field_errors(model: Type[BaseModel], exc: PydanticValidationError) -> List[FieldError]:
    messages = getattr(model, "messages", {})
    errors: List[FieldError] = []
    for err in exc.errors(include_url=False):
        loc = [str(part) for part in err["loc"]]
        field = ".".join(loc) or "payload"
        label = next((p for p in reversed(loc) if not p.isdigit()), "payload")
        kind = err["type"]
        value = err.get("input")
        if isinstance(value, str) and not value.strip() and kind != "extra_forbidden":
            kind = "missing"
        template = messages.get(f"{field}.{kind}") or messages.get(f"{label}.{kind}")
        if template is None:
            template = DEFAULT_MESSAGES.get(kind)
        if template is None:
            errors.append(FieldError(field, err["msg"]))
            continue
        ctx = err.get("ctx") or {}
        errors.append(FieldError(field, template.format(label=label, **ctx)))
    return errors


def _dump(obj: BaseModel) -> Dict[str, Any]:
    data = obj.model_dump(exclude_unset=True)
    for name, field in type(obj).model_fields.items():
        if name not in data and not field.is_required() and field.default is not None:
            data[name] = getattr(obj, name)
    return data


def validate(rules: Type[BaseModel], payload: Any) -> Dict[str, Any]:
    """Run ``rules`` over ``payload``; return the normalized payload or raise ValidationError."""
    if not isinstance(payload, dict):
        raise ValidationError([FieldError("payload", "payload must be an object")])
    try:
        obj = rules.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError(_field_errors(rules, exc)) from None
    return _dump(obj)


def validate_record(model: Type[BaseModel], data: Dict[str, Any]) -> BaseModel:
    """Check a record against its stored schema, filling in defaults."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(_field_errors(model, exc)) from None
