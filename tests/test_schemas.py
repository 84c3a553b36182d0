import pytest

from errors import ValidationError
from schemas import Order, Product
from validation import validate_record

CATEGORY_ID = "64b7f0c2a1b2c3d4e5f60718"


def product_data(**overrides):
    data = {
        "name": "Classic Crew Tee",
        "category_id": CATEGORY_ID,
        "price": 24.99,
        "stock_quantity": 40,
        "sizes": ["S", "M", "L"],
        "colors": ["black", "white"],
        "image_url": "https://cdn.example.com/tees/crew.jpg",
    }
    data.update(overrides)
    return data


def test_product_defaults_applied():
    product = validate_record(Product, product_data())
    assert product.currency == "USD"
    assert product.stock_status == "in_stock"
    assert product.fit == "Regular"
    assert product.material == "100% Cotton"
    assert product.status == "active"
    assert product.average_rating == 0.0
    assert product.review_count == 0
    assert product.is_featured is False
    assert product.created_at is not None
    assert product.updated_at is not None


def test_product_name_is_trimmed():
    assert validate_record(Product, product_data(name="  Tee  ")).name == "Tee"


@pytest.mark.parametrize(
    "field", ["name", "category_id", "price", "stock_quantity", "sizes", "colors", "image_url"]
)
def test_product_missing_required_field(field):
    data = product_data()
    del data[field]
    with pytest.raises(ValidationError) as exc:
        validate_record(Product, data)
    assert field in exc.value.fields()


@pytest.mark.parametrize("sizes", [["S", "XXXL"], ["m"], []])
def test_product_rejects_bad_sizes(sizes):
    with pytest.raises(ValidationError) as exc:
        validate_record(Product, product_data(sizes=sizes))
    assert any(f.startswith("sizes") for f in exc.value.fields())


@pytest.mark.parametrize(
    "field,value",
    [
        ("price", -1),
        ("stock_quantity", -5),
        ("fit", "Baggy"),
        ("status", "archived"),
        ("stock_status", "backorder"),
        ("colors", []),
        ("category_id", "not-an-id"),
        ("price", float("inf")),
        ("sale_price", float("-inf")),
        ("weight", float("nan")),
        ("average_rating", float("inf")),
    ],
)
def test_product_constraint_violations(field, value):
    with pytest.raises(ValidationError) as exc:
        validate_record(Product, product_data(**{field: value}))
    assert exc.value.fields()[0].startswith(field)


def test_order_requires_items():
    with pytest.raises(ValidationError) as exc:
        validate_record(Order, {
            "user_id": CATEGORY_ID,
            "items": [],
            "shippingAddress": {"street": "1 Main", "city": "X", "state": "Y", "postalCode": "1", "country": "US"},
            "paymentMethod": "cod",
            "itemsPrice": 0, "taxPrice": 0, "shippingPrice": 0, "totalPrice": 0,
        })
    assert "items" in exc.value.fields()
