"""
Database Schemas for the T-Shirt store

Each Pydantic model corresponds to a MongoDB collection (lowercased class name).
"""
from __future__ import annotations
from datetime import datetime, timezone
from pydantic import BaseModel, Field, EmailStr, field_validator
from typing import Any, Dict, List, Optional, Literal

OBJECT_ID_PATTERN = r"^[0-9a-fA-F]{24}$"

Size = Literal["XS", "S", "M", "L", "XL", "XXL"]
Fit = Literal["Regular", "Slim", "Oversized", "Fitted"]
StockStatus = Literal["in_stock", "out_of_stock", "preorder"]
ProductStatus = Literal["active", "inactive", "draft"]
PaymentMethod = Literal["credit_card", "paypal", "stripe", "cod"]
OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]
Role = Literal["user", "vendor", "admin"]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Timestamped(BaseModel):
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

# -----------------------------
# Auth / Users
# -----------------------------
class Address(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postalCode: Optional[str] = None
    country: Optional[str] = None


class User(Timestamped):
    name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    username: Optional[str] = None
    password: Optional[str] = Field(None, description="bcrypt hash, unset until an OTP sign-up is verified")
    phone: Optional[str] = None
    address: Optional[Address] = None
    role: Role = "user"
    is_admin: bool = False
    is_active: bool = True
    email_verified: bool = False

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()

# -----------------------------
# Catalog
# -----------------------------
class Category(Timestamped):
    name: str
    slug: Optional[str] = None
    description: Optional[str] = None


class Product(Timestamped):
    # Identification
    name: str = Field(..., min_length=1)
    slug: Optional[str] = None
    sku: Optional[str] = None
    category_id: str = Field(..., pattern=OBJECT_ID_PATTERN)

    # Descriptions
    short_description: Optional[str] = Field(None, max_length=500)
    description: Optional[str] = None
    specifications: Optional[Dict[str, Any]] = None

    # Pricing
    price: float = Field(..., ge=0, allow_inf_nan=False)
    sale_price: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    currency: str = "USD"

    # Inventory
    stock_quantity: int = Field(..., ge=0)
    stock_status: StockStatus = "in_stock"

    # Apparel
    sizes: List[Size] = Field(..., min_length=1)
    colors: List[str] = Field(..., min_length=1)
    material: str = "100% Cotton"
    fit: Fit = "Regular"

    # Dimensions (kg / cm)
    weight: Optional[float] = Field(None, allow_inf_nan=False)
    length: Optional[float] = Field(None, allow_inf_nan=False)
    width: Optional[float] = Field(None, allow_inf_nan=False)
    height: Optional[float] = Field(None, allow_inf_nan=False)

    # Media
    image_url: str = Field(..., min_length=1)
    gallery_images: Optional[List[str]] = None
    video_url: Optional[str] = None

    # SEO & marketing
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    tags: Optional[List[str]] = None
    is_featured: bool = False

    # Vendor / brand
    brand: Optional[str] = None
    vendor_id: Optional[str] = Field(None, pattern=OBJECT_ID_PATTERN)

    # Ratings
    average_rating: float = Field(0.0, allow_inf_nan=False)
    review_count: int = 0

    # Shipping
    shipping_class: Optional[str] = None
    delivery_time: Optional[str] = None

    status: ProductStatus = "active"

    @field_validator("name", "slug", "sku", mode="before")
    @classmethod
    def trim_identifiers(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if isinstance(v, str) else v

# -----------------------------
# Orders
# -----------------------------
class OrderItem(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=0)
    price: float = Field(..., ge=0, allow_inf_nan=False)
    name: str
    image: Optional[str] = None


class ShippingAddress(BaseModel):
    street: str
    city: str
    state: str
    postalCode: str
    country: str


class Order(Timestamped):
    user_id: str
    items: List[OrderItem] = Field(..., min_length=1)
    shippingAddress: ShippingAddress
    paymentMethod: PaymentMethod
    itemsPrice: float = Field(..., ge=0, allow_inf_nan=False)
    taxPrice: float = Field(..., ge=0, allow_inf_nan=False)
    shippingPrice: float = Field(..., ge=0, allow_inf_nan=False)
    totalPrice: float = Field(..., ge=0, allow_inf_nan=False)
    status: OrderStatus = "pending"

# Note: the schema explorer at /schema exposes these models
