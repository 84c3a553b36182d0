"""
Controllers: the domain operations behind each route.

Every function takes the database handle explicitly and receives payloads that
have already passed their rule set in ``validation``.
"""
import logging
import math
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING
from pymongo.database import Database

import config
from auth import (
    check_password,
    create_token,
    digest,
    generate_otp,
    generate_reset_token,
    hash_password,
    public_user,
)
from database import (
    create_document,
    delete_document,
    get_document,
    get_documents,
    now,
    oid,
    to_public,
    update_document,
)
from errors import AuthorizationError, FieldError, StoreError, ValidationError
from schemas import Category, Order, Product, User
from validation import validate_record

logger = logging.getLogger(__name__)


def _expired(moment: Optional[datetime]) -> bool:
    if moment is None:
        return True
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment <= now()


def _email_taken(db: Database, email: str, exclude_id=None) -> bool:
    query: Dict[str, Any] = {"email": email}
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    return db["user"].find_one(query) is not None


def deliver(email: str, subject: str, secret: str) -> None:
    # Mail delivery is handled outside this service; only record that it happened.
    logger.info("%s issued for %s", subject, email)
    logger.debug("%s for %s: %s", subject, email, secret)


# -----------------
# Auth
# -----------------
def register(db: Database, data: Dict[str, Any]) -> Dict[str, Any]:
    if _email_taken(db, data["email"]):
        raise StoreError("User already exists", status_code=409)
    role = data.get("role", "user")
    if role == "admin":
        # admins are only created by other admins
        role = "user"
    user = User(
        name=data["name"],
        email=data["email"],
        password=hash_password(data["password"]),
        phone=data["phone"],
        role=role,
    )
    user_id = create_document(db, "user", user)
    logger.info("Registered user %s", user.email)
    doc = db["user"].find_one({"_id": oid(user_id)})
    return {"user": public_user(doc), "token": create_token(user_id)}


def send_otp(db: Database, data: Dict[str, Any]) -> Dict[str, Any]:
    """Start (or restart) an email-verified sign-up.

    Name and password stay in ``pending_*`` fields until ``verify_otp`` accepts
    the code, so an existing account is never modified here.
    """
    existing = db["user"].find_one({"email": data["email"]})
    if existing and not existing.get("signup_pending"):
        raise StoreError("User already exists", status_code=409)

    code = generate_otp()
    fields = {
        "pending_name": data["name"],
        "pending_password": hash_password(data["password"]),
        "otp_hash": hash_password(code),
        "otp_expires_at": now() + timedelta(minutes=config.OTP_EXPIRES_MINUTES),
    }
    if existing:
        user_id = str(existing["_id"])
        update_document(db, "user", user_id, fields)
    else:
        user = User(name=data["name"], email=data["email"])
        user_id = create_document(db, "user", {**user.model_dump(), **fields, "signup_pending": True})
    deliver(data["email"], "Verification code", code)
    return {"userId": user_id, "message": "Verification code sent"}


def verify_otp(db: Database, data: Dict[str, Any]) -> Dict[str, Any]:
    user = get_document(db, "user", data["userId"])
    if _expired(user.get("otp_expires_at")):
        raise ValidationError([FieldError("otp", "OTP has expired, please request a new one")])
    if not check_password(data["otp"], user.get("otp_hash")):
        raise ValidationError([FieldError("otp", "Invalid OTP")])
    changes = {
        "email_verified": True,
        "otp_hash": None,
        "otp_expires_at": None,
    }
    if user.get("signup_pending"):
        changes.update({
            "name": user.get("pending_name") or user["name"],
            "password": user.get("pending_password"),
            "pending_name": None,
            "pending_password": None,
            "signup_pending": False,
        })
    user = update_document(db, "user", data["userId"], changes)
    logger.info("Verified email for %s", user["email"])
    return {"user": public_user(user), "token": create_token(data["userId"])}


def login(db: Database, data: Dict[str, Any]) -> Dict[str, Any]:
    identifier = data["email"]
    user = db["user"].find_one({"$or": [{"email": identifier}, {"username": identifier}]})
    if not user or not check_password(data["password"], user.get("password")):
        logger.warning("Failed login for %s", identifier)
        raise AuthorizationError("Invalid email or password")
    if not user.get("is_active", True):
        raise AuthorizationError("Account is deactivated", status_code=403)
    update_document(db, "user", str(user["_id"]), {"last_login_at": now()})
    return {"user": public_user(user), "token": create_token(str(user["_id"]))}


def forgot_password(db: Database, data: Dict[str, Any]) -> Optional[str]:
    """Issue a reset token when the account exists. Returns the raw token, or None."""
    user = db["user"].find_one({"email": data["email"]})
    if not user:
        return None
    token = generate_reset_token()
    update_document(db, "user", str(user["_id"]), {
        "reset_token_hash": digest(token),
        "reset_token_expires_at": now() + timedelta(minutes=config.RESET_TOKEN_EXPIRES_MINUTES),
    })
    deliver(user["email"], "Password reset token", token)
    return token


def reset_password(db: Database, data: Dict[str, Any]) -> Dict[str, Any]:
    user = db["user"].find_one({"reset_token_hash": digest(data["token"])})
    if not user or _expired(user.get("reset_token_expires_at")):
        raise ValidationError([FieldError("token", "Invalid or expired reset token")])
    update_document(db, "user", str(user["_id"]), {
        "password": hash_password(data["password"]),
        "reset_token_hash": None,
        "reset_token_expires_at": None,
    })
    logger.info("Password reset for %s", user["email"])
    return {"message": "Password has been reset"}


# -----------------
# Profile
# -----------------
def get_me(user: Dict[str, Any]) -> Dict[str, Any]:
    return public_user(user)


def update_profile(db: Database, user: Dict[str, Any], data: Dict[str, Any]) -> Dict[str, Any]:
    if "email" in data and _email_taken(db, data["email"], exclude_id=user["_id"]):
        raise StoreError("Email is already in use", status_code=409)
    if "address" in data:
        data = {**data, "address": {**(user.get("address") or {}), **data["address"]}}
    if "email" in data and data["email"] != user.get("email"):
        # a new address has not been proven yet
        data = {**data, "email_verified": False}
    updated = update_document(db, "user", str(user["_id"]), data)
    return public_user(updated)


# -----------------
# Admin: users
# -----------------
def dashboard_stats(db: Database) -> Dict[str, Any]:
    revenue = list(db["order"].aggregate([
        {"$match": {"status": {"$ne": "cancelled"}}},
        {"$group": {"_id": None, "total": {"$sum": "$totalPrice"}}},
    ]))
    recent = db["user"].find({}).sort("created_at", DESCENDING).limit(5)
    return {
        "users": db["user"].count_documents({}),
        "admins": db["user"].count_documents({"is_admin": True}),
        "activeUsers": db["user"].count_documents({"is_active": True}),
        "products": db["product"].count_documents({}),
        "orders": db["order"].count_documents({}),
        "pendingOrders": db["order"].count_documents({"status": "pending"}),
        "revenue": round(revenue[0]["total"], 2) if revenue else 0.0,
        "recentUsers": [public_user(u) for u in recent],
    }


def list_users(db: Database, page: int = 1, limit: int = 20, search: Optional[str] = None) -> Dict[str, Any]:
    query: Dict[str, Any] = {}
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        query["$or"] = [{"name": pattern}, {"email": pattern}]
    total = db["user"].count_documents(query)
    users = get_documents(db, "user", query, limit=limit, skip=(page - 1) * limit)
    return {
        "users": [public_user(u) for u in users],
        "page": page,
        "pages": max(1, math.ceil(total / limit)),
        "total": total,
    }


def get_user(db: Database, user_id: str) -> Dict[str, Any]:
    return public_user(get_document(db, "user", user_id))


def update_user(db: Database, user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    if "email" in data and _email_taken(db, data["email"], exclude_id=oid(user_id)):
        raise StoreError("Email is already in use", status_code=409)
    if "role" in data and "is_admin" not in data:
        data = {**data, "is_admin": data["role"] == "admin"}
    elif "is_admin" in data and "role" not in data:
        data = {**data, "role": "admin" if data["is_admin"] else "user"}
    return public_user(update_document(db, "user", user_id, data))


def delete_user(db: Database, current_user: Dict[str, Any], user_id: str) -> None:
    if oid(user_id) == current_user["_id"]:
        raise ValidationError([FieldError("id", "You cannot delete your own account")])
    delete_document(db, "user", user_id)
    logger.info("User %s deleted by %s", user_id, current_user.get("email"))


def make_admin(db: Database, user_id: str) -> Dict[str, Any]:
    user = update_document(db, "user", user_id, {"is_admin": True, "role": "admin"})
    logger.info("User %s promoted to admin", user["email"])
    return public_user(user)


def create_admin(db: Database, data: Dict[str, Any]) -> Dict[str, Any]:
    if _email_taken(db, data["email"]):
        raise StoreError("User already exists", status_code=409)
    user = User(
        name=data["name"],
        email=data["email"],
        password=hash_password(data["password"]),
        phone=data.get("phone"),
        role="admin",
        is_admin=True,
        email_verified=True,
    )
    user_id = create_document(db, "user", user)
    logger.info("Admin %s created", user.email)
    return get_user(db, user_id)


# -----------------
# Catalog
# -----------------
def _slugify(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def _require_category(db: Database, category_id: str) -> None:
    if db["category"].find_one({"_id": oid(category_id)}) is None:
        raise ValidationError([FieldError("category_id", "Category not found")])


def list_categories(db: Database) -> List[Dict[str, Any]]:
    return [to_public(c) for c in get_documents(db, "category")]


def create_category(db: Database, data: Dict[str, Any]) -> Dict[str, Any]:
    category = Category(slug=data.get("slug") or _slugify(data["name"]), **{k: v for k, v in data.items() if k != "slug"})
    category_id = create_document(db, "category", category)
    return to_public(get_document(db, "category", category_id))


def list_products(db: Database, q: Optional[str] = None, category: Optional[str] = None,
                  size: Optional[str] = None, color: Optional[str] = None,
                  min_price: Optional[float] = None, max_price: Optional[float] = None,
                  featured: Optional[bool] = None) -> List[Dict[str, Any]]:
    query: Dict[str, Any] = {"status": "active"}
    if q:
        query["name"] = {"$regex": re.escape(q), "$options": "i"}
    if category:
        query["category_id"] = category
    price_filter = {}
    if min_price is not None:
        price_filter["$gte"] = float(min_price)
    if max_price is not None:
        price_filter["$lte"] = float(max_price)
    if price_filter:
        query["price"] = price_filter
    if size:
        query["sizes"] = size
    if color:
        query["colors"] = color
    if featured is not None:
        query["is_featured"] = featured
    return [to_public(d) for d in get_documents(db, "product", query, limit=60)]


def get_product(db: Database, product_id: str) -> Dict[str, Any]:
    return to_public(get_document(db, "product", product_id))


def create_product(db: Database, data: Dict[str, Any]) -> Dict[str, Any]:
    _require_category(db, data["category_id"])
    product = validate_record(Product, {k: v for k, v in data.items() if v is not None})
    product_id = create_document(db, "product", product)
    logger.info("Product %s created", product.name)
    return get_product(db, product_id)


def update_product(db: Database, product_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    existing = get_document(db, "product", product_id)
    if "category_id" in data:
        _require_category(db, data["category_id"])
    merged = {k: v for k, v in existing.items() if k != "_id"}
    merged.update(data)
    validate_record(Product, merged)
    return to_public(update_document(db, "product", product_id, data))


def delete_product(db: Database, product_id: str) -> None:
    delete_document(db, "product", product_id)
    logger.info("Product %s deleted", product_id)


# -----------------
# Orders
# -----------------
def create_order(db: Database, user: Dict[str, Any], data: Dict[str, Any]) -> Dict[str, Any]:
    if data["user_id"] != str(user["_id"]) and not user.get("is_admin"):
        raise AuthorizationError("Cannot place an order for another user", status_code=403)

    errors = []
    for i, item in enumerate(data["items"]):
        if db["product"].find_one({"_id": oid(item["product_id"])}) is None:
            errors.append(FieldError(f"items.{i}.product_id", "Product not found"))
    expected = data["itemsPrice"] + data["taxPrice"] + data["shippingPrice"]
    if abs(expected - data["totalPrice"]) > 0.01:
        errors.append(FieldError("totalPrice", "totalPrice must equal itemsPrice + taxPrice + shippingPrice"))
    if errors:
        raise ValidationError(errors)

    order = Order(**data)
    order_id = create_document(db, "order", order)
    logger.info("Order %s placed by %s", order_id, user.get("email"))
    return to_public(get_document(db, "order", order_id))


def list_my_orders(db: Database, user: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [to_public(o) for o in get_documents(db, "order", {"user_id": str(user["_id"])})]


def get_order(db: Database, user: Dict[str, Any], order_id: str) -> Dict[str, Any]:
    order = get_document(db, "order", order_id)
    if order["user_id"] != str(user["_id"]) and not user.get("is_admin"):
        raise AuthorizationError("Not authorized to view this order", status_code=403)
    return to_public(order)


def list_orders(db: Database, status: Optional[str] = None) -> List[Dict[str, Any]]:
    query = {"status": status} if status else {}
    return [to_public(o) for o in get_documents(db, "order", query)]


def update_order_status(db: Database, order_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    order = update_document(db, "order", order_id, {"status": data["status"]})
    logger.info("Order %s moved to %s", order_id, data["status"])
    return to_public(order)
