"""
Route tables.

Each router wires verb + path to a controller behind its guards: ``protect``
(authenticated session) and ``admin`` (administrator role), in that order.
"""
from typing import Any, Dict, List, NamedTuple, Optional

from fastapi import APIRouter, Depends, FastAPI, Query
from fastapi.routing import APIRoute
from pymongo.database import Database

import controllers
from auth import admin, protect
from database import get_db
from validation import (
    CreateAdmin,
    CreateCategory,
    CreateOrder,
    CreateProduct,
    ForgotPassword,
    Login,
    Register,
    ResetPassword,
    SendOtp,
    UpdateProduct,
    UpdateProfile,
    UpdateStatus,
    UpdateUser,
    VerifyOtp,
    validate,
)

# -----------------
# Auth (public)
# -----------------
auth_router = APIRouter(prefix="/auth", tags=["auth"])


@auth_router.post("/register", status_code=201)
def register(payload: Dict[str, Any], db: Database = Depends(get_db)):
    return controllers.register(db, validate(Register, payload))


@auth_router.post("/send-otp")
def send_otp(payload: Dict[str, Any], db: Database = Depends(get_db)):
    return controllers.send_otp(db, validate(SendOtp, payload))


@auth_router.post("/verify-otp")
def verify_otp(payload: Dict[str, Any], db: Database = Depends(get_db)):
    return controllers.verify_otp(db, validate(VerifyOtp, payload))


@auth_router.post("/login")
def login(payload: Dict[str, Any], db: Database = Depends(get_db)):
    return controllers.login(db, validate(Login, payload))


@auth_router.post("/forgot-password")
def forgot_password(payload: Dict[str, Any], db: Database = Depends(get_db)):
    controllers.forgot_password(db, validate(ForgotPassword, payload))
    return {"message": "If that email is registered, a reset link has been sent"}


@auth_router.post("/reset-password")
def reset_password(payload: Dict[str, Any], db: Database = Depends(get_db)):
    return controllers.reset_password(db, validate(ResetPassword, payload))

# -----------------
# Current user
# -----------------
user_router = APIRouter(tags=["user"], dependencies=[Depends(protect)])


@user_router.get("/me")
def get_me(user: dict = Depends(protect)):
    return controllers.get_me(user)


@user_router.put("/profile")
def update_profile(payload: Dict[str, Any], user: dict = Depends(protect), db: Database = Depends(get_db)):
    return controllers.update_profile(db, user, validate(UpdateProfile, payload))

# -----------------
# Catalog (public)
# -----------------
catalog_router = APIRouter(tags=["catalog"])


@catalog_router.get("/products")
def list_products(q: Optional[str] = None, category: Optional[str] = None, size: Optional[str] = None,
                  color: Optional[str] = None, min_price: Optional[float] = None,
                  max_price: Optional[float] = None, featured: Optional[bool] = None,
                  db: Database = Depends(get_db)):
    return controllers.list_products(db, q=q, category=category, size=size, color=color,
                                     min_price=min_price, max_price=max_price, featured=featured)


@catalog_router.get("/products/{product_id}")
def get_product(product_id: str, db: Database = Depends(get_db)):
    return controllers.get_product(db, product_id)


@catalog_router.get("/categories")
def list_categories(db: Database = Depends(get_db)):
    return controllers.list_categories(db)

# -----------------
# Orders
# -----------------
order_router = APIRouter(prefix="/orders", tags=["orders"], dependencies=[Depends(protect)])


@order_router.post("", status_code=201)
def create_order(payload: Dict[str, Any], user: dict = Depends(protect), db: Database = Depends(get_db)):
    return controllers.create_order(db, user, validate(CreateOrder, payload))


@order_router.get("/mine")
def list_my_orders(user: dict = Depends(protect), db: Database = Depends(get_db)):
    return controllers.list_my_orders(db, user)


@order_router.get("/{order_id}")
def get_order(order_id: str, user: dict = Depends(protect), db: Database = Depends(get_db)):
    return controllers.get_order(db, user, order_id)

# -----------------
# Admin
# -----------------
admin_router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(protect), Depends(admin)])


@admin_router.get("/dashboard")
def get_dashboard_stats(db: Database = Depends(get_db)):
    return controllers.dashboard_stats(db)


@admin_router.get("/users")
def get_all_users(page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=100),
                  search: Optional[str] = None, db: Database = Depends(get_db)):
    return controllers.list_users(db, page=page, limit=limit, search=search)


@admin_router.post("/users/admin", status_code=201)
def create_admin(payload: Dict[str, Any], db: Database = Depends(get_db)):
    return controllers.create_admin(db, validate(CreateAdmin, payload))


@admin_router.get("/users/{user_id}")
def get_user_by_id(user_id: str, db: Database = Depends(get_db)):
    return controllers.get_user(db, user_id)


@admin_router.put("/users/{user_id}")
def update_user(user_id: str, payload: Dict[str, Any], db: Database = Depends(get_db)):
    return controllers.update_user(db, user_id, validate(UpdateUser, payload))


@admin_router.delete("/users/{user_id}")
def delete_user(user_id: str, current: dict = Depends(admin), db: Database = Depends(get_db)):
    controllers.delete_user(db, current, user_id)
    return {"deleted": True}


@admin_router.put("/users/{user_id}/make-admin")
def update_user_to_admin(user_id: str, db: Database = Depends(get_db)):
    return controllers.make_admin(db, user_id)


@admin_router.post("/categories", status_code=201)
def create_category(payload: Dict[str, Any], db: Database = Depends(get_db)):
    return controllers.create_category(db, validate(CreateCategory, payload))


@admin_router.post("/products", status_code=201)
def create_product(payload: Dict[str, Any], db: Database = Depends(get_db)):
    return controllers.create_product(db, validate(CreateProduct, payload))


@admin_router.put("/products/{product_id}")
def update_product(product_id: str, payload: Dict[str, Any], db: Database = Depends(get_db)):
    return controllers.update_product(db, product_id, validate(UpdateProduct, payload))


@admin_router.delete("/products/{product_id}")
def delete_product(product_id: str, db: Database = Depends(get_db)):
    controllers.delete_product(db, product_id)
    return {"deleted": True}


@admin_router.get("/orders")
def get_all_orders(status: Optional[str] = None, db: Database = Depends(get_db)):
    return controllers.list_orders(db, status=status)


@admin_router.put("/orders/{order_id}/status")
def update_order_status(order_id: str, payload: Dict[str, Any], db: Database = Depends(get_db)):
    return controllers.update_order_status(db, order_id, validate(UpdateStatus, payload))


ROUTERS = [auth_router, user_router, catalog_router, order_router, admin_router]


class RouteEntry(NamedTuple):
    method: str
    path: str
    guards: List[str]
    controller: str


def route_table(app: FastAPI) -> List[RouteEntry]:
    """Flatten the app's routes into (method, path, guards, controller) entries."""
    table = []
    for route in app.routes:
        if not isinstance(route, APIRoute):
            continue
        guards = [d.dependency.__name__ for d in route.dependencies]
        for method in sorted(route.methods):
            table.append(RouteEntry(method, route.path, guards, route.endpoint.__name__))
    return table
