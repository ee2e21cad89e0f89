# portal/admin.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Query, Request, Response
from sqlalchemy.orm import Session

from . import accounts, catalog, stats
from .db import get_db
from .errors import ValidationFailed
from .models import Admin
from .ordering import orders
from .ordering.stock import list_stock, stock_message, stock_row, update_stock
from .schemas import (
    AdminPasswordIn,
    AdminProfileIn,
    ClientStatusIn,
    LoginIn,
    ProductIn,
    ProductUpdate,
    StockUpdateIn,
    UpdateOrderIn,
    VariantIn,
    VariantStockIn,
    VariantUpdate,
    admin_dict,
    client_dict,
    ok,
    order_dict,
    page_bounds,
    paginated,
    product_dict,
    variant_dict,
)
from .sessions import (
    ADMIN_COOKIE,
    clear_session_cookie,
    create_session,
    delete_session,
    require_admin,
    set_session_cookie,
)

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin")


# -------------------
# Auth
# -------------------
@router.post("/auth/login")
def login(payload: LoginIn, request: Request, response: Response, db: Session = Depends(get_db)):
    a = accounts.authenticate_admin(db, payload.email, payload.password)
    s = create_session(db, a.id, "admin", request)
    set_session_cookie(response, s)
    return {"success": True, "message": "Login successful", "user": admin_dict(a)}


@router.get("/auth/session")
def session(a: Admin = Depends(require_admin)):
    return {"success": True, "user": admin_dict(a)}


@router.delete("/auth/session")
def logout(
    response: Response,
    db: Session = Depends(get_db),
    admin_session_token: Optional[str] = Cookie(default=None, alias=ADMIN_COOKIE),
):
    if delete_session(db, admin_session_token):
        log.info("admin session closed")
    clear_session_cookie(response, "admin")
    return {"success": True, "message": "Logged out successfully"}


@router.put("/profile")
def update_profile(payload: AdminProfileIn, a: Admin = Depends(require_admin), db: Session = Depends(get_db)):
    a = accounts.update_admin_profile(db, a, payload)
    return {"success": True, "message": "Profile updated successfully", "user": admin_dict(a)}


@router.put("/password")
def change_password(payload: AdminPasswordIn, a: Admin = Depends(require_admin), db: Session = Depends(get_db)):
    accounts.change_admin_password(db, a, payload)
    return ok(message="Password updated successfully")


# -------------------
# Dashboard
# -------------------
@router.get("/stats")
def dashboard(a: Admin = Depends(require_admin), db: Session = Depends(get_db)):
    return ok(stats.admin_stats(db))


# -------------------
# Clients
# -------------------
@router.get("/clients")
def clients(
    status: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    a: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    limit, offset = page_bounds(page, page_size)
    rows, total = accounts.list_clients(db, status=status, search=search, limit=limit, offset=offset)
    items = [accounts.client_summary(c, n, spent) for c, n, spent in rows]
    return ok(paginated(items, total, page, page_size))


@router.get("/clients/{client_id}")
def client_detail(client_id: int, a: Admin = Depends(require_admin), db: Session = Depends(get_db)):
    c = accounts.get_client(db, client_id)
    counts, spent = accounts.order_totals(db, [c.id])
    out = client_dict(c)
    out["totalOrders"] = int(counts.get(c.id, 0))
    out["totalSpent"] = float(spent.get(c.id, 0) or 0)
    out["recentOrders"] = [order_dict(o, with_client=False) for o in accounts.recent_client_orders(db, c.id)]
    return ok(out)


@router.patch("/clients/{client_id}")
def client_status(
    client_id: int,
    payload: ClientStatusIn,
    a: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    c = accounts.update_client_status(db, client_id, payload.status)
    verb = {"approved": "approved", "suspended": "suspended"}.get(c.status, "updated")
    return ok(client_dict(c), f"Client {verb} successfully")


# -------------------
# Orders
# -------------------
@router.get("/orders")
def all_orders(
    status: Optional[str] = None,
    client_id: Optional[int] = Query(None, alias="clientId"),
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    a: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    limit, offset = page_bounds(page, page_size)
    rows, total = orders.list_orders(
        db, client_id=client_id, status=status, search=search, limit=limit, offset=offset
    )
    return ok(paginated([order_dict(o) for o in rows], total, page, page_size))


@router.get("/orders/{order_id}")
def order_detail(order_id: int, a: Admin = Depends(require_admin), db: Session = Depends(get_db)):
    return ok(order_dict(orders.get_order(db, order_id)))


@router.patch("/orders/{order_id}")
def update_order(
    order_id: int,
    payload: UpdateOrderIn,
    a: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    o = orders.update_order(db, order_id, payload)
    return ok(order_dict(o), "Order updated successfully")


# -------------------
# Products / variants
# -------------------
@router.get("/products")
def products(a: Admin = Depends(require_admin), db: Session = Depends(get_db)):
    rows = catalog.admin_list_products(db)
    return ok([product_dict(p, with_variants=True, active_only=False) for p in rows])


@router.post("/products", status_code=201)
def create_product(payload: ProductIn, a: Admin = Depends(require_admin), db: Session = Depends(get_db)):
    p = catalog.create_product(db, payload)
    return ok(product_dict(p, with_variants=True, active_only=False), "Product created successfully")


@router.patch("/products/{product_id}")
def update_product(
    product_id: int,
    payload: ProductUpdate,
    a: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    p = catalog.update_product(db, product_id, payload)
    return ok(product_dict(p, with_variants=True, active_only=False), "Product updated successfully")


@router.delete("/products/{product_id}")
def deactivate_product(product_id: int, a: Admin = Depends(require_admin), db: Session = Depends(get_db)):
    p = catalog.deactivate_product(db, product_id)
    return ok(product_dict(p), "Product deactivated")


@router.post("/products/{product_id}/variants", status_code=201)
def create_variant(
    product_id: int,
    payload: VariantIn,
    a: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return ok(variant_dict(catalog.create_variant(db, product_id, payload)), "Variant created successfully")


@router.patch("/variants/{variant_id}")
def update_variant(
    variant_id: int,
    payload: VariantUpdate,
    a: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return ok(variant_dict(catalog.update_variant(db, variant_id, payload)), "Variant updated successfully")


# -------------------
# Stock
# -------------------
@router.get("/stock")
def stock(
    product_id: Optional[int] = Query(None, alias="productId"),
    low_stock: bool = Query(False, alias="lowStock"),
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    a: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    limit, offset = page_bounds(page, page_size)
    rows, total = list_stock(db, product_id=product_id, low_stock=low_stock, search=search, limit=limit, offset=offset)
    return ok(paginated([stock_row(v) for v in rows], total, page, page_size))


@router.patch("/stock")
def adjust_stock(payload: StockUpdateIn, a: Admin = Depends(require_admin), db: Session = Depends(get_db)):
    if not payload.variant_id or payload.quantity is None or not payload.operation:
        raise ValidationFailed("variantId, quantity, and operation are required")
    v = update_stock(db, payload.variant_id, payload.quantity, payload.operation)
    return ok(stock_row(v), "Stock updated successfully")


@router.patch("/stock/{variant_id}")
def adjust_variant_stock(
    variant_id: int,
    payload: VariantStockIn,
    a: Admin = Depends(require_admin),
    db: Session = Depends(get_db),
):
    v = update_stock(db, variant_id, payload.quantity, payload.operation)
    return ok(stock_row(v), stock_message(payload.operation, payload.quantity))
