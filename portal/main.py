# portal/main.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import Cookie, Depends, FastAPI, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import accounts, admin, catalog, stats
from .db import Base, engine, get_db
from .errors import PortalError
from .models import Client
from .ordering import cart as carts
from .ordering import orders
from .schemas import (
    AddToCartIn,
    CartQuantityIn,
    ClientProfileIn,
    ContactIn,
    CreateOrderIn,
    ForgotPasswordIn,
    LoginIn,
    RegisterIn,
    ResetPasswordIn,
    ValidateResetTokenIn,
    category_dict,
    client_dict,
    ok,
    order_dict,
    page_bounds,
    paginated,
    product_dict,
)
from .sessions import (
    CLIENT_COOKIE,
    clear_session_cookie,
    create_session,
    delete_session,
    require_client,
    set_session_cookie,
)
from .settings import settings

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger(__name__)

app = FastAPI(
    title="B2B Ordering Portal API",
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

Base.metadata.create_all(bind=engine)


# -------------------
# Error envelope
# -------------------
def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError):
    return _error(exc.status_code, exc.message)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if not errors:
        return _error(400, "Invalid request")
    first = errors[0]
    field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
    msg = first.get("msg", "Invalid value")
    return _error(400, f"{field}: {msg}" if field else msg)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    log.exception("unhandled error on %s %s", request.method, request.url.path)
    return _error(500, "Internal server error")


# -------------------
# Health
# -------------------
@app.get("/")
def root():
    return {"ok": True, "service": "ordering-portal"}


# -------------------
# Auth (client)
# -------------------
@app.post("/api/auth/register", status_code=201)
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    client = accounts.register_client(db, payload)
    return {
        "success": True,
        "message": "Registration successful. Your account is pending approval.",
        "user": client_dict(client),
    }


@app.post("/api/auth/login")
def login(payload: LoginIn, request: Request, response: Response, db: Session = Depends(get_db)):
    client = accounts.authenticate_client(db, payload.email, payload.password)
    s = create_session(db, client.id, "client", request)
    set_session_cookie(response, s)
    return {"success": True, "message": "Login successful", "user": client_dict(client)}


@app.get("/api/auth/session")
def session(client: Client = Depends(require_client)):
    return {"success": True, "user": client_dict(client)}


@app.post("/api/auth/logout")
@app.delete("/api/auth/session")
def logout(
    response: Response,
    db: Session = Depends(get_db),
    session_token: Optional[str] = Cookie(default=None, alias=CLIENT_COOKIE),
):
    if delete_session(db, session_token):
        log.info("client session closed")
    clear_session_cookie(response, "client")
    return {"success": True, "message": "Logged out successfully"}


@app.post("/api/auth/forgot-password")
def forgot_password(payload: ForgotPasswordIn, db: Session = Depends(get_db)):
    if payload.user_type and payload.user_type not in ("client", "admin"):
        return _error(400, "Invalid user type")
    accounts.request_password_reset(db, payload.email, payload.user_type)
    return {"success": True, "message": accounts.FORGOT_PASSWORD_MESSAGE}


@app.post("/api/auth/validate-reset-token")
def validate_reset_token(payload: ValidateResetTokenIn, db: Session = Depends(get_db)):
    if not accounts.validate_reset_token(db, payload):
        return _error(400, "Invalid or expired reset token")
    return {"success": True, "message": "Token is valid"}


@app.post("/api/auth/reset-password")
def reset_password(payload: ResetPasswordIn, db: Session = Depends(get_db)):
    accounts.reset_password(db, payload)
    return {"success": True, "message": "Password has been reset successfully"}


# -------------------
# Catalog
# -------------------
@app.get("/api/categories")
def categories(db: Session = Depends(get_db)):
    return ok([category_dict(c) for c in catalog.list_categories(db)])


@app.get("/api/products")
def products(
    category: Optional[str] = None,
    search: Optional[str] = None,
    featured: bool = False,
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100, alias="pageSize"),
    db: Session = Depends(get_db),
):
    limit, offset = page_bounds(page, page_size)
    rows, total = catalog.list_products(
        db, category=category, search=search, featured=featured, limit=limit, offset=offset
    )
    items = [product_dict(p, with_variants=True) for p in rows]
    return ok(paginated(items, total, page, page_size))


@app.get("/api/products/{ident}")
def product_detail(ident: str, db: Session = Depends(get_db)):
    p = catalog.get_product(db, ident)
    out = product_dict(p, with_variants=True)
    out["category"] = category_dict(p.category) if p.category else None
    return ok(out)


# -------------------
# Cart
# -------------------
@app.get("/api/cart")
def get_cart(client: Client = Depends(require_client), db: Session = Depends(get_db)):
    return ok(carts.cart_view(carts.get_or_create_cart(db, client.id)))


@app.post("/api/cart")
def add_to_cart(payload: AddToCartIn, client: Client = Depends(require_client), db: Session = Depends(get_db)):
    cart = carts.add_item(
        db,
        client,
        product_id=payload.product_id,
        variant_id=payload.variant_id,
        quantity=payload.quantity,
        customization=payload.customization,
    )
    return ok(carts.cart_view(cart), "Item added to cart")


@app.delete("/api/cart")
def clear_cart(client: Client = Depends(require_client), db: Session = Depends(get_db)):
    return ok(carts.cart_view(carts.empty_cart(db, client)), "Cart cleared")


@app.patch("/api/cart/{item_id}")
def update_cart_item(
    item_id: int,
    payload: CartQuantityIn,
    client: Client = Depends(require_client),
    db: Session = Depends(get_db),
):
    cart = carts.update_item_quantity(db, client, item_id, payload.quantity)
    return ok(carts.cart_view(cart), "Cart updated")


@app.delete("/api/cart/{item_id}")
def remove_cart_item(item_id: int, client: Client = Depends(require_client), db: Session = Depends(get_db)):
    cart = carts.remove_item(db, client, item_id)
    return ok(carts.cart_view(cart), "Item removed from cart")


# -------------------
# Orders (client)
# -------------------
@app.get("/api/orders")
def my_orders(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100, alias="pageSize"),
    client: Client = Depends(require_client),
    db: Session = Depends(get_db),
):
    limit, offset = page_bounds(page, page_size)
    rows, total = orders.list_orders(db, client_id=client.id, status=status, limit=limit, offset=offset)
    items = [order_dict(o, with_client=False) for o in rows]
    return ok(paginated(items, total, page, page_size))


@app.post("/api/orders", status_code=201)
def place_order(payload: CreateOrderIn, client: Client = Depends(require_client), db: Session = Depends(get_db)):
    order = orders.create_order_from_cart(db, client, payload)
    return ok(order_dict(order, with_client=False), "Order placed successfully")


@app.get("/api/orders/{order_id}")
def my_order(order_id: int, client: Client = Depends(require_client), db: Session = Depends(get_db)):
    return ok(order_dict(orders.get_client_order(db, client, order_id), with_client=False))


# -------------------
# Dashboard
# -------------------
@app.get("/api/dashboard/stats")
def dashboard_stats(client: Client = Depends(require_client), db: Session = Depends(get_db)):
    return ok(stats.client_stats(db, client))


@app.put("/api/dashboard/profile")
def update_profile(payload: ClientProfileIn, client: Client = Depends(require_client), db: Session = Depends(get_db)):
    client = accounts.update_client_profile(db, client, payload)
    return {"success": True, "message": "Profile updated successfully", "user": client_dict(client)}


# -------------------
# Contact
# -------------------
@app.post("/api/contact")
def contact(payload: ContactIn):
    if not all((v or "").strip() for v in (payload.name, payload.email, payload.subject, payload.message)):
        return _error(400, "All required fields must be provided")

    log.info(
        "contact form from %s <%s> (%s): %s",
        payload.name, payload.email, payload.company or "-", payload.subject,
    )
    return ok(message="Thank you for your message. We will get back to you within 24-48 hours.")


app.include_router(admin.router)
