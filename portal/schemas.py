"""
Wire schemas for the portal API.

Request bodies are pydantic models that accept camelCase (the storefront's
convention) as well as snake_case field names. Responses are plain dicts
built by the serializers below, always camelCase.
"""
from __future__ import annotations

import math
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from .models import Admin, Category, Client, Order, OrderItem, Product, ProductVariant


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# -------------------
# Auth / accounts
# -------------------
class RegisterIn(CamelModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    business_name: Optional[str] = None
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    gst_number: Optional[str] = None


class LoginIn(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ForgotPasswordIn(CamelModel):
    email: Optional[str] = None
    user_type: Optional[str] = None


class ValidateResetTokenIn(CamelModel):
    token: Optional[str] = None
    email: Optional[str] = None
    user_type: str = "client"


class ResetPasswordIn(ValidateResetTokenIn):
    password: Optional[str] = None


class ClientProfileIn(CamelModel):
    email: Optional[EmailStr] = None
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    business_name: Optional[str] = None
    gst_number: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None


class AdminProfileIn(CamelModel):
    email: Optional[EmailStr] = None
    name: Optional[str] = None
    phone: Optional[str] = None


class AdminPasswordIn(CamelModel):
    current_password: Optional[str] = None
    new_password: Optional[str] = None


class ClientStatusIn(CamelModel):
    status: Optional[str] = None


class ContactIn(CamelModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    company: Optional[str] = None
    phone: Optional[str] = None
    subject: Optional[str] = None
    message: Optional[str] = None


# -------------------
# Cart / orders
# -------------------
class AddToCartIn(CamelModel):
    product_id: int
    variant_id: Optional[int] = None
    quantity: int = 1
    customization: Optional[Dict[str, Any]] = None


class CartQuantityIn(CamelModel):
    quantity: int


class CreateOrderIn(CamelModel):
    shipping_name: Optional[str] = None
    shipping_phone: Optional[str] = None
    shipping_address_line1: Optional[str] = None
    shipping_address_line2: Optional[str] = None
    shipping_city: Optional[str] = None
    shipping_state: Optional[str] = None
    shipping_postal_code: Optional[str] = None
    payment_method: Literal["bank_transfer", "upi", "credit_terms"] = "bank_transfer"
    customer_notes: Optional[str] = None


class UpdateOrderIn(CamelModel):
    status: Optional[str] = None
    payment_status: Optional[str] = None
    tracking_number: Optional[str] = None
    admin_notes: Optional[str] = None
    discount_amount: Optional[float] = None


# -------------------
# Catalog / stock (admin)
# -------------------
class ProductIn(CamelModel):
    name: str
    slug: Optional[str] = None
    category_id: Optional[int] = None
    description: Optional[str] = None
    short_description: Optional[str] = None
    base_price: float = Field(..., ge=0)
    min_order_quantity: int = Field(1, ge=1)
    image_url: Optional[str] = None
    features: Optional[List[str]] = None
    specifications: Optional[Dict[str, str]] = None
    is_customizable: bool = False
    customization_options: Optional[Dict[str, Any]] = None
    is_active: bool = True
    is_featured: bool = False


class ProductUpdate(CamelModel):
    name: Optional[str] = None
    category_id: Optional[int] = None
    description: Optional[str] = None
    short_description: Optional[str] = None
    base_price: Optional[float] = Field(None, ge=0)
    min_order_quantity: Optional[int] = Field(None, ge=1)
    image_url: Optional[str] = None
    features: Optional[List[str]] = None
    specifications: Optional[Dict[str, str]] = None
    is_customizable: Optional[bool] = None
    customization_options: Optional[Dict[str, Any]] = None
    is_active: Optional[bool] = None
    is_featured: Optional[bool] = None


class VariantIn(CamelModel):
    sku: str
    name: str
    size: Optional[str] = None
    color: Optional[str] = None
    ply: Optional[str] = None
    price: float = Field(..., ge=0)
    stock_quantity: int = Field(0, ge=0)
    low_stock_threshold: int = Field(10, ge=0)
    is_active: bool = True


class VariantUpdate(CamelModel):
    name: Optional[str] = None
    size: Optional[str] = None
    color: Optional[str] = None
    ply: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    low_stock_threshold: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class StockUpdateIn(CamelModel):
    variant_id: Optional[int] = None
    quantity: Optional[int] = None
    operation: Optional[str] = None


class VariantStockIn(CamelModel):
    quantity: int
    operation: str = "set"


# -------------------
# Envelope helpers
# -------------------
def ok(data: Any = None, message: Optional[str] = None) -> Dict[str, Any]:
    out: Dict[str, Any] = {"success": True}
    if data is not None:
        out["data"] = data
    if message:
        out["message"] = message
    return out


def page_bounds(page: int, page_size: int) -> Tuple[int, int]:
    """limit and offset for a 1-based page"""
    return page_size, (page - 1) * page_size


def paginated(items: List[Any], total: int, page: int, page_size: int) -> Dict[str, Any]:
    return {
        "data": items,
        "total": total,
        "page": page,
        "pageSize": page_size,
        "totalPages": math.ceil(total / page_size) if page_size else 0,
    }


def _iso(dt) -> Optional[str]:
    return dt.isoformat() if dt else None


def _money(v) -> float:
    return float(v or 0)


# -------------------
# Serializers
# -------------------
def client_dict(c: Client) -> Dict[str, Any]:
    return {
        "id": c.id,
        "email": c.email,
        "businessName": c.business_name,
        "contactPerson": c.contact_person,
        "phone": c.phone,
        "gstNumber": c.gst_number,
        "addressLine1": c.address_line1,
        "addressLine2": c.address_line2,
        "city": c.city,
        "state": c.state,
        "postalCode": c.postal_code,
        "country": c.country,
        "status": c.status,
        "emailVerified": bool(c.email_verified),
        "createdAt": _iso(c.created_at),
        "updatedAt": _iso(c.updated_at),
    }


def admin_dict(a: Admin) -> Dict[str, Any]:
    return {
        "id": a.id,
        "email": a.email,
        "name": a.name,
        "phone": a.phone,
        "role": a.role,
        "avatarUrl": a.avatar_url,
        "isActive": bool(a.is_active),
        "lastLogin": _iso(a.last_login),
        "createdAt": _iso(a.created_at),
        "updatedAt": _iso(a.updated_at),
    }


def category_dict(c: Category) -> Dict[str, Any]:
    return {
        "id": c.id,
        "name": c.name,
        "slug": c.slug,
        "description": c.description,
        "imageUrl": c.image_url,
        "sortOrder": c.sort_order,
        "isActive": bool(c.is_active),
    }


def variant_dict(v: ProductVariant) -> Dict[str, Any]:
    return {
        "id": v.id,
        "productId": v.product_id,
        "sku": v.sku,
        "name": v.name,
        "size": v.size,
        "color": v.color,
        "ply": v.ply,
        "price": _money(v.price),
        "stockQuantity": v.stock_quantity,
        "lowStockThreshold": v.low_stock_threshold,
        "isActive": bool(v.is_active),
    }


def product_dict(p: Product, with_variants: bool = False, active_only: bool = True) -> Dict[str, Any]:
    out = {
        "id": p.id,
        "categoryId": p.category_id,
        "name": p.name,
        "slug": p.slug,
        "description": p.description,
        "shortDescription": p.short_description,
        "basePrice": _money(p.base_price),
        "minOrderQuantity": p.min_order_quantity,
        "imageUrl": p.image_url,
        "features": p.features or [],
        "specifications": p.specifications or {},
        "isCustomizable": bool(p.is_customizable),
        "customizationOptions": p.customization_options,
        "isActive": bool(p.is_active),
        "isFeatured": bool(p.is_featured),
        "createdAt": _iso(p.created_at),
        "updatedAt": _iso(p.updated_at),
    }
    if with_variants:
        variants = [v for v in p.variants if v.is_active or not active_only]
        out["variants"] = [variant_dict(v) for v in variants]
    return out


def order_item_dict(i: OrderItem) -> Dict[str, Any]:
    return {
        "id": i.id,
        "orderId": i.order_id,
        "productId": i.product_id,
        "variantId": i.variant_id,
        "productName": i.product_name,
        "variantName": i.variant_name,
        "sku": i.sku,
        "quantity": i.quantity,
        "unitPrice": _money(i.unit_price),
        "totalPrice": _money(i.total_price),
        "customization": i.customization,
    }


def order_dict(o: Order, with_client: bool = True) -> Dict[str, Any]:
    out = {
        "id": o.id,
        "clientId": o.client_id,
        "orderNumber": o.order_number,
        "status": o.status,
        "paymentStatus": o.payment_status,
        "paymentMethod": o.payment_method,
        "subtotal": _money(o.subtotal),
        "taxAmount": _money(o.tax_amount),
        "shippingAmount": _money(o.shipping_amount),
        "discountAmount": _money(o.discount_amount),
        "totalAmount": _money(o.total_amount),
        "shippingName": o.shipping_name,
        "shippingPhone": o.shipping_phone,
        "shippingAddressLine1": o.shipping_address_line1,
        "shippingAddressLine2": o.shipping_address_line2,
        "shippingCity": o.shipping_city,
        "shippingState": o.shipping_state,
        "shippingPostalCode": o.shipping_postal_code,
        "shippingCountry": o.shipping_country,
        "customerNotes": o.customer_notes,
        "adminNotes": o.admin_notes,
        "trackingNumber": o.tracking_number,
        "shippedAt": _iso(o.shipped_at),
        "deliveredAt": _iso(o.delivered_at),
        "createdAt": _iso(o.created_at),
        "updatedAt": _iso(o.updated_at),
        "items": [order_item_dict(i) for i in o.items],
    }
    if with_client and o.client is not None:
        out["client"] = {
            "id": o.client.id,
            "email": o.client.email,
            "businessName": o.client.business_name,
            "contactPerson": o.client.contact_person,
        }
    return out
