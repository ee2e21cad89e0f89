# portal/ordering/stock.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from ..errors import NotFound, ValidationFailed
from ..models import ProductVariant

log = logging.getLogger(__name__)

STOCK_OPERATIONS = ("set", "add", "subtract")


def apply_stock_operation(current: int, quantity: int, operation: str) -> int:
    if operation not in STOCK_OPERATIONS:
        raise ValidationFailed("Invalid operation")
    if quantity is None or int(quantity) < 0:
        raise ValidationFailed("Quantity must be zero or more")

    current = max(0, int(current or 0))
    quantity = int(quantity)

    if operation == "set":
        return quantity
    if operation == "add":
        return current + quantity
    return max(0, current - quantity)


def stock_status(quantity: int, threshold: Optional[int]) -> str:
    qty = int(quantity or 0)
    if qty == 0:
        return "out_of_stock"
    if qty <= int(threshold or 0):
        return "low_stock"
    return "in_stock"


def update_stock(db: Session, variant_id: int, quantity: int, operation: str) -> ProductVariant:
    # validate before touching the row so a bad request never locks it
    apply_stock_operation(0, quantity, operation)

    variant = (
        db.query(ProductVariant)
        .filter(ProductVariant.id == variant_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not variant:
        raise NotFound("Variant not found")

    before = variant.stock_quantity
    variant.stock_quantity = apply_stock_operation(before, quantity, operation)
    db.add(variant)
    db.commit()
    db.refresh(variant)

    log.info(
        "stock %s %s: %s -> %s (sku=%s)",
        operation, quantity, before, variant.stock_quantity, variant.sku,
    )
    return variant


def stock_message(operation: str, quantity: int) -> str:
    verb = {"set": "set to", "add": "increased by", "subtract": "decreased by"}[operation]
    return f"Stock {verb} {quantity}"


def list_stock(
    db: Session,
    product_id: Optional[int] = None,
    low_stock: bool = False,
    search: Optional[str] = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> Tuple[list, int]:
    q = db.query(ProductVariant).options(joinedload(ProductVariant.product))

    if product_id:
        q = q.filter(ProductVariant.product_id == product_id)
    if low_stock:
        q = q.filter(ProductVariant.stock_quantity <= ProductVariant.low_stock_threshold)
    if search:
        term = f"%{search.strip()}%"
        q = q.filter(or_(ProductVariant.sku.ilike(term), ProductVariant.name.ilike(term)))

    total = q.count()
    q = q.order_by(ProductVariant.stock_quantity.asc(), ProductVariant.id.asc())
    if limit:
        q = q.limit(limit).offset(offset)
    return q.all(), total


def stock_row(v: ProductVariant) -> Dict[str, Any]:
    product = v.product
    return {
        "id": v.id,
        "productId": v.product_id,
        "productName": product.name if product else None,
        "categoryId": product.category_id if product else None,
        "sku": v.sku,
        "name": v.name,
        "size": v.size,
        "color": v.color,
        "ply": v.ply,
        "price": float(v.price or 0),
        "stockQuantity": v.stock_quantity,
        "lowStockThreshold": v.low_stock_threshold,
        "stockStatus": stock_status(v.stock_quantity, v.low_stock_threshold),
        "isActive": bool(v.is_active),
    }
