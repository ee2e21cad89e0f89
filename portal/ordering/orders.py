# portal/ordering/orders.py
from __future__ import annotations

import logging
import secrets
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session, selectinload

from ..db import transaction
from ..emailer import send_order_notification
from ..errors import Conflict, Forbidden, NotFound, ValidationFailed
from ..models import Client, Order, OrderItem, ProductVariant
from ..schemas import CreateOrderIn, UpdateOrderIn
from ..settings import settings
from .cart import clear_cart, get_or_create_cart
from .pricing import compute_totals, line_total, to_money, unit_price
from .status import check_payment_status, check_transition
from .stock import apply_stock_operation

log = logging.getLogger(__name__)

_REQUIRED_SHIPPING = (
    "shipping_name",
    "shipping_phone",
    "shipping_address_line1",
    "shipping_city",
    "shipping_state",
    "shipping_postal_code",
)


def generate_order_number(db: Session) -> str:
    year = datetime.utcnow().year
    prefix = settings.order_number_prefix
    for digits in (4, 4, 4, 4, 4, 6, 6, 6):
        candidate = f"{prefix}-{year}-{secrets.randbelow(10 ** digits):0{digits}d}"
        if not db.query(Order.id).filter(Order.order_number == candidate).first():
            return candidate
    raise Conflict("Could not allocate an order number")


def _lock_variants(db: Session, variant_ids: List[int]) -> Dict[int, ProductVariant]:
    if not variant_ids:
        return {}
    rows = (
        db.query(ProductVariant)
        .filter(ProductVariant.id.in_(sorted(variant_ids)))
        .with_for_update()
        .populate_existing()
        .all()
    )
    return {v.id: v for v in rows}


def _move_stock(db: Session, order: Order, operation: str) -> None:
    wanted: Dict[int, int] = defaultdict(int)
    for it in order.items:
        if it.variant_id:
            wanted[it.variant_id] += it.quantity
    # variants deleted since checkout are skipped
    for vid, v in _lock_variants(db, list(wanted)).items():
        v.stock_quantity = apply_stock_operation(v.stock_quantity, wanted[vid], operation)
    log.info("order %s: stock %s for %d variant(s)", order.order_number, operation, len(wanted))


def create_order_from_cart(db: Session, client: Client, payload: CreateOrderIn) -> Order:
    """
    Turn the client's cart into an order.

    Stock check, item snapshot, order insert, stock decrement and cart clear
    commit together or not at all.
    """
    for field in _REQUIRED_SHIPPING:
        if not (getattr(payload, field) or "").strip():
            raise ValidationFailed("All shipping details are required")

    cart = get_or_create_cart(db, client.id)
    if not cart.items:
        raise ValidationFailed("Cart is empty")

    with transaction(db):
        wanted: Dict[int, int] = defaultdict(int)
        for it in cart.items:
            if it.variant_id:
                wanted[it.variant_id] += it.quantity

        variants = _lock_variants(db, list(wanted))
        for vid, qty in wanted.items():
            v = variants.get(vid)
            if v is None:
                raise NotFound("Variant not found")
            if v.stock_quantity < qty:
                raise Conflict(f"Insufficient stock for {v.sku}")

        items: List[OrderItem] = []
        for it in cart.items:
            product = it.product
            if not product.is_active:
                raise Conflict(f"{product.name} is no longer available")
            variant = variants.get(it.variant_id) if it.variant_id else None
            price = unit_price(product, variant, it.customization)
            items.append(
                OrderItem(
                    product_id=product.id,
                    variant_id=variant.id if variant else None,
                    product_name=product.name,
                    variant_name=variant.name if variant else None,
                    sku=variant.sku if variant else None,
                    quantity=it.quantity,
                    unit_price=price,
                    total_price=line_total(price, it.quantity),
                    customization=it.customization,
                )
            )

        totals = compute_totals(i.total_price for i in items)
        order = Order(
            client_id=client.id,
            order_number=generate_order_number(db),
            status="pending",
            payment_status="pending",
            payment_method=payload.payment_method,
            subtotal=totals.subtotal,
            tax_amount=totals.tax_amount,
            shipping_amount=totals.shipping_amount,
            discount_amount=totals.discount_amount,
            total_amount=totals.total_amount,
            shipping_name=payload.shipping_name.strip(),
            shipping_phone=payload.shipping_phone.strip(),
            shipping_address_line1=payload.shipping_address_line1.strip(),
            shipping_address_line2=(payload.shipping_address_line2 or "").strip() or None,
            shipping_city=payload.shipping_city.strip(),
            shipping_state=payload.shipping_state.strip(),
            shipping_postal_code=payload.shipping_postal_code.strip(),
            customer_notes=payload.customer_notes,
        )
        order.items = items
        db.add(order)

        for vid, qty in wanted.items():
            v = variants[vid]
            v.stock_quantity = apply_stock_operation(v.stock_quantity, qty, "subtract")

        clear_cart(cart)

    db.refresh(order)
    log.info(
        "order %s created for client %s: %d items, total %s",
        order.order_number, client.id, len(order.items), order.total_amount,
    )
    send_order_notification(order, client)
    return order


def list_orders(
    db: Session,
    client_id: Optional[int] = None,
    status: Optional[str] = None,
    search: Optional[str] = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> Tuple[List[Order], int]:
    q = db.query(Order)
    if client_id:
        q = q.filter(Order.client_id == client_id)
    if status and status != "all":
        q = q.filter(Order.status == status)
    if search:
        q = q.filter(Order.order_number.ilike(f"%{search.strip()}%"))

    total = q.count()
    q = q.options(selectinload(Order.items), selectinload(Order.client))
    q = q.order_by(Order.created_at.desc(), Order.id.desc())
    if limit:
        q = q.limit(limit).offset(offset)
    return q.all(), total


def get_order(db: Session, order_id: int) -> Order:
    order = db.get(Order, order_id)
    if not order:
        raise NotFound("Order not found")
    return order


def get_client_order(db: Session, client: Client, order_id: int) -> Order:
    order = get_order(db, order_id)
    if order.client_id != client.id:
        raise Forbidden("Unauthorized")
    return order


def update_order(db: Session, order_id: int, payload: UpdateOrderIn) -> Order:
    order = get_order(db, order_id)
    changes = payload.model_dump(exclude_none=True)
    if not changes:
        raise ValidationFailed("Nothing to update")

    now = datetime.utcnow()
    if payload.status is not None:
        check_transition(order.status, payload.status)
        if payload.status != order.status:
            log.info("order %s: %s -> %s", order.order_number, order.status, payload.status)
            if payload.status == "cancelled":
                _move_stock(db, order, "add")
            elif order.status == "cancelled":
                # reopened, only reachable with lax transitions
                _move_stock(db, order, "subtract")
            order.status = payload.status
            if payload.status == "shipped":
                order.shipped_at = now
            elif payload.status == "delivered":
                order.delivered_at = now

    if payload.payment_status is not None:
        check_payment_status(payload.payment_status)
        order.payment_status = payload.payment_status

    if payload.tracking_number is not None:
        order.tracking_number = payload.tracking_number
    if payload.admin_notes is not None:
        order.admin_notes = payload.admin_notes

    if payload.discount_amount is not None:
        discount = to_money(payload.discount_amount)
        gross = to_money(order.subtotal) + to_money(order.tax_amount) + to_money(order.shipping_amount)
        if discount < 0 or discount > gross:
            raise ValidationFailed("Discount must be between 0 and the order total")
        order.discount_amount = discount
        order.total_amount = to_money(gross - discount)

    order.updated_at = now
    db.add(order)
    db.commit()
    db.refresh(order)
    return order
