# portal/ordering/cart.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from ..errors import NotFound, ValidationFailed
from ..models import Cart, CartItem, Client, Product, ProductVariant
from ..schemas import product_dict, variant_dict
from .pricing import compute_totals, customization_surcharge, line_total, unit_price

_LOGO_KEYS = ("logoSize", "logoPosition")


def normalize_customization(raw: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    if not raw:
        return None
    out: Dict[str, Any] = {}
    for k, v in raw.items():
        if v is None or v == "":
            continue
        out[str(k)] = str(v).strip().lower() if k in _LOGO_KEYS else v
    return out or None


def get_or_create_cart(db: Session, client_id: int) -> Cart:
    cart = db.query(Cart).filter(Cart.client_id == client_id).first()
    if cart:
        return cart

    cart = Cart(client_id=client_id)
    db.add(cart)
    db.commit()
    db.refresh(cart)
    return cart


def _touch(cart: Cart) -> None:
    cart.updated_at = datetime.utcnow()


def _owned_item(cart: Cart, item_id: int) -> CartItem:
    for it in cart.items:
        if it.id == item_id:
            return it
    raise NotFound("Cart item not found")


def add_item(
    db: Session,
    client: Client,
    product_id: int,
    variant_id: Optional[int],
    quantity: int,
    customization: Optional[Mapping[str, Any]] = None,
) -> Cart:
    product = db.get(Product, product_id)
    if not product or not product.is_active:
        raise NotFound("Product not found")

    variant = None
    if variant_id:
        variant = db.get(ProductVariant, variant_id)
        if not variant or variant.product_id != product.id or not variant.is_active:
            raise ValidationFailed("Invalid product variant")

    if quantity < (product.min_order_quantity or 1):
        raise ValidationFailed(f"Minimum order quantity is {product.min_order_quantity}")

    custom = normalize_customization(customization)
    if custom and not product.is_customizable:
        raise ValidationFailed("This product cannot be customized")
    # rejects unknown logo keys up front
    customization_surcharge(custom, product.customization_options)

    cart = get_or_create_cart(db, client.id)
    existing = next(
        (
            it for it in cart.items
            if it.product_id == product.id
            and it.variant_id == (variant.id if variant else None)
            and (it.customization or None) == custom
        ),
        None,
    )
    if existing:
        existing.quantity += quantity
    else:
        cart.items.append(
            CartItem(
                product_id=product.id,
                variant_id=variant.id if variant else None,
                quantity=quantity,
                customization=custom,
            )
        )

    _touch(cart)
    db.add(cart)
    db.commit()
    db.refresh(cart)
    return cart


def update_item_quantity(db: Session, client: Client, item_id: int, quantity: int) -> Cart:
    cart = get_or_create_cart(db, client.id)
    item = _owned_item(cart, item_id)

    if quantity <= 0:
        cart.items.remove(item)
    else:
        minimum = item.product.min_order_quantity if item.product else 1
        if quantity < minimum:
            raise ValidationFailed(f"Minimum order quantity is {minimum}")
        item.quantity = quantity

    _touch(cart)
    db.add(cart)
    db.commit()
    db.refresh(cart)
    return cart


def remove_item(db: Session, client: Client, item_id: int) -> Cart:
    cart = get_or_create_cart(db, client.id)
    cart.items.remove(_owned_item(cart, item_id))
    _touch(cart)
    db.add(cart)
    db.commit()
    db.refresh(cart)
    return cart


def clear_cart(cart: Cart) -> None:
    """Empty the cart in the caller's transaction; the caller commits."""
    cart.items.clear()
    _touch(cart)


def empty_cart(db: Session, client: Client) -> Cart:
    cart = get_or_create_cart(db, client.id)
    clear_cart(cart)
    db.add(cart)
    db.commit()
    db.refresh(cart)
    return cart


def price_line(item: CartItem) -> Dict[str, Any]:
    product = item.product
    variant = item.variant
    price = unit_price(product, variant, item.customization)
    return {
        "unitPrice": price,
        "surcharge": customization_surcharge(item.customization, product.customization_options),
        "lineTotal": line_total(price, item.quantity),
    }


def cart_view(cart: Cart) -> Dict[str, Any]:
    lines: List[Dict[str, Any]] = []
    line_totals = []
    for it in cart.items:
        priced = price_line(it)
        line_totals.append(priced["lineTotal"])
        lines.append(
            {
                "id": it.id,
                "cartId": it.cart_id,
                "productId": it.product_id,
                "variantId": it.variant_id,
                "quantity": it.quantity,
                "customization": it.customization,
                "product": product_dict(it.product) if it.product else None,
                "variant": variant_dict(it.variant) if it.variant else None,
                "unitPrice": float(priced["unitPrice"]),
                "customizationCost": float(priced["surcharge"]),
                "lineTotal": float(priced["lineTotal"]),
            }
        )

    totals = compute_totals(line_totals)
    return {
        "id": cart.id,
        "clientId": cart.client_id,
        "items": lines,
        "itemCount": sum(int(x["quantity"]) for x in lines),
        **totals.as_dict(),
    }
