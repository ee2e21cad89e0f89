# portal/catalog.py
from __future__ import annotations

import logging
import re
from typing import List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from .errors import Conflict, NotFound, ValidationFailed
from .models import Category, Product, ProductVariant
from .ordering.pricing import customization_surcharge
from .schemas import ProductIn, ProductUpdate, VariantIn, VariantUpdate

log = logging.getLogger(__name__)

_SLUG_RE = re.compile(r"[^a-z0-9]+")

# NOT NULL columns an admin patch may touch
PRODUCT_REQUIRED = ("name", "base_price", "min_order_quantity", "is_customizable", "is_active", "is_featured")
VARIANT_REQUIRED = ("name", "price", "low_stock_threshold", "is_active")


def slugify(text: str) -> str:
    return _SLUG_RE.sub("-", (text or "").strip().lower()).strip("-")


# -------------------
# Storefront
# -------------------
def list_categories(db: Session) -> List[Category]:
    return (
        db.query(Category)
        .filter(Category.is_active.is_(True))
        .order_by(Category.sort_order.asc(), Category.id.asc())
        .all()
    )


def find_category(db: Session, ident: str) -> Optional[Category]:
    ident = (ident or "").strip()
    if not ident:
        return None
    cat = db.query(Category).filter(Category.slug == ident.lower()).first()
    if cat is None and ident.isdigit():
        cat = db.get(Category, int(ident))
    return cat


def list_products(
    db: Session,
    category: Optional[str] = None,
    search: Optional[str] = None,
    featured: bool = False,
    limit: Optional[int] = None,
    offset: int = 0,
) -> Tuple[List[Product], int]:
    q = db.query(Product).filter(Product.is_active.is_(True))

    if category:
        cat = find_category(db, category)
        # unknown category: nothing matches
        q = q.filter(Product.category_id == (cat.id if cat else -1))

    if search:
        term = f"%{search.strip()}%"
        q = q.filter(
            or_(
                Product.name.ilike(term),
                Product.description.ilike(term),
                Product.short_description.ilike(term),
            )
        )

    if featured:
        q = q.filter(Product.is_featured.is_(True))

    total = q.count()
    q = q.order_by(Product.is_featured.desc(), Product.created_at.desc(), Product.id.desc())
    if limit:
        q = q.limit(limit).offset(offset)
    return q.all(), total


def get_product(db: Session, ident: str, active_only: bool = True) -> Product:
    """Look a product up by numeric id first, then by slug."""
    ident = (ident or "").strip()
    product = None
    if ident.isdigit():
        product = db.get(Product, int(ident))
    if product is None:
        product = db.query(Product).filter(Product.slug == ident.lower()).first()
    if product is None or (active_only and not product.is_active):
        raise NotFound("Product not found")
    return product


# -------------------
# Admin
# -------------------
def admin_list_products(db: Session) -> List[Product]:
    return (
        db.query(Product)
        .options(selectinload(Product.variants))
        .order_by(Product.created_at.desc(), Product.id.desc())
        .all()
    )


def _check_category(db: Session, category_id: Optional[int]) -> None:
    if category_id is not None and not db.get(Category, category_id):
        raise ValidationFailed("Category not found")


def _check_required(updates: dict, fields) -> None:
    for field in fields:
        if field not in updates:
            continue
        v = updates[field]
        if v is None or (isinstance(v, str) and not v.strip()):
            raise ValidationFailed(f"{field} cannot be empty")


def _check_customization_options(options) -> None:
    if not options:
        return
    for key in ("logoSizePrices", "logoPositionPrices"):
        table = options.get(key)
        if table is None:
            continue
        if not isinstance(table, dict):
            raise ValidationFailed(f"{key} must be an object")
        for name, price in table.items():
            try:
                if float(price) < 0:
                    raise ValueError
            except (TypeError, ValueError):
                raise ValidationFailed(f"{key}.{name} must be a non-negative number")
    # the defaults must still resolve
    customization_surcharge({"logoSize": "small", "logoPosition": "center"}, options)


def create_product(db: Session, payload: ProductIn) -> Product:
    slug = slugify(payload.slug or payload.name)
    if not slug:
        raise ValidationFailed("Product name is required")
    if db.query(Product.id).filter(Product.slug == slug).first():
        raise Conflict("A product with this slug already exists")
    _check_category(db, payload.category_id)
    _check_customization_options(payload.customization_options)

    data = payload.model_dump(exclude={"slug"})
    product = Product(slug=slug, **data)
    db.add(product)
    db.commit()
    db.refresh(product)
    log.info("product %s created (%s)", product.id, product.slug)
    return product


def update_product(db: Session, product_id: int, payload: ProductUpdate) -> Product:
    product = db.get(Product, product_id)
    if not product:
        raise NotFound("Product not found")

    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise ValidationFailed("Nothing to update")
    _check_required(updates, PRODUCT_REQUIRED)
    if "category_id" in updates:
        _check_category(db, updates["category_id"])
    if "customization_options" in updates:
        _check_customization_options(updates["customization_options"])

    for k, v in updates.items():
        setattr(product, k, v)

    db.add(product)
    db.commit()
    db.refresh(product)
    log.info("product %s updated: %s", product.id, sorted(updates))
    return product


def deactivate_product(db: Session, product_id: int) -> Product:
    # order items keep plain ids, but carts still reference products
    product = db.get(Product, product_id)
    if not product:
        raise NotFound("Product not found")
    product.is_active = False
    db.add(product)
    db.commit()
    db.refresh(product)
    log.info("product %s deactivated", product.id)
    return product


def create_variant(db: Session, product_id: int, payload: VariantIn) -> ProductVariant:
    product = db.get(Product, product_id)
    if not product:
        raise NotFound("Product not found")
    sku = payload.sku.strip()
    if not sku:
        raise ValidationFailed("SKU is required")
    if db.query(ProductVariant.id).filter(ProductVariant.sku == sku).first():
        raise Conflict("A variant with this SKU already exists")

    variant = ProductVariant(product_id=product.id, **{**payload.model_dump(), "sku": sku})
    db.add(variant)
    db.commit()
    db.refresh(variant)
    return variant


def update_variant(db: Session, variant_id: int, payload: VariantUpdate) -> ProductVariant:
    variant = db.get(ProductVariant, variant_id)
    if not variant:
        raise NotFound("Variant not found")

    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise ValidationFailed("Nothing to update")
    _check_required(updates, VARIANT_REQUIRED)
    for k, v in updates.items():
        setattr(variant, k, v)

    db.add(variant)
    db.commit()
    db.refresh(variant)
    return variant
