# portal/ordering/pricing.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, Mapping, Optional

from ..errors import ValidationFailed
from ..settings import settings

# The one place logo surcharges default from. Products may override any key
# through customizationOptions.logoSizePrices / logoPositionPrices.
DEFAULT_LOGO_SIZE_PRICES: Dict[str, Decimal] = {
    "small": Decimal("50"),
    "medium": Decimal("100"),
    "large": Decimal("150"),
}
DEFAULT_LOGO_POSITION_PRICES: Dict[str, Decimal] = {
    "center": Decimal("0"),
    "corner": Decimal("25"),
    "repeated": Decimal("75"),
}

_CENT = Decimal("0.01")
_UNIT = Decimal("1")


def to_money(value: Any) -> Decimal:
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def _price_table(options: Optional[Mapping[str, Any]], key: str, defaults: Dict[str, Decimal]) -> Dict[str, Decimal]:
    table = dict(defaults)
    custom = (options or {}).get(key)
    if isinstance(custom, dict):
        for k, v in custom.items():
            table[str(k).strip().lower()] = to_money(v)
    return table


def logo_size_prices(options: Optional[Mapping[str, Any]] = None) -> Dict[str, Decimal]:
    return _price_table(options, "logoSizePrices", DEFAULT_LOGO_SIZE_PRICES)


def logo_position_prices(options: Optional[Mapping[str, Any]] = None) -> Dict[str, Decimal]:
    return _price_table(options, "logoPositionPrices", DEFAULT_LOGO_POSITION_PRICES)


def customization_surcharge(
    customization: Optional[Mapping[str, Any]],
    options: Optional[Mapping[str, Any]] = None,
) -> Decimal:
    """
    Per-unit surcharge for a logo customization: size price + position price.

    Missing keys cost nothing; keys outside the recognised tables are rejected.
    """
    if not customization:
        return Decimal("0.00")

    total = Decimal("0")
    size = customization.get("logoSize")
    if size:
        sizes = logo_size_prices(options)
        key = str(size).strip().lower()
        if key not in sizes:
            raise ValidationFailed(f"Unknown logo size '{size}'")
        total += sizes[key]

    position = customization.get("logoPosition")
    if position:
        positions = logo_position_prices(options)
        key = str(position).strip().lower()
        if key not in positions:
            raise ValidationFailed(f"Unknown logo position '{position}'")
        total += positions[key]

    return to_money(total)


def unit_price(product, variant=None, customization: Optional[Mapping[str, Any]] = None) -> Decimal:
    base = variant.price if variant is not None else product.base_price
    return to_money(to_money(base) + customization_surcharge(customization, product.customization_options))


def line_total(price: Decimal, quantity: int) -> Decimal:
    return to_money(to_money(price) * int(quantity))


def compute_tax(subtotal: Decimal) -> Decimal:
    # whole currency units, half-up
    raw = to_money(subtotal) * Decimal(str(settings.tax_rate))
    return raw.quantize(_UNIT, rounding=ROUND_HALF_UP).quantize(_CENT)


def compute_shipping(subtotal: Decimal) -> Decimal:
    if to_money(subtotal) > to_money(settings.free_shipping_threshold):
        return Decimal("0.00")
    return to_money(settings.shipping_fee)


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    tax_amount: Decimal
    shipping_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal

    def as_dict(self) -> Dict[str, float]:
        return {
            "subtotal": float(self.subtotal),
            "taxAmount": float(self.tax_amount),
            "shippingAmount": float(self.shipping_amount),
            "discountAmount": float(self.discount_amount),
            "totalAmount": float(self.total_amount),
        }


def totals_from_subtotal(subtotal: Any, discount: Any = 0) -> OrderTotals:
    sub = to_money(subtotal)
    tax = compute_tax(sub)
    shipping = compute_shipping(sub)
    disc = to_money(discount)
    return OrderTotals(
        subtotal=sub,
        tax_amount=tax,
        shipping_amount=shipping,
        discount_amount=disc,
        total_amount=to_money(sub + tax + shipping - disc),
    )


def compute_totals(line_totals: Iterable[Any], discount: Any = 0) -> OrderTotals:
    subtotal = sum((to_money(x) for x in line_totals), Decimal("0"))
    return totals_from_subtotal(subtotal, discount)
