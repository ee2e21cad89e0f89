# portal/ordering/status.py
from __future__ import annotations

from typing import Dict, FrozenSet, Optional

from ..errors import ValidationFailed
from ..settings import settings

ORDER_STATUSES = ("pending", "confirmed", "processing", "shipped", "delivered", "cancelled")
PAYMENT_STATUSES = ("pending", "paid", "failed", "refunded")
PAYMENT_METHODS = ("bank_transfer", "upi", "credit_terms")

# Forward-only flow; cancellation is possible until delivery.
_NEXT: Dict[str, FrozenSet[str]] = {
    "pending": frozenset({"confirmed", "cancelled"}),
    "confirmed": frozenset({"processing", "cancelled"}),
    "processing": frozenset({"shipped", "cancelled"}),
    "shipped": frozenset({"delivered", "cancelled"}),
    "delivered": frozenset(),
    "cancelled": frozenset(),
}


def allowed_transitions(current: str) -> FrozenSet[str]:
    return _NEXT.get(current, frozenset())


def can_transition(current: str, target: str, strict: Optional[bool] = None) -> bool:
    if target not in ORDER_STATUSES:
        return False
    if current == target:
        return True
    if strict is None:
        strict = settings.strict_order_transitions
    if not strict:
        return True
    return target in allowed_transitions(current)


def check_transition(current: str, target: str) -> None:
    if target not in ORDER_STATUSES:
        raise ValidationFailed("Invalid order status")
    if not can_transition(current, target):
        raise ValidationFailed(f"Cannot move order from {current} to {target}")


def check_payment_status(value: str) -> None:
    if value not in PAYMENT_STATUSES:
        raise ValidationFailed("Invalid payment status")
