import pytest

from portal.errors import ValidationFailed
from portal.ordering.status import allowed_transitions, can_transition, check_payment_status, check_transition


def test_forward_flow():
    path = ["pending", "confirmed", "processing", "shipped", "delivered"]
    for a, b in zip(path, path[1:]):
        assert can_transition(a, b, strict=True)


def test_no_going_back():
    assert not can_transition("shipped", "pending", strict=True)
    assert not can_transition("delivered", "cancelled", strict=True)
    assert allowed_transitions("cancelled") == frozenset()


def test_relaxed_mode_allows_any_known_status():
    assert can_transition("delivered", "pending", strict=False)
    assert not can_transition("pending", "lost", strict=False)


def test_same_status_is_a_noop():
    assert can_transition("delivered", "delivered", strict=True)


def test_check_transition_messages():
    with pytest.raises(ValidationFailed, match="Invalid order status"):
        check_transition("pending", "teleported")
    with pytest.raises(ValidationFailed, match="Cannot move order from delivered to pending"):
        check_transition("delivered", "pending")


def test_payment_status():
    check_payment_status("paid")
    with pytest.raises(ValidationFailed):
        check_payment_status("maybe")
