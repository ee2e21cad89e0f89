import pytest

from conftest import make_product, make_variant
from portal.errors import NotFound, ValidationFailed
from portal.ordering.stock import (
    apply_stock_operation,
    list_stock,
    stock_message,
    stock_status,
    update_stock,
)


def test_subtract_clamps_at_zero():
    assert apply_stock_operation(6, 10, "subtract") == 0


def test_set_is_idempotent():
    once = apply_stock_operation(40, 15, "set")
    assert apply_stock_operation(once, 15, "set") == once == 15


def test_add_then_subtract_restores():
    assert apply_stock_operation(apply_stock_operation(33, 7, "add"), 7, "subtract") == 33


@pytest.mark.parametrize("op,qty", [("multiply", 1), ("set", -1)])
def test_rejects_bad_input(op, qty):
    with pytest.raises(ValidationFailed):
        apply_stock_operation(5, qty, op)


def test_stock_status_levels():
    assert stock_status(0, 10) == "out_of_stock"
    assert stock_status(10, 10) == "low_stock"
    assert stock_status(11, 10) == "in_stock"


def test_stock_message():
    assert stock_message("set", 5) == "Stock set to 5"
    assert stock_message("add", 3) == "Stock increased by 3"
    assert stock_message("subtract", 2) == "Stock decreased by 2"


def test_update_stock_persists(db):
    v = make_variant(make_product(), stock_quantity=6)
    updated = update_stock(db, v.id, 10, "subtract")
    assert updated.stock_quantity == 0

    with pytest.raises(NotFound):
        update_stock(db, 9999, 1, "add")


def test_list_stock_filters_low_stock(db):
    p = make_product()
    make_variant(p, sku="A", stock_quantity=3)
    make_variant(p, sku="B", stock_quantity=500)

    rows, total = list_stock(db, low_stock=True)
    assert total == 1
    assert rows[0].sku == "A"

    rows, total = list_stock(db, search="b")
    assert [r.sku for r in rows] == ["B"]
