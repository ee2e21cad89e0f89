import re

from fastapi.testclient import TestClient

from conftest import SHIPPING, login_client, make_client, make_product, make_variant
from portal.main import app
from portal.models import ProductVariant


def _add(http, product, variant=None, quantity=1):
    body = {"productId": product.id, "quantity": quantity}
    if variant is not None:
        body["variantId"] = variant.id
    r = http.post("/api/cart", json=body)
    assert r.status_code == 200, r.text


def test_empty_cart_cannot_check_out(client_http):
    r = client_http.post("/api/orders", json=SHIPPING)
    assert r.status_code == 400
    assert r.json()["error"] == "Cart is empty"


def test_shipping_details_required(client_http):
    p = make_product()
    _add(client_http, p)
    r = client_http.post("/api/orders", json={**SHIPPING, "shippingCity": " "})
    assert r.status_code == 400
    assert r.json()["error"] == "All shipping details are required"


def test_small_order_totals(client_http):
    p = make_product(base_price=200)
    v = make_variant(p, price=200, stock_quantity=50)
    _add(client_http, p, v, quantity=5)

    r = client_http.post("/api/orders", json=SHIPPING)
    assert r.status_code == 201, r.text
    order = r.json()["data"]
    assert order["subtotal"] == 1000
    assert order["taxAmount"] == 180
    assert order["shippingAmount"] == 500
    assert order["totalAmount"] == 1680
    assert order["status"] == "pending"
    assert order["paymentMethod"] == "bank_transfer"
    assert re.fullmatch(r"PE-\d{4}-\d{4,6}", order["orderNumber"])

    item = order["items"][0]
    assert item["sku"] == v.sku
    assert item["unitPrice"] == 200
    assert item["totalPrice"] == 1000


def test_large_order_ships_free(client_http):
    p = make_product(base_price=1500)
    v = make_variant(p, price=1500, stock_quantity=50)
    _add(client_http, p, v, quantity=10)

    order = client_http.post("/api/orders", json=SHIPPING).json()["data"]
    assert order["subtotal"] == 15000
    assert order["shippingAmount"] == 0
    assert order["totalAmount"] == 17700


def test_checkout_clears_cart_and_takes_stock(client_http, db):
    p = make_product()
    v = make_variant(p, stock_quantity=20)
    _add(client_http, p, v, quantity=8)

    assert client_http.post("/api/orders", json=SHIPPING).status_code == 201
    assert client_http.get("/api/cart").json()["data"]["items"] == []
    assert db.get(ProductVariant, v.id).stock_quantity == 12


def test_cancelling_returns_stock(client_http, admin_http, db):
    p = make_product()
    v = make_variant(p, stock_quantity=20)
    _add(client_http, p, v, quantity=8)
    order = client_http.post("/api/orders", json=SHIPPING).json()["data"]
    assert db.get(ProductVariant, v.id).stock_quantity == 12

    r = admin_http.patch(f"/api/admin/orders/{order['id']}", json={"status": "cancelled"})
    assert r.status_code == 200, r.text
    db.expire_all()
    assert db.get(ProductVariant, v.id).stock_quantity == 20

    # no second refund for a repeated cancel
    admin_http.patch(f"/api/admin/orders/{order['id']}", json={"status": "cancelled"})
    db.expire_all()
    assert db.get(ProductVariant, v.id).stock_quantity == 20


def test_insufficient_stock_rolls_back(client_http, db):
    p = make_product()
    v = make_variant(p, stock_quantity=3)
    _add(client_http, p, v, quantity=5)

    r = client_http.post("/api/orders", json=SHIPPING)
    assert r.status_code == 409
    assert v.sku in r.json()["error"]

    # nothing changed
    assert db.get(ProductVariant, v.id).stock_quantity == 3
    assert len(client_http.get("/api/cart").json()["data"]["items"]) == 1
    assert client_http.get("/api/orders").json()["data"]["total"] == 0


def test_order_listing_and_detail(client_http):
    p = make_product()
    v = make_variant(p)
    _add(client_http, p, v, quantity=2)
    created = client_http.post("/api/orders", json={**SHIPPING, "paymentMethod": "upi"}).json()["data"]

    page = client_http.get("/api/orders").json()["data"]
    assert page["total"] == 1
    assert page["page"] == 1
    assert page["totalPages"] == 1
    assert page["data"][0]["orderNumber"] == created["orderNumber"]

    detail = client_http.get(f"/api/orders/{created['id']}").json()["data"]
    assert detail["paymentMethod"] == "upi"
    assert client_http.get("/api/orders/99999").status_code == 404


def test_foreign_order_is_forbidden(client_http):
    p = make_product()
    _add(client_http, p)
    order_id = client_http.post("/api/orders", json=SHIPPING).json()["data"]["id"]

    make_client(email="rival@example.com")
    with TestClient(app) as rival:
        login_client(rival, email="rival@example.com")
        r = rival.get(f"/api/orders/{order_id}")
        assert r.status_code == 403
        assert r.json()["error"] == "Unauthorized"


def test_client_dashboard(client_http):
    p = make_product(base_price=200)
    _add(client_http, p, quantity=5)
    client_http.post("/api/orders", json=SHIPPING)

    stats = client_http.get("/api/dashboard/stats").json()["data"]
    assert stats["totalOrders"] == 1
    assert stats["activeOrders"] == 1
    assert stats["completedOrders"] == 0
    assert stats["totalSpent"] == 1680
    assert stats["clientName"] == "Asha"
    assert len(stats["recentOrders"]) == 1
