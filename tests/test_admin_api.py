import pytest
from fastapi.testclient import TestClient

from conftest import (
    ADMIN_PASSWORD,
    CLIENT_PASSWORD,
    SHIPPING,
    login_client,
    make_admin,
    make_category,
    make_client,
    make_product,
    make_variant,
)
from portal.accounts import create_admin
from portal.errors import Conflict, ValidationFailed
from portal.main import app


def _place_order(email="buyer@example.com", quantity=5, price=200):
    p = make_product(name=f"Box {email}", base_price=price)
    with TestClient(app) as c:
        login_client(c, email=email)
        c.post("/api/cart", json={"productId": p.id, "quantity": quantity})
        r = c.post("/api/orders", json=SHIPPING)
        assert r.status_code == 201, r.text
        return r.json()["data"]


def test_admin_routes_need_admin_session(http):
    make_client()
    login_client(http)
    r = http.get("/api/admin/stats")
    assert r.status_code == 401
    assert r.json()["error"] == "Admin authentication required"


def test_admin_login_records_last_login(http):
    make_admin()
    r = http.post("/api/admin/auth/login", json={"email": "admin@example.com", "password": ADMIN_PASSWORD})
    assert r.status_code == 200
    assert r.json()["user"]["lastLogin"] is not None
    assert "admin_session_token" in r.cookies
    assert http.get("/api/admin/auth/session").json()["user"]["email"] == "admin@example.com"


def test_inactive_admin_is_blocked(http):
    make_admin(is_active=False)
    r = http.post("/api/admin/auth/login", json={"email": "admin@example.com", "password": ADMIN_PASSWORD})
    assert r.status_code == 403


def test_client_approval_and_suspension(admin_http):
    c = make_client(status="pending")

    with TestClient(app) as buyer:
        login_client(buyer)

    r = admin_http.patch(f"/api/admin/clients/{c.id}", json={"status": "approved"})
    assert r.status_code == 200
    assert r.json()["message"] == "Client approved successfully"
    with TestClient(app) as buyer:
        login_client(buyer)

    admin_http.patch(f"/api/admin/clients/{c.id}", json={"status": "suspended"})
    with TestClient(app) as buyer:
        r = buyer.post("/api/auth/login", json={"email": "buyer@example.com", "password": CLIENT_PASSWORD})
        assert r.status_code == 403

    r = admin_http.patch(f"/api/admin/clients/{c.id}", json={"status": "banished"})
    assert r.status_code == 400


def test_client_list_with_totals(admin_http):
    make_client()
    make_client(email="other@example.com", status="pending", business_name="Other Ltd")
    order = _place_order()
    admin_http.patch(f"/api/admin/orders/{order['id']}", json={"paymentStatus": "paid"})

    page = admin_http.get("/api/admin/clients", params={"status": "approved"}).json()["data"]
    assert page["total"] == 1
    row = page["data"][0]
    assert row["totalOrders"] == 1
    assert row["totalSpent"] == 1680

    page = admin_http.get("/api/admin/clients", params={"search": "other"}).json()["data"]
    assert [r["businessName"] for r in page["data"]] == ["Other Ltd"]

    detail = admin_http.get(f"/api/admin/clients/{row['id']}").json()["data"]
    assert len(detail["recentOrders"]) == 1


def test_order_status_flow(admin_http):
    make_client()
    order = _place_order()
    url = f"/api/admin/orders/{order['id']}"

    r = admin_http.patch(url, json={"status": "delivered"})
    assert r.status_code == 400

    for status in ("confirmed", "processing", "shipped"):
        r = admin_http.patch(url, json={"status": status, "trackingNumber": "TRK1"})
        assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert data["shippedAt"] is not None
    assert data["trackingNumber"] == "TRK1"

    r = admin_http.patch(url, json={"status": "pending"})
    assert r.status_code == 400
    assert r.json()["error"] == "Cannot move order from shipped to pending"

    assert admin_http.patch(url, json={}).status_code == 400


def test_discount_recomputes_total(admin_http):
    make_client()
    order = _place_order()
    url = f"/api/admin/orders/{order['id']}"

    data = admin_http.patch(url, json={"discountAmount": 80}).json()["data"]
    assert data["discountAmount"] == 80
    assert data["totalAmount"] == 1600
    assert data["totalAmount"] == data["subtotal"] + data["taxAmount"] + data["shippingAmount"] - data["discountAmount"]

    assert admin_http.patch(url, json={"discountAmount": 5000}).status_code == 400


def test_order_listing_filters(admin_http):
    make_client()
    order = _place_order()
    page = admin_http.get("/api/admin/orders", params={"status": "pending"}).json()["data"]
    assert page["total"] == 1
    assert page["data"][0]["client"]["email"] == "buyer@example.com"

    page = admin_http.get("/api/admin/orders", params={"search": order["orderNumber"]}).json()["data"]
    assert page["total"] == 1
    assert admin_http.get("/api/admin/orders", params={"status": "shipped"}).json()["data"]["total"] == 0


def test_stock_operations(admin_http):
    v = make_variant(make_product(), stock_quantity=6)

    r = admin_http.patch(f"/api/admin/stock/{v.id}", json={"quantity": 10, "operation": "subtract"})
    assert r.status_code == 200
    assert r.json()["data"]["stockQuantity"] == 0
    assert r.json()["message"] == "Stock decreased by 10"

    r = admin_http.patch("/api/admin/stock", json={"variantId": v.id, "quantity": 25, "operation": "set"})
    assert r.json()["data"]["stockQuantity"] == 25

    r = admin_http.patch("/api/admin/stock", json={"variantId": v.id, "quantity": 1, "operation": "halve"})
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid operation"

    r = admin_http.patch("/api/admin/stock/99999", json={"quantity": 1, "operation": "add"})
    assert r.status_code == 404

    page = admin_http.get("/api/admin/stock", params={"lowStock": "true"}).json()["data"]
    assert page["total"] == 0


def test_product_management(admin_http, http):
    cat = make_category()
    r = admin_http.post(
        "/api/admin/products",
        json={"name": "Poly Mailer XL", "categoryId": cat.id, "basePrice": 12.5, "minOrderQuantity": 100},
    )
    assert r.status_code == 201, r.text
    product = r.json()["data"]
    assert product["slug"] == "poly-mailer-xl"

    dup = admin_http.post("/api/admin/products", json={"name": "Poly Mailer XL", "basePrice": 1})
    assert dup.status_code == 409

    r = admin_http.post(
        f"/api/admin/products/{product['id']}/variants",
        json={"sku": "PM-XL", "name": "XL", "price": 14, "stockQuantity": 500},
    )
    assert r.status_code == 201
    variant = r.json()["data"]
    again = admin_http.post(
        f"/api/admin/products/{product['id']}/variants",
        json={"sku": "PM-XL", "name": "XL", "price": 14},
    )
    assert again.status_code == 409

    r = admin_http.patch(f"/api/admin/variants/{variant['id']}", json={"price": 13})
    assert r.json()["data"]["price"] == 13

    r = admin_http.patch(f"/api/admin/products/{product['id']}", json={"isFeatured": True})
    assert r.json()["data"]["isFeatured"] is True

    public = http.get("/api/products/poly-mailer-xl").json()["data"]
    assert public["category"]["slug"] == "boxes"
    assert [v["sku"] for v in public["variants"]] == ["PM-XL"]

    assert admin_http.delete(f"/api/admin/products/{product['id']}").status_code == 200
    assert http.get(f"/api/products/{product['id']}").status_code == 404
    listed = admin_http.get("/api/admin/products").json()["data"]
    assert listed[0]["isActive"] is False


def test_admin_stats(admin_http):
    make_client()
    order = _place_order()
    make_variant(make_product(name="Tape"), sku="TAPE", stock_quantity=2)

    stats = admin_http.get("/api/admin/stats").json()["data"]
    assert stats["totalOrders"] == 1
    assert stats["totalClients"] == 1
    assert stats["pendingOrders"] == 1
    assert stats["lowStockCount"] == 1
    assert stats["totalRevenue"] == 0
    assert len(stats["revenueByMonth"]) == 6

    admin_http.patch(f"/api/admin/orders/{order['id']}", json={"status": "confirmed"})
    stats = admin_http.get("/api/admin/stats").json()["data"]
    assert stats["totalRevenue"] == 1680
    assert stats["revenueByMonth"][-1]["revenue"] == 1680
    assert stats["ordersByStatus"] == {"confirmed": 1}


def test_admin_profile_and_password(admin_http):
    r = admin_http.put("/api/admin/profile", json={"name": "Operations"})
    assert r.json()["user"]["name"] == "Operations"

    make_admin(email="taken@example.com")
    assert admin_http.put("/api/admin/profile", json={"email": "taken@example.com"}).status_code == 409

    r = admin_http.put("/api/admin/password", json={"currentPassword": "nope-nope", "newPassword": "another1"})
    assert r.status_code == 401
    r = admin_http.put("/api/admin/password", json={"currentPassword": ADMIN_PASSWORD, "newPassword": "abc"})
    assert r.status_code == 400
    r = admin_http.put("/api/admin/password", json={"currentPassword": ADMIN_PASSWORD, "newPassword": "another1"})
    assert r.status_code == 200

    with TestClient(app) as c:
        r = c.post("/api/admin/auth/login", json={"email": "admin@example.com", "password": "another1"})
        assert r.status_code == 200


def test_create_admin_bootstrap(db):
    a = create_admin(db, "Boss@Example.com", "boss-pass", "Boss", role="super_admin")
    assert a.email == "boss@example.com"
    assert a.role == "super_admin"

    with pytest.raises(Conflict):
        create_admin(db, "boss@example.com", "boss-pass", "Boss")
    with pytest.raises(ValidationFailed):
        create_admin(db, "ops@example.com", "boss-pass", "Ops", role="owner")


def test_null_for_required_product_fields_is_rejected(admin_http):
    p = make_product()
    v = make_variant(p)

    r = admin_http.patch(f"/api/admin/products/{p.id}", json={"name": None})
    assert r.status_code == 400
    assert r.json()["error"] == "name cannot be empty"
    assert admin_http.patch(f"/api/admin/products/{p.id}", json={"basePrice": None}).status_code == 400
    assert admin_http.patch(f"/api/admin/products/{p.id}", json={"isActive": None}).status_code == 400

    r = admin_http.patch(f"/api/admin/variants/{v.id}", json={"price": None})
    assert r.status_code == 400
    assert r.json()["error"] == "price cannot be empty"
    assert admin_http.patch(f"/api/admin/variants/{v.id}", json={"name": "  "}).status_code == 400

    # nullable fields can still be cleared
    r = admin_http.patch(f"/api/admin/products/{p.id}", json={"description": None})
    assert r.status_code == 200
    assert r.json()["data"]["name"] == "Kraft Box"
