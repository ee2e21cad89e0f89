import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["SMTP_HOST"] = ""
os.environ["ORDERS_EMAIL_TO"] = ""

import pytest
from fastapi.testclient import TestClient

from portal.auth import hash_password
from portal.db import Base, SessionLocal, engine
from portal.main import app
from portal.models import Admin, Category, Client, Product, ProductVariant

CLIENT_PASSWORD = "secret-pass-1"
ADMIN_PASSWORD = "admin-pass-1"


@pytest.fixture(autouse=True)
def fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()


def _save(obj):
    s = SessionLocal()
    try:
        s.add(obj)
        s.commit()
        s.refresh(obj)
        return obj
    finally:
        s.close()


def make_client(email="buyer@example.com", status="approved", **kw):
    return _save(
        Client(
            email=email,
            password_hash=hash_password(CLIENT_PASSWORD),
            business_name=kw.pop("business_name", "Acme Traders"),
            contact_person=kw.pop("contact_person", "Asha"),
            phone=kw.pop("phone", "9999999999"),
            status=status,
            **kw,
        )
    )


def make_admin(email="admin@example.com", **kw):
    return _save(
        Admin(
            email=email,
            password_hash=hash_password(ADMIN_PASSWORD),
            name=kw.pop("name", "Ops"),
            **kw,
        )
    )


def make_product(name="Kraft Box", base_price=200, min_order_quantity=1, slug=None, **kw):
    cat = kw.pop("category", None)
    return _save(
        Product(
            name=name,
            slug=slug or name.lower().replace(" ", "-"),
            base_price=base_price,
            min_order_quantity=min_order_quantity,
            category_id=cat.id if cat else None,
            **kw,
        )
    )


def make_variant(product, sku="KB-S", price=200, stock_quantity=100, **kw):
    return _save(
        ProductVariant(
            product_id=product.id,
            sku=sku,
            name=kw.pop("name", sku),
            price=price,
            stock_quantity=stock_quantity,
            **kw,
        )
    )


def make_category(name="Boxes", slug="boxes", **kw):
    return _save(Category(name=name, slug=slug, **kw))


def login_client(http, email="buyer@example.com", password=CLIENT_PASSWORD):
    r = http.post("/api/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return r


def login_admin(http, email="admin@example.com", password=ADMIN_PASSWORD):
    r = http.post("/api/admin/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return r


@pytest.fixture
def http():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def client_http(http):
    make_client()
    login_client(http)
    return http


@pytest.fixture
def admin_http():
    make_admin()
    with TestClient(app) as c:
        login_admin(c)
        yield c


SHIPPING = {
    "shippingName": "Asha",
    "shippingPhone": "9999999999",
    "shippingAddressLine1": "12 Market Road",
    "shippingCity": "Pune",
    "shippingState": "MH",
    "shippingPostalCode": "411001",
}
