import itertools
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["JWT_SECRET"] = "test-secret"

import pytest
from fastapi.testclient import TestClient

from database import Base, engine
from main import app

_counter = itertools.count(1)


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def register(client, number, password="secret123", user_name="Customer"):
    resp = client.post("/auth/register", json={"number": number, "password": password, "user_name": user_name})
    assert resp.status_code == 201, resp.text
    token = resp.json()["data"]["token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(client):
    return register(client, "0711000001", user_name="Alice")


@pytest.fixture
def other_headers(client):
    return register(client, "0711000002", user_name="Bob")


@pytest.fixture
def category(client, auth_headers):
    resp = client.post("/categories", json={"name": "Groceries", "description": "Food"}, headers=auth_headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


@pytest.fixture
def make_product(client, auth_headers, category):
    def _make(**overrides):
        n = next(_counter)
        payload = {
            "name": f"Product {n}",
            "description": f"Description for product {n}",
            "price": "10.00",
            "sku": f"SKU-{n}",
            "slug": f"product-{n}",
            "stock": 10,
            "status": "active",
            "category_id": category["id"],
        }
        payload.update(overrides)
        resp = client.post("/products", json=payload, headers=auth_headers)
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]
    return _make


def add_to_cart(client, headers, product_id, quantity=1):
    return client.post("/cart/items", json={"product_id": product_id, "quantity": quantity}, headers=headers)
