from datetime import datetime, timezone

import mongomock
import pytest
from fastapi.testclient import TestClient

import database
import main
from activity import ActivityMonitor
from schemas import CheckoutConfig, OptionType, Product, Variant


def make_variant(color, size, price=100.0, stock=5, **extra):
    return Variant(id=f"{color}-{size}", name=f"{color} / {size}", options={"Color": color, "Size": size},
                   price=price, stock=stock, **extra)


@pytest.fixture
def color():
    return OptionType(id="color", name="Color", values=[{"name": "Red", "colorCode": "#ff0000"}, {"name": "Blue", "colorCode": "#0000ff"}])


@pytest.fixture
def size():
    return OptionType(id="size", name="Size", values=["S", "M", "L"])


@pytest.fixture
def tee():
    # no Blue / M on purpose
    return Product(
        id="tee",
        name="Tee",
        category="Fashion",
        image_urls=["https://img.example/tee.png"],
        variants=[
            make_variant("Red", "S", stock=0),
            make_variant("Red", "M", stock=3),
            make_variant("Blue", "S", stock=7, image_url="https://img.example/blue.png"),
        ],
    )


@pytest.fixture
def checkout_config():
    return CheckoutConfig(shipping_charge_inside_zone=40, shipping_charge_outside_zone=90, tax_amount=10)


@pytest.fixture
def mock_db(monkeypatch):
    test_db = mongomock.MongoClient()["storefront_test"]
    monkeypatch.setattr(database, "db", test_db)
    monkeypatch.setattr(main, "db", test_db)
    monkeypatch.setattr(main.app.state, "activity", ActivityMonitor())
    return test_db


@pytest.fixture
def client(mock_db):
    return TestClient(main.app)


def _login(client, email, password):
    res = client.post("/api/auth/login", json={"email": email, "password": password})
    assert res.status_code == 200, res.text
    return {"Authorization": f"Bearer {res.json()['access_token']}"}


@pytest.fixture
def admin_headers(client, mock_db):
    mock_db["user"].insert_one({
        "name": "Admin",
        "email": "admin@example.com",
        "password_hash": main.hash_password("Admin@123"),
        "role": "admin",
        "is_banned": False,
        "created_at": datetime.now(timezone.utc),
    })
    return _login(client, "admin@example.com", "Admin@123")


@pytest.fixture
def user_headers(client):
    res = client.post("/api/auth/register", json={"name": "Rina", "email": "rina@example.com", "password": "secret1"})
    assert res.status_code == 200, res.text
    return _login(client, "rina@example.com", "secret1")
