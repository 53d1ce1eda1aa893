from datetime import datetime, timezone

import analytics
from schemas import Order, OrderItem, Product
from tests.conftest import make_variant


def order(status, total, items):
    return Order(user_id="u1", customer_name="Rina", date="2026-01-01T00:00:00+00:00", status=status, total=total, items=items)


def item(product_id, price, qty):
    return OrderItem(product_id=product_id, product_name="x", variant_name="Red / S", variant_price=price, quantity=qty)


PRODUCTS = [
    Product(id="tee", name="Tee", category="Fashion", variants=[make_variant("Red", "S", price=10, stock=3)]),
    Product(id="lamp", name="Lamp", category="Home", variants=[make_variant("Red", "S", price=40, stock=20)]),
]
ORDERS = [
    order("Delivered", 70, [item("tee", 10, 3), item("lamp", 40, 1)]),
    order("Canceled", 20, [item("tee", 10, 2)]),
    order("Pending", 30, [item("gone", 30, 1)]),
]


def test_dashboard_summary():
    users = [{"email": "a@example.com"}, {"email": "b@example.com"}]
    summary = analytics.dashboard_summary(ORDERS, PRODUCTS, users, low_stock_threshold=10)
    assert summary["revenue"] == 100
    assert summary["order_count"] == 3
    assert summary["orders_by_status"]["Canceled"] == 1
    assert summary["orders_by_status"]["Shipped"] == 0
    assert summary["low_stock_count"] == 1
    assert summary["user_count"] == 2


def test_sales_by_category_skips_canceled_and_deleted():
    assert analytics.sales_by_category(ORDERS, PRODUCTS) == [
        {"name": "Fashion", "value": 30},
        {"name": "Home", "value": 40},
    ]


def test_inventory_value():
    assert analytics.inventory_value_by_category(PRODUCTS) == [
        {"name": "Fashion", "value": 30},
        {"name": "Home", "value": 800},
    ]


def test_signups_by_month():
    users = [
        {"created_at": datetime(2026, 3, 2, tzinfo=timezone.utc)},
        {"created_at": datetime(2026, 1, 9, tzinfo=timezone.utc)},
        {"created_at": datetime(2026, 3, 30, tzinfo=timezone.utc)},
        {},
    ]
    assert analytics.signups_by_month(users) == [
        {"name": "2026-01", "customers": 1},
        {"name": "2026-03", "customers": 2},
    ]
