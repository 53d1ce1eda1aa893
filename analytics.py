"""
Back-office analytics computed from orders, products and users.
"""
from collections import Counter, defaultdict
from datetime import datetime
from typing import Dict, List, Sequence

from catalog import total_stock
from orders import ORDER_STATUSES
from schemas import Order, Product


def _as_chart(values: Dict[str, float]) -> List[Dict]:
    return [{"name": name, "value": value} for name, value in values.items()]


def sales_by_category(orders: Sequence[Order], products: Sequence[Product]) -> List[Dict]:
    """Revenue per product category. Items of deleted products and canceled orders are skipped."""
    category_of = {p.id: p.category for p in products}
    sales: Dict[str, float] = defaultdict(float)
    for order in orders:
        if order.status == "Canceled":
            continue
        for item in order.items:
            category = category_of.get(item.product_id)
            if category is not None:
                sales[category] += item.variant_price * item.quantity
    return _as_chart(sales)


def inventory_value_by_category(products: Sequence[Product]) -> List[Dict]:
    value: Dict[str, float] = defaultdict(float)
    for p in products:
        value[p.category] += sum(v.price * v.stock for v in p.variants)
    return _as_chart(value)


def signups_by_month(users: Sequence[Dict]) -> List[Dict]:
    months = Counter()
    for u in users:
        created = u.get("created_at")
        if isinstance(created, datetime):
            months[created.strftime("%Y-%m")] += 1
    return [{"name": month, "customers": months[month]} for month in sorted(months)]


def dashboard_summary(orders: Sequence[Order], products: Sequence[Product], users: Sequence[Dict],
                      low_stock_threshold: int = 10) -> Dict:
    by_status = {status: 0 for status in ORDER_STATUSES}
    for order in orders:
        by_status[order.status] += 1
    return {
        "revenue": sum(o.total for o in orders if o.status != "Canceled"),
        "order_count": len(orders),
        "orders_by_status": by_status,
        "user_count": len(users),
        "product_count": len(products),
        "low_stock_count": sum(1 for p in products if total_stock(p) <= low_stock_threshold),
    }
