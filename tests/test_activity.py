from activity import ActivityMonitor, diff_snapshots
from schemas import Product
from tests.conftest import make_variant


def product(pid, stock):
    return Product(id=pid, name=pid.title(), variants=[make_variant("Red", "S", stock=stock)])


def test_diff_snapshots():
    before = [{"id": "a", "v": 1}, {"id": "b", "v": 1}]
    after = [{"id": "b", "v": 2}, {"id": "c", "v": 1}]

    diff = diff_snapshots(before, after)

    assert diff.added == [{"id": "c", "v": 1}]
    assert diff.removed == [{"id": "a", "v": 1}]
    assert diff.changed == [{"id": "b", "v": 2}]
    assert diff_snapshots(after, after).is_empty


def test_first_snapshot_only_primes():
    monitor = ActivityMonitor(clock=lambda: 1.0)
    assert monitor.observe_users([{"id": "u1", "email": "a@example.com"}]) == []
    assert monitor.observe_orders([{"id": "o1", "total": 10}]) == []
    assert monitor.observe_products([product("tee", 1)]) == []
    assert monitor.notifications == []


def test_new_users_and_orders():
    monitor = ActivityMonitor(clock=lambda: 2.0)
    monitor.observe_users([])
    monitor.observe_orders([{"id": "o1", "total": 10}])

    users = monitor.observe_users([{"id": "u1", "email": "a@example.com"}])
    orders = monitor.observe_orders([{"id": "o1", "total": 10}, {"id": "abcdef123", "total": 1050}])

    assert users[0].message == "New user signed up: a@example.com"
    assert orders[0].type == "new-order"
    assert orders[0].message == "New order #abcdef placed for 1,050.00."
    assert [n.type for n in monitor.notifications] == ["new-order", "new-user"]
    assert monitor.unread_count == 2
    monitor.mark_all_read()
    assert monitor.unread_count == 0


def test_low_stock_notifies_once_until_restocked():
    monitor = ActivityMonitor(low_stock_threshold=10)
    monitor.observe_products([product("tee", 50)])

    assert [n.type for n in monitor.observe_products([product("tee", 8)])] == ["low-stock"]
    assert monitor.observe_products([product("tee", 5)]) == []
    assert monitor.observe_products([product("tee", 40)]) == []
    assert len(monitor.observe_products([product("tee", 2)])) == 1


def test_notifications_are_capped():
    monitor = ActivityMonitor(max_notifications=3)
    monitor.observe_orders([])
    monitor.observe_orders([{"id": f"o{i}", "total": 1} for i in range(5)])
    assert len(monitor.notifications) == 3
    assert monitor.notifications[0].id.endswith("o4")
