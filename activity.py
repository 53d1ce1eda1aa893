"""
Admin activity feed.

``diff_snapshots`` compares two snapshots of a collection. ``ActivityMonitor``
keeps the previous snapshot per feed and turns each new one into
notifications: new users, new orders and products running low on stock.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, List, Optional, Sequence

from catalog import total_stock
from schemas import Notification, Product

logger = logging.getLogger(__name__)

LOW_STOCK_THRESHOLD = 10
MAX_NOTIFICATIONS = 20


def _item_id(item: Any) -> Hashable:
    return item["id"] if isinstance(item, dict) else item.id


@dataclass
class SnapshotDiff:
    added: List[Any] = field(default_factory=list)
    removed: List[Any] = field(default_factory=list)
    changed: List[Any] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.changed)


def diff_snapshots(previous: Sequence[Any], current: Sequence[Any], key: Callable[[Any], Hashable] = _item_id) -> SnapshotDiff:
    """Items added, removed and changed between two snapshots, matched by ``key``.

    ``changed`` holds the current version of items whose value differs.
    """
    before = {key(item): item for item in previous}
    after = {key(item): item for item in current}
    diff = SnapshotDiff()
    for k, item in after.items():
        if k not in before:
            diff.added.append(item)
        elif before[k] != item:
            diff.changed.append(item)
    diff.removed = [item for k, item in before.items() if k not in after]
    return diff


class ActivityMonitor:
    def __init__(self, low_stock_threshold: int = LOW_STOCK_THRESHOLD, max_notifications: int = MAX_NOTIFICATIONS,
                 clock: Callable[[], float] = time.time):
        self.low_stock_threshold = low_stock_threshold
        self.max_notifications = max_notifications
        self.clock = clock
        self.notifications: List[Notification] = []
        self._previous: Dict[str, Optional[list]] = {"users": None, "orders": None}
        self._low_stock: Optional[set] = None

    def _push(self, kind: str, item_id: str, message: str) -> Notification:
        now = self.clock()
        notif = Notification(id=f"{int(now * 1000)}-{kind}-{item_id}", type=kind, message=message, timestamp=now)
        self.notifications = [notif] + self.notifications[: self.max_notifications - 1]
        return notif

    def _added_since_last(self, feed: str, snapshot: Sequence[Any]) -> List[Any]:
        previous = self._previous[feed]
        self._previous[feed] = list(snapshot)
        if previous is None:
            # first snapshot only primes the feed
            return []
        return diff_snapshots(previous, snapshot).added

    def observe_users(self, users: Sequence[Dict]) -> List[Notification]:
        return [
            self._push("new-user", u["id"], f"New user signed up: {u.get('email', 'N/A')}")
            for u in self._added_since_last("users", users)
        ]

    def observe_orders(self, orders: Sequence[Dict]) -> List[Notification]:
        return [
            self._push("new-order", o["id"], f"New order #{o['id'][:6]} placed for {o.get('total', 0):,.2f}.")
            for o in self._added_since_last("orders", orders)
        ]

    def observe_products(self, products: Sequence[Product]) -> List[Notification]:
        low = {p.id for p in products if total_stock(p) <= self.low_stock_threshold}
        if self._low_stock is None:
            self._low_stock = low
            return []
        created = []
        for p in products:
            if p.id in low and p.id not in self._low_stock:
                created.append(self._push("low-stock", p.id, f'"{p.name}" has only {total_stock(p)} items left.'))
        # products that recovered are re-armed
        self._low_stock = low
        if created:
            logger.info("%d products fell to low stock", len(created))
        return created

    def mark_all_read(self) -> None:
        self.notifications = [n.model_copy(update={"read": True}) for n in self.notifications]

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self.notifications if not n.read)
