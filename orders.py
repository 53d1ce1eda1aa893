"""
Order placement and the order status lifecycle.

Orders are snapshots: item names, images and prices are copied out of the cart
when the order is placed and never re-read from the product afterwards. Only
the status changes later, one step forward at a time or to Canceled.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from cart import Cart
from errors import AuthenticationRequiredError, ValidationError
from schemas import CheckoutConfig, Order, OrderItem

logger = logging.getLogger(__name__)

ORDER_STATUSES = ("Pending", "Processed", "Shipped", "Delivered", "Canceled")
NEXT_STATUS = {
    "Pending": "Processed",
    "Processed": "Shipped",
    "Shipped": "Delivered",
}
TERMINAL_STATUSES = ("Delivered", "Canceled")


def allowed_transitions(status: str) -> List[str]:
    if status in TERMINAL_STATUSES:
        return []
    return [NEXT_STATUS[status], "Canceled"]


def check_transition(current: str, new: str) -> None:
    if new not in ORDER_STATUSES:
        raise ValidationError(f'Unknown order status "{new}".')
    if new not in allowed_transitions(current):
        raise ValidationError(f"Cannot move an order from {current} to {new}.")


def snapshot_items(cart: Cart) -> List[OrderItem]:
    return [
        OrderItem(
            product_id=line.product_id,
            product_name=line.product_name,
            product_image=line.product_image,
            variant_name=line.variant.name,
            variant_price=line.variant.price,
            quantity=line.quantity,
        )
        for line in cart.lines
    ]


def place_order(
    user: Optional[Dict],
    cart: Cart,
    config: CheckoutConfig,
    zone: str,
    customer_name: str,
    writer: Callable[[str, Dict], str],
) -> str:
    """Write an order for the cart through ``writer`` and return its id.

    ``writer`` receives the user id and the order document. The cart is only
    cleared once the writer returns, so a failed write leaves it intact.
    """
    if not user:
        raise AuthenticationRequiredError("Please log in to place an order.")
    if cart.is_empty:
        raise ValidationError("Cart is empty")

    user_id = str(user["_id"])
    totals = cart.totals(config, zone)
    order = Order(
        user_id=user_id,
        customer_name=customer_name.strip() or "Customer",
        date=datetime.now(timezone.utc).isoformat(),
        shipping_zone=zone,
        subtotal=totals.subtotal,
        shipping=totals.shipping,
        tax=totals.tax,
        total=totals.total,
        status="Pending",
        items=snapshot_items(cart),
    )
    doc = order.model_dump(exclude={"id"})
    order_id = writer(user_id, doc)
    cart.clear()
    logger.info("Order %s placed by %s for %.2f", order_id, user_id, totals.total)
    return order_id
