"""
Cart store and checkout pricing.

A Cart is created per request from the user's stored lines and handed to the
routes that change it; nothing here is module-global.
"""
from typing import List, Optional

from errors import NotFoundError, ValidationError
from schemas import CartLine, CheckoutConfig, OrderTotals, Product, Variant


def clamp_quantity(requested: int, stock: int) -> int:
    return max(1, min(stock, requested))


def compute_totals(subtotal: float, config: CheckoutConfig, zone: str) -> OrderTotals:
    """Flat zone shipping and flat tax on top of the subtotal; an empty cart costs nothing."""
    if zone == "inside":
        zone_fee = config.shipping_charge_inside_zone
    elif zone == "outside":
        zone_fee = config.shipping_charge_outside_zone
    else:
        raise ValidationError(f'Unknown shipping zone "{zone}".')
    shipping = zone_fee if subtotal > 0 else 0
    tax = config.tax_amount if subtotal > 0 else 0
    return OrderTotals(subtotal=subtotal, shipping=shipping, tax=tax, total=subtotal + shipping + tax)


class Cart:
    def __init__(self, lines: Optional[List[CartLine]] = None):
        self.lines: List[CartLine] = list(lines or [])

    @classmethod
    def from_document(cls, doc: Optional[dict]) -> "Cart":
        if not doc:
            return cls()
        return cls([CartLine.model_validate(line) for line in doc.get("lines", [])])

    def to_document(self) -> List[dict]:
        return [line.model_dump() for line in self.lines]

    def find_line(self, product_id: str, variant_id: str) -> Optional[CartLine]:
        for line in self.lines:
            if line.product_id == product_id and line.variant.id == variant_id:
                return line
        return None

    def add_line(self, product: Product, variant: Variant, quantity: int = 1) -> CartLine:
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1.")
        if variant.stock <= 0:
            raise ValidationError(f'"{product.name}" ({variant.name}) is out of stock.')
        line = self.find_line(product.id, variant.id)
        if line is not None:
            # stock and price follow the variant as it is now
            line.variant = variant.model_copy(deep=True)
            line.quantity = clamp_quantity(line.quantity + quantity, variant.stock)
            return line
        image = variant.image_url or (product.image_urls[0] if product.image_urls else "")
        line = CartLine(
            product_id=product.id,
            product_name=product.name,
            product_image=image,
            variant=variant.model_copy(deep=True),
            quantity=clamp_quantity(quantity, variant.stock),
        )
        self.lines.append(line)
        return line

    def remove_line(self, product_id: str, variant_id: str) -> None:
        self.lines = [l for l in self.lines if not (l.product_id == product_id and l.variant.id == variant_id)]

    def update_quantity(self, product_id: str, variant_id: str, quantity: int,
                        variant: Optional[Variant] = None) -> Optional[CartLine]:
        """Set a line's quantity within stock. Zero or less drops the line.

        Pass the current ``variant`` to clamp against live stock instead of the stored copy.
        """
        line = self.find_line(product_id, variant_id)
        if line is None:
            raise NotFoundError("Item is not in the cart")
        if quantity <= 0:
            self.remove_line(product_id, variant_id)
            return None
        if variant is not None:
            line.variant = variant.model_copy(deep=True)
        line.quantity = clamp_quantity(quantity, line.variant.stock)
        return line

    def clear(self) -> None:
        self.lines = []

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def subtotal(self) -> float:
        return sum(line.variant.price * line.quantity for line in self.lines)

    def totals(self, config: CheckoutConfig, zone: str) -> OrderTotals:
        return compute_totals(self.subtotal, config, zone)
