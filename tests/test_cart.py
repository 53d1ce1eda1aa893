import pytest

from cart import Cart, clamp_quantity, compute_totals
from errors import NotFoundError, ValidationError
from schemas import CheckoutConfig, Product
from tests.conftest import make_variant


@pytest.fixture
def shirt():
    return Product(id="shirt", name="Shirt", category="Fashion", image_urls=["https://img.example/shirt.png"],
                   variants=[make_variant("Red", "M", price=500, stock=4), make_variant("Red", "L", price=520, stock=0)])


def test_totals_inside_zone(shirt, checkout_config):
    cart = Cart()
    cart.add_line(shirt, shirt.variants[0], 2)

    totals = cart.totals(checkout_config, "inside")

    assert (totals.subtotal, totals.shipping, totals.tax, totals.total) == (1000, 40, 10, 1050)
    assert cart.totals(checkout_config, "outside").shipping == 90


def test_empty_cart_costs_nothing(checkout_config):
    totals = Cart().totals(checkout_config, "outside")
    assert (totals.subtotal, totals.shipping, totals.tax, totals.total) == (0, 0, 0, 0)


def test_unknown_zone():
    with pytest.raises(ValidationError):
        compute_totals(10, CheckoutConfig(), "abroad")


def test_adding_same_variant_merges_lines(shirt):
    cart = Cart()
    cart.add_line(shirt, shirt.variants[0], 1)
    cart.add_line(shirt, shirt.variants[0], 2)
    assert len(cart.lines) == 1
    assert cart.lines[0].quantity == 3

    cart.add_line(shirt, shirt.variants[0], 5)
    assert cart.lines[0].quantity == 4
    assert cart.item_count == 4


def test_new_line_is_clamped_and_uses_product_image(shirt):
    cart = Cart()
    line = cart.add_line(shirt, shirt.variants[0], 9)
    assert line.quantity == 4
    assert line.product_image == "https://img.example/shirt.png"
    assert line.product_name == "Shirt"


def test_out_of_stock_variant_cannot_be_added(shirt):
    with pytest.raises(ValidationError):
        Cart().add_line(shirt, shirt.variants[1])


def test_update_quantity(shirt):
    cart = Cart()
    cart.add_line(shirt, shirt.variants[0])
    assert cart.update_quantity("shirt", "Red-M", 99).quantity == 4
    assert cart.update_quantity("shirt", "Red-M", 2).quantity == 2
    assert cart.update_quantity("shirt", "Red-M", 0) is None
    assert cart.is_empty
    with pytest.raises(NotFoundError):
        cart.update_quantity("shirt", "Red-M", 1)


def test_remove_line(shirt):
    cart = Cart()
    cart.add_line(shirt, shirt.variants[0])
    cart.remove_line("shirt", "Red-L")
    assert len(cart.lines) == 1
    cart.remove_line("shirt", "Red-M")
    assert cart.subtotal == 0


def test_line_keeps_variant_as_added(shirt):
    cart = Cart()
    cart.add_line(shirt, shirt.variants[0])
    shirt.variants[0].price = 1

    restored = Cart.from_document({"lines": cart.to_document()})
    assert restored.subtotal == 500


def test_clamp_quantity():
    assert clamp_quantity(0, 5) == 1
    assert clamp_quantity(7, 5) == 5


def test_adding_again_uses_current_stock(shirt):
    cart = Cart()
    cart.add_line(shirt, shirt.variants[0], 4)

    restocked = shirt.variants[0].model_copy(update={"stock": 10})
    assert cart.add_line(shirt, restocked, 3).quantity == 7

    sold_down = shirt.variants[0].model_copy(update={"stock": 1, "price": 450})
    line = cart.add_line(shirt, sold_down, 1)
    assert line.quantity == 1
    assert line.variant.stock == 1
    assert cart.subtotal == 450


def test_update_quantity_against_current_stock(shirt):
    cart = Cart()
    cart.add_line(shirt, shirt.variants[0])
    restocked = shirt.variants[0].model_copy(update={"stock": 10})
    assert cart.update_quantity("shirt", "Red-M", 8, restocked).quantity == 8

    sold_down = shirt.variants[0].model_copy(update={"stock": 2})
    assert cart.update_quantity("shirt", "Red-M", 8, sold_down).quantity == 2
