import pytest

from catalog import (
    PLACEHOLDER_IMAGE,
    export_products_csv,
    matches_stock_status,
    total_stock,
    validate_option_type,
    validate_product,
)
from errors import ValidationError
from schemas import OptionType, Product, Variant
from tests.conftest import make_variant


def test_valid_product_gets_placeholder_image():
    product = validate_product(Product(name="Tee", category="Fashion", variants=[make_variant("Red", "S")]))
    assert product.image_urls == [PLACEHOLDER_IMAGE]


@pytest.mark.parametrize("changes", [
    {"name": " "},
    {"category": ""},
    {"variants": []},
    {"variants": [Variant(name="", price=1, stock=1)]},
    {"variants": [Variant(name="Red", price=-1, stock=1)]},
    {"variants": [Variant(name="Red", price=1, stock=-2)]},
    {"variants": [Variant(name="Red", price=10, original_price=10, stock=1)]},
])
def test_invalid_products(changes):
    base = {"name": "Tee", "category": "Fashion", "variants": [make_variant("Red", "S")]}
    base.update(changes)
    with pytest.raises(ValidationError):
        validate_product(Product(**base))


def test_original_price_above_price_is_fine():
    product = validate_product(Product(name="Tee", category="Fashion", image_urls=["x"],
                                       variants=[Variant(name="Red", price=10, original_price=12, stock=1)]))
    assert product.variants[0].original_price == 12


def test_option_values_normalized():
    option = validate_option_type(OptionType(name=" Color ", values=["Red", {"name": "Blue", "colorCode": "#0000ff"}]))
    assert option.name == "Color"
    assert [(v.name, v.color_code) for v in option.values] == [("Red", "#000000"), ("Blue", "#0000ff")]

    size = validate_option_type(OptionType(name="Size", values=[{"name": "S", "colorCode": "#fff"}]))
    assert size.values[0].color_code is None


@pytest.mark.parametrize("option", [
    OptionType(name="", values=["S"]),
    OptionType(name="Size", values=[]),
    OptionType(name="Size", values=["S", "s"]),
    OptionType(name="Size", values=["  "]),
])
def test_invalid_option_types(option):
    with pytest.raises(ValidationError):
        validate_option_type(option)


def test_stock_status_filter():
    product = Product(name="Tee", variants=[make_variant("Red", "S", stock=0), make_variant("Red", "M", stock=2)])
    assert total_stock(product) == 2
    assert matches_stock_status(product, "inStock")
    assert not matches_stock_status(product, "outOfStock")
    assert matches_stock_status(product, "all")


def test_csv_export():
    products = [
        Product(id="p1", name='Tee "Classic"', category="Fashion", description="Soft, light",
                variants=[
                    Variant(id="v1", name="Red / S", price=500, stock=3),
                    Variant(id="v2", name="Red / M", price=12.5, original_price=20, stock=0),
                ]),
        Product(id="p2", name="Empty", category="Home"),
    ]

    lines = export_products_csv(products).split("\n")

    assert lines == [
        "ID,Name,Category,Description,Variant SKU,Variant Name,Price,OriginalPrice,Stock",
        '"p1","Tee ""Classic""","Fashion","Soft, light","v1","Red / S","500","","3"',
        '"p1","Tee ""Classic""","Fashion","Soft, light","v2","Red / M","12.5","20","0"',
    ]


@pytest.mark.parametrize("variants", [
    [Variant(name="Red", options={"Color": "Red"}, price=1, stock=1),
     Variant(name="M", options={"Size": "M"}, price=1, stock=1)],
    [make_variant("Red", "S"), make_variant("Red", "S")],
])
def test_variants_must_share_options_and_differ(variants):
    with pytest.raises(ValidationError):
        validate_product(Product(name="Tee", category="Fashion", variants=variants))
