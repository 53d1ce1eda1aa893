"""
Catalog rules: product and option type validation, stock helpers and the
admin CSV export.
"""
import csv
import io
from typing import Iterable, List

from errors import ValidationError
from schemas import OptionType, OptionValue, Product

PLACEHOLDER_IMAGE = "https://picsum.photos/seed/placeholder/400/300"
DEFAULT_SWATCH = "#000000"

CSV_HEADERS = ["ID", "Name", "Category", "Description", "Variant SKU", "Variant Name", "Price", "OriginalPrice", "Stock"]


def is_color_option(name: str) -> bool:
    return "color" in name.lower()


def total_stock(product: Product) -> int:
    return sum(v.stock for v in product.variants)


def matches_stock_status(product: Product, stock_status: str) -> bool:
    if stock_status == "inStock":
        return total_stock(product) > 0
    if stock_status == "outOfStock":
        return total_stock(product) == 0
    return True


def validate_product(product: Product) -> Product:
    """Check an authored product and fill in defaults. Returns the product to store."""
    if not product.name.strip():
        raise ValidationError("Product name is required.")
    if not product.category:
        raise ValidationError("Please select a category for the product.")
    if not product.variants:
        raise ValidationError("Product must have at least one variant.")
    for variant in product.variants:
        if not variant.name.strip():
            raise ValidationError("All variants must have a name.")
        if variant.price < 0 or variant.stock < 0:
            raise ValidationError(f'Price and stock for variant "{variant.name}" must be positive numbers.')
        if variant.original_price is not None and variant.original_price <= variant.price:
            raise ValidationError(f'Original price for variant "{variant.name}" must be greater than the sale price.')
    option_names = set(product.variants[0].options)
    seen_options = set()
    for variant in product.variants:
        if set(variant.options) != option_names:
            raise ValidationError("All variants must use the same options.")
        key = frozenset(variant.options.items())
        if key in seen_options:
            raise ValidationError(f'Variant "{variant.name}" repeats an existing option combination.')
        seen_options.add(key)
    if not product.image_urls:
        product = product.model_copy(update={"image_urls": [PLACEHOLDER_IMAGE]})
    return product


def validate_option_type(option: OptionType) -> OptionType:
    name = option.name.strip()
    if not name:
        raise ValidationError("Option name is required.")
    if not option.values:
        raise ValidationError("Please add at least one value for this option.")
    seen = set()
    values: List[OptionValue] = []
    for value in option.values:
        value_name = value.name.strip()
        if not value_name:
            raise ValidationError("Option values cannot be blank.")
        if value_name.lower() in seen:
            raise ValidationError(f'"{value_name}" is listed more than once.')
        seen.add(value_name.lower())
        color = (value.color_code or DEFAULT_SWATCH) if is_color_option(name) else None
        values.append(OptionValue(name=value_name, color_code=color))
    return OptionType(id=option.id, name=name, values=values)


def _csv_number(value):
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def export_products_csv(products: Iterable[Product]) -> str:
    """Header line, then one quoted row per (product, variant) pair."""
    buf = io.StringIO()
    buf.write(",".join(CSV_HEADERS) + "\n")
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for p in products:
        for v in p.variants:
            writer.writerow([
                p.id, p.name, p.category, p.description, v.id, v.name,
                _csv_number(v.price), _csv_number(v.original_price), v.stock,
            ])
    return buf.getvalue().rstrip("\n")
