"""
Variant generation and selection.

Admin side: expand the chosen option values into every purchasable
combination. Storefront side: track a partial option selection, prune the
values that can no longer be reached and resolve the final variant.
"""
import itertools
import logging
from typing import Dict, Iterable, List, Optional, Sequence

from errors import ValidationError
from schemas import OptionType, Product, Variant, new_variant_id

logger = logging.getLogger(__name__)

VARIANT_NAME_SEPARATOR = " / "


def _options_key(options: Dict[str, str]) -> frozenset:
    return frozenset(options.items())


def _matches(variant: Variant, selection: Dict[str, str]) -> bool:
    return all(variant.options.get(k) == v for k, v in selection.items())


def _chosen_axis(option_type: OptionType, chosen: Sequence[str]) -> List[str]:
    catalog = {v.name.lower(): v.name for v in option_type.values}
    axis: List[str] = []
    for value in chosen:
        canonical = catalog.get(value.strip().lower())
        if canonical is None:
            raise ValidationError(f'"{value}" is not a value of "{option_type.name}".')
        if canonical not in axis:
            axis.append(canonical)
    return axis


def generate_variants(
    option_types: Sequence[OptionType],
    chosen_values: Dict[str, Sequence[str]],
    existing: Iterable[Variant] = (),
) -> List[Variant]:
    """Build one variant per combination of the chosen values.

    Combinations come out in the order of ``itertools.product`` over the
    chosen values, taken in option type order. A combination that already
    exists in ``existing`` keeps its id, price, original price, stock and
    image; new ones start at price 0 and stock 0.
    """
    if not option_types:
        raise ValidationError("Select at least one option type to generate variants.")

    names = [t.name for t in option_types]
    if len({n.lower() for n in names}) != len(names):
        raise ValidationError("Each option type can only be selected once.")

    axes = []
    for option_type in option_types:
        chosen = chosen_values.get(option_type.name) or []
        if not chosen:
            raise ValidationError(f'Choose at least one value for "{option_type.name}".')
        axes.append(_chosen_axis(option_type, chosen))

    previous = {_options_key(v.options): v for v in existing}
    variants: List[Variant] = []
    for combo in itertools.product(*axes):
        options = dict(zip(names, combo))
        name = VARIANT_NAME_SEPARATOR.join(combo)
        match = previous.get(_options_key(options))
        if match is not None:
            variants.append(Variant(
                id=match.id,
                name=name,
                options=options,
                price=match.price,
                original_price=match.original_price,
                stock=match.stock,
                image_url=match.image_url,
            ))
        else:
            variants.append(Variant(id=new_variant_id(), name=name, options=options))

    logger.info("Generated %d variants over %s", len(variants), ", ".join(names))
    return variants


class VariantSelector:
    """Option selection state for one product on the storefront."""

    def __init__(self, variants: Sequence[Variant], selected_options: Optional[Dict[str, str]] = None, image_urls: Sequence[str] = ()):
        self.variants = list(variants)
        self.image_urls = list(image_urls)
        self.option_types: List[str] = list(self.variants[0].options) if self.variants else []
        self.selected_options: Dict[str, str] = {
            k: v for k, v in (selected_options or {}).items() if k in self.option_types and v
        }
        self.resolved_variant: Optional[Variant] = None
        self.quantity = 1
        self._resolve()

    @classmethod
    def for_product(cls, product: Product, selected_options: Optional[Dict[str, str]] = None) -> "VariantSelector":
        """Selector for a product page; without a selection, start on the first variant in stock."""
        if selected_options is None:
            first = next((v for v in product.variants if v.stock > 0), None)
            if first is None and product.variants:
                first = product.variants[0]
            selected_options = dict(first.options) if first else {}
        return cls(product.variants, selected_options, product.image_urls)

    @property
    def available_options(self) -> Dict[str, List[str]]:
        options: Dict[str, List[str]] = {}
        for option_type in self.option_types:
            values: List[str] = []
            for variant in self.variants:
                value = variant.options.get(option_type)
                if value and value not in values:
                    values.append(value)
            options[option_type] = values
        return options

    def is_option_available(self, option_type: str, value: str) -> bool:
        # the slot being asked about is left out so switching values never looks blocked
        others = {k: v for k, v in self.selected_options.items() if k != option_type}
        return any(
            variant.options.get(option_type) == value and _matches(variant, others)
            for variant in self.variants
        )

    def select_option(self, option_type: str, value: str) -> None:
        if option_type not in self.option_types:
            raise ValidationError(f'Unknown option "{option_type}".')
        if value not in self.available_options[option_type]:
            raise ValidationError(f'"{value}" is not a {option_type} of this product.')
        selection = dict(self.selected_options)
        selection[option_type] = value
        for other in self.option_types:
            if other == option_type or other not in selection:
                continue
            rest = {k: v for k, v in selection.items() if k != other}
            still_valid = any(
                variant.options.get(other) == selection[other] and _matches(variant, rest)
                for variant in self.variants
            )
            if not still_valid:
                del selection[other]
        self.selected_options = selection
        self._resolve()

    def _resolve(self) -> None:
        if self.option_types and all(t in self.selected_options for t in self.option_types):
            self.resolved_variant = next(
                (v for v in self.variants if all(v.options.get(t) == self.selected_options[t] for t in self.option_types)),
                None,
            )
        else:
            self.resolved_variant = None
        self.quantity = 1

    # Quantity

    def set_quantity(self, quantity: int) -> int:
        if self.resolved_variant is None:
            self.quantity = 1
        else:
            self.quantity = max(1, min(self.resolved_variant.stock, quantity))
        return self.quantity

    def increase_quantity(self) -> int:
        return self.set_quantity(self.quantity + 1)

    def decrease_quantity(self) -> int:
        return self.set_quantity(self.quantity - 1)

    # Display values

    @property
    def is_out_of_stock(self) -> bool:
        return self.resolved_variant is None or self.resolved_variant.stock <= 0

    @property
    def current_price(self) -> float:
        if self.resolved_variant is not None:
            return self.resolved_variant.price
        return self.variants[0].price if self.variants else 0

    @property
    def original_price(self) -> Optional[float]:
        return self.resolved_variant.original_price if self.resolved_variant else None

    @property
    def current_stock(self) -> int:
        return self.resolved_variant.stock if self.resolved_variant else 0

    @property
    def main_image(self) -> str:
        if self.resolved_variant is not None and self.resolved_variant.image_url:
            return self.resolved_variant.image_url
        return self.image_urls[0] if self.image_urls else ""

    def state(self) -> dict:
        return {
            "selected_options": dict(self.selected_options),
            "option_types": list(self.option_types),
            "available_options": {
                t: [{"value": v, "available": self.is_option_available(t, v)} for v in values]
                for t, values in self.available_options.items()
            },
            "resolved_variant": self.resolved_variant.model_dump() if self.resolved_variant else None,
            "quantity": self.quantity,
            "is_out_of_stock": self.is_out_of_stock,
            "current_price": self.current_price,
            "original_price": self.original_price,
            "current_stock": self.current_stock,
            "main_image": self.main_image,
        }
