"""
Price Calculator

unit price = base price
           + sum of selected variation option adjustments
           + sum of selected add-on prices
           + sum of included bundle item contributions

A required bundle item contributes only its nested variation adjustments;
its product is already part of the parent base price. A selected optional
bundle item contributes the referenced product's own price, plus its
price_adjustment (usually a bundle discount), plus its nested adjustments.
Bundle item quantity never multiplies the price.

All arithmetic is Decimal; the total is rounded once at the end and
clamped at zero.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from cockpit_store.core.exceptions import InternalError
from cockpit_store.core.utils import ZERO, quantize_money
from cockpit_store.models.product import VariationKind
from cockpit_store.services.catalog_snapshot import (
    AddOnSnapshot,
    BundleItemSnapshot,
    ComponentSchema,
    ProductSchema,
    VariationGroupSnapshot,
)
from cockpit_store.services.configuration_validator import (
    AddOnSelection,
    BundleItemSelection,
    Selection,
    ValidatedConfiguration,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PriceAdjustment:
    """One line of a price breakdown, unrounded."""
    source: str  # variation | addon | bundle_item
    name: str
    amount: Decimal
    bundle_item_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "name": self.name,
            "amount": self.amount,
            "bundle_item_id": self.bundle_item_id,
        }


@dataclass(frozen=True)
class PriceBreakdown:
    base_price: Decimal
    variations_total: Decimal
    addons_total: Decimal
    bundle_items_total: Decimal
    unit_price: Decimal
    adjustments: Tuple[PriceAdjustment, ...] = ()

    @property
    def raw_total(self) -> Decimal:
        return self.base_price + self.variations_total + self.addons_total + self.bundle_items_total


@dataclass(frozen=True)
class PriceRange:
    minimum: Decimal
    maximum: Decimal


# ==================== Single configuration ====================

def _variation_adjustment(
    component: ComponentSchema,
    selection: Selection,
    bundle_item_id: Optional[int] = None,
) -> Optional[PriceAdjustment]:
    if selection.option_id is None:
        return None
    group = component.group(selection.group_id)
    option = group.option(selection.option_id) if group else None
    if option is None:
        raise InternalError(
            f"Cannot price unknown option {selection.option_id} in group {selection.group_id}",
            details={"group_id": selection.group_id, "option_id": selection.option_id},
        )
    return PriceAdjustment(
        source="variation",
        name=f"{group.name}: {option.name}",
        amount=option.price_adjustment,
        bundle_item_id=bundle_item_id,
    )


def _addon_price(schema: ProductSchema, selection: AddOnSelection) -> PriceAdjustment:
    addon = schema.addon(selection.addon_id)
    if addon is None:
        raise InternalError(
            f"Cannot price unknown add-on {selection.addon_id}",
            details={"addon_id": selection.addon_id},
        )
    if not addon.has_options:
        return PriceAdjustment(source="addon", name=addon.name, amount=addon.price)

    option = addon.option(selection.option_id) if selection.option_id is not None else None
    if option is None:
        raise InternalError(
            f"Cannot price add-on {addon.id} without a valid option",
            details={"addon_id": addon.id, "option_id": selection.option_id},
        )
    return PriceAdjustment(source="addon", name=f"{addon.name}: {option.name}", amount=option.price)


def _bundle_item_adjustments(
    schema: ProductSchema,
    selection: BundleItemSelection,
) -> List[PriceAdjustment]:
    item = schema.bundle_item(selection.bundle_item_id)
    if item is None:
        raise InternalError(
            f"Cannot price unknown bundle item {selection.bundle_item_id}",
            details={"bundle_item_id": selection.bundle_item_id},
        )

    adjustments: List[PriceAdjustment] = []
    if not item.is_required:
        adjustments.append(PriceAdjustment(
            source="bundle_item", name=item.name, amount=item.item_price + item.price_adjustment,
            bundle_item_id=item.id,
        ))
    if item.component is not None:
        for nested in selection.selections:
            adjustment = _variation_adjustment(item.component, nested, bundle_item_id=item.id)
            if adjustment is not None:
                adjustments.append(adjustment)
    return adjustments


def price_breakdown(schema: ProductSchema, configuration: ValidatedConfiguration) -> PriceBreakdown:
    """Itemized unit price for a (stock-resolved) configuration."""
    variations: List[PriceAdjustment] = []
    for selection in configuration.selections:
        adjustment = _variation_adjustment(schema, selection)
        if adjustment is not None:
            variations.append(adjustment)

    addons = [_addon_price(schema, a) for a in configuration.addons]

    bundle: List[PriceAdjustment] = []
    for item_selection in configuration.bundle_items:
        bundle.extend(_bundle_item_adjustments(schema, item_selection))

    variations_total = sum((a.amount for a in variations), ZERO)
    addons_total = sum((a.amount for a in addons), ZERO)
    bundle_total = sum((a.amount for a in bundle), ZERO)

    raw = schema.base_price + variations_total + addons_total + bundle_total
    unit_price = quantize_money(max(raw, ZERO))

    return PriceBreakdown(
        base_price=schema.base_price,
        variations_total=variations_total,
        addons_total=addons_total,
        bundle_items_total=bundle_total,
        unit_price=unit_price,
        adjustments=tuple(variations + addons + bundle),
    )


def compute_price(schema: ProductSchema, configuration: ValidatedConfiguration) -> Decimal:
    """Unit price for one unit of a configuration, >= 0, 2 decimals."""
    return price_breakdown(schema, configuration).unit_price


# ==================== Price range ====================

def _group_choices(group: VariationGroupSnapshot) -> List[Decimal]:
    """Every adjustment the group can contribute to an orderable configuration."""
    if group.kind == VariationKind.TEXT:
        option = group.pricing_option
        choices = [option.price_adjustment] if option else [ZERO]
    elif group.kind == VariationKind.BOOLEAN:
        yes, no = group.yes_option, group.no_option
        choices = [
            yes.price_adjustment if yes else ZERO,
            no.price_adjustment if no else ZERO,
        ]
    else:
        choices = [o.price_adjustment for o in group.options] or [ZERO]

    # Optional groups can always end up unselected (no default, or dropped for stock)
    if not group.is_required:
        choices.append(ZERO)
    return choices


def _groups_bounds(groups: Tuple[VariationGroupSnapshot, ...]) -> Tuple[Decimal, Decimal]:
    low = high = ZERO
    for group in groups:
        choices = _group_choices(group)
        low += min(choices)
        high += max(choices)
    return low, high


def _addon_bounds(addon: AddOnSnapshot) -> Tuple[Decimal, Decimal]:
    if addon.has_options:
        choices = [o.price for o in addon.options] or [ZERO]
    else:
        choices = [addon.price]
    if not addon.is_required:
        choices.append(ZERO)
    return min(choices), max(choices)


def _bundle_item_bounds(item: BundleItemSnapshot) -> Tuple[Decimal, Decimal]:
    nested_low = nested_high = ZERO
    if item.component is not None:
        nested_low, nested_high = _groups_bounds(item.component.variation_groups)
    if item.is_required:
        return nested_low, nested_high
    own = item.item_price + item.price_adjustment
    return min(ZERO, own + nested_low), max(ZERO, own + nested_high)


def derive_price_range(schema: ProductSchema) -> PriceRange:
    """
    Cheapest and most expensive orderable configuration.

    Components are independent, so the extremes are sums of per-component
    extremes. Negative adjustments are honored on both ends.
    """
    low, high = _groups_bounds(schema.variation_groups)

    for addon in schema.addons:
        a_low, a_high = _addon_bounds(addon)
        low += a_low
        high += a_high

    for item in schema.bundle_items:
        b_low, b_high = _bundle_item_bounds(item)
        low += b_low
        high += b_high

    return PriceRange(
        minimum=quantize_money(max(schema.base_price + low, ZERO)),
        maximum=quantize_money(max(schema.base_price + high, ZERO)),
    )
