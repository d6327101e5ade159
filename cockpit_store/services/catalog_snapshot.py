"""
Catalog schema snapshots

Immutable, fully-loaded views of a product's configuration schema. The
engine (validator, stock resolver, price calculator) only ever sees these;
they are safe to share between concurrent requests.

A bundle item's referenced product is a ComponentSchema, which has no
bundle items of its own - nesting stops at one level by construction.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Tuple

from cockpit_store.models.product import BundleItemType, ProductType, VariationKind


@dataclass(frozen=True)
class OptionSnapshot:
    id: int
    group_id: int
    name: str
    price_adjustment: Decimal
    is_default: bool = False
    stock_quantity: Optional[int] = None  # None = untracked
    low_stock_threshold: int = 5
    sort_order: int = 0


@dataclass(frozen=True)
class VariationGroupSnapshot:
    id: int
    product_id: int
    name: str
    kind: VariationKind
    is_required: bool = False
    sort_order: int = 0
    options: Tuple[OptionSnapshot, ...] = ()

    def option(self, option_id: int) -> Optional[OptionSnapshot]:
        for opt in self.options:
            if opt.id == option_id:
                return opt
        return None

    @property
    def default_option(self) -> Optional[OptionSnapshot]:
        for opt in self.options:
            if opt.is_default:
                return opt
        return None

    def _named(self, name: str) -> Optional[OptionSnapshot]:
        for opt in self.options:
            if opt.name.strip().lower() == name:
                return opt
        return None

    @property
    def yes_option(self) -> Optional[OptionSnapshot]:
        """Boolean groups: option applied when the customer ticks the box."""
        return self._named("yes")

    @property
    def no_option(self) -> Optional[OptionSnapshot]:
        return self._named("no")

    @property
    def pricing_option(self) -> Optional[OptionSnapshot]:
        """Text groups: option whose adjustment applies to a non-empty value."""
        return self.default_option or (self.options[0] if self.options else None)


@dataclass(frozen=True)
class AddOnOptionSnapshot:
    id: int
    addon_id: int
    name: str
    price: Decimal
    stock_quantity: Optional[int] = None
    low_stock_threshold: int = 5


@dataclass(frozen=True)
class AddOnSnapshot:
    id: int
    product_id: int
    name: str
    is_required: bool = False
    has_options: bool = False
    price: Decimal = Decimal("0.00")  # flat price when has_options is False
    stock_quantity: Optional[int] = None
    low_stock_threshold: int = 5
    options: Tuple[AddOnOptionSnapshot, ...] = ()

    def option(self, option_id: int) -> Optional[AddOnOptionSnapshot]:
        for opt in self.options:
            if opt.id == option_id:
                return opt
        return None


@dataclass(frozen=True)
class ComponentSchema:
    """A product's own schema without bundle items."""
    product_id: int
    sku: str
    name: str
    product_type: ProductType
    base_price: Decimal
    stock_quantity: Optional[int] = None
    low_stock_threshold: int = 5
    is_active: bool = True
    variation_groups: Tuple[VariationGroupSnapshot, ...] = ()

    def group(self, group_id: int) -> Optional[VariationGroupSnapshot]:
        for group in self.variation_groups:
            if group.id == group_id:
                return group
        return None


@dataclass(frozen=True)
class BundleItemSnapshot:
    id: int
    parent_product_id: int
    item_product_id: int
    name: str
    item_type: BundleItemType
    quantity: int = 1
    is_configurable: bool = False
    price_adjustment: Decimal = Decimal("0.00")
    item_price: Decimal = Decimal("0.00")  # referenced product's own base price
    stock_quantity: Optional[int] = None  # referenced product's stock
    low_stock_threshold: int = 5
    item_active: bool = True  # referenced product still sellable
    component: Optional[ComponentSchema] = None  # set when is_configurable

    @property
    def is_required(self) -> bool:
        return self.item_type == BundleItemType.REQUIRED


@dataclass(frozen=True)
class ProductSchema(ComponentSchema):
    """Top-level product schema: variations, add-ons and bundle items."""
    addons: Tuple[AddOnSnapshot, ...] = ()
    bundle_items: Tuple[BundleItemSnapshot, ...] = ()

    def addon(self, addon_id: int) -> Optional[AddOnSnapshot]:
        for addon in self.addons:
            if addon.id == addon_id:
                return addon
        return None

    def bundle_item(self, bundle_item_id: int) -> Optional[BundleItemSnapshot]:
        for item in self.bundle_items:
            if item.id == bundle_item_id:
                return item
        return None
