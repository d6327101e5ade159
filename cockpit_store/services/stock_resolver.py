"""
Stock Resolver

Checks every stock-tracked unit a validated configuration touches and
decides, per unit, between keep, drop-with-warning, and hard failure.

A unit is necessary only when every level containing it is required:
    - required group on the product          -> necessary
    - optional group / optional add-on        -> dropped when out of stock
    - required group inside an optional item  -> the whole item is dropped
    - required group inside a required item   -> necessary

Out of stock means stock_quantity == 0. NULL stock is untracked and never
runs out. The output configuration is always a subset of the input.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from cockpit_store.core.exceptions import (
    InternalError,
    RequiredComponentOutOfStock,
    StockInvariantViolation,
)
from cockpit_store.services.catalog_snapshot import BundleItemSnapshot, ProductSchema
from cockpit_store.services.configuration_validator import (
    BundleItemSelection,
    ValidatedConfiguration,
)

logger = logging.getLogger(__name__)


class WarningCode(str, Enum):
    OPTIONAL_COMPONENT_REMOVED = "OPTIONAL_COMPONENT_REMOVED"
    LOW_STOCK = "LOW_STOCK"


class UnitKind(str, Enum):
    PRODUCT = "product"
    VARIATION_OPTION = "variation_option"
    ADDON = "addon"
    ADDON_OPTION = "addon_option"
    BUNDLE_ITEM = "bundle_item"


class StockStatus(str, Enum):
    IN_STOCK = "in_stock"
    LOW = "low"
    OUT = "out"


@dataclass(frozen=True)
class StockUnit:
    """A stock-tracked thing: product, option, add-on or add-on option."""
    kind: UnitKind
    id: int
    name: str
    stock_quantity: Optional[int]
    low_stock_threshold: int = 0
    bundle_item_id: Optional[int] = None

    def status(self) -> StockStatus:
        if self.stock_quantity is None:
            return StockStatus.IN_STOCK
        if self.stock_quantity < 0:
            raise StockInvariantViolation(
                f"{self.kind.value} {self.id} reports negative stock ({self.stock_quantity})",
                details={"unit_kind": self.kind.value, "unit_id": self.id,
                         "stock_quantity": self.stock_quantity},
            )
        if self.stock_quantity == 0:
            return StockStatus.OUT
        if self.stock_quantity <= self.low_stock_threshold:
            return StockStatus.LOW
        return StockStatus.IN_STOCK


@dataclass(frozen=True)
class StockWarning:
    code: WarningCode
    unit_kind: UnitKind
    unit_id: int
    name: str
    message: str
    bundle_item_id: Optional[int] = None
    remaining: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code.value,
            "unit_kind": self.unit_kind.value,
            "unit_id": self.unit_id,
            "name": self.name,
            "message": self.message,
            "bundle_item_id": self.bundle_item_id,
            "remaining": self.remaining,
        }


@dataclass(frozen=True)
class StockResolution:
    configuration: ValidatedConfiguration
    warnings: Tuple[StockWarning, ...] = ()

    @property
    def removed(self) -> Tuple[StockWarning, ...]:
        return tuple(w for w in self.warnings if w.code == WarningCode.OPTIONAL_COMPONENT_REMOVED)


def _missing(what: str, ident: Any) -> InternalError:
    return InternalError(
        f"Validated configuration references unknown {what} {ident}",
        details={"what": what, "id": ident},
    )


def _out_of_stock(unit: StockUnit) -> RequiredComponentOutOfStock:
    return RequiredComponentOutOfStock(
        f"'{unit.name}' is out of stock",
        unit_kind=unit.kind.value,
        unit_id=unit.id,
        bundle_item_id=unit.bundle_item_id,
    )


def _removed(unit: StockUnit, message: Optional[str] = None) -> StockWarning:
    logger.warning(f"Dropping optional {unit.kind.value} {unit.id} ({unit.name}): out of stock")
    return StockWarning(
        code=WarningCode.OPTIONAL_COMPONENT_REMOVED,
        unit_kind=unit.kind,
        unit_id=unit.id,
        name=unit.name,
        message=message or f"'{unit.name}' is out of stock and was removed from your configuration",
        bundle_item_id=unit.bundle_item_id,
        remaining=0,
    )


def _low_stock(unit: StockUnit) -> StockWarning:
    return StockWarning(
        code=WarningCode.LOW_STOCK,
        unit_kind=unit.kind,
        unit_id=unit.id,
        name=unit.name,
        message=f"Only {unit.stock_quantity} left of '{unit.name}'",
        bundle_item_id=unit.bundle_item_id,
        remaining=unit.stock_quantity,
    )


def _resolve_bundle_item(
    item: BundleItemSnapshot,
    selection: BundleItemSelection,
) -> Tuple[Optional[BundleItemSelection], List[StockWarning]]:
    """Returns (surviving selection or None if dropped, warnings)."""
    item_unit = StockUnit(
        kind=UnitKind.BUNDLE_ITEM,
        id=item.id,
        name=item.name,
        # A retired referenced product can't be shipped either
        stock_quantity=item.stock_quantity if item.item_active else 0,
        low_stock_threshold=item.low_stock_threshold,
        bundle_item_id=item.id,
    )
    status = item_unit.status()
    if status == StockStatus.OUT:
        if item.is_required:
            raise _out_of_stock(item_unit)
        return None, [_removed(item_unit)]

    warnings: List[StockWarning] = []
    if status == StockStatus.LOW:
        warnings.append(_low_stock(item_unit))

    current = selection
    for nested in selection.selections:
        if nested.option_id is None:
            continue
        group = item.component.group(nested.group_id) if item.component else None
        if group is None:
            raise _missing("bundle item group", nested.group_id)
        option = group.option(nested.option_id)
        if option is None:
            raise _missing("bundle item option", nested.option_id)

        unit = StockUnit(
            kind=UnitKind.VARIATION_OPTION,
            id=option.id,
            name=f"{item.name} - {group.name}: {option.name}",
            stock_quantity=option.stock_quantity,
            low_stock_threshold=option.low_stock_threshold,
            bundle_item_id=item.id,
        )
        status = unit.status()
        if status == StockStatus.OUT:
            if group.is_required and item.is_required:
                raise _out_of_stock(unit)
            if group.is_required:
                # Optional item can't be built without it
                return None, [_removed(
                    item_unit,
                    f"'{item.name}' was removed from your configuration: '{unit.name}' is out of stock",
                )]
            current = current.without_selection(group.id)
            warnings.append(_removed(unit))
        elif status == StockStatus.LOW:
            warnings.append(_low_stock(unit))

    return current, warnings


def resolve_stock(
    schema: ProductSchema,
    configuration: ValidatedConfiguration,
) -> StockResolution:
    """
    Resolve stock for a validated configuration.

    Raises:
        RequiredComponentOutOfStock: a necessary unit has no stock
        StockInvariantViolation: a unit reports negative stock
    """
    warnings: List[StockWarning] = []
    resolved = configuration

    product_unit = StockUnit(
        kind=UnitKind.PRODUCT,
        id=schema.product_id,
        name=schema.name,
        stock_quantity=schema.stock_quantity,
        low_stock_threshold=schema.low_stock_threshold,
    )
    status = product_unit.status()
    if status == StockStatus.OUT:
        raise _out_of_stock(product_unit)
    if status == StockStatus.LOW:
        warnings.append(_low_stock(product_unit))

    # Variations
    for selection in configuration.selections:
        if selection.option_id is None:
            continue
        group = schema.group(selection.group_id)
        if group is None:
            raise _missing("group", selection.group_id)
        option = group.option(selection.option_id)
        if option is None:
            raise _missing("option", selection.option_id)

        unit = StockUnit(
            kind=UnitKind.VARIATION_OPTION,
            id=option.id,
            name=f"{group.name}: {option.name}",
            stock_quantity=option.stock_quantity,
            low_stock_threshold=option.low_stock_threshold,
        )
        status = unit.status()
        if status == StockStatus.OUT:
            if group.is_required:
                raise _out_of_stock(unit)
            resolved = resolved.without_selection(group.id)
            warnings.append(_removed(unit))
        elif status == StockStatus.LOW:
            warnings.append(_low_stock(unit))

    # Add-ons
    for addon_selection in configuration.addons:
        addon = schema.addon(addon_selection.addon_id)
        if addon is None:
            raise _missing("add-on", addon_selection.addon_id)

        units = [StockUnit(
            kind=UnitKind.ADDON,
            id=addon.id,
            name=addon.name,
            stock_quantity=addon.stock_quantity,
            low_stock_threshold=addon.low_stock_threshold,
        )]
        if addon_selection.option_id is not None:
            option = addon.option(addon_selection.option_id)
            if option is None:
                raise _missing("add-on option", addon_selection.option_id)
            units.append(StockUnit(
                kind=UnitKind.ADDON_OPTION,
                id=option.id,
                name=f"{addon.name}: {option.name}",
                stock_quantity=option.stock_quantity,
                low_stock_threshold=option.low_stock_threshold,
            ))

        statuses = [(unit, unit.status()) for unit in units]
        out = [unit for unit, s in statuses if s == StockStatus.OUT]
        if out:
            if addon.is_required:
                raise _out_of_stock(out[0])
            resolved = resolved.without_addon(addon.id)
            warnings.append(_removed(out[0]))
        else:
            warnings.extend(_low_stock(unit) for unit, s in statuses if s == StockStatus.LOW)

    # Bundle items
    for item_selection in configuration.bundle_items:
        item = schema.bundle_item(item_selection.bundle_item_id)
        if item is None:
            raise _missing("bundle item", item_selection.bundle_item_id)

        surviving, item_warnings = _resolve_bundle_item(item, item_selection)
        if surviving is None:
            resolved = resolved.without_bundle_item(item.id)
        else:
            resolved = resolved.with_bundle_item(surviving)
        warnings.extend(item_warnings)

    return StockResolution(configuration=resolved, warnings=tuple(warnings))
