"""
Configuration Validator

Turns an untrusted RawConfiguration into a ValidatedConfiguration against a
ProductSchema snapshot. Pure: no I/O, no clock.

Rules are applied in order and the first failure wins:
    1. every required variation group has a value or a default
    2. every referenced group/option/add-on/bundle item belongs to the product
    3. every required add-on is selected
    4. every required bundle item is included (always, implicitly)
    5. included configurable bundle items pass rules 1-2 on their own groups
"""
import hashlib
import json
import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError as PydanticValidationError

from cockpit_store.core.exceptions import (
    InvalidOptionReference,
    MissingRequiredAddOn,
    MissingRequiredVariation,
    ValidationError,
)
from cockpit_store.models.product import BundleItemType, VariationKind
from cockpit_store.schemas.configuration import AddOnChoice, BundleItemsInput, RawConfiguration
from cockpit_store.services.catalog_snapshot import (
    ComponentSchema,
    ProductSchema,
    VariationGroupSnapshot,
)

logger = logging.getLogger(__name__)

_TRUE_STRINGS = {"true", "1", "yes", "on"}
_FALSE_STRINGS = {"false", "0", "no", "off"}


# ==================== Selections ====================

@dataclass(frozen=True)
class OptionSelection:
    """Dropdown or image swatch: one option of the group."""
    group_id: int
    option_id: int

    kind = "option"

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "group_id": self.group_id, "option_id": self.option_id}


@dataclass(frozen=True)
class BooleanSelection:
    """Checkbox. option_id is the group's Yes/No option, if it has one."""
    group_id: int
    value: bool
    option_id: Optional[int] = None

    kind = "boolean"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "group_id": self.group_id,
            "value": self.value,
            "option_id": self.option_id,
        }


@dataclass(frozen=True)
class TextSelection:
    """Free text (engraving, callsign). Priced through the group's option."""
    group_id: int
    text: str
    option_id: Optional[int] = None

    kind = "text"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "group_id": self.group_id,
            "text": self.text,
            "option_id": self.option_id,
        }


Selection = Union[OptionSelection, BooleanSelection, TextSelection]


@dataclass(frozen=True)
class AddOnSelection:
    addon_id: int
    option_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"addon_id": self.addon_id, "option_id": self.option_id}


@dataclass(frozen=True)
class BundleItemSelection:
    """An included bundle item and its nested variation selections."""
    bundle_item_id: int
    item_type: BundleItemType
    selections: Tuple[Selection, ...] = ()

    @property
    def is_required(self) -> bool:
        return self.item_type == BundleItemType.REQUIRED

    def without_selection(self, group_id: int) -> "BundleItemSelection":
        return replace(
            self, selections=tuple(s for s in self.selections if s.group_id != group_id)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bundle_item_id": self.bundle_item_id,
            "item_type": self.item_type.value,
            "variations": [s.to_dict() for s in self.selections],
        }


@dataclass(frozen=True)
class ValidatedConfiguration:
    """
    A configuration proven to satisfy a product's schema.

    Collections are in schema order, so two equivalent configurations
    serialize (and hash) identically.
    """
    product_id: int
    selections: Tuple[Selection, ...] = ()
    addons: Tuple[AddOnSelection, ...] = ()
    bundle_items: Tuple[BundleItemSelection, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "variations": [s.to_dict() for s in self.selections],
            "addons": [a.to_dict() for a in self.addons],
            "bundle_items": [b.to_dict() for b in self.bundle_items],
        }

    def signature(self) -> str:
        """Stable hash used as the cart line identity."""
        payload = json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def selection_for(self, group_id: int) -> Optional[Selection]:
        for selection in self.selections:
            if selection.group_id == group_id:
                return selection
        return None

    def without_selection(self, group_id: int) -> "ValidatedConfiguration":
        return replace(
            self, selections=tuple(s for s in self.selections if s.group_id != group_id)
        )

    def without_addon(self, addon_id: int) -> "ValidatedConfiguration":
        return replace(self, addons=tuple(a for a in self.addons if a.addon_id != addon_id))

    def without_bundle_item(self, bundle_item_id: int) -> "ValidatedConfiguration":
        return replace(
            self,
            bundle_items=tuple(b for b in self.bundle_items if b.bundle_item_id != bundle_item_id),
        )

    def with_bundle_item(self, item: BundleItemSelection) -> "ValidatedConfiguration":
        """Swap in a modified bundle item selection, keeping its position."""
        return replace(
            self,
            bundle_items=tuple(
                item if b.bundle_item_id == item.bundle_item_id else b
                for b in self.bundle_items
            ),
        )


# ==================== Decoding ====================

def parse_raw_configuration(raw: Any) -> RawConfiguration:
    """Decode a JSON-ish payload into RawConfiguration."""
    if raw is None:
        return RawConfiguration()
    if isinstance(raw, RawConfiguration):
        return raw
    try:
        return RawConfiguration.model_validate(raw)
    except PydanticValidationError as e:
        raise ValidationError(
            "Configuration payload is malformed",
            code="MALFORMED_CONFIGURATION",
            details={
                "errors": [
                    {"loc": [str(part) for part in err["loc"]], "msg": err["msg"]}
                    for err in e.errors()
                ]
            },
        ) from e


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def _coerce_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    return None


def _default_selection(group: VariationGroupSnapshot) -> Optional[Selection]:
    default = group.default_option
    if default is None or group.kind == VariationKind.TEXT:
        return None
    if group.kind == VariationKind.BOOLEAN:
        yes = group.yes_option
        return BooleanSelection(
            group_id=group.id,
            value=yes is not None and yes.id == default.id,
            option_id=default.id,
        )
    return OptionSelection(group_id=group.id, option_id=default.id)


def _decode_value(
    group: VariationGroupSnapshot,
    value: Any,
    bundle_item_id: Optional[int],
) -> Selection:
    def invalid() -> InvalidOptionReference:
        return InvalidOptionReference(
            f"Invalid selection {value!r} for '{group.name}'",
            group_id=group.id,
            option_id=value,
            bundle_item_id=bundle_item_id,
        )

    if group.kind in (VariationKind.DROPDOWN, VariationKind.IMAGE):
        if isinstance(value, bool):
            raise invalid()
        if isinstance(value, str):
            if not value.strip().isdigit():
                raise invalid()
            value_id = int(value.strip())
        else:
            value_id = value
        option = group.option(value_id)
        if option is None:
            raise invalid()
        return OptionSelection(group_id=group.id, option_id=option.id)

    if group.kind == VariationKind.BOOLEAN:
        flag = _coerce_bool(value)
        if flag is None:
            raise invalid()
        option = group.yes_option if flag else group.no_option
        return BooleanSelection(
            group_id=group.id, value=flag, option_id=option.id if option else None
        )

    # Text
    if not isinstance(value, str):
        raise invalid()
    option = group.pricing_option
    return TextSelection(
        group_id=group.id, text=value.strip(), option_id=option.id if option else None
    )


def _check_required_groups(
    component: ComponentSchema,
    values: Dict[int, Any],
    bundle_item_id: Optional[int] = None,
) -> None:
    for group in component.variation_groups:
        if not group.is_required or not _is_blank(values.get(group.id)):
            continue
        if group.kind != VariationKind.TEXT and group.default_option is not None:
            continue
        raise MissingRequiredVariation(
            f"'{group.name}' requires a selection",
            group_id=group.id,
            bundle_item_id=bundle_item_id,
        )


def _decode_selections(
    component: ComponentSchema,
    values: Dict[int, Any],
    bundle_item_id: Optional[int] = None,
) -> Tuple[Selection, ...]:
    for group_id in values:
        if component.group(group_id) is None:
            raise InvalidOptionReference(
                f"Variation group {group_id} does not belong to '{component.name}'",
                group_id=group_id,
                bundle_item_id=bundle_item_id,
            )

    selections: List[Selection] = []
    for group in component.variation_groups:
        value = values.get(group.id)
        if _is_blank(value):
            selection = _default_selection(group)
        else:
            selection = _decode_value(group, value, bundle_item_id)
        if selection is not None:
            selections.append(selection)
    return tuple(selections)


def _decode_addons(schema: ProductSchema, choices: List[AddOnChoice]) -> Tuple[AddOnSelection, ...]:
    chosen: Dict[int, AddOnSelection] = {}
    for choice in choices:
        addon = schema.addon(choice.addon_id)
        if addon is None:
            raise InvalidOptionReference(
                f"Add-on {choice.addon_id} does not belong to '{schema.name}'",
                addon_id=choice.addon_id,
                option_id=choice.option_id,
            )
        if addon.has_options:
            if choice.option_id is None or addon.option(choice.option_id) is None:
                raise InvalidOptionReference(
                    f"Invalid option for add-on '{addon.name}'",
                    addon_id=addon.id,
                    option_id=choice.option_id,
                )
        elif choice.option_id is not None:
            raise InvalidOptionReference(
                f"Add-on '{addon.name}' has no options",
                addon_id=addon.id,
                option_id=choice.option_id,
            )
        chosen[addon.id] = AddOnSelection(addon_id=addon.id, option_id=choice.option_id)

    return tuple(chosen[a.id] for a in schema.addons if a.id in chosen)


def _check_bundle_references(schema: ProductSchema, bundle_input: BundleItemsInput) -> None:
    referenced = list(bundle_input.selected_optional) + list(bundle_input.configurations)
    for bundle_item_id in referenced:
        if schema.bundle_item(bundle_item_id) is None:
            raise InvalidOptionReference(
                f"Bundle item {bundle_item_id} does not belong to '{schema.name}'",
                bundle_item_id=bundle_item_id,
            )


def _check_required_addons(schema: ProductSchema, addons: Tuple[AddOnSelection, ...]) -> None:
    selected = {a.addon_id for a in addons}
    for addon in schema.addons:
        if addon.is_required and addon.id not in selected:
            raise MissingRequiredAddOn(f"'{addon.name}' is required", addon_id=addon.id)


def _resolve_bundle_items(
    schema: ProductSchema,
    bundle_input: BundleItemsInput,
) -> Tuple[BundleItemSelection, ...]:
    opted_in = set(bundle_input.selected_optional)
    included: List[BundleItemSelection] = []

    for item in schema.bundle_items:
        # Required items are always in; selected_optional naming one is a no-op
        if not item.is_required and item.id not in opted_in:
            continue

        selections: Tuple[Selection, ...] = ()
        if item.is_configurable and item.component is not None:
            values = bundle_input.configurations.get(item.id, {})
            _check_required_groups(item.component, values, bundle_item_id=item.id)
            selections = _decode_selections(item.component, values, bundle_item_id=item.id)

        included.append(
            BundleItemSelection(
                bundle_item_id=item.id, item_type=item.item_type, selections=selections
            )
        )
    return tuple(included)


def validate_configuration(schema: ProductSchema, raw: Any) -> ValidatedConfiguration:
    """
    Validate a raw configuration against a product schema.

    Args:
        schema: Snapshot from CatalogSchemaLoader
        raw: RawConfiguration or the equivalent dict

    Returns:
        ValidatedConfiguration with defaults applied

    Raises:
        MissingRequiredVariation, InvalidOptionReference, MissingRequiredAddOn,
        or ValidationError for a malformed payload
    """
    payload = parse_raw_configuration(raw)

    _check_required_groups(schema, payload.variations)
    selections = _decode_selections(schema, payload.variations)
    addons = _decode_addons(schema, payload.addons)
    _check_bundle_references(schema, payload.bundle_items)
    _check_required_addons(schema, addons)
    bundle_items = _resolve_bundle_items(schema, payload.bundle_items)

    logger.debug(
        f"Validated configuration for product {schema.product_id}: "
        f"{len(selections)} variations, {len(addons)} add-ons, {len(bundle_items)} bundle items"
    )
    return ValidatedConfiguration(
        product_id=schema.product_id,
        selections=selections,
        addons=addons,
        bundle_items=bundle_items,
    )
