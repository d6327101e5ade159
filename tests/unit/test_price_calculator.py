"""
Tests for price calculation and price range derivation.
"""
import itertools
from decimal import Decimal

import pytest

from cockpit_store.core.utils import quantize_money
from cockpit_store.models.product import VariationKind
from cockpit_store.services.configuration_validator import validate_configuration
from cockpit_store.services.price_calculator import (
    compute_price,
    derive_price_range,
    price_breakdown,
)
from tests.helpers import (
    addon, addon_option, bundle_item, cockpit_schema, group, option, product_schema, seat_item,
)

D = Decimal


def price(schema, raw):
    return compute_price(schema, validate_configuration(schema, raw))


class TestCockpitScenario:
    """The reference cockpit from the product catalog."""

    FULL = {
        "variations": {"10": 102, "11": 113, "12": 122},
        "bundle_items": {"selected_optional": [30]},
    }

    def test_fully_loaded(self, schema):
        assert price(schema, self.FULL) == D("2398.00")

    def test_without_monitor_stand(self, schema):
        raw = {"variations": {"10": 102, "11": 113, "12": 122}}
        assert price(schema, raw) == D("1999.00")

    def test_defaults_only_matches_price_min(self, schema):
        assert price(schema, {}) == D("999.00")
        assert derive_price_range(schema).minimum == D("999.00")

    def test_price_range(self, schema):
        price_range = derive_price_range(schema)
        assert price_range.minimum == D("999.00")
        assert price_range.maximum == D("2398.00")

    def test_breakdown_totals(self, schema):
        breakdown = price_breakdown(schema, validate_configuration(schema, self.FULL))

        assert breakdown.base_price == D("999.00")
        assert breakdown.variations_total == D("1000.00")
        assert breakdown.bundle_items_total == D("399.00")
        assert breakdown.addons_total == D("0")
        assert breakdown.raw_total == breakdown.unit_price

    def test_deterministic(self, schema):
        config = validate_configuration(schema, self.FULL)
        assert compute_price(schema, config) == compute_price(schema, config)


class TestComponents:

    def test_addon_prices(self):
        schema = cockpit_schema(addons=[
            addon(50, "Extended Warranty", "49.00"),
            addon(51, "Cable Kit", options=[
                addon_option(511, 51, "Basic", "19.00"),
                addon_option(512, 51, "Braided", "39.00"),
            ]),
        ])
        raw = {"addons": [{"addon_id": 50}, {"addon_id": 51, "option_id": 512}]}
        assert price(schema, raw) == D("1087.00")

    def test_required_bundle_item_adds_only_nested_adjustments(self):
        schema = cockpit_schema(extra_bundle_items=[seat_item(required=True)])
        raw = {"bundle_items": {"configurations": {"31": {"40": 402, "41": True}}}}
        assert price(schema, raw) == D("1039.00")

    def test_optional_bundle_item_adds_item_price_adjustment_and_nested(self):
        schema = cockpit_schema(extra_bundle_items=[seat_item(required=False)])
        raw = {"bundle_items": {"selected_optional": [31], "configurations": {"31": {"40": 402}}}}
        assert price(schema, raw) == D("1224.00")

    def test_negative_total_clamped_to_zero(self):
        schema = product_schema(base="10.00", groups=[
            group(20, "Trade-in", [option(201, 20, "Old rig", "-25.00")], required=True),
        ])
        assert price(schema, {"variations": {"20": 201}}) == D("0.00")

    def test_text_group_priced_only_when_filled(self):
        schema = cockpit_schema(extra_groups=[
            group(15, "Engraving", [option(151, 15, "Engraving", "30.00")], kind=VariationKind.TEXT),
        ])
        assert price(schema, {"variations": {"15": "ICEMAN"}}) == D("1029.00")
        assert price(schema, {"variations": {"15": ""}}) == D("999.00")


class TestRounding:
    """Round once, at the end."""

    def test_sub_cent_adjustments_accumulate_before_rounding(self):
        schema = product_schema(base="10.00", groups=[
            group(20, "Coating", [option(201, 20, "Matte", "0.004")], required=True),
            group(21, "Finish", [option(211, 21, "Satin", "0.004")], required=True),
        ])
        raw = {"variations": {"20": 201, "21": 211}}
        # Per-term rounding would give 10.00
        assert price(schema, raw) == D("10.01")

    def test_twenty_tenths(self):
        schema = product_schema(addons=[addon(100 + i, f"Decal {i}", "0.10") for i in range(20)])
        raw = {"addons": [{"addon_id": 100 + i} for i in range(20)]}
        assert price(schema, raw) == D("1001.00")

    def test_round_once_within_a_cent_of_per_term(self):
        schema = product_schema(base="0.00", addons=[addon(100 + i, f"Clip {i}", "0.335") for i in range(3)])
        raw = {"addons": [{"addon_id": 100 + i} for i in range(3)]}

        once = price(schema, raw)
        per_term = sum(quantize_money(D("0.335")) for _ in range(3))

        assert once == D("1.01")
        assert abs(once - per_term) <= D("0.01")


class TestPriceRangeBounds:
    """Every orderable configuration prices within [min, max]."""

    @pytest.mark.parametrize("with_credit", [False, True])
    def test_all_cockpit_configurations_within_range(self, with_credit):
        extra = []
        if with_credit:
            extra.append(group(16, "Trade-in Credit", [option(161, 16, "Old yoke", "-50.00")]))
        schema = cockpit_schema(extra_groups=extra)
        price_range = derive_price_range(schema)

        variation_choices = [
            [101, 102],
            [111, 112, 113],
            [121, 122],
            [None, 161] if with_credit else [None],
        ]
        prices = []
        for model, rudder, yoke, credit in itertools.product(*variation_choices):
            for monitor in (False, True):
                variations = {"10": model, "11": rudder, "12": yoke}
                if credit:
                    variations["16"] = credit
                raw = {
                    "variations": variations,
                    "bundle_items": {"selected_optional": [30] if monitor else []},
                }
                prices.append(price(schema, raw))

        assert all(price_range.minimum <= p <= price_range.maximum for p in prices)
        assert min(prices) == price_range.minimum
        assert max(prices) == price_range.maximum

    def test_optional_addon_excluded_from_min(self):
        schema = cockpit_schema(addons=[addon(50, "Extended Warranty", "49.00")])
        price_range = derive_price_range(schema)
        assert price_range.minimum == D("999.00")
        assert price_range.maximum == D("2447.00")

    def test_required_addon_in_both_bounds(self):
        schema = cockpit_schema(addons=[
            addon(51, "Mount", required=True, options=[
                addon_option(511, 51, "Desk", "20.00"),
                addon_option(512, 51, "Floor", "80.00"),
            ]),
        ])
        price_range = derive_price_range(schema)
        assert price_range.minimum == D("1019.00")
        assert price_range.maximum == D("2478.00")


class TestOptionalBundleItemPricing:
    """A selected optional item costs its own product price plus its adjustment."""

    def test_discounted_item_adds_price_plus_adjustment(self):
        schema = product_schema(bundle_items=[
            bundle_item(32, "Shifter", 6, item_price="299.00", adj="-50.00"),
        ])
        assert price(schema, {"bundle_items": {"selected_optional": [32]}}) == D("1248.00")

    def test_unselected_item_adds_nothing(self):
        schema = product_schema(bundle_items=[
            bundle_item(32, "Shifter", 6, item_price="299.00", adj="-50.00"),
        ])
        assert price(schema, {}) == D("999.00")

    def test_breakdown_carries_item_price_and_adjustment(self):
        schema = product_schema(bundle_items=[
            bundle_item(32, "Shifter", 6, item_price="299.00", adj="-50.00"),
        ])
        config = validate_configuration(schema, {"bundle_items": {"selected_optional": [32]}})
        breakdown = price_breakdown(schema, config)

        assert breakdown.bundle_items_total == D("249.00")
        assert breakdown.unit_price == D("1248.00")

    def test_configurable_item_nested_adjustments_stack_on_item_price(self):
        schema = product_schema(bundle_items=[seat_item(required=False)])
        raw = {"bundle_items": {
            "selected_optional": [31],
            "configurations": {"31": {"40": 402, "41": True}},
        }}
        # 999 + (250 - 50) + 25 + 15
        assert price(schema, raw) == D("1239.00")

    def test_required_item_still_ignores_item_price(self):
        schema = product_schema(bundle_items=[seat_item(required=True)])
        raw = {"bundle_items": {"configurations": {"31": {"40": 402, "41": True}}}}
        assert price(schema, raw) == D("1039.00")

    @pytest.mark.parametrize("item_price,adj,expected_min,expected_max", [
        ("299.00", "-50.00", "999.00", "1488.00"),
        ("299.00", "-350.00", "948.00", "1239.00"),
    ])
    def test_range_covers_every_configuration(self, item_price, adj, expected_min, expected_max):
        schema = product_schema(bundle_items=[
            seat_item(required=False),
            bundle_item(32, "Shifter", 6, item_price=item_price, adj=adj),
        ])
        price_range = derive_price_range(schema)

        prices = []
        choices = itertools.product(
            (False, True), (None, 401, 402), (None, True), (False, True),
        )
        for seat, color, logo, shifter in choices:
            selected = ([31] if seat else []) + ([32] if shifter else [])
            nested = {}
            if color is not None:
                nested["40"] = color
            if logo is not None:
                nested["41"] = logo
            raw = {"bundle_items": {"selected_optional": selected}}
            if seat:
                raw["bundle_items"]["configurations"] = {"31": nested}
            prices.append(price(schema, raw))

        assert price_range.minimum == D(expected_min)
        assert price_range.maximum == D(expected_max)
        assert min(prices) == price_range.minimum
        assert max(prices) == price_range.maximum
