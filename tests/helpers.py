"""
Snapshot builders and database seeding shared by the test suite.

The cockpit used throughout:

    Modular Cockpit, base 999.00
      Model (required)          base +0 (default) | pro +200
      Rudder Pedals (required)  standard +0 (default) | premium +150 | custom +300
      Yoke (optional)           none +0 (default) | professional +500
      Monitor Stand (optional bundle item, a 399.00 product)
"""
from dataclasses import replace
from datetime import timedelta
from decimal import Decimal
from typing import Dict, Optional

from cockpit_store.core.utils import utcnow
from cockpit_store.models import (
    AddOn, AddOnOption, BundleItem, Coupon, Product, VariationGroup, VariationOption,
)
from cockpit_store.models.product import BundleItemType, ProductType, VariationKind
from cockpit_store.services.catalog_snapshot import (
    AddOnOptionSnapshot,
    AddOnSnapshot,
    BundleItemSnapshot,
    ComponentSchema,
    OptionSnapshot,
    ProductSchema,
    VariationGroupSnapshot,
)

D = Decimal


def option(id, group_id, name, adj="0.00", default=False, stock=None, threshold=5):
    return OptionSnapshot(
        id=id, group_id=group_id, name=name, price_adjustment=D(adj),
        is_default=default, stock_quantity=stock, low_stock_threshold=threshold,
    )


def group(id, name, options, kind=VariationKind.DROPDOWN, required=False, product_id=1):
    return VariationGroupSnapshot(
        id=id, product_id=product_id, name=name, kind=kind,
        is_required=required, options=tuple(options),
    )


def addon(id, name, price="0.00", required=False, options=(), stock=None, threshold=5):
    return AddOnSnapshot(
        id=id, product_id=1, name=name, is_required=required,
        has_options=bool(options), price=D(price), stock_quantity=stock,
        low_stock_threshold=threshold, options=tuple(options),
    )


def addon_option(id, addon_id, name, price, stock=None, threshold=5):
    return AddOnOptionSnapshot(
        id=id, addon_id=addon_id, name=name, price=D(price),
        stock_quantity=stock, low_stock_threshold=threshold,
    )


def component(product_id, name, groups=(), base="0.00"):
    return ComponentSchema(
        product_id=product_id, sku=f"SKU-{product_id}", name=name,
        product_type=ProductType.CONFIGURABLE, base_price=D(base),
        variation_groups=tuple(groups),
    )


def bundle_item(id, name, item_product_id, required=False, adj="0.00", item_price="0.00",
                stock=None, threshold=5, component_schema=None, active=True):
    return BundleItemSnapshot(
        id=id, parent_product_id=1, item_product_id=item_product_id, name=name,
        item_type=BundleItemType.REQUIRED if required else BundleItemType.OPTIONAL,
        is_configurable=component_schema is not None, price_adjustment=D(adj),
        item_price=D(item_price),
        stock_quantity=stock, low_stock_threshold=threshold, item_active=active,
        component=component_schema,
    )


def product_schema(groups=(), addons=(), bundle_items=(), base="999.00", stock=None, threshold=5):
    return ProductSchema(
        product_id=1, sku="COCKPIT-1", name="Modular Cockpit",
        product_type=ProductType.CONFIGURABLE, base_price=D(base),
        stock_quantity=stock, low_stock_threshold=threshold,
        variation_groups=tuple(groups), addons=tuple(addons),
        bundle_items=tuple(bundle_items),
    )


def cockpit_groups():
    return (
        group(10, "Model", [
            option(101, 10, "Base", "0.00", default=True),
            option(102, 10, "Pro", "200.00"),
        ], required=True),
        group(11, "Rudder Pedals", [
            option(111, 11, "Standard", "0.00", default=True),
            option(112, 11, "Premium", "150.00"),
            option(113, 11, "Custom", "300.00"),
        ], required=True),
        group(12, "Yoke", [
            option(121, 12, "None", "0.00", default=True),
            option(122, 12, "Professional", "500.00"),
        ]),
    )


def monitor_stand(**kwargs):
    return bundle_item(30, "Monitor Stand", 2, item_price="399.00", **kwargs)


def cockpit_schema(extra_groups=(), addons=(), extra_bundle_items=(), **kwargs):
    return product_schema(
        groups=cockpit_groups() + tuple(extra_groups),
        addons=addons,
        bundle_items=(monitor_stand(),) + tuple(extra_bundle_items),
        **kwargs,
    )


def seat_item(required=True, color_stock=None, color_required=True):
    """Configurable bundle item: a seat with its own color and logo choices."""
    seat = component(3, "Racing Seat", groups=[
        group(40, "Seat Color", [
            option(401, 40, "Black", "0.00", default=True),
            option(402, 40, "Red", "25.00", stock=color_stock),
        ], required=color_required, product_id=3),
        group(41, "Headrest Logo", [
            option(411, 41, "Yes", "15.00"),
            option(412, 41, "No", "0.00"),
        ], kind=VariationKind.BOOLEAN, product_id=3),
    ])
    return bundle_item(31, "Racing Seat", 3, required=required, item_price="250.00", adj="-50.00",
                       component_schema=seat)


def with_option_stock(schema: ProductSchema, option_id: int, stock: Optional[int]) -> ProductSchema:
    """Copy of schema with one variation option's stock changed (nested ones too)."""
    def fix(g):
        return replace(g, options=tuple(
            replace(o, stock_quantity=stock) if o.id == option_id else o for o in g.options
        ))

    items = tuple(
        replace(b, component=replace(
            b.component, variation_groups=tuple(fix(g) for g in b.component.variation_groups)
        )) if b.component else b
        for b in schema.bundle_items
    )
    return replace(
        schema,
        variation_groups=tuple(fix(g) for g in schema.variation_groups),
        bundle_items=items,
    )


# ==================== Database seeding ====================

async def seed_catalog(db) -> Dict[str, int]:
    """
    Persist the cockpit (plus add-ons and a few simple products) and commit.

    Returns the ids tests refer to.
    """
    monitor = Product(id=2, sku="STAND-1", name="Monitor Stand", product_type="simple",
                      base_price=D("399.00"), stock_quantity=10)
    seat = Product(id=3, sku="SEAT-1", name="Racing Seat", product_type="configurable",
                   base_price=D("250.00"), stock_quantity=None)
    seat.variation_groups = [
        VariationGroup(id=40, name="Seat Color", kind="dropdown", is_required=True, sort_order=0, options=[
            VariationOption(id=401, name="Black", price_adjustment=D("0.00"), is_default=True, sort_order=0),
            VariationOption(id=402, name="Red", price_adjustment=D("25.00"), sort_order=1, stock_quantity=0),
        ]),
    ]

    cockpit = Product(id=1, sku="COCKPIT-1", name="Modular Cockpit", product_type="configurable",
                      base_price=D("999.00"))
    cockpit.variation_groups = [
        VariationGroup(id=10, name="Model", kind="dropdown", is_required=True, sort_order=0, options=[
            VariationOption(id=101, name="Base", price_adjustment=D("0.00"), is_default=True, sort_order=0),
            VariationOption(id=102, name="Pro", price_adjustment=D("200.00"), sort_order=1),
        ]),
        VariationGroup(id=11, name="Rudder Pedals", kind="dropdown", is_required=True, sort_order=1, options=[
            VariationOption(id=111, name="Standard", price_adjustment=D("0.00"), is_default=True, sort_order=0),
            VariationOption(id=112, name="Premium", price_adjustment=D("150.00"), sort_order=1),
            VariationOption(id=113, name="Custom", price_adjustment=D("300.00"), sort_order=2),
        ]),
        VariationGroup(id=12, name="Yoke", kind="dropdown", is_required=False, sort_order=2, options=[
            VariationOption(id=121, name="None", price_adjustment=D("0.00"), is_default=True, sort_order=0),
            VariationOption(id=122, name="Professional", price_adjustment=D("500.00"), sort_order=1,
                            stock_quantity=0),
        ]),
    ]
    cockpit.addons = [
        AddOn(id=50, name="Extended Warranty", is_required=False, has_options=False, price=D("49.00"), sort_order=0),
        AddOn(id=51, name="Cable Kit", is_required=False, has_options=True, price=D("0.00"), sort_order=1, options=[
            AddOnOption(id=511, name="Basic", price=D("19.00"), sort_order=0),
            AddOnOption(id=512, name="Braided", price=D("39.00"), sort_order=1, stock_quantity=2,
                        low_stock_threshold=5),
        ]),
    ]
    cockpit.bundle_items = [
        BundleItem(id=30, item_product=monitor, item_type="optional", price_adjustment=D("0.00"),
                   sort_order=0),
        BundleItem(id=31, item_product=seat, item_type="optional", is_configurable=True,
                   price_adjustment=D("-50.00"), sort_order=1),
    ]

    button_box = Product(id=4, sku="BBOX-1", name="Button Box", product_type="simple",
                         base_price=D("129.00"), stock_quantity=3, low_stock_threshold=5)
    retired = Product(id=5, sku="OLD-1", name="Retired Panel", product_type="simple",
                      base_price=D("10.00"), status="archived")

    now = utcnow()
    coupons = [
        Coupon(code="SAVE10", discount_type="percentage", discount_value=D("10.00"), is_active=True),
        Coupon(code="BIGSPENDER", discount_type="fixed", discount_value=D("100.00"),
               minimum_order_amount=D("1500.00"), is_active=True),
        Coupon(code="OLDCODE", discount_type="fixed", discount_value=D("5.00"),
               expires_at=now - timedelta(days=1), is_active=True),
    ]

    db.add_all([monitor, seat, cockpit, button_box, retired] + coupons)
    await db.commit()

    return {
        "cockpit": 1, "monitor": 2, "seat": 3, "button_box": 4, "retired": 5,
    }
