"""Import models so they register with SQLAlchemy metadata."""
from cockpit_store.models.product import (
    Product, ProductType, ProductStatus,
    VariationGroup, VariationKind, VariationOption,
    AddOn, AddOnOption,
    BundleItem, BundleItemType,
)
from cockpit_store.models.cart import Cart, CartItem
from cockpit_store.models.coupon import Coupon, DiscountType
from cockpit_store.models.shared_config import SharedConfig

__all__ = [
    "Product", "ProductType", "ProductStatus",
    "VariationGroup", "VariationKind", "VariationOption",
    "AddOn", "AddOnOption",
    "BundleItem", "BundleItemType",
    "Cart", "CartItem",
    "Coupon", "DiscountType",
    "SharedConfig",
]
