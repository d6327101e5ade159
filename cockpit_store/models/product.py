"""
Catalog models

Products own variation groups and add-ons. Bundle items reference other
products (never own them). price_min/price_max are derived values written
only by CatalogSchemaLoader.refresh_price_range.

Monetary fields are Numeric(12,2).
"""
from enum import Enum as PyEnum

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text, Numeric,
    ForeignKey, Index, UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import relationship

from cockpit_store.core.database import Base
from cockpit_store.core.utils import utcnow


class ProductType(str, PyEnum):
    SIMPLE = "simple"
    CONFIGURABLE = "configurable"
    BUNDLE = "bundle"


class ProductStatus(str, PyEnum):
    ACTIVE = "active"
    DRAFT = "draft"
    ARCHIVED = "archived"


class VariationKind(str, PyEnum):
    DROPDOWN = "dropdown"
    IMAGE = "image"
    TEXT = "text"
    BOOLEAN = "boolean"


class BundleItemType(str, PyEnum):
    REQUIRED = "required"
    OPTIONAL = "optional"


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    sku = Column(String(100), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=True, index=True)

    product_type = Column(String(20), default=ProductType.SIMPLE.value, nullable=False)
    status = Column(String(20), default=ProductStatus.ACTIVE.value, nullable=False, index=True)

    base_price = Column(Numeric(12, 2), nullable=False)

    # Simple products only; NULL means untracked
    stock_quantity = Column(Integer, nullable=True)
    low_stock_threshold = Column(Integer, default=5)

    # Derived - see CatalogSchemaLoader.refresh_price_range
    price_min = Column(Numeric(12, 2), nullable=True)
    price_max = Column(Numeric(12, 2), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    variation_groups = relationship(
        "VariationGroup", back_populates="product", cascade="all, delete-orphan",
        order_by="VariationGroup.sort_order",
    )
    addons = relationship(
        "AddOn", back_populates="product", cascade="all, delete-orphan",
        order_by="AddOn.sort_order",
    )
    bundle_items = relationship(
        "BundleItem", back_populates="parent_product", cascade="all, delete-orphan",
        foreign_keys="BundleItem.parent_product_id", order_by="BundleItem.sort_order",
    )

    __table_args__ = (
        CheckConstraint("base_price >= 0", name="ck_products_base_price_non_negative"),
        CheckConstraint(
            "product_type IN ('simple', 'configurable', 'bundle')",
            name="ck_products_type",
        ),
    )

    @property
    def is_purchasable(self) -> bool:
        return self.status == ProductStatus.ACTIVE.value


class VariationGroup(Base):
    __tablename__ = "variation_groups"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    kind = Column(String(20), default=VariationKind.DROPDOWN.value, nullable=False)
    is_required = Column(Boolean, default=False, nullable=False)
    sort_order = Column(Integer, default=0)

    product = relationship("Product", back_populates="variation_groups")
    options = relationship(
        "VariationOption", back_populates="group", cascade="all, delete-orphan",
        order_by="VariationOption.sort_order",
    )

    __table_args__ = (
        CheckConstraint(
            "kind IN ('dropdown', 'image', 'text', 'boolean')",
            name="ck_variation_groups_kind",
        ),
    )


class VariationOption(Base):
    __tablename__ = "variation_options"

    id = Column(Integer, primary_key=True, index=True)
    group_id = Column(Integer, ForeignKey("variation_groups.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    price_adjustment = Column(Numeric(12, 2), default=0, nullable=False)  # signed
    is_default = Column(Boolean, default=False, nullable=False)
    sort_order = Column(Integer, default=0)

    # NULL = untracked/unlimited
    stock_quantity = Column(Integer, nullable=True)
    low_stock_threshold = Column(Integer, default=5)

    group = relationship("VariationGroup", back_populates="options")

    __table_args__ = (
        Index("ix_variation_options_stock", "group_id", "stock_quantity"),
    )


class AddOn(Base):
    __tablename__ = "addons"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    is_required = Column(Boolean, default=False, nullable=False)
    has_options = Column(Boolean, default=False, nullable=False)
    # Flat price, used only when has_options is False
    price = Column(Numeric(12, 2), default=0, nullable=False)
    stock_quantity = Column(Integer, nullable=True)
    low_stock_threshold = Column(Integer, default=5)
    sort_order = Column(Integer, default=0)

    product = relationship("Product", back_populates="addons")
    options = relationship(
        "AddOnOption", back_populates="addon", cascade="all, delete-orphan",
        order_by="AddOnOption.sort_order",
    )


class AddOnOption(Base):
    __tablename__ = "addon_options"

    id = Column(Integer, primary_key=True, index=True)
    addon_id = Column(Integer, ForeignKey("addons.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    price = Column(Numeric(12, 2), default=0, nullable=False)
    stock_quantity = Column(Integer, nullable=True)
    low_stock_threshold = Column(Integer, default=5)
    sort_order = Column(Integer, default=0)

    addon = relationship("AddOn", back_populates="options")


class BundleItem(Base):
    """
    Reference from a parent product to another product, included as a
    required or optional component.
    """
    __tablename__ = "bundle_items"

    id = Column(Integer, primary_key=True, index=True)
    parent_product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    item_product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)

    item_type = Column(String(20), default=BundleItemType.REQUIRED.value, nullable=False)
    quantity = Column(Integer, default=1, nullable=False)
    is_configurable = Column(Boolean, default=False, nullable=False)
    price_adjustment = Column(Numeric(12, 2), default=0, nullable=False)  # signed; added to the item price when optional
    display_name = Column(String(255), nullable=True)
    sort_order = Column(Integer, default=0)

    parent_product = relationship("Product", back_populates="bundle_items", foreign_keys=[parent_product_id])
    item_product = relationship("Product", foreign_keys=[item_product_id])

    __table_args__ = (
        UniqueConstraint("parent_product_id", "item_product_id", name="uq_bundle_item"),
        Index("ix_bundle_items_parent_type", "parent_product_id", "item_type"),
        CheckConstraint("item_type IN ('required', 'optional')", name="ck_bundle_items_type"),
        CheckConstraint("quantity >= 1", name="ck_bundle_items_quantity"),
    )
