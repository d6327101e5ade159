"""
Catalog Schema Loader

Reads a product's full configuration schema (variation groups, options,
add-ons, bundle items and their referenced products' groups) in one
round-trip and hands back an immutable ProductSchema snapshot.

Also owns the derived price_min/price_max columns on Product.
"""
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from cockpit_store.core.exceptions import (
    CatalogIntegrityError,
    ProductNotFound,
    SchemaLoadError,
)
from cockpit_store.core.utils import to_decimal
from cockpit_store.models.product import (
    AddOn,
    BundleItem,
    BundleItemType,
    Product,
    ProductStatus,
    ProductType,
    VariationGroup,
    VariationKind,
)
from cockpit_store.services.catalog_snapshot import (
    AddOnOptionSnapshot,
    AddOnSnapshot,
    BundleItemSnapshot,
    ComponentSchema,
    OptionSnapshot,
    ProductSchema,
    VariationGroupSnapshot,
)
from cockpit_store.services.price_calculator import PriceRange, derive_price_range

logger = logging.getLogger(__name__)


def _group_snapshot(group: VariationGroup) -> VariationGroupSnapshot:
    return VariationGroupSnapshot(
        id=group.id,
        product_id=group.product_id,
        name=group.name,
        kind=VariationKind(group.kind),
        is_required=bool(group.is_required),
        sort_order=group.sort_order or 0,
        options=tuple(
            OptionSnapshot(
                id=opt.id,
                group_id=group.id,
                name=opt.name,
                price_adjustment=to_decimal(opt.price_adjustment),
                is_default=bool(opt.is_default),
                stock_quantity=opt.stock_quantity,
                low_stock_threshold=opt.low_stock_threshold or 0,
                sort_order=opt.sort_order or 0,
            )
            for opt in group.options
        ),
    )


def _addon_snapshot(addon: AddOn) -> AddOnSnapshot:
    return AddOnSnapshot(
        id=addon.id,
        product_id=addon.product_id,
        name=addon.name,
        is_required=bool(addon.is_required),
        has_options=bool(addon.has_options),
        price=to_decimal(addon.price),
        stock_quantity=addon.stock_quantity,
        low_stock_threshold=addon.low_stock_threshold or 0,
        options=tuple(
            AddOnOptionSnapshot(
                id=opt.id,
                addon_id=addon.id,
                name=opt.name,
                price=to_decimal(opt.price),
                stock_quantity=opt.stock_quantity,
                low_stock_threshold=opt.low_stock_threshold or 0,
            )
            for opt in addon.options
        ),
    )


def _component_schema(product: Product) -> ComponentSchema:
    return ComponentSchema(
        product_id=product.id,
        sku=product.sku,
        name=product.name,
        product_type=ProductType(product.product_type),
        base_price=to_decimal(product.base_price),
        stock_quantity=product.stock_quantity,
        low_stock_threshold=product.low_stock_threshold or 0,
        is_active=product.is_purchasable,
        variation_groups=tuple(_group_snapshot(g) for g in product.variation_groups),
    )


def _bundle_item_snapshot(parent: Product, item: BundleItem) -> BundleItemSnapshot:
    referenced = item.item_product
    if referenced is None:
        raise CatalogIntegrityError(
            f"Bundle item {item.id} references a missing product",
            details={"bundle_item_id": item.id, "item_product_id": item.item_product_id},
        )
    # One level of nesting only
    if referenced.id == parent.id or referenced.product_type == ProductType.BUNDLE.value:
        raise CatalogIntegrityError(
            f"Bundle item {item.id} of product {parent.id} references bundle product {referenced.id}",
            details={"bundle_item_id": item.id, "item_product_id": referenced.id},
        )

    component = _component_schema(referenced) if item.is_configurable else None
    return BundleItemSnapshot(
        id=item.id,
        parent_product_id=parent.id,
        item_product_id=referenced.id,
        name=item.display_name or referenced.name,
        item_type=BundleItemType(item.item_type),
        quantity=item.quantity or 1,
        is_configurable=bool(item.is_configurable),
        price_adjustment=to_decimal(item.price_adjustment),
        item_price=to_decimal(referenced.base_price),
        stock_quantity=referenced.stock_quantity,
        low_stock_threshold=referenced.low_stock_threshold or 0,
        item_active=referenced.is_purchasable,
        component=component,
    )


def build_product_schema(product: Product) -> ProductSchema:
    """Convert a fully-loaded Product row into a ProductSchema snapshot."""
    base = _component_schema(product)
    return ProductSchema(
        product_id=base.product_id,
        sku=base.sku,
        name=base.name,
        product_type=base.product_type,
        base_price=base.base_price,
        stock_quantity=base.stock_quantity,
        low_stock_threshold=base.low_stock_threshold,
        is_active=base.is_active,
        variation_groups=base.variation_groups,
        addons=tuple(_addon_snapshot(a) for a in product.addons),
        bundle_items=tuple(_bundle_item_snapshot(product, b) for b in product.bundle_items),
    )


class CatalogSchemaLoader:
    """Loads ProductSchema snapshots from the catalog tables."""

    @staticmethod
    async def _fetch_product(db: AsyncSession, product_id: int) -> Optional[Product]:
        query = (
            select(Product)
            .where(Product.id == product_id)
            .options(
                selectinload(Product.variation_groups).selectinload(VariationGroup.options),
                selectinload(Product.addons).selectinload(AddOn.options),
                selectinload(Product.bundle_items)
                .selectinload(BundleItem.item_product)
                .selectinload(Product.variation_groups)
                .selectinload(VariationGroup.options),
            )
            # Latest committed admin state, not whatever the session cached
            .execution_options(populate_existing=True)
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    @staticmethod
    async def load_schema(
        db: AsyncSession,
        product_id: int,
        include_inactive: bool = False,
    ) -> ProductSchema:
        """
        Load the full configuration schema for a product.

        Raises:
            ProductNotFound: product missing (or not active, unless include_inactive)
            SchemaLoadError: persistence failure
            CatalogIntegrityError: bundle item referencing a bundle product
        """
        try:
            product = await CatalogSchemaLoader._fetch_product(db, product_id)
        except SQLAlchemyError as e:
            logger.error(f"Schema load failed for product {product_id}: {e}")
            raise SchemaLoadError(
                f"Could not load schema for product {product_id}",
                details={"product_id": product_id},
            ) from e

        if product is None:
            raise ProductNotFound(product_id)
        if not include_inactive and product.status != ProductStatus.ACTIVE.value:
            raise ProductNotFound(product_id)

        return build_product_schema(product)

    @staticmethod
    async def refresh_price_range(db: AsyncSession, product_id: int) -> PriceRange:
        """
        Recompute and persist price_min/price_max for a product.

        Call after any admin edit to the product's schema. Does not commit.
        """
        schema = await CatalogSchemaLoader.load_schema(db, product_id, include_inactive=True)
        price_range = derive_price_range(schema)

        product = await db.get(Product, product_id)
        product.price_min = price_range.minimum
        product.price_max = price_range.maximum
        await db.flush()

        logger.info(
            f"Refreshed price range for product {product_id}: "
            f"{price_range.minimum} - {price_range.maximum}"
        )
        return price_range
