"""
Configurator Service

Runs the resolution pipeline for one product configuration:

    load schema -> validate -> resolve stock -> price

Used by the price preview endpoint and by CartService before a line is
added. Everything after the schema load is pure.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from cockpit_store.core.config import settings
from cockpit_store.core.exceptions import SchemaLoadError
from cockpit_store.services.catalog_schema import CatalogSchemaLoader
from cockpit_store.services.catalog_snapshot import ProductSchema
from cockpit_store.services.configuration_validator import (
    ValidatedConfiguration,
    validate_configuration,
)
from cockpit_store.services.price_calculator import (
    PriceBreakdown,
    PriceRange,
    derive_price_range,
    price_breakdown,
)
from cockpit_store.services.stock_resolver import StockWarning, resolve_stock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedConfiguration:
    """A configuration that passed validation and stock resolution, with its price."""
    schema: ProductSchema
    configuration: ValidatedConfiguration
    warnings: Tuple[StockWarning, ...]
    breakdown: PriceBreakdown

    @property
    def unit_price(self) -> Decimal:
        return self.breakdown.unit_price

    @property
    def signature(self) -> str:
        return self.configuration.signature()


class ConfiguratorService:
    """Schema loading with retry plus the pure resolution pipeline."""

    @staticmethod
    async def load_schema(db: AsyncSession, product_id: int) -> ProductSchema:
        """Load a product schema, retrying transient persistence failures."""
        attempts = settings.SCHEMA_LOAD_RETRIES + 1
        for attempt in range(1, attempts + 1):
            try:
                return await CatalogSchemaLoader.load_schema(db, product_id)
            except SchemaLoadError:
                if attempt >= attempts:
                    raise
                logger.warning(
                    f"Schema load for product {product_id} failed "
                    f"(attempt {attempt}/{attempts}), retrying"
                )
                await db.rollback()

    @staticmethod
    async def resolve(db: AsyncSession, product_id: int, raw: Any) -> ResolvedConfiguration:
        """
        Validate, stock-resolve and price a raw configuration.

        Raises:
            ProductNotFound, ValidationError subclasses,
            RequiredComponentOutOfStock, InternalError subclasses
        """
        schema = await ConfiguratorService.load_schema(db, product_id)
        validated = validate_configuration(schema, raw)
        resolution = resolve_stock(schema, validated)
        breakdown = price_breakdown(schema, resolution.configuration)

        return ResolvedConfiguration(
            schema=schema,
            configuration=resolution.configuration,
            warnings=resolution.warnings,
            breakdown=breakdown,
        )

    @staticmethod
    async def price_range(db: AsyncSession, product_id: int) -> PriceRange:
        """Live min/max for a product, straight from its current schema."""
        schema = await ConfiguratorService.load_schema(db, product_id)
        return derive_price_range(schema)
