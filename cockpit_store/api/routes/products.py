"""
Product configuration and pricing routes

Read-only: nothing here touches a cart.
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from cockpit_store.api.deps import get_region
from cockpit_store.core.config import settings
from cockpit_store.core.currency import Region, currency_for, format_currency
from cockpit_store.core.database import get_db
from cockpit_store.core.utils import quantize_money
from cockpit_store.schemas.catalog import (
    PriceAdjustmentResponse,
    PriceBreakdownResponse,
    PricePreviewRequest,
    PricePreviewResponse,
    PriceRangeResponse,
    ProductConfigurationResponse,
)
from cockpit_store.services.cart_builder import validate_quantity
from cockpit_store.services.configurator import ConfiguratorService
from cockpit_store.services.price_calculator import derive_price_range

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/{product_id}/configuration", response_model=ProductConfigurationResponse)
async def get_product_configuration(
    product_id: int,
    db: AsyncSession = Depends(get_db)
):
    """Variation groups, add-ons and bundle items for the configurator UI."""
    schema = await ConfiguratorService.load_schema(db, product_id)
    price_range = derive_price_range(schema)

    response = ProductConfigurationResponse.model_validate(schema, from_attributes=True)
    return response.model_copy(update={
        "price_min": price_range.minimum,
        "price_max": price_range.maximum,
    })


@router.get("/{product_id}/price-range", response_model=PriceRangeResponse)
async def get_price_range(
    product_id: int,
    region: Region = Depends(get_region),
    db: AsyncSession = Depends(get_db)
):
    """Cheapest and most expensive orderable configuration."""
    price_range = await ConfiguratorService.price_range(db, product_id)
    low = format_currency(price_range.minimum, region)
    high = format_currency(price_range.maximum, region)
    return PriceRangeResponse(
        product_id=product_id,
        price_min=price_range.minimum,
        price_max=price_range.maximum,
        currency=currency_for(region).code,
        formatted=low if price_range.minimum == price_range.maximum else f"{low} - {high}",
    )


@router.post("/{product_id}/price", response_model=PricePreviewResponse)
async def preview_price(
    product_id: int,
    request: PricePreviewRequest,
    region: Region = Depends(get_region),
    db: AsyncSession = Depends(get_db)
):
    """
    Price a configuration without adding it to a cart.

    Runs the same validation and stock resolution as add-to-cart, so the
    storefront can show errors and warnings while the customer configures.
    """
    validate_quantity(request.quantity, settings.MAX_LINE_QUANTITY)
    resolved = await ConfiguratorService.resolve(db, product_id, request.configuration)
    price_range = derive_price_range(resolved.schema)

    breakdown = resolved.breakdown
    total = quantize_money(breakdown.unit_price * request.quantity)
    return PricePreviewResponse(
        product_id=product_id,
        unit_price=breakdown.unit_price,
        quantity=request.quantity,
        total_price=total,
        currency=currency_for(region).code,
        formatted_unit_price=format_currency(breakdown.unit_price, region),
        formatted_total=format_currency(total, region, kind="total"),
        breakdown=PriceBreakdownResponse(
            base_price=breakdown.base_price,
            variations_total=breakdown.variations_total,
            addons_total=breakdown.addons_total,
            bundle_items_total=breakdown.bundle_items_total,
            adjustments=[PriceAdjustmentResponse(**a.to_dict()) for a in breakdown.adjustments],
        ),
        price_min=price_range.minimum,
        price_max=price_range.maximum,
        configuration=resolved.configuration.to_dict(),
        warnings=[w.to_dict() for w in resolved.warnings],
    )
