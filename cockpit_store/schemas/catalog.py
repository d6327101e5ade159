"""
Pydantic Schemas for product configuration and pricing endpoints
"""
from decimal import Decimal
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, Field

from cockpit_store.models.product import BundleItemType, ProductType, VariationKind
from cockpit_store.schemas.configuration import RawConfiguration


# ==================== Configuration schema ====================

class VariationOptionResponse(BaseModel):
    id: int
    name: str
    price_adjustment: Decimal
    is_default: bool
    stock_quantity: Optional[int] = None

    model_config = {"from_attributes": True}


class VariationGroupResponse(BaseModel):
    id: int
    name: str
    kind: VariationKind
    is_required: bool
    options: List[VariationOptionResponse] = []

    model_config = {"from_attributes": True}


class AddOnOptionResponse(BaseModel):
    id: int
    name: str
    price: Decimal
    stock_quantity: Optional[int] = None

    model_config = {"from_attributes": True}


class AddOnResponse(BaseModel):
    id: int
    name: str
    is_required: bool
    has_options: bool
    price: Decimal
    stock_quantity: Optional[int] = None
    options: List[AddOnOptionResponse] = []

    model_config = {"from_attributes": True}


class ComponentResponse(BaseModel):
    product_id: int
    name: str
    variation_groups: List[VariationGroupResponse] = []

    model_config = {"from_attributes": True}


class BundleItemResponse(BaseModel):
    id: int
    item_product_id: int
    name: str
    item_type: BundleItemType
    quantity: int
    is_configurable: bool
    price_adjustment: Decimal
    item_price: Decimal
    stock_quantity: Optional[int] = None
    component: Optional[ComponentResponse] = None

    model_config = {"from_attributes": True}


class ProductConfigurationResponse(BaseModel):
    """Everything a storefront needs to render the configurator."""
    product_id: int
    sku: str
    name: str
    product_type: ProductType
    base_price: Decimal
    stock_quantity: Optional[int] = None
    variation_groups: List[VariationGroupResponse] = []
    addons: List[AddOnResponse] = []
    bundle_items: List[BundleItemResponse] = []
    # Derived from the schema, filled in by the route
    price_min: Optional[Decimal] = None
    price_max: Optional[Decimal] = None

    model_config = {"from_attributes": True}


# ==================== Pricing ====================

class PriceRangeResponse(BaseModel):
    product_id: int
    price_min: Decimal
    price_max: Decimal
    currency: str
    formatted: str


class PricePreviewRequest(BaseModel):
    configuration: RawConfiguration = Field(default_factory=RawConfiguration)
    quantity: int = 1


class PriceAdjustmentResponse(BaseModel):
    source: str
    name: str
    amount: Decimal
    bundle_item_id: Optional[int] = None


class PriceBreakdownResponse(BaseModel):
    base_price: Decimal
    variations_total: Decimal
    addons_total: Decimal
    bundle_items_total: Decimal
    adjustments: List[PriceAdjustmentResponse] = []


class PricePreviewResponse(BaseModel):
    product_id: int
    unit_price: Decimal
    quantity: int
    total_price: Decimal
    currency: str
    formatted_unit_price: str
    formatted_total: str
    breakdown: PriceBreakdownResponse
    price_min: Decimal
    price_max: Decimal
    configuration: Dict[str, Any]
    warnings: List[Dict[str, Any]] = []
