"""
Pydantic Schemas for cart endpoints
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, Field

from cockpit_store.schemas.configuration import RawConfiguration


class AddToCartRequest(BaseModel):
    product_id: int = Field(..., gt=0)
    configuration: RawConfiguration = Field(default_factory=RawConfiguration)
    # Range enforced by the cart builder so the error carries its own code
    quantity: int = 1


class CartItemUpdate(BaseModel):
    quantity: int


class CouponApplyRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)


class MergeCartRequest(BaseModel):
    session_id: str = Field(..., min_length=1, max_length=128)


class CartLineResponse(BaseModel):
    id: int
    product_id: int
    product_name: Optional[str] = None
    configuration: Dict[str, Any]
    configuration_hash: str
    unit_price: Decimal
    quantity: int
    total_price: Decimal
    state: str


class CartTotalsResponse(BaseModel):
    subtotal: Decimal
    discount: Decimal
    shipping: Decimal
    tax: Decimal
    total: Decimal
    currency: str
    item_count: int
    tax_included: bool = False
    formatted_subtotal: str
    formatted_total: str


class CartResponse(BaseModel):
    id: Optional[int] = None
    region: str
    items: List[CartLineResponse] = []
    totals: CartTotalsResponse
    coupon_code: Optional[str] = None
    expires_at: Optional[datetime] = None
    warnings: List[Dict[str, Any]] = []


class AddToCartResponse(BaseModel):
    item: CartLineResponse
    cart: CartResponse
    unit_price: Decimal
    warnings: List[Dict[str, Any]] = []


class CheckoutValidationResponse(BaseModel):
    valid: bool
    errors: List[Dict[str, Any]] = []


class CartCountResponse(BaseModel):
    count: int
