"""
Cart routes

Owner comes from X-User-ID / X-Session-ID, display region from X-Region or
?region=. Every mutation returns the recomputed cart.
"""
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from cockpit_store.api.deps import get_cart_owner, get_region
from cockpit_store.core.currency import Region, format_currency
from cockpit_store.core.database import get_db
from cockpit_store.core.exceptions import ValidationError
from cockpit_store.schemas.cart import (
    AddToCartRequest,
    AddToCartResponse,
    CartCountResponse,
    CartItemUpdate,
    CartLineResponse,
    CartResponse,
    CartTotalsResponse,
    CheckoutValidationResponse,
    CouponApplyRequest,
    MergeCartRequest,
)
from cockpit_store.services.cart_builder import CartLine
from cockpit_store.services.cart_service import CartOwner, CartService, CartView

logger = logging.getLogger(__name__)

router = APIRouter()


def _line_response(line: CartLine) -> CartLineResponse:
    return CartLineResponse(
        id=line.id,
        product_id=line.product_id,
        product_name=line.product_name,
        configuration=line.configuration,
        configuration_hash=line.signature,
        unit_price=line.unit_price,
        quantity=line.quantity,
        total_price=line.total_price,
        state=line.state.value,
    )


def _cart_response(view: CartView) -> CartResponse:
    totals = view.totals
    return CartResponse(
        id=view.cart_id,
        region=view.region.value,
        items=[_line_response(line) for line in view.lines],
        totals=CartTotalsResponse(
            **totals.to_dict(),
            formatted_subtotal=format_currency(totals.subtotal, view.region),
            formatted_total=format_currency(totals.total, view.region, kind="total"),
        ),
        coupon_code=view.coupon_code,
        expires_at=view.expires_at,
        warnings=view.warnings,
    )


@router.get("", response_model=CartResponse)
async def get_cart(
    owner: CartOwner = Depends(get_cart_owner),
    region: Region = Depends(get_region),
    db: AsyncSession = Depends(get_db)
):
    """Get the current cart with recomputed totals."""
    view = await CartService.get_cart(db, owner, region)
    return _cart_response(view)


@router.get("/count", response_model=CartCountResponse)
async def get_cart_count(
    owner: CartOwner = Depends(get_cart_owner),
    db: AsyncSession = Depends(get_db)
):
    """Number of units in the cart, for the header badge."""
    count = await CartService.get_item_count(db, owner)
    return CartCountResponse(count=count)


@router.post("/add", response_model=AddToCartResponse, status_code=status.HTTP_201_CREATED)
async def add_to_cart(
    request: AddToCartRequest,
    owner: CartOwner = Depends(get_cart_owner),
    region: Region = Depends(get_region),
    db: AsyncSession = Depends(get_db)
):
    """
    Add a configured product to the cart.

    Optional components that are out of stock are dropped and reported in
    warnings; the line is still added.
    """
    result = await CartService.add_item(
        db,
        owner,
        product_id=request.product_id,
        raw_configuration=request.configuration,
        quantity=request.quantity,
        region=region,
    )
    return AddToCartResponse(
        item=_line_response(result.line),
        cart=_cart_response(result.cart),
        unit_price=result.line.unit_price,
        warnings=result.cart.warnings,
    )


@router.put("/items/{item_id}", response_model=CartResponse)
async def update_cart_item(
    item_id: int,
    update: CartItemUpdate,
    owner: CartOwner = Depends(get_cart_owner),
    region: Region = Depends(get_region),
    db: AsyncSession = Depends(get_db)
):
    """Change a line's quantity. The unit price is kept as stored."""
    view = await CartService.update_item_quantity(db, owner, item_id, update.quantity, region)
    return _cart_response(view)


@router.delete("/items/{item_id}", response_model=CartResponse)
async def remove_cart_item(
    item_id: int,
    owner: CartOwner = Depends(get_cart_owner),
    region: Region = Depends(get_region),
    db: AsyncSession = Depends(get_db)
):
    """Remove a line from the cart."""
    view = await CartService.remove_item(db, owner, item_id, region)
    return _cart_response(view)


@router.delete("/clear", response_model=CartResponse)
async def clear_cart(
    owner: CartOwner = Depends(get_cart_owner),
    region: Region = Depends(get_region),
    db: AsyncSession = Depends(get_db)
):
    """Remove every line from the cart."""
    view = await CartService.clear_cart(db, owner, region)
    return _cart_response(view)


@router.post("/coupon", response_model=CartResponse)
async def apply_coupon(
    request: CouponApplyRequest,
    owner: CartOwner = Depends(get_cart_owner),
    region: Region = Depends(get_region),
    db: AsyncSession = Depends(get_db)
):
    """Attach a coupon code to the cart."""
    view = await CartService.apply_coupon(db, owner, request.code, region)
    return _cart_response(view)


@router.delete("/coupon", response_model=CartResponse)
async def remove_coupon(
    owner: CartOwner = Depends(get_cart_owner),
    region: Region = Depends(get_region),
    db: AsyncSession = Depends(get_db)
):
    """Detach the cart's coupon."""
    view = await CartService.remove_coupon(db, owner, region)
    return _cart_response(view)


@router.post("/merge", response_model=CartResponse)
async def merge_cart(
    request: MergeCartRequest,
    owner: CartOwner = Depends(get_cart_owner),
    region: Region = Depends(get_region),
    db: AsyncSession = Depends(get_db)
):
    """Merge a guest session's cart into the signed-in user's cart."""
    if owner.user_id is None:
        raise ValidationError("Sign in to merge a guest cart", code="USER_REQUIRED")
    view = await CartService.merge_guest_cart(db, request.session_id, owner.user_id, region)
    return _cart_response(view)


@router.get("/validate", response_model=CheckoutValidationResponse)
async def validate_cart(
    owner: CartOwner = Depends(get_cart_owner),
    db: AsyncSession = Depends(get_db)
):
    """Check the cart can proceed to checkout."""
    result = await CartService.validate_for_checkout(db, owner)
    return CheckoutValidationResponse(valid=result.valid, errors=result.errors)
