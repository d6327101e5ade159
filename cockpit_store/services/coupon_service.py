"""
Coupon Service

Validates coupon codes against the current cart totals and computes the
discount. Re-run on every cart mutation; a coupon that stops qualifying is
detached by CartService.
"""
import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cockpit_store.core.exceptions import InvalidCoupon
from cockpit_store.core.utils import ZERO, as_aware, quantize_money, to_decimal, utcnow
from cockpit_store.models.coupon import Coupon, DiscountType
from cockpit_store.services.cart_builder import CartTotals

logger = logging.getLogger(__name__)


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


class CouponService:
    """Coupon lookup, eligibility checks and discount calculation."""

    async def get_by_code(self, db: AsyncSession, code: str) -> Optional[Coupon]:
        result = await db.execute(
            select(Coupon).where(Coupon.code == normalize_code(code))
        )
        return result.scalar_one_or_none()

    async def apply_coupon(self, db: AsyncSession, totals: CartTotals, code: str) -> Decimal:
        """
        Validate a coupon code and calculate its discount.

        Args:
            db: Database session
            totals: Cart totals before discount
            code: Coupon code as entered

        Returns:
            Discount amount, never more than the subtotal

        Raises:
            InvalidCoupon: with reason INVALID, INACTIVE, NOT_STARTED,
                EXPIRED, EXHAUSTED or MIN_ORDER
        """
        normalized = normalize_code(code)
        if not normalized:
            raise InvalidCoupon("Coupon code is required", reason="INVALID", coupon_code=code)

        coupon = await self.get_by_code(db, normalized)
        if coupon is None:
            raise InvalidCoupon("Coupon code not found", reason="INVALID", coupon_code=normalized)

        if not coupon.is_active:
            raise InvalidCoupon("This coupon is no longer active", reason="INACTIVE", coupon_code=normalized)

        now = utcnow()
        if coupon.starts_at and now < as_aware(coupon.starts_at):
            raise InvalidCoupon("This coupon is not yet active", reason="NOT_STARTED", coupon_code=normalized)

        if coupon.expires_at and now > as_aware(coupon.expires_at):
            raise InvalidCoupon("This coupon has expired", reason="EXPIRED", coupon_code=normalized)

        if coupon.usage_limit is not None and (coupon.usage_count or 0) >= coupon.usage_limit:
            raise InvalidCoupon("This coupon has reached its usage limit", reason="EXHAUSTED", coupon_code=normalized)

        if coupon.minimum_order_amount is not None and totals.subtotal < to_decimal(coupon.minimum_order_amount):
            raise InvalidCoupon(
                f"Minimum order of {to_decimal(coupon.minimum_order_amount):.2f} required",
                reason="MIN_ORDER",
                coupon_code=normalized,
            )

        discount = self.calculate_discount(coupon, totals.subtotal)
        logger.info(f"Coupon {normalized} applied: discount {discount} on subtotal {totals.subtotal}")
        return discount

    @staticmethod
    def calculate_discount(coupon: Coupon, subtotal: Decimal) -> Decimal:
        """Calculate the discount amount, capped by the subtotal."""
        value = to_decimal(coupon.discount_value)

        if coupon.discount_type == DiscountType.PERCENTAGE.value:
            discount = subtotal * (value / Decimal("100"))
            # Apply maximum cap if set
            if coupon.maximum_discount_amount is not None:
                discount = min(discount, to_decimal(coupon.maximum_discount_amount))
        elif coupon.discount_type == DiscountType.FIXED.value:
            discount = value
        else:
            logger.error(f"Coupon {coupon.code} has unknown discount type {coupon.discount_type!r}")
            raise InvalidCoupon("This coupon cannot be applied", reason="INVALID", coupon_code=coupon.code)

        return quantize_money(min(max(discount, ZERO), subtotal))
