"""
Coupon model

Percentage or fixed-amount discount codes consumed by the coupon applier.
"""
from enum import Enum as PyEnum

from sqlalchemy import Column, String, Boolean, Integer, DateTime, Numeric, Text

from cockpit_store.core.database import Base
from cockpit_store.core.utils import utcnow


class DiscountType(str, PyEnum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class Coupon(Base):
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True, autoincrement=True)

    code = Column(String(50), unique=True, nullable=False, index=True)
    description = Column(Text)

    discount_type = Column(String(20), nullable=False)
    discount_value = Column(Numeric(10, 2), nullable=False)

    # Constraints
    minimum_order_amount = Column(Numeric(10, 2))
    maximum_discount_amount = Column(Numeric(10, 2))  # Cap for percentage discounts

    # Usage limits
    usage_limit = Column(Integer)  # NULL = unlimited
    usage_count = Column(Integer, default=0)

    # Validity
    starts_at = Column(DateTime(timezone=True))
    expires_at = Column(DateTime(timezone=True))
    is_active = Column(Boolean, default=True, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
