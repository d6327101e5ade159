"""
Cart models

A cart belongs to exactly one owner: an authenticated user or a guest
session. Line identity is (cart_id, product_id, configuration_hash).
"""
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Numeric, JSON, Index, UniqueConstraint
from sqlalchemy.orm import relationship

from cockpit_store.core.database import Base
from cockpit_store.core.utils import utcnow


class Cart(Base):
    __tablename__ = "carts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=True, index=True)
    session_id = Column(String(128), nullable=True, index=True)
    region = Column(String(8), default="us", nullable=False)
    coupon_code = Column(String(50), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    items = relationship(
        "CartItem", back_populates="cart", cascade="all, delete-orphan",
        order_by="CartItem.id",
    )

    __table_args__ = (
        Index("ix_carts_expires_at", "expires_at"),
    )


class CartItem(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True, index=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)

    # Serialized ValidatedConfiguration and its signature
    configuration = Column(JSON, nullable=False, default=dict)
    configuration_hash = Column(String(64), nullable=False)

    unit_price = Column(Numeric(12, 2), nullable=False)
    quantity = Column(Integer, default=1, nullable=False)
    total_price = Column(Numeric(12, 2), nullable=False)
    state = Column(String(20), default="created", nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    cart = relationship("Cart", back_populates="items")
    product = relationship("Product")

    __table_args__ = (
        UniqueConstraint("cart_id", "product_id", "configuration_hash", name="uq_cart_item_identity"),
    )
