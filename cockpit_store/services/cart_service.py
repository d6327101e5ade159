"""
Cart Service

Persistence around the pure cart builder. Every mutation is:

    load cart -> run builder -> persist lines -> re-evaluate coupon -> commit

with a single commit, so a failed request leaves the cart untouched.

A cart is owned by exactly one of: user id, guest session id. It expires
CART_EXPIRY_DAYS after its last modification; an expired cart is purged the
next time it is touched.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from cockpit_store.core.config import settings
from cockpit_store.core.currency import Region
from cockpit_store.core.exceptions import CartNotFound, InvalidCoupon, ValidationError
from cockpit_store.core.utils import ZERO, as_aware, to_decimal, utcnow
from cockpit_store.models.cart import Cart, CartItem
from cockpit_store.models.product import Product, ProductStatus
from cockpit_store.services import cart_builder
from cockpit_store.services.cart_builder import CartAggregate, CartLine, CartTotals, LineState
from cockpit_store.services.configuration_validator import ValidatedConfiguration
from cockpit_store.services.configurator import ConfiguratorService
from cockpit_store.services.coupon_service import CouponService, normalize_code
from cockpit_store.services.price_calculator import PriceBreakdown

logger = logging.getLogger(__name__)

coupon_service = CouponService()

# Concurrent identical adds collide on uq_cart_item_identity; retry once
ADD_ATTEMPTS = 2


@dataclass(frozen=True)
class CartOwner:
    user_id: Optional[int] = None
    session_id: Optional[str] = None

    @property
    def is_identified(self) -> bool:
        return self.user_id is not None or bool(self.session_id)

    def __str__(self) -> str:
        if self.user_id is not None:
            return f"user:{self.user_id}"
        return f"session:{self.session_id}"


@dataclass
class CartView:
    """Cart state returned to the API layer."""
    cart_id: Optional[int]
    region: Region
    lines: List[CartLine]
    totals: CartTotals
    coupon_code: Optional[str] = None
    expires_at: Optional[datetime] = None
    warnings: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class AddToCartResult:
    line: CartLine
    cart: CartView
    breakdown: PriceBreakdown
    configuration: ValidatedConfiguration


@dataclass(frozen=True)
class OrderLine:
    """Immutable snapshot of a cart line handed to order placement."""
    product_id: int
    product_name: Optional[str]
    configuration: Dict[str, Any]
    configuration_hash: str
    unit_price: Decimal
    quantity: int
    total_price: Decimal


@dataclass
class CheckoutValidation:
    valid: bool
    errors: List[Dict[str, Any]] = field(default_factory=list)


# ==================== Row <-> aggregate ====================

def _line_from_item(item: CartItem, product_name: Optional[str] = None) -> CartLine:
    return CartLine(
        id=item.id,
        product_id=item.product_id,
        configuration=item.configuration or {},
        signature=item.configuration_hash,
        unit_price=to_decimal(item.unit_price),
        quantity=item.quantity,
        state=LineState(item.state or LineState.CREATED.value),
        product_name=product_name or (item.product.name if item.product else None),
    )


def _aggregate(cart: Cart, region: Region) -> CartAggregate:
    return CartAggregate(
        id=cart.id,
        region=region,
        lines=[_line_from_item(item) for item in cart.items],
        coupon_code=cart.coupon_code,
        expires_at=as_aware(cart.expires_at),
    )


def _item(cart: Cart, item_id: int) -> CartItem:
    for item in cart.items:
        if item.id == item_id:
            return item
    # Builder already checked membership
    raise CartNotFound(f"Cart item {item_id} vanished from cart {cart.id}")


def _empty_view(region: Region) -> CartView:
    return CartView(
        cart_id=None,
        region=region,
        lines=[],
        totals=cart_builder.build_totals(CartAggregate(region=region)),
    )


class CartService:
    """Cart persistence and the cart-level operations exposed by the API."""

    # ==================== Loading ====================

    @staticmethod
    async def find_cart(db: AsyncSession, owner: CartOwner) -> Optional[Cart]:
        if owner.user_id is not None:
            condition = Cart.user_id == owner.user_id
        elif owner.session_id:
            condition = and_(Cart.session_id == owner.session_id, Cart.user_id.is_(None))
        else:
            return None

        result = await db.execute(
            select(Cart)
            .where(condition)
            .options(selectinload(Cart.items).selectinload(CartItem.product))
            .order_by(Cart.updated_at.desc(), Cart.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def _purge(db: AsyncSession, cart: Cart) -> None:
        logger.warning(f"Cart {cart.id} expired at {cart.expires_at}, purging")
        await db.delete(cart)
        await db.flush()

    @staticmethod
    async def _load_active_cart(db: AsyncSession, owner: CartOwner, now: datetime) -> Cart:
        """Cart for owner; purges and raises CartNotFound if expired."""
        cart = await CartService.find_cart(db, owner)
        if cart is None:
            raise CartNotFound("Cart not found", details={"owner": str(owner)})
        if as_aware(cart.expires_at) <= now:
            await CartService._purge(db, cart)
            await db.commit()
            raise CartNotFound("Cart has expired", details={"owner": str(owner)})
        return cart

    @staticmethod
    async def _create_cart(db: AsyncSession, owner: CartOwner, region: Region, now: datetime) -> Cart:
        cart = Cart(
            user_id=owner.user_id,
            session_id=owner.session_id,
            region=region.value,
            expires_at=now + timedelta(days=settings.CART_EXPIRY_DAYS),
            items=[],
        )
        db.add(cart)
        await db.flush()
        logger.info(f"Created cart {cart.id} for {owner}")
        return cart

    @staticmethod
    def _touch(cart: Cart, now: datetime) -> None:
        cart.expires_at = now + timedelta(days=settings.CART_EXPIRY_DAYS)

    @staticmethod
    async def _recompute(
        db: AsyncSession,
        cart: Cart,
        aggregate: CartAggregate,
    ) -> Tuple[CartTotals, List[Dict[str, Any]]]:
        """Totals with the attached coupon re-evaluated; detaches it if it no longer applies."""
        warnings: List[Dict[str, Any]] = []
        discount = ZERO

        if aggregate.coupon_code:
            code = aggregate.coupon_code
            try:
                discount = await coupon_service.apply_coupon(
                    db, cart_builder.build_totals(aggregate), code
                )
            except InvalidCoupon as e:
                logger.warning(f"Coupon {code} no longer valid for cart {cart.id} ({e.reason}), removing")
                cart.coupon_code = None
                aggregate.coupon_code = None
                warnings.append({
                    "code": "COUPON_REMOVED",
                    "message": f"Coupon {code} was removed: {e.message}",
                    "details": e.details,
                })

        return cart_builder.build_totals(aggregate, discount), warnings

    @staticmethod
    def _view(
        cart: Cart,
        aggregate: CartAggregate,
        totals: CartTotals,
        warnings: Optional[List[Dict[str, Any]]] = None,
    ) -> CartView:
        return CartView(
            cart_id=cart.id,
            region=aggregate.region,
            lines=list(aggregate.lines),
            totals=totals,
            coupon_code=aggregate.coupon_code,
            expires_at=as_aware(cart.expires_at),
            warnings=warnings or [],
        )

    # ==================== Operations ====================

    @staticmethod
    async def get_cart(db: AsyncSession, owner: CartOwner, region: Region) -> CartView:
        """Current cart, or an empty view when there is none."""
        cart = await CartService.find_cart(db, owner)
        if cart is None:
            return _empty_view(region)

        if as_aware(cart.expires_at) <= utcnow():
            await CartService._purge(db, cart)
            await db.commit()
            return _empty_view(region)

        aggregate = _aggregate(cart, region)
        totals, warnings = await CartService._recompute(db, cart, aggregate)
        if warnings:
            await db.commit()
        return CartService._view(cart, aggregate, totals, warnings)

    @staticmethod
    async def get_item_count(db: AsyncSession, owner: CartOwner) -> int:
        """Total quantity across lines for the cart badge; 0 without a live cart."""
        cart = await CartService.find_cart(db, owner)
        if cart is None or as_aware(cart.expires_at) <= utcnow():
            return 0
        return sum(item.quantity for item in cart.items)

    @staticmethod
    async def add_item(
        db: AsyncSession,
        owner: CartOwner,
        product_id: int,
        raw_configuration: Any,
        quantity: int,
        region: Region,
    ) -> AddToCartResult:
        """
        Validate, stock-resolve and price a configuration, then add it.

        Identical configurations merge into one line. The cart is created
        lazily on the first successful add.

        Raises:
            CartNotFound: the owner's cart has expired (it is purged)
            InvalidQuantity, ValidationError subclasses,
            RequiredComponentOutOfStock, ProductNotFound
        """
        if not owner.is_identified:
            raise ValidationError(
                "A user or session is required to use the cart",
                code="OWNER_REQUIRED",
            )
        cart_builder.validate_quantity(quantity, settings.MAX_LINE_QUANTITY)

        for attempt in range(1, ADD_ATTEMPTS + 1):
            try:
                return await CartService._add_item_once(
                    db, owner, product_id, raw_configuration, quantity, region
                )
            except IntegrityError:
                await db.rollback()
                if attempt >= ADD_ATTEMPTS:
                    raise
                logger.warning(
                    f"Concurrent add of product {product_id} for {owner} collided, retrying"
                )

    @staticmethod
    async def _add_item_once(
        db: AsyncSession,
        owner: CartOwner,
        product_id: int,
        raw_configuration: Any,
        quantity: int,
        region: Region,
    ) -> AddToCartResult:
        resolved = await ConfiguratorService.resolve(db, product_id, raw_configuration)

        now = utcnow()
        cart = await CartService.find_cart(db, owner)
        if cart is not None and as_aware(cart.expires_at) <= now:
            await CartService._purge(db, cart)
            await db.commit()
            raise CartNotFound("Cart has expired", details={"owner": str(owner)})
        if cart is None:
            cart = await CartService._create_cart(db, owner, region, now)

        aggregate = _aggregate(cart, region)
        line = cart_builder.add_line(
            aggregate,
            product_id=product_id,
            configuration=resolved.configuration.to_dict(),
            signature=resolved.signature,
            unit_price=resolved.unit_price,
            quantity=quantity,
            max_quantity=settings.MAX_LINE_QUANTITY,
            now=now,
            product_name=resolved.schema.name,
        )

        if line.id is None:
            product = await db.get(Product, product_id)
            item = CartItem(
                product_id=product_id,
                product=product,
                configuration=line.configuration,
                configuration_hash=line.signature,
                unit_price=line.unit_price,
                quantity=line.quantity,
                total_price=line.total_price,
                state=line.state.value,
            )
            cart.items.append(item)
            await db.flush()
            persisted = _line_from_item(item, product_name=resolved.schema.name)
            aggregate.replace_line(line, persisted)
            line = persisted
        else:
            item = _item(cart, line.id)
            item.quantity = line.quantity
            item.total_price = line.total_price

        CartService._touch(cart, now)
        totals, coupon_warnings = await CartService._recompute(db, cart, aggregate)
        await db.commit()

        logger.info(
            f"Added product {product_id} x{quantity} to cart {cart.id} "
            f"(line {line.id}, unit price {line.unit_price})"
        )
        warnings = [w.to_dict() for w in resolved.warnings] + coupon_warnings
        return AddToCartResult(
            line=line,
            cart=CartService._view(cart, aggregate, totals, warnings),
            breakdown=resolved.breakdown,
            configuration=resolved.configuration,
        )

    @staticmethod
    async def update_item_quantity(
        db: AsyncSession,
        owner: CartOwner,
        item_id: int,
        quantity: int,
        region: Region,
    ) -> CartView:
        now = utcnow()
        cart = await CartService._load_active_cart(db, owner, now)
        aggregate = _aggregate(cart, region)

        line = cart_builder.update_quantity(
            aggregate, item_id, quantity, settings.MAX_LINE_QUANTITY, now=now
        )
        item = _item(cart, item_id)
        item.quantity = line.quantity
        item.total_price = line.total_price

        CartService._touch(cart, now)
        totals, warnings = await CartService._recompute(db, cart, aggregate)
        await db.commit()

        logger.info(f"Cart {cart.id}: line {item_id} quantity set to {quantity}")
        return CartService._view(cart, aggregate, totals, warnings)

    @staticmethod
    async def remove_item(db: AsyncSession, owner: CartOwner, item_id: int, region: Region) -> CartView:
        now = utcnow()
        cart = await CartService._load_active_cart(db, owner, now)
        aggregate = _aggregate(cart, region)

        cart_builder.remove_line(aggregate, item_id, now=now)
        cart.items.remove(_item(cart, item_id))

        CartService._touch(cart, now)
        totals, warnings = await CartService._recompute(db, cart, aggregate)
        await db.commit()

        logger.info(f"Cart {cart.id}: removed line {item_id}")
        return CartService._view(cart, aggregate, totals, warnings)

    @staticmethod
    async def clear_cart(db: AsyncSession, owner: CartOwner, region: Region) -> CartView:
        now = utcnow()
        cart = await CartService._load_active_cart(db, owner, now)
        aggregate = _aggregate(cart, region)

        removed = cart_builder.clear(aggregate, now=now)
        cart.items.clear()

        CartService._touch(cart, now)
        totals, warnings = await CartService._recompute(db, cart, aggregate)
        await db.commit()

        logger.info(f"Cart {cart.id}: cleared {len(removed)} lines")
        return CartService._view(cart, aggregate, totals, warnings)

    @staticmethod
    async def apply_coupon(db: AsyncSession, owner: CartOwner, code: str, region: Region) -> CartView:
        """
        Attach a coupon to the cart.

        Raises:
            InvalidCoupon: the code does not apply to the current cart
        """
        now = utcnow()
        cart = await CartService._load_active_cart(db, owner, now)
        aggregate = _aggregate(cart, region)

        discount = await coupon_service.apply_coupon(db, cart_builder.build_totals(aggregate), code)
        cart.coupon_code = normalize_code(code)
        aggregate.coupon_code = cart.coupon_code

        CartService._touch(cart, now)
        totals = cart_builder.build_totals(aggregate, discount)
        await db.commit()

        logger.info(f"Cart {cart.id}: coupon {cart.coupon_code} attached, discount {totals.discount}")
        return CartService._view(cart, aggregate, totals)

    @staticmethod
    async def remove_coupon(db: AsyncSession, owner: CartOwner, region: Region) -> CartView:
        now = utcnow()
        cart = await CartService._load_active_cart(db, owner, now)
        previous = cart.coupon_code
        cart.coupon_code = None
        aggregate = _aggregate(cart, region)

        CartService._touch(cart, now)
        totals = cart_builder.build_totals(aggregate)
        await db.commit()

        logger.info(f"Cart {cart.id}: coupon {previous} detached")
        return CartService._view(cart, aggregate, totals)

    @staticmethod
    async def merge_guest_cart(
        db: AsyncSession,
        session_id: str,
        user_id: int,
        region: Region,
    ) -> CartView:
        """
        Fold a guest session's cart into the user's cart after login.

        Identical lines merge, capped at MAX_LINE_QUANTITY with a QUANTITY_CAPPED
        warning. Unit prices are carried over as stored. The guest cart is deleted.
        """
        now = utcnow()
        guest = await CartService.find_cart(db, CartOwner(session_id=session_id))
        user_owner = CartOwner(user_id=user_id)

        if guest is not None and as_aware(guest.expires_at) <= now:
            await CartService._purge(db, guest)
            guest = None
        if guest is None or not guest.items:
            if guest is not None:
                await db.delete(guest)
                await db.flush()
            await db.commit()
            return await CartService.get_cart(db, user_owner, region)

        user_cart = await CartService.find_cart(db, user_owner)
        if user_cart is not None and as_aware(user_cart.expires_at) <= now:
            await CartService._purge(db, user_cart)
            user_cart = None
        if user_cart is None:
            user_cart = await CartService._create_cart(db, user_owner, region, now)

        aggregate = _aggregate(user_cart, region)
        capped: List[Dict[str, Any]] = []
        moved = 0
        for guest_item in guest.items:
            existing = aggregate.find_line(guest_item.product_id, guest_item.configuration_hash)
            if existing is not None:
                wanted = existing.quantity + guest_item.quantity
                merged_quantity = min(wanted, settings.MAX_LINE_QUANTITY)
                if merged_quantity < wanted:
                    logger.warning(
                        f"Merging line {guest_item.id} into cart {user_cart.id}: "
                        f"quantity capped at {merged_quantity}"
                    )
                    capped.append({
                        "code": "QUANTITY_CAPPED",
                        "message": f"Quantity limited to {merged_quantity} per line",
                        "details": {
                            "product_id": guest_item.product_id,
                            "requested": wanted,
                            "quantity": merged_quantity,
                        },
                    })
                merged = existing.with_quantity(merged_quantity)
                aggregate.replace_line(existing, merged)
                target = _item(user_cart, existing.id)
                target.quantity = merged.quantity
                target.total_price = merged.total_price
            else:
                user_cart.items.append(CartItem(
                    product_id=guest_item.product_id,
                    product=guest_item.product,
                    configuration=dict(guest_item.configuration or {}),
                    configuration_hash=guest_item.configuration_hash,
                    unit_price=guest_item.unit_price,
                    quantity=guest_item.quantity,
                    total_price=guest_item.total_price,
                    state=LineState.CREATED.value,
                ))
            moved += 1

        if guest.coupon_code and not user_cart.coupon_code:
            user_cart.coupon_code = guest.coupon_code

        await db.delete(guest)
        await db.flush()

        aggregate = _aggregate(user_cart, region)
        CartService._touch(user_cart, now)
        totals, warnings = await CartService._recompute(db, user_cart, aggregate)
        await db.commit()

        logger.info(f"Merged {moved} lines from session cart into cart {user_cart.id} for user {user_id}")
        return CartService._view(user_cart, aggregate, totals, capped + warnings)

    @staticmethod
    async def validate_for_checkout(db: AsyncSession, owner: CartOwner) -> CheckoutValidation:
        """Check the cart can still be ordered: products sellable, simple stock sufficient."""
        cart = await CartService.find_cart(db, owner)
        if cart is None or as_aware(cart.expires_at) <= utcnow():
            return CheckoutValidation(
                valid=False,
                errors=[{"code": "CART_NOT_FOUND", "message": "Cart not found"}],
            )
        if not cart.items:
            return CheckoutValidation(
                valid=False,
                errors=[{"code": "CART_EMPTY", "message": "Cart is empty"}],
            )

        errors: List[Dict[str, Any]] = []
        for item in cart.items:
            product = item.product
            if product is None or product.status != ProductStatus.ACTIVE.value:
                errors.append({
                    "code": "PRODUCT_UNAVAILABLE",
                    "item_id": item.id,
                    "product_id": item.product_id,
                    "message": "Product is no longer available",
                })
            elif product.stock_quantity is not None and product.stock_quantity < item.quantity:
                errors.append({
                    "code": "INSUFFICIENT_STOCK",
                    "item_id": item.id,
                    "product_id": item.product_id,
                    "message": f"Only {product.stock_quantity} of '{product.name}' available",
                })

        return CheckoutValidation(valid=not errors, errors=errors)

    @staticmethod
    async def convert_to_order_lines(db: AsyncSession, owner: CartOwner) -> List[OrderLine]:
        """
        Hand the cart's lines to order placement and destroy the cart.

        Flushes but does not commit: the caller commits together with the
        order it creates.

        Raises:
            CartNotFound: no active cart
            ValidationError: cart is empty
        """
        now = utcnow()
        cart = await CartService._load_active_cart(db, owner, now)
        if not cart.items:
            raise ValidationError("Cart is empty", code="CART_EMPTY")

        aggregate = _aggregate(cart, Region(cart.region))
        converted = cart_builder.convert_lines(aggregate, now=now)
        order_lines = [
            OrderLine(
                product_id=line.product_id,
                product_name=line.product_name,
                configuration=dict(line.configuration),
                configuration_hash=line.signature,
                unit_price=line.unit_price,
                quantity=line.quantity,
                total_price=line.total_price,
            )
            for line in converted
        ]

        await db.delete(cart)
        await db.flush()

        logger.info(f"Converted cart {cart.id} into {len(order_lines)} order lines")
        return order_lines
