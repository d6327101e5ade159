"""
Cart Builder

Pure cart arithmetic and the cart line state machine. No I/O; CartService
loads/persists the aggregate around these functions.

Line identity is (product_id, configuration signature). Adding an identical
configuration merges quantities; the stored unit_price is never recomputed.

Line lifecycle:
    CREATED --(quantity updated)--> CREATED
    CREATED --> REMOVED
    CREATED --> CONVERTED (order placed)
"""
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from cockpit_store.core.currency import Region, currency_for
from cockpit_store.core.exceptions import (
    CartItemNotFound,
    CartNotFound,
    IllegalLineTransition,
    InternalError,
    InvalidQuantity,
)
from cockpit_store.core.utils import ZERO, as_aware, quantize_money, utcnow

logger = logging.getLogger(__name__)


class LineState(str, Enum):
    CREATED = "created"
    REMOVED = "removed"
    CONVERTED = "converted_to_order_line"


ALLOWED_TRANSITIONS = {
    LineState.CREATED: {LineState.CREATED, LineState.REMOVED, LineState.CONVERTED},
    LineState.REMOVED: set(),
    LineState.CONVERTED: set(),
}


@dataclass(frozen=True)
class CartLine:
    product_id: int
    configuration: Dict[str, Any] = field(compare=False, hash=False)
    signature: str = ""
    unit_price: Decimal = ZERO
    quantity: int = 1
    id: Optional[int] = None
    state: LineState = LineState.CREATED
    product_name: Optional[str] = None

    @property
    def identity(self) -> Tuple[int, str]:
        return self.product_id, self.signature

    @property
    def total_price(self) -> Decimal:
        return quantize_money(self.unit_price * self.quantity)

    def _transition(self, target: LineState) -> None:
        if target not in ALLOWED_TRANSITIONS[self.state]:
            raise IllegalLineTransition(
                f"Cart line {self.id} cannot move from {self.state.value} to {target.value}",
                details={"line_id": self.id, "from": self.state.value, "to": target.value},
            )

    def with_quantity(self, quantity: int) -> "CartLine":
        self._transition(LineState.CREATED)
        return replace(self, quantity=quantity)

    def removed(self) -> "CartLine":
        self._transition(LineState.REMOVED)
        return replace(self, state=LineState.REMOVED)

    def converted(self) -> "CartLine":
        self._transition(LineState.CONVERTED)
        return replace(self, state=LineState.CONVERTED)


@dataclass
class CartAggregate:
    """In-memory cart: active lines plus coupon and expiry."""
    id: Optional[int] = None
    region: Region = Region.US
    lines: List[CartLine] = field(default_factory=list)
    coupon_code: Optional[str] = None
    expires_at: Optional[datetime] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return as_aware(self.expires_at) <= (now or utcnow())

    def find_line(self, product_id: int, signature: str) -> Optional[CartLine]:
        for line in self.lines:
            if line.identity == (product_id, signature):
                return line
        return None

    def get_line(self, line_id: int) -> CartLine:
        for line in self.lines:
            if line.id == line_id:
                return line
        raise CartItemNotFound(line_id)

    def replace_line(self, old: CartLine, new: CartLine) -> None:
        self.lines[self.lines.index(old)] = new

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)


@dataclass(frozen=True)
class CartTotals:
    subtotal: Decimal
    discount: Decimal
    shipping: Decimal
    tax: Decimal
    total: Decimal
    currency: str
    item_count: int
    tax_included: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subtotal": self.subtotal,
            "discount": self.discount,
            "shipping": self.shipping,
            "tax": self.tax,
            "total": self.total,
            "currency": self.currency,
            "item_count": self.item_count,
            "tax_included": self.tax_included,
        }


# ==================== Operations ====================

def validate_quantity(quantity: int, maximum: int) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or not 1 <= quantity <= maximum:
        raise InvalidQuantity(
            f"Quantity must be between 1 and {maximum}",
            quantity=quantity,
            maximum=maximum,
        )


def ensure_active(cart: Optional[CartAggregate], now: Optional[datetime] = None) -> CartAggregate:
    """Raise CartNotFound for a missing or expired cart."""
    if cart is None:
        raise CartNotFound("Cart not found")
    if cart.is_expired(now):
        raise CartNotFound("Cart has expired", details={"cart_id": cart.id})
    return cart


def add_line(
    cart: CartAggregate,
    product_id: int,
    configuration: Dict[str, Any],
    signature: str,
    unit_price: Decimal,
    quantity: int,
    max_quantity: int,
    now: Optional[datetime] = None,
    product_name: Optional[str] = None,
) -> CartLine:
    """
    Add a configured product, merging with an identical existing line.

    A merge whose combined quantity exceeds max_quantity raises
    InvalidQuantity and leaves the existing line as it was.

    Returns the new or merged line (id is None for a new line).
    """
    ensure_active(cart, now)
    validate_quantity(quantity, max_quantity)
    if unit_price < ZERO or unit_price != quantize_money(unit_price):
        raise InternalError(
            f"Refusing unit price {unit_price}: must be >= 0 with 2 decimals",
            details={"unit_price": str(unit_price)},
        )

    existing = cart.find_line(product_id, signature)
    if existing is not None:
        merged_quantity = existing.quantity + quantity
        validate_quantity(merged_quantity, max_quantity)
        merged = existing.with_quantity(merged_quantity)
        cart.replace_line(existing, merged)
        logger.debug(f"Merged line {existing.id} in cart {cart.id}: quantity {merged_quantity}")
        return merged

    line = CartLine(
        product_id=product_id,
        configuration=configuration,
        signature=signature,
        unit_price=unit_price,
        quantity=quantity,
        product_name=product_name,
    )
    cart.lines.append(line)
    return line


def update_quantity(
    cart: CartAggregate,
    line_id: int,
    quantity: int,
    max_quantity: int,
    now: Optional[datetime] = None,
) -> CartLine:
    ensure_active(cart, now)
    validate_quantity(quantity, max_quantity)
    line = cart.get_line(line_id)
    updated = line.with_quantity(quantity)
    cart.replace_line(line, updated)
    return updated


def remove_line(cart: CartAggregate, line_id: int, now: Optional[datetime] = None) -> CartLine:
    ensure_active(cart, now)
    line = cart.get_line(line_id)
    removed = line.removed()
    cart.lines.remove(line)
    return removed


def clear(cart: CartAggregate, now: Optional[datetime] = None) -> List[CartLine]:
    ensure_active(cart, now)
    removed = [line.removed() for line in cart.lines]
    cart.lines = []
    return removed


def convert_lines(cart: CartAggregate, now: Optional[datetime] = None) -> List[CartLine]:
    """Move every line to CONVERTED and empty the cart."""
    ensure_active(cart, now)
    converted = [line.converted() for line in cart.lines]
    cart.lines = []
    return converted


def compute_subtotal(lines: List[CartLine]) -> Decimal:
    return quantize_money(sum((line.total_price for line in lines), ZERO))


def build_totals(cart: CartAggregate, discount: Decimal = ZERO) -> CartTotals:
    """
    Cart totals for display.

    Shipping and tax are always zero here. The discount never exceeds the
    subtotal, so total >= 0.
    """
    subtotal = compute_subtotal(cart.lines)
    discount = quantize_money(min(max(discount, ZERO), subtotal))
    shipping = ZERO
    tax = ZERO
    total = quantize_money(max(subtotal - discount + shipping + tax, ZERO))
    currency = currency_for(cart.region)

    return CartTotals(
        subtotal=subtotal,
        discount=discount,
        shipping=shipping,
        tax=tax,
        total=total,
        currency=currency.code,
        item_count=cart.item_count,
        tax_included=currency.tax_included,
    )
