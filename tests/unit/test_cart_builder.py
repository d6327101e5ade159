"""
Tests for cart line arithmetic and the line state machine.
"""
from datetime import timedelta
from decimal import Decimal

import pytest

from cockpit_store.core.currency import Region
from cockpit_store.core.exceptions import (
    CartItemNotFound,
    CartNotFound,
    IllegalLineTransition,
    InternalError,
    InvalidQuantity,
)
from cockpit_store.core.utils import utcnow
from cockpit_store.services.cart_builder import (
    CartAggregate,
    CartLine,
    LineState,
    add_line,
    build_totals,
    clear,
    convert_lines,
    remove_line,
    update_quantity,
    validate_quantity,
)

D = Decimal
MAX = 100


def fresh_cart(**kwargs):
    kwargs.setdefault("expires_at", utcnow() + timedelta(days=7))
    return CartAggregate(id=1, **kwargs)


def add(cart, signature="sig-a", price="2398.00", quantity=1, product_id=1):
    return add_line(cart, product_id, {"product_id": product_id}, signature, D(price), quantity, MAX)


class TestAddLine:

    def test_new_line(self):
        cart = fresh_cart()
        line = add(cart)

        assert line.id is None
        assert line.state == LineState.CREATED
        assert cart.lines == [line]
        assert line.total_price == D("2398.00")

    def test_identical_configuration_merges(self):
        cart = fresh_cart()
        add(cart, quantity=1)
        merged = add(cart, quantity=2)

        assert len(cart.lines) == 1
        assert merged.quantity == 3

    def test_merge_keeps_original_unit_price(self):
        cart = fresh_cart()
        add(cart, price="2398.00")
        # Catalog price changed since the first add
        merged = add(cart, price="2498.00")

        assert merged.unit_price == D("2398.00")
        assert merged.total_price == D("4796.00")

    def test_different_signature_is_new_line(self):
        cart = fresh_cart()
        add(cart, signature="sig-a")
        add(cart, signature="sig-b", price="1999.00")

        assert len(cart.lines) == 2
        assert cart.item_count == 2

    def test_merge_over_maximum_rejected(self):
        cart = fresh_cart()
        add(cart, quantity=60)

        with pytest.raises(InvalidQuantity):
            add(cart, quantity=41)
        assert cart.lines[0].quantity == 60

    def test_unrounded_unit_price_refused(self):
        with pytest.raises(InternalError):
            add(fresh_cart(), price="10.005")

    def test_negative_unit_price_refused(self):
        with pytest.raises(InternalError):
            add(fresh_cart(), price="-1.00")

    def test_expired_cart_rejected(self):
        cart = fresh_cart(expires_at=utcnow() - timedelta(seconds=1))
        with pytest.raises(CartNotFound):
            add(cart)


class TestQuantity:

    @pytest.mark.parametrize("quantity", [0, -1, 101, True, 2.5, "3"])
    def test_invalid(self, quantity):
        with pytest.raises(InvalidQuantity) as exc_info:
            validate_quantity(quantity, MAX)
        assert exc_info.value.http_status == 400

    @pytest.mark.parametrize("quantity", [1, 50, 100])
    def test_valid(self, quantity):
        validate_quantity(quantity, MAX)

    def test_update_quantity(self):
        cart = fresh_cart(lines=[CartLine(1, {}, "sig", D("10.00"), 1, id=7)])
        updated = update_quantity(cart, 7, 5, MAX)

        assert updated.quantity == 5
        assert cart.get_line(7).quantity == 5

    def test_update_unknown_line(self):
        with pytest.raises(CartItemNotFound):
            update_quantity(fresh_cart(), 99, 2, MAX)


class TestLineStateMachine:

    def test_remove(self):
        cart = fresh_cart(lines=[CartLine(1, {}, "sig", D("10.00"), 1, id=7)])
        removed = remove_line(cart, 7)

        assert removed.state == LineState.REMOVED
        assert cart.lines == []

    def test_removed_line_is_terminal(self):
        line = CartLine(1, {}, "sig", D("10.00"), 1, id=7).removed()
        with pytest.raises(IllegalLineTransition):
            line.with_quantity(2)
        with pytest.raises(IllegalLineTransition):
            line.converted()

    def test_converted_line_is_terminal(self):
        line = CartLine(1, {}, "sig", D("10.00"), 1, id=7).converted()
        assert line.state == LineState.CONVERTED
        with pytest.raises(IllegalLineTransition):
            line.removed()

    def test_clear_and_convert(self):
        cart = fresh_cart()
        add(cart, signature="a")
        add(cart, signature="b")
        assert all(line.state == LineState.REMOVED for line in clear(cart))
        assert cart.lines == []

        add(cart, signature="c")
        converted = convert_lines(cart)
        assert [line.state for line in converted] == [LineState.CONVERTED]
        assert cart.lines == []


class TestTotals:

    def test_totals(self):
        cart = fresh_cart()
        add(cart, signature="a", price="2398.00")
        add(cart, signature="b", price="129.00", quantity=2)

        totals = build_totals(cart)

        assert totals.subtotal == D("2656.00")
        assert totals.discount == D("0.00")
        assert totals.shipping == D("0.00")
        assert totals.tax == D("0.00")
        assert totals.total == D("2656.00")
        assert totals.currency == "USD"
        assert totals.item_count == 3
        assert totals.tax_included is False

    def test_discount_clamped_to_subtotal(self):
        cart = fresh_cart()
        add(cart, price="50.00")
        totals = build_totals(cart, discount=D("80.00"))

        assert totals.discount == D("50.00")
        assert totals.total == D("0.00")

    def test_negative_discount_ignored(self):
        cart = fresh_cart()
        add(cart, price="50.00")
        assert build_totals(cart, discount=D("-5.00")).total == D("50.00")

    def test_eu_currency(self):
        cart = fresh_cart(region=Region.EU)
        add(cart, price="999.00")
        totals = build_totals(cart)

        assert totals.currency == "EUR"
        assert totals.tax_included is True
        assert totals.total == D("999.00")

    def test_empty_cart(self):
        totals = build_totals(fresh_cart())
        assert totals.subtotal == D("0.00")
        assert totals.item_count == 0
