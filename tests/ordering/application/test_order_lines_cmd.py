"""Application tests for order line commands."""

import pytest
from ordering.errors import InsufficientStock, LineNotFound, OrderNotModifiable, VariantNotFound
from ordering.order.lines import AddOrderLine, RecalculateOrderTotals, RemoveOrderLine, UpdateOrderLineQuantity
from ordering.order.service import OrderService, StockCheck, can_add_to_cart
from ordering.order.transitions import TransitionOrder
from ordering.stock.ledger import ReservationLedger
from protean import current_domain


def _add(order_id, variant_id, quantity=1):
    return current_domain.process(
        AddOrderLine(order_id=order_id, variant_id=variant_id, quantity=quantity),
        asynchronous=False,
    )


def _update(order_id, line_id, quantity):
    return current_domain.process(
        UpdateOrderLineQuantity(order_id=order_id, line_id=line_id, quantity=quantity),
        asynchronous=False,
    )


class TestAddOrderLine:
    def test_line_is_priced_and_totals_follow(self, open_cart, make_variant, load_order):
        order_id = open_cart()
        variant = make_variant(price=1240)

        line_id = _add(order_id, variant.id, 3)

        order = load_order(order_id)
        line = order.get_line(line_id)
        assert line.line_total == 3720
        assert line.tax_amount == 720
        assert order.subtotal == 3720
        assert order.subtotal_net == 3000
        assert order.tax_total == 720
        assert order.total == 3720

    def test_stock_is_reserved_for_the_line(self, open_cart, make_variant, load_stock):
        order_id = open_cart()
        variant = make_variant(stock=10)

        line_id = _add(order_id, variant.id, 4)

        reservation = load_stock(variant.id).reservation_for_line(line_id)
        assert reservation.quantity == 4
        assert str(reservation.order_id) == order_id

    def test_same_variant_merges_into_one_line(self, open_cart, make_variant, load_order, load_stock):
        order_id = open_cart()
        variant = make_variant(stock=10)

        first = _add(order_id, variant.id, 2)
        second = _add(order_id, variant.id, 3)

        order = load_order(order_id)
        assert first == second
        assert len(order.lines) == 1
        assert order.lines[0].quantity == 5
        assert load_stock(variant.id).reservation_for_line(first).quantity == 5

    def test_rejects_quantity_beyond_stock(self, open_cart, make_variant, load_order, load_stock):
        order_id = open_cart()
        variant = make_variant(stock=5)

        with pytest.raises(InsufficientStock) as exc:
            _add(order_id, variant.id, 6)

        assert exc.value.messages["quantity"] == ["Only 5 items available"]
        assert len(load_order(order_id).lines) == 0
        assert len(load_stock(variant.id).reservations) == 0

    def test_merge_error_mentions_quantity_in_cart(self, open_cart, make_variant, load_order):
        order_id = open_cart()
        variant = make_variant(stock=5)
        _add(order_id, variant.id, 2)

        with pytest.raises(InsufficientStock) as exc:
            _add(order_id, variant.id, 4)

        assert exc.value.messages["quantity"] == ["Only 5 items available (2 already in cart)"]
        assert load_order(order_id).lines[0].quantity == 2

    def test_merge_counts_stock_held_by_other_carts(self, open_cart, make_variant, load_order, load_stock):
        variant = make_variant(stock=5)
        _add(open_cart(), variant.id, 2)
        order_id = open_cart()
        line_id = _add(order_id, variant.id, 2)

        with pytest.raises(InsufficientStock) as exc:
            _add(order_id, variant.id, 2)

        assert exc.value.messages["quantity"] == ["Only 3 items available (2 already in cart)"]
        assert load_order(order_id).lines[0].quantity == 2
        assert load_stock(variant.id).reservation_for_line(line_id).quantity == 2

    def test_stock_held_by_another_cart_is_unavailable(self, open_cart, make_variant):
        variant = make_variant(stock=3)
        _add(open_cart(), variant.id, 2)

        with pytest.raises(InsufficientStock):
            _add(open_cart(), variant.id, 2)

    def test_expired_hold_of_another_cart_does_not_block(self, open_cart, make_variant, clock):
        variant = make_variant(stock=3)
        _add(open_cart(), variant.id, 3)
        clock.advance(minutes=16)

        assert _add(open_cart(), variant.id, 3)

    def test_unknown_variant(self, open_cart):
        with pytest.raises(VariantNotFound):
            _add(open_cart(), "missing-variant", 1)

    def test_reduced_tax_code(self, open_cart, make_variant, load_order):
        order_id = open_cart()
        variant = make_variant(price=1140, tax_code="food")

        line_id = _add(order_id, variant.id, 1)

        line = load_order(order_id).get_line(line_id)
        assert line.tax_rate == 0.14
        assert line.unit_price_net == 1000
        assert line.tax_amount == 140

    def test_exempt_customer_pays_net(self, open_cart, make_variant, make_customer, load_order):
        customer = make_customer(b2b_status="approved", vat_id="EL094019245")
        order_id = open_cart(customer_id=customer.id)
        variant = make_variant(price=1240)

        _add(order_id, variant.id, 2)

        order = load_order(order_id)
        assert order.is_tax_exempt is True
        assert order.subtotal == 2000
        assert order.tax_total == 0
        assert order.total == order.total_net == 2000

    def test_placed_order_is_not_modifiable(self, open_cart, make_variant):
        order_id = open_cart()
        variant = make_variant()
        _add(order_id, variant.id, 1)
        current_domain.process(TransitionOrder(order_id=order_id, new_state="payment_pending"), asynchronous=False)

        with pytest.raises(OrderNotModifiable):
            _add(order_id, variant.id, 1)


class TestUpdateOrderLineQuantity:
    def test_update(self, open_cart, make_variant, load_order, load_stock):
        order_id = open_cart()
        variant = make_variant(stock=10, price=1000)
        line_id = _add(order_id, variant.id, 1)

        assert _update(order_id, line_id, 4) == "updated"

        order = load_order(order_id)
        assert order.get_line(line_id).quantity == 4
        assert order.subtotal == 4000
        assert load_stock(variant.id).reservation_for_line(line_id).quantity == 4

    def test_zero_quantity_removes_line(self, open_cart, make_variant, load_order, load_stock):
        order_id = open_cart()
        variant = make_variant()
        line_id = _add(order_id, variant.id, 2)

        assert _update(order_id, line_id, 0) == "removed"

        order = load_order(order_id)
        assert len(order.lines) == 0
        assert order.total == 0
        assert len(load_stock(variant.id).reservations) == 0

    def test_update_beyond_stock_keeps_line(self, open_cart, make_variant, load_order):
        order_id = open_cart()
        variant = make_variant(stock=3)
        line_id = _add(order_id, variant.id, 1)

        with pytest.raises(InsufficientStock):
            _update(order_id, line_id, 4)

        assert load_order(order_id).get_line(line_id).quantity == 1

    def test_unknown_line(self, open_cart):
        with pytest.raises(LineNotFound):
            _update(open_cart(), "missing-line", 2)


class TestRemoveOrderLine:
    def test_remove_releases_stock(self, open_cart, make_variant, load_order):
        order_id = open_cart()
        variant = make_variant(stock=4)
        line_id = _add(order_id, variant.id, 4)

        current_domain.process(RemoveOrderLine(order_id=order_id, line_id=line_id), asynchronous=False)

        assert len(load_order(order_id).lines) == 0
        assert ReservationLedger().available_stock(variant.id) == 4


class TestRecalculateOrderTotals:
    def test_recalculation_is_idempotent(self, open_cart, make_variant, load_order):
        order_id = open_cart()
        _add(order_id, make_variant(price=999).id, 3)

        first = current_domain.process(RecalculateOrderTotals(order_id=order_id), asynchronous=False)
        second = current_domain.process(RecalculateOrderTotals(order_id=order_id), asynchronous=False)

        assert first == second
        assert load_order(order_id).total == first.total == 2997


class TestCanAddToCart:
    def test_within_availability(self):
        assert can_add_to_cart(requested=2, existing=3, available=5)

    def test_beyond_availability(self):
        assert not can_add_to_cart(requested=3, existing=3, available=5)

    def test_untracked_stock(self):
        assert can_add_to_cart(requested=1000, existing=1, available=float("inf"))


class TestValidateStock:
    def test_held_lines_are_valid(self, open_cart, make_variant):
        order_id = open_cart()
        _add(order_id, make_variant(stock=3).id, 3)

        assert OrderService().validate_stock(order_id) == StockCheck(valid=True, errors=[])

    def test_reports_lines_taken_after_holds_expired(self, open_cart, make_variant, clock):
        lamp = make_variant(stock=3, name="Lamp")
        chair = make_variant(stock=4, name="Chair")
        order_id = open_cart()
        _add(order_id, lamp.id, 3)
        _add(order_id, chair.id, 2)
        clock.advance(minutes=16)

        other = open_cart()
        _add(other, lamp.id, 3)
        _add(other, chair.id, 3)

        check = OrderService().validate_stock(order_id)
        assert check.valid is False
        assert sorted(check.errors) == ["Chair: only 1 available", "Lamp is no longer available"]
