"""Shared BDD fixtures and step definitions for the order lifecycle."""

import pytest
from ordering.order.lines import AddOrderLine
from ordering.order.order import Order
from ordering.order.promotions import ApplyPromotionCode
from ordering.promotion.engine import PromotionEngine
from ordering.stock.ledger import ReservationLedger
from ordering.stock.stock import StockItem
from protean import current_domain
from pytest_bdd import given, parsers, then, when


@pytest.fixture()
def context():
    """Scenario state: variants by name, the cart under test and captured errors."""
    return {"variants": {}, "order_id": None, "error": None}


def _order(context) -> Order:
    return current_domain.repository_for(Order).get(context["order_id"])


def _variant_id(context, name):
    return context["variants"][name].id


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a variant "{name}" with stock {stock:d} priced {price:d}'))
def a_variant(context, make_variant, name, stock, price):
    context["variants"][name] = make_variant(stock=stock, price=price, name=name)


@given("an empty cart")
def an_empty_cart(context, open_cart):
    context["order_id"] = open_cart()


@given(parsers.cfparse('{quantity:d} of "{name}" are added to the cart'))
@when(parsers.cfparse('{quantity:d} of "{name}" are added to the cart'))
def add_to_cart(context, quantity, name):
    current_domain.process(
        AddOrderLine(order_id=context["order_id"], variant_id=_variant_id(context, name), quantity=quantity),
        asynchronous=False,
    )


@given(parsers.cfparse('a promotion code "{code}" giving {percent:d} percent off'))
def a_promotion_code(make_promotion, code, percent):
    make_promotion(code=code, discount_type="percentage", discount_value=percent)


@given(parsers.cfparse('the code "{code}" is applied to the cart'))
@when(parsers.cfparse('the code "{code}" is applied to the cart'))
def apply_code(context, code):
    current_domain.process(ApplyPromotionCode(order_id=context["order_id"], code=code), asynchronous=False)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the cart has {count:d} line with quantity {quantity:d}"))
def cart_lines(context, count, quantity):
    order = _order(context)
    assert len(order.lines) == count
    assert order.lines[0].quantity == quantity


@then(parsers.cfparse('the cart line for "{name}" holds {quantity:d} in reserve'))
def line_reservation(context, name, quantity):
    line = _order(context).line_for_variant(_variant_id(context, name))
    item = current_domain.repository_for(StockItem).get(_variant_id(context, name))
    assert item.reservation_for_line(line.id).quantity == quantity


@then(parsers.cfparse('the available stock of "{name}" is {available:d}'))
def available_stock(context, name, available):
    assert ReservationLedger().available_stock(_variant_id(context, name)) == available


@then(parsers.cfparse('the stock of "{name}" is {stock:d}'))
def stock_level(context, name, stock):
    assert current_domain.repository_for(StockItem).get(_variant_id(context, name)).stock == stock


@then(parsers.cfparse("the order discount is {discount:d} and the total is {total:d}"))
def order_amounts(context, discount, total):
    order = _order(context)
    assert order.discount == discount
    assert order.total == total


@then("the cart holds no reservations")
def no_reservations(context):
    for variant in context["variants"].values():
        item = current_domain.repository_for(StockItem).get(variant.id)
        assert item.reservations_for_order(context["order_id"]) == []


@then(parsers.cfparse('the promotion "{code}" has been used {count:d} time'))
def promotion_usage(code, count):
    assert PromotionEngine().find_by_code(code).usage_count == count
