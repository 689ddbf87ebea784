"""BDD tests for the order lifecycle: reservations, discounts, payment and cancellation."""

from ordering.errors import InsufficientStock
from ordering.order.lines import AddOrderLine
from ordering.order.transitions import TransitionOrder
from protean import current_domain
from pytest_bdd import parsers, scenarios, then, when

scenarios("features/order_lifecycle.feature")


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('another cart tries to add {quantity:d} of "{name}"'))
def another_cart_adds(context, open_cart, quantity, name):
    other = open_cart()
    try:
        current_domain.process(
            AddOrderLine(order_id=other, variant_id=context["variants"][name].id, quantity=quantity),
            asynchronous=False,
        )
    except InsufficientStock as exc:
        context["error"] = exc


@when(parsers.cfparse('the order moves to "{state}"'))
def order_moves_to(context, state):
    current_domain.process(TransitionOrder(order_id=context["order_id"], new_state=state), asynchronous=False)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the add is rejected with {available:d} available"))
def add_rejected(context, available):
    assert isinstance(context["error"], InsufficientStock)
    assert context["error"].available == available
