"""Read-side lookups over orders and carts."""

from datetime import UTC, datetime

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from ordering.errors import OrderNotFound
from ordering.order.order import Order
from ordering.order.state_machine import OrderState
from ordering.utils.clock import as_utc

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

# States in which an order counts as a redemption of its promotions
REDEEMED_STATES = (OrderState.PAID.value, OrderState.SHIPPED.value, OrderState.DELIVERED.value)


def _repo():
    return current_domain.repository_for(Order)


def _load(records) -> list[Order]:
    repo = _repo()
    return [repo.get(record.id) for record in records]


def _newest_first(orders):
    return sorted(orders, key=lambda order: as_utc(order.created_at) or _EPOCH, reverse=True)


def get_order(order_id) -> Order:
    try:
        return _repo().get(order_id)
    except ObjectNotFoundError:
        raise OrderNotFound(order_id) from None


def get_order_by_code(code) -> Order | None:
    records = _repo()._dao.query.filter(code=code.strip().upper()).all().items
    return _load(records)[0] if records else None


def get_active_cart(customer_id=None, cart_token=None) -> Order | None:
    """The active order of a customer, or of a guest identified by cart token."""
    if customer_id:
        criteria = {"customer_id": str(customer_id)}
    elif cart_token:
        criteria = {"cart_token": cart_token}
    else:
        return None
    records = _repo()._dao.query.filter(active=True, **criteria).all().items
    carts = _newest_first(_load(records))
    return carts[0] if carts else None


def list_orders_for_customer(customer_id, include_active=False, limit=20, offset=0) -> list[Order]:
    records = _repo()._dao.query.filter(customer_id=str(customer_id)).all().items
    orders = [order for order in _load(records) if include_active or not order.active]
    return _newest_first(orders)[offset : offset + limit]


def list_orders(state=None, limit=20, offset=0) -> list[Order]:
    query = _repo()._dao.query
    records = query.filter(state=OrderState(state).value).all().items if state else query.all().items
    return _newest_first(_load(records))[offset : offset + limit]


def count_promotion_uses(customer_id, promotion_id) -> int:
    """Orders of a customer that redeemed the promotion (reached ``paid`` or later)."""
    records = _repo()._dao.query.filter(customer_id=str(customer_id)).all().items
    return sum(
        1
        for order in _load(records)
        if order.state in REDEEMED_STATES and order.applied_promotion(promotion_id) is not None
    )
