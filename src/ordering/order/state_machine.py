"""Order lifecycle states, the transition table and transition side effects.

    created ──► payment_pending ──► paid ──► shipped ──► delivered
       │               │              │
       └───────────────┴──────────────┴──► cancelled

Only ``created`` orders (carts) can be modified. ``delivered`` and
``cancelled`` are terminal.
"""

from enum import Enum

import structlog
from protean.utils.globals import current_domain

from ordering.errors import InvalidTransition, StockUnavailableAtPayment
from ordering.promotion.engine import PromotionEngine
from ordering.promotion.promotion import Promotion
from ordering.stock.ledger import ReservationLedger
from ordering.stock.stock import ReleaseReason

logger = structlog.get_logger(__name__)


class OrderState(Enum):
    CREATED = "created"
    PAYMENT_PENDING = "payment_pending"
    PAID = "paid"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


_VALID_TRANSITIONS = {
    OrderState.CREATED: (OrderState.PAYMENT_PENDING, OrderState.CANCELLED),
    OrderState.PAYMENT_PENDING: (OrderState.PAID, OrderState.CANCELLED),
    OrderState.PAID: (OrderState.SHIPPED, OrderState.CANCELLED),
    OrderState.SHIPPED: (OrderState.DELIVERED,),
    OrderState.DELIVERED: (),  # Terminal
    OrderState.CANCELLED: (),  # Terminal
}

_STOCK_DEDUCTED_STATES = (OrderState.PAID, OrderState.SHIPPED)


def allowed_transitions(state) -> list[str]:
    return [target.value for target in _VALID_TRANSITIONS[OrderState(state)]]


def is_valid_transition(current, new) -> bool:
    try:
        return OrderState(new) in _VALID_TRANSITIONS[OrderState(current)]
    except ValueError:
        return False


def is_terminal_state(state) -> bool:
    return not _VALID_TRANSITIONS[OrderState(state)]


def is_modifiable_state(state) -> bool:
    return OrderState(state) is OrderState.CREATED


class OrderStateMachine:
    """Applies a transition together with its stock and promotion side effects.

    Everything that can fail is checked before anything is changed. The caller
    persists the order; stock items and promotions are saved here.
    """

    def __init__(self, ledger=None, promotions=None):
        self.ledger = ledger or ReservationLedger()
        self.promotions = promotions or PromotionEngine()

    def transition(self, order, new_state):
        previous = OrderState(order.state)
        if not is_valid_transition(previous.value, new_state):
            raise InvalidTransition(previous.value, new_state)
        target = OrderState(new_state)

        items = self.ledger.stock_items(line.variant_id for line in order.lines)
        promotions = []
        if target is OrderState.PAID:
            errors = self.ledger.shortfalls(order, items)
            if errors:
                logger.warning("Stock re-validation failed at payment", order_id=str(order.id), errors=errors)
                raise StockUnavailableAtPayment(errors)
            promotions = [
                promotion
                for promotion in (self.promotions.get(applied.promotion_id) for applied in order.promotions)
                if promotion is not None
            ]

        now = self.ledger.now()
        order.transition_to(target.value, now)

        if target is OrderState.PAYMENT_PENDING:
            self.ledger.extend_for_order(order.id, variant_ids=list(items))

        elif target is OrderState.PAID:
            promotion_repo = current_domain.repository_for(Promotion)
            for promotion in promotions:
                promotion.record_usage()
                promotion_repo.add(promotion)
            for line in order.lines:
                items[str(line.variant_id)].deduct(line.quantity, order.id)
            for item in items.values():
                item.release_order(order.id, ReleaseReason.STOCK_DEDUCTED)
                self.ledger.save(item)
            logger.info("Stock deducted for paid order", order_id=str(order.id), lines=len(order.lines))

        elif target is OrderState.CANCELLED:
            if previous in _STOCK_DEDUCTED_STATES:
                for line in order.lines:
                    items[str(line.variant_id)].restore(line.quantity, order.id)
                logger.info("Stock restored for cancelled order", order_id=str(order.id))
            for item in items.values():
                item.release_order(order.id, ReleaseReason.ORDER_CANCELLED)
                self.ledger.save(item)

        logger.info(
            "Order state changed",
            order_id=str(order.id),
            from_state=previous.value,
            to_state=target.value,
        )
        return order
