"""Order lifecycle transitions: command and handler."""

from protean import handle
from protean.fields import Identifier, String

from ordering.domain import ordering
from ordering.order.order import Order
from ordering.order.service import OrderService
from ordering.utils.logging import logging_context
from ordering.order.state_machine import OrderState


@ordering.command(part_of="Order")
class TransitionOrder:
    order_id = Identifier(required=True)
    new_state = String(required=True, choices=OrderState)


@ordering.command_handler(part_of=Order)
class TransitionOrderHandler:
    @handle(TransitionOrder)
    def transition_order(self, command):
        with logging_context(order_id=str(command.order_id)):
            order = OrderService().transition(command.order_id, command.new_state)
            return order.state
