"""Order line management: commands and handler."""

from protean import handle
from protean.fields import Identifier, Integer

from ordering.domain import ordering
from ordering.order.order import Order
from ordering.order.service import OrderService
from ordering.utils.logging import logging_context


@ordering.command(part_of="Order")
class AddOrderLine:
    order_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)


@ordering.command(part_of="Order")
class UpdateOrderLineQuantity:
    """Set a line's quantity. Zero or less removes the line."""

    order_id = Identifier(required=True)
    line_id = Identifier(required=True)
    quantity = Integer(required=True)


@ordering.command(part_of="Order")
class RemoveOrderLine:
    order_id = Identifier(required=True)
    line_id = Identifier(required=True)


@ordering.command(part_of="Order")
class RecalculateOrderTotals:
    order_id = Identifier(required=True)


@ordering.command_handler(part_of=Order)
class ManageOrderLinesHandler:
    @handle(AddOrderLine)
    def add_order_line(self, command):
        with logging_context(order_id=str(command.order_id)):
            line = OrderService().add_line(command.order_id, command.variant_id, command.quantity)
            return str(line.id)

    @handle(UpdateOrderLineQuantity)
    def update_order_line_quantity(self, command):
        with logging_context(order_id=str(command.order_id)):
            outcome = OrderService().update_line_quantity(command.order_id, command.line_id, command.quantity)
            return outcome.value

    @handle(RemoveOrderLine)
    def remove_order_line(self, command):
        with logging_context(order_id=str(command.order_id)):
            OrderService().remove_line(command.order_id, command.line_id)

    @handle(RecalculateOrderTotals)
    def recalculate_order_totals(self, command):
        with logging_context(order_id=str(command.order_id)):
            return OrderService().recalculate_totals(command.order_id)
