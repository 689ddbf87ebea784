"""Promotions on an order: commands and handler."""

from protean import handle
from protean.fields import Identifier, String

from ordering.domain import ordering
from ordering.order.order import Order
from ordering.order.service import OrderService
from ordering.utils.logging import logging_context


@ordering.command(part_of="Order")
class ApplyPromotionCode:
    order_id = Identifier(required=True)
    code = String(required=True, max_length=50)
    customer_id = Identifier()


@ordering.command(part_of="Order")
class RemoveOrderPromotion:
    order_id = Identifier(required=True)
    promotion_id = Identifier(required=True)


@ordering.command(part_of="Order")
class RemoveAllOrderPromotions:
    order_id = Identifier(required=True)


@ordering.command_handler(part_of=Order)
class OrderPromotionsHandler:
    @handle(ApplyPromotionCode)
    def apply_promotion_code(self, command):
        with logging_context(order_id=str(command.order_id)):
            applied = OrderService().apply_promotion_code(command.order_id, command.code, command.customer_id)
            return str(applied.promotion_id)

    @handle(RemoveOrderPromotion)
    def remove_order_promotion(self, command):
        with logging_context(order_id=str(command.order_id)):
            return OrderService().remove_promotion(command.order_id, command.promotion_id)

    @handle(RemoveAllOrderPromotions)
    def remove_all_order_promotions(self, command):
        with logging_context(order_id=str(command.order_id)):
            return OrderService().remove_all_promotions(command.order_id)
