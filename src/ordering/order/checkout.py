"""Checkout details on an active order: commands and handler."""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String

from ordering.domain import ordering
from ordering.order.order import Order
from ordering.order.service import OrderService
from ordering.utils.logging import logging_context
from ordering.shipping import get_shipping_provider


@ordering.command(part_of="Order")
class SetShippingAddress:
    order_id = Identifier(required=True)
    full_name = String(max_length=255)
    company = String(max_length=255)
    street = String(required=True, max_length=255)
    street2 = String(max_length=255)
    city = String(required=True, max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=2)
    phone = String(max_length=30)


@ordering.command(part_of="Order")
class SetCustomerEmail:
    order_id = Identifier(required=True)
    email = String(required=True, max_length=254)


@ordering.command(part_of="Order")
class SetShippingMethod:
    order_id = Identifier(required=True)
    method_code = String(required=True, max_length=50)


@ordering.command_handler(part_of=Order)
class CheckoutDetailsHandler:
    @handle(SetShippingAddress)
    def set_shipping_address(self, command):
        with logging_context(order_id=str(command.order_id)):
            service = OrderService()
            order = service.load(command.order_id)
            order.set_shipping_address(
                full_name=command.full_name,
                company=command.company,
                street=command.street,
                street2=command.street2,
                city=command.city,
                postal_code=command.postal_code,
                country=command.country.upper(),
                phone=command.phone,
            )
            service.save(order)

    @handle(SetCustomerEmail)
    def set_customer_email(self, command):
        with logging_context(order_id=str(command.order_id)):
            service = OrderService()
            order = service.load(command.order_id)
            order.set_customer_email(command.email)
            service.save(order)

    @handle(SetShippingMethod)
    def set_shipping_method(self, command):
        with logging_context(order_id=str(command.order_id)):
            service = OrderService()
            order = service.load(command.order_id)
            order.assert_modifiable()
            try:
                provider = get_shipping_provider(command.method_code)
            except ValueError as exc:
                raise ValidationError({"method_code": [str(exc)]}) from exc

            order.set_shipping_method(provider.code, provider.rate_for(order))
            service.refresh(order)
            service.save(order)
            return order.shipping_price
