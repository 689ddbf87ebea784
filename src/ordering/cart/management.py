"""Cart lookup, creation and guest-to-customer transfer.

A cart is simply the active order of a customer, or of a guest identified by
a random cart token kept by the client.
"""

import secrets
from dataclasses import dataclass

import structlog
from protean import handle
from protean.fields import Identifier, String

from ordering.domain import ordering
from ordering.errors import InsufficientStock, VariantNotFound
from ordering.order.order import Order, OrderLine
from ordering.order.queries import get_active_cart
from ordering.order.service import OrderService
from ordering.order.state_machine import OrderState
from ordering.stock.stock import ReleaseReason

logger = structlog.get_logger(__name__)


def generate_cart_token() -> str:
    return secrets.token_urlsafe(24)


@dataclass(frozen=True)
class CartSession:
    order: Order
    cart_token: str | None
    is_new: bool


def get_or_create_cart(customer_id=None, cart_token=None, service=None) -> CartSession:
    """The active cart for the customer or guest token, opening one if there is none.

    A new guest cart always gets a freshly generated token.
    """
    service = service or OrderService()
    cart = get_active_cart(customer_id=customer_id, cart_token=None if customer_id else cart_token)
    if cart is not None:
        return CartSession(order=cart, cart_token=cart.cart_token, is_new=False)

    new_token = None if customer_id else generate_cart_token()
    cart = Order.open_cart(customer_id=customer_id, cart_token=new_token)
    service.refresh(cart)
    service.save(cart)
    logger.info("Cart opened", order_id=str(cart.id), customer_id=customer_id, guest=customer_id is None)
    return CartSession(order=cart, cart_token=new_token, is_new=True)


def transfer_cart(cart_token, customer_id, service=None) -> Order | None:
    """Move a guest cart to a customer who just signed in.

    If the customer already has a cart, the guest lines are merged into it and
    the guest cart is cancelled; otherwise the guest cart becomes the
    customer's. A merge that cannot be completed is logged and reported as
    ``None``, the same as when there is no guest cart.
    """
    service = service or OrderService()
    guest = get_active_cart(cart_token=cart_token)
    if guest is None:
        return None

    target = get_active_cart(customer_id=customer_id)
    if target is None:
        guest.assign_customer(customer_id)
        service.refresh(guest)
        service.save(guest)
        logger.info("Guest cart assigned to customer", order_id=str(guest.id), customer_id=str(customer_id))
        return guest

    try:
        _merge_into(guest, target, service)
    except (InsufficientStock, VariantNotFound) as exc:
        logger.warning(
            "Guest cart merge failed",
            guest_order_id=str(guest.id),
            order_id=str(target.id),
            error=str(exc.messages),
        )
        return None

    logger.info("Guest cart merged", guest_order_id=str(guest.id), order_id=str(target.id))
    return target


def _merge_into(guest, target, service):
    """Move guest lines into ``target``.

    All holds are worked out on the loaded stock items first; nothing is saved
    until every line fits.
    """
    ledger = service.ledger
    now = ledger.now()
    items = ledger.stock_items(line.variant_id for line in guest.lines)
    for item in items.values():
        item.release_order(guest.id, ReleaseReason.CART_MERGED)

    is_exempt = bool(target.is_tax_exempt)
    additions = []
    increases = []
    for guest_line in guest.lines:
        existing = target.line_for_variant(guest_line.variant_id)
        item = items[str(guest_line.variant_id)]
        if existing is not None:
            merged = existing.quantity + guest_line.quantity
            item.hold(target.id, existing.id, merged, now, ledger.ttl, in_cart=existing.quantity)
            increases.append((existing.id, merged))
        else:
            line = OrderLine(
                variant_id=guest_line.variant_id,
                product_id=guest_line.product_id,
                product_name=guest_line.product_name,
                variant_name=guest_line.variant_name,
                sku=guest_line.sku,
                quantity=guest_line.quantity,
                list_price=guest_line.list_price,
                unit_price=guest_line.list_price,
                unit_price_net=guest_line.unit_price_net,
                line_total=guest_line.list_price * guest_line.quantity,
                line_total_net=guest_line.line_total_net,
                tax_code=guest_line.tax_code,
                tax_rate=guest_line.tax_rate,
            )
            line.reprice(guest_line.quantity, is_exempt)
            item.hold(target.id, line.id, line.quantity, now, ledger.ttl)
            additions.append(line)

    for item in items.values():
        ledger.save(item)
    for line_id, quantity in increases:
        target.change_line_quantity(line_id, quantity, is_exempt)
    for line in additions:
        target.add_line(line)

    guest.transition_to(OrderState.CANCELLED.value, now)
    service.refresh(guest)
    service.refresh(target)
    service.save(guest)
    service.save(target)


@ordering.command(part_of="Order")
class OpenCart:
    """Find or start the active cart for a customer or a guest token."""

    customer_id = Identifier()
    cart_token = String(max_length=64)


@ordering.command(part_of="Order")
class TransferCart:
    cart_token = String(required=True, max_length=64)
    customer_id = Identifier(required=True)


@ordering.command_handler(part_of=Order)
class CartManagementHandler:
    @handle(OpenCart)
    def open_cart(self, command):
        session = get_or_create_cart(customer_id=command.customer_id, cart_token=command.cart_token)
        return {
            "order_id": str(session.order.id),
            "cart_token": session.cart_token,
            "is_new": session.is_new,
        }

    @handle(TransferCart)
    def transfer_cart(self, command):
        order = transfer_cart(command.cart_token, command.customer_id)
        return str(order.id) if order else None
