"""Domain events for the Order aggregate.

An active order is the customer's cart, so line and promotion events cover
cart activity as well as placed orders.
"""

from protean.fields import DateTime, Identifier, Integer, String

from ordering.domain import ordering


@ordering.event(part_of="Order")
class CartOpened:
    """A new active order (cart) was started for a customer or a guest."""

    __version__ = 1

    order_id = Identifier(required=True)
    code = String(required=True)
    customer_id = Identifier()
    cart_token = String()


@ordering.event(part_of="Order")
class OrderLineAdded:
    __version__ = 1

    order_id = Identifier(required=True)
    line_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    sku = String()
    quantity = Integer(required=True)
    line_total = Integer(required=True)


@ordering.event(part_of="Order")
class OrderLineQuantityChanged:
    __version__ = 1

    order_id = Identifier(required=True)
    line_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@ordering.event(part_of="Order")
class OrderLineRemoved:
    __version__ = 1

    order_id = Identifier(required=True)
    line_id = Identifier(required=True)
    variant_id = Identifier(required=True)


@ordering.event(part_of="Order")
class PromotionApplied:
    """A promotion was attached to the order, by code or automatically."""

    __version__ = 1

    order_id = Identifier(required=True)
    promotion_id = Identifier(required=True)
    method = String(required=True)
    scope = String(required=True)
    discount_amount = Integer(required=True)


@ordering.event(part_of="Order")
class PromotionRemoved:
    __version__ = 1

    order_id = Identifier(required=True)
    promotion_id = Identifier(required=True)


@ordering.event(part_of="Order")
class OrderStateChanged:
    """The order moved to a new lifecycle state."""

    __version__ = 1

    order_id = Identifier(required=True)
    from_state = String(required=True)
    to_state = String(required=True)
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class CartAssignedToCustomer:
    """A guest cart was taken over by a signed-in customer."""

    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
