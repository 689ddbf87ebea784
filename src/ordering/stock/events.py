"""Domain events for the StockItem aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from ordering.domain import ordering


@ordering.event(part_of="StockItem")
class StockReserved:
    """A quantity of a variant was put on hold for an order line."""

    __version__ = 1

    variant_id = Identifier(required=True)
    order_id = Identifier(required=True)
    order_line_id = Identifier(required=True)
    quantity = Integer(required=True)
    expires_at = DateTime(required=True)


@ordering.event(part_of="StockItem")
class ReservationReleased:
    """A hold was dropped (line removed, order cancelled or stock deducted)."""

    __version__ = 1

    variant_id = Identifier(required=True)
    order_id = Identifier(required=True)
    order_line_id = Identifier(required=True)
    quantity = Integer(required=True)
    reason = String(max_length=50)


@ordering.event(part_of="StockItem")
class StockDeducted:
    """Stock was permanently removed for a paid order."""

    __version__ = 1

    variant_id = Identifier(required=True)
    order_id = Identifier(required=True)
    quantity = Integer(required=True)
    new_stock = Integer(required=True)


@ordering.event(part_of="StockItem")
class StockRestored:
    """Previously deducted stock was put back after a cancellation."""

    __version__ = 1

    variant_id = Identifier(required=True)
    order_id = Identifier(required=True)
    quantity = Integer(required=True)
    new_stock = Integer(required=True)
