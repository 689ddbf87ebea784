"""ReservationLedger: per-variant, per-order-line stock holds with expiry.

Expired holds stay in place until the cleanup sweep deletes them, but they are
ignored when computing availability, so the sweep is housekeeping only.
"""

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from ordering.config import payment_hold, reservation_ttl
from ordering.errors import VariantNotFound
from ordering.stock.stock import ReleaseReason, StockItem
from ordering.utils.clock import get_clock

logger = structlog.get_logger(__name__)


class ReservationLedger:
    def __init__(self, clock=None, ttl=None):
        self._clock = clock
        self._ttl = ttl

    def now(self):
        return (self._clock or get_clock())()

    @property
    def ttl(self):
        return self._ttl or reservation_ttl()

    @property
    def repository(self):
        return current_domain.repository_for(StockItem)

    # -------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------
    def stock_item(self, variant_id) -> StockItem:
        try:
            return self.repository.get(variant_id)
        except ObjectNotFoundError:
            raise VariantNotFound(variant_id) from None

    def stock_items(self, variant_ids) -> dict[str, StockItem]:
        """Load each distinct variant's stock item once."""
        items = {}
        for variant_id in variant_ids:
            if str(variant_id) not in items:
                items[str(variant_id)] = self.stock_item(variant_id)
        return items

    def save(self, item: StockItem) -> StockItem:
        return self.repository.add(item)

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def available_stock(self, variant_id, exclude_order_id=None):
        """Stock minus active holds, ``UNLIMITED`` for untracked variants."""
        return self.stock_item(variant_id).available(self.now(), exclude_order_id)

    # -------------------------------------------------------------------
    # Holds
    # -------------------------------------------------------------------
    def reserve(self, variant_id, order_id, line_id, quantity, ttl=None, in_cart=0):
        """Check availability and hold ``quantity`` units for a new order line."""
        item = self.stock_item(variant_id)
        reservation = item.hold(order_id, line_id, quantity, self.now(), ttl or self.ttl, in_cart=in_cart)
        self.save(item)
        logger.info(
            "Stock reserved",
            variant_id=str(variant_id),
            order_id=str(order_id),
            order_line_id=str(line_id),
            quantity=quantity,
        )
        return reservation

    def update_quantity(self, variant_id, order_id, line_id, quantity, ttl=None, in_cart=0):
        """Change a line's hold to ``quantity`` and renew its expiry.

        A hold that has already been swept away is recreated.
        """
        item = self.stock_item(variant_id)
        reservation = item.hold(order_id, line_id, quantity, self.now(), ttl or self.ttl, in_cart=in_cart)
        self.save(item)
        logger.info(
            "Reservation updated",
            variant_id=str(variant_id),
            order_line_id=str(line_id),
            quantity=quantity,
        )
        return reservation

    def release(self, variant_id, line_id, reason=ReleaseReason.LINE_REMOVED) -> int:
        item = self.stock_item(variant_id)
        released = item.release_line(line_id, reason)
        if released:
            self.save(item)
            logger.info("Reservation released", variant_id=str(variant_id), order_line_id=str(line_id))
        return released

    def all_stock_items(self) -> list[StockItem]:
        records = self.repository._dao.query.all().items
        return [self.stock_item(record.id) for record in records]

    def _items_for(self, variant_ids):
        if variant_ids is None:
            return self.all_stock_items()
        return list(self.stock_items(variant_ids).values())

    def release_for_order(self, order_id, variant_ids=None, reason=ReleaseReason.ORDER_CANCELLED) -> int:
        """Drop every hold of an order.

        When ``variant_ids`` is not given all stock items are scanned.
        """
        released = 0
        for item in self._items_for(variant_ids):
            quantity = item.release_order(order_id, reason)
            if quantity:
                self.save(item)
                released += quantity
        logger.info("Order reservations released", order_id=str(order_id), quantity=released)
        return released

    def extend_for_order(self, order_id, extra=None, variant_ids=None) -> int:
        """Push the expiry of all of an order's holds to ``now + extra``."""
        expires_at = self.now() + (extra or payment_hold())
        extended = 0
        for item in self._items_for(variant_ids):
            count = item.extend_order(order_id, expires_at)
            if count:
                self.save(item)
                extended += count
        logger.info(
            "Order reservations extended",
            order_id=str(order_id),
            reservations=extended,
            expires_at=expires_at.isoformat(),
        )
        return extended

    def cleanup_expired(self) -> int:
        """Delete holds whose expiry is at or before now."""
        now = self.now()
        purged = 0
        for item in self.all_stock_items():
            count = item.purge_expired(now)
            if count:
                self.save(item)
                purged += count
        logger.info("Expired reservations purged", purged=purged)
        return purged

    # -------------------------------------------------------------------
    # Order checks
    # -------------------------------------------------------------------
    def shortfalls(self, order, items=None) -> list[str]:
        """One message per order line that asks for more than is available.

        Availability excludes the order's own holds, so a line is only short
        when other orders or lower stock now take the units it needs.
        """
        items = items if items is not None else self.stock_items(line.variant_id for line in order.lines)
        now = self.now()
        errors = []
        for line in order.lines:
            available = items[str(line.variant_id)].available(now, exclude_order_id=order.id)
            if line.quantity > available:
                if available == 0:
                    errors.append(f"{line.product_name} is no longer available")
                else:
                    errors.append(f"{line.product_name}: only {available} available")
        return errors
