"""StockItem aggregate: stock level and reservations for one product variant.

The aggregate id is the variant id. Reservations are held inside the aggregate
so that checking availability and writing a hold happen against a single
versioned record: two writers racing for the last units of a variant conflict
on the aggregate version instead of both succeeding.

Stock model:
    stock:     units on hand
    reserved:  sum of active (unexpired) reservation quantities
    available: max(0, stock - reserved), unbounded when inventory is not tracked
"""

import math

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, HasMany, Identifier, Integer

from ordering.domain import ordering
from ordering.errors import InsufficientStock
from ordering.stock.events import ReservationReleased, StockDeducted, StockReserved, StockRestored
from ordering.utils.clock import as_utc

UNLIMITED = math.inf


class ReleaseReason:
    LINE_REMOVED = "line_removed"
    ORDER_CANCELLED = "order_cancelled"
    STOCK_DEDUCTED = "stock_deducted"
    CART_MERGED = "cart_merged"


@ordering.entity(part_of="StockItem")
class StockReservation:
    """A hold on stock for one order line, active until ``expires_at``."""

    order_id = Identifier(required=True)
    order_line_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    reserved_at = DateTime(required=True)
    expires_at = DateTime(required=True)

    def is_active(self, now) -> bool:
        return as_utc(self.expires_at) > now


@ordering.aggregate
class StockItem:
    stock = Integer(default=0)
    track_inventory = Boolean(default=True)
    reservations = HasMany(StockReservation)

    @classmethod
    def create(cls, variant_id, stock=0, track_inventory=True):
        return cls(id=variant_id, stock=stock, track_inventory=track_inventory)

    # -------------------------------------------------------------------
    # Availability
    # -------------------------------------------------------------------
    def reserved_quantity(self, now, exclude_order_id=None) -> int:
        return sum(
            reservation.quantity
            for reservation in self.reservations
            if reservation.is_active(now)
            and (exclude_order_id is None or str(reservation.order_id) != str(exclude_order_id))
        )

    def available(self, now, exclude_order_id=None):
        """Units that can still be sold, or ``UNLIMITED`` when stock is not tracked."""
        if not self.track_inventory:
            return UNLIMITED
        return max(0, self.stock - self.reserved_quantity(now, exclude_order_id))

    def reservation_for_line(self, line_id) -> StockReservation | None:
        return next((r for r in self.reservations if str(r.order_line_id) == str(line_id)), None)

    def reservations_for_order(self, order_id) -> list[StockReservation]:
        return [r for r in self.reservations if str(r.order_id) == str(order_id)]

    # -------------------------------------------------------------------
    # Holds
    # -------------------------------------------------------------------
    def hold(self, order_id, line_id, quantity, now, ttl, in_cart=0) -> StockReservation:
        """Reserve ``quantity`` units for an order line, replacing any existing hold.

        Availability is computed without the order's own reservations, so
        raising the quantity of a line never blocks on its previous hold. Any
        change to the hold renews its expiry.
        """
        if quantity < 1:
            raise ValidationError({"quantity": ["Reserved quantity must be at least 1"]})

        available = self.available(now, exclude_order_id=order_id)
        if quantity > available:
            raise InsufficientStock(available=available, in_cart=in_cart)

        expires_at = now + ttl
        reservation = self.reservation_for_line(line_id)
        if reservation:
            reservation.quantity = quantity
            reservation.expires_at = expires_at
        else:
            reservation = StockReservation(
                order_id=order_id,
                order_line_id=line_id,
                quantity=quantity,
                reserved_at=now,
                expires_at=expires_at,
            )
            self.add_reservations(reservation)

        self.raise_(
            StockReserved(
                variant_id=str(self.id),
                order_id=str(order_id),
                order_line_id=str(line_id),
                quantity=quantity,
                expires_at=expires_at,
            )
        )
        return reservation

    def _drop(self, reservations, reason) -> int:
        released = 0
        for reservation in reservations:
            self.remove_reservations(reservation)
            released += reservation.quantity
            self.raise_(
                ReservationReleased(
                    variant_id=str(self.id),
                    order_id=str(reservation.order_id),
                    order_line_id=str(reservation.order_line_id),
                    quantity=reservation.quantity,
                    reason=reason,
                )
            )
        return released

    def release_line(self, line_id, reason=ReleaseReason.LINE_REMOVED) -> int:
        """Drop the hold for an order line. Returns the quantity released."""
        reservation = self.reservation_for_line(line_id)
        return self._drop([reservation] if reservation else [], reason)

    def release_order(self, order_id, reason=ReleaseReason.ORDER_CANCELLED) -> int:
        return self._drop(self.reservations_for_order(order_id), reason)

    def extend_order(self, order_id, expires_at) -> int:
        """Move every hold of the order to expire at ``expires_at``."""
        reservations = self.reservations_for_order(order_id)
        for reservation in reservations:
            reservation.expires_at = expires_at
        return len(reservations)

    def purge_expired(self, now) -> int:
        """Delete holds whose expiry has passed. Returns how many were deleted."""
        expired = [r for r in self.reservations if not r.is_active(now)]
        for reservation in expired:
            self.remove_reservations(reservation)
        return len(expired)

    # -------------------------------------------------------------------
    # Stock movements
    # -------------------------------------------------------------------
    def deduct(self, quantity, order_id):
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        self.stock -= quantity
        self.raise_(
            StockDeducted(
                variant_id=str(self.id),
                order_id=str(order_id),
                quantity=quantity,
                new_stock=self.stock,
            )
        )

    def restore(self, quantity, order_id):
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        self.stock += quantity
        self.raise_(
            StockRestored(
                variant_id=str(self.id),
                order_id=str(order_id),
                quantity=quantity,
                new_stock=self.stock,
            )
        )
