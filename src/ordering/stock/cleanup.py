"""Reservation cleanup: periodic sweep that deletes expired holds.

Meant to be triggered by an external scheduler on any cadence. Expired holds
already count for nothing in availability checks, so skipping a run is harmless.
"""

from protean import handle
from protean.fields import DateTime

from ordering.domain import ordering
from ordering.stock.ledger import ReservationLedger
from ordering.stock.stock import StockItem
from ordering.utils.clock import as_utc


@ordering.command(part_of="StockItem")
class CleanupExpiredReservations:
    """Delete reservations that expired at or before ``as_of`` (default: now)."""

    as_of = DateTime()


@ordering.command_handler(part_of=StockItem)
class CleanupExpiredReservationsHandler:
    @handle(CleanupExpiredReservations)
    def cleanup_expired_reservations(self, command):
        clock = (lambda: as_utc(command.as_of)) if command.as_of else None
        return ReservationLedger(clock=clock).cleanup_expired()
