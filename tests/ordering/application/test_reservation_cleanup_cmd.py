"""Application tests for the expired reservation sweep."""

from datetime import timedelta

from ordering.order.lines import AddOrderLine
from ordering.stock.cleanup import CleanupExpiredReservations
from ordering.stock.ledger import ReservationLedger
from protean import current_domain


def _add(order_id, variant_id, quantity=1):
    current_domain.process(
        AddOrderLine(order_id=order_id, variant_id=variant_id, quantity=quantity),
        asynchronous=False,
    )


class TestCleanupExpiredReservations:
    def test_deletes_expired_holds_only(self, open_cart, make_variant, load_stock, clock):
        variant = make_variant(stock=10)
        _add(open_cart(), variant.id, 1)
        clock.advance(minutes=10)
        _add(open_cart(), variant.id, 1)
        clock.advance(minutes=6)

        purged = current_domain.process(CleanupExpiredReservations(), asynchronous=False)

        assert purged == 1
        assert len(load_stock(variant.id).reservations) == 1

    def test_as_of_overrides_now(self, open_cart, make_variant, load_stock, clock):
        variant = make_variant(stock=10)
        _add(open_cart(), variant.id, 1)

        assert current_domain.process(CleanupExpiredReservations(as_of=clock()), asynchronous=False) == 0
        purged = current_domain.process(
            CleanupExpiredReservations(as_of=clock() + timedelta(hours=1)),
            asynchronous=False,
        )
        assert purged == 1
        assert load_stock(variant.id).reservations == []

    def test_sweep_does_not_change_availability(self, open_cart, make_variant, clock):
        variant = make_variant(stock=3)
        _add(open_cart(), variant.id, 3)
        clock.advance(minutes=30)
        before = ReservationLedger().available_stock(variant.id)

        current_domain.process(CleanupExpiredReservations(), asynchronous=False)

        assert ReservationLedger().available_stock(variant.id) == before == 3
