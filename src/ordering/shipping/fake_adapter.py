"""Flat-rate shipping providers for development and testing."""

from ordering.shipping.port import ShippingProvider


class FlatRateShipping(ShippingProvider):
    """Charges a fixed price, optionally free above an order subtotal.

    The subtotal is read from the order's lines, so the rate follows the
    cart while its stored totals are being recomputed.
    """

    def __init__(self, code: str, name: str, price: int, free_above: int | None = None) -> None:
        self.code = code
        self.name = name
        self.price = price
        self.free_above = free_above
        self.calls: list[dict] = []

    def rate_for(self, order) -> int:
        self.calls.append({"method": "rate_for", "order_id": str(order.id)})
        subtotal = sum(line.line_total for line in order.lines)
        if self.free_above is not None and subtotal >= self.free_above:
            return 0
        return self.price
