"""Order totals.

``sync_shipping_discounts`` keeps free-shipping discounts equal to the current
shipping charge; ``compute_totals`` then derives every computed money field
from the lines, the applied promotions and the shipping charge without
changing the order.
"""

from dataclasses import dataclass
from datetime import UTC, datetime

from ordering.promotion.promotion import PromotionScope
from ordering.utils.clock import as_utc

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


@dataclass(frozen=True)
class OrderTotals:
    subtotal: int
    subtotal_net: int
    tax_total: int
    discount: int
    shipping: int
    total: int
    total_net: int
    is_tax_exempt: bool


def _in_applied_order(promotions):
    return sorted(promotions, key=lambda p: (as_utc(p.applied_at) or _EPOCH, str(p.promotion_id)))


def shipping_promotions(order):
    return _in_applied_order(p for p in order.promotions if p.scope == PromotionScope.SHIPPING.value)


def sync_shipping_discounts(order):
    """Give the first free-shipping promotion the whole shipping charge.

    Any further shipping promotion carries a zero discount.
    """
    raw_shipping = order.shipping_price or 0
    for position, applied in enumerate(shipping_promotions(order)):
        amount = raw_shipping if position == 0 else 0
        if applied.discount_amount != amount:
            applied.discount_amount = amount


def compute_totals(order, is_tax_exempt=None) -> OrderTotals:
    """Totals for the order as it stands.

    ``shipping`` is the raw shipping charge and ``discount`` includes the
    shipping discount, so ``total == subtotal - discount + shipping`` unless
    the total is clamped at zero.
    """
    is_tax_exempt = order.is_tax_exempt if is_tax_exempt is None else is_tax_exempt

    subtotal = sum(line.line_total for line in order.lines)
    tax_total = sum(line.tax_amount for line in order.lines)
    subtotal_net = sum(line.line_total_net for line in order.lines)

    order_product_discount = sum(
        p.discount_amount
        for p in order.promotions
        if p.scope in (PromotionScope.ORDER.value, PromotionScope.PRODUCT.value)
    )
    shipping_discount = sum(p.discount_amount for p in order.promotions if p.scope == PromotionScope.SHIPPING.value)

    raw_shipping = order.shipping_price or 0
    shipping_discount = min(shipping_discount, raw_shipping)
    effective_shipping = max(0, raw_shipping - shipping_discount)

    total = max(0, subtotal - order_product_discount + effective_shipping)
    if is_tax_exempt:
        tax_total = 0
        total_net = total
    else:
        total_net = max(0, subtotal_net - order_product_discount + effective_shipping)

    return OrderTotals(
        subtotal=subtotal,
        subtotal_net=subtotal_net,
        tax_total=tax_total,
        discount=order_product_discount + shipping_discount,
        shipping=raw_shipping,
        total=total,
        total_net=total_net,
        is_tax_exempt=bool(is_tax_exempt),
    )
