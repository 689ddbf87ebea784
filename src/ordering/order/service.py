"""OrderService: line, promotion and lifecycle operations on an order.

Every mutation loads the order once, validates, applies its change, restores
the computed state (automatic promotions, shipping discount, totals) and saves
the order. Called from command handlers, all writes of one operation share the
handler's unit of work, so a failed validation leaves nothing behind.
"""

from dataclasses import dataclass, field
from enum import Enum

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from ordering.catalogue.variant import get_variant
from ordering.customer.customer import is_customer_tax_exempt
from ordering.errors import InsufficientStock, PromotionInvalid
from ordering.order.order import Order
from ordering.order.queries import get_order
from ordering.order.state_machine import OrderState, OrderStateMachine
from ordering.order.totals import compute_totals, sync_shipping_discounts
from ordering.promotion.engine import PromotionEngine, order_subtotal
from ordering.promotion.promotion import PromotionMethod
from ordering.shipping import get_shipping_provider
from ordering.stock.ledger import ReservationLedger
from ordering.tax.rates import get_tax_rate

logger = structlog.get_logger(__name__)


class LineUpdate(Enum):
    """Outcome of a line quantity update."""

    UPDATED = "updated"
    REMOVED = "removed"


@dataclass(frozen=True)
class StockCheck:
    valid: bool
    errors: list[str] = field(default_factory=list)


def can_add_to_cart(requested, existing, available) -> bool:
    return existing + requested <= available


class OrderService:
    def __init__(self, clock=None, ledger=None, promotions=None, state_machine=None):
        self.ledger = ledger or ReservationLedger(clock=clock)
        self.promotions = promotions or PromotionEngine(clock=clock)
        self.state_machine = state_machine or OrderStateMachine(self.ledger, self.promotions)

    @property
    def repository(self):
        return current_domain.repository_for(Order)

    def load(self, order_id) -> Order:
        return get_order(order_id)

    def save(self, order) -> Order:
        return self.repository.add(order)

    # -------------------------------------------------------------------
    # Lines
    # -------------------------------------------------------------------
    def add_line(self, order_id, variant_id, quantity):
        """Add ``quantity`` of a variant, merging into the variant's line if present."""
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        order = self.load(order_id)
        order.assert_modifiable()
        variant = get_variant(variant_id)
        is_exempt = is_customer_tax_exempt(order.customer_id)

        line = order.line_for_variant(variant_id)
        if line is not None:
            available = self.ledger.available_stock(variant_id, exclude_order_id=order.id)
            if not can_add_to_cart(quantity, line.quantity, available):
                raise InsufficientStock(available=available, in_cart=line.quantity)
            merged = line.quantity + quantity
            self.ledger.update_quantity(variant_id, order.id, line.id, merged, in_cart=line.quantity)
            order.change_line_quantity(line.id, merged, is_exempt)
        else:
            line = order.new_line(variant, quantity, get_tax_rate(variant.tax_code), is_exempt)
            self.ledger.reserve(variant_id, order.id, line.id, quantity)
            order.add_line(line)

        self.refresh(order, is_exempt)
        self.save(order)
        logger.info(
            "Order line added",
            order_id=str(order.id),
            variant_id=str(variant_id),
            quantity=line.quantity,
        )
        return line

    def update_line_quantity(self, order_id, line_id, quantity) -> LineUpdate:
        """Set a line's quantity; zero or less removes the line."""
        order = self.load(order_id)
        order.assert_modifiable()
        line = order.get_line(line_id)

        if quantity <= 0:
            self._drop_line(order, line)
            outcome = LineUpdate.REMOVED
            is_exempt = None
        else:
            is_exempt = is_customer_tax_exempt(order.customer_id)
            self.ledger.update_quantity(line.variant_id, order.id, line.id, quantity)
            order.change_line_quantity(line.id, quantity, is_exempt)
            outcome = LineUpdate.UPDATED

        self.refresh(order, is_exempt)
        self.save(order)
        logger.info(
            "Order line quantity changed",
            order_id=str(order.id),
            line_id=str(line_id),
            quantity=quantity,
            outcome=outcome.value,
        )
        return outcome

    def remove_line(self, order_id, line_id):
        order = self.load(order_id)
        order.assert_modifiable()
        self._drop_line(order, order.get_line(line_id))
        self.refresh(order)
        self.save(order)
        logger.info("Order line removed", order_id=str(order.id), line_id=str(line_id))

    def _drop_line(self, order, line):
        self.ledger.release(line.variant_id, line.id)
        order.remove_line(line.id)

    # -------------------------------------------------------------------
    # Promotions
    # -------------------------------------------------------------------
    def apply_promotion_code(self, order_id, code, customer_id=None):
        order = self.load(order_id)
        order.assert_modifiable()
        customer_id = customer_id or order.customer_id

        known = self.promotions.find_by_code(code)
        if known is not None and order.applied_promotion(known.id) is not None:
            return order.applied_promotion(known.id)

        promotion = self.promotions.validate_code(
            code,
            order_subtotal(order),
            customer_id=customer_id,
            existing_promotion_ids=[applied.promotion_id for applied in order.promotions],
        )
        resolution = self.promotions.resolve_discount(promotion, order)
        applied = order.apply_promotion(promotion, resolution.amount, resolution.scope)

        self.refresh(order)
        self.save(order)
        logger.info(
            "Promotion applied",
            order_id=str(order.id),
            promotion_id=str(promotion.id),
            code=promotion.code,
            discount=resolution.amount,
        )
        return applied

    def remove_promotion(self, order_id, promotion_id) -> bool:
        order = self.load(order_id)
        order.assert_modifiable()
        removed = order.remove_promotion(promotion_id)
        self.refresh(order)
        self.save(order)
        logger.info("Promotion removed", order_id=str(order.id), promotion_id=str(promotion_id))
        return removed

    def remove_all_promotions(self, order_id) -> int:
        order = self.load(order_id)
        order.assert_modifiable()
        removed = order.remove_all_promotions()
        self.refresh(order)
        self.save(order)
        return removed

    def reconcile_automatic_promotions(self, order):
        """Bring the order's automatic promotions in line with what currently qualifies.

        Applied automatic promotions that are no longer active, no longer
        validate or no longer give a discount are removed; active ones that
        qualify now are added. Code promotions keep their discount unless the
        promotion has been deleted, in which case they are dropped.
        """
        active = {str(p.id): p for p in self.promotions.active_automatic_promotions()}
        subtotal = order_subtotal(order)

        for applied in list(order.promotions):
            if applied.method != PromotionMethod.AUTOMATIC.value:
                if self.promotions.get(applied.promotion_id) is None:
                    order.remove_promotion(applied.promotion_id)
                    logger.info(
                        "Deleted promotion removed",
                        order_id=str(order.id),
                        promotion_id=str(applied.promotion_id),
                    )
                continue
            promotion = active.get(str(applied.promotion_id))
            resolution = self._automatic_resolution(order, promotion, subtotal) if promotion else None
            if resolution is None:
                order.remove_promotion(applied.promotion_id)
                logger.info(
                    "Automatic promotion removed",
                    order_id=str(order.id),
                    promotion_id=str(applied.promotion_id),
                )
            elif applied.discount_amount != resolution.amount:
                applied.discount_amount = resolution.amount

        for promotion_id, promotion in active.items():
            if order.applied_promotion(promotion_id) is not None:
                continue
            resolution = self._automatic_resolution(order, promotion, subtotal)
            if resolution is not None:
                order.apply_promotion(promotion, resolution.amount, resolution.scope)
                logger.info(
                    "Automatic promotion applied",
                    order_id=str(order.id),
                    promotion_id=promotion_id,
                    discount=resolution.amount,
                )

    def _automatic_resolution(self, order, promotion, subtotal):
        """The discount the promotion would give now, or ``None`` if it does not qualify."""
        others = [p.promotion_id for p in order.promotions if str(p.promotion_id) != str(promotion.id)]
        try:
            self.promotions.validate_automatic(
                promotion,
                subtotal,
                customer_id=order.customer_id,
                existing_promotion_ids=others,
            )
            resolution = self.promotions.resolve_discount(promotion, order)
        except PromotionInvalid:
            return None
        return resolution if resolution.amount > 0 else None

    # -------------------------------------------------------------------
    # Totals
    # -------------------------------------------------------------------
    def refresh(self, order, is_exempt=None):
        """Restore every computed part of the order; returns the new totals.

        Placed orders are frozen, so only their totals are recomputed.
        """
        if order.is_modifiable:
            if is_exempt is None:
                is_exempt = is_customer_tax_exempt(order.customer_id)
            if bool(order.is_tax_exempt) != is_exempt:
                order.reprice_lines(is_exempt)
            self.rerate_shipping(order)
            self.reconcile_automatic_promotions(order)
            sync_shipping_discounts(order)

        totals = compute_totals(order)
        order.apply_totals(totals)
        return totals

    def rerate_shipping(self, order):
        """Read the current price of the order's shipping method."""
        if not order.shipping_method:
            return
        try:
            provider = get_shipping_provider(order.shipping_method)
        except ValueError:
            logger.warning(
                "Shipping method no longer available",
                order_id=str(order.id),
                shipping_method=order.shipping_method,
            )
            return
        price = provider.rate_for(order)
        if order.shipping_price != price:
            order.shipping_price = price

    def recalculate_totals(self, order_id):
        order = self.load(order_id)
        totals = self.refresh(order)
        self.save(order)
        return totals

    # -------------------------------------------------------------------
    # Stock and lifecycle
    # -------------------------------------------------------------------
    def validate_stock(self, order_id) -> StockCheck:
        """Collect every line that now asks for more than is available."""
        errors = self.ledger.shortfalls(self.load(order_id))
        return StockCheck(valid=not errors, errors=errors)

    def transition(self, order_id, new_state) -> Order:
        order = self.load(order_id)
        if new_state == OrderState.PAYMENT_PENDING.value and order.is_modifiable:
            if not order.lines:
                raise ValidationError({"lines": ["Cannot place an order without lines"]})
            self.refresh(order)
        self.state_machine.transition(order, new_state)
        self.save(order)
        return order
