"""PromotionEngine: validates promotions against an order and resolves their discount.

Checks run in a fixed order and stop at the first failure: existence,
enabled, date window, global usage limit, minimum order amount, per-customer
usage, combination with the promotions already applied, customer group.
"""

from dataclasses import dataclass
from datetime import UTC, datetime

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from ordering.catalogue.collection import collection_product_ids
from ordering.customer.customer import customer_in_group
from ordering.errors import PromotionInvalid, PromotionRejection
from ordering.promotion import rules
from ordering.promotion.promotion import (
    AppliesTo,
    Promotion,
    PromotionMethod,
    PromotionScope,
    PromotionType,
    normalize_code,
)
from ordering.utils.clock import as_utc, get_clock

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


@dataclass(frozen=True)
class DiscountResolution:
    amount: int
    scope: PromotionScope


def order_subtotal(order) -> int:
    return sum(line.line_total for line in order.lines)


class PromotionEngine:
    def __init__(self, clock=None):
        self._clock = clock

    def now(self):
        return (self._clock or get_clock())()

    @property
    def repository(self):
        return current_domain.repository_for(Promotion)

    # -------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------
    def get(self, promotion_id) -> Promotion | None:
        try:
            return self.repository.get(promotion_id)
        except ObjectNotFoundError:
            return None

    def find_by_code(self, code) -> Promotion | None:
        if not code or not code.strip():
            return None
        matches = self.repository._dao.query.filter(code=normalize_code(code)).all().items
        return matches[0] if matches else None

    def active_automatic_promotions(self) -> list[Promotion]:
        """Enabled automatic promotions inside their date window with usage left."""
        now = self.now()
        candidates = (
            self.repository._dao.query.filter(method=PromotionMethod.AUTOMATIC.value, enabled=True).all().items
        )
        active = [p for p in candidates if p.is_within_window(now) and not p.usage_exhausted()]
        return sorted(active, key=lambda p: (as_utc(p.created_at) or _EPOCH, str(p.id)))

    # -------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------
    def validate_code(self, code, order_amount, customer_id=None, existing_promotion_ids=()) -> Promotion:
        promotion = self.find_by_code(code)
        if promotion is None:
            raise PromotionInvalid(PromotionRejection.INVALID_CODE)
        if not promotion.enabled:
            raise PromotionInvalid(PromotionRejection.NOT_ACTIVE)

        now = self.now()
        if not promotion.has_started(now):
            raise PromotionInvalid(PromotionRejection.NOT_STARTED)
        if promotion.has_ended(now):
            raise PromotionInvalid(PromotionRejection.EXPIRED)

        self._check_rules(promotion, order_amount, customer_id, existing_promotion_ids)
        return promotion

    def validate_automatic(self, promotion, order_amount, customer_id=None, existing_promotion_ids=()) -> Promotion:
        """Validate an automatic promotion the caller already took from the active set."""
        self._check_rules(promotion, order_amount, customer_id, existing_promotion_ids)
        return promotion

    def _check_rules(self, promotion, order_amount, customer_id, existing_promotion_ids):
        if promotion.usage_exhausted():
            raise PromotionInvalid(PromotionRejection.LIMIT_REACHED)

        if promotion.min_order_amount and order_amount < promotion.min_order_amount:
            raise PromotionInvalid(
                PromotionRejection.MINIMUM_NOT_MET,
                f"Minimum order amount of {promotion.min_order_amount} required",
            )

        if promotion.usage_limit_per_customer is not None and customer_id:
            from ordering.order.queries import count_promotion_uses

            if count_promotion_uses(customer_id, promotion.id) >= promotion.usage_limit_per_customer:
                raise PromotionInvalid(PromotionRejection.PER_CUSTOMER_LIMIT_REACHED)

        existing = [
            applied
            for applied in (self.get(pid) for pid in existing_promotion_ids if str(pid) != str(promotion.id))
            if applied is not None
        ]
        if not rules.can_combine(existing, promotion):
            raise PromotionInvalid(PromotionRejection.CANNOT_COMBINE)

        if promotion.customer_group_id and not (
            customer_id and customer_in_group(customer_id, promotion.customer_group_id)
        ):
            raise PromotionInvalid(PromotionRejection.CUSTOMER_GROUP_RESTRICTED)

    # -------------------------------------------------------------------
    # Discount resolution
    # -------------------------------------------------------------------
    def qualifying_product_ids(self, promotion) -> set[str] | None:
        """Products a promotion applies to, or ``None`` for every product."""
        applies_to = AppliesTo(promotion.applies_to)
        if applies_to is AppliesTo.ALL:
            return None
        if applies_to is AppliesTo.SPECIFIC_PRODUCTS:
            return set(promotion.product_filter)
        if applies_to is AppliesTo.SPECIFIC_COLLECTIONS:
            return collection_product_ids(promotion.collection_filter)
        raise ValueError(f"Unhandled promotion scope: {applies_to}")

    def resolve_discount(self, promotion, order) -> DiscountResolution:
        """Discount ``promotion`` gives on ``order`` and what it is applied against."""
        promotion_type = PromotionType(promotion.promotion_type)

        if promotion_type is PromotionType.FREE_SHIPPING:
            return DiscountResolution(amount=order.shipping_price or 0, scope=PromotionScope.SHIPPING)

        if promotion_type is PromotionType.PRODUCT:
            qualifying = self.qualifying_product_ids(promotion)
            base = sum(
                line.line_total for line in order.lines if qualifying is None or str(line.product_id) in qualifying
            )
            if base <= 0:
                raise PromotionInvalid(PromotionRejection.NO_QUALIFYING_PRODUCTS)
            return DiscountResolution(amount=rules.discount(promotion, base), scope=PromotionScope.PRODUCT)

        if promotion_type is PromotionType.ORDER:
            return DiscountResolution(
                amount=rules.discount(promotion, order_subtotal(order)),
                scope=PromotionScope.ORDER,
            )

        raise ValueError(f"Unhandled promotion type: {promotion_type}")
