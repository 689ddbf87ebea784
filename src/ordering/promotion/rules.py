"""Discount arithmetic and combinability: pure functions over promotions."""

from decimal import ROUND_HALF_UP, Decimal

from ordering.promotion.promotion import DiscountType


def discount(promotion, base_amount: int) -> int:
    """Discount a promotion gives on ``base_amount`` (minor units).

    A percentage is rounded half-up to the nearest unit; a fixed amount never
    exceeds the base.
    """
    if base_amount <= 0:
        return 0

    discount_type = DiscountType(promotion.discount_type)
    if discount_type is DiscountType.PERCENTAGE:
        amount = Decimal(base_amount) * Decimal(promotion.discount_value) / Decimal(100)
        return min(base_amount, int(amount.quantize(Decimal(1), rounding=ROUND_HALF_UP)))
    if discount_type is DiscountType.FIXED_AMOUNT:
        return min(promotion.discount_value, base_amount)
    raise ValueError(f"Unhandled discount type: {discount_type}")


def can_combine(existing, candidate) -> bool:
    """Whether ``candidate`` may join the already applied ``existing`` promotions.

    Every promotion involved, the candidate included, has to allow combining.
    """
    if not existing:
        return True
    return bool(candidate.combines_with_other_promotions) and all(
        promotion.combines_with_other_promotions for promotion in existing
    )
