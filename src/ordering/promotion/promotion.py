"""Promotion aggregate: code-based and automatic discounts.

A code promotion is redeemed by entering its (uppercase, unique) code; an
automatic promotion has a title instead and is applied by the order itself
whenever it qualifies. ``usage_count`` counts paid orders only.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Identifier, Integer, String, Text

from ordering.domain import ordering
from ordering.utils.clock import as_utc


class PromotionMethod(Enum):
    CODE = "code"
    AUTOMATIC = "automatic"


class PromotionType(Enum):
    ORDER = "order"
    PRODUCT = "product"
    FREE_SHIPPING = "free_shipping"


class DiscountType(Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"


class AppliesTo(Enum):
    ALL = "all"
    SPECIFIC_PRODUCTS = "specific_products"
    SPECIFIC_COLLECTIONS = "specific_collections"


class PromotionScope(Enum):
    """What an applied promotion's discount reduces."""

    ORDER = "order"
    PRODUCT = "product"
    SHIPPING = "shipping"


@ordering.aggregate
class Promotion:
    method = String(choices=PromotionMethod, default=PromotionMethod.CODE.value)
    code = String(max_length=50)
    title = String(max_length=255)
    promotion_type = String(choices=PromotionType, default=PromotionType.ORDER.value)
    discount_type = String(choices=DiscountType, default=DiscountType.PERCENTAGE.value)
    discount_value = Integer(default=0, min_value=0)
    applies_to = String(choices=AppliesTo, default=AppliesTo.ALL.value)
    product_ids = Text()  # JSON array
    collection_ids = Text()  # JSON array
    min_order_amount = Integer(min_value=0)
    usage_limit = Integer(min_value=0)
    usage_limit_per_customer = Integer(min_value=0)
    usage_count = Integer(default=0, min_value=0)
    starts_at = DateTime()
    ends_at = DateTime()
    customer_group_id = Identifier()
    combines_with_other_promotions = Boolean(default=False)
    enabled = Boolean(default=True)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def code_promotions_need_a_code(self):
        if self.method == PromotionMethod.CODE.value and not self.code:
            raise ValidationError({"code": ["Code promotions require a code"]})
        if self.method == PromotionMethod.AUTOMATIC.value and not self.title:
            raise ValidationError({"title": ["Automatic promotions require a title"]})

    @invariant.post
    def percentage_is_within_bounds(self):
        if self.discount_type == DiscountType.PERCENTAGE.value and self.discount_value > 100:
            raise ValidationError({"discount_value": ["Percentage discount cannot exceed 100"]})

    @invariant.post
    def date_window_is_ordered(self):
        if self.starts_at and self.ends_at and as_utc(self.ends_at) <= as_utc(self.starts_at):
            raise ValidationError({"ends_at": ["End date must be after start date"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, product_ids=(), collection_ids=(), **kwargs):
        now = datetime.now(UTC)
        method = kwargs.get("method", PromotionMethod.CODE.value)
        if method == PromotionMethod.AUTOMATIC.value:
            kwargs["code"] = None
        elif kwargs.get("code"):
            kwargs["code"] = normalize_code(kwargs["code"])
        return cls(
            product_ids=json.dumps([str(product_id) for product_id in product_ids]),
            collection_ids=json.dumps([str(collection_id) for collection_id in collection_ids]),
            created_at=now,
            updated_at=now,
            **kwargs,
        )

    # -------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------
    @property
    def is_automatic(self) -> bool:
        return self.method == PromotionMethod.AUTOMATIC.value

    @property
    def label(self) -> str:
        return self.code or self.title

    @property
    def product_filter(self) -> list[str]:
        return json.loads(self.product_ids) if self.product_ids else []

    @property
    def collection_filter(self) -> list[str]:
        return json.loads(self.collection_ids) if self.collection_ids else []

    def has_started(self, now) -> bool:
        return self.starts_at is None or as_utc(self.starts_at) <= now

    def has_ended(self, now) -> bool:
        return self.ends_at is not None and as_utc(self.ends_at) < now

    def is_within_window(self, now) -> bool:
        return self.has_started(now) and not self.has_ended(now)

    def usage_exhausted(self) -> bool:
        return self.usage_limit is not None and self.usage_count >= self.usage_limit

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def update(self, **changes):
        for name in ("product_ids", "collection_ids"):
            if name in changes and changes[name] is not None:
                changes[name] = json.dumps([str(value) for value in changes[name]])
        if changes.get("code"):
            changes["code"] = normalize_code(changes["code"])
        with atomic_change(self):
            for name, value in changes.items():
                setattr(self, name, value)
            self.updated_at = datetime.now(UTC)

    def set_enabled(self, enabled: bool):
        self.enabled = enabled
        self.updated_at = datetime.now(UTC)

    def record_usage(self):
        self.usage_count = (self.usage_count or 0) + 1


def normalize_code(code: str) -> str:
    return code.strip().upper()
