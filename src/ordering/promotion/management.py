"""Promotion management: commands, handler and listing queries."""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.promotion.promotion import (
    AppliesTo,
    DiscountType,
    Promotion,
    PromotionMethod,
    PromotionType,
    normalize_code,
)
from ordering.utils.clock import get_clock

logger = structlog.get_logger(__name__)

_EDITABLE_FIELDS = (
    "code",
    "title",
    "promotion_type",
    "discount_type",
    "discount_value",
    "applies_to",
    "product_ids",
    "collection_ids",
    "min_order_amount",
    "usage_limit",
    "usage_limit_per_customer",
    "starts_at",
    "ends_at",
    "customer_group_id",
    "combines_with_other_promotions",
)

# Optional settings an update can unset through ``clear_fields``
_CLEARABLE_FIELDS = (
    "min_order_amount",
    "usage_limit",
    "usage_limit_per_customer",
    "starts_at",
    "ends_at",
    "customer_group_id",
)


@ordering.command(part_of="Promotion")
class CreatePromotion:
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
    starts_at = DateTime()
    ends_at = DateTime()
    customer_group_id = Identifier()
    combines_with_other_promotions = Boolean(default=False)
    enabled = Boolean(default=True)


@ordering.command(part_of="Promotion")
class UpdatePromotion:
    promotion_id = Identifier(required=True)
    code = String(max_length=50)
    title = String(max_length=255)
    promotion_type = String(choices=PromotionType)
    discount_type = String(choices=DiscountType)
    discount_value = Integer(min_value=0)
    applies_to = String(choices=AppliesTo)
    product_ids = Text()  # JSON array
    collection_ids = Text()  # JSON array
    min_order_amount = Integer(min_value=0)
    usage_limit = Integer(min_value=0)
    usage_limit_per_customer = Integer(min_value=0)
    starts_at = DateTime()
    ends_at = DateTime()
    customer_group_id = Identifier()
    combines_with_other_promotions = Boolean()
    clear_fields = Text()  # JSON array of optional settings to unset


@ordering.command(part_of="Promotion")
class SetPromotionEnabled:
    promotion_id = Identifier(required=True)
    enabled = Boolean(required=True)


@ordering.command(part_of="Promotion")
class DeletePromotion:
    promotion_id = Identifier(required=True)


def _json_list(value):
    return json.loads(value) if value else []


def _ensure_code_is_free(repo, code, promotion_id=None):
    for existing in repo._dao.query.filter(code=normalize_code(code)).all().items:
        if str(existing.id) != str(promotion_id):
            raise ValidationError({"code": [f"Promotion code {normalize_code(code)} already exists"]})


@ordering.command_handler(part_of=Promotion)
class ManagePromotionsHandler:
    @handle(CreatePromotion)
    def create_promotion(self, command):
        repo = current_domain.repository_for(Promotion)
        if command.method == PromotionMethod.CODE.value and command.code:
            _ensure_code_is_free(repo, command.code)

        promotion = Promotion.create(
            product_ids=_json_list(command.product_ids),
            collection_ids=_json_list(command.collection_ids),
            method=command.method,
            code=command.code,
            title=command.title,
            promotion_type=command.promotion_type,
            discount_type=command.discount_type,
            discount_value=command.discount_value,
            applies_to=command.applies_to,
            min_order_amount=command.min_order_amount,
            usage_limit=command.usage_limit,
            usage_limit_per_customer=command.usage_limit_per_customer,
            starts_at=command.starts_at,
            ends_at=command.ends_at,
            customer_group_id=command.customer_group_id,
            combines_with_other_promotions=command.combines_with_other_promotions,
            enabled=command.enabled,
        )
        repo.add(promotion)
        logger.info("Promotion created", promotion_id=str(promotion.id), label=promotion.label)
        return str(promotion.id)

    @handle(UpdatePromotion)
    def update_promotion(self, command):
        repo = current_domain.repository_for(Promotion)
        promotion = repo.get(command.promotion_id)

        changes = {}
        for name in _EDITABLE_FIELDS:
            value = getattr(command, name)
            if value is not None:
                if name in ("product_ids", "collection_ids"):
                    value = _json_list(value)
                changes[name] = value

        cleared = _json_list(command.clear_fields)
        unknown = sorted(set(cleared) - set(_CLEARABLE_FIELDS))
        if unknown:
            raise ValidationError({"clear_fields": [f"Cannot clear {', '.join(unknown)}"]})
        conflicting = sorted(set(cleared) & set(changes))
        if conflicting:
            raise ValidationError({"clear_fields": [f"Cannot both set and clear {', '.join(conflicting)}"]})
        changes.update(dict.fromkeys(cleared))

        if "code" in changes:
            if promotion.is_automatic:
                raise ValidationError({"code": ["Automatic promotions do not have a code"]})
            _ensure_code_is_free(repo, changes["code"], promotion.id)

        promotion.update(**changes)
        repo.add(promotion)
        logger.info("Promotion updated", promotion_id=str(promotion.id), fields=sorted(changes))

    @handle(SetPromotionEnabled)
    def set_promotion_enabled(self, command):
        repo = current_domain.repository_for(Promotion)
        promotion = repo.get(command.promotion_id)
        promotion.set_enabled(command.enabled)
        repo.add(promotion)

    @handle(DeletePromotion)
    def delete_promotion(self, command):
        repo = current_domain.repository_for(Promotion)
        promotion = repo.get(command.promotion_id)
        repo._dao.delete(promotion)
        logger.info("Promotion deleted", promotion_id=str(command.promotion_id))


def list_promotions() -> list[Promotion]:
    promotions = current_domain.repository_for(Promotion)._dao.query.all().items
    return sorted(promotions, key=lambda p: p.label or "")


def list_active_promotions(clock=None) -> list[Promotion]:
    """Enabled promotions, code or automatic, that can be redeemed right now."""
    now = (clock or get_clock())()
    return [p for p in list_promotions() if p.enabled and p.is_within_window(now) and not p.usage_exhausted()]
