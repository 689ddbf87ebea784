"""Application tests for applying and removing promotion codes on an order."""

from datetime import timedelta

import pytest
from ordering.catalogue.collection import Collection
from ordering.errors import PromotionInvalid, PromotionRejection
from ordering.order.lines import AddOrderLine
from ordering.order.promotions import ApplyPromotionCode, RemoveAllOrderPromotions, RemoveOrderPromotion
from ordering.order.transitions import TransitionOrder
from ordering.promotion.promotion import Promotion
from protean import current_domain


def _add(order_id, variant_id, quantity=1):
    return current_domain.process(
        AddOrderLine(order_id=order_id, variant_id=variant_id, quantity=quantity),
        asynchronous=False,
    )


def _apply(order_id, code, customer_id=None):
    return current_domain.process(
        ApplyPromotionCode(order_id=order_id, code=code, customer_id=customer_id),
        asynchronous=False,
    )


def _rejection(order_id, code, customer_id=None):
    with pytest.raises(PromotionInvalid) as exc:
        _apply(order_id, code, customer_id)
    return exc.value.reason


@pytest.fixture()
def cart(open_cart, make_variant):
    """A guest cart holding 2 x 2500."""
    order_id = open_cart()
    _add(order_id, make_variant(price=2500, stock=20).id, 2)
    return order_id


class TestApplyPromotionCode:
    def test_percentage_code(self, cart, make_promotion, load_order):
        promotion = make_promotion(code="SAVE10", discount_value=10)

        assert _apply(cart, "SAVE10") == promotion.id

        order = load_order(cart)
        assert order.discount == 500
        assert order.total == 4500
        applied = order.promotions[0]
        assert applied.scope == "order"
        assert applied.label == "SAVE10"

    def test_code_is_case_insensitive(self, cart, make_promotion, load_order):
        make_promotion(code="SAVE10")
        _apply(cart, " save10 ")
        assert len(load_order(cart).promotions) == 1

    def test_fixed_amount_is_capped_at_subtotal(self, cart, make_promotion, load_order):
        make_promotion(code="BIG", discount_type="fixed_amount", discount_value=10000)
        _apply(cart, "BIG")

        order = load_order(cart)
        assert order.discount == 5000
        assert order.total == 0

    def test_reapplying_is_a_noop(self, cart, make_promotion, load_order):
        make_promotion(code="SAVE10")
        _apply(cart, "SAVE10")
        _apply(cart, "SAVE10")

        order = load_order(cart)
        assert len(order.promotions) == 1
        assert order.discount == 500

    def test_combinable_promotions_stack(self, cart, make_promotion, load_order):
        make_promotion(code="TEN", discount_value=10, combines_with_other_promotions=True)
        make_promotion(
            code="FIVER",
            discount_type="fixed_amount",
            discount_value=500,
            combines_with_other_promotions=True,
        )

        _apply(cart, "TEN")
        _apply(cart, "FIVER")

        order = load_order(cart)
        assert len(order.promotions) == 2
        assert order.discount == 1000
        assert order.total == 4000

    def test_code_discount_is_kept_when_lines_change(self, cart, make_promotion, make_variant, load_order):
        make_promotion(code="SAVE10")
        _apply(cart, "SAVE10")

        _add(cart, make_variant(price=1000).id, 1)

        order = load_order(cart)
        assert order.subtotal == 6000
        assert order.discount == 500


class TestPromotionRejections:
    def test_unknown_code(self, cart):
        assert _rejection(cart, "NOPE") is PromotionRejection.INVALID_CODE

    def test_disabled(self, cart, make_promotion):
        make_promotion(code="OFF", enabled=False)
        assert _rejection(cart, "OFF") is PromotionRejection.NOT_ACTIVE

    def test_not_started(self, cart, make_promotion, clock):
        make_promotion(code="SOON", starts_at=clock() + timedelta(days=1))
        assert _rejection(cart, "SOON") is PromotionRejection.NOT_STARTED

    def test_expired(self, cart, make_promotion, clock):
        make_promotion(code="OLD", starts_at=clock() - timedelta(days=7), ends_at=clock() - timedelta(days=1))
        assert _rejection(cart, "OLD") is PromotionRejection.EXPIRED

    def test_usage_limit_reached(self, cart, make_promotion):
        make_promotion(code="ONCE", usage_limit=1, usage_count=1)
        assert _rejection(cart, "ONCE") is PromotionRejection.LIMIT_REACHED

    def test_minimum_not_met(self, cart, make_promotion):
        make_promotion(code="MIN", min_order_amount=10000)
        with pytest.raises(PromotionInvalid) as exc:
            _apply(cart, "MIN")
        assert exc.value.reason is PromotionRejection.MINIMUM_NOT_MET
        assert exc.value.messages["promotion"] == ["Minimum order amount of 10000 required"]

    def test_cannot_combine(self, cart, make_promotion, load_order):
        make_promotion(code="FIRST")
        make_promotion(code="SECOND", combines_with_other_promotions=True)
        _apply(cart, "FIRST")

        assert _rejection(cart, "SECOND") is PromotionRejection.CANNOT_COMBINE
        assert len(load_order(cart).promotions) == 1

    def test_guest_fails_group_restriction(self, cart, make_promotion):
        make_promotion(code="VIP", customer_group_id="group-vip")
        assert _rejection(cart, "VIP") is PromotionRejection.CUSTOMER_GROUP_RESTRICTED

    def test_group_member_passes_group_restriction(self, open_cart, make_variant, make_customer, make_promotion):
        customer = make_customer(group_ids=["group-vip"])
        order_id = open_cart(customer_id=customer.id)
        _add(order_id, make_variant(price=2500).id, 1)
        make_promotion(code="VIP", customer_group_id="group-vip")

        assert _apply(order_id, "VIP")

    def test_per_customer_limit(self, open_cart, make_variant, make_customer, make_promotion, load_order):
        customer = make_customer()
        variant = make_variant(price=2500)
        promotion = make_promotion(code="WELCOME", usage_limit_per_customer=1)

        first = open_cart(customer_id=customer.id)
        _add(first, variant.id, 1)
        _apply(first, "WELCOME")
        for state in ("payment_pending", "paid"):
            current_domain.process(TransitionOrder(order_id=first, new_state=state), asynchronous=False)

        assert current_domain.repository_for(Promotion).get(promotion.id).usage_count == 1

        second = open_cart(customer_id=customer.id)
        assert second != first
        _add(second, variant.id, 1)
        assert _rejection(second, "WELCOME") is PromotionRejection.PER_CUSTOMER_LIMIT_REACHED


class TestProductPromotions:
    def test_discount_applies_to_listed_products_only(self, open_cart, make_variant, make_promotion, load_order):
        order_id = open_cart()
        shoes = make_variant(price=5000, product_id="prod-shoes")
        hat = make_variant(price=2000, product_id="prod-hat")
        _add(order_id, shoes.id, 1)
        _add(order_id, hat.id, 1)
        make_promotion(
            code="SHOES20",
            promotion_type="product",
            applies_to="specific_products",
            product_ids=["prod-shoes"],
            discount_value=20,
        )

        _apply(order_id, "SHOES20")

        order = load_order(order_id)
        assert order.promotions[0].scope == "product"
        assert order.discount == 1000
        assert order.total == 6000

    def test_no_qualifying_products(self, cart, make_promotion):
        make_promotion(
            code="OTHER",
            promotion_type="product",
            applies_to="specific_products",
            product_ids=["prod-elsewhere"],
        )
        assert _rejection(cart, "OTHER") is PromotionRejection.NO_QUALIFYING_PRODUCTS

    def test_collection_by_facet(self, open_cart, make_variant, make_promotion, load_order):
        order_id = open_cart()
        summer = make_variant(price=3000, facets=["facet-summer"])
        other = make_variant(price=1000)
        _add(order_id, summer.id, 1)
        _add(order_id, other.id, 1)
        collection = Collection.create("Summer", facet_value_ids=["facet-summer"])
        current_domain.repository_for(Collection).add(collection)
        make_promotion(
            code="SUMMER",
            promotion_type="product",
            applies_to="specific_collections",
            collection_ids=[collection.id],
            discount_type="fixed_amount",
            discount_value=5000,
        )

        _apply(order_id, "SUMMER")

        assert load_order(order_id).discount == 3000


class TestRemovePromotions:
    def test_remove_one(self, cart, make_promotion, load_order):
        promotion = make_promotion(code="SAVE10")
        _apply(cart, "SAVE10")

        removed = current_domain.process(
            RemoveOrderPromotion(order_id=cart, promotion_id=promotion.id),
            asynchronous=False,
        )

        order = load_order(cart)
        assert removed is True
        assert order.discount == 0
        assert order.total == 5000

    def test_remove_all(self, cart, make_promotion, load_order):
        make_promotion(code="A", combines_with_other_promotions=True)
        make_promotion(code="B", combines_with_other_promotions=True)
        _apply(cart, "A")
        _apply(cart, "B")

        assert current_domain.process(RemoveAllOrderPromotions(order_id=cart), asynchronous=False) == 2
        assert len(load_order(cart).promotions) == 0
