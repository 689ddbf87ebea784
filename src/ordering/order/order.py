"""Order aggregate: the customer's cart while active, the placed order afterwards.

While ``active`` the order is in state ``created`` and its lines, promotions
and checkout details can change. Once it moves on, ``active`` is cleared and
only lifecycle transitions change it.

Line prices follow the customer's tax exemption: exempt customers are charged
the net price, so ``line_total`` is always what the customer pays for the line
and ``line_total_net + tax_amount == line_total``.
"""


from uuid import uuid4

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String, ValueObject

from ordering.config import default_currency, order_code_prefix
from ordering.domain import ordering
from ordering.errors import LineNotFound, OrderNotModifiable
from ordering.order.events import (
    CartAssignedToCustomer,
    CartOpened,
    OrderLineAdded,
    OrderLineQuantityChanged,
    OrderLineRemoved,
    OrderStateChanged,
    PromotionApplied,
    PromotionRemoved,
)
from ordering.order.state_machine import OrderState, is_modifiable_state
from ordering.promotion.promotion import PromotionScope
from ordering.tax.calculation import line_tax
from ordering.utils import clock


def generate_order_code() -> str:
    return f"{order_code_prefix()}-{uuid4().hex[:8].upper()}"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class ShippingAddress:
    full_name = String(max_length=255)
    company = String(max_length=255)
    street = String(required=True, max_length=255)
    street2 = String(max_length=255)
    city = String(required=True, max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=2)
    phone = String(max_length=30)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderLine:
    variant_id = Identifier(required=True)
    product_id = Identifier()
    product_name = String(required=True, max_length=255)
    variant_name = String(max_length=255)
    sku = String(max_length=50)
    quantity = Integer(required=True, min_value=1)
    list_price = Integer(required=True, min_value=0)  # Catalogue gross price at add time
    unit_price = Integer(required=True, min_value=0)  # Charged per unit
    unit_price_net = Integer(required=True, min_value=0)
    line_total = Integer(required=True, min_value=0)
    line_total_net = Integer(required=True, min_value=0)
    tax_code = String(max_length=50)
    tax_rate = Float(default=0.0)
    tax_amount = Integer(default=0, min_value=0)

    def reprice(self, quantity, is_exempt):
        """Recompute the charged amounts for ``quantity`` units."""
        breakdown = line_tax(self.list_price, quantity, self.tax_rate, is_exempt)
        self.quantity = quantity
        self.unit_price = breakdown.unit_gross
        self.unit_price_net = breakdown.unit_net
        self.line_total = breakdown.line_gross
        self.line_total_net = breakdown.line_net
        self.tax_amount = breakdown.tax_amount


@ordering.entity(part_of="Order")
class OrderPromotion:
    """A promotion applied to the order and the discount it currently gives."""

    promotion_id = Identifier(required=True)
    method = String(required=True, max_length=20)
    label = String(max_length=255)
    scope = String(choices=PromotionScope, required=True)
    discount_amount = Integer(default=0, min_value=0)
    applied_at = DateTime()


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    customer_id = Identifier()  # Null for guest carts
    cart_token = String(max_length=64)  # Guest cart identification
    code = String(max_length=20)
    state = String(choices=OrderState, default=OrderState.CREATED.value)
    active = Boolean(default=True)
    currency_code = String(max_length=3)
    lines = HasMany(OrderLine)
    promotions = HasMany(OrderPromotion)

    subtotal = Integer(default=0)
    subtotal_net = Integer(default=0)
    tax_total = Integer(default=0)
    discount = Integer(default=0)
    shipping = Integer(default=0)
    total = Integer(default=0)
    total_net = Integer(default=0)
    is_tax_exempt = Boolean(default=False)

    shipping_method = String(max_length=50)
    shipping_price = Integer(default=0, min_value=0)  # Raw charge of the chosen method
    shipping_address = ValueObject(ShippingAddress)
    customer_email = String(max_length=254)

    order_placed_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def open_cart(cls, customer_id=None, cart_token=None, currency_code=None):
        if customer_id and cart_token:
            raise ValidationError({"cart_token": ["A cart belongs to either a customer or a guest token"]})
        now = clock.now()
        order = cls(
            customer_id=customer_id,
            cart_token=cart_token,
            code=generate_order_code(),
            state=OrderState.CREATED.value,
            active=True,
            currency_code=currency_code or default_currency(),
            created_at=now,
            updated_at=now,
        )
        order.raise_(
            CartOpened(
                order_id=str(order.id),
                code=order.code,
                customer_id=str(customer_id) if customer_id else None,
                cart_token=cart_token,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Guards and lookups
    # -------------------------------------------------------------------
    @property
    def is_modifiable(self) -> bool:
        return bool(self.active) and is_modifiable_state(self.state)

    def assert_modifiable(self):
        if not self.is_modifiable:
            raise OrderNotModifiable(self.id, self.state)

    def line_for_variant(self, variant_id) -> OrderLine | None:
        return next((line for line in self.lines if str(line.variant_id) == str(variant_id)), None)

    def get_line(self, line_id) -> OrderLine:
        line = next((line for line in self.lines if str(line.id) == str(line_id)), None)
        if line is None:
            raise LineNotFound(line_id)
        return line

    def applied_promotion(self, promotion_id) -> OrderPromotion | None:
        return next((p for p in self.promotions if str(p.promotion_id) == str(promotion_id)), None)

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    # -------------------------------------------------------------------
    # Lines
    # -------------------------------------------------------------------
    def new_line(self, variant, quantity, tax_rate, is_exempt) -> OrderLine:
        """Build a line snapshotting the variant; ``add_line`` attaches it."""
        line = OrderLine(
            variant_id=str(variant.id),
            product_id=str(variant.product_id),
            product_name=variant.product_name,
            variant_name=variant.variant_name,
            sku=variant.sku,
            quantity=quantity,
            list_price=variant.price,
            unit_price=variant.price,
            unit_price_net=variant.price,
            line_total=variant.price * quantity,
            line_total_net=variant.price * quantity,
            tax_code=variant.tax_code,
            tax_rate=tax_rate,
        )
        line.reprice(quantity, is_exempt)
        return line

    def add_line(self, line: OrderLine):
        self.assert_modifiable()
        self.add_lines(line)
        self._touch()
        self.raise_(
            OrderLineAdded(
                order_id=str(self.id),
                line_id=str(line.id),
                variant_id=str(line.variant_id),
                sku=line.sku,
                quantity=line.quantity,
                line_total=line.line_total,
            )
        )

    def change_line_quantity(self, line_id, quantity, is_exempt):
        self.assert_modifiable()
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})
        line = self.get_line(line_id)
        previous_quantity = line.quantity
        line.reprice(quantity, is_exempt)
        self._touch()
        self.raise_(
            OrderLineQuantityChanged(
                order_id=str(self.id),
                line_id=str(line.id),
                previous_quantity=previous_quantity,
                new_quantity=quantity,
            )
        )

    def remove_line(self, line_id):
        self.assert_modifiable()
        line = self.get_line(line_id)
        self.remove_lines(line)
        self._touch()
        self.raise_(
            OrderLineRemoved(
                order_id=str(self.id),
                line_id=str(line.id),
                variant_id=str(line.variant_id),
            )
        )

    def reprice_lines(self, is_exempt):
        """Switch every line between gross and net pricing."""
        for line in self.lines:
            line.reprice(line.quantity, is_exempt)
        self.is_tax_exempt = is_exempt

    # -------------------------------------------------------------------
    # Promotions
    # -------------------------------------------------------------------
    def apply_promotion(self, promotion, amount, scope: PromotionScope) -> OrderPromotion:
        """Attach a promotion; applying one that is already attached changes nothing."""
        existing = self.applied_promotion(promotion.id)
        if existing is not None:
            return existing

        applied = OrderPromotion(
            promotion_id=str(promotion.id),
            method=promotion.method,
            label=promotion.label,
            scope=scope.value,
            discount_amount=amount,
            applied_at=clock.now(),
        )
        self.add_promotions(applied)
        self._touch()
        self.raise_(
            PromotionApplied(
                order_id=str(self.id),
                promotion_id=str(promotion.id),
                method=promotion.method,
                scope=scope.value,
                discount_amount=amount,
            )
        )
        return applied

    def remove_promotion(self, promotion_id) -> bool:
        applied = self.applied_promotion(promotion_id)
        if applied is None:
            return False
        self.remove_promotions(applied)
        self._touch()
        self.raise_(PromotionRemoved(order_id=str(self.id), promotion_id=str(promotion_id)))
        return True

    def remove_all_promotions(self) -> int:
        promotion_ids = [applied.promotion_id for applied in self.promotions]
        for promotion_id in promotion_ids:
            self.remove_promotion(promotion_id)
        return len(promotion_ids)

    # -------------------------------------------------------------------
    # Totals
    # -------------------------------------------------------------------
    def apply_totals(self, totals):
        self.subtotal = totals.subtotal
        self.subtotal_net = totals.subtotal_net
        self.tax_total = totals.tax_total
        self.discount = totals.discount
        self.shipping = totals.shipping
        self.total = totals.total
        self.total_net = totals.total_net
        self.is_tax_exempt = totals.is_tax_exempt

    # -------------------------------------------------------------------
    # Checkout details
    # -------------------------------------------------------------------
    def set_shipping_address(self, **address):
        self.assert_modifiable()
        self.shipping_address = ShippingAddress(**address)
        self._touch()

    def set_customer_email(self, email):
        self.assert_modifiable()
        if not email or "@" not in email:
            raise ValidationError({"customer_email": ["A valid e-mail address is required"]})
        self.customer_email = email.strip()
        self._touch()

    def set_shipping_method(self, method_code, price):
        self.assert_modifiable()
        self.shipping_method = method_code
        self.shipping_price = price
        self._touch()

    def assign_customer(self, customer_id):
        """Hand a guest cart over to a signed-in customer."""
        self.assert_modifiable()
        self.customer_id = customer_id
        self.cart_token = None
        self._touch()
        self.raise_(CartAssignedToCustomer(order_id=str(self.id), customer_id=str(customer_id)))

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def transition_to(self, new_state, now):
        """Record a state change. Side effects belong to ``OrderStateMachine``."""
        previous = self.state
        self.state = new_state
        if new_state != OrderState.CREATED.value:
            self.active = False
        if new_state == OrderState.PAYMENT_PENDING.value and self.order_placed_at is None:
            self.order_placed_at = now
        self.updated_at = now
        self.raise_(
            OrderStateChanged(
                order_id=str(self.id),
                from_state=previous,
                to_state=new_state,
                changed_at=now,
            )
        )

    def _touch(self):
        self.updated_at = clock.now()
