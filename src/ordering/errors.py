"""Domain errors raised by the ordering core.

Business-rule failures subclass Protean's ``ValidationError`` and missing
records subclass ``ObjectNotFoundError``, so each carries the usual
``messages`` dict keyed by field as well as typed attributes.
"""

from enum import Enum

from protean.exceptions import ObjectNotFoundError, ValidationError


class PromotionRejection(Enum):
    INVALID_CODE = "Invalid promotion code"
    NOT_ACTIVE = "Promotion is not active"
    NOT_STARTED = "Promotion has not started yet"
    EXPIRED = "Promotion has expired"
    LIMIT_REACHED = "Promotion usage limit reached"
    MINIMUM_NOT_MET = "Minimum order amount not met"
    PER_CUSTOMER_LIMIT_REACHED = "You have already used this promotion"
    CANNOT_COMBINE = "Promotion cannot be combined with the promotions already applied"
    CUSTOMER_GROUP_RESTRICTED = "Promotion is not available for your account"
    NO_QUALIFYING_PRODUCTS = "No qualifying products in cart"


class OrderNotFound(ObjectNotFoundError):
    def __init__(self, order_id):
        self.order_id = str(order_id)
        super().__init__({"order_id": [f"Order {order_id} not found"]})


class OrderNotModifiable(ValidationError):
    def __init__(self, order_id, state):
        self.order_id = str(order_id)
        self.state = state
        super().__init__({"state": [f"Order cannot be modified in state '{state}'"]})


class VariantNotFound(ObjectNotFoundError):
    def __init__(self, variant_id):
        self.variant_id = str(variant_id)
        super().__init__({"variant_id": [f"Variant {variant_id} not found"]})


class InsufficientStock(ValidationError):
    def __init__(self, available, in_cart=0):
        self.available = available
        self.in_cart = in_cart
        if in_cart:
            message = f"Only {available} items available ({in_cart} already in cart)"
        else:
            message = f"Only {available} items available"
        super().__init__({"quantity": [message]})


class LineNotFound(ValidationError):
    def __init__(self, line_id):
        self.line_id = str(line_id)
        super().__init__({"line_id": [f"Order line {line_id} not found"]})


class InvalidTransition(ValidationError):
    def __init__(self, from_state, to_state):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__({"state": [f"Invalid state transition from '{from_state}' to '{to_state}'"]})


class PromotionInvalid(ValidationError):
    def __init__(self, reason: PromotionRejection, message: str | None = None):
        self.reason = reason
        super().__init__({"promotion": [message or reason.value]})


class StockUnavailableAtPayment(ValidationError):
    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__({"stock": self.errors})


class RefundExceedsPayment(ValidationError):
    def __init__(self, requested, refundable):
        self.requested = requested
        self.refundable = refundable
        super().__init__({"amount": [f"Refund of {requested} exceeds the refundable amount of {refundable}"]})


class PaymentNotRefundable(ValidationError):
    def __init__(self, state):
        self.state = state
        super().__init__({"state": [f"Payment in state '{state}' cannot be refunded"]})
