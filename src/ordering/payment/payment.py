"""Payment aggregate: one provider payment for an order and its refunds.

State Machine:
    PENDING → COMPLETED → REFUNDED (once everything has been refunded)
    PENDING → FAILED
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String

from ordering.domain import ordering
from ordering.errors import PaymentNotRefundable, RefundExceedsPayment
from ordering.payment.events import PaymentInitiated, PaymentRefunded, PaymentSettled


class PaymentState(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


@ordering.aggregate
class Payment:
    order_id = Identifier(required=True)
    method_code = String(required=True, max_length=50)
    amount = Integer(required=True, min_value=0)
    currency_code = String(max_length=3)
    state = String(choices=PaymentState, default=PaymentState.PENDING.value)
    transaction_id = String(max_length=255)
    refunded_amount = Integer(default=0, min_value=0)
    failure_reason = String(max_length=255)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def initiate(cls, order_id, method_code, amount, currency_code, transaction_id):
        now = datetime.now(UTC)
        payment = cls(
            order_id=order_id,
            method_code=method_code,
            amount=amount,
            currency_code=currency_code,
            transaction_id=transaction_id,
            state=PaymentState.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        payment.raise_(
            PaymentInitiated(
                payment_id=str(payment.id),
                order_id=str(order_id),
                amount=amount,
                method_code=method_code,
            )
        )
        return payment

    @property
    def refundable_amount(self) -> int:
        return self.amount - (self.refunded_amount or 0)

    def _settle(self, state: PaymentState, failure_reason=None):
        if self.state != PaymentState.PENDING.value:
            raise ValidationError({"state": [f"Payment is already {self.state}"]})
        self.state = state.value
        self.failure_reason = failure_reason
        self.updated_at = datetime.now(UTC)
        self.raise_(PaymentSettled(payment_id=str(self.id), order_id=str(self.order_id), status=state.value))

    def mark_completed(self):
        self._settle(PaymentState.COMPLETED)

    def mark_failed(self, reason=None):
        self._settle(PaymentState.FAILED, reason)

    def check_refund(self, amount) -> int:
        """Validate a refund request; ``None`` means everything still refundable."""
        if self.state != PaymentState.COMPLETED.value:
            raise PaymentNotRefundable(self.state)
        amount = self.refundable_amount if amount is None else amount
        if amount <= 0:
            raise ValidationError({"amount": ["Refund amount must be positive"]})
        if amount > self.refundable_amount:
            raise RefundExceedsPayment(amount, self.refundable_amount)
        return amount

    def record_refund(self, amount):
        amount = self.check_refund(amount)
        self.refunded_amount = (self.refunded_amount or 0) + amount
        if self.refundable_amount == 0:
            self.state = PaymentState.REFUNDED.value
        self.updated_at = datetime.now(UTC)
        self.raise_(
            PaymentRefunded(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                amount=amount,
                refunded_total=self.refunded_amount,
            )
        )
