"""Payment processing: initiate, confirm and refund payments for orders.

Confirming a payment whose settlement status is ``completed`` moves the order
to ``paid`` in the same unit of work. If the final stock check fails the
whole command fails: the order stays ``payment_pending`` and the payment stays
``pending``.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.service import OrderService
from ordering.order.state_machine import OrderState
from ordering.payment.gateway import get_payment_provider
from ordering.payment.gateway.port import SettlementStatus
from ordering.payment.payment import Payment, PaymentState

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Payment")
class InitiatePayment:
    order_id = Identifier(required=True)
    method_code = String(max_length=50, default="fake")


@ordering.command(part_of="Payment")
class ConfirmPayment:
    payment_id = Identifier(required=True)


@ordering.command(part_of="Payment")
class RefundPayment:
    payment_id = Identifier(required=True)
    amount = Integer(min_value=1)  # Defaults to everything still refundable


def _provider(code):
    try:
        return get_payment_provider(code)
    except ValueError as exc:
        raise ValidationError({"method_code": [str(exc)]}) from exc


@ordering.command_handler(part_of=Payment)
class PaymentProcessingHandler:
    @handle(InitiatePayment)
    def initiate_payment(self, command):
        provider = _provider(command.method_code)
        service = OrderService()
        order = service.load(command.order_id)
        if order.state == OrderState.CREATED.value:
            order = service.transition(order.id, OrderState.PAYMENT_PENDING.value)
        elif order.state != OrderState.PAYMENT_PENDING.value:
            raise ValidationError({"order_id": [f"Order in state '{order.state}' cannot be paid"]})

        intent = provider.create_payment(str(order.id), order.total, order.currency_code)
        payment = Payment.initiate(
            order_id=order.id,
            method_code=provider.code,
            amount=order.total,
            currency_code=order.currency_code,
            transaction_id=intent.transaction_id,
        )
        current_domain.repository_for(Payment).add(payment)
        logger.info(
            "Payment initiated",
            payment_id=str(payment.id),
            order_id=str(order.id),
            amount=order.total,
        )
        return str(payment.id)

    @handle(ConfirmPayment)
    def confirm_payment(self, command):
        repo = current_domain.repository_for(Payment)
        payment = repo.get(command.payment_id)
        if payment.state != PaymentState.PENDING.value:
            return payment.state

        status = _provider(payment.method_code).settlement_status(payment.transaction_id)
        if status is SettlementStatus.COMPLETED:
            OrderService().transition(payment.order_id, OrderState.PAID.value)
            payment.mark_completed()
        elif status is SettlementStatus.FAILED:
            payment.mark_failed("Payment failed at provider")
        else:
            return payment.state

        repo.add(payment)
        logger.info("Payment settled", payment_id=str(payment.id), order_id=str(payment.order_id), status=status.value)
        return payment.state

    @handle(RefundPayment)
    def refund_payment(self, command):
        repo = current_domain.repository_for(Payment)
        payment = repo.get(command.payment_id)
        amount = payment.check_refund(command.amount)

        result = _provider(payment.method_code).refund(payment.transaction_id, amount)
        if not result.success:
            logger.warning("Refund declined", payment_id=str(payment.id), reason=result.failure_reason)
            raise ValidationError({"refund": [result.failure_reason or "Refund failed"]})

        payment.record_refund(amount)
        repo.add(payment)
        logger.info("Payment refunded", payment_id=str(payment.id), amount=amount)
        return payment.refundable_amount
