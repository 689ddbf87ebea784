"""Configurable fake payment provider for development and testing.

Payments settle as whatever status the provider is configured with, and
refunds succeed or fail on demand. Every call is recorded in ``calls``.
"""

from uuid import uuid4

from ordering.payment.gateway.port import PaymentIntent, PaymentProvider, RefundResult, SettlementStatus


class FakePaymentProvider(PaymentProvider):
    """Configurable fake payment provider."""

    def __init__(self, code: str = "fake") -> None:
        self.code = code
        self.settles_as: SettlementStatus = SettlementStatus.COMPLETED
        self.refund_succeeds: bool = True
        self.failure_reason: str = "Refund declined"
        self.calls: list[dict] = []

    def configure(
        self,
        settles_as: SettlementStatus = SettlementStatus.COMPLETED,
        refund_succeeds: bool = True,
        failure_reason: str = "Refund declined",
    ) -> None:
        """Configure provider behavior at runtime."""
        self.settles_as = settles_as
        self.refund_succeeds = refund_succeeds
        self.failure_reason = failure_reason

    def create_payment(self, order_id: str, amount: int, currency: str) -> PaymentIntent:
        self.calls.append({"method": "create_payment", "order_id": order_id, "amount": amount, "currency": currency})
        return PaymentIntent(
            transaction_id=f"fake_txn_{uuid4().hex[:12]}",
            client_secret=f"fake_secret_{uuid4().hex[:12]}",
        )

    def settlement_status(self, transaction_id: str) -> SettlementStatus:
        self.calls.append({"method": "settlement_status", "transaction_id": transaction_id})
        return self.settles_as

    def refund(self, transaction_id: str, amount: int) -> RefundResult:
        self.calls.append({"method": "refund", "transaction_id": transaction_id, "amount": amount})
        if self.refund_succeeds:
            return RefundResult(success=True, refund_id=f"fake_ref_{uuid4().hex[:12]}")
        return RefundResult(success=False, failure_reason=self.failure_reason)
