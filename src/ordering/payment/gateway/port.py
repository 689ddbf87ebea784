"""Payment provider port (abstract interface).

Providers take an amount for an order, hand back a transaction reference and
later report a settlement status. The ordering core only acts on the
settlement status.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class SettlementStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


@dataclass(frozen=True)
class PaymentIntent:
    """A payment started with the provider."""

    transaction_id: str
    status: SettlementStatus = SettlementStatus.PENDING
    client_secret: str | None = None


@dataclass(frozen=True)
class RefundResult:
    """Result of a refund attempt."""

    success: bool
    refund_id: str | None = None
    failure_reason: str | None = None


class PaymentProvider(ABC):
    """Abstract payment provider interface."""

    code: str

    @abstractmethod
    def create_payment(self, order_id: str, amount: int, currency: str) -> PaymentIntent:
        """Start a payment for ``amount`` minor units."""
        ...

    @abstractmethod
    def settlement_status(self, transaction_id: str) -> SettlementStatus:
        """Current settlement status of a transaction."""
        ...

    @abstractmethod
    def refund(self, transaction_id: str, amount: int) -> RefundResult:
        """Refund part or all of a settled transaction."""
        ...
