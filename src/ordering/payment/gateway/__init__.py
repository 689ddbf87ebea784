"""Payment provider registry.

Provides get_payment_provider() / set_payment_provider() to swap
implementations per payment method code. The ``fake`` provider is always
available by default.
"""

from ordering.payment.gateway.fake_adapter import FakePaymentProvider
from ordering.payment.gateway.port import PaymentProvider

_providers: dict[str, PaymentProvider] = {}


def get_payment_provider(code: str = "fake") -> PaymentProvider:
    """Return the provider for a payment method code."""
    if code not in _providers:
        if code != "fake":
            raise ValueError(f"Unknown payment method: {code}")
        _providers[code] = FakePaymentProvider()
    return _providers[code]


def set_payment_provider(provider: PaymentProvider) -> None:
    """Register or replace the provider for ``provider.code`` (useful for tests)."""
    _providers[provider.code] = provider


def reset_payment_providers() -> None:
    """Reset to the default provider."""
    _providers.clear()
