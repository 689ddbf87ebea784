"""Shipping provider registry, keyed by shipping method code.

Defaults to two flat-rate methods; tests and deployments register their own.
"""

from ordering.shipping.fake_adapter import FlatRateShipping
from ordering.shipping.port import ShippingProvider

_providers: dict[str, ShippingProvider] | None = None


def _defaults() -> dict[str, ShippingProvider]:
    return {
        "standard": FlatRateShipping("standard", "Standard delivery", price=590),
        "express": FlatRateShipping("express", "Express delivery", price=1490),
    }


def get_shipping_provider(code: str) -> ShippingProvider:
    """Return the provider for a shipping method code."""
    global _providers
    if _providers is None:
        _providers = _defaults()
    if code not in _providers:
        raise ValueError(f"Unknown shipping method: {code}")
    return _providers[code]


def register_shipping_provider(provider: ShippingProvider) -> None:
    """Add or replace a shipping method (useful for tests)."""
    global _providers
    if _providers is None:
        _providers = _defaults()
    _providers[provider.code] = provider


def reset_shipping_providers() -> None:
    """Reset to the default providers."""
    global _providers
    _providers = None
