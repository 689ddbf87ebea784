"""Shipping provider port: abstract interface for shipping-rate integrations.

The ordering core only needs the price of a shipping method for an order.
Labels, tracking and carrier accounts belong to the adapters.
"""

from abc import ABC, abstractmethod


class ShippingProvider(ABC):
    """Abstract interface for shipping rate providers."""

    code: str
    name: str

    @abstractmethod
    def rate_for(self, order) -> int:
        """Shipping charge for the order in minor currency units."""
        ...
