"""Ordering bounded context: carts, orders, stock reservations, tax and promotions.

An order doubles as the shopping cart while it is active. Stock reservations,
VAT and promotion discounts are kept consistent with the order's lines on every
mutation, and the order lifecycle finalises or releases the holds.
"""

import structlog
from protean.domain import Domain

from ordering.utils.logging import configure_logging

configure_logging()

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)
