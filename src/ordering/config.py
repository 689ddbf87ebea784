"""Business settings read from the ``[custom]`` table of ``domain.toml``."""

from datetime import timedelta

from ordering.domain import ordering

DEFAULTS = {
    "RESERVATION_TTL_MINUTES": 15,
    "PAYMENT_HOLD_MINUTES": 15,
    "DEFAULT_CURRENCY": "EUR",
    "ORDER_CODE_PREFIX": "ORD",
}


def setting(name):
    """Return a custom setting, falling back to the built-in default."""
    custom = ordering.config.get("custom") or {}
    return custom.get(name, DEFAULTS[name])


def reservation_ttl() -> timedelta:
    return timedelta(minutes=int(setting("RESERVATION_TTL_MINUTES")))


def payment_hold() -> timedelta:
    return timedelta(minutes=int(setting("PAYMENT_HOLD_MINUTES")))


def default_currency() -> str:
    return setting("DEFAULT_CURRENCY")


def order_code_prefix() -> str:
    return setting("ORDER_CODE_PREFIX")
