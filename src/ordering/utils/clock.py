"""Wall clock used for reservation expiry and order timestamps.

Components take a ``clock`` callable; the module-level clock is what command
handlers use and what tests replace with ``set_clock``.
"""

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(UTC)


_current_clock: Clock = utcnow


def get_clock() -> Clock:
    """Return the active clock."""
    return _current_clock


def set_clock(clock: Clock) -> None:
    """Override the active clock (useful for tests)."""
    global _current_clock
    _current_clock = clock


def reset_clock() -> None:
    """Reset to the system clock."""
    global _current_clock
    _current_clock = utcnow


def now() -> datetime:
    return _current_clock()


def as_utc(value: datetime | None) -> datetime | None:
    """Normalise a stored datetime to an aware UTC value.

    Some providers hand back naive datetimes; those are taken to be UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
