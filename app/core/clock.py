"""
Injectable wall clock.

Everything that compares against "now" (token expiry, reset-token expiry,
password-change timestamps) receives a ``Clock`` instead of calling
``datetime.now`` directly, so tests can freeze and advance time.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything we store is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def get_clock() -> Clock:
    """FastAPI dependency — overridden in tests with a frozen clock."""
    return utc_now
