"""
Wall-clock source for deadline comparisons.

Services take an optional ``now`` argument and fall back to ``get_clock()``,
which resolves ``app.extensions["clock"]`` when an app context is active.
Tests swap in a ``FrozenClock`` to drive deadlines deterministically.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from flask import current_app, has_app_context


class SystemClock:
    """Real UTC time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FrozenClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime) -> None:
        self._now = as_utc(start)

    def now(self) -> datetime:
        return self._now

    def set(self, value: datetime) -> None:
        self._now = as_utc(value)

    def advance(self, **kwargs) -> datetime:
        """Move forward by ``timedelta(**kwargs)`` and return the new time."""
        self._now = self._now + timedelta(**kwargs)
        return self._now


_default_clock = SystemClock()


def get_clock():
    if has_app_context():
        return current_app.extensions.get("clock", _default_clock)
    return _default_clock


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on round-trip)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
