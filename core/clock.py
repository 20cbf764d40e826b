"""
core/clock.py -- "Now" as an injectable collaborator.

Token expiry, refresh record expiry and the expiry sweep all compare against
clock.now(). Production code uses SystemClock; tests pass a FrozenClock and
advance it explicitly instead of sleeping.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Timezone-aware UTC wall clock."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FrozenClock:
    """Clock pinned to a fixed instant until advanced."""

    def __init__(self, start: datetime | None = None) -> None:
        self._now = start or datetime.now(timezone.utc).replace(microsecond=0)

    def now(self) -> datetime:
        return self._now

    def advance(self, **delta) -> datetime:
        """Move the clock forward, e.g. clock.advance(days=8)."""
        self._now = self._now + timedelta(**delta)
        return self._now
