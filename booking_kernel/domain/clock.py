"""
Injectable time source.

Every timestamp the kernel writes (sent_at, responded_at, completed_at,
expires_at, paid_at, dead-letter created_at) comes from the Clock handed to
the service constructor.  Services never read the wall clock themselves.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Timezone-aware current time in UTC."""


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """Pinned clock for tests.  Time only moves through ``advance()``."""

    def __init__(self, start: datetime | None = None):
        start = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
        if start.tzinfo is None:
            raise ValueError("DeterministicClock needs a timezone-aware start")
        self._current = start.astimezone(timezone.utc)

    def now(self) -> datetime:
        return self._current

    def advance(self, seconds: float = 1) -> datetime:
        """Step forward and return the new time."""
        self._current += timedelta(seconds=seconds)
        return self._current
