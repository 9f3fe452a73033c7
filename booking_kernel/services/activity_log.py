"""
ActivityLog -- append-only audit trail of every mutation.

Contract:
    ``record()`` appends one Activity entry.  Any storage failure is
    re-raised as ActivityLogError (a DownstreamError) so callers can
    swallow it the same way they swallow other side-effect failures.

Non-goals:
    - Entries are never read back for replay; ``for_entity`` exists for
      audit screens and tests.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from booking_kernel.domain.clock import Clock, SystemClock
from booking_kernel.domain.types import Activity
from booking_kernel.exceptions import ActivityLogError
from booking_kernel.logging_config import get_logger
from booking_kernel.storage.base import BookingStorage

logger = get_logger("services.activity")


class ActivityLog:
    def __init__(self, storage: BookingStorage, clock: Clock | None = None):
        self._storage = storage
        self._clock = clock or SystemClock()

    def record(
        self,
        entity_type: str,
        entity_id: UUID,
        action: str,
        detail: str,
        actor_id: UUID | None = None,
        context: dict[str, Any] | None = None,
    ) -> Activity:
        entry = Activity(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            detail=detail,
            occurred_at=self._clock.now(),
            actor_id=actor_id,
            context=dict(context or {}),
        )
        try:
            return self._storage.add(entry)
        except Exception as exc:
            raise ActivityLogError("activity_append", str(exc)) from exc

    def record_safely(self, *args: Any, **kwargs: Any) -> Activity | None:
        """``record()`` that logs and swallows ActivityLogError."""
        try:
            return self.record(*args, **kwargs)
        except ActivityLogError:
            logger.warning("activity_append_failed", exc_info=True)
            return None

    def for_entity(self, entity_type: str, entity_id: UUID) -> list[Activity]:
        entries = self._storage.find(Activity, entity_type=entity_type, entity_id=entity_id)
        return sorted(entries, key=lambda a: a.occurred_at)
