"""
In-process storage backed by dicts of frozen records.

One instance per test or per tool run; there is deliberately no module-level
instance.  A re-entrant lock serializes every operation so compare-and-set
is atomic across threads, and ``atomic()`` snapshots the tables so a failed
block restores them exactly.
"""

from __future__ import annotations

import threading
from collections.abc import Collection, Iterator
from contextlib import contextmanager
from dataclasses import replace
from typing import Any
from uuid import UUID

from booking_kernel.exceptions import DuplicateRecordError, RecordNotFoundError
from booking_kernel.logging_config import get_logger
from booking_kernel.storage.base import UNIQUE_KEYS, BookingStorage, R, matches

logger = get_logger("storage.memory")


class InMemoryStorage(BookingStorage):
    """BookingStorage over plain dicts."""

    def __init__(self) -> None:
        self._tables: dict[type, dict[UUID, Any]] = {}
        self._lock = threading.RLock()

    def _table(self, record_type: type) -> dict[UUID, Any]:
        return self._tables.setdefault(record_type, {})

    def _check_unique(self, record: Any) -> None:
        record_type = type(record)
        for key_fields in UNIQUE_KEYS.get(record_type, ()):
            key = {name: getattr(record, name) for name in key_fields}
            for other in self._table(record_type).values():
                if other.id != record.id and matches(other, key):
                    raise DuplicateRecordError(record_type.__name__, key)

    def add(self, record: R) -> R:
        with self._lock:
            table = self._table(type(record))
            if record.id in table:
                raise DuplicateRecordError(type(record).__name__, {"id": record.id})
            self._check_unique(record)
            table[record.id] = record
            return record

    def get(self, record_type: type[R], record_id: UUID) -> R | None:
        with self._lock:
            return self._table(record_type).get(record_id)

    def save(self, record: R) -> R:
        with self._lock:
            table = self._table(type(record))
            if record.id not in table:
                raise RecordNotFoundError(type(record).__name__, str(record.id))
            self._check_unique(record)
            table[record.id] = record
            return record

    def find(self, record_type: type[R], **criteria: Any) -> list[R]:
        with self._lock:
            return [r for r in self._table(record_type).values() if matches(r, criteria)]

    def compare_and_set(
        self,
        record_type: type[R],
        record_id: UUID,
        expected: Collection[Any],
        changes: dict[str, Any],
        field: str = "status",
    ) -> R | None:
        with self._lock:
            current = self._table(record_type).get(record_id)
            if current is None or getattr(current, field) not in expected:
                return None
            updated = replace(current, **changes)
            self._check_unique(updated)
            self._table(record_type)[record_id] = updated
            return updated

    @contextmanager
    def atomic(self) -> Iterator[None]:
        with self._lock:
            snapshot = {record_type: dict(rows) for record_type, rows in self._tables.items()}
            try:
                yield
            except BaseException:
                self._tables = snapshot
                logger.debug("memory_atomic_rolled_back")
                raise
