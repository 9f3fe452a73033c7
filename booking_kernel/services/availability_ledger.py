"""
Availability Ledger -- per-musician, per-date bookability.

Open-world: a (musician, date) with no row is available.  Rows are upserted
on the (musician_id, date) key, so a date has at most one row no matter how
many contracts touch it.

The ledger itself never decides whether a release is safe; that is the
synchronizer's no-other-claim check.
"""

from __future__ import annotations

import calendar
from dataclasses import replace
from datetime import date
from uuid import UUID

from booking_kernel.domain.types import AvailabilityRecord
from booking_kernel.exceptions import AvailabilityUpdateError, DuplicateRecordError
from booking_kernel.logging_config import get_logger
from booking_kernel.storage.base import BookingStorage

logger = get_logger("services.availability")


def month_key(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


class AvailabilityLedger:
    def __init__(self, storage: BookingStorage):
        self._storage = storage

    def get(self, musician_id: UUID, day: date) -> AvailabilityRecord | None:
        return self._storage.find_one(AvailabilityRecord, musician_id=musician_id, date=day)

    def is_available(self, musician_id: UUID, day: date) -> bool:
        record = self.get(musician_id, day)
        return True if record is None else record.is_available

    def set_availability(
        self,
        musician_id: UUID,
        day: date,
        is_available: bool,
        notes: str | None = None,
    ) -> AvailabilityRecord:
        """Upsert the (musician, date) row.

        Raises:
            AvailabilityUpdateError: the storage write failed.
        """
        try:
            existing = self.get(musician_id, day)
            if existing is None:
                record = self._storage.add(
                    AvailabilityRecord(
                        musician_id=musician_id,
                        date=day,
                        is_available=is_available,
                        month=month_key(day),
                        year=day.year,
                        notes=notes,
                    )
                )
            elif existing.is_available == is_available and notes is None:
                record = existing
            else:
                record = self._storage.save(
                    replace(
                        existing,
                        is_available=is_available,
                        notes=notes if notes is not None else existing.notes,
                    )
                )
        except DuplicateRecordError as exc:
            # Lost an insert race for the same key; the next attempt updates.
            raise AvailabilityUpdateError("availability_upsert", str(exc)) from exc

        logger.info(
            "availability_set",
            extra={
                "musician_id": str(musician_id),
                "date": day.isoformat(),
                "is_available": is_available,
            },
        )
        return record

    def for_month(self, musician_id: UUID, year: int, month: int) -> list[AvailabilityRecord]:
        key = f"{year:04d}-{month:02d}"
        records = self._storage.find(AvailabilityRecord, musician_id=musician_id, month=key)
        return sorted(records, key=lambda r: r.date)

    def calendar(self, musician_id: UUID, year: int, month: int) -> dict[date, bool]:
        """Every day of the month with the open-world default applied."""
        explicit = {r.date: r.is_available for r in self.for_month(musician_id, year, month)}
        _, days = calendar.monthrange(year, month)
        return {
            date(year, month, d): explicit.get(date(year, month, d), True)
            for d in range(1, days + 1)
        }
