"""Availability ledger: open-world upserts keyed by (musician, date)."""

from datetime import date
from uuid import uuid4

from booking_kernel.domain.types import AvailabilityRecord
from booking_kernel.services.availability_ledger import AvailabilityLedger, month_key


class TestAvailabilityLedger:
    def test_no_row_means_available(self, storage):
        assert AvailabilityLedger(storage).is_available(uuid4(), date(2025, 3, 5)) is True

    def test_upsert_keeps_one_row(self, storage):
        ledger = AvailabilityLedger(storage)
        musician_id = uuid4()
        ledger.set_availability(musician_id, date(2025, 3, 5), False)
        ledger.set_availability(musician_id, date(2025, 3, 5), True, notes="released")
        ledger.set_availability(musician_id, date(2025, 3, 5), False)

        rows = storage.find(AvailabilityRecord, musician_id=musician_id)
        assert len(rows) == 1
        assert rows[0].is_available is False
        assert rows[0].notes == "released"
        assert rows[0].month == "2025-03"
        assert rows[0].year == 2025

    def test_calendar_fills_open_world_default(self, storage):
        ledger = AvailabilityLedger(storage)
        musician_id = uuid4()
        ledger.set_availability(musician_id, date(2025, 2, 14), False)

        cal = ledger.calendar(musician_id, 2025, 2)
        assert len(cal) == 28
        assert cal[date(2025, 2, 14)] is False
        assert all(v for d, v in cal.items() if d != date(2025, 2, 14))

    def test_for_month_sorted(self, storage):
        ledger = AvailabilityLedger(storage)
        musician_id = uuid4()
        ledger.set_availability(musician_id, date(2025, 3, 20), False)
        ledger.set_availability(musician_id, date(2025, 3, 2), False)
        ledger.set_availability(musician_id, date(2025, 4, 1), False)
        assert [r.date.day for r in ledger.for_month(musician_id, 2025, 3)] == [2, 20]

    def test_month_key(self):
        assert month_key(date(2025, 1, 9)) == "2025-01"

    def test_logs_change(self, storage, captured_logs):
        AvailabilityLedger(storage).set_availability(uuid4(), date(2025, 3, 5), False)
        [record] = [r for r in captured_logs() if r["message"] == "availability_set"]
        assert record["is_available"] is False
        assert record["date"] == "2025-03-05"
