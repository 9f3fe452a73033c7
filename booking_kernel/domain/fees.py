"""
Fee resolution for planner assignments.

Resolution order:
    1. ``actual_fee`` on the assignment
    2. ``agreed_rate`` on the assignment
    3. the musician's PayRate for the slot's category:
         duration <= threshold  -> hourly_rate * hours
         duration >  threshold  -> day_rate
         no start/end times     -> event_rate
       a missing rate on the matched row resolves to 0
    4. 0

Pure functions, zero I/O.  Shared by the invoice aggregator and the monthly
contract generator; only the generator consults the slot fee.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum

from booking_kernel.domain.types import PayRate, PlannerAssignment, PlannerSlot

ZERO = Decimal("0")
DEFAULT_HOURLY_THRESHOLD_HOURS = Decimal("4")


class FeeSource(str, Enum):
    ACTUAL_FEE = "actual_fee"
    AGREED_RATE = "agreed_rate"
    HOURLY_RATE = "hourly_rate"
    DAY_RATE = "day_rate"
    EVENT_RATE = "event_rate"
    SLOT_FEE = "slot_fee"
    NONE = "none"


@dataclass(frozen=True)
class FeeResolution:
    amount: Decimal
    source: FeeSource
    hours: Decimal | None = None


def slot_duration_hours(start: time | None, end: time | None) -> Decimal | None:
    """Duration in hours, or None when either bound is missing.

    An end time at or before the start is treated as running past midnight.
    """
    if start is None or end is None:
        return None
    anchor = date(2000, 1, 1)
    start_dt = datetime.combine(anchor, start)
    end_dt = datetime.combine(anchor, end)
    seconds = (end_dt - start_dt).total_seconds()
    if seconds <= 0:
        seconds += 24 * 3600
    return (Decimal(int(seconds)) / Decimal(3600)).quantize(Decimal("0.01"))


def find_pay_rate(
    pay_rates: Iterable[PayRate], musician_id: object, category_id: object,
) -> PayRate | None:
    if category_id is None:
        return None
    for rate in pay_rates:
        if rate.musician_id == musician_id and rate.event_category_id == category_id:
            return rate
    return None


def resolve_fee(
    assignment: PlannerAssignment,
    slot: PlannerSlot | None,
    pay_rates: Iterable[PayRate],
    threshold_hours: Decimal = DEFAULT_HOURLY_THRESHOLD_HOURS,
    use_slot_fee: bool = False,
) -> FeeResolution:
    """Resolve what a single assignment pays.

    ``use_slot_fee`` lets contract generation fall back to the fee posted on
    the slot itself before consulting pay rates.
    """
    if assignment.actual_fee is not None:
        return FeeResolution(Decimal(assignment.actual_fee), FeeSource.ACTUAL_FEE)
    if assignment.agreed_rate is not None:
        return FeeResolution(Decimal(assignment.agreed_rate), FeeSource.AGREED_RATE)
    if slot is None:
        return FeeResolution(ZERO, FeeSource.NONE)
    if use_slot_fee and slot.fee is not None:
        return FeeResolution(Decimal(slot.fee), FeeSource.SLOT_FEE)

    rate = find_pay_rate(pay_rates, assignment.musician_id, slot.category_id)
    if rate is None:
        return FeeResolution(ZERO, FeeSource.NONE)

    hours = slot_duration_hours(slot.start_time, slot.end_time)
    if hours is None:
        return FeeResolution(Decimal(rate.event_rate or ZERO), FeeSource.EVENT_RATE)
    if hours <= threshold_hours:
        amount = Decimal(rate.hourly_rate) * hours if rate.hourly_rate is not None else ZERO
        return FeeResolution(amount, FeeSource.HOURLY_RATE, hours=hours)
    return FeeResolution(Decimal(rate.day_rate or ZERO), FeeSource.DAY_RATE, hours=hours)
