"""Fee resolution order for planner assignments."""

from datetime import date, time
from decimal import Decimal
from uuid import uuid4

import pytest

from booking_kernel.domain.fees import FeeSource, resolve_fee, slot_duration_hours
from booking_kernel.domain.types import PayRate, PlannerAssignment, PlannerSlot

MUSICIAN = uuid4()
CATEGORY = uuid4()


def _slot(start=None, end=None, fee=None, category=CATEGORY) -> PlannerSlot:
    return PlannerSlot(
        planner_id=uuid4(),
        date=date(2025, 3, 5),
        category_id=category,
        start_time=start,
        end_time=end,
        fee=fee,
    )


def _assignment(**kwargs) -> PlannerAssignment:
    return PlannerAssignment(slot_id=uuid4(), musician_id=MUSICIAN, **kwargs)


RATES = [
    PayRate(
        musician_id=MUSICIAN,
        event_category_id=CATEGORY,
        hourly_rate=Decimal("50"),
        day_rate=Decimal("400"),
        event_rate=Decimal("250"),
    )
]


class TestSlotDuration:
    def test_simple(self):
        assert slot_duration_hours(time(19, 0), time(22, 30)) == Decimal("3.50")

    def test_past_midnight(self):
        assert slot_duration_hours(time(22, 0), time(2, 0)) == Decimal("4.00")

    def test_missing_bound(self):
        assert slot_duration_hours(time(19, 0), None) is None


class TestResolveFee:
    def test_actual_fee_first(self):
        fee = resolve_fee(_assignment(actual_fee=Decimal("300"), agreed_rate=Decimal("1")), _slot(), RATES)
        assert (fee.amount, fee.source) == (Decimal("300"), FeeSource.ACTUAL_FEE)

    def test_agreed_rate_second(self):
        fee = resolve_fee(_assignment(agreed_rate=Decimal("275")), _slot(), RATES)
        assert (fee.amount, fee.source) == (Decimal("275"), FeeSource.AGREED_RATE)

    def test_hourly_at_threshold(self):
        fee = resolve_fee(_assignment(), _slot(time(18, 0), time(22, 0)), RATES)
        assert fee.source == FeeSource.HOURLY_RATE
        assert fee.amount == Decimal("200")

    def test_day_rate_over_threshold(self):
        fee = resolve_fee(_assignment(), _slot(time(12, 0), time(18, 0)), RATES)
        assert (fee.amount, fee.source) == (Decimal("400"), FeeSource.DAY_RATE)

    def test_event_rate_without_times(self):
        fee = resolve_fee(_assignment(), _slot(), RATES)
        assert (fee.amount, fee.source) == (Decimal("250"), FeeSource.EVENT_RATE)

    def test_missing_rate_on_matched_row_is_zero(self):
        rates = [PayRate(musician_id=MUSICIAN, event_category_id=CATEGORY, day_rate=Decimal("400"))]
        fee = resolve_fee(_assignment(), _slot(time(19, 0), time(21, 0)), rates)
        assert fee.amount == Decimal("0")

    def test_no_pay_rate_is_zero(self):
        fee = resolve_fee(_assignment(), _slot(category=uuid4()), RATES)
        assert (fee.amount, fee.source) == (Decimal("0"), FeeSource.NONE)

    @pytest.mark.parametrize("use_slot_fee, expected", [(True, Decimal("180")), (False, Decimal("250"))])
    def test_slot_fee_only_when_requested(self, use_slot_fee, expected):
        fee = resolve_fee(_assignment(), _slot(fee=Decimal("180")), RATES, use_slot_fee=use_slot_fee)
        assert fee.amount == expected

    def test_threshold_is_configurable(self):
        fee = resolve_fee(
            _assignment(), _slot(time(18, 0), time(22, 0)), RATES, threshold_hours=Decimal("3"),
        )
        assert fee.source == FeeSource.DAY_RATE
