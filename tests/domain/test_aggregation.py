"""Per-date status aggregation and response counting."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from booking_kernel.domain.aggregation import (
    aggregate_date_statuses,
    count_responses,
    sync_status,
)
from booking_kernel.domain.types import ContractDate, DateStatus, ResponseSyncStatus

P, I, S, G, R, C = (
    DateStatus.PENDING,
    DateStatus.INCLUDED,
    DateStatus.SENT,
    DateStatus.SIGNED,
    DateStatus.REJECTED,
    DateStatus.CANCELLED,
)


def _row(status: DateStatus, fee: str = "100") -> ContractDate:
    return ContractDate(
        contract_musician_id=uuid4(), date=date(2025, 3, 5), fee=Decimal(fee), status=status,
    )


class TestAggregateDateStatuses:
    @pytest.mark.parametrize(
        "statuses, expected",
        [
            ([G, G], G),
            ([G, S], S),
            ([S, I], I),
            ([G, P, S], P),
            ([G, G, R], R),
            ([P, R], R),
            ([G, C], G),
            ([C, C], C),
            ([], P),
        ],
    )
    def test_least_progressed_wins_rejected_overrides(self, statuses, expected):
        assert aggregate_date_statuses(statuses) == expected

    def test_accepts_raw_strings(self):
        assert aggregate_date_statuses(["signed", "sent"]) == S


class TestCountResponses:
    def test_counts_skip_cancelled(self):
        counts = count_responses([_row(G, "300"), _row(G, "150"), _row(R), _row(S), _row(C)])
        assert (counts.accepted, counts.rejected, counts.pending, counts.total) == (2, 1, 1, 4)
        assert counts.accepted_fee == Decimal("450")

    def test_empty(self):
        counts = count_responses([])
        assert counts.total == 0
        assert counts.accepted_fee == Decimal("0")


class TestSyncStatus:
    @pytest.mark.parametrize(
        "rows, expected",
        [
            ([G, G], ResponseSyncStatus.ACCEPTED),
            ([R, R], ResponseSyncStatus.REJECTED),
            ([G, R], ResponseSyncStatus.PARTIALLY_ACCEPTED),
            ([G, S], ResponseSyncStatus.NEEDS_ATTENTION),
            ([S, P], ResponseSyncStatus.PENDING),
            ([], ResponseSyncStatus.PENDING),
        ],
    )
    def test_derived_from_counts(self, rows, expected):
        assert sync_status(count_responses([_row(s) for s in rows])) == expected
