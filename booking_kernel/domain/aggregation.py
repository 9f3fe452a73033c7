"""
Per-date status aggregation and response counting.

Responsibility:
    Collapse the per-date statuses of one contract slice into the single
    status staff see, and derive response counts / sync status from the
    same rows.

Architecture position:
    Kernel > Domain -- pure functions, zero I/O.

Invariants enforced:
    - Least-progressed wins over pending < included < sent < signed.
    - Any rejected date forces the aggregate to rejected.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from booking_kernel.domain.types import (
    ContractDate,
    DateStatus,
    ResponseCounts,
    ResponseSyncStatus,
)

DATE_STATUS_PRIORITY: dict[DateStatus, int] = {
    DateStatus.PENDING: 0,
    DateStatus.INCLUDED: 1,
    DateStatus.SENT: 2,
    DateStatus.SIGNED: 3,
}


def aggregate_date_statuses(statuses: Iterable[DateStatus]) -> DateStatus:
    """Aggregate status for a musician across their contract dates.

    Cancelled dates drop out of the ranking; if every date is cancelled the
    aggregate is cancelled.  No dates at all reads as pending.
    """
    values = [DateStatus(s) for s in statuses]
    if not values:
        return DateStatus.PENDING
    if DateStatus.REJECTED in values:
        return DateStatus.REJECTED

    live = [s for s in values if s != DateStatus.CANCELLED]
    if not live:
        return DateStatus.CANCELLED
    return min(live, key=DATE_STATUS_PRIORITY.__getitem__)


def count_responses(dates: Iterable[ContractDate]) -> ResponseCounts:
    """Accepted / rejected / pending counts over non-cancelled dates."""
    accepted = rejected = pending = 0
    accepted_fee = Decimal("0")
    for d in dates:
        if d.status == DateStatus.CANCELLED:
            continue
        if d.status == DateStatus.SIGNED:
            accepted += 1
            accepted_fee += d.fee
        elif d.status == DateStatus.REJECTED:
            rejected += 1
        else:
            pending += 1
    return ResponseCounts(
        accepted=accepted,
        rejected=rejected,
        pending=pending,
        total=accepted + rejected + pending,
        accepted_fee=accepted_fee,
    )


def sync_status(counts: ResponseCounts) -> ResponseSyncStatus:
    if counts.total == 0 or (counts.accepted == 0 and counts.rejected == 0):
        return ResponseSyncStatus.PENDING
    if counts.pending > 0:
        return ResponseSyncStatus.NEEDS_ATTENTION
    if counts.accepted == counts.total:
        return ResponseSyncStatus.ACCEPTED
    if counts.rejected == counts.total:
        return ResponseSyncStatus.REJECTED
    return ResponseSyncStatus.PARTIALLY_ACCEPTED
