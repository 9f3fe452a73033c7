"""
Pure domain layer.

Frozen records, lifecycle state machines, per-date aggregation, fee
resolution and typed status metadata.  NO dependencies on the ORM, the
database, or I/O; time only enters through an injected Clock.
"""

from booking_kernel.domain.aggregation import (
    aggregate_date_statuses,
    count_responses,
    sync_status,
)
from booking_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from booking_kernel.domain.fees import FeeResolution, FeeSource, resolve_fee
from booking_kernel.domain.lifecycles import (
    CONTRACT_DATE_WORKFLOW,
    CONTRACT_WORKFLOW,
    INVITATION_WORKFLOW,
    INVOICE_WORKFLOW,
    MONTHLY_CONTRACT_WORKFLOW,
)
from booking_kernel.domain.status_metadata import (
    BookingStatusMetadata,
    ContractStatusMetadata,
    MusicianStatusMetadata,
    StatusMetadata,
    parse_status_metadata,
)
from booking_kernel.domain.workflow import Guard, Transition, Workflow, require_transition

__all__ = [
    "BookingStatusMetadata",
    "CONTRACT_DATE_WORKFLOW",
    "CONTRACT_WORKFLOW",
    "Clock",
    "ContractStatusMetadata",
    "DeterministicClock",
    "FeeResolution",
    "FeeSource",
    "Guard",
    "INVITATION_WORKFLOW",
    "INVOICE_WORKFLOW",
    "MONTHLY_CONTRACT_WORKFLOW",
    "MusicianStatusMetadata",
    "StatusMetadata",
    "SystemClock",
    "Transition",
    "Workflow",
    "aggregate_date_statuses",
    "count_responses",
    "parse_status_metadata",
    "require_transition",
    "resolve_fee",
    "sync_status",
]
