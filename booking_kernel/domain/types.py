"""
booking_kernel.domain.types -- Pure frozen dataclasses for the booking kernel.

ZERO I/O.  Every persisted record is a frozen dataclass with enum status
fields; storage implementations move these in and out of their backing
store, and services produce new versions with ``dataclasses.replace``.

Invariants enforced:
    - Records are immutable snapshots; a mutation is always an explicit save.
    - Money is Decimal, timestamps are timezone-aware UTC.
    - ``ContractMusician.total_fee`` equals the sum of its ``ContractDate.fee``
      values (maintained by the contract service, checked in tests).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


# =============================================================================
# Status enums
# =============================================================================


class ContractStatus(str, Enum):
    """Lifecycle of a contract-musician slice or a single-event contract link."""

    PENDING = "pending"  # Generated, not yet dispatched
    SENT = "sent"  # Dispatched to the musician; tentative hold on the dates
    SIGNED = "signed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"  # Staff action from any non-terminal state


RESPONDABLE_STATUSES: frozenset[ContractStatus] = frozenset(
    {ContractStatus.PENDING, ContractStatus.SENT}
)
TERMINAL_CONTRACT_STATUSES: frozenset[ContractStatus] = frozenset(
    {ContractStatus.SIGNED, ContractStatus.REJECTED, ContractStatus.CANCELLED}
)


class DateStatus(str, Enum):
    """Per-date status inside a monthly contract-musician slice."""

    PENDING = "pending"
    INCLUDED = "included"  # Staff confirmed the date belongs in the contract
    SENT = "sent"
    SIGNED = "signed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


TERMINAL_DATE_STATUSES: frozenset[DateStatus] = frozenset(
    {DateStatus.SIGNED, DateStatus.REJECTED, DateStatus.CANCELLED}
)


class MonthlyContractStatus(str, Enum):
    """Parent (planner, month, year) contract status."""

    DRAFT = "draft"
    SENT = "sent"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class RespondAction(str, Enum):
    """What a musician does with a contract token."""

    SIGN = "sign"
    REJECT = "reject"

    @property
    def contract_status(self) -> ContractStatus:
        return ContractStatus.SIGNED if self is RespondAction.SIGN else ContractStatus.REJECTED

    @property
    def date_status(self) -> DateStatus:
        return DateStatus.SIGNED if self is RespondAction.SIGN else DateStatus.REJECTED


class InvoiceStatus(str, Enum):
    """Invoice lifecycle: strictly draft -> finalized -> paid."""

    DRAFT = "draft"
    FINALIZED = "finalized"
    PAID = "paid"


class AssignmentStatus(str, Enum):
    """Planner assignment attendance status."""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    ATTENDED = "attended"
    ABSENT = "absent"
    CANCELLED = "cancelled"


class AssignmentContractStatus(str, Enum):
    """Contract progress mirrored onto the planner assignment."""

    GENERATED = "contract-generated"
    SENT = "sent"
    SIGNED = "signed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class InvitationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    CONFIRMED = "confirmed"  # Contract signed
    REJECTED = "rejected"  # Contract rejected


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    PAID = "paid"


class EntityType(str, Enum):
    """Entity kinds that carry centralized status records."""

    CONTRACT = "contract"
    MUSICIAN = "musician"
    BOOKING = "booking"


class ClaimKind(str, Enum):
    """Record kinds that can hold a musician's date."""

    CONTRACT_DATE = "contract_date"
    CONTRACT_LINK = "contract_link"
    BOOKING = "booking"


class SendOutcome(str, Enum):
    SENT = "sent"
    SKIPPED = "skipped"


class ResponseSyncStatus(str, Enum):
    """Derived from per-date response counts."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    PARTIALLY_ACCEPTED = "partially-accepted"
    REJECTED = "rejected"
    NEEDS_ATTENTION = "needs-attention"


class GenerationOutcome(str, Enum):
    CREATED = "created"
    FAILED = "failed"


# =============================================================================
# Reference records
# =============================================================================


@dataclass(frozen=True)
class Musician:
    name: str
    email: str | None = None
    phone: str | None = None
    is_active: bool = True
    id: UUID = field(default_factory=uuid4)


@dataclass(frozen=True)
class PayRate:
    """A musician's rates for one event category."""

    musician_id: UUID
    event_category_id: UUID
    hourly_rate: Decimal | None = None
    day_rate: Decimal | None = None
    event_rate: Decimal | None = None
    notes: str | None = None
    id: UUID = field(default_factory=uuid4)


@dataclass(frozen=True)
class Venue:
    name: str
    address: str | None = None
    id: UUID = field(default_factory=uuid4)


@dataclass(frozen=True)
class MonthlyPlanner:
    name: str
    month: int
    year: int
    status: str = "draft"
    id: UUID = field(default_factory=uuid4)


@dataclass(frozen=True)
class PlannerSlot:
    """A schedulable performance opportunity on one date."""

    planner_id: UUID
    date: date
    venue_id: UUID | None = None
    category_id: UUID | None = None
    start_time: time | None = None
    end_time: time | None = None
    description: str | None = None
    status: str = "open"
    fee: Decimal | None = None
    id: UUID = field(default_factory=uuid4)


@dataclass(frozen=True)
class PlannerAssignment:
    """A musician assigned to a planner slot."""

    slot_id: UUID
    musician_id: UUID
    status: AssignmentStatus = AssignmentStatus.SCHEDULED
    actual_fee: Decimal | None = None
    agreed_rate: Decimal | None = None
    notes: str | None = None
    contract_id: UUID | None = None
    contract_status: AssignmentContractStatus | None = None
    id: UUID = field(default_factory=uuid4)


# =============================================================================
# Invitation / booking records
# =============================================================================


@dataclass(frozen=True)
class Invitation:
    event_id: UUID
    musician_id: UUID
    event_date: date
    status: InvitationStatus = InvitationStatus.PENDING
    invited_at: datetime | None = None
    responded_at: datetime | None = None
    response_message: str | None = None
    id: UUID = field(default_factory=uuid4)


@dataclass(frozen=True)
class Booking:
    """An accepted invitation materialized into a commitment for one date."""

    event_id: UUID
    musician_id: UUID
    event_date: date
    invitation_id: UUID | None = None
    status: BookingStatus = BookingStatus.PENDING
    is_accepted: bool = True
    contract_sent: bool = False
    contract_sent_at: datetime | None = None
    contract_signed: bool = False
    contract_signed_at: datetime | None = None
    payment_amount: Decimal | None = None
    payment_status: PaymentStatus = PaymentStatus.PENDING
    notes: str | None = None
    id: UUID = field(default_factory=uuid4)


# =============================================================================
# Contract records
# =============================================================================


@dataclass(frozen=True)
class ContractLink:
    """Single-event contract bound to a bearer token."""

    token: str
    musician_id: UUID
    event_id: UUID
    event_date: date
    amount: Decimal | None = None
    booking_id: UUID | None = None
    invitation_id: UUID | None = None
    status: ContractStatus = ContractStatus.PENDING
    response: str | None = None
    sent_at: datetime | None = None
    expires_at: datetime | None = None
    responded_at: datetime | None = None
    completed_at: datetime | None = None
    company_signature: str | None = None
    musician_signature: str | None = None
    ip_address: str | None = None
    id: UUID = field(default_factory=uuid4)


@dataclass(frozen=True)
class MonthlyContract:
    """Aggregate contract keyed by (planner_id, month, year)."""

    planner_id: UUID
    month: int
    year: int
    name: str
    status: MonthlyContractStatus = MonthlyContractStatus.DRAFT
    terms_and_conditions: str | None = None
    id: UUID = field(default_factory=uuid4)


@dataclass(frozen=True)
class ContractMusician:
    """One musician's slice of a monthly contract."""

    contract_id: UUID
    musician_id: UUID
    token: str
    status: ContractStatus = ContractStatus.PENDING
    total_fee: Decimal = Decimal("0")
    sent_at: datetime | None = None
    responded_at: datetime | None = None
    completed_at: datetime | None = None
    ip_address: str | None = None
    signature: str | None = None
    response_comments: str | None = None
    accepted_dates: int = 0
    rejected_dates: int = 0
    pending_dates: int = 0
    total_dates: int = 0
    id: UUID = field(default_factory=uuid4)


@dataclass(frozen=True)
class ContractDate:
    """One scheduled date inside a contract-musician slice.

    Venue name, times and fee are frozen copies taken at generation time.
    """

    contract_musician_id: UUID
    date: date
    fee: Decimal
    assignment_id: UUID | None = None
    venue_id: UUID | None = None
    venue_name: str | None = None
    start_time: time | None = None
    end_time: time | None = None
    status: DateStatus = DateStatus.PENDING
    responded_at: datetime | None = None
    response_notes: str | None = None
    id: UUID = field(default_factory=uuid4)


@dataclass(frozen=True)
class ContractStatusHistory:
    contract_musician_id: UUID
    previous_status: str | None
    new_status: str
    changed_at: datetime
    notes: str | None = None
    id: UUID = field(default_factory=uuid4)


# =============================================================================
# Ledger / invoice / audit records
# =============================================================================


@dataclass(frozen=True)
class AvailabilityRecord:
    """(musician, date) -> is_available.  Absence means available."""

    musician_id: UUID
    date: date
    is_available: bool
    month: str  # "YYYY-MM"
    year: int
    notes: str | None = None
    id: UUID = field(default_factory=uuid4)


@dataclass(frozen=True)
class MonthlyInvoice:
    planner_id: UUID
    musician_id: UUID
    month: int
    year: int
    total_amount: Decimal = Decimal("0")
    total_slots: int = 0
    attended_slots: int = 0
    status: InvoiceStatus = InvoiceStatus.DRAFT
    generated_at: datetime | None = None
    finalized_at: datetime | None = None
    paid_at: datetime | None = None
    notes: str | None = None
    assignment_details: list[dict[str, Any]] = field(default_factory=list)
    id: UUID = field(default_factory=uuid4)


@dataclass(frozen=True)
class Activity:
    """Append-only audit entry.  Never read back for replay."""

    entity_type: str
    entity_id: UUID
    action: str
    detail: str
    occurred_at: datetime
    actor_id: UUID | None = None
    context: dict[str, Any] = field(default_factory=dict)
    id: UUID = field(default_factory=uuid4)


@dataclass(frozen=True)
class EntityStatusRecord:
    """Centralized status for a contract, musician or booking on a date."""

    entity_type: EntityType
    entity_id: UUID
    primary_status: str
    updated_at: datetime
    custom_status: str | None = None
    event_id: UUID | None = None
    musician_id: UUID | None = None
    event_date: date | None = None
    details: dict[str, Any] = field(default_factory=dict)
    id: UUID = field(default_factory=uuid4)


@dataclass(frozen=True)
class SagaDeadLetter:
    """A side-effect step that exhausted its retries."""

    saga_name: str
    step_name: str
    payload: dict[str, Any]
    attempts: int
    last_error: str
    created_at: datetime
    resolved_at: datetime | None = None
    id: UUID = field(default_factory=uuid4)


# =============================================================================
# Result DTOs (not persisted)
# =============================================================================


@dataclass(frozen=True)
class DateEntry:
    """Input for one date when generating a contract-musician slice."""

    date: date
    fee: Decimal
    assignment_id: UUID | None = None
    venue_id: UUID | None = None
    venue_name: str | None = None
    start_time: time | None = None
    end_time: time | None = None


@dataclass(frozen=True)
class SendResult:
    contract_musician_id: UUID
    outcome: SendOutcome
    status: ContractStatus
    email_delivered: bool = False
    reason: str | None = None


@dataclass(frozen=True)
class MusicianGenerationResult:
    """Per-musician outcome of a monthly contract generation batch."""

    musician_id: UUID | None
    outcome: GenerationOutcome
    contract_musician_id: UUID | None = None
    assignment_ids: tuple[UUID, ...] = ()
    total_fee: Decimal = Decimal("0")
    error_code: str | None = None
    error_message: str | None = None


@dataclass(frozen=True)
class GenerationResult:
    contract_id: UUID
    results: tuple[MusicianGenerationResult, ...]

    @property
    def created(self) -> tuple[MusicianGenerationResult, ...]:
        return tuple(r for r in self.results if r.outcome == GenerationOutcome.CREATED)

    @property
    def failed(self) -> tuple[MusicianGenerationResult, ...]:
        return tuple(r for r in self.results if r.outcome == GenerationOutcome.FAILED)


@dataclass(frozen=True)
class ResponseCounts:
    accepted: int
    rejected: int
    pending: int
    total: int
    accepted_fee: Decimal = Decimal("0")


@dataclass(frozen=True)
class ResponseSummary:
    """Per-contract response rollup across all musicians."""

    contract_id: UUID
    total: int
    by_status: dict[str, int]
    response_rate: Decimal
    rejection_rate: Decimal
    # Slices per ResponseSyncStatus, from their per-date answers.
    by_response: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class ContractDateView:
    date: date
    venue: str | None
    start_time: time | None
    fee: Decimal
    status: DateStatus


_CENT = Decimal("0.01")


def format_money(amount: Decimal) -> str:
    """Render an amount with exactly two decimal places, whatever the storage scale."""
    return str(amount.quantize(_CENT))


@dataclass(frozen=True)
class ContractView:
    """What a musician sees when opening their token link."""

    id: UUID
    musician_id: UUID
    musician_name: str
    dates: tuple[ContractDateView, ...]
    total_amount: Decimal
    status: ContractStatus
    terms_and_conditions: str | None
    sent_at: datetime | None
    responded_at: datetime | None
    completed_at: datetime | None

    def to_payload(self) -> dict[str, Any]:
        """Wire shape (camelCase) for the HTTP surface."""

        def _iso(value: datetime | None) -> str | None:
            return value.isoformat() if value is not None else None

        return {
            "id": str(self.id),
            "musicianId": str(self.musician_id),
            "musicianName": self.musician_name,
            "dates": [
                {
                    "date": d.date.isoformat(),
                    "venue": d.venue,
                    "startTime": d.start_time.strftime("%H:%M") if d.start_time else None,
                    "fee": format_money(d.fee),
                    "status": d.status.value,
                }
                for d in self.dates
            ],
            "totalAmount": format_money(self.total_amount),
            "status": self.status.value,
            "termsAndConditions": self.terms_and_conditions,
            "sentAt": _iso(self.sent_at),
            "respondedAt": _iso(self.responded_at),
            "completedAt": _iso(self.completed_at),
        }
