"""
ConsistencySynchronizer -- propagate one contract/date transition to the
booking, the availability ledger and the centralized status records.

Contract:
    ``apply(event)`` is called by the contract services *after* their
    primary write, inside the same transaction.  It runs three saga steps in
    order:

        booking       -- only when the event carries a booking_id
        availability  -- hold on sent/signed, release on rejected/cancelled
                         only if no other claim remains
        status        -- upsert contract / musician / booking status records

    Step failures never propagate; they are retried and dead-lettered by
    SagaRunner.  ``replay_dead_letter`` rebuilds a step from its stored
    payload.

Invariants enforced:
    - isAvailable is false iff some sent/signed contract date, sent/signed
      contract link, or confirmed booking claims the (musician, date).
    - A release never frees a date still held by another owner.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from booking_kernel.domain.clock import Clock, SystemClock
from booking_kernel.domain.status_metadata import (
    BookingStatusMetadata,
    ContractStatusMetadata,
    MusicianStatusMetadata,
)
from booking_kernel.domain.types import (
    Booking,
    BookingStatus,
    ClaimKind,
    ContractDate,
    ContractLink,
    ContractMusician,
    ContractStatus,
    DateStatus,
    EntityType,
    PaymentStatus,
    SagaDeadLetter,
)
from booking_kernel.exceptions import RecordNotFoundError, ValidationError
from booking_kernel.logging_config import get_logger
from booking_kernel.services.activity_log import ActivityLog
from booking_kernel.services.availability_ledger import AvailabilityLedger
from booking_kernel.services.saga import ActivityDraft, SagaResult, SagaRunner, SagaStep
from booking_kernel.services.status_service import EntityStatusService
from booking_kernel.storage.base import BookingStorage

logger = get_logger("services.synchronizer")

SAGA_NAME = "transition_sync"

HOLDING_STATUSES = frozenset({"sent", "signed"})
RELEASING_STATUSES = frozenset({"rejected", "cancelled"})

_CLAIMING_CONTRACT_STATUSES = (ContractStatus.SENT, ContractStatus.SIGNED)
_CLAIMING_DATE_STATUSES = (DateStatus.SENT, DateStatus.SIGNED)


def _status_value(status: Any) -> str | None:
    return getattr(status, "value", status)


@dataclass(frozen=True)
class TransitionEvent:
    """One (musician, date) status change on a claim-holding record.

    ``owner_id`` is the token-bearing record (contract-musician slice or
    contract link).  ``source_id`` is the row whose status changed (a
    contract date, or the link itself) and is excluded from the
    no-other-claim check.
    """

    musician_id: UUID
    date: date
    old_status: str | None
    new_status: str
    owner_kind: ClaimKind
    owner_id: UUID
    source_kind: ClaimKind
    source_id: UUID
    actor_id: UUID | None = None
    booking_id: UUID | None = None
    event_id: UUID | None = None
    amount: Decimal | None = None
    signature: str | None = None
    signed_by: str | None = None
    ip_address: str | None = None
    comments: str | None = None
    occurred_at: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "old_status", _status_value(self.old_status))
        object.__setattr__(self, "new_status", _status_value(self.new_status))
        object.__setattr__(self, "owner_kind", ClaimKind(self.owner_kind))
        object.__setattr__(self, "source_kind", ClaimKind(self.source_kind))

    def to_payload(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for key, value in asdict(self).items():
            if isinstance(value, (UUID, Decimal)):
                out[key] = str(value)
            elif isinstance(value, (date, datetime)):
                out[key] = value.isoformat()
            elif isinstance(value, ClaimKind):
                out[key] = value.value
            else:
                out[key] = value
        return out

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> TransitionEvent:
        def _uuid(key: str) -> UUID | None:
            value = payload.get(key)
            return UUID(value) if value else None

        try:
            occurred = payload.get("occurred_at")
            amount = payload.get("amount")
            return cls(
                musician_id=UUID(payload["musician_id"]),
                date=date.fromisoformat(payload["date"]),
                old_status=payload.get("old_status"),
                new_status=payload["new_status"],
                owner_kind=ClaimKind(payload["owner_kind"]),
                owner_id=UUID(payload["owner_id"]),
                source_kind=ClaimKind(payload["source_kind"]),
                source_id=UUID(payload["source_id"]),
                actor_id=_uuid("actor_id"),
                booking_id=_uuid("booking_id"),
                event_id=_uuid("event_id"),
                amount=Decimal(amount) if amount is not None else None,
                signature=payload.get("signature"),
                signed_by=payload.get("signed_by"),
                ip_address=payload.get("ip_address"),
                comments=payload.get("comments"),
                occurred_at=datetime.fromisoformat(occurred) if occurred else None,
            )
        except (KeyError, ValueError) as exc:
            raise ValidationError(f"Malformed transition payload: {exc}", field="payload") from exc


class ConsistencySynchronizer:
    def __init__(
        self,
        storage: BookingStorage,
        clock: Clock | None = None,
        activity_log: ActivityLog | None = None,
        ledger: AvailabilityLedger | None = None,
        status_service: EntityStatusService | None = None,
        max_attempts: int = 3,
    ):
        self._storage = storage
        self._clock = clock or SystemClock()
        self._activity = activity_log or ActivityLog(storage, self._clock)
        self._ledger = ledger or AvailabilityLedger(storage)
        self._status = status_service or EntityStatusService(storage, self._clock)
        self._runner = SagaRunner(storage, self._activity, self._clock, max_attempts)

    @property
    def ledger(self) -> AvailabilityLedger:
        return self._ledger

    # ------------------------------------------------------------------
    # Claims
    # ------------------------------------------------------------------

    def has_other_claim(
        self,
        musician_id: UUID,
        day: date,
        exclude_kind: ClaimKind | None = None,
        exclude_id: UUID | None = None,
    ) -> bool:
        """True if anything other than the excluded record holds the date."""

        def _excluded(kind: ClaimKind, record_id: UUID) -> bool:
            return kind == exclude_kind and record_id == exclude_id

        slices = self._storage.find(ContractMusician, musician_id=musician_id)
        if slices:
            dates = self._storage.find(
                ContractDate,
                contract_musician_id=tuple(s.id for s in slices),
                date=day,
                status=_CLAIMING_DATE_STATUSES,
            )
            if any(not _excluded(ClaimKind.CONTRACT_DATE, d.id) for d in dates):
                return True

        links = self._storage.find(
            ContractLink,
            musician_id=musician_id,
            event_date=day,
            status=_CLAIMING_CONTRACT_STATUSES,
        )
        if any(not _excluded(ClaimKind.CONTRACT_LINK, link.id) for link in links):
            return True

        bookings = self._storage.find(
            Booking,
            musician_id=musician_id,
            event_date=day,
            status=BookingStatus.CONFIRMED,
        )
        return any(not _excluded(ClaimKind.BOOKING, b.id) for b in bookings)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _sync_booking(self, event: TransitionEvent) -> ActivityDraft | None:
        booking = self._storage.get(Booking, event.booking_id)
        if booking is None:
            raise RecordNotFoundError("Booking", str(event.booking_id))

        now = self._clock.now()
        if event.new_status == "signed":
            updated = replace(
                booking,
                status=BookingStatus.CONFIRMED,
                contract_signed=True,
                contract_signed_at=now,
                payment_status=PaymentStatus.CONFIRMED,
            )
        elif event.new_status in RELEASING_STATUSES:
            updated = replace(
                booking,
                status=BookingStatus.CANCELLED,
                payment_status=PaymentStatus.CANCELLED,
            )
        elif event.new_status == "sent":
            updated = replace(booking, contract_sent=True, contract_sent_at=now)
        else:
            return None

        if updated == booking:
            return None
        self._storage.save(updated)
        return ActivityDraft(
            entity_type="booking",
            entity_id=booking.id,
            action=f"contract_{event.new_status}",
            detail=f"Booking {updated.status.value} after contract {event.new_status}",
            context={"owner_id": str(event.owner_id)},
        )

    def _sync_availability(self, event: TransitionEvent) -> ActivityDraft | None:
        if event.new_status in HOLDING_STATUSES:
            is_available = False
        elif event.new_status in RELEASING_STATUSES:
            # Only a row that was holding the date can release it.
            if event.old_status not in HOLDING_STATUSES:
                return None
            if self.has_other_claim(
                event.musician_id, event.date, event.source_kind, event.source_id,
            ):
                logger.info(
                    "availability_release_skipped",
                    extra={
                        "musician_id": str(event.musician_id),
                        "date": event.date.isoformat(),
                        "reason": "other_claim",
                    },
                )
                return None
            is_available = True
        else:
            return None

        if self._ledger.is_available(event.musician_id, event.date) == is_available:
            return None
        record = self._ledger.set_availability(
            event.musician_id,
            event.date,
            is_available,
            notes=f"{event.source_kind.value} {event.new_status}",
        )
        return ActivityDraft(
            entity_type="availability",
            entity_id=record.id,
            action="hold" if not is_available else "release",
            detail=f"{event.date.isoformat()} {'held' if not is_available else 'released'}",
            context={"musician_id": str(event.musician_id), "source_id": str(event.source_id)},
        )

    def _sync_status(self, event: TransitionEvent) -> ActivityDraft | None:
        signed = event.new_status == "signed"
        self._status.update_entity_status(
            EntityType.CONTRACT,
            event.owner_id,
            event.new_status,
            ContractStatusMetadata(
                signed_at=event.occurred_at if signed else None,
                signed_by=event.signed_by if signed else None,
                signature_value=event.signature if signed else None,
                ip_address=event.ip_address,
                booking_id=event.booking_id,
                comments=event.comments,
            ),
            event_id=event.event_id,
            musician_id=event.musician_id,
            event_date=event.date,
        )
        available = self._ledger.is_available(event.musician_id, event.date)
        self._status.update_entity_status(
            EntityType.MUSICIAN,
            event.musician_id,
            "available" if available else "booked",
            MusicianStatusMetadata(contract_id=event.owner_id, contract_amount=event.amount),
            custom_status=event.new_status,
            event_id=event.event_id,
            musician_id=event.musician_id,
            event_date=event.date,
        )
        if event.booking_id is not None:
            booking = self._storage.get(Booking, event.booking_id)
            if booking is not None:
                self._status.update_entity_status(
                    EntityType.BOOKING,
                    booking.id,
                    booking.status.value,
                    BookingStatusMetadata(
                        contract_id=event.owner_id,
                        payment_status=booking.payment_status.value,
                    ),
                    event_id=booking.event_id,
                    musician_id=booking.musician_id,
                    event_date=booking.event_date,
                )
        return None

    def _steps(self, event: TransitionEvent) -> list[SagaStep]:
        steps = []
        if event.booking_id is not None:
            steps.append(SagaStep("booking", lambda: self._sync_booking(event)))
        steps.append(SagaStep("availability", lambda: self._sync_availability(event)))
        steps.append(SagaStep("status", lambda: self._sync_status(event)))
        return steps

    def _step(self, step_name: str, event: TransitionEvent) -> SagaStep:
        for step in self._steps(event):
            if step.name == step_name:
                return step
        raise ValidationError(f"Unknown saga step {step_name!r}", field="step_name")

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def apply(self, event: TransitionEvent) -> SagaResult:
        """Run the side-effect saga for one transition.  Never raises on step failure."""
        if event.occurred_at is None:
            event = replace(event, occurred_at=self._clock.now())
        result = self._runner.run(
            SAGA_NAME, self._steps(event), event.to_payload(), actor_id=event.actor_id,
        )
        logger.debug(
            "transition_synced",
            extra={
                "musician_id": str(event.musician_id),
                "date": event.date.isoformat(),
                "new_status": event.new_status,
                "succeeded": result.succeeded,
            },
        )
        return result

    def replay_dead_letter(self, dead_letter_id: UUID) -> SagaDeadLetter:
        dead_letter = self._storage.get(SagaDeadLetter, dead_letter_id)
        if dead_letter is None:
            raise RecordNotFoundError("SagaDeadLetter", str(dead_letter_id))
        event = TransitionEvent.from_payload(dead_letter.payload)
        return self._runner.replay(dead_letter_id, self._step(dead_letter.step_name, event))

    def unresolved_dead_letters(self) -> list[SagaDeadLetter]:
        return self._runner.unresolved()
