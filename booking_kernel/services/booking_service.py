"""Invitations and the bookings they turn into."""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import UUID

from booking_kernel.domain.clock import Clock, SystemClock
from booking_kernel.domain.lifecycles import INVITATION_WORKFLOW
from booking_kernel.domain.types import (
    Booking,
    BookingStatus,
    Invitation,
    InvitationStatus,
    Musician,
)
from booking_kernel.domain.workflow import require_transition
from booking_kernel.exceptions import (
    DuplicateRecordError,
    InvalidTransitionError,
    RecordNotFoundError,
    ValidationError,
)
from booking_kernel.logging_config import get_logger
from booking_kernel.services.activity_log import ActivityLog
from booking_kernel.storage.base import BookingStorage

logger = get_logger("services.booking")


class BookingService:
    def __init__(
        self,
        storage: BookingStorage,
        clock: Clock | None = None,
        activity_log: ActivityLog | None = None,
    ):
        self._storage = storage
        self._clock = clock or SystemClock()
        self._activity = activity_log or ActivityLog(storage, self._clock)

    def invite(self, event_id: UUID, musician_id: UUID, event_date: date) -> Invitation:
        """Create a pending invitation.

        Raises:
            ValidationError: unknown musician.
            DuplicateRecordError: the musician is already invited for this
                event on this date.
        """
        if self._storage.get(Musician, musician_id) is None:
            raise ValidationError(f"Musician {musician_id} not found", field="musician_id")
        key = {"event_id": event_id, "musician_id": musician_id, "event_date": event_date}
        if self._storage.find_one(Invitation, **key) is not None:
            raise DuplicateRecordError("Invitation", key)

        invitation = self._storage.add(
            Invitation(
                event_id=event_id,
                musician_id=musician_id,
                event_date=event_date,
                invited_at=self._clock.now(),
            )
        )
        logger.info(
            "invitation_created",
            extra={"invitation_id": str(invitation.id), "musician_id": str(musician_id)},
        )
        self._activity.record_safely(
            "invitation", invitation.id, "created", f"Invited for {event_date.isoformat()}",
        )
        return invitation

    def get_invitation(self, invitation_id: UUID) -> Invitation:
        return self._storage.require(Invitation, invitation_id)

    def respond_to_invitation(
        self,
        invitation_id: UUID,
        accept: bool,
        message: str | None = None,
        payment_amount: Decimal | None = None,
    ) -> tuple[Invitation, Booking | None]:
        """Accept (creating a pending booking) or decline a pending invitation.

        Raises:
            RecordNotFoundError: unknown invitation.
            InvalidTransitionError: the invitation is no longer pending.
        """
        invitation = self.get_invitation(invitation_id)
        action = "accept" if accept else "decline"
        transition = require_transition(
            INVITATION_WORKFLOW, "Invitation", invitation.id, invitation.status, action,
        )

        now = self._clock.now()
        with self._storage.atomic():
            updated = self._storage.compare_and_set(
                Invitation,
                invitation.id,
                expected=(InvitationStatus.PENDING,),
                changes={
                    "status": InvitationStatus(transition.to_state),
                    "responded_at": now,
                    "response_message": message,
                },
            )
            if updated is None:
                current = self.get_invitation(invitation.id)
                raise InvalidTransitionError(
                    "Invitation", str(invitation.id), current.status.value, action,
                )
            booking = None
            if accept:
                booking = self._storage.add(
                    Booking(
                        event_id=invitation.event_id,
                        musician_id=invitation.musician_id,
                        event_date=invitation.event_date,
                        invitation_id=invitation.id,
                        payment_amount=payment_amount,
                        notes=message,
                    )
                )

        logger.info(
            "invitation_responded",
            extra={
                "invitation_id": str(invitation.id),
                "action": action,
                "booking_id": str(booking.id) if booking else None,
            },
        )
        self._activity.record_safely(
            "invitation", invitation.id, action, message or f"Invitation {updated.status.value}",
        )
        return updated, booking

    def get_booking(self, booking_id: UUID) -> Booking:
        booking = self._storage.get(Booking, booking_id)
        if booking is None:
            raise RecordNotFoundError("Booking", str(booking_id))
        return booking

    def bookings_for(self, musician_id: UUID, event_date: date | None = None) -> list[Booking]:
        criteria = {"musician_id": musician_id}
        if event_date is not None:
            criteria["event_date"] = event_date
        return sorted(self._storage.find(Booking, **criteria), key=lambda b: b.event_date)

    def cancel_booking(self, booking_id: UUID, reason: str | None = None) -> Booking:
        """Staff cancellation of a booking that has no contract attached yet."""
        booking = self.get_booking(booking_id)
        if booking.status == BookingStatus.CANCELLED:
            return booking
        # Confirmed or contracted bookings are released through their contract.
        if booking.contract_sent or booking.status == BookingStatus.CONFIRMED:
            raise InvalidTransitionError(
                "Booking", str(booking.id), booking.status.value, "cancel",
            )
        updated = self._storage.save(
            replace(booking, status=BookingStatus.CANCELLED, notes=reason or booking.notes)
        )
        self._activity.record_safely("booking", booking.id, "cancelled", reason or "Booking cancelled")
        return updated
