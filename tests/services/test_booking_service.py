"""Invitations and bookings."""

from datetime import date
from uuid import uuid4

import pytest

from booking_kernel.domain.types import BookingStatus, InvitationStatus
from booking_kernel.exceptions import (
    DuplicateRecordError,
    InvalidTransitionError,
    RecordNotFoundError,
    ValidationError,
)

DAY = date(2025, 3, 14)


class TestInvitations:
    def test_invite_and_accept_creates_pending_booking(self, clock, seed, booking_service):
        musician = seed.musician()
        invitation = booking_service.invite(uuid4(), musician.id, DAY)
        assert invitation.status is InvitationStatus.PENDING
        assert invitation.invited_at == clock.now()

        updated, booking = booking_service.respond_to_invitation(invitation.id, accept=True, message="yes")

        assert updated.status is InvitationStatus.ACCEPTED
        assert booking.status is BookingStatus.PENDING
        assert booking.invitation_id == invitation.id
        assert booking_service.bookings_for(musician.id, DAY) == [booking]

    def test_decline_creates_no_booking(self, seed, booking_service):
        musician = seed.musician()
        invitation = booking_service.invite(uuid4(), musician.id, DAY)
        updated, booking = booking_service.respond_to_invitation(invitation.id, accept=False)
        assert updated.status is InvitationStatus.DECLINED
        assert booking is None
        assert booking_service.bookings_for(musician.id) == []

    def test_second_response_refused(self, seed, booking_service):
        invitation = booking_service.invite(uuid4(), seed.musician().id, DAY)
        booking_service.respond_to_invitation(invitation.id, accept=False)
        with pytest.raises(InvalidTransitionError):
            booking_service.respond_to_invitation(invitation.id, accept=True)

    def test_duplicate_invite(self, seed, booking_service):
        musician = seed.musician()
        event_id = uuid4()
        booking_service.invite(event_id, musician.id, DAY)
        with pytest.raises(DuplicateRecordError):
            booking_service.invite(event_id, musician.id, DAY)

    def test_unknown_musician(self, booking_service):
        with pytest.raises(ValidationError):
            booking_service.invite(uuid4(), uuid4(), DAY)


class TestBookings:
    def test_unknown_booking(self, booking_service):
        with pytest.raises(RecordNotFoundError):
            booking_service.get_booking(uuid4())

    def test_cancel_pending_booking(self, seed, booking_service):
        invitation = booking_service.invite(uuid4(), seed.musician().id, DAY)
        _, booking = booking_service.respond_to_invitation(invitation.id, accept=True)
        cancelled = booking_service.cancel_booking(booking.id, reason="rain")
        assert cancelled.status is BookingStatus.CANCELLED
        assert booking_service.cancel_booking(booking.id) == cancelled

    def test_contracted_booking_cannot_be_cancelled_directly(self, seed, booking_service, link_service):
        musician = seed.musician()
        invitation = booking_service.invite(uuid4(), musician.id, DAY)
        _, booking = booking_service.respond_to_invitation(invitation.id, accept=True)
        link = link_service.create(invitation.event_id, musician.id, DAY, booking_id=booking.id)
        link_service.send(link.id)
        with pytest.raises(InvalidTransitionError):
            booking_service.cancel_booking(booking.id)
