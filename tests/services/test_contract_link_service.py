"""Single-event contract links: signature, expiry and booking cascade."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from booking_kernel.domain.types import (
    BookingStatus,
    ContractStatus,
    InvitationStatus,
    PaymentStatus,
    SendOutcome,
)
from booking_kernel.exceptions import (
    ContractAlreadyRespondedError,
    ContractExpiredError,
    InvalidTransitionError,
    MissingSignatureError,
    TokenNotFoundError,
    ValidationError,
)
from booking_kernel.services.availability_ledger import AvailabilityLedger

EVENT_DAY = date(2025, 3, 14)


@pytest.fixture
def booked(seed, booking_service, link_service):
    """Musician with an accepted invitation, a pending booking and a link."""
    musician = seed.musician()
    event_id = uuid4()
    invitation = booking_service.invite(event_id, musician.id, EVENT_DAY)
    invitation, booking = booking_service.respond_to_invitation(
        invitation.id, accept=True, payment_amount=Decimal("450"),
    )
    link = link_service.create(
        event_id, musician.id, EVENT_DAY, amount=Decimal("450"),
        booking_id=booking.id, invitation_id=invitation.id,
    )
    return musician, invitation, booking, link


class TestCreate:
    def test_defaults(self, clock, config, seed, link_service):
        musician = seed.musician()
        link = link_service.create(uuid4(), musician.id, EVENT_DAY, amount=Decimal("200"))
        assert link.status is ContractStatus.PENDING
        assert link.company_signature == config.contracts.company_signature
        assert (link.expires_at - clock.now()).days == config.contracts.link_expiry_days
        assert len(link.token) == 2 * config.contracts.token_bytes

    def test_event_date_required(self, seed, link_service):
        with pytest.raises(ValidationError) as exc_info:
            link_service.create(uuid4(), seed.musician().id, None)
        assert exc_info.value.field == "event_date"


class TestRespond:
    def test_sign_confirms_booking_and_invitation(
        self, storage, link_service, booking_service, booked, email,
    ):
        musician, invitation, booking, link = booked
        link_service.send(link.id)

        signed = link_service.respond(link.token, "sign", signature="  Alice B  ", ip_address="1.2.3.4")

        assert signed.status is ContractStatus.SIGNED
        assert signed.musician_signature == "Alice B"
        confirmed = booking_service.get_booking(booking.id)
        assert confirmed.status is BookingStatus.CONFIRMED
        assert confirmed.contract_signed is True
        assert confirmed.payment_status is PaymentStatus.CONFIRMED
        assert booking_service.get_invitation(invitation.id).status is InvitationStatus.CONFIRMED
        assert AvailabilityLedger(storage).is_available(musician.id, EVENT_DAY) is False
        assert len(email.notifications) == 1

    def test_send_marks_booking_contract_sent(self, link_service, booking_service, booked):
        _, _, booking, link = booked
        assert link_service.send(link.id).outcome is SendOutcome.SENT
        assert booking_service.get_booking(booking.id).contract_sent is True
        assert link_service.send(link.id).outcome is SendOutcome.SKIPPED

    def test_reject_cancels_booking_and_releases(self, storage, link_service, booking_service, booked):
        musician, invitation, booking, link = booked
        link_service.send(link.id)
        link_service.respond(link.token, "reject", response="double booked")

        assert booking_service.get_booking(booking.id).status is BookingStatus.CANCELLED
        assert booking_service.get_invitation(invitation.id).status is InvitationStatus.REJECTED
        assert AvailabilityLedger(storage).is_available(musician.id, EVENT_DAY) is True

    @pytest.mark.parametrize("signature", [None, "", "   "])
    def test_sign_requires_signature(self, link_service, booked, signature):
        _, _, _, link = booked
        with pytest.raises(MissingSignatureError):
            link_service.respond(link.token, "sign", signature=signature)
        assert link_service.get(link.id).status is ContractStatus.PENDING

    def test_reject_needs_no_signature(self, link_service, booked):
        _, _, _, link = booked
        assert link_service.respond(link.token, "reject").status is ContractStatus.REJECTED

    def test_expired(self, clock, config, link_service, booked):
        _, _, _, link = booked
        clock.advance((config.contracts.link_expiry_days + 1) * 86400)
        with pytest.raises(ContractExpiredError) as exc_info:
            link_service.respond(link.token, "sign", signature="Alice")
        assert exc_info.value.http_status == 400

    def test_second_response_refused(self, link_service, booked):
        _, _, _, link = booked
        link_service.respond(link.token, "sign", signature="Alice")
        with pytest.raises(ContractAlreadyRespondedError):
            link_service.respond(link.token, "reject")
        assert link_service.get(link.id).status is ContractStatus.SIGNED

    def test_unknown_token(self, link_service):
        with pytest.raises(TokenNotFoundError):
            link_service.respond("f" * 64, "reject")


class TestCancelAndView:
    def test_cancel_releases(self, storage, link_service, booked):
        musician, _, _, link = booked
        link_service.send(link.id)
        link_service.cancel(link.id, reason="event moved")
        assert link_service.get(link.id).status is ContractStatus.CANCELLED
        assert AvailabilityLedger(storage).is_available(musician.id, EVENT_DAY) is True

    def test_cancel_signed_refused(self, link_service, booked):
        _, _, _, link = booked
        link_service.respond(link.token, "sign", signature="Alice")
        with pytest.raises(InvalidTransitionError):
            link_service.cancel(link.id)

    def test_view(self, link_service, booked):
        musician, _, _, link = booked
        payload = link_service.view(link.token).to_payload()
        assert payload["musicianName"] == musician.name
        assert payload["dates"] == [
            {"date": "2025-03-14", "venue": None, "startTime": None, "fee": "450.00", "status": "pending"}
        ]
