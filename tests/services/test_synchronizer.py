"""
ConsistencySynchronizer: availability holds and releases, status records,
and dead-lettering of failed side effects.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from booking_kernel.domain.types import (
    ClaimKind,
    ContractStatus,
    EntityType,
    SagaDeadLetter,
)
from booking_kernel.exceptions import AvailabilityUpdateError, ValidationError
from booking_kernel.services.availability_ledger import AvailabilityLedger
from booking_kernel.services.monthly_contract_service import MonthlyContractService
from booking_kernel.services.status_service import EntityStatusService
from booking_kernel.services.synchronizer import ConsistencySynchronizer, TransitionEvent

D1 = date(2025, 3, 5)


class FlakyLedger(AvailabilityLedger):
    """Fails the next ``failures`` writes."""

    def __init__(self, storage, failures: int = 0):
        super().__init__(storage)
        self.failures = failures

    def set_availability(self, musician_id, day, is_available, notes=None):
        if self.failures > 0:
            self.failures -= 1
            raise AvailabilityUpdateError("availability_upsert", "ledger offline")
        return super().set_availability(musician_id, day, is_available, notes)


@pytest.fixture
def flaky(storage):
    return FlakyLedger(storage)


@pytest.fixture
def flaky_service(storage, clock, email, config, activity_log, flaky):
    sync = ConsistencySynchronizer(
        storage, clock, activity_log=activity_log, ledger=flaky,
        max_attempts=config.saga.max_attempts,
    )
    return MonthlyContractService(
        storage, clock, email=email, synchronizer=sync, config=config, activity_log=activity_log,
    )


def _event(musician_id, old, new, source_id=None, day=D1):
    return TransitionEvent(
        musician_id=musician_id,
        date=day,
        old_status=old,
        new_status=new,
        owner_kind=ClaimKind.CONTRACT_DATE,
        owner_id=uuid4(),
        source_kind=ClaimKind.CONTRACT_DATE,
        source_id=source_id or uuid4(),
    )


class TestAvailability:
    def test_hold_and_release(self, storage, contract_service, make_slice):
        musician, _, cm = make_slice()
        ledger = AvailabilityLedger(storage)

        contract_service.send(cm.id)
        assert ledger.is_available(musician.id, D1) is False
        contract_service.respond(cm.token, "reject")
        assert ledger.is_available(musician.id, D1) is True

    def test_signed_date_stays_held(self, storage, contract_service, make_slice):
        musician, _, cm = make_slice()
        contract_service.send(cm.id)
        contract_service.respond(cm.token, "sign")
        assert AvailabilityLedger(storage).is_available(musician.id, D1) is False

    def test_release_skipped_while_another_contract_holds_date(
        self, storage, contract_service, make_slice, captured_logs,
    ):
        musician, _, first = make_slice()
        _, _, second = make_slice(musician=musician)
        contract_service.send(first.id)
        contract_service.send(second.id)
        ledger = AvailabilityLedger(storage)

        contract_service.cancel(first.id)
        assert ledger.is_available(musician.id, D1) is False
        assert any(r["message"] == "availability_release_skipped" for r in captured_logs())

        contract_service.cancel(second.id)
        assert ledger.is_available(musician.id, D1) is True

    def test_rejecting_an_unsent_date_never_frees_manual_block(self, storage, contract_service, make_slice):
        musician, _, cm = make_slice()
        ledger = AvailabilityLedger(storage)
        ledger.set_availability(musician.id, D1, False, notes="holiday")

        contract_service.respond(cm.token, "reject")

        assert ledger.is_available(musician.id, D1) is False
        assert ledger.get(musician.id, D1).notes == "holiday"

    def test_confirmed_booking_counts_as_claim(self, storage, synchronizer, booking_service, seed):
        musician = seed.musician()
        invitation = booking_service.invite(uuid4(), musician.id, D1)
        _, booking = booking_service.respond_to_invitation(invitation.id, accept=True)
        synchronizer.apply(
            TransitionEvent(
                musician_id=musician.id, date=D1, old_status="pending", new_status="signed",
                owner_kind=ClaimKind.CONTRACT_LINK, owner_id=uuid4(),
                source_kind=ClaimKind.CONTRACT_LINK, source_id=uuid4(), booking_id=booking.id,
            )
        )
        assert synchronizer.has_other_claim(musician.id, D1) is True
        assert synchronizer.has_other_claim(
            musician.id, D1, ClaimKind.BOOKING, booking.id,
        ) is False

    def test_unrelated_status_is_a_no_op(self, storage, synchronizer):
        musician_id = uuid4()
        result = synchronizer.apply(_event(musician_id, "pending", "included"))
        assert result.succeeded
        assert AvailabilityLedger(storage).get(musician_id, D1) is None


class TestStatusRecords:
    def test_contract_and_musician_records_written(self, storage, clock, contract_service, make_slice):
        musician, _, cm = make_slice(fee=Decimal("300"))
        contract_service.send(cm.id)
        contract_service.respond(cm.token, "sign", ip_address="10.0.0.9")

        status = EntityStatusService(storage, clock)
        contract_record = status.get(EntityType.CONTRACT, cm.id, D1)
        assert contract_record.primary_status == "signed"
        meta = status.metadata_for(contract_record)
        assert meta.signed_by == musician.name
        assert meta.ip_address == "10.0.0.9"
        assert meta.signed_at == clock.now()

        musician_record = status.get(EntityType.MUSICIAN, musician.id, D1)
        assert musician_record.primary_status == "booked"
        assert musician_record.custom_status == "signed"
        assert status.metadata_for(musician_record).contract_amount == Decimal("300")


class TestDeadLetters:
    def test_failed_step_is_dead_lettered_and_primary_stands(
        self, storage, flaky, flaky_service, make_slice, captured_logs,
    ):
        musician, _, cm = make_slice()
        flaky.failures = 5

        result = flaky_service.send(cm.id)

        assert flaky_service.get_musician_contract(cm.id).status is ContractStatus.SENT
        assert result.outcome.value == "sent"
        [letter] = storage.find(SagaDeadLetter)
        assert letter.step_name == "availability"
        assert letter.attempts == 2
        assert "ledger offline" in letter.last_error
        assert letter.payload["musician_id"] == str(musician.id)
        assert flaky.is_available(musician.id, D1) is True

        [logged] = [r for r in captured_logs() if r["message"] == "saga_step_dead_lettered"]
        assert logged["error_code"] == "SAGA_STEP_FAILED"
        assert logged["step"] == "availability"

    def test_retry_recovers_without_dead_letter(self, storage, flaky, flaky_service, make_slice):
        musician, _, cm = make_slice()
        flaky.failures = 1
        flaky_service.send(cm.id)
        assert storage.find(SagaDeadLetter) == []
        assert flaky.is_available(musician.id, D1) is False

    def test_replay_resolves(self, storage, flaky, flaky_service, make_slice, clock):
        musician, _, cm = make_slice()
        flaky.failures = 2
        flaky_service.send(cm.id)
        sync = flaky_service._sync
        [letter] = sync.unresolved_dead_letters()

        clock.advance(300)
        resolved = sync.replay_dead_letter(letter.id)

        assert resolved.resolved_at == clock.now()
        assert resolved.attempts == 3
        assert sync.unresolved_dead_letters() == []
        assert flaky.is_available(musician.id, D1) is False

    def test_replay_of_resolved_letter_is_idempotent(self, flaky, flaky_service, make_slice):
        _, _, cm = make_slice()
        flaky.failures = 2
        flaky_service.send(cm.id)
        sync = flaky_service._sync
        [letter] = sync.unresolved_dead_letters()
        first = sync.replay_dead_letter(letter.id)
        assert sync.replay_dead_letter(letter.id) == first


class TestTransitionEvent:
    def test_payload_survives_storage_json(self):
        event = TransitionEvent(
            musician_id=uuid4(), date=D1, old_status=ContractStatus.SENT, new_status="signed",
            owner_kind="contract_link", owner_id=uuid4(), source_kind="contract_link",
            source_id=uuid4(), amount=Decimal("450.00"), signature="Alice",
        )
        assert event.old_status == "sent"
        assert TransitionEvent.from_payload(event.to_payload()) == event

    def test_malformed_payload(self):
        with pytest.raises(ValidationError):
            TransitionEvent.from_payload({"musician_id": "nope"})
