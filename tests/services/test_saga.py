"""SagaRunner retries, dead letters and replay."""

from uuid import uuid4

import pytest

from booking_kernel.domain.types import Musician, SagaDeadLetter
from booking_kernel.exceptions import RecordNotFoundError, SagaStepError
from booking_kernel.logging_config import LogContext, get_logger
from booking_kernel.services.saga import ActivityDraft, SagaRunner, SagaStep


class Flaky:
    def __init__(self, failures: int):
        self.failures = failures
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.failures > 0:
            self.failures -= 1
            raise RuntimeError("transient")
        return None


class TestRun:
    def test_steps_run_in_order(self, storage, clock):
        seen = []
        steps = [SagaStep(n, lambda n=n: seen.append(n)) for n in ("a", "b", "c")]
        result = SagaRunner(storage, clock=clock).run("s", steps, {})
        assert seen == ["a", "b", "c"]
        assert result.succeeded
        assert [s.attempts for s in result.steps] == [1, 1, 1]

    def test_retry_then_success(self, storage, clock):
        flaky = Flaky(failures=2)
        result = SagaRunner(storage, clock=clock, max_attempts=3).run("s", [SagaStep("x", flaky)], {})
        assert result.succeeded
        assert result.steps[0].attempts == 3
        assert storage.find(SagaDeadLetter) == []

    def test_exhaustion_dead_letters_and_continues(self, storage, clock):
        after = Flaky(failures=0)
        result = SagaRunner(storage, clock=clock, max_attempts=2).run(
            "s", [SagaStep("x", Flaky(failures=9)), SagaStep("y", after)], {"k": "v"},
        )
        assert not result.succeeded
        assert after.calls == 1
        [letter_id] = result.dead_letter_ids
        letter = storage.get(SagaDeadLetter, letter_id)
        assert letter.payload == {"k": "v"}
        assert letter.created_at == clock.now()
        assert "RuntimeError: transient" in letter.last_error

    def test_failed_step_writes_are_rolled_back(self, storage, clock):
        def _write_then_fail():
            storage.add(Musician(name="Half"))
            raise RuntimeError("boom")

        SagaRunner(storage, clock=clock, max_attempts=1).run("s", [SagaStep("x", _write_then_fail)], {})
        assert storage.find_one(Musician, name="Half") is None

    def test_activity_draft_recorded(self, storage, clock, activity_log):
        entity_id = uuid4()
        step = SagaStep("x", lambda: ActivityDraft("musician", entity_id, "held", "date held"))
        SagaRunner(storage, activity_log, clock).run("s", [step], {})
        [entry] = activity_log.for_entity("musician", entity_id)
        assert entry.action == "held"

    def test_step_logs_carry_saga_context(self, storage, clock, captured_logs):
        log = get_logger("services.test")
        steps = [
            SagaStep("booking", lambda: log.info("inside_step")),
            SagaStep("availability", Flaky(failures=9)),
        ]
        SagaRunner(storage, clock=clock, max_attempts=1).run("availability_sync", steps, {})

        records = captured_logs()
        [inside] = [r for r in records if r["message"] == "inside_step"]
        [dead] = [r for r in records if r["message"] == "saga_step_dead_lettered"]
        assert (inside["saga"], inside["saga_step"]) == ("availability_sync", "booking")
        assert (dead["saga"], dead["saga_step"]) == ("availability_sync", "availability")
        assert LogContext.get_all() == {}

    def test_invalid_max_attempts(self, storage):
        with pytest.raises(ValueError):
            SagaRunner(storage, max_attempts=0)


class TestReplay:
    def test_failed_replay_counts_attempt(self, storage, clock):
        runner = SagaRunner(storage, clock=clock, max_attempts=1)
        [letter_id] = runner.run("s", [SagaStep("x", Flaky(failures=9))], {}).dead_letter_ids

        with pytest.raises(SagaStepError) as exc_info:
            runner.replay(letter_id, SagaStep("x", Flaky(failures=1)))

        assert exc_info.value.attempts == 2
        letter = storage.get(SagaDeadLetter, letter_id)
        assert letter.attempts == 2
        assert letter.resolved_at is None
        assert runner.unresolved() == [letter]

    def test_unknown_letter(self, storage):
        with pytest.raises(RecordNotFoundError):
            SagaRunner(storage).replay(uuid4(), SagaStep("x", lambda: None))
