"""
SagaRunner -- ordered, independently retryable side-effect steps.

Contract:
    ``run()`` executes each step inside its own ``storage.atomic()`` block
    (a SAVEPOINT under SQLAlchemy).  A step that raises is retried up to
    ``max_attempts`` times.  On exhaustion its savepoint is already rolled
    back, a SagaDeadLetter is written with the step payload, and the runner
    moves on to the next step.  The caller's primary write is never touched.

    A step may return an ActivityDraft; it is appended to the activity log
    after the step's savepoint has been released.  Activity failures are
    logged and swallowed.

    Every record logged while a step runs carries ``saga`` and
    ``saga_step`` through LogContext.

Non-goals:
    - No backoff or sleeping between attempts; invocations are short and
      synchronous.
    - Does NOT commit.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from typing import Any
from uuid import UUID

from booking_kernel.domain.clock import Clock, SystemClock
from booking_kernel.domain.types import SagaDeadLetter
from booking_kernel.exceptions import RecordNotFoundError, SagaStepError
from booking_kernel.logging_config import LogContext, get_logger
from booking_kernel.services.activity_log import ActivityLog
from booking_kernel.storage.base import BookingStorage

logger = get_logger("services.saga")


@dataclass(frozen=True)
class ActivityDraft:
    """Activity entry a step asks the runner to append on success."""

    entity_type: str
    entity_id: UUID
    action: str
    detail: str
    context: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SagaStep:
    name: str
    action: Callable[[], ActivityDraft | None]


@dataclass(frozen=True)
class StepResult:
    name: str
    succeeded: bool
    attempts: int
    error: str | None = None
    dead_letter_id: UUID | None = None


@dataclass(frozen=True)
class SagaResult:
    saga_name: str
    steps: tuple[StepResult, ...]

    @property
    def succeeded(self) -> bool:
        return all(s.succeeded for s in self.steps)

    @property
    def dead_letter_ids(self) -> tuple[UUID, ...]:
        return tuple(s.dead_letter_id for s in self.steps if s.dead_letter_id is not None)


class SagaRunner:
    def __init__(
        self,
        storage: BookingStorage,
        activity_log: ActivityLog | None = None,
        clock: Clock | None = None,
        max_attempts: int = 3,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._storage = storage
        self._clock = clock or SystemClock()
        self._activity = activity_log or ActivityLog(storage, self._clock)
        self._max_attempts = max_attempts

    def _attempt(self, step: SagaStep, actor_id: UUID | None) -> None:
        with self._storage.atomic():
            draft = step.action()
        if draft is not None:
            self._activity.record_safely(
                draft.entity_type,
                draft.entity_id,
                draft.action,
                draft.detail,
                actor_id=actor_id,
                context=draft.context,
            )

    def run(
        self,
        saga_name: str,
        steps: Sequence[SagaStep],
        payload: dict[str, Any],
        actor_id: UUID | None = None,
    ) -> SagaResult:
        results: list[StepResult] = []
        with LogContext.bind(saga=saga_name):
            for step in steps:
                with LogContext.bind(saga_step=step.name):
                    results.append(self._run_step(saga_name, step, payload, actor_id))
        return SagaResult(saga_name, tuple(results))

    def _run_step(
        self,
        saga_name: str,
        step: SagaStep,
        payload: dict[str, Any],
        actor_id: UUID | None,
    ) -> StepResult:
        last_error: str | None = None
        for attempt in range(1, self._max_attempts + 1):
            try:
                self._attempt(step, actor_id)
            except Exception as exc:
                last_error = f"{type(exc).__name__}: {exc}"
                logger.warning(
                    "saga_step_failed",
                    extra={"step": step.name, "attempt": attempt, "error": last_error},
                )
                continue
            return StepResult(step.name, succeeded=True, attempts=attempt)

        dead_letter = self._dead_letter(saga_name, step.name, payload, last_error)
        return StepResult(
            step.name,
            succeeded=False,
            attempts=self._max_attempts,
            error=last_error,
            dead_letter_id=dead_letter.id,
        )

    def _dead_letter(
        self,
        saga_name: str,
        step_name: str,
        payload: dict[str, Any],
        last_error: str | None,
    ) -> SagaDeadLetter:
        error = SagaStepError(saga_name, step_name, self._max_attempts, last_error or "unknown")
        dead_letter = self._storage.add(
            SagaDeadLetter(
                saga_name=saga_name,
                step_name=step_name,
                payload=dict(payload),
                attempts=self._max_attempts,
                last_error=last_error or "unknown",
                created_at=self._clock.now(),
            )
        )
        logger.error(
            "saga_step_dead_lettered",
            extra={
                "saga": saga_name,
                "step": step_name,
                "error_code": error.code,
                "error": str(error),
                "dead_letter_id": str(dead_letter.id),
            },
        )
        return dead_letter

    def replay(self, dead_letter_id: UUID, step: SagaStep) -> SagaDeadLetter:
        """Re-run one dead-lettered step once and mark it resolved.

        Raises:
            RecordNotFoundError: unknown dead letter id.
            SagaStepError: the step failed again; attempts and last_error
                are updated on the dead letter.
        """
        dead_letter = self._storage.get(SagaDeadLetter, dead_letter_id)
        if dead_letter is None:
            raise RecordNotFoundError("SagaDeadLetter", str(dead_letter_id))
        if dead_letter.resolved_at is not None:
            return dead_letter

        try:
            with LogContext.bind(saga=dead_letter.saga_name, saga_step=dead_letter.step_name):
                self._attempt(step, actor_id=None)
        except Exception as exc:
            reason = f"{type(exc).__name__}: {exc}"
            self._storage.save(
                replace(dead_letter, attempts=dead_letter.attempts + 1, last_error=reason)
            )
            logger.warning(
                "saga_replay_failed",
                extra={"dead_letter_id": str(dead_letter_id), "error": reason},
            )
            raise SagaStepError(
                dead_letter.saga_name, dead_letter.step_name, dead_letter.attempts + 1, reason,
            ) from exc

        resolved = self._storage.save(
            replace(
                dead_letter,
                attempts=dead_letter.attempts + 1,
                resolved_at=self._clock.now(),
            )
        )
        logger.info(
            "saga_step_replayed",
            extra={"dead_letter_id": str(dead_letter_id), "step": dead_letter.step_name},
        )
        return resolved

    def unresolved(self) -> list[SagaDeadLetter]:
        letters = self._storage.find(SagaDeadLetter, resolved_at=None)
        return sorted(letters, key=lambda d: d.created_at)
