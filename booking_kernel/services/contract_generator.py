"""
MonthlyContractGenerator -- fan planner assignments out into monthly
contract slices.

Contract:
    ``generate()`` reuses or creates the MonthlyContract for the planner's
    (month, year), groups the requested assignments by musician, and creates
    one pending slice per musician with one date row per assignment.  Venue
    name, times and fee are frozen onto each date row.

    Each musician runs inside its own ``storage.atomic()`` block: a missing
    musician, a missing slot, or an existing live slice fails that musician
    only.  Assignment ids that do not resolve to this planner are reported
    as failures with no musician.

Non-goals:
    - Does NOT send the contracts; see MonthlyContractService.send_all.
    - Does NOT commit.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import replace
from decimal import Decimal
from uuid import UUID

from booking_config.schema import BookingConfig
from booking_kernel.domain.fees import resolve_fee
from booking_kernel.domain.types import (
    AssignmentContractStatus,
    AssignmentStatus,
    DateEntry,
    GenerationOutcome,
    GenerationResult,
    MonthlyPlanner,
    MusicianGenerationResult,
    PayRate,
    PlannerAssignment,
    PlannerSlot,
    Venue,
)
from booking_kernel.exceptions import BookingKernelError, RecordNotFoundError
from booking_kernel.logging_config import LogContext, get_logger
from booking_kernel.services.monthly_contract_service import MonthlyContractService
from booking_kernel.storage.base import BookingStorage

logger = get_logger("services.contract_generator")

# Assignments already carrying one of these are not picked up again.
_CONTRACTED = (
    AssignmentContractStatus.GENERATED,
    AssignmentContractStatus.SENT,
    AssignmentContractStatus.SIGNED,
)


class MonthlyContractGenerator:
    def __init__(
        self,
        storage: BookingStorage,
        contract_service: MonthlyContractService,
        config: BookingConfig | None = None,
    ):
        self._storage = storage
        self._contracts = contract_service
        self._config = config or BookingConfig()

    def generate(
        self,
        planner_id: UUID,
        assignment_ids: Iterable[UUID] | None = None,
        contract_name: str | None = None,
    ) -> GenerationResult:
        """Generate contract slices for a planner.

        ``assignment_ids`` defaults to every live assignment in the planner
        that has no contract yet.

        Raises:
            RecordNotFoundError: unknown planner.
        """
        planner = self._storage.get(MonthlyPlanner, planner_id)
        if planner is None:
            raise RecordNotFoundError("MonthlyPlanner", str(planner_id))

        contract = self._contracts.get_or_create_contract(
            planner.id, planner.month, planner.year, contract_name,
        )
        slots = {s.id: s for s in self._storage.find(PlannerSlot, planner_id=planner.id)}

        results: list[MusicianGenerationResult] = []
        if assignment_ids is None:
            assignments = self._pending_assignments(slots)
        else:
            assignments, unresolved = self._resolve(list(assignment_ids), slots)
            if unresolved:
                results.append(
                    MusicianGenerationResult(
                        musician_id=None,
                        outcome=GenerationOutcome.FAILED,
                        assignment_ids=tuple(unresolved),
                        error_code="ASSIGNMENT_NOT_FOUND",
                        error_message=f"{len(unresolved)} assignment(s) not found in planner",
                    )
                )

        grouped: dict[UUID, list[PlannerAssignment]] = defaultdict(list)
        for assignment in assignments:
            grouped[assignment.musician_id].append(assignment)

        with LogContext.bind(contract_id=contract.id):
            for musician_id in sorted(grouped, key=str):
                results.append(
                    self._generate_for_musician(contract.id, musician_id, grouped[musician_id], slots)
                )

        result = GenerationResult(contract_id=contract.id, results=tuple(results))
        logger.info(
            "contract_generation_completed",
            extra={
                "contract_id": str(contract.id),
                "created_count": len(result.created),
                "failed_count": len(result.failed),
            },
        )
        return result

    def _pending_assignments(self, slots: dict[UUID, PlannerSlot]) -> list[PlannerAssignment]:
        if not slots:
            return []
        return [
            a
            for a in self._storage.find(PlannerAssignment, slot_id=tuple(slots))
            if a.status != AssignmentStatus.CANCELLED and a.contract_status not in _CONTRACTED
        ]

    def _resolve(
        self, assignment_ids: list[UUID], slots: dict[UUID, PlannerSlot],
    ) -> tuple[list[PlannerAssignment], list[UUID]]:
        found, unresolved = [], []
        for assignment_id in dict.fromkeys(assignment_ids):
            assignment = self._storage.get(PlannerAssignment, assignment_id)
            if assignment is None or assignment.slot_id not in slots:
                unresolved.append(assignment_id)
            else:
                found.append(assignment)
        return found, unresolved

    def _generate_for_musician(
        self,
        contract_id: UUID,
        musician_id: UUID,
        assignments: list[PlannerAssignment],
        slots: dict[UUID, PlannerSlot],
    ) -> MusicianGenerationResult:
        ids = tuple(a.id for a in assignments)
        try:
            with self._storage.atomic():
                entries = self._date_entries(musician_id, assignments, slots)
                cm = self._contracts.generate(contract_id, musician_id, entries)
                for assignment in assignments:
                    self._storage.save(
                        replace(
                            assignment,
                            contract_id=contract_id,
                            contract_status=AssignmentContractStatus.GENERATED,
                        )
                    )
        except BookingKernelError as exc:
            logger.warning(
                "contract_generation_failed",
                extra={"musician_id": str(musician_id), "error_code": exc.code, "error": str(exc)},
            )
            return MusicianGenerationResult(
                musician_id=musician_id,
                outcome=GenerationOutcome.FAILED,
                assignment_ids=ids,
                error_code=exc.code,
                error_message=str(exc),
            )
        except Exception as exc:
            logger.error(
                "contract_generation_failed",
                extra={"musician_id": str(musician_id), "error_code": "UNHANDLED_EXCEPTION"},
                exc_info=True,
            )
            return MusicianGenerationResult(
                musician_id=musician_id,
                outcome=GenerationOutcome.FAILED,
                assignment_ids=ids,
                error_code="UNHANDLED_EXCEPTION",
                error_message=str(exc),
            )

        return MusicianGenerationResult(
            musician_id=musician_id,
            outcome=GenerationOutcome.CREATED,
            contract_musician_id=cm.id,
            assignment_ids=ids,
            total_fee=cm.total_fee,
        )

    def _date_entries(
        self,
        musician_id: UUID,
        assignments: list[PlannerAssignment],
        slots: dict[UUID, PlannerSlot],
    ) -> list[DateEntry]:
        pay_rates = self._storage.find(PayRate, musician_id=musician_id)
        threshold = self._config.invoices.hourly_threshold_hours
        entries = []
        for assignment in assignments:
            slot = slots.get(assignment.slot_id)
            if slot is None:
                raise RecordNotFoundError("PlannerSlot", str(assignment.slot_id))
            venue = self._storage.get(Venue, slot.venue_id) if slot.venue_id else None
            fee = resolve_fee(assignment, slot, pay_rates, threshold, use_slot_fee=True)
            entries.append(
                DateEntry(
                    date=slot.date,
                    fee=Decimal(fee.amount),
                    assignment_id=assignment.id,
                    venue_id=slot.venue_id,
                    venue_name=venue.name if venue else None,
                    start_time=slot.start_time,
                    end_time=slot.end_time,
                )
            )
        return sorted(entries, key=lambda e: e.date)
