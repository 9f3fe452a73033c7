"""
InvoiceAggregator -- monthly musician payout invoices.

Contract:
    ``generate_invoices(planner_id)`` collects every terminal-positive
    assignment in the planner (attended, or contract signed), resolves each
    fee, and upserts exactly one invoice per (planner, musician, month,
    year).  Draft invoices are recomputed in place; finalized and paid
    invoices are never touched by a re-run.

    Invoices move strictly draft -> finalized -> paid.

Non-goals:
    - No partial payments or credit notes.
    - Does NOT commit.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import replace
from typing import Any
from uuid import UUID

from booking_config.schema import BookingConfig
from booking_kernel.domain.clock import Clock, SystemClock
from booking_kernel.domain.fees import ZERO, resolve_fee
from booking_kernel.domain.lifecycles import INVOICE_WORKFLOW
from booking_kernel.domain.types import (
    AssignmentContractStatus,
    AssignmentStatus,
    InvoiceStatus,
    MonthlyContract,
    MonthlyInvoice,
    MonthlyPlanner,
    PayRate,
    PlannerAssignment,
    PlannerSlot,
    format_money,
)
from booking_kernel.exceptions import (
    ContractNotFoundError,
    InvoiceNotFoundError,
    InvoiceTransitionError,
    RecordNotFoundError,
)
from booking_kernel.logging_config import get_logger
from booking_kernel.services.activity_log import ActivityLog
from booking_kernel.storage.base import BookingStorage

logger = get_logger("services.invoice")


def is_payable(assignment: PlannerAssignment) -> bool:
    return (
        assignment.status == AssignmentStatus.ATTENDED
        or assignment.contract_status == AssignmentContractStatus.SIGNED
    )


class InvoiceAggregator:
    def __init__(
        self,
        storage: BookingStorage,
        clock: Clock | None = None,
        config: BookingConfig | None = None,
        activity_log: ActivityLog | None = None,
    ):
        self._storage = storage
        self._clock = clock or SystemClock()
        self._config = config or BookingConfig()
        self._activity = activity_log or ActivityLog(storage, self._clock)

    def generate_invoices(self, planner_id: UUID) -> list[MonthlyInvoice]:
        """Upsert one invoice per musician with payable assignments.

        Returns every invoice for the planner's period that has payable
        work, including locked (finalized / paid) ones left untouched.  A
        draft whose musician no longer has payable work is zeroed and left
        out of the result.

        Raises:
            RecordNotFoundError: unknown planner.
        """
        planner = self._storage.get(MonthlyPlanner, planner_id)
        if planner is None:
            raise RecordNotFoundError("MonthlyPlanner", str(planner_id))

        slots = {s.id: s for s in self._storage.find(PlannerSlot, planner_id=planner_id)}
        assignments = (
            self._storage.find(PlannerAssignment, slot_id=tuple(slots)) if slots else []
        )
        by_musician: dict[UUID, list[PlannerAssignment]] = defaultdict(list)
        for assignment in assignments:
            by_musician[assignment.musician_id].append(assignment)

        drafts = {
            inv.musician_id: inv
            for inv in self._storage.find(
                MonthlyInvoice,
                planner_id=planner.id,
                month=planner.month,
                year=planner.year,
                status=InvoiceStatus.DRAFT,
            )
        }

        invoices = []
        for musician_id in sorted(set(by_musician) | set(drafts), key=str):
            mine = by_musician.get(musician_id, [])
            payable = [a for a in mine if is_payable(a)]
            if not payable:
                if musician_id in drafts:
                    self._clear_draft(drafts[musician_id], mine)
                continue
            invoices.append(self._upsert(planner, musician_id, mine, payable, slots))

        logger.info(
            "invoices_generated",
            extra={"planner_id": str(planner_id), "invoice_count": len(invoices)},
        )
        return invoices

    def generate_invoices_for_contract(self, contract_id: UUID) -> list[MonthlyInvoice]:
        contract = self._storage.get(MonthlyContract, contract_id)
        if contract is None:
            raise ContractNotFoundError("MonthlyContract", str(contract_id))
        return self.generate_invoices(contract.planner_id)

    def _upsert(
        self,
        planner: MonthlyPlanner,
        musician_id: UUID,
        all_assignments: list[PlannerAssignment],
        payable: list[PlannerAssignment],
        slots: dict[UUID, PlannerSlot],
    ) -> MonthlyInvoice:
        existing = self._storage.find_one(
            MonthlyInvoice,
            planner_id=planner.id,
            musician_id=musician_id,
            month=planner.month,
            year=planner.year,
        )
        if existing is not None and existing.status != InvoiceStatus.DRAFT:
            logger.info(
                "invoice_locked_skipped",
                extra={"invoice_id": str(existing.id), "status": existing.status.value},
            )
            return existing

        pay_rates = self._storage.find(PayRate, musician_id=musician_id)
        threshold = self._config.invoices.hourly_threshold_hours
        total = ZERO
        details: list[dict[str, Any]] = []
        for assignment in sorted(payable, key=lambda a: (slots[a.slot_id].date, str(a.id))):
            slot = slots[assignment.slot_id]
            fee = resolve_fee(assignment, slot, pay_rates, threshold)
            total += fee.amount
            details.append(
                {
                    "assignment_id": str(assignment.id),
                    "slot_id": str(slot.id),
                    "date": slot.date.isoformat(),
                    "venue_id": str(slot.venue_id) if slot.venue_id else None,
                    "fee": format_money(fee.amount),
                    "fee_source": fee.source.value,
                    "status": assignment.status.value,
                }
            )

        now = self._clock.now()
        fields = {
            "total_amount": total,
            "total_slots": sum(1 for a in all_assignments if a.status != AssignmentStatus.CANCELLED),
            "attended_slots": sum(1 for a in payable if a.status == AssignmentStatus.ATTENDED),
            "assignment_details": details,
            "generated_at": now,
        }
        if existing is None:
            invoice = self._storage.add(
                MonthlyInvoice(
                    planner_id=planner.id,
                    musician_id=musician_id,
                    month=planner.month,
                    year=planner.year,
                    **fields,
                )
            )
            action = "created"
        else:
            invoice = self._storage.save(replace(existing, **fields))
            action = "updated"

        logger.info(
            "invoice_generated",
            extra={
                "invoice_id": str(invoice.id),
                "musician_id": str(musician_id),
                "total_amount": str(total),
                "action": action,
            },
        )
        self._activity.record_safely(
            "monthly_invoice", invoice.id, action, f"Invoice total {total}",
            context={"assignment_count": len(details)},
        )
        return invoice

    def _clear_draft(self, draft: MonthlyInvoice, assignments: list[PlannerAssignment]) -> None:
        # A draft with no payable work behind it drops to zero.
        if draft.total_amount == ZERO and not draft.assignment_details:
            return
        self._storage.save(
            replace(
                draft,
                total_amount=ZERO,
                total_slots=sum(1 for a in assignments if a.status != AssignmentStatus.CANCELLED),
                attended_slots=0,
                assignment_details=[],
                generated_at=self._clock.now(),
            )
        )
        logger.info(
            "invoice_draft_cleared",
            extra={"invoice_id": str(draft.id), "musician_id": str(draft.musician_id)},
        )
        self._activity.record_safely(
            "monthly_invoice", draft.id, "cleared", "No payable work remains",
        )

    def get_invoice(self, invoice_id: UUID) -> MonthlyInvoice:
        invoice = self._storage.get(MonthlyInvoice, invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return invoice

    def list_invoices(
        self, planner_id: UUID, status: InvoiceStatus | None = None,
    ) -> list[MonthlyInvoice]:
        criteria: dict[str, Any] = {"planner_id": planner_id}
        if status is not None:
            criteria["status"] = InvoiceStatus(status)
        return sorted(self._storage.find(MonthlyInvoice, **criteria), key=lambda i: str(i.musician_id))

    def _transition(
        self, invoice_id: UUID, action: str, changes: dict[str, Any],
    ) -> MonthlyInvoice:
        invoice = self.get_invoice(invoice_id)
        transition = INVOICE_WORKFLOW.find_transition(invoice.status.value, action)
        target = InvoiceStatus.FINALIZED if action == "finalize" else InvoiceStatus.PAID
        if transition is None:
            raise InvoiceTransitionError(str(invoice_id), invoice.status.value, target.value)

        updated = self._storage.compare_and_set(
            MonthlyInvoice,
            invoice.id,
            expected=(InvoiceStatus(transition.from_state),),
            changes={"status": target, **changes},
        )
        if updated is None:
            current = self.get_invoice(invoice_id)
            raise InvoiceTransitionError(str(invoice_id), current.status.value, target.value)

        logger.info(
            "invoice_status_changed",
            extra={
                "invoice_id": str(invoice_id),
                "from_status": invoice.status.value,
                "to_status": target.value,
            },
        )
        self._activity.record_safely("monthly_invoice", invoice.id, action, f"Invoice {target.value}")
        return updated

    def finalize(self, invoice_id: UUID) -> MonthlyInvoice:
        return self._transition(invoice_id, "finalize", {"finalized_at": self._clock.now()})

    def mark_paid(self, invoice_id: UUID, notes: str | None = None) -> MonthlyInvoice:
        changes: dict[str, Any] = {"paid_at": self._clock.now()}
        if notes is not None:
            changes["notes"] = notes
        return self._transition(invoice_id, "mark_paid", changes)
