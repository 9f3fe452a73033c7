"""
MonthlyContractService -- the monthly contract state machine.

Contract:
    A monthly contract (planner, month, year) fans out into one
    ContractMusician slice per musician, each bound to a bearer token, and
    one ContractDate per scheduled date.  This service owns every status
    change on those rows:

        generate  -> pending slice + pending dates
        send      -> pending -> sent (compare-and-set; repeat calls skip)
        respond   -> {pending, sent} -> signed | rejected (compare-and-set)
        respond_to_date(s) -> per-date decisions, slice finalized when all
                              dates are decided
        cancel    -> any non-terminal -> cancelled

    After each primary write the ConsistencySynchronizer is run for every
    affected date; its failures are dead-lettered, never raised.  Email is
    fire-and-forget.

Invariants enforced:
    - ``responded_at`` is set once and never changes.
    - ``total_fee`` equals the sum of the slice's date fees.
    - At most one concurrent response per token wins.

Non-goals:
    - Does NOT commit.  The caller owns the transaction.
"""

from __future__ import annotations

import secrets
from collections import Counter
from collections.abc import Mapping, Sequence
from dataclasses import replace
from decimal import Decimal
from typing import Any
from uuid import UUID

from booking_config.schema import BookingConfig
from booking_kernel.domain.aggregation import (
    aggregate_date_statuses,
    count_responses,
    sync_status,
)
from booking_kernel.domain.clock import Clock, SystemClock
from booking_kernel.domain.lifecycles import (
    CONTRACT_DATE_WORKFLOW,
    CONTRACT_WORKFLOW,
    MONTHLY_CONTRACT_WORKFLOW,
)
from booking_kernel.domain.types import (
    RESPONDABLE_STATUSES,
    TERMINAL_CONTRACT_STATUSES,
    TERMINAL_DATE_STATUSES,
    AssignmentContractStatus,
    ClaimKind,
    ContractDate,
    ContractDateView,
    ContractMusician,
    ContractStatus,
    ContractStatusHistory,
    ContractView,
    DateEntry,
    DateStatus,
    MonthlyContract,
    MonthlyContractStatus,
    Musician,
    PlannerAssignment,
    RespondAction,
    ResponseSummary,
    SendOutcome,
    SendResult,
)
from booking_kernel.domain.workflow import require_transition
from booking_kernel.exceptions import (
    ContractAlreadyRespondedError,
    ContractNotFoundError,
    InvalidStateError,
    InvalidTransitionError,
    TokenNotFoundError,
    ValidationError,
)
from booking_kernel.logging_config import LogContext, get_logger
from booking_kernel.services.activity_log import ActivityLog
from booking_kernel.services.email import (
    EmailDispatcher,
    LoggingEmailDispatcher,
    contract_response_url,
)
from booking_kernel.services.synchronizer import ConsistencySynchronizer, TransitionEvent
from booking_kernel.storage.base import BookingStorage

logger = get_logger("services.monthly_contract")

_LIVE_DATE_STATUSES = (DateStatus.PENDING, DateStatus.INCLUDED, DateStatus.SENT)
_CANCELLABLE_DATE_STATUSES = (*_LIVE_DATE_STATUSES, DateStatus.SIGNED)
_HUNDRED = Decimal("100")
_CENT = Decimal("0.01")

_ASSIGNMENT_STATUS_FOR = {
    DateStatus.SENT: AssignmentContractStatus.SENT,
    DateStatus.SIGNED: AssignmentContractStatus.SIGNED,
    DateStatus.REJECTED: AssignmentContractStatus.REJECTED,
    DateStatus.CANCELLED: AssignmentContractStatus.CANCELLED,
}


def _parse_action(action: RespondAction | str) -> RespondAction:
    try:
        return RespondAction(action)
    except ValueError as exc:
        raise ValidationError(f"Unknown response action: {action!r}", field="action") from exc


def _rate(part: int, whole: int) -> Decimal:
    if whole == 0:
        return Decimal("0.00")
    return (Decimal(part) * _HUNDRED / Decimal(whole)).quantize(_CENT)


class MonthlyContractService:
    def __init__(
        self,
        storage: BookingStorage,
        clock: Clock | None = None,
        email: EmailDispatcher | None = None,
        synchronizer: ConsistencySynchronizer | None = None,
        config: BookingConfig | None = None,
        activity_log: ActivityLog | None = None,
    ):
        self._storage = storage
        self._clock = clock or SystemClock()
        self._config = config or BookingConfig()
        self._email = email or LoggingEmailDispatcher()
        self._activity = activity_log or ActivityLog(storage, self._clock)
        self._sync = synchronizer or ConsistencySynchronizer(
            storage,
            self._clock,
            activity_log=self._activity,
            max_attempts=self._config.saga.max_attempts,
        )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_contract(self, contract_id: UUID) -> MonthlyContract:
        contract = self._storage.get(MonthlyContract, contract_id)
        if contract is None:
            raise ContractNotFoundError("MonthlyContract", str(contract_id))
        return contract

    def get_musician_contract(self, contract_musician_id: UUID) -> ContractMusician:
        cm = self._storage.get(ContractMusician, contract_musician_id)
        if cm is None:
            raise ContractNotFoundError("ContractMusician", str(contract_musician_id))
        return cm

    def get_by_token(self, token: str) -> ContractMusician:
        cm = self._storage.find_one(ContractMusician, token=token) if token else None
        if cm is None:
            raise TokenNotFoundError(token or "")
        return cm

    def dates_for(self, contract_musician_id: UUID) -> list[ContractDate]:
        dates = self._storage.find(ContractDate, contract_musician_id=contract_musician_id)
        return sorted(dates, key=lambda d: (d.date, d.start_time is not None, d.start_time))

    def musicians_for(self, contract_id: UUID) -> list[ContractMusician]:
        return self._storage.find(ContractMusician, contract_id=contract_id)

    def aggregate_status(self, contract_musician_id: UUID) -> DateStatus:
        return aggregate_date_statuses(d.status for d in self.dates_for(contract_musician_id))

    def history(self, contract_musician_id: UUID) -> list[ContractStatusHistory]:
        rows = self._storage.find(
            ContractStatusHistory, contract_musician_id=contract_musician_id,
        )
        return sorted(rows, key=lambda h: h.changed_at)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_contract(
        self,
        planner_id: UUID,
        month: int,
        year: int,
        name: str | None = None,
        terms: str | None = None,
    ) -> MonthlyContract:
        if not 1 <= month <= 12:
            raise ValidationError(f"Invalid month: {month}", field="month")
        contract = self._storage.add(
            MonthlyContract(
                planner_id=planner_id,
                month=month,
                year=year,
                name=name or f"Monthly Contract {year:04d}-{month:02d}",
                terms_and_conditions=terms or self._config.contracts.default_terms,
            )
        )
        logger.info(
            "monthly_contract_created",
            extra={"contract_id": str(contract.id), "month": month, "year": year},
        )
        self._activity.record_safely(
            "monthly_contract", contract.id, "created", f"Created {contract.name}",
        )
        return contract

    def get_or_create_contract(
        self, planner_id: UUID, month: int, year: int, name: str | None = None,
    ) -> MonthlyContract:
        existing = self._storage.find_one(
            MonthlyContract, planner_id=planner_id, month=month, year=year,
        )
        return existing or self.create_contract(planner_id, month, year, name)

    def new_token(self) -> str:
        return secrets.token_hex(self._config.contracts.token_bytes)

    def generate(
        self,
        contract_id: UUID,
        musician_id: UUID,
        date_entries: Sequence[DateEntry],
    ) -> ContractMusician:
        """Create one pending slice plus one pending date row per entry.

        Raises:
            ContractNotFoundError: unknown contract.
            ValidationError: no dates, or the musician is unresolved.
            InvalidStateError: the contract is closed, or the musician
                already holds a live slice in it.
        """
        contract = self.get_contract(contract_id)
        if contract.status in (MonthlyContractStatus.COMPLETED, MonthlyContractStatus.CANCELLED):
            raise InvalidStateError(
                f"Monthly contract is {contract.status.value}",
                entity_type="MonthlyContract",
                entity_id=str(contract_id),
                current_status=contract.status.value,
            )
        if not date_entries:
            raise ValidationError("At least one date is required", field="date_entries")
        if self._storage.get(Musician, musician_id) is None:
            raise ValidationError(f"Musician {musician_id} not found", field="musician_id")

        live = [
            cm for cm in self._storage.find(
                ContractMusician, contract_id=contract_id, musician_id=musician_id,
            )
            if cm.status not in TERMINAL_CONTRACT_STATUSES
        ]
        if live:
            raise InvalidStateError(
                "Musician already has a live contract for this month",
                entity_type="ContractMusician",
                entity_id=str(live[0].id),
                current_status=live[0].status.value,
            )

        total = sum((Decimal(e.fee) for e in date_entries), Decimal("0"))
        with self._storage.atomic():
            cm = self._storage.add(
                ContractMusician(
                    contract_id=contract_id,
                    musician_id=musician_id,
                    token=self.new_token(),
                    total_fee=total,
                    pending_dates=len(date_entries),
                    total_dates=len(date_entries),
                )
            )
            for entry in date_entries:
                self._storage.add(
                    ContractDate(
                        contract_musician_id=cm.id,
                        date=entry.date,
                        fee=Decimal(entry.fee),
                        assignment_id=entry.assignment_id,
                        venue_id=entry.venue_id,
                        venue_name=entry.venue_name,
                        start_time=entry.start_time,
                        end_time=entry.end_time,
                    )
                )
            self._record_history(cm.id, None, ContractStatus.PENDING.value, "Contract generated")

        logger.info(
            "contract_generated",
            extra={
                "contract_id": str(contract_id),
                "contract_musician_id": str(cm.id),
                "musician_id": str(musician_id),
                "date_count": len(date_entries),
                "total_fee": str(total),
            },
        )
        self._activity.record_safely(
            "contract_musician", cm.id, "generated",
            f"Generated with {len(date_entries)} dates",
            context={"contract_id": str(contract_id), "total_fee": str(total)},
        )
        return cm

    # ------------------------------------------------------------------
    # Send
    # ------------------------------------------------------------------

    def send(self, contract_musician_id: UUID, response_base_url: str | None = None) -> SendResult:
        """Dispatch a pending slice.  A repeat call returns a skipped result."""
        cm = self.get_musician_contract(contract_musician_id)
        now = self._clock.now()

        with self._storage.atomic():
            sent = self._storage.compare_and_set(
                ContractMusician,
                cm.id,
                expected=(ContractStatus.PENDING,),
                changes={"status": ContractStatus.SENT, "sent_at": now},
            )
            if sent is not None:
                changed = self._move_dates(
                    sent.id, (DateStatus.PENDING, DateStatus.INCLUDED), DateStatus.SENT,
                )
                self._record_history(
                    sent.id, ContractStatus.PENDING.value, ContractStatus.SENT.value, "Contract sent",
                )

        if sent is None:
            current = self.get_musician_contract(contract_musician_id)
            logger.info(
                "contract_send_skipped",
                extra={
                    "contract_musician_id": str(cm.id),
                    "status": current.status.value,
                },
            )
            return SendResult(
                contract_musician_id=cm.id,
                outcome=SendOutcome.SKIPPED,
                status=current.status,
                reason=f"already {current.status.value}",
            )

        with LogContext.bind(musician_id=sent.musician_id, contract_id=sent.contract_id):
            self._after_date_changes(sent, changed)
            self._sync_parent(sent.contract_id, "send")

            musician = self._storage.get(Musician, sent.musician_id)
            url = contract_response_url(
                response_base_url or self._config.email.response_base_url, sent.id, sent.token,
            )
            delivered = self._dispatch_contract_email(musician, sent, url)

            logger.info(
                "contract_sent",
                extra={"contract_musician_id": str(sent.id), "email_delivered": delivered},
            )
            self._activity.record_safely(
                "contract_musician", sent.id, "sent", "Contract sent to musician",
                context={"email_delivered": delivered},
            )
        return SendResult(
            contract_musician_id=sent.id,
            outcome=SendOutcome.SENT,
            status=ContractStatus.SENT,
            email_delivered=delivered,
        )

    def send_all(
        self, contract_id: UUID, response_base_url: str | None = None,
    ) -> tuple[SendResult, ...]:
        self.get_contract(contract_id)
        return tuple(
            self.send(cm.id, response_base_url)
            for cm in sorted(self.musicians_for(contract_id), key=lambda c: str(c.id))
        )

    def _dispatch_contract_email(
        self, musician: Musician | None, cm: ContractMusician, url: str,
    ) -> bool:
        if musician is None:
            logger.warning("email_skipped_no_musician", extra={"contract_musician_id": str(cm.id)})
            return False
        try:
            delivered = self._email.send_contract_email(musician, cm, self.dates_for(cm.id), url)
        except Exception:
            logger.warning(
                "email_dispatch_failed",
                extra={"contract_musician_id": str(cm.id)},
                exc_info=True,
            )
            return False
        if not delivered:
            logger.warning("email_not_delivered", extra={"contract_musician_id": str(cm.id)})
        return bool(delivered)

    # ------------------------------------------------------------------
    # Respond
    # ------------------------------------------------------------------

    def respond(
        self,
        token: str,
        action: RespondAction | str,
        comments: str | None = None,
        ip_address: str | None = None,
        signature: str | None = None,
    ) -> ContractMusician:
        """Sign or reject the whole slice bound to ``token``.

        Raises:
            TokenNotFoundError: no slice has this token.
            ContractAlreadyRespondedError: the slice is already terminal, or a
                concurrent response won the compare-and-set.
        """
        action = _parse_action(action)
        cm = self.get_by_token(token)
        if cm.status not in RESPONDABLE_STATUSES:
            raise ContractAlreadyRespondedError("ContractMusician", str(cm.id), cm.status.value)
        require_transition(CONTRACT_WORKFLOW, "ContractMusician", cm.id, cm.status, action.value)

        musician = self._storage.get(Musician, cm.musician_id)
        now = self._clock.now()
        changes: dict[str, Any] = {
            "status": action.contract_status,
            "completed_at": now,
            "responded_at": cm.responded_at or now,
            "response_comments": comments,
            "ip_address": ip_address,
        }
        if action is RespondAction.SIGN:
            changes["signature"] = signature or (musician.name if musician else None)

        with self._storage.atomic():
            updated = self._storage.compare_and_set(
                ContractMusician, cm.id, expected=tuple(RESPONDABLE_STATUSES), changes=changes,
            )
            if updated is None:
                current = self.get_musician_contract(cm.id)
                raise ContractAlreadyRespondedError(
                    "ContractMusician", str(cm.id), current.status.value,
                )
            changed = self._move_dates(
                cm.id, _LIVE_DATE_STATUSES, action.date_status, responded_at=now, notes=comments,
            )
            self._record_history(
                cm.id, cm.status.value, updated.status.value, comments or f"Contract {action.value}ed",
            )

        with LogContext.bind(musician_id=cm.musician_id, contract_id=cm.contract_id):
            updated = self._after_date_changes(
                updated,
                changed,
                signature=changes.get("signature"),
                signed_by=musician.name if musician else None,
                ip_address=ip_address,
                comments=comments,
            )
            self._sync_parent(cm.contract_id, "respond")
            self._notify_response(updated, musician, action, comments)

            logger.info(
                "contract_responded",
                extra={
                    "contract_musician_id": str(cm.id),
                    "action": action.value,
                    "status": updated.status.value,
                },
            )
            self._activity.record_safely(
                "contract_musician", cm.id, action.value,
                f"Contract {updated.status.value} by musician",
                context={"ip_address": ip_address, "comments": comments},
            )
        return updated

    def respond_to_date(
        self,
        token: str,
        date_id: UUID,
        action: RespondAction | str,
        notes: str | None = None,
        ip_address: str | None = None,
    ) -> ContractDate:
        return self.respond_to_dates(token, {date_id: action}, notes, ip_address)[0]

    def respond_to_dates(
        self,
        token: str,
        responses: Mapping[UUID, RespondAction | str],
        notes: str | None = None,
        ip_address: str | None = None,
    ) -> list[ContractDate]:
        """Per-date sign/reject.  Finalizes the slice once no date is pending.

        Raises:
            TokenNotFoundError, ContractAlreadyRespondedError,
            ContractNotFoundError (date not in this slice),
            InvalidTransitionError (date already decided).
        """
        if not responses:
            raise ValidationError("At least one date response is required", field="responses")
        cm = self.get_by_token(token)
        if cm.status not in RESPONDABLE_STATUSES:
            raise ContractAlreadyRespondedError("ContractMusician", str(cm.id), cm.status.value)

        parsed = {date_id: _parse_action(a) for date_id, a in responses.items()}
        now = self._clock.now()
        changed: list[tuple[ContractDate, DateStatus]] = []

        with self._storage.atomic():
            for date_id, action in parsed.items():
                row = self._storage.get(ContractDate, date_id)
                if row is None or row.contract_musician_id != cm.id:
                    raise ContractNotFoundError("ContractDate", str(date_id))
                require_transition(
                    CONTRACT_DATE_WORKFLOW, "ContractDate", row.id, row.status, action.value,
                )
                updated_row = self._storage.compare_and_set(
                    ContractDate,
                    row.id,
                    expected=_LIVE_DATE_STATUSES,
                    changes={
                        "status": action.date_status,
                        "responded_at": now,
                        "response_notes": notes,
                    },
                )
                if updated_row is None:
                    current = self._storage.require(ContractDate, row.id)
                    raise InvalidTransitionError(
                        "ContractDate", str(row.id), current.status.value, action.value,
                    )
                changed.append((updated_row, row.status))

            if cm.responded_at is None:
                self._storage.compare_and_set(
                    ContractMusician,
                    cm.id,
                    expected=tuple(RESPONDABLE_STATUSES),
                    changes={"responded_at": now, "ip_address": ip_address or cm.ip_address},
                )

        musician = self._storage.get(Musician, cm.musician_id)
        with LogContext.bind(musician_id=cm.musician_id, contract_id=cm.contract_id):
            refreshed = self._after_date_changes(
                self.get_musician_contract(cm.id),
                changed,
                signed_by=musician.name if musician else None,
                ip_address=ip_address,
                comments=notes,
            )
            self._sync_parent(cm.contract_id, "respond")
            self._finalize_if_decided(refreshed, musician, notes)
            logger.info(
                "contract_dates_responded",
                extra={"contract_musician_id": str(cm.id), "date_count": len(changed)},
            )
        return [self._storage.require(ContractDate, row.id) for row, _ in changed]

    def _finalize_if_decided(
        self, cm: ContractMusician, musician: Musician | None, comments: str | None,
    ) -> ContractMusician:
        counts = count_responses(self.dates_for(cm.id))
        if counts.total == 0 or counts.pending > 0:
            return cm

        final = ContractStatus.SIGNED if counts.accepted == counts.total else ContractStatus.REJECTED
        now = self._clock.now()
        changes: dict[str, Any] = {
            "status": final,
            "completed_at": now,
            "responded_at": cm.responded_at or now,
        }
        if final is ContractStatus.SIGNED and cm.signature is None and musician is not None:
            changes["signature"] = musician.name
        updated = self._storage.compare_and_set(
            ContractMusician, cm.id, expected=tuple(RESPONDABLE_STATUSES), changes=changes,
        )
        if updated is None:
            return self.get_musician_contract(cm.id)

        self._record_history(cm.id, cm.status.value, final.value, "All dates decided")
        self._sync_parent(cm.contract_id, "respond")
        action = RespondAction.SIGN if final is ContractStatus.SIGNED else RespondAction.REJECT
        if musician is not None:
            self._notify_response(updated, musician, action, comments)
        logger.info(
            "contract_finalized",
            extra={"contract_musician_id": str(cm.id), "status": final.value},
        )
        self._activity.record_safely(
            "contract_musician", cm.id, "finalized",
            f"{counts.accepted} of {counts.total} dates accepted",
        )
        return updated

    def _notify_response(
        self,
        cm: ContractMusician,
        musician: Musician | None,
        action: RespondAction,
        comments: str | None,
    ) -> None:
        if musician is None:
            return
        try:
            self._email.send_contract_response_notification(cm, musician, action, comments)
        except Exception:
            logger.warning(
                "response_notification_failed",
                extra={"contract_musician_id": str(cm.id)},
                exc_info=True,
            )

    # ------------------------------------------------------------------
    # Staff actions
    # ------------------------------------------------------------------

    def include_date(self, date_id: UUID) -> ContractDate:
        row = self._storage.get(ContractDate, date_id)
        if row is None:
            raise ContractNotFoundError("ContractDate", str(date_id))
        require_transition(CONTRACT_DATE_WORKFLOW, "ContractDate", row.id, row.status, "include")
        updated = self._storage.compare_and_set(
            ContractDate, row.id, expected=(DateStatus.PENDING,),
            changes={"status": DateStatus.INCLUDED},
        )
        if updated is None:
            current = self._storage.require(ContractDate, row.id)
            raise InvalidTransitionError("ContractDate", str(row.id), current.status.value, "include")
        return updated

    def cancel(self, contract_musician_id: UUID, reason: str | None = None) -> ContractMusician:
        """Cancel a non-terminal slice and every date not rejected, releasing held dates.

        Dates already signed through ``respond_to_date`` are cancelled too.
        """
        cm = self.get_musician_contract(contract_musician_id)
        require_transition(CONTRACT_WORKFLOW, "ContractMusician", cm.id, cm.status, "cancel")

        with self._storage.atomic():
            updated = self._storage.compare_and_set(
                ContractMusician,
                cm.id,
                expected=(ContractStatus.PENDING, ContractStatus.SENT),
                changes={"status": ContractStatus.CANCELLED},
            )
            if updated is None:
                current = self.get_musician_contract(cm.id)
                raise InvalidTransitionError(
                    "ContractMusician", str(cm.id), current.status.value, "cancel",
                )
            changed = self._move_dates(
                cm.id, _CANCELLABLE_DATE_STATUSES, DateStatus.CANCELLED, notes=reason,
            )
            self._record_history(
                cm.id, cm.status.value, ContractStatus.CANCELLED.value, reason or "Contract cancelled",
            )

        with LogContext.bind(musician_id=cm.musician_id, contract_id=cm.contract_id):
            updated = self._after_date_changes(updated, changed, comments=reason)
            self._sync_parent(cm.contract_id, "cancel")
            logger.info(
                "contract_cancelled",
                extra={"contract_musician_id": str(cm.id), "reason": reason},
            )
            self._activity.record_safely(
                "contract_musician", cm.id, "cancelled", reason or "Contract cancelled",
            )
        return updated

    def cancel_contract(self, contract_id: UUID, reason: str | None = None) -> MonthlyContract:
        contract = self.get_contract(contract_id)
        require_transition(
            MONTHLY_CONTRACT_WORKFLOW, "MonthlyContract", contract.id, contract.status, "cancel",
        )
        for cm in self.musicians_for(contract_id):
            if cm.status not in TERMINAL_CONTRACT_STATUSES:
                self.cancel(cm.id, reason)

        # Cancelling the last live slice may already have completed the parent.
        contract = self.get_contract(contract_id)
        if contract.status == MonthlyContractStatus.COMPLETED:
            return contract
        updated = self._storage.save(replace(contract, status=MonthlyContractStatus.CANCELLED))
        logger.info("monthly_contract_cancelled", extra={"contract_id": str(contract_id)})
        self._activity.record_safely(
            "monthly_contract", contract_id, "cancelled", reason or "Monthly contract cancelled",
        )
        return updated

    # ------------------------------------------------------------------
    # Views and reporting
    # ------------------------------------------------------------------

    def view_by_token(
        self, token: str, contract_musician_id: UUID | None = None,
    ) -> ContractView:
        """What the musician sees when opening their link.

        Raises:
            TokenNotFoundError: unknown token.
            ContractNotFoundError: the id does not match the token's slice.
        """
        cm = self.get_by_token(token)
        if contract_musician_id is not None and cm.id != contract_musician_id:
            raise ContractNotFoundError("ContractMusician", str(contract_musician_id))

        contract = self._storage.get(MonthlyContract, cm.contract_id)
        musician = self._storage.get(Musician, cm.musician_id)
        dates = tuple(
            ContractDateView(
                date=d.date,
                venue=d.venue_name,
                start_time=d.start_time,
                fee=d.fee,
                status=d.status,
            )
            for d in self.dates_for(cm.id)
        )
        return ContractView(
            id=cm.id,
            musician_id=cm.musician_id,
            musician_name=musician.name if musician else "",
            dates=dates,
            total_amount=cm.total_fee,
            status=cm.status,
            terms_and_conditions=contract.terms_and_conditions if contract else None,
            sent_at=cm.sent_at,
            responded_at=cm.responded_at,
            completed_at=cm.completed_at,
        )

    def response_summary(self, contract_id: UUID) -> ResponseSummary:
        self.get_contract(contract_id)
        slices = self.musicians_for(contract_id)
        by_status = Counter(cm.status.value for cm in slices)
        responded = by_status[ContractStatus.SIGNED.value] + by_status[ContractStatus.REJECTED.value]

        rejected_dates = total_dates = 0
        by_response: Counter[str] = Counter()
        for cm in slices:
            counts = count_responses(self.dates_for(cm.id))
            rejected_dates += counts.rejected
            total_dates += counts.total
            by_response[sync_status(counts).value] += 1

        return ResponseSummary(
            contract_id=contract_id,
            total=len(slices),
            by_status=dict(by_status),
            response_rate=_rate(responded, len(slices)),
            rejection_rate=_rate(rejected_dates, total_dates),
            by_response=dict(by_response),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _move_dates(
        self,
        contract_musician_id: UUID,
        from_statuses: Sequence[DateStatus],
        to_status: DateStatus,
        responded_at: Any = None,
        notes: str | None = None,
    ) -> list[tuple[ContractDate, DateStatus]]:
        """Move every date in ``from_statuses``; returns (new row, old status) pairs."""
        moved = []
        for row in self.dates_for(contract_musician_id):
            if row.status not in from_statuses:
                continue
            changes: dict[str, Any] = {"status": to_status}
            if responded_at is not None:
                changes["responded_at"] = responded_at
            if notes is not None:
                changes["response_notes"] = notes
            moved.append((self._storage.save(replace(row, **changes)), row.status))
        return moved

    def _after_date_changes(
        self,
        cm: ContractMusician,
        changed: Sequence[tuple[ContractDate, DateStatus]],
        signature: str | None = None,
        signed_by: str | None = None,
        ip_address: str | None = None,
        comments: str | None = None,
    ) -> ContractMusician:
        """Refresh counts, mirror onto assignments, then sync each date."""
        cm = self._refresh_counts(cm.id)
        for row, _ in changed:
            self._mark_assignment(row)
        for row, old_status in changed:
            self._sync.apply(
                TransitionEvent(
                    musician_id=cm.musician_id,
                    date=row.date,
                    old_status=old_status.value,
                    new_status=row.status.value,
                    owner_kind=ClaimKind.CONTRACT_DATE,
                    owner_id=cm.id,
                    source_kind=ClaimKind.CONTRACT_DATE,
                    source_id=row.id,
                    amount=row.fee,
                    signature=signature,
                    signed_by=signed_by,
                    ip_address=ip_address,
                    comments=comments,
                )
            )
        return cm

    def _refresh_counts(self, contract_musician_id: UUID) -> ContractMusician:
        cm = self.get_musician_contract(contract_musician_id)
        dates = self.dates_for(cm.id)
        counts = count_responses(dates)
        updated = replace(
            cm,
            accepted_dates=counts.accepted,
            rejected_dates=counts.rejected,
            pending_dates=counts.pending,
            total_dates=counts.total,
        )
        return self._storage.save(updated) if updated != cm else cm

    def _mark_assignment(self, row: ContractDate) -> None:
        target = _ASSIGNMENT_STATUS_FOR.get(row.status)
        if row.assignment_id is None or target is None:
            return
        assignment = self._storage.get(PlannerAssignment, row.assignment_id)
        if assignment is not None and assignment.contract_status != target:
            self._storage.save(replace(assignment, contract_status=target))

    def _record_history(
        self, contract_musician_id: UUID, previous: str | None, new: str, notes: str | None,
    ) -> ContractStatusHistory:
        return self._storage.add(
            ContractStatusHistory(
                contract_musician_id=contract_musician_id,
                previous_status=previous,
                new_status=new,
                changed_at=self._clock.now(),
                notes=notes,
            )
        )

    def _sync_parent(self, contract_id: UUID, trigger: str) -> MonthlyContract | None:
        contract = self._storage.get(MonthlyContract, contract_id)
        if contract is None or MONTHLY_CONTRACT_WORKFLOW.is_terminal(contract.status.value):
            return contract

        slices = self.musicians_for(contract_id)
        if slices and all(cm.status in TERMINAL_CONTRACT_STATUSES for cm in slices):
            action = "complete"
        elif trigger == "send":
            action = "send"
        elif trigger == "respond":
            action = "respond"
        else:
            return contract

        transition = MONTHLY_CONTRACT_WORKFLOW.find_transition(contract.status.value, action)
        if transition is None:
            return contract
        updated = self._storage.save(
            replace(contract, status=MonthlyContractStatus(transition.to_state))
        )
        logger.info(
            "monthly_contract_status_changed",
            extra={
                "contract_id": str(contract_id),
                "from_status": contract.status.value,
                "to_status": updated.status.value,
            },
        )
        return updated
