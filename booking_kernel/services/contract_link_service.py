"""
ContractLinkService -- single-event contracts bound to a bearer token.

Same lifecycle as a monthly slice (pending -> sent -> signed | rejected,
cancelled from any non-terminal state) with two extra rules: a link expires
``link_expiry_days`` after creation, and signing requires a signature.

A response cascades to the originating invitation (confirmed / rejected)
and, through the synchronizer, to the booking and the availability ledger.
"""

from __future__ import annotations

import secrets
from dataclasses import replace
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from booking_config.schema import BookingConfig
from booking_kernel.domain.clock import Clock, SystemClock
from booking_kernel.domain.lifecycles import CONTRACT_WORKFLOW, INVITATION_WORKFLOW
from booking_kernel.domain.types import (
    RESPONDABLE_STATUSES,
    ClaimKind,
    ContractDateView,
    ContractLink,
    ContractStatus,
    ContractView,
    DateStatus,
    Invitation,
    InvitationStatus,
    Musician,
    RespondAction,
    SendOutcome,
    SendResult,
)
from booking_kernel.domain.workflow import require_transition
from booking_kernel.exceptions import (
    ContractAlreadyRespondedError,
    ContractExpiredError,
    ContractNotFoundError,
    InvalidTransitionError,
    MissingSignatureError,
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

logger = get_logger("services.contract_link")

_LINK_DATE_STATUS = {
    ContractStatus.PENDING: DateStatus.PENDING,
    ContractStatus.SENT: DateStatus.SENT,
    ContractStatus.SIGNED: DateStatus.SIGNED,
    ContractStatus.REJECTED: DateStatus.REJECTED,
    ContractStatus.CANCELLED: DateStatus.CANCELLED,
}


class ContractLinkService:
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

    def get(self, link_id: UUID) -> ContractLink:
        link = self._storage.get(ContractLink, link_id)
        if link is None:
            raise ContractNotFoundError("ContractLink", str(link_id))
        return link

    def get_by_token(self, token: str) -> ContractLink:
        link = self._storage.find_one(ContractLink, token=token) if token else None
        if link is None:
            raise TokenNotFoundError(token or "")
        return link

    def create(
        self,
        event_id: UUID,
        musician_id: UUID,
        event_date: date | None,
        amount: Decimal | None = None,
        booking_id: UUID | None = None,
        invitation_id: UUID | None = None,
    ) -> ContractLink:
        if event_date is None:
            raise ValidationError("Event date is required", field="event_date")
        if self._storage.get(Musician, musician_id) is None:
            raise ValidationError(f"Musician {musician_id} not found", field="musician_id")

        now = self._clock.now()
        link = self._storage.add(
            ContractLink(
                token=secrets.token_hex(self._config.contracts.token_bytes),
                musician_id=musician_id,
                event_id=event_id,
                event_date=event_date,
                amount=Decimal(amount) if amount is not None else None,
                booking_id=booking_id,
                invitation_id=invitation_id,
                expires_at=now + timedelta(days=self._config.contracts.link_expiry_days),
                company_signature=self._config.contracts.company_signature,
            )
        )
        logger.info(
            "contract_link_created",
            extra={
                "contract_link_id": str(link.id),
                "musician_id": str(musician_id),
                "event_date": event_date.isoformat(),
            },
        )
        self._activity.record_safely(
            "contract_link", link.id, "created", f"Contract for {event_date.isoformat()}",
        )
        return link

    def send(self, link_id: UUID, response_base_url: str | None = None) -> SendResult:
        link = self.get(link_id)
        sent = self._storage.compare_and_set(
            ContractLink,
            link.id,
            expected=(ContractStatus.PENDING,),
            changes={"status": ContractStatus.SENT, "sent_at": self._clock.now()},
        )
        if sent is None:
            current = self.get(link_id)
            logger.info(
                "contract_send_skipped",
                extra={"contract_link_id": str(link.id), "status": current.status.value},
            )
            return SendResult(
                contract_musician_id=link.id,
                outcome=SendOutcome.SKIPPED,
                status=current.status,
                reason=f"already {current.status.value}",
            )

        with LogContext.bind(musician_id=sent.musician_id, contract_id=sent.id):
            self._sync.apply(self._event(sent, ContractStatus.PENDING))
            musician = self._storage.get(Musician, sent.musician_id)
            url = contract_response_url(
                response_base_url or self._config.email.response_base_url, sent.id, sent.token,
            )
            delivered = False
            if musician is not None:
                try:
                    delivered = bool(self._email.send_contract_email(musician, sent, [], url))
                except Exception:
                    logger.warning(
                        "email_dispatch_failed",
                        extra={"contract_link_id": str(sent.id)},
                        exc_info=True,
                    )
            logger.info(
                "contract_sent",
                extra={"contract_link_id": str(sent.id), "email_delivered": delivered},
            )
            self._activity.record_safely(
                "contract_link", sent.id, "sent", "Contract sent to musician",
                context={"email_delivered": delivered},
            )
        return SendResult(
            contract_musician_id=sent.id,
            outcome=SendOutcome.SENT,
            status=ContractStatus.SENT,
            email_delivered=delivered,
        )

    def respond(
        self,
        token: str,
        action: RespondAction | str,
        response: str | None = None,
        signature: str | None = None,
        ip_address: str | None = None,
    ) -> ContractLink:
        """Sign or reject a single-event contract.

        Raises:
            ValidationError: unknown action.
            MissingSignatureError: signing without a signature.
            TokenNotFoundError: unknown token.
            ContractAlreadyRespondedError: already terminal, or lost the race.
            ContractExpiredError: past ``expires_at``.
        """
        try:
            action = RespondAction(action)
        except ValueError as exc:
            raise ValidationError(f"Unknown response action: {action!r}", field="action") from exc
        if action is RespondAction.SIGN and not (signature and signature.strip()):
            raise MissingSignatureError()

        link = self.get_by_token(token)
        if link.status not in RESPONDABLE_STATUSES:
            raise ContractAlreadyRespondedError("ContractLink", str(link.id), link.status.value)
        now = self._clock.now()
        if link.expires_at is not None and now > link.expires_at:
            raise ContractExpiredError(str(link.id), link.expires_at.isoformat())
        require_transition(CONTRACT_WORKFLOW, "ContractLink", link.id, link.status, action.value)

        changes = {
            "status": action.contract_status,
            "response": response,
            "responded_at": link.responded_at or now,
            "completed_at": now,
            "ip_address": ip_address,
        }
        if action is RespondAction.SIGN:
            changes["musician_signature"] = signature.strip()

        with self._storage.atomic():
            updated = self._storage.compare_and_set(
                ContractLink, link.id, expected=tuple(RESPONDABLE_STATUSES), changes=changes,
            )
            if updated is None:
                current = self.get(link.id)
                raise ContractAlreadyRespondedError(
                    "ContractLink", str(link.id), current.status.value,
                )
            if updated.invitation_id is not None:
                self._cascade_invitation(updated.invitation_id, action, response, now)

        musician = self._storage.get(Musician, updated.musician_id)
        with LogContext.bind(musician_id=updated.musician_id, contract_id=updated.id):
            self._sync.apply(
                self._event(
                    updated,
                    link.status,
                    signature=updated.musician_signature,
                    signed_by=musician.name if musician else None,
                    ip_address=ip_address,
                    comments=response,
                )
            )
            if musician is not None:
                try:
                    self._email.send_contract_response_notification(
                        updated, musician, action, response,
                    )
                except Exception:
                    logger.warning(
                        "response_notification_failed",
                        extra={"contract_link_id": str(updated.id)},
                        exc_info=True,
                    )
            logger.info(
                "contract_responded",
                extra={
                    "contract_link_id": str(updated.id),
                    "action": action.value,
                    "status": updated.status.value,
                },
            )
            self._activity.record_safely(
                "contract_link", updated.id, action.value,
                f"Contract {updated.status.value} by musician",
                context={"ip_address": ip_address},
            )
        return updated

    def _cascade_invitation(
        self, invitation_id: UUID, action: RespondAction, message: str | None, now,
    ) -> None:
        invitation = self._storage.get(Invitation, invitation_id)
        if invitation is None:
            logger.warning("invitation_missing", extra={"invitation_id": str(invitation_id)})
            return
        verb = "confirm" if action is RespondAction.SIGN else "reject"
        transition = INVITATION_WORKFLOW.find_transition(invitation.status.value, verb)
        if transition is None:
            logger.info(
                "invitation_cascade_skipped",
                extra={"invitation_id": str(invitation_id), "status": invitation.status.value},
            )
            return
        self._storage.save(
            replace(
                invitation,
                status=InvitationStatus(transition.to_state),
                responded_at=invitation.responded_at or now,
                response_message=message or invitation.response_message,
            )
        )

    def cancel(self, link_id: UUID, reason: str | None = None) -> ContractLink:
        link = self.get(link_id)
        require_transition(CONTRACT_WORKFLOW, "ContractLink", link.id, link.status, "cancel")
        updated = self._storage.compare_and_set(
            ContractLink,
            link.id,
            expected=(ContractStatus.PENDING, ContractStatus.SENT),
            changes={"status": ContractStatus.CANCELLED, "response": reason},
        )
        if updated is None:
            current = self.get(link.id)
            raise InvalidTransitionError("ContractLink", str(link.id), current.status.value, "cancel")

        with LogContext.bind(musician_id=updated.musician_id, contract_id=updated.id):
            self._sync.apply(self._event(updated, link.status, comments=reason))
            logger.info("contract_cancelled", extra={"contract_link_id": str(updated.id)})
            self._activity.record_safely(
                "contract_link", updated.id, "cancelled", reason or "Contract cancelled",
            )
        return updated

    def view(self, token: str) -> ContractView:
        link = self.get_by_token(token)
        musician = self._storage.get(Musician, link.musician_id)
        amount = link.amount if link.amount is not None else Decimal("0")
        return ContractView(
            id=link.id,
            musician_id=link.musician_id,
            musician_name=musician.name if musician else "",
            dates=(
                ContractDateView(
                    date=link.event_date,
                    venue=None,
                    start_time=None,
                    fee=amount,
                    status=_LINK_DATE_STATUS[link.status],
                ),
            ),
            total_amount=amount,
            status=link.status,
            terms_and_conditions=self._config.contracts.default_terms,
            sent_at=link.sent_at,
            responded_at=link.responded_at,
            completed_at=link.completed_at,
        )

    def _event(
        self,
        link: ContractLink,
        old_status: ContractStatus,
        signature: str | None = None,
        signed_by: str | None = None,
        ip_address: str | None = None,
        comments: str | None = None,
    ) -> TransitionEvent:
        return TransitionEvent(
            musician_id=link.musician_id,
            date=link.event_date,
            old_status=old_status.value,
            new_status=link.status.value,
            owner_kind=ClaimKind.CONTRACT_LINK,
            owner_id=link.id,
            source_kind=ClaimKind.CONTRACT_LINK,
            source_id=link.id,
            booking_id=link.booking_id,
            event_id=link.event_id,
            amount=link.amount,
            signature=signature,
            signed_by=signed_by,
            ip_address=ip_address,
            comments=comments,
        )
