"""
Email dispatch boundary.

``EmailDispatcher`` is the collaborator the contract services call.  Two
implementations ship:

    LoggingEmailDispatcher -- the "mock send".  Logs the message and reports
        success so the contract still advances.  Used whenever email is not
        configured; this is a supported mode, not an error path.
    SmtpEmailDispatcher -- plain SMTP delivery.  Transport failures are
        logged and reported as False; they never propagate.

Template rendering is not done here: bodies are short plain text.
"""

from __future__ import annotations

import smtplib
import ssl
from abc import ABC, abstractmethod
from collections.abc import Sequence
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any

from booking_config.schema import EmailConfig
from booking_kernel.domain.types import ContractDate, Musician, RespondAction
from booking_kernel.exceptions import EmailDispatchError
from booking_kernel.logging_config import get_logger

logger = get_logger("services.email")


def contract_response_url(base_url: str, contract_id: object, token: str) -> str:
    return f"{base_url}?id={contract_id}&token={token}"


def _contract_email_body(
    musician: Musician,
    date_entries: Sequence[ContractDate],
    response_url: str,
    total_amount: Any,
) -> str:
    lines = [f"Hello {musician.name},", "", "You have been scheduled to perform on:"]
    for entry in sorted(date_entries, key=lambda d: (d.date, d.start_time or d.date)):
        start = entry.start_time.strftime("%H:%M") if entry.start_time else "TBD"
        lines.append(f"  {entry.date.isoformat()}  {entry.venue_name or 'TBD'}  {start}  {entry.fee}")
    lines += [
        "",
        f"Total: {total_amount}",
        "",
        f"Please review and sign your contract: {response_url}",
    ]
    return "\n".join(lines)


class EmailDispatcher(ABC):
    """Fire-and-forget email collaborator.  Every method returns success."""

    @abstractmethod
    def send_contract_email(
        self,
        musician: Musician,
        contract: Any,
        date_entries: Sequence[ContractDate],
        response_url: str,
    ) -> bool:
        ...

    @abstractmethod
    def send_contract_response_notification(
        self,
        contract: Any,
        musician: Musician,
        action: RespondAction,
        comments: str | None,
    ) -> bool:
        ...


class LoggingEmailDispatcher(EmailDispatcher):
    """Mock send: log what would have been delivered."""

    def send_contract_email(self, musician, contract, date_entries, response_url) -> bool:
        logger.info(
            "email_mock_send",
            extra={
                "kind": "contract",
                "to": musician.email,
                "contract_id": str(contract.id),
                "date_count": len(date_entries),
            },
        )
        return True

    def send_contract_response_notification(self, contract, musician, action, comments) -> bool:
        logger.info(
            "email_mock_send",
            extra={
                "kind": "contract_response",
                "musician": musician.name,
                "contract_id": str(contract.id),
                "action": RespondAction(action).value,
            },
        )
        return True


class SmtpEmailDispatcher(EmailDispatcher):
    """Deliver over SMTP with STARTTLS (or implicit TLS on port 465)."""

    def __init__(self, config: EmailConfig):
        self._config = config

    def _send(self, to_address: str, subject: str, body: str) -> None:
        cfg = self._config
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{cfg.sender_name} <{cfg.sender_email}>"
        msg["To"] = to_address
        msg.attach(MIMEText(body, "plain"))

        context = ssl.create_default_context()
        try:
            if cfg.smtp_port == 465:
                server = smtplib.SMTP_SSL(
                    cfg.smtp_host, cfg.smtp_port, context=context, timeout=cfg.timeout_seconds,
                )
            else:
                server = smtplib.SMTP(cfg.smtp_host, cfg.smtp_port, timeout=cfg.timeout_seconds)
                if cfg.smtp_use_tls:
                    server.starttls(context=context)
            with server:
                if cfg.smtp_username:
                    server.login(cfg.smtp_username, cfg.smtp_password or "")
                server.sendmail(cfg.sender_email, [to_address], msg.as_string())
        except (smtplib.SMTPException, OSError) as exc:
            raise EmailDispatchError("smtp_send", str(exc)) from exc

    def send_contract_email(self, musician, contract, date_entries, response_url) -> bool:
        if not musician.email:
            logger.warning("email_no_recipient", extra={"musician_id": str(musician.id)})
            return False
        total = getattr(contract, "total_fee", None) or getattr(contract, "amount", None)
        try:
            self._send(
                musician.email,
                "Performance Contract",
                _contract_email_body(musician, date_entries, response_url, total),
            )
        except EmailDispatchError:
            logger.warning("email_send_failed", exc_info=True)
            return False
        logger.info("email_sent", extra={"kind": "contract", "contract_id": str(contract.id)})
        return True

    def send_contract_response_notification(self, contract, musician, action, comments) -> bool:
        admin = self._config.admin_email
        if not admin:
            return False
        verb = "signed" if RespondAction(action) is RespondAction.SIGN else "rejected"
        body = f"{musician.name} has {verb} contract {contract.id}."
        if comments:
            body += f"\n\nComments:\n{comments}"
        try:
            self._send(admin, f"Contract {verb.title()} by {musician.name}", body)
        except EmailDispatchError:
            logger.warning("email_send_failed", exc_info=True)
            return False
        return True


def build_email_dispatcher(config: EmailConfig) -> EmailDispatcher:
    """SMTP when fully configured, otherwise the logged mock send."""
    if config.is_configured:
        return SmtpEmailDispatcher(config)
    logger.info("email_not_configured_using_mock")
    return LoggingEmailDispatcher()
