"""Email dispatchers: mock send, SMTP delivery and failure reporting."""

import smtplib
from datetime import date, time
from decimal import Decimal
from uuid import uuid4

import pytest

from booking_config.schema import EmailConfig
from booking_kernel.domain.types import ContractDate, ContractMusician, Musician, RespondAction
from booking_kernel.services.email import (
    LoggingEmailDispatcher,
    SmtpEmailDispatcher,
    build_email_dispatcher,
    contract_response_url,
)

SMTP_CONFIG = EmailConfig(
    enabled=True,
    sender_email="office@example.com",
    admin_email="admin@example.com",
    smtp_host="smtp.example.com",
    smtp_username="office",
    smtp_password="secret",
)


class FakeSMTP:
    instances: list["FakeSMTP"] = []
    fail_with: Exception | None = None

    def __init__(self, host, port, timeout=None, context=None):
        self.host, self.port = host, port
        self.started_tls = False
        self.logged_in = None
        self.sent = []
        FakeSMTP.instances.append(self)

    def starttls(self, context=None):
        self.started_tls = True

    def login(self, user, password):
        self.logged_in = (user, password)

    def sendmail(self, sender, recipients, message):
        if FakeSMTP.fail_with is not None:
            raise FakeSMTP.fail_with
        self.sent.append((sender, recipients, message))

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


@pytest.fixture
def fake_smtp(monkeypatch):
    FakeSMTP.instances = []
    FakeSMTP.fail_with = None
    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
    monkeypatch.setattr(smtplib, "SMTP_SSL", FakeSMTP)
    return FakeSMTP


@pytest.fixture
def parts():
    musician = Musician(name="Alice", email="alice@example.com")
    cm = ContractMusician(
        contract_id=uuid4(), musician_id=musician.id, token="t" * 64, total_fee=Decimal("300"),
    )
    dates = [
        ContractDate(
            contract_musician_id=cm.id, date=date(2025, 3, 5), fee=Decimal("300"),
            venue_name="The Blue Room", start_time=time(20, 0),
        )
    ]
    return musician, cm, dates


def test_response_url():
    assert contract_response_url("https://x/respond", "abc", "tok") == "https://x/respond?id=abc&token=tok"


def test_build_falls_back_to_mock():
    assert isinstance(build_email_dispatcher(EmailConfig()), LoggingEmailDispatcher)
    assert isinstance(build_email_dispatcher(SMTP_CONFIG), SmtpEmailDispatcher)


class TestLoggingDispatcher:
    def test_mock_send_reports_success(self, parts, captured_logs):
        musician, cm, dates = parts
        dispatcher = LoggingEmailDispatcher()
        assert dispatcher.send_contract_email(musician, cm, dates, "https://x") is True
        assert dispatcher.send_contract_response_notification(cm, musician, "sign", None) is True
        kinds = [r["kind"] for r in captured_logs() if r["message"] == "email_mock_send"]
        assert kinds == ["contract", "contract_response"]


class TestSmtpDispatcher:
    def test_contract_email_delivered(self, fake_smtp, parts):
        musician, cm, dates = parts
        url = contract_response_url("https://x/respond", cm.id, cm.token)

        assert SmtpEmailDispatcher(SMTP_CONFIG).send_contract_email(musician, cm, dates, url) is True

        [server] = fake_smtp.instances
        assert server.started_tls is True
        assert server.logged_in == ("office", "secret")
        [(sender, recipients, message)] = server.sent
        assert sender == "office@example.com"
        assert recipients == ["alice@example.com"]
        assert "2025-03-05" in message
        assert "The Blue Room" in message

    def test_port_465_uses_implicit_tls(self, fake_smtp, parts):
        musician, cm, dates = parts
        config = EmailConfig(enabled=True, sender_email="o@example.com", smtp_host="h", smtp_port=465)
        SmtpEmailDispatcher(config).send_contract_email(musician, cm, dates, "u")
        [server] = fake_smtp.instances
        assert server.port == 465
        assert server.started_tls is False
        assert server.logged_in is None

    def test_transport_failure_returns_false(self, fake_smtp, parts, captured_logs):
        musician, cm, dates = parts
        fake_smtp.fail_with = smtplib.SMTPException("relay denied")
        assert SmtpEmailDispatcher(SMTP_CONFIG).send_contract_email(musician, cm, dates, "u") is False
        assert any(r["message"] == "email_send_failed" for r in captured_logs())

    def test_no_recipient(self, fake_smtp, parts):
        _, cm, dates = parts
        assert SmtpEmailDispatcher(SMTP_CONFIG).send_contract_email(Musician(name="NoMail"), cm, dates, "u") is False
        assert fake_smtp.instances == []

    def test_notification_goes_to_admin(self, fake_smtp, parts):
        musician, cm, _ = parts
        dispatcher = SmtpEmailDispatcher(SMTP_CONFIG)
        assert dispatcher.send_contract_response_notification(cm, musician, RespondAction.REJECT, "busy") is True
        [(_, recipients, message)] = fake_smtp.instances[0].sent
        assert recipients == ["admin@example.com"]
        assert "rejected" in message
        assert "busy" in message

    def test_notification_without_admin(self, fake_smtp, parts):
        musician, cm, _ = parts
        config = EmailConfig(enabled=True, sender_email="o@example.com", smtp_host="h")
        assert SmtpEmailDispatcher(config).send_contract_response_notification(cm, musician, "sign", None) is False
