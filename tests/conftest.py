"""
Pytest fixtures for the booking kernel test suite.

Provides:
- Structured logging configured once per session, plus ``captured_logs``
- A fresh in-memory SQLite engine and session per test
- ``storage`` parametrized over InMemoryStorage and SqlAlchemyStorage, so
  every service test runs against both backends
- A DeterministicClock and a recording email dispatcher
- ``seed`` for building musicians, planners, slots and assignments
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from decimal import Decimal
from io import StringIO
from typing import Any
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import sessionmaker

from booking_config.schema import BookingConfig, SagaConfig
from booking_kernel.db.engine import create_engine_for_url, create_tables
from booking_kernel.domain.clock import DeterministicClock
from booking_kernel.domain.types import (
    DateEntry,
    MonthlyPlanner,
    Musician,
    PayRate,
    PlannerAssignment,
    PlannerSlot,
    Venue,
)
from booking_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from booking_kernel.services.activity_log import ActivityLog
from booking_kernel.services.booking_service import BookingService
from booking_kernel.services.contract_generator import MonthlyContractGenerator
from booking_kernel.services.contract_link_service import ContractLinkService
from booking_kernel.services.email import EmailDispatcher
from booking_kernel.services.invoice_service import InvoiceAggregator
from booking_kernel.services.monthly_contract_service import MonthlyContractService
from booking_kernel.services.synchronizer import ConsistencySynchronizer
from booking_kernel.storage import InMemoryStorage, SqlAlchemyStorage

START = datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture booking_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, contract_service):
            contract_service.send(cm.id)
            assert any(r["message"] == "contract_sent" for r in captured_logs())
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("booking_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database / storage fixtures
# =============================================================================


@pytest.fixture
def engine():
    engine = create_engine_for_url("sqlite://")
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    session = sessionmaker(bind=engine)()
    yield session
    session.rollback()
    session.close()


@pytest.fixture(params=["memory", "sqlalchemy"])
def storage(request):
    if request.param == "memory":
        return InMemoryStorage()
    return SqlAlchemyStorage(request.getfixturevalue("session"))


@pytest.fixture
def memory_storage():
    return InMemoryStorage()


@pytest.fixture
def clock():
    return DeterministicClock(START)


@pytest.fixture
def config():
    return BookingConfig(saga=SagaConfig(max_attempts=2))


# =============================================================================
# Email
# =============================================================================


class RecordingEmailDispatcher(EmailDispatcher):
    """Remembers every send; ``result`` or ``error`` controls the outcome."""

    def __init__(self) -> None:
        self.contract_emails: list[dict[str, Any]] = []
        self.notifications: list[dict[str, Any]] = []
        self.result = True
        self.error: Exception | None = None

    def send_contract_email(self, musician, contract, date_entries, response_url) -> bool:
        self.contract_emails.append(
            {
                "musician": musician,
                "contract": contract,
                "dates": list(date_entries),
                "url": response_url,
            }
        )
        if self.error is not None:
            raise self.error
        return self.result

    def send_contract_response_notification(self, contract, musician, action, comments) -> bool:
        self.notifications.append(
            {"contract": contract, "musician": musician, "action": action, "comments": comments}
        )
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def email():
    return RecordingEmailDispatcher()


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def activity_log(storage, clock):
    return ActivityLog(storage, clock)


@pytest.fixture
def synchronizer(storage, clock, activity_log, config):
    return ConsistencySynchronizer(
        storage, clock, activity_log=activity_log, max_attempts=config.saga.max_attempts,
    )


@pytest.fixture
def contract_service(storage, clock, email, synchronizer, config, activity_log):
    return MonthlyContractService(
        storage,
        clock,
        email=email,
        synchronizer=synchronizer,
        config=config,
        activity_log=activity_log,
    )


@pytest.fixture
def link_service(storage, clock, email, synchronizer, config, activity_log):
    return ContractLinkService(
        storage,
        clock,
        email=email,
        synchronizer=synchronizer,
        config=config,
        activity_log=activity_log,
    )


@pytest.fixture
def booking_service(storage, clock, activity_log):
    return BookingService(storage, clock, activity_log=activity_log)


@pytest.fixture
def invoice_service(storage, clock, config, activity_log):
    return InvoiceAggregator(storage, clock, config=config, activity_log=activity_log)


@pytest.fixture
def generator(storage, contract_service, config):
    return MonthlyContractGenerator(storage, contract_service, config=config)


# =============================================================================
# Seed data
# =============================================================================


@dataclass
class Seed:
    """Thin builders over a storage instance."""

    storage: Any
    _counter: list[int] = field(default_factory=lambda: [0])

    def musician(self, name: str | None = None, email: str | None = None) -> Musician:
        self._counter[0] += 1
        name = name or f"Musician {self._counter[0]}"
        return self.storage.add(Musician(name=name, email=email or f"m{self._counter[0]}@example.com"))

    def venue(self, name: str = "The Blue Room") -> Venue:
        return self.storage.add(Venue(name=name, address="1 Main St"))

    def planner(self, month: int = 3, year: int = 2025) -> MonthlyPlanner:
        return self.storage.add(MonthlyPlanner(name=f"Planner {year}-{month:02d}", month=month, year=year))

    def slot(
        self,
        planner: MonthlyPlanner,
        day: date,
        fee: Decimal | None = None,
        venue: Venue | None = None,
        category_id: UUID | None = None,
        start: time | None = None,
        end: time | None = None,
    ) -> PlannerSlot:
        return self.storage.add(
            PlannerSlot(
                planner_id=planner.id,
                date=day,
                venue_id=venue.id if venue else None,
                category_id=category_id,
                start_time=start,
                end_time=end,
                fee=fee,
            )
        )

    def assignment(self, slot: PlannerSlot, musician: Musician, **kwargs: Any) -> PlannerAssignment:
        return self.storage.add(PlannerAssignment(slot_id=slot.id, musician_id=musician.id, **kwargs))

    def pay_rate(self, musician: Musician, category_id: UUID, **kwargs: Any) -> PayRate:
        return self.storage.add(
            PayRate(musician_id=musician.id, event_category_id=category_id, **kwargs)
        )


@pytest.fixture
def seed(storage):
    return Seed(storage)


@pytest.fixture
def make_slice(seed, contract_service):
    """Build a pending monthly contract slice for a musician over given dates."""

    def _make(musician=None, days=(date(2025, 3, 5),), fee=Decimal("300"), contract=None):
        musician = musician or seed.musician()
        if contract is None:
            contract = contract_service.create_contract(uuid4(), 3, 2025)
        entries = [DateEntry(date=d, fee=fee, venue_name="The Blue Room", start_time=time(20, 0)) for d in days]
        cm = contract_service.generate(contract.id, musician.id, entries)
        return musician, contract, cm

    return _make
