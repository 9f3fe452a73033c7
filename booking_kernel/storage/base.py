"""
Module: booking_kernel.storage.base
Responsibility: The storage interface every service depends on.  Two
    implementations exist: InMemoryStorage (tests, local tooling) and
    SqlAlchemyStorage (production, over a caller-owned Session).
Architecture position: Kernel > Storage.  Imports domain types and
    exceptions only.

Invariants enforced:
    - Records are frozen dataclasses; storage never mutates a record in place.
    - Unique keys (UNIQUE_KEYS) are enforced by both implementations and
      surface as DuplicateRecordError.
    - ``compare_and_set`` is atomic: at most one caller observing a given
      expected status wins.
    - Criteria are always bound as parameters, never interpolated.

Failure modes:
    - DuplicateRecordError on a unique-key collision.
    - RecordNotFoundError from ``save`` / ``require`` on an unknown id.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Collection, Iterator
from contextlib import AbstractContextManager
from typing import Any, TypeVar
from uuid import UUID

from booking_kernel.domain.types import (
    AvailabilityRecord,
    ContractLink,
    ContractMusician,
    EntityStatusRecord,
    Invitation,
    MonthlyContract,
    MonthlyInvoice,
    PayRate,
)
from booking_kernel.exceptions import RecordNotFoundError

R = TypeVar("R")

UNIQUE_KEYS: dict[type, tuple[tuple[str, ...], ...]] = {
    ContractLink: (("token",),),
    ContractMusician: (("token",),),
    MonthlyContract: (("planner_id", "month", "year"),),
    AvailabilityRecord: (("musician_id", "date"),),
    MonthlyInvoice: (("planner_id", "musician_id", "month", "year"),),
    Invitation: (("event_id", "musician_id", "event_date"),),
    PayRate: (("musician_id", "event_category_id"),),
    EntityStatusRecord: (("entity_type", "entity_id", "event_date"),),
}

MULTI_VALUE_TYPES = (tuple, list, set, frozenset)


def matches(record: Any, criteria: dict[str, Any]) -> bool:
    """Equality / IN match used by in-process filtering."""
    for name, expected in criteria.items():
        actual = getattr(record, name)
        if isinstance(expected, MULTI_VALUE_TYPES):
            if actual not in expected:
                return False
        elif actual != expected:
            return False
    return True


class BookingStorage(ABC):
    """
    Injectable persistence boundary.

    Contract:
        Services receive a BookingStorage in their constructor and never
        reach for a global.  The storage does not commit: for SQLAlchemy the
        caller's session_scope() owns the transaction, and ``atomic()`` opens
        a SAVEPOINT inside it.
    """

    @abstractmethod
    def add(self, record: R) -> R:
        """Insert a new record.  Raises DuplicateRecordError on a key collision."""

    @abstractmethod
    def get(self, record_type: type[R], record_id: UUID) -> R | None:
        """Return the record with this id, or None."""

    @abstractmethod
    def save(self, record: R) -> R:
        """Replace an existing record (matched by id)."""

    @abstractmethod
    def find(self, record_type: type[R], **criteria: Any) -> list[R]:
        """All records whose fields equal the criteria.

        A tuple / list / set criterion value means "field IN values".
        """

    @abstractmethod
    def compare_and_set(
        self,
        record_type: type[R],
        record_id: UUID,
        expected: Collection[Any],
        changes: dict[str, Any],
        field: str = "status",
    ) -> R | None:
        """Apply ``changes`` only if ``field`` is currently in ``expected``.

        Returns the updated record, or None if the guard did not match
        (including when the record does not exist).
        """

    @abstractmethod
    def atomic(self) -> AbstractContextManager[None]:
        """Nested unit of work: everything inside rolls back together on error."""

    def require(self, record_type: type[R], record_id: UUID) -> R:
        record = self.get(record_type, record_id)
        if record is None:
            raise RecordNotFoundError(record_type.__name__, str(record_id))
        return record

    def find_one(self, record_type: type[R], **criteria: Any) -> R | None:
        found = self.find(record_type, **criteria)
        return found[0] if found else None

    def iter_all(self, record_type: type[R]) -> Iterator[R]:
        yield from self.find(record_type)
