"""
Module: booking_kernel.storage.sqlalchemy_store
Responsibility: BookingStorage over a caller-owned SQLAlchemy Session.
Architecture position: Kernel > Storage.  Imports db/ and models/.

Invariants enforced:
    - Never commits.  The caller's session_scope() owns the transaction.
    - Every write runs inside a SAVEPOINT so an IntegrityError only rolls
      back that write and surfaces as DuplicateRecordError.
    - compare_and_set is a single UPDATE ... WHERE id = :id AND
      <field> IN (:expected); the row count decides the winner.
    - Every statement is built with the expression language; values are
      always bound parameters.
"""

from __future__ import annotations

from collections.abc import Collection, Iterator
from contextlib import contextmanager
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import booking_kernel.models  # noqa: F401  (registers mappers)
from booking_kernel.db.base import Base
from booking_kernel.exceptions import DuplicateRecordError, RecordNotFoundError
from booking_kernel.logging_config import get_logger
from booking_kernel.storage.base import MULTI_VALUE_TYPES, BookingStorage, R

logger = get_logger("storage.sqlalchemy")


def _build_model_registry() -> dict[type, type]:
    registry: dict[type, type] = {}
    for mapper in Base.registry.mappers:
        dto = getattr(mapper.class_, "__dto__", None)
        if dto is not None:
            registry[dto] = mapper.class_
    return registry


class SqlAlchemyStorage(BookingStorage):
    """BookingStorage backed by SQLAlchemy ORM models."""

    def __init__(self, session: Session):
        self._session = session
        self._models = _build_model_registry()

    @property
    def session(self) -> Session:
        return self._session

    def _model(self, record_type: type) -> type:
        try:
            return self._models[record_type]
        except KeyError:
            raise TypeError(f"No ORM model registered for {record_type.__name__}") from None

    def add(self, record: R) -> R:
        model_cls = self._model(type(record))
        model = model_cls.from_dto(record)
        try:
            with self._session.begin_nested():
                self._session.add(model)
        except IntegrityError as exc:
            logger.warning(
                "storage_integrity_error",
                extra={"record_type": type(record).__name__, "error": str(exc.orig)},
            )
            raise DuplicateRecordError(type(record).__name__, {"id": record.id}) from exc
        return model.to_dto()

    def get(self, record_type: type[R], record_id: UUID) -> R | None:
        model = self._session.get(self._model(record_type), record_id)
        return model.to_dto() if model is not None else None

    def save(self, record: R) -> R:
        model = self._session.get(self._model(type(record)), record.id)
        if model is None:
            raise RecordNotFoundError(type(record).__name__, str(record.id))
        try:
            with self._session.begin_nested():
                model.apply_dto(record)
        except IntegrityError as exc:
            raise DuplicateRecordError(type(record).__name__, {"id": record.id}) from exc
        return model.to_dto()

    def find(self, record_type: type[R], **criteria: Any) -> list[R]:
        model_cls = self._model(record_type)
        stmt = select(model_cls)
        for name, value in criteria.items():
            column = getattr(model_cls, name)
            if isinstance(value, MULTI_VALUE_TYPES):
                stmt = stmt.where(column.in_(list(value)))
            else:
                stmt = stmt.where(column == value)
        return [m.to_dto() for m in self._session.scalars(stmt).all()]

    def compare_and_set(
        self,
        record_type: type[R],
        record_id: UUID,
        expected: Collection[Any],
        changes: dict[str, Any],
        field: str = "status",
    ) -> R | None:
        model_cls = self._model(record_type)
        self._session.flush()
        stmt = (
            update(model_cls)
            .where(model_cls.id == record_id)
            .where(getattr(model_cls, field).in_(list(expected)))
            .values(**changes)
            .execution_options(synchronize_session=False)
        )
        try:
            with self._session.begin_nested():
                result = self._session.execute(stmt)
        except IntegrityError as exc:
            raise DuplicateRecordError(record_type.__name__, {"id": record_id}) from exc
        if result.rowcount != 1:
            return None
        model = self._session.get(model_cls, record_id, populate_existing=True)
        return model.to_dto()

    @contextmanager
    def atomic(self) -> Iterator[None]:
        with self._session.begin_nested():
            yield
