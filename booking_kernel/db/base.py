"""
Module: booking_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.  Provides
    the UUID primary key convention, the type annotation map for consistent
    column types, the TrackedBase mixin for audit timestamps, and the DTO
    mapping mixin that lets storage move frozen domain records in and out of
    ORM rows.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel.  ALL model files import from here.  This module MUST NOT import
    from models/, services/, storage/, or outer layers.

Invariants enforced:
    - UUID primary keys: every model inherits a uuid4-generated primary key.
    - Money precision: Decimal maps to Numeric(38, 9).  NEVER float.
    - Timestamps are always timezone-aware UTC on the way out, including on
      backends (SQLite) that drop tzinfo on the way in.

Failure modes:
    - IntegrityError on duplicate primary or unique keys (translated to
      DuplicateRecordError by the SQLAlchemy storage).
"""

from dataclasses import fields
from datetime import date, datetime, time, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import JSON, Date, DateTime, Numeric, String, Time, func
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """
    UUID type stored as String(36) for cross-database portability.

    Guarantees:
        - process_bind_param: UUID -> str on INSERT/UPDATE.
        - process_result_value: str -> UUID on SELECT.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware DateTime that always loads as UTC.

    SQLite stores DateTime(timezone=True) without an offset, so a value
    written as aware comes back naive.  Binding normalizes to UTC and loading
    re-attaches UTC, so comparisons against Clock.now() are always valid.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - id is always a uuid4-generated UUID stored as String(36).
        - Decimal maps to Numeric(38, 9).
        - datetime maps to UTCDateTime.
        - dict / list map to JSON.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: UTCDateTime(),
        date: Date(),
        time: Time(),
        PyUUID: UUIDString(),
        dict: JSON(),
        list: JSON(),
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base with audit timestamps.

    Guarantees:
        - created_at is set to server NOW() on INSERT and never changes.
        - updated_at auto-updates on every UPDATE.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class DtoMappedMixin:
    """
    Round-trip between an ORM row and its frozen domain dataclass.

    Contract:
        ``__dto__`` names the dataclass.  Every dataclass field has a column
        (or attribute) of the same name on the model.  Audit columns that the
        dataclass does not declare are left to the database.
    """

    __dto__: ClassVar[type]

    def to_dto(self) -> Any:
        return self.__dto__(
            **{f.name: getattr(self, f.name) for f in fields(self.__dto__)}
        )

    @classmethod
    def from_dto(cls, dto: Any) -> "DtoMappedMixin":
        return cls(**{f.name: getattr(dto, f.name) for f in fields(dto)})

    def apply_dto(self, dto: Any) -> None:
        for f in fields(dto):
            if f.name != "id":
                setattr(self, f.name, getattr(dto, f.name))


def enum_type(enum_cls: type[Enum]) -> SAEnum:
    """Store a str Enum by value in a VARCHAR and load it back as the member."""
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=50,
        values_callable=lambda members: [m.value for m in members],
    )


UUID = PyUUID
