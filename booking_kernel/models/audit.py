"""
Module: booking_kernel.models.audit
Responsibility: ORM persistence for the append-only activity log, the
    centralized entity status records, and saga dead letters.
Architecture position: Kernel > Models.

Invariants enforced:
    - Activity rows are insert-only; nothing in the kernel updates them.
    - One entity status row per (entity_type, entity_id, event_date).
    - Status records and dead letters carry their own timestamps and use
      the plain Base rather than TrackedBase.
"""

import datetime as dt
from uuid import UUID

from sqlalchemy import JSON, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from booking_kernel.db.base import Base, DtoMappedMixin, TrackedBase, UUIDString, enum_type
from booking_kernel.domain.types import (
    Activity,
    EntityStatusRecord,
    EntityType,
    SagaDeadLetter,
)


class ActivityModel(DtoMappedMixin, TrackedBase):
    __tablename__ = "activities"
    __dto__ = Activity

    __table_args__ = (
        Index("ix_activities_entity", "entity_type", "entity_id"),
    )

    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    detail: Mapped[str] = mapped_column(Text, nullable=False)
    occurred_at: Mapped[dt.datetime] = mapped_column(nullable=False)
    actor_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    context: Mapped[dict] = mapped_column(JSON, nullable=False)


class EntityStatusModel(DtoMappedMixin, Base):
    __tablename__ = "entity_statuses"
    __dto__ = EntityStatusRecord

    __table_args__ = (
        UniqueConstraint(
            "entity_type", "entity_id", "event_date", name="uq_entity_status_key",
        ),
    )

    entity_type: Mapped[EntityType] = mapped_column(enum_type(EntityType), nullable=False)
    entity_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    primary_status: Mapped[str] = mapped_column(String(50), nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(nullable=False)
    custom_status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    event_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    musician_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    event_date: Mapped[dt.date | None] = mapped_column(nullable=True)
    details: Mapped[dict] = mapped_column(JSON, nullable=False)


class SagaDeadLetterModel(DtoMappedMixin, Base):
    __tablename__ = "saga_dead_letters"
    __dto__ = SagaDeadLetter

    __table_args__ = (Index("ix_dead_letters_open", "resolved_at"),)

    saga_name: Mapped[str] = mapped_column(String(100), nullable=False)
    step_name: Mapped[str] = mapped_column(String(100), nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False)
    last_error: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(nullable=False)
    resolved_at: Mapped[dt.datetime | None] = mapped_column(nullable=True)
