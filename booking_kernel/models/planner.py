"""
Module: booking_kernel.models.planner
Responsibility: ORM persistence for monthly planners, their slots, and the
    musician assignments that feed contract generation and invoicing.
Architecture position: Kernel > Models.

Invariants enforced:
    - An assignment's contract_status mirrors the contract slice it was
      generated into (maintained by services, not the ORM).
"""

import datetime as dt
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from booking_kernel.db.base import DtoMappedMixin, TrackedBase, UUIDString, enum_type
from booking_kernel.domain.types import (
    AssignmentContractStatus,
    AssignmentStatus,
    MonthlyPlanner,
    PlannerAssignment,
    PlannerSlot,
)


class MonthlyPlannerModel(DtoMappedMixin, TrackedBase):
    __tablename__ = "monthly_planners"
    __dto__ = MonthlyPlanner

    __table_args__ = (Index("ix_planners_period", "year", "month"),)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(50), default="draft", nullable=False)


class PlannerSlotModel(DtoMappedMixin, TrackedBase):
    __tablename__ = "planner_slots"
    __dto__ = PlannerSlot

    __table_args__ = (Index("ix_planner_slots_planner_date", "planner_id", "date"),)

    planner_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("monthly_planners.id"), nullable=False,
    )
    date: Mapped[dt.date] = mapped_column(nullable=False)
    venue_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    category_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    start_time: Mapped[dt.time | None] = mapped_column(nullable=True)
    end_time: Mapped[dt.time | None] = mapped_column(nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(50), default="open", nullable=False)
    fee: Mapped[Decimal | None] = mapped_column(nullable=True)


class PlannerAssignmentModel(DtoMappedMixin, TrackedBase):
    __tablename__ = "planner_assignments"
    __dto__ = PlannerAssignment

    __table_args__ = (
        Index("ix_assignments_slot", "slot_id"),
        Index("ix_assignments_musician", "musician_id"),
    )

    slot_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("planner_slots.id"), nullable=False,
    )
    musician_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    status: Mapped[AssignmentStatus] = mapped_column(
        enum_type(AssignmentStatus), nullable=False,
    )
    actual_fee: Mapped[Decimal | None] = mapped_column(nullable=True)
    agreed_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    contract_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    contract_status: Mapped[AssignmentContractStatus | None] = mapped_column(
        enum_type(AssignmentContractStatus), nullable=True,
    )
