"""
Module: booking_kernel.models.ledger
Responsibility: ORM persistence for the availability ledger and monthly
    musician invoices.
Architecture position: Kernel > Models.

Invariants enforced:
    - One availability row per (musician, date) (uq_availability_musician_date);
      absence of a row means available.
    - One invoice per (planner, musician, month, year) (uq_invoice_period);
      regeneration upserts rather than inserts.
"""

import datetime as dt
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, Boolean, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from booking_kernel.db.base import DtoMappedMixin, TrackedBase, UUIDString, enum_type
from booking_kernel.domain.types import AvailabilityRecord, InvoiceStatus, MonthlyInvoice


class AvailabilityModel(DtoMappedMixin, TrackedBase):
    __tablename__ = "availability"
    __dto__ = AvailabilityRecord

    __table_args__ = (
        UniqueConstraint("musician_id", "date", name="uq_availability_musician_date"),
        Index("ix_availability_musician_month", "musician_id", "month"),
    )

    musician_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    date: Mapped[dt.date] = mapped_column(nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False)
    month: Mapped[str] = mapped_column(String(7), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)


class MonthlyInvoiceModel(DtoMappedMixin, TrackedBase):
    __tablename__ = "monthly_invoices"
    __dto__ = MonthlyInvoice

    __table_args__ = (
        UniqueConstraint(
            "planner_id", "musician_id", "month", "year", name="uq_invoice_period",
        ),
        Index("ix_invoices_planner", "planner_id"),
    )

    planner_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    musician_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    total_slots: Mapped[int] = mapped_column(Integer, nullable=False)
    attended_slots: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[InvoiceStatus] = mapped_column(enum_type(InvoiceStatus), nullable=False)
    generated_at: Mapped[dt.datetime | None] = mapped_column(nullable=True)
    finalized_at: Mapped[dt.datetime | None] = mapped_column(nullable=True)
    paid_at: Mapped[dt.datetime | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    assignment_details: Mapped[list] = mapped_column(JSON, nullable=False)
