"""
Module: booking_kernel.models.contract
Responsibility: ORM persistence for single-event contract links, monthly
    contracts, their per-musician slices, the per-date rows inside each
    slice, and the slice status history.
Architecture position: Kernel > Models.

Invariants enforced:
    - Signing tokens are UNIQUE across contract links and across contract
      slices (uq_contract_link_token, uq_contract_musician_token).
    - One monthly contract per (planner, month, year).
    - Status columns only change through the contract services, which use a
      compare-and-set UPDATE for musician responses.

Failure modes:
    - IntegrityError on a duplicate token or duplicate monthly contract key.
"""

import datetime as dt
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from booking_kernel.db.base import DtoMappedMixin, TrackedBase, UUIDString, enum_type
from booking_kernel.domain.types import (
    ContractDate,
    ContractLink,
    ContractMusician,
    ContractStatus,
    ContractStatusHistory,
    DateStatus,
    MonthlyContract,
    MonthlyContractStatus,
)


class ContractLinkModel(DtoMappedMixin, TrackedBase):
    """Single-event contract addressed by a bearer token."""

    __tablename__ = "contract_links"
    __dto__ = ContractLink

    __table_args__ = (
        UniqueConstraint("token", name="uq_contract_link_token"),
        Index("ix_contract_links_musician_date", "musician_id", "event_date"),
    )

    token: Mapped[str] = mapped_column(String(128), nullable=False)
    musician_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    event_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    event_date: Mapped[dt.date] = mapped_column(nullable=False)
    amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    booking_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    invitation_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    status: Mapped[ContractStatus] = mapped_column(enum_type(ContractStatus), nullable=False)
    response: Mapped[str | None] = mapped_column(Text, nullable=True)
    sent_at: Mapped[dt.datetime | None] = mapped_column(nullable=True)
    expires_at: Mapped[dt.datetime | None] = mapped_column(nullable=True)
    responded_at: Mapped[dt.datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[dt.datetime | None] = mapped_column(nullable=True)
    company_signature: Mapped[str | None] = mapped_column(String(200), nullable=True)
    musician_signature: Mapped[str | None] = mapped_column(String(200), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)


class MonthlyContractModel(DtoMappedMixin, TrackedBase):
    __tablename__ = "monthly_contracts"
    __dto__ = MonthlyContract

    __table_args__ = (
        UniqueConstraint("planner_id", "month", "year", name="uq_monthly_contract_period"),
    )

    planner_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[MonthlyContractStatus] = mapped_column(
        enum_type(MonthlyContractStatus), nullable=False,
    )
    terms_and_conditions: Mapped[str | None] = mapped_column(Text, nullable=True)


class ContractMusicianModel(DtoMappedMixin, TrackedBase):
    """One musician's slice of a monthly contract."""

    __tablename__ = "monthly_contract_musicians"
    __dto__ = ContractMusician

    __table_args__ = (
        UniqueConstraint("token", name="uq_contract_musician_token"),
        Index("ix_contract_musicians_contract", "contract_id"),
        Index("ix_contract_musicians_musician", "musician_id"),
    )

    contract_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("monthly_contracts.id"), nullable=False,
    )
    musician_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    token: Mapped[str] = mapped_column(String(128), nullable=False)
    status: Mapped[ContractStatus] = mapped_column(enum_type(ContractStatus), nullable=False)
    total_fee: Mapped[Decimal] = mapped_column(nullable=False)
    sent_at: Mapped[dt.datetime | None] = mapped_column(nullable=True)
    responded_at: Mapped[dt.datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[dt.datetime | None] = mapped_column(nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    signature: Mapped[str | None] = mapped_column(String(200), nullable=True)
    response_comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    accepted_dates: Mapped[int] = mapped_column(Integer, nullable=False)
    rejected_dates: Mapped[int] = mapped_column(Integer, nullable=False)
    pending_dates: Mapped[int] = mapped_column(Integer, nullable=False)
    total_dates: Mapped[int] = mapped_column(Integer, nullable=False)


class ContractDateModel(DtoMappedMixin, TrackedBase):
    """Per-date row with a frozen venue/time/fee snapshot."""

    __tablename__ = "monthly_contract_dates"
    __dto__ = ContractDate

    __table_args__ = (
        Index("ix_contract_dates_slice", "contract_musician_id"),
        Index("ix_contract_dates_date", "date"),
    )

    contract_musician_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("monthly_contract_musicians.id"), nullable=False,
    )
    date: Mapped[dt.date] = mapped_column(nullable=False)
    fee: Mapped[Decimal] = mapped_column(nullable=False)
    assignment_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    venue_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    venue_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    start_time: Mapped[dt.time | None] = mapped_column(nullable=True)
    end_time: Mapped[dt.time | None] = mapped_column(nullable=True)
    status: Mapped[DateStatus] = mapped_column(enum_type(DateStatus), nullable=False)
    responded_at: Mapped[dt.datetime | None] = mapped_column(nullable=True)
    response_notes: Mapped[str | None] = mapped_column(Text, nullable=True)


class ContractStatusHistoryModel(DtoMappedMixin, TrackedBase):
    __tablename__ = "monthly_contract_status_history"
    __dto__ = ContractStatusHistory

    __table_args__ = (Index("ix_contract_history_slice", "contract_musician_id"),)

    contract_musician_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    previous_status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    new_status: Mapped[str] = mapped_column(String(50), nullable=False)
    changed_at: Mapped[dt.datetime] = mapped_column(nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
