"""
Module: booking_kernel.models.booking
Responsibility: ORM persistence for invitations and the bookings that
    materialize accepted invitations into commitments for a specific date.
Architecture position: Kernel > Models.

Invariants enforced:
    - One invitation per (event, musician, date) (uq_invitation_event_musician_date).
"""

import datetime as dt
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Index, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from booking_kernel.db.base import DtoMappedMixin, TrackedBase, UUIDString, enum_type
from booking_kernel.domain.types import (
    Booking,
    BookingStatus,
    Invitation,
    InvitationStatus,
    PaymentStatus,
)


class InvitationModel(DtoMappedMixin, TrackedBase):
    __tablename__ = "invitations"
    __dto__ = Invitation

    __table_args__ = (
        UniqueConstraint(
            "event_id", "musician_id", "event_date",
            name="uq_invitation_event_musician_date",
        ),
    )

    event_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    musician_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    event_date: Mapped[dt.date] = mapped_column(nullable=False)
    status: Mapped[InvitationStatus] = mapped_column(
        enum_type(InvitationStatus), nullable=False,
    )
    invited_at: Mapped[dt.datetime | None] = mapped_column(nullable=True)
    responded_at: Mapped[dt.datetime | None] = mapped_column(nullable=True)
    response_message: Mapped[str | None] = mapped_column(Text, nullable=True)


class BookingModel(DtoMappedMixin, TrackedBase):
    __tablename__ = "bookings"
    __dto__ = Booking

    __table_args__ = (
        Index("ix_bookings_musician_date", "musician_id", "event_date"),
    )

    event_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    musician_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    event_date: Mapped[dt.date] = mapped_column(nullable=False)
    invitation_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    status: Mapped[BookingStatus] = mapped_column(enum_type(BookingStatus), nullable=False)
    is_accepted: Mapped[bool] = mapped_column(Boolean, nullable=False)
    contract_sent: Mapped[bool] = mapped_column(Boolean, nullable=False)
    contract_sent_at: Mapped[dt.datetime | None] = mapped_column(nullable=True)
    contract_signed: Mapped[bool] = mapped_column(Boolean, nullable=False)
    contract_signed_at: Mapped[dt.datetime | None] = mapped_column(nullable=True)
    payment_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    payment_status: Mapped[PaymentStatus] = mapped_column(
        enum_type(PaymentStatus), nullable=False,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
