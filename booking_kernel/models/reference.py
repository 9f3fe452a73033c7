"""
Module: booking_kernel.models.reference
Responsibility: ORM persistence for the reference data the core reads but
    does not own: musicians, their pay-rate tables, and venues.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/types.py only.

Failure modes:
    - IntegrityError on a second pay rate for the same (musician, category).
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from booking_kernel.db.base import DtoMappedMixin, TrackedBase, UUIDString
from booking_kernel.domain.types import Musician, PayRate, Venue


class MusicianModel(DtoMappedMixin, TrackedBase):
    __tablename__ = "musicians"
    __dto__ = Musician

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str | None] = mapped_column(String(254), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class PayRateModel(DtoMappedMixin, TrackedBase):
    """Hourly / day / event rates for one (musician, event category)."""

    __tablename__ = "musician_pay_rates"
    __dto__ = PayRate

    __table_args__ = (
        UniqueConstraint("musician_id", "event_category_id", name="uq_pay_rate_musician_category"),
        Index("ix_pay_rates_musician", "musician_id"),
    )

    musician_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    event_category_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    hourly_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    day_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    event_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)


class VenueModel(DtoMappedMixin, TrackedBase):
    __tablename__ = "venues"
    __dto__ = Venue

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
