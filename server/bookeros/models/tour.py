"""Tour and availability override model definitions."""

import datetime as dt
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base

if TYPE_CHECKING:
    from .booking import Booking
    from .user import Business


class Tour(Base):
    """Tour entity representing a bookable experience."""

    __tablename__ = "tours"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Tour information
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    location: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active", index=True)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="tour")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Schedule metadata
    duration: Mapped[str | None] = mapped_column(String(64), nullable=True)
    departure_time: Mapped[str | None] = mapped_column(String(32), nullable=True)
    requirements: Mapped[str | None] = mapped_column(Text, nullable=True)
    includes: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    gallery: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)

    # Ownership
    business_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("businesses.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    seller_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    provider_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        server_default=func.now()
    )

    # Constraints
    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_tour_price_non_negative"),
        CheckConstraint("capacity > 0", name="ck_tour_capacity_positive"),
    )

    # Relationships
    business: Mapped["Business | None"] = relationship("Business", back_populates="tours")
    bookings: Mapped[list["Booking"]] = relationship("Booking", back_populates="tour")
    availability_overrides: Mapped[list["AvailabilityOverride"]] = relationship(
        "AvailabilityOverride",
        back_populates="tour",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Tour(id={self.id}, name='{self.name}', capacity={self.capacity})>"


class AvailabilityOverride(Base):
    """Per-date block or custom capacity for a tour."""

    __tablename__ = "availability_overrides"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    tour_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tours.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    is_blocked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    custom_capacity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_by: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("tour_id", "date", name="uq_availability_override_tour_date"),
        CheckConstraint(
            "custom_capacity IS NULL OR custom_capacity >= 0",
            name="ck_availability_override_capacity_non_negative"
        ),
    )

    tour: Mapped["Tour"] = relationship("Tour", back_populates="availability_overrides")

    def __repr__(self) -> str:
        return (
            f"<AvailabilityOverride(id={self.id}, tour_id={self.tour_id}, "
            f"date={self.date}, is_blocked={self.is_blocked})>"
        )
