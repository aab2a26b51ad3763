"""Booking, seat hold and ticket redemption model definitions."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base

if TYPE_CHECKING:
    from .payment import Payment
    from .tour import Tour


class BookingStatus(str, Enum):
    """Booking status enumeration."""
    PENDING = "pending"
    PENDING_PAYMENT = "pending_payment"
    PENDING_RESCHEDULE = "pending_reschedule"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class BookingPaymentStatus(str, Enum):
    """Aggregate payment state kept on the booking row."""
    UNPAID = "unpaid"
    PAID = "paid"
    REFUNDED = "refunded"


class RedemptionMethod(str, Enum):
    """How a ticket was presented at the point of service."""
    QR_SCAN = "qr_scan"
    MANUAL_CODE = "manual_code"
    MANUAL_VALIDATION = "manual_validation"


# Statuses that still occupy seats on the tour date
ACTIVE_BOOKING_STATUSES = (
    BookingStatus.PENDING.value,
    BookingStatus.PENDING_PAYMENT.value,
    BookingStatus.PENDING_RESCHEDULE.value,
    BookingStatus.CONFIRMED.value,
    BookingStatus.COMPLETED.value,
)


class Booking(Base):
    """Booking entity: one party's reservation on a tour date, with its ticket codes."""

    __tablename__ = "bookings"

    # Primary key
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Foreign keys
    tour_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tours.id"),
        nullable=False,
        index=True
    )
    customer_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    # Customer contact
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    special_requests: Mapped[str | None] = mapped_column(Text, nullable=True)
    health_conditions: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Party and date
    booking_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    adults: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    children: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Amounts (total_amount is after discount)
    subtotal_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    discount_source: Mapped[str] = mapped_column(String(16), nullable=False, default="none")
    coupon_code: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Lifecycle
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=BookingStatus.PENDING.value,
        index=True
    )
    payment_status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=BookingPaymentStatus.UNPAID.value
    )
    payment_method: Mapped[str | None] = mapped_column(String(32), nullable=True)
    reserved_until: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Gateway references
    gateway_session_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    gateway_payment_intent_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Ticket codes
    qr_code: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    alphanumeric_code: Mapped[str] = mapped_column(String(19), nullable=False, unique=True, index=True)

    # Check-in and redemption
    checked_in: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    checked_in_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    redeemed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    redeemed_by: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    # Reschedule proposal
    proposed_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    reschedule_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    resolution_token: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True, index=True)
    status_before_reschedule: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # Notification bookkeeping
    reminder_sent_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    review_requested_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    cart_recovery_sent_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        server_default=func.now(),
        index=True
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
        CheckConstraint("adults >= 0", name="ck_booking_adults_non_negative"),
        CheckConstraint("children >= 0", name="ck_booking_children_non_negative"),
        CheckConstraint("adults + children > 0", name="ck_booking_party_not_empty"),
        CheckConstraint("total_amount >= 0", name="ck_booking_total_non_negative"),
        CheckConstraint("length(customer_name) > 0", name="ck_booking_customer_name_not_empty"),
    )

    # Relationships
    tour: Mapped["Tour"] = relationship("Tour", back_populates="bookings")
    payments: Mapped[list["Payment"]] = relationship("Payment", back_populates="booking")
    redemptions: Mapped[list["TicketRedemption"]] = relationship(
        "TicketRedemption",
        back_populates="booking"
    )

    @property
    def party_size(self) -> int:
        return self.adults + self.children

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, code='{self.alphanumeric_code}', tour_id={self.tour_id}, "
            f"party={self.adults}+{self.children}, status={self.status})>"
        )


class SeatHold(Base):
    """Temporary capacity reservation taken while a customer checks out."""

    __tablename__ = "seat_holds"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    tour_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tours.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    booking_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    seats_held: Mapped[int] = mapped_column(Integer, nullable=False)
    session_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("seats_held > 0", name="ck_seat_hold_seats_positive"),
        CheckConstraint("length(session_id) > 0", name="ck_seat_hold_session_not_empty"),
    )

    def __repr__(self) -> str:
        return (
            f"<SeatHold(id={self.id}, tour_id={self.tour_id}, "
            f"seats={self.seats_held}, expires_at={self.expires_at})>"
        )


class TicketRedemption(Base):
    """One row per check-in or redemption event."""

    __tablename__ = "ticket_redemptions"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    booking_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("bookings.id"),
        nullable=False,
        index=True
    )
    redeemed_by: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id"),
        nullable=False
    )
    redemption_method: Mapped[str] = mapped_column(String(32), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    redeemed_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        server_default=func.now(),
        index=True
    )

    booking: Mapped["Booking"] = relationship("Booking", back_populates="redemptions")

    def __repr__(self) -> str:
        return (
            f"<TicketRedemption(id={self.id}, booking_id={self.booking_id}, "
            f"method={self.redemption_method})>"
        )
