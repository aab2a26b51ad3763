"""Payment, settlement transaction and retention configuration models."""

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
    from .booking import Booking


class PaymentStatus(str, Enum):
    """Payment status enumeration."""
    SUCCEEDED = "succeeded"
    PENDING = "pending"
    FAILED = "failed"
    REFUNDED = "refunded"
    DISPUTED = "disputed"


class PaymentMethod(str, Enum):
    """How the customer paid."""
    CARD = "card"
    CASH = "cash"


class Payment(Base):
    """Payment received for a booking, online or in cash."""

    __tablename__ = "payments"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    booking_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("bookings.id"),
        nullable=False,
        index=True
    )

    # Gateway references
    payment_intent_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    gateway_customer_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Amounts
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="mxn")
    refunded_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))

    # State
    status: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    payment_method: Mapped[str] = mapped_column(String(16), nullable=False, default=PaymentMethod.CARD.value)
    mode: Mapped[str] = mapped_column(String(16), nullable=False, default="sandbox")
    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    metadata_json: Mapped[str | None] = mapped_column("metadata", Text, nullable=True)

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

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_payment_amount_non_negative"),
        CheckConstraint("refunded_amount >= 0", name="ck_payment_refunded_non_negative"),
    )

    booking: Mapped["Booking"] = relationship("Booking", back_populates="payments")

    def __repr__(self) -> str:
        return (
            f"<Payment(id={self.id}, booking_id={self.booking_id}, "
            f"amount={self.amount}, status={self.status})>"
        )


class Transaction(Base):
    """Append-only settlement ledger entry for one paid booking."""

    __tablename__ = "transactions"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    tour_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("tours.id"),
        nullable=True,
        index=True
    )
    booking_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("bookings.id"),
        nullable=True,
        index=True
    )
    payment_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("payments.id"),
        nullable=True
    )
    tour_name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="completed")

    # Breakdown
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    platform_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    seller_commission: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    bank_commission: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    other_retentions: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    provider_payout: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        server_default=func.now(),
        index=True
    )

    def __repr__(self) -> str:
        return (
            f"<Transaction(id={self.id}, booking_id={self.booking_id}, "
            f"amount={self.amount}, payout={self.provider_payout})>"
        )


class RetentionConfig(Base):
    """Singleton row with the percentage rates used by settlement."""

    __tablename__ = "retention_config"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    platform_fee_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("5.00"))
    seller_commission_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("10.00"))
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("16.00"))
    bank_commission_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("3.00"))
    other_retentions_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("2.00"))

    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("platform_fee_rate >= 0 AND platform_fee_rate <= 100", name="ck_retention_platform_fee_range"),
        CheckConstraint("seller_commission_rate >= 0 AND seller_commission_rate <= 100", name="ck_retention_seller_range"),
        CheckConstraint("tax_rate >= 0 AND tax_rate <= 100", name="ck_retention_tax_range"),
        CheckConstraint("bank_commission_rate >= 0 AND bank_commission_rate <= 100", name="ck_retention_bank_range"),
        CheckConstraint("other_retentions_rate >= 0 AND other_retentions_rate <= 100", name="ck_retention_other_range"),
    )

    def __repr__(self) -> str:
        return (
            f"<RetentionConfig(platform={self.platform_fee_rate}, seller={self.seller_commission_rate}, "
            f"tax={self.tax_rate}, bank={self.bank_commission_rate}, other={self.other_retentions_rate})>"
        )
