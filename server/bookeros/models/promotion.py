"""Coupon and referral model definitions."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


class DiscountType(str, Enum):
    """Coupon discount type."""
    PERCENT = "percent"
    FIXED = "fixed"


class ReferralStatus(str, Enum):
    """Referral reward status."""
    PENDING = "pending"
    PAID = "paid"


class Coupon(Base):
    """Discount code, optionally scoped to one business."""

    __tablename__ = "coupons"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    code: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    discount_type: Mapped[str] = mapped_column(String(16), nullable=False)
    discount_value: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    expiration_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    usage_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    business_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=True,
        index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("discount_value >= 0", name="ck_coupon_value_non_negative"),
        CheckConstraint("usage_count >= 0", name="ck_coupon_usage_count_non_negative"),
        CheckConstraint("usage_limit IS NULL OR usage_limit >= 0", name="ck_coupon_usage_limit_non_negative"),
        CheckConstraint("discount_type IN ('percent', 'fixed')", name="ck_coupon_discount_type"),
    )

    def __repr__(self) -> str:
        return (
            f"<Coupon(code='{self.code}', type={self.discount_type}, value={self.discount_value}, "
            f"used={self.usage_count}/{self.usage_limit})>"
        )


class Referral(Base):
    """Reward owed to a user whose referral code was used on a booking."""

    __tablename__ = "referrals"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    referrer_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id"),
        nullable=False,
        index=True
    )
    booking_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("bookings.id"),
        nullable=False,
        index=True
    )
    reward_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=ReferralStatus.PENDING.value)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("reward_amount >= 0", name="ck_referral_reward_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"<Referral(id={self.id}, referrer_id={self.referrer_id}, "
            f"booking_id={self.booking_id}, reward={self.reward_amount})>"
        )
