"""SQLAlchemy models for the BookerOS service."""

from .booking import (
    Booking,
    BookingPaymentStatus,
    BookingStatus,
    RedemptionMethod,
    SeatHold,
    TicketRedemption,
)
from .idempotency import IdempotencyRecord
from .media import Media
from .payment import Payment, PaymentMethod, PaymentStatus, RetentionConfig, Transaction
from .promotion import Coupon, DiscountType, Referral, ReferralStatus
from .tour import AvailabilityOverride, Tour
from .user import Business, User

__all__ = [
    "AvailabilityOverride",
    "Booking",
    "BookingPaymentStatus",
    "BookingStatus",
    "Business",
    "Coupon",
    "DiscountType",
    "IdempotencyRecord",
    "Media",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "RedemptionMethod",
    "Referral",
    "ReferralStatus",
    "RetentionConfig",
    "SeatHold",
    "TicketRedemption",
    "Tour",
    "Transaction",
    "User",
]
