"""Booking-related Pydantic schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from .finance import Transaction
from .payment import Payment
from .tour import TourSummary


class CreateBookingRequest(BaseModel):
    """Request schema for creating a booking."""

    tour_id: UUID = Field(..., description="Tour to book")
    booking_date: datetime = Field(..., description="Date and time of the tour (ISO 8601)")
    adults: int = Field(1, ge=0, le=100, description="Number of adults")
    children: int = Field(0, ge=0, le=100, description="Number of children")
    customer_name: str = Field(..., min_length=1, max_length=255, description="Lead customer name")
    customer_email: Optional[str] = Field(
        None,
        max_length=255,
        pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$",
        description="Customer e-mail address"
    )
    customer_phone: Optional[str] = Field(None, max_length=64, description="Customer phone")
    special_requests: Optional[str] = Field(None, max_length=2000, description="Special requests")
    health_conditions: Optional[str] = Field(None, max_length=2000, description="Health conditions to consider")
    coupon_code: Optional[str] = Field(None, max_length=64, description="Coupon code")
    referral_code: Optional[str] = Field(None, max_length=32, description="Referral code")
    hold_session_id: Optional[str] = Field(
        None, max_length=128, description="Checkout session whose seat hold this booking replaces"
    )

    @model_validator(mode="after")
    def check_party_size(self) -> "CreateBookingRequest":
        if self.adults + self.children <= 0:
            raise ValueError("A booking needs at least one adult or child")
        return self


class Booking(BaseModel):
    """Booking response schema."""

    id: UUID = Field(..., description="Unique booking ID")
    tour_id: UUID = Field(..., description="Booked tour")
    customer_id: Optional[UUID] = None
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    special_requests: Optional[str] = None
    health_conditions: Optional[str] = None
    booking_date: datetime = Field(..., description="Tour date (ISO 8601)")
    adults: int
    children: int
    subtotal_amount: float = Field(..., description="Amount before discount")
    total_amount: float = Field(..., description="Amount after discount")
    discount_source: str = Field(..., description="coupon, referral or none")
    coupon_code: Optional[str] = None
    status: str = Field(..., description="Booking status")
    payment_status: str = Field(..., description="unpaid, paid or refunded")
    payment_method: Optional[str] = None
    reserved_until: Optional[datetime] = None
    qr_code: str = Field(..., description="QR payload token")
    alphanumeric_code: str = Field(..., description="Backup code XXXX-XXXX-XXXX-XXXX")
    checked_in: bool
    checked_in_at: Optional[datetime] = None
    redeemed_at: Optional[datetime] = None
    redeemed_by: Optional[UUID] = None
    proposed_date: Optional[datetime] = None
    reschedule_reason: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class BookingWithTour(Booking):
    """Booking with an embedded tour summary."""

    tour: Optional[TourSummary] = None

    @classmethod
    def from_booking(cls, booking, tour) -> "BookingWithTour":
        """Combine a booking row and its tour without touching lazy relationships."""
        return cls(
            **Booking.model_validate(booking).model_dump(),
            tour=TourSummary.model_validate(tour) if tour is not None else None,
        )


class CreateSeatHoldRequest(BaseModel):
    """Request schema for holding seats during checkout."""

    tour_id: UUID = Field(..., description="Tour to hold seats on")
    booking_date: datetime = Field(..., description="Tour date")
    seats_held: int = Field(..., ge=1, le=100, description="Number of seats")
    session_id: str = Field(..., min_length=1, max_length=128, description="Client checkout session")


class SeatHold(BaseModel):
    """Seat hold response schema."""

    id: UUID
    tour_id: UUID
    booking_date: datetime
    seats_held: int
    session_id: str
    expires_at: datetime = Field(..., description="Hold expiry (ISO 8601)")

    class Config:
        from_attributes = True


class CheckoutResponse(BaseModel):
    """Hosted checkout session created for a booking."""

    session_id: str = Field(..., description="Gateway session ID")
    url: str = Field(..., description="URL to redirect the customer to")
    mode: str = Field(..., description="sandbox or production")


class VerifyPaymentRequest(BaseModel):
    """Request schema for verifying a checkout session."""

    session_id: str = Field(..., min_length=1, max_length=255, description="Gateway session ID")


class PaymentConfirmation(BaseModel):
    """Result of settling a booking's payment."""

    success: bool = True
    booking: Booking
    payment: Payment
    transaction: Transaction


class CheckInResponse(BaseModel):
    """Check-in result; repeated check-ins return the original timestamp."""

    success: bool = True
    already_checked_in: bool = Field(..., description="True if the booking was already checked in")
    checked_in_at: datetime = Field(..., description="Original check-in time")
    booking: Booking


class ProposeRescheduleRequest(BaseModel):
    """Request schema for proposing a new date to the customer."""

    proposed_date: datetime = Field(..., description="Suggested new tour date")
    reason: str = Field(..., min_length=1, max_length=2000, description="Why the booking must move")


class ProposeRescheduleResponse(BaseModel):
    booking: Booking
    resolution_token: str = Field(..., description="One-time token for the customer link")
    resolution_url: str = Field(..., description="Public link the customer uses to respond")


class RescheduleDetails(BaseModel):
    """Public view of a pending reschedule proposal."""

    booking_id: UUID
    tour_name: str
    customer_name: str
    booking_date: datetime
    proposed_date: Optional[datetime] = None
    reason: Optional[str] = None


class ResolveRescheduleRequest(BaseModel):
    """Customer response: accept the proposed date or pick another one."""

    accept_proposed: bool = Field(True, description="Accept the operator's proposed date")
    new_date: Optional[datetime] = Field(None, description="Alternative date when not accepting")

    @model_validator(mode="after")
    def check_new_date(self) -> "ResolveRescheduleRequest":
        if not self.accept_proposed and self.new_date is None:
            raise ValueError("new_date is required when the proposed date is not accepted")
        return self
