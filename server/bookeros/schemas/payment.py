"""Payment-related Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class Payment(BaseModel):
    """Payment response schema."""

    id: UUID = Field(..., description="Payment ID")
    booking_id: UUID = Field(..., description="Paid booking")
    payment_intent_id: str = Field(..., description="Gateway intent ID, or synthetic for cash")
    amount: float = Field(..., description="Amount charged")
    currency: str = Field(..., description="ISO 4217 currency code (lowercase)")
    status: str = Field(..., description="succeeded, pending, failed, refunded or disputed")
    payment_method: str = Field(..., description="card or cash")
    refunded_amount: float = Field(..., description="Amount refunded")
    verified: bool = Field(..., description="Whether the gateway confirmed the payment")
    created_at: datetime

    class Config:
        from_attributes = True


class RefundResponse(BaseModel):
    """Result of refunding a payment."""

    success: bool = True
    gateway_status: str = Field(..., description="Status reported by the gateway")
    payment: Payment
    booking_status: str = Field(..., description="Booking status after the refund")


class ConnectAccountResponse(BaseModel):
    """Payout account onboarding link."""

    account_id: str = Field(..., description="Gateway connected account ID")
    onboarding_url: str = Field(..., description="Where to send the user to finish onboarding")
