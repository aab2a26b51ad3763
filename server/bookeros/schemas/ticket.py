"""Ticket validation and redemption schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.booking import RedemptionMethod


class ValidateTicketRequest(BaseModel):
    """Look up a ticket by its QR payload."""

    qr_code: str = Field(..., min_length=1, max_length=64, description="Scanned QR token")


class ValidateTicketCodeRequest(BaseModel):
    """Look up a ticket by its backup code."""

    alphanumeric_code: str = Field(..., min_length=1, max_length=32, description="XXXX-XXXX-XXXX-XXXX")


class RedeemTicketRequest(BaseModel):
    """Mark a ticket as used."""

    booking_id: UUID = Field(..., description="Booking whose ticket is redeemed")
    method: RedemptionMethod = Field(..., description="How the ticket was presented")
    notes: Optional[str] = Field(None, max_length=1000, description="Operator notes")


class TicketRedemption(BaseModel):
    """Redemption event."""

    id: UUID
    booking_id: UUID
    redeemed_by: UUID
    redemption_method: str
    notes: Optional[str] = None
    redeemed_at: datetime

    class Config:
        from_attributes = True


class ValidationHistoryEntry(TicketRedemption):
    """Redemption event with the booking and tour it belongs to."""

    customer_name: str
    alphanumeric_code: str
    tour_name: str
