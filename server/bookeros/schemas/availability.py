"""Availability override schemas."""

import datetime as dt
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from .booking import Booking


class CreateAvailabilityOverrideRequest(BaseModel):
    """Block or unblock a tour date, optionally with a custom capacity."""

    tour_id: UUID = Field(..., description="Tour the override applies to")
    date: dt.date = Field(..., description="Calendar date (YYYY-MM-DD)")
    is_blocked: bool = Field(True, description="Whether the date is closed for booking")
    custom_capacity: Optional[int] = Field(None, ge=0, le=1000, description="Capacity for this date only")
    reason: Optional[str] = Field(None, max_length=1000, description="Reason shown to staff")


class AvailabilityOverride(BaseModel):
    id: UUID
    tour_id: UUID
    date: dt.date
    is_blocked: bool
    custom_capacity: Optional[int] = None
    reason: Optional[str] = None
    created_at: dt.datetime

    class Config:
        from_attributes = True


class AvailabilityOverrideResult(BaseModel):
    """Saved override plus the bookings that need a reschedule proposal."""

    override: AvailabilityOverride
    affected_bookings: list[Booking] = Field(
        default_factory=list,
        description="Bookings on a blocked date that are not yet pending reschedule"
    )
