"""Tour-related Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class CreateTourRequest(BaseModel):
    """Request schema for creating a tour."""

    name: str = Field(..., min_length=1, max_length=255, description="Tour name")
    location: str = Field(..., min_length=1, max_length=255, description="Meeting point or area")
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2, description="Price per person")
    capacity: int = Field(10, gt=0, le=1000, description="Seats per date")
    category: str = Field("tour", max_length=50, description="Category")
    description: Optional[str] = Field(None, max_length=5000, description="Tour description")
    image_url: Optional[str] = Field(None, description="Cover image URL")
    duration: Optional[str] = Field(None, max_length=64, description="Human-readable duration")
    departure_time: Optional[str] = Field(None, max_length=32, description="Departure time of day")
    requirements: Optional[str] = Field(None, max_length=2000, description="What to bring")
    includes: Optional[list[str]] = Field(None, description="Included items")
    gallery: Optional[list[str]] = Field(None, description="Gallery image URLs")
    business_id: Optional[UUID] = Field(None, description="Owning business (admins only)")
    seller_id: Optional[UUID] = Field(None, description="Seller account")
    provider_id: Optional[UUID] = Field(None, description="Provider account")


class UpdateTourRequest(BaseModel):
    """Partial update of a tour; omitted fields keep their value."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    location: Optional[str] = Field(None, min_length=1, max_length=255)
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    capacity: Optional[int] = Field(None, gt=0, le=1000)
    status: Optional[str] = Field(None, pattern=r"^(active|inactive)$")
    category: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = Field(None, max_length=5000)
    image_url: Optional[str] = None
    duration: Optional[str] = Field(None, max_length=64)
    departure_time: Optional[str] = Field(None, max_length=32)
    requirements: Optional[str] = Field(None, max_length=2000)
    includes: Optional[list[str]] = None
    gallery: Optional[list[str]] = None
    seller_id: Optional[UUID] = None
    provider_id: Optional[UUID] = None


class Tour(BaseModel):
    """Tour response schema."""

    id: UUID = Field(..., description="Unique tour ID")
    name: str = Field(..., description="Tour name")
    location: str = Field(..., description="Location")
    price: float = Field(..., description="Price per person")
    capacity: int = Field(..., description="Seats per date")
    status: str = Field(..., description="active or inactive")
    category: str = Field(..., description="Category")
    description: Optional[str] = None
    image_url: Optional[str] = None
    duration: Optional[str] = None
    departure_time: Optional[str] = None
    requirements: Optional[str] = None
    includes: Optional[list[str]] = None
    gallery: Optional[list[str]] = None
    business_id: Optional[UUID] = None
    seller_id: Optional[UUID] = None
    provider_id: Optional[UUID] = None
    created_at: datetime = Field(..., description="Creation time (ISO 8601)")

    class Config:
        from_attributes = True


class TourSummary(BaseModel):
    """Tour details embedded in booking and ticket responses."""

    name: str
    location: str
    duration: Optional[str] = None
    departure_time: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    includes: Optional[list[str]] = None
    requirements: Optional[str] = None

    class Config:
        from_attributes = True
