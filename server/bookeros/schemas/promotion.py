"""Coupon and referral schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from ..models.promotion import DiscountType


class CreateCouponRequest(BaseModel):
    """Request schema for creating a coupon."""

    code: str = Field(..., min_length=3, max_length=64, pattern=r"^[A-Za-z0-9_-]+$", description="Coupon code")
    discount_type: DiscountType = Field(..., description="percent or fixed")
    discount_value: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2, description="Discount value")
    expiration_date: Optional[datetime] = Field(None, description="Last moment the coupon is valid")
    usage_limit: Optional[int] = Field(None, ge=0, description="Maximum number of uses")
    is_active: bool = Field(True, description="Whether the coupon can be used")
    business_id: Optional[UUID] = Field(None, description="Restrict to one business")

    @model_validator(mode="after")
    def check_percent_range(self) -> "CreateCouponRequest":
        if self.discount_type == DiscountType.PERCENT and self.discount_value > 100:
            raise ValueError("A percent discount cannot exceed 100")
        return self


class Coupon(BaseModel):
    id: UUID
    code: str
    discount_type: str
    discount_value: float
    expiration_date: Optional[datetime] = None
    usage_limit: Optional[int] = None
    usage_count: int
    is_active: bool
    business_id: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ValidateCouponRequest(BaseModel):
    """Check a coupon without consuming it."""

    code: str = Field(..., min_length=1, max_length=64)
    amount: Optional[Decimal] = Field(None, ge=0, description="Gross amount to preview the discount on")
    tour_id: Optional[UUID] = Field(None, description="Tour, for business-scoped coupons")


class ValidateCouponResponse(BaseModel):
    valid: bool = True
    code: str
    discount_type: str
    discount_value: float
    final_amount: Optional[float] = Field(None, description="Discounted amount when amount was given")


class ReferralCode(BaseModel):
    referral_code: str = Field(..., description="Code to share")
    share_url: str = Field(..., description="Link that pre-fills the code")


class ReferralStats(BaseModel):
    """Referral activity of the current user."""

    referral_code: Optional[str] = None
    total_referrals: int
    pending_rewards: float
    paid_rewards: float
