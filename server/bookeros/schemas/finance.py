"""Settlement, retention and financial reporting schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class Transaction(BaseModel):
    """Settlement ledger entry."""

    id: UUID
    booking_id: Optional[UUID] = None
    tour_id: Optional[UUID] = None
    tour_name: str
    amount: float = Field(..., description="Gross amount")
    platform_fee: float
    seller_commission: float
    tax_amount: float
    bank_commission: float
    other_retentions: float
    provider_payout: float
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class FinancialSummary(BaseModel):
    """Totals across the settlement ledger."""

    total_revenue: float = Field(..., description="Sum of gross amounts")
    total_platform_fee: float
    total_seller_commission: float
    total_retentions: float = Field(..., description="Tax, bank commission and other retentions")
    total_provider_payout: float
    transaction_count: int


class RetentionConfig(BaseModel):
    """Current settlement rates (percentages)."""

    platform_fee_rate: float
    seller_commission_rate: float
    tax_rate: float
    bank_commission_rate: float
    other_retentions_rate: float
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UpdateRetentionConfigRequest(BaseModel):
    """Partial update of the settlement rates."""

    platform_fee_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    seller_commission_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    bank_commission_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    other_retentions_rate: Optional[Decimal] = Field(None, ge=0, le=100)


class CalculateDistributionRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, description="Gross amount to split")
    cash: bool = Field(False, description="Preview a cash settlement (no bank commission)")


class Distribution(BaseModel):
    """Preview of how a gross amount would be split."""

    total_amount: float
    platform_fee: float
    seller_commission: float
    tax_amount: float
    bank_commission: float
    other_retentions: float
    provider_payout: float
    breakdown: dict[str, float] = Field(..., description="Rate applied to each portion, in percent")
