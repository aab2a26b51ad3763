"""Finance service: retention configuration, ledger queries and distribution previews."""

import logging
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import ValidationError
from ..models.payment import RetentionConfig, Transaction
from ..models.tour import Tour
from ..schemas.finance import UpdateRetentionConfigRequest
from .settlement import HUNDRED, RetentionRates, Settlement, compute_settlement, to_money

logger = logging.getLogger(__name__)

RATE_FIELDS = (
    "platform_fee_rate",
    "seller_commission_rate",
    "tax_rate",
    "bank_commission_rate",
    "other_retentions_rate",
)


class FinanceService:
    """Service for settlement configuration and reporting."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_retention_config(self) -> Optional[RetentionConfig]:
        result = await self.db.execute(select(RetentionConfig).order_by(RetentionConfig.id).limit(1))
        return result.scalar_one_or_none()

    async def get_retention_rates(self) -> RetentionRates:
        return RetentionRates.from_config(await self.get_retention_config())

    async def update_retention_config(self, request: UpdateRetentionConfigRequest) -> RetentionConfig:
        """
        Update the settlement rates, creating the row on first use.

        Raises:
            ValidationError: If the rates would add up to more than 100%
        """
        config = await self.get_retention_config()
        changes = request.model_dump(exclude_unset=True, exclude_none=True)

        current = RetentionRates.from_config(config)
        merged = {name: Decimal(str(changes.get(name, getattr(current, name)))) for name in RATE_FIELDS}
        if sum(merged.values()) > HUNDRED:
            raise ValidationError(
                detail="Retention rates cannot add up to more than 100%",
                violations=[{"path": "body", "message": f"total {sum(merged.values())}%"}],
            )

        if config is None:
            config = RetentionConfig(**merged)
            self.db.add(config)
        else:
            for name, value in merged.items():
                setattr(config, name, value)

        await self.db.commit()
        await self.db.refresh(config)

        logger.info(
            "Retention configuration updated",
            extra={name: str(value) for name, value in merged.items()}
        )
        return config

    async def financial_summary(self, business_id: Optional[UUID] = None) -> dict[str, Any]:
        """Totals across transactions, optionally limited to one business's tours."""
        stmt = select(
            func.coalesce(func.sum(Transaction.amount), 0),
            func.coalesce(func.sum(Transaction.platform_fee), 0),
            func.coalesce(func.sum(Transaction.seller_commission), 0),
            func.coalesce(
                func.sum(Transaction.tax_amount + Transaction.bank_commission + Transaction.other_retentions), 0
            ),
            func.coalesce(func.sum(Transaction.provider_payout), 0),
            func.count(Transaction.id),
        )
        if business_id is not None:
            stmt = stmt.join(Tour, Tour.id == Transaction.tour_id).where(Tour.business_id == business_id)

        revenue, platform_fee, seller_commission, retentions, payout, count = (await self.db.execute(stmt)).one()
        return {
            "total_revenue": to_money(revenue),
            "total_platform_fee": to_money(platform_fee),
            "total_seller_commission": to_money(seller_commission),
            "total_retentions": to_money(retentions),
            "total_provider_payout": to_money(payout),
            "transaction_count": count,
        }

    async def list_transactions(self, business_id: Optional[UUID] = None, limit: int = 50) -> list[Transaction]:
        stmt = select(Transaction).order_by(Transaction.created_at.desc()).limit(limit)
        if business_id is not None:
            stmt = stmt.join(Tour, Tour.id == Transaction.tour_id).where(Tour.business_id == business_id)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def calculate_distribution(self, amount: Decimal, cash: bool = False) -> tuple[Settlement, RetentionRates]:
        """Preview a settlement with the current rates; nothing is stored."""
        rates = await self.get_retention_rates()
        return compute_settlement(amount, rates, cash=cash), rates
