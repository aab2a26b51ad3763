"""Finance router: ledger summary, transactions and retention configuration."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import require_capability
from ..core.exceptions import ProblemDetailsException
from ..core.permissions import Capability
from ..models.user import User
from ..schemas.finance import (
    CalculateDistributionRequest,
    Distribution,
    FinancialSummary,
    RetentionConfig,
    Transaction,
    UpdateRetentionConfigRequest,
)
from ..services.access import scoped_business_id
from ..services.finance_service import RATE_FIELDS, FinanceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["finance"])

VIEW_FINANCIALS_DEPENDENCY = Depends(require_capability(Capability.VIEW_FINANCIALS))
CONFIGURE_RETENTIONS_DEPENDENCY = Depends(require_capability(Capability.CONFIGURE_RETENTIONS))


@router.get("/financial-summary", response_model=FinancialSummary)
async def financial_summary(
    db: AsyncSession = Depends(get_db),
    user: User = VIEW_FINANCIALS_DEPENDENCY,
) -> JSONResponse:
    """Ledger totals; business accounts only see their own tours."""
    summary = await FinanceService(db).financial_summary(business_id=scoped_business_id(user))
    return JSONResponse(status_code=200, content=FinancialSummary(**summary).model_dump())


@router.get("/transactions", response_model=list[Transaction])
async def list_transactions(
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    user: User = VIEW_FINANCIALS_DEPENDENCY,
) -> JSONResponse:
    transactions = await FinanceService(db).list_transactions(business_id=scoped_business_id(user), limit=limit)
    return JSONResponse(
        status_code=200,
        content=[Transaction.model_validate(t).model_dump(mode="json") for t in transactions]
    )


@router.get("/retention-config", response_model=RetentionConfig)
async def get_retention_config(
    db: AsyncSession = Depends(get_db),
    user: User = VIEW_FINANCIALS_DEPENDENCY,
) -> JSONResponse:
    """Current rates; the defaults are returned until an administrator saves a configuration."""
    finance_service = FinanceService(db)
    config = await finance_service.get_retention_config()
    if config is not None:
        response_data = RetentionConfig.model_validate(config)
    else:
        rates = await finance_service.get_retention_rates()
        response_data = RetentionConfig(**{name: getattr(rates, name) for name in RATE_FIELDS})
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.put("/retention-config", response_model=RetentionConfig)
async def update_retention_config(
    request: UpdateRetentionConfigRequest,
    db: AsyncSession = Depends(get_db),
    user: User = CONFIGURE_RETENTIONS_DEPENDENCY,
) -> JSONResponse:
    try:
        config = await FinanceService(db).update_retention_config(request)
        logger.info("Retention configuration changed", extra={"user_id": str(user.id)})
        return JSONResponse(status_code=200, content=RetentionConfig.model_validate(config).model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error("Unexpected error updating retention config", extra={"error": str(e)}, exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/calculate-distribution", response_model=Distribution)
async def calculate_distribution(
    request: CalculateDistributionRequest,
    db: AsyncSession = Depends(get_db),
    user: User = VIEW_FINANCIALS_DEPENDENCY,
) -> JSONResponse:
    """Preview how an amount would be split with the current rates."""
    settlement, rates = await FinanceService(db).calculate_distribution(request.amount, cash=request.cash)
    response_data = Distribution(
        total_amount=settlement.gross_amount,
        platform_fee=settlement.platform_fee,
        seller_commission=settlement.seller_commission,
        tax_amount=settlement.tax_amount,
        bank_commission=settlement.bank_commission,
        other_retentions=settlement.other_retentions,
        provider_payout=settlement.provider_payout,
        breakdown={
            "platform_fee": rates.platform_fee_rate,
            "seller_commission": rates.seller_commission_rate,
            "tax": rates.tax_rate,
            "bank_commission": 0 if request.cash else rates.bank_commission_rate,
            "other_retentions": rates.other_retentions_rate,
        },
    )
    return JSONResponse(status_code=200, content=response_data.model_dump())
