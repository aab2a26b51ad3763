"""Payment administration and payout onboarding router."""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import get_payment_gateway, require_capability
from ..core.exceptions import ProblemDetailsException
from ..core.permissions import Capability
from ..models.user import User
from ..schemas.payment import ConnectAccountResponse, Payment, RefundResponse
from ..services.payment_gateway import PaymentGateway
from ..services.payment_service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["payments"])

GATEWAY_DEPENDENCY = Depends(get_payment_gateway)


@router.get("/admin/payments", response_model=list[Payment])
async def list_payments(
    status: Optional[str] = Query(None, description="Filter by payment status"),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = GATEWAY_DEPENDENCY,
    user: User = Depends(require_capability(Capability.VIEW_PAYMENTS)),
) -> JSONResponse:
    payments = await PaymentService(db, gateway).list_payments(status=status, limit=limit)
    return JSONResponse(
        status_code=200,
        content=[Payment.model_validate(p).model_dump(mode="json") for p in payments]
    )


@router.post("/admin/payments/{payment_id}/refund", response_model=RefundResponse)
async def refund_payment(
    payment_id: UUID,
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = GATEWAY_DEPENDENCY,
    user: User = Depends(require_capability(Capability.REFUND_PAYMENTS)),
) -> JSONResponse:
    """
    Refund a payment in full and cancel its booking.

    If the gateway reports anything other than succeeded or pending, the
    payment and booking are left as they were and an error is returned.
    """
    try:
        payment, booking, gateway_status = await PaymentService(db, gateway).refund_payment(payment_id, user)
        response_data = RefundResponse(
            gateway_status=gateway_status,
            payment=Payment.model_validate(payment),
            booking_status=booking.status,
        )
        return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error processing refund",
            extra={"payment_id": str(payment_id), "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/payments/connect", response_model=ConnectAccountResponse)
async def connect_account(
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = GATEWAY_DEPENDENCY,
    user: User = Depends(require_capability(Capability.CONNECT_PAYOUTS)),
) -> JSONResponse:
    """Create a payout account for the current user and return the onboarding link."""
    try:
        account = await PaymentService(db, gateway).connect_account(user)
        response_data = ConnectAccountResponse(account_id=account.id, onboarding_url=account.onboarding_url)
        return JSONResponse(status_code=200, content=response_data.model_dump())

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error creating connected account",
            extra={"user_id": str(user.id), "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e
