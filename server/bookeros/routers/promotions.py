"""Coupon and referral router."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import get_current_user, require_capability
from ..core.exceptions import NotFoundError, ProblemDetailsException
from ..core.permissions import Capability
from ..models.user import User
from ..schemas.promotion import (
    Coupon,
    CreateCouponRequest,
    ReferralCode,
    ReferralStats,
    ValidateCouponRequest,
    ValidateCouponResponse,
)
from ..services.access import scoped_business_id
from ..services.promotion_service import PromotionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["promotions"])

MANAGE_COUPONS_DEPENDENCY = Depends(require_capability(Capability.MANAGE_COUPONS))


@router.post("/coupons", response_model=Coupon, status_code=201)
async def create_coupon(
    request: CreateCouponRequest,
    db: AsyncSession = Depends(get_db),
    user: User = MANAGE_COUPONS_DEPENDENCY,
) -> JSONResponse:
    """Create a coupon. Reusing an existing code returns 409."""
    try:
        coupon = await PromotionService(db).create_coupon(request, user)
        return JSONResponse(status_code=201, content=Coupon.model_validate(coupon).model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error creating coupon",
            extra={"coupon_code": request.code, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.get("/coupons", response_model=list[Coupon])
async def list_coupons(
    db: AsyncSession = Depends(get_db),
    user: User = MANAGE_COUPONS_DEPENDENCY,
) -> JSONResponse:
    coupons = await PromotionService(db).list_coupons(business_id=scoped_business_id(user))
    return JSONResponse(
        status_code=200,
        content=[Coupon.model_validate(c).model_dump(mode="json") for c in coupons]
    )


@router.post("/coupons/validate", response_model=ValidateCouponResponse)
async def validate_coupon(request: ValidateCouponRequest, db: AsyncSession = Depends(get_db)) -> JSONResponse:
    """
    Check a coupon before booking.

    Unknown or unusable codes return 404. Validation never consumes a use.
    """
    coupon, final_amount = await PromotionService(db).validate_coupon(
        request.code,
        amount=request.amount,
        tour_id=request.tour_id,
    )
    response_data = ValidateCouponResponse(
        code=coupon.code,
        discount_type=coupon.discount_type,
        discount_value=coupon.discount_value,
        final_amount=final_amount,
    )
    return JSONResponse(status_code=200, content=response_data.model_dump())


@router.post("/referrals/generate", response_model=ReferralCode)
async def generate_referral_code(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> JSONResponse:
    """Return the user's referral code, creating it on first call."""
    promotion_service = PromotionService(db)
    code = await promotion_service.generate_referral_code(user)
    response_data = ReferralCode(referral_code=code, share_url=promotion_service.share_url(code))
    return JSONResponse(status_code=200, content=response_data.model_dump())


@router.get("/referrals/my-code", response_model=ReferralCode)
async def my_referral_code(user: User = Depends(get_current_user)) -> JSONResponse:
    if not user.referral_code:
        raise NotFoundError(resource_type="referral code", detail="No referral code generated yet")
    response_data = ReferralCode(
        referral_code=user.referral_code,
        share_url=PromotionService.share_url(user.referral_code),
    )
    return JSONResponse(status_code=200, content=response_data.model_dump())


@router.get("/referrals/stats", response_model=ReferralStats)
async def referral_stats(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> JSONResponse:
    stats = await PromotionService(db).referral_stats(user)
    return JSONResponse(status_code=200, content=ReferralStats(**stats).model_dump())
