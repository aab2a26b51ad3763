"""Promotion service: coupon management and the referral program."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.exceptions import ConflictError, ProblemDetailsException
from ..core.permissions import Role
from ..models.promotion import Coupon, Referral, ReferralStatus
from ..models.tour import Tour
from ..models.user import User
from ..schemas.promotion import CreateCouponRequest
from .codes import generate_referral_code
from .discount_service import apply_coupon_discount, is_coupon_usable
from .settlement import to_money

logger = logging.getLogger(__name__)

REFERRAL_CODE_ATTEMPTS = 5


class CouponNotFoundError(ProblemDetailsException):
    """Exception when a coupon code is unknown or cannot be used."""

    def __init__(self, code: str, reason: str = "Coupon not found"):
        super().__init__(
            status_code=404,
            title="Coupon Not Found",
            detail=f"{reason}: {code}",
            type_uri="https://bookeros.com/problems/coupon-not-found",
            extensions={"code": "COUPON_NOT_FOUND", "retryable": False, "coupon_code": code},
        )


class PromotionService:
    """Service for coupons and referral codes."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_coupon(self, request: CreateCouponRequest, user: User) -> Coupon:
        """
        Create a coupon. Codes are stored upper-case and are unique.

        Raises:
            ConflictError: If a coupon with that code already exists
        """
        business_id = request.business_id
        if user.role != Role.MASTER_ADMIN.value:
            business_id = user.business_id

        coupon = Coupon(
            code=request.code.strip().upper(),
            discount_type=request.discount_type.value,
            discount_value=request.discount_value,
            expiration_date=request.expiration_date,
            usage_limit=request.usage_limit,
            is_active=request.is_active,
            business_id=business_id,
        )
        self.db.add(coupon)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(
                "Coupon already exists",
                extra={"coupon_code": coupon.code, "error": str(e)}
            )
            raise ConflictError(
                detail=f"Coupon {request.code.strip().upper()} already exists",
                conflicting_resource=request.code.strip().upper(),
            )

        await self.db.refresh(coupon)
        logger.info(
            "Coupon created",
            extra={
                "coupon_code": coupon.code,
                "discount_type": coupon.discount_type,
                "discount_value": str(coupon.discount_value),
                "business_id": str(business_id) if business_id else None,
            }
        )
        return coupon

    async def list_coupons(self, business_id: Optional[UUID] = None) -> list[Coupon]:
        stmt = select(Coupon).order_by(Coupon.created_at.desc())
        if business_id is not None:
            stmt = stmt.where(Coupon.business_id == business_id)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def validate_coupon(
        self,
        code: str,
        amount: Optional[Decimal] = None,
        tour_id: Optional[UUID] = None,
        now: Optional[datetime] = None,
    ) -> tuple[Coupon, Optional[Decimal]]:
        """
        Check that a coupon can be applied, without consuming a use.

        Returns:
            Tuple of (coupon, discounted amount or None when no amount was given)

        Raises:
            CouponNotFoundError: If the code is unknown, inactive, expired,
                used up, or restricted to another business
        """
        stmt = select(Coupon).where(func.upper(Coupon.code) == code.strip().upper())
        coupon = (await self.db.execute(stmt)).scalar_one_or_none()
        if coupon is None:
            raise CouponNotFoundError(code)

        if not is_coupon_usable(coupon, now):
            logger.info("Coupon not usable", extra={"coupon_code": coupon.code})
            raise CouponNotFoundError(code, reason="Coupon is inactive, expired or used up")

        if coupon.business_id is not None and tour_id is not None:
            tour = await self.db.get(Tour, tour_id)
            if tour is None or tour.business_id != coupon.business_id:
                raise CouponNotFoundError(code, reason="Coupon does not apply to this tour")

        final_amount = None
        if amount is not None:
            final_amount = apply_coupon_discount(amount, coupon.discount_type, coupon.discount_value)
        return coupon, final_amount

    @staticmethod
    def share_url(referral_code: str) -> str:
        return f"{settings.public_base_url}/?ref={referral_code}"

    async def generate_referral_code(self, user: User) -> str:
        """
        Return the user's referral code, creating one on first use.

        Raises:
            ConflictError: If no free code could be found
        """
        if user.referral_code:
            return user.referral_code

        user_id = user.id
        for attempt in range(1, REFERRAL_CODE_ATTEMPTS + 1):
            user.referral_code = generate_referral_code(user.username)
            try:
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                user = await self.db.get(User, user_id)
                logger.warning(
                    "Referral code collision",
                    extra={"user_id": str(user_id), "attempt": attempt}
                )
                continue

            logger.info(
                "Referral code generated",
                extra={"user_id": str(user_id), "referral_code": user.referral_code}
            )
            return user.referral_code

        raise ConflictError(detail="Could not allocate a referral code, please retry")

    async def referral_stats(self, user: User) -> dict[str, Any]:
        stmt = (
            select(
                func.count(Referral.id),
                func.coalesce(
                    func.sum(case((Referral.status == ReferralStatus.PENDING.value, Referral.reward_amount), else_=0)), 0
                ),
                func.coalesce(
                    func.sum(case((Referral.status == ReferralStatus.PAID.value, Referral.reward_amount), else_=0)), 0
                ),
            )
            .where(Referral.referrer_id == user.id)
        )
        total, pending, paid = (await self.db.execute(stmt)).one()
        return {
            "referral_code": user.referral_code,
            "total_referrals": total,
            "pending_rewards": to_money(pending),
            "paid_rewards": to_money(paid),
        }
