"""Discount resolver for coupon and referral codes."""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..models.promotion import Coupon, DiscountType
from ..models.user import User
from .settlement import HUNDRED, to_money

logger = logging.getLogger(__name__)

APPLIED_VIA_COUPON = "coupon"
APPLIED_VIA_REFERRAL = "referral"
APPLIED_VIA_NONE = "none"


@dataclass(frozen=True)
class DiscountResult:
    final_amount: Decimal
    applied_via: str = APPLIED_VIA_NONE
    coupon_code: str | None = None
    referrer_id: UUID | None = None
    referral_reward: Decimal | None = None


def apply_coupon_discount(gross_amount: Any, discount_type: str, discount_value: Any) -> Decimal:
    """
    Apply a coupon to a gross amount.

    ``percent`` keeps ``(1 - value/100)`` of the gross; ``fixed`` subtracts
    the value. The result never drops below zero.
    """
    gross = to_money(gross_amount)
    value = Decimal(str(discount_value))

    if discount_type == DiscountType.PERCENT.value:
        discounted = gross * (1 - value / HUNDRED)
    elif discount_type == DiscountType.FIXED.value:
        discounted = gross - value
    else:
        raise ValueError(f"Unknown discount type: {discount_type}")

    return max(Decimal("0.00"), to_money(discounted))


def apply_referral_discount(gross_amount: Any, rate: Decimal | None = None) -> Decimal:
    if rate is None:
        rate = settings.referral_discount_rate
    gross = to_money(gross_amount)
    return to_money(gross * (1 - Decimal(str(rate)) / HUNDRED))


def compute_referral_reward(gross_amount: Any, rate: Decimal | None = None) -> Decimal:
    """Reward owed to the referrer, based on the undiscounted gross."""
    if rate is None:
        rate = settings.referral_reward_rate
    return to_money(to_money(gross_amount) * Decimal(str(rate)) / HUNDRED)


def is_coupon_usable(coupon: Coupon, now: datetime | None = None) -> bool:
    """A coupon is usable while active, unexpired and under its usage limit."""
    if now is None:
        now = datetime.utcnow()
    if not coupon.is_active:
        return False
    if coupon.expiration_date is not None and coupon.expiration_date <= now:
        return False
    if coupon.usage_limit is not None and coupon.usage_count >= coupon.usage_limit:
        return False
    return True


class DiscountResolver:
    """Resolves a coupon or referral code into a discounted total."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_usable_coupon(
        self,
        code: str,
        business_id: UUID | None = None,
        now: datetime | None = None,
    ) -> Coupon | None:
        """
        Look up a coupon by code and return it only if it can be applied.

        Business-scoped coupons only apply to tours of that business.
        """
        stmt = select(Coupon).where(func.upper(Coupon.code) == code.strip().upper())
        result = await self.db.execute(stmt)
        coupon = result.scalar_one_or_none()

        if coupon is None or not is_coupon_usable(coupon, now):
            return None

        if coupon.business_id is not None and coupon.business_id != business_id:
            logger.info(
                "Coupon not valid for this business",
                extra={"coupon_code": coupon.code, "business_id": str(business_id)}
            )
            return None

        return coupon

    async def consume_coupon(self, coupon: Coupon) -> bool:
        """
        Increment the coupon usage count if it is still under its limit.

        The limit check and the increment run in one UPDATE, so two
        concurrent bookings cannot both take the last use.
        """
        stmt = (
            update(Coupon)
            .where(
                Coupon.id == coupon.id,
                or_(Coupon.usage_limit.is_(None), Coupon.usage_count < Coupon.usage_limit),
            )
            .values(usage_count=Coupon.usage_count + 1)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        consumed = result.rowcount == 1

        if consumed:
            await self.db.refresh(coupon)
        else:
            logger.warning(
                "Coupon usage limit reached while applying",
                extra={"coupon_code": coupon.code}
            )
        return consumed

    async def find_referrer(self, code: str) -> User | None:
        stmt = select(User).where(
            User.referral_code == code.strip(),
            User.is_active.is_(True),
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def resolve_discount(
        self,
        gross_amount: Any,
        coupon_code: str | None = None,
        referral_code: str | None = None,
        requesting_user_id: UUID | None = None,
        business_id: UUID | None = None,
        now: datetime | None = None,
    ) -> DiscountResult:
        """
        Resolve the final amount for a booking.

        A usable coupon wins and suppresses referral checking. Otherwise a
        referral code owned by another active user takes a flat percentage
        off and yields a reward for the referrer. Unknown codes fall through
        to no discount. The caller commits; coupon usage is incremented in
        the current transaction.

        Args:
            gross_amount: Undiscounted amount
            coupon_code: Optional coupon code
            referral_code: Optional referral code
            requesting_user_id: User placing the booking, to prevent self-referral
            business_id: Business owning the tour, for coupon scoping
            now: Evaluation time for coupon expiry

        Returns:
            DiscountResult with final amount and how it was reached
        """
        gross = to_money(gross_amount)

        if coupon_code:
            coupon = await self.find_usable_coupon(coupon_code, business_id=business_id, now=now)
            if coupon is not None and await self.consume_coupon(coupon):
                final_amount = apply_coupon_discount(gross, coupon.discount_type, coupon.discount_value)
                logger.info(
                    "Coupon applied",
                    extra={
                        "coupon_code": coupon.code,
                        "gross_amount": str(gross),
                        "final_amount": str(final_amount),
                        "usage_count": coupon.usage_count,
                    }
                )
                return DiscountResult(
                    final_amount=final_amount,
                    applied_via=APPLIED_VIA_COUPON,
                    coupon_code=coupon.code,
                )

        if referral_code:
            referrer = await self.find_referrer(referral_code)
            if referrer is not None and referrer.id == requesting_user_id:
                logger.info(
                    "Self-referral ignored",
                    extra={"user_id": str(requesting_user_id)}
                )
            elif referrer is not None:
                final_amount = apply_referral_discount(gross)
                reward = compute_referral_reward(gross)
                logger.info(
                    "Referral applied",
                    extra={
                        "referrer_id": str(referrer.id),
                        "gross_amount": str(gross),
                        "final_amount": str(final_amount),
                        "reward_amount": str(reward),
                    }
                )
                return DiscountResult(
                    final_amount=final_amount,
                    applied_via=APPLIED_VIA_REFERRAL,
                    referrer_id=referrer.id,
                    referral_reward=reward,
                )

        return DiscountResult(final_amount=gross)

    async def resolve(
        self,
        code: str | None,
        gross_amount: Any,
        requesting_user_id: UUID | None = None,
    ) -> DiscountResult:
        """Resolve a single code that may be either a coupon or a referral code."""
        return await self.resolve_discount(
            gross_amount,
            coupon_code=code,
            referral_code=code,
            requesting_user_id=requesting_user_id,
        )
