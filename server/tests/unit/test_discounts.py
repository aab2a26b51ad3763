"""Unit tests for coupon and referral discount rules."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from bookeros.models.promotion import Coupon
from bookeros.services.discount_service import (
    APPLIED_VIA_COUPON,
    APPLIED_VIA_NONE,
    APPLIED_VIA_REFERRAL,
    DiscountResolver,
    apply_coupon_discount,
    apply_referral_discount,
    compute_referral_reward,
    is_coupon_usable,
)


def test_percent_coupon():
    assert apply_coupon_discount(Decimal("1000"), "percent", Decimal("15")) == Decimal("850.00")


def test_fixed_coupon():
    assert apply_coupon_discount(Decimal("1000"), "fixed", Decimal("200")) == Decimal("800.00")


def test_fixed_coupon_never_goes_negative():
    assert apply_coupon_discount(Decimal("100"), "fixed", Decimal("250")) == Decimal("0.00")


def test_unknown_discount_type():
    with pytest.raises(ValueError):
        apply_coupon_discount(Decimal("100"), "bogo", Decimal("1"))


def test_referral_discount_and_reward_use_gross():
    assert apply_referral_discount(Decimal("1000"), Decimal("10")) == Decimal("900.00")
    assert compute_referral_reward(Decimal("1000"), Decimal("5")) == Decimal("50.00")


def test_coupon_usability():
    now = datetime(2025, 6, 1, 12, 0)
    coupon = Coupon(code="SUMMER", discount_type="percent", discount_value=Decimal("10"),
                    is_active=True, usage_count=0, usage_limit=2,
                    expiration_date=now + timedelta(days=1))

    assert is_coupon_usable(coupon, now)

    coupon.usage_count = 2
    assert not is_coupon_usable(coupon, now)

    coupon.usage_count = 0
    coupon.expiration_date = now
    assert not is_coupon_usable(coupon, now)

    coupon.expiration_date = None
    coupon.is_active = False
    assert not is_coupon_usable(coupon, now)


async def _coupon(session, **overrides):
    values = dict(code="WELCOME10", discount_type="percent", discount_value=Decimal("10"),
                  is_active=True, usage_count=0)
    values.update(overrides)
    coupon = Coupon(**values)
    session.add(coupon)
    await session.commit()
    await session.refresh(coupon)
    return coupon


@pytest.mark.asyncio
async def test_resolve_coupon_increments_usage(test_session):
    coupon = await _coupon(test_session, usage_limit=1)
    resolver = DiscountResolver(test_session)

    result = await resolver.resolve_discount(Decimal("1000"), coupon_code="welcome10")
    await test_session.commit()

    assert result.applied_via == APPLIED_VIA_COUPON
    assert result.final_amount == Decimal("900.00")
    assert result.coupon_code == "WELCOME10"
    await test_session.refresh(coupon)
    assert coupon.usage_count == 1

    # Limit reached: the same code now yields no discount
    second = await resolver.resolve_discount(Decimal("1000"), coupon_code="WELCOME10")
    assert second.applied_via == APPLIED_VIA_NONE
    assert second.final_amount == Decimal("1000.00")


@pytest.mark.asyncio
async def test_coupon_scoped_to_other_business_is_ignored(test_session, business, other_business):
    await _coupon(test_session, business_id=other_business.id)

    result = await DiscountResolver(test_session).resolve_discount(
        Decimal("500"), coupon_code="WELCOME10", business_id=business.id
    )

    assert result.applied_via == APPLIED_VIA_NONE


@pytest.mark.asyncio
async def test_referral_applies_for_other_user(test_session, customer, seller):
    seller.referral_code = "SELLER-ABC123"
    await test_session.commit()

    result = await DiscountResolver(test_session).resolve_discount(
        Decimal("1000"), referral_code="SELLER-ABC123", requesting_user_id=customer.id
    )

    assert result.applied_via == APPLIED_VIA_REFERRAL
    assert result.final_amount == Decimal("900.00")
    assert result.referrer_id == seller.id
    assert result.referral_reward == Decimal("50.00")


@pytest.mark.asyncio
async def test_self_referral_ignored(test_session, customer):
    customer.referral_code = "MARIA-XYZ789"
    await test_session.commit()

    result = await DiscountResolver(test_session).resolve_discount(
        Decimal("1000"), referral_code="MARIA-XYZ789", requesting_user_id=customer.id
    )

    assert result.applied_via == APPLIED_VIA_NONE


@pytest.mark.asyncio
async def test_coupon_wins_over_referral(test_session, seller):
    await _coupon(test_session)
    seller.referral_code = "SELLER-ABC123"
    await test_session.commit()

    result = await DiscountResolver(test_session).resolve_discount(
        Decimal("1000"), coupon_code="WELCOME10", referral_code="SELLER-ABC123"
    )

    assert result.applied_via == APPLIED_VIA_COUPON
    assert result.referrer_id is None


@pytest.mark.asyncio
async def test_single_code_resolves_as_referral_when_not_a_coupon(test_session, seller):
    seller.referral_code = "SELLER-ABC123"
    await test_session.commit()

    result = await DiscountResolver(test_session).resolve("SELLER-ABC123", Decimal("200"))

    assert result.applied_via == APPLIED_VIA_REFERRAL
    assert result.final_amount == Decimal("180.00")


@pytest.mark.asyncio
async def test_unknown_code_means_no_discount(test_session):
    result = await DiscountResolver(test_session).resolve("NOPE", Decimal("200"))

    assert result.applied_via == APPLIED_VIA_NONE
    assert result.final_amount == Decimal("200.00")
