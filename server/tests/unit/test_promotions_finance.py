"""Unit tests for coupons, referral codes and the finance ledger."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from bookeros.core.exceptions import ConflictError, ValidationError
from bookeros.core.permissions import Role
from bookeros.models import Coupon, Referral, Transaction
from bookeros.schemas.finance import UpdateRetentionConfigRequest
from bookeros.schemas.promotion import CreateCouponRequest
from bookeros.services.finance_service import FinanceService
from bookeros.services.promotion_service import CouponNotFoundError, PromotionService


@pytest.mark.asyncio
async def test_business_coupons_are_bound_to_their_business(test_session, owner, admin, other_business):
    service = PromotionService(test_session)

    own = await service.create_coupon(
        CreateCouponRequest(code="muelle5", discount_type="fixed", discount_value=Decimal("50"),
                            business_id=other_business.id),
        owner,
    )
    platform = await service.create_coupon(
        CreateCouponRequest(code="GLOBAL20", discount_type="percent", discount_value=Decimal("20")),
        admin,
    )

    assert own.code == "MUELLE5"
    assert own.business_id == owner.business_id
    assert platform.business_id is None
    assert len(await service.list_coupons(business_id=owner.business_id)) == 1
    assert len(await service.list_coupons()) == 2


@pytest.mark.asyncio
async def test_duplicate_coupon_code(test_session, admin):
    service = PromotionService(test_session)
    request = CreateCouponRequest(code="DUPLICADO", discount_type="percent", discount_value=Decimal("5"))
    await service.create_coupon(request, admin)

    with pytest.raises(ConflictError):
        await service.create_coupon(request, admin)


@pytest.mark.asyncio
async def test_validate_coupon_does_not_consume(test_session, tour):
    test_session.add(Coupon(code="SOLO1", discount_type="percent", discount_value=Decimal("10"),
                            usage_limit=1, usage_count=0, is_active=True))
    await test_session.commit()
    service = PromotionService(test_session)

    coupon, final_amount = await service.validate_coupon("solo1", amount=Decimal("1500"))
    coupon, _ = await service.validate_coupon("SOLO1")

    assert final_amount == Decimal("1350.00")
    assert coupon.usage_count == 0


@pytest.mark.asyncio
async def test_validate_coupon_rejections(test_session, tour, other_business):
    now = datetime(2030, 1, 1, 12, 0)
    test_session.add_all([
        Coupon(code="EXPIRED", discount_type="percent", discount_value=Decimal("10"),
               expiration_date=now - timedelta(days=1), usage_count=0, is_active=True),
        Coupon(code="PAUSED", discount_type="percent", discount_value=Decimal("10"),
               usage_count=0, is_active=False),
        Coupon(code="ELSEWHERE", discount_type="fixed", discount_value=Decimal("100"),
               usage_count=0, is_active=True, business_id=other_business.id),
    ])
    await test_session.commit()
    service = PromotionService(test_session)

    for code in ("EXPIRED", "PAUSED", "MISSING"):
        with pytest.raises(CouponNotFoundError):
            await service.validate_coupon(code, now=now)
    with pytest.raises(CouponNotFoundError):
        await service.validate_coupon("ELSEWHERE", tour_id=tour.id, now=now)


@pytest.mark.asyncio
async def test_referral_code_is_stable(test_session, make_user):
    user = await make_user(Role.SELLER, username="ana.guia")
    service = PromotionService(test_session)

    code = await service.generate_referral_code(user)

    assert code.startswith("ANAGUI-")
    assert await service.generate_referral_code(user) == code


@pytest.mark.asyncio
async def test_referral_stats(test_session, seller, tour, tour_date):
    from bookeros.schemas.booking import CreateBookingRequest
    from bookeros.services.booking_service import BookingService

    seller.referral_code = "SELLER-XYZ234"
    await test_session.commit()
    booking = await BookingService(test_session).create_booking(CreateBookingRequest(
        tour_id=tour.id,
        booking_date=tour_date,
        adults=1,
        customer_name="Luis Perez",
        referral_code="SELLER-XYZ234",
    ))
    test_session.add(Referral(referrer_id=seller.id, booking_id=booking.id,
                              reward_amount=Decimal("40.00"), status="paid"))
    await test_session.commit()

    stats = await PromotionService(test_session).referral_stats(seller)

    assert stats["total_referrals"] == 2
    assert stats["pending_rewards"] == Decimal("75.00")
    assert stats["paid_rewards"] == Decimal("40.00")


@pytest.mark.asyncio
async def test_retention_config_defaults_then_update(test_session):
    service = FinanceService(test_session)

    assert await service.get_retention_config() is None
    assert (await service.get_retention_rates()).total_rate == Decimal("36")

    config = await service.update_retention_config(UpdateRetentionConfigRequest(platform_fee_rate=Decimal("7.5")))

    assert config.platform_fee_rate == Decimal("7.5")
    assert config.tax_rate == Decimal("16")
    settlement, _ = await service.calculate_distribution(Decimal("1000"))
    assert settlement.platform_fee == Decimal("75.00")


@pytest.mark.asyncio
async def test_retention_rates_cannot_exceed_100(test_session):
    with pytest.raises(ValidationError):
        await FinanceService(test_session).update_retention_config(
            UpdateRetentionConfigRequest(tax_rate=Decimal("90"))
        )


@pytest.mark.asyncio
async def test_financial_summary_by_business(test_session, tour, other_business):
    test_session.add_all([
        Transaction(tour_id=tour.id, tour_name=tour.name, amount=Decimal("1000.00"),
                    platform_fee=Decimal("50.00"), seller_commission=Decimal("100.00"),
                    tax_amount=Decimal("160.00"), bank_commission=Decimal("30.00"),
                    other_retentions=Decimal("20.00"), provider_payout=Decimal("640.00")),
        Transaction(tour_id=tour.id, tour_name=tour.name, amount=Decimal("500.00"),
                    platform_fee=Decimal("25.00"), seller_commission=Decimal("50.00"),
                    tax_amount=Decimal("80.00"), bank_commission=Decimal("0.00"),
                    other_retentions=Decimal("10.00"), provider_payout=Decimal("335.00")),
    ])
    await test_session.commit()
    service = FinanceService(test_session)

    summary = await service.financial_summary(business_id=tour.business_id)

    assert summary["total_revenue"] == Decimal("1500.00")
    assert summary["total_retentions"] == Decimal("300.00")
    assert summary["total_provider_payout"] == Decimal("975.00")
    assert summary["transaction_count"] == 2
    assert (await service.financial_summary(business_id=other_business.id))["transaction_count"] == 0
    assert len(await service.list_transactions()) == 2
