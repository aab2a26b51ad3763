"""Unit tests for payment verification, settlement and refunds."""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from bookeros.core.exceptions import (
    ConflictError,
    InvalidBookingStateError,
    PaymentGatewayError,
    PaymentNotCompletedError,
    ValidationError,
)
from bookeros.models import Payment, Transaction
from bookeros.schemas.booking import CreateBookingRequest
from bookeros.services.booking_service import BookingService
from bookeros.services.payment_service import PaymentService


@pytest.fixture
def booking_factory(test_session, tour, tour_date):
    async def _create(**overrides):
        values = dict(
            tour_id=tour.id,
            booking_date=tour_date,
            adults=2,
            children=1,
            customer_name="Maria Lopez",
            customer_email="maria@example.com",
        )
        values.update(overrides)
        return await BookingService(test_session).create_booking(CreateBookingRequest(**values))

    return _create


@pytest.mark.asyncio
async def test_verify_paid_session_settles_booking(test_session, booking_factory, payment_gateway, email_service):
    booking = await booking_factory()
    session = await BookingService(test_session).start_checkout(booking.id, payment_gateway)
    assert booking.status == "pending_payment"

    service = PaymentService(test_session, payment_gateway, email_service)
    booking, payment, transaction = await service.verify_payment(booking.id, session.id)

    assert booking.status == "confirmed"
    assert booking.payment_status == "paid"
    assert booking.payment_method == "card"
    assert payment.payment_intent_id == f"pi_test_{session.id}"
    assert payment.amount == Decimal("4500.00")
    assert payment.verified is True

    assert transaction.platform_fee == Decimal("225.00")
    assert transaction.seller_commission == Decimal("450.00")
    assert transaction.tax_amount == Decimal("720.00")
    assert transaction.bank_commission == Decimal("135.00")
    assert transaction.other_retentions == Decimal("90.00")
    assert transaction.provider_payout == Decimal("2880.00")

    assert len(email_service.sent) == 1
    assert email_service.sent[0]["to"] == "maria@example.com"
    assert booking.alphanumeric_code in email_service.sent[0]["body"]


@pytest.mark.asyncio
async def test_verify_unpaid_session_leaves_booking_unpaid(test_session, booking_factory, payment_gateway):
    booking = await booking_factory()
    payment_gateway.paid = False

    with pytest.raises(PaymentNotCompletedError):
        await PaymentService(test_session, payment_gateway).verify_payment(booking.id, "cs_unpaid")

    assert booking.status == "pending_payment"
    assert booking.payment_status == "unpaid"
    payments = await test_session.scalar(select(func.count()).select_from(Payment))
    assert payments == 0


@pytest.mark.asyncio
async def test_verify_rejects_foreign_session(test_session, booking_factory, payment_gateway):
    booking = await booking_factory()
    await BookingService(test_session).start_checkout(booking.id, payment_gateway)

    with pytest.raises(ValidationError):
        await PaymentService(test_session, payment_gateway).verify_payment(booking.id, "cs_someone_else")


@pytest.mark.asyncio
async def test_verify_twice_does_not_settle_twice(test_session, booking_factory, payment_gateway):
    booking = await booking_factory()
    service = PaymentService(test_session, payment_gateway)
    await service.verify_payment(booking.id, "cs_1")

    with pytest.raises(InvalidBookingStateError):
        await service.verify_payment(booking.id, "cs_1")

    transactions = await test_session.scalar(select(func.count()).select_from(Transaction))
    assert transactions == 1


@pytest.mark.asyncio
async def test_cash_payment_has_no_bank_commission(test_session, booking_factory, payment_gateway, seller):
    booking = await booking_factory()

    booking, payment, transaction = await PaymentService(test_session, payment_gateway).confirm_cash_payment(
        booking.id, seller
    )

    assert payment.payment_method == "cash"
    assert payment.mode == "cash"
    assert payment.payment_intent_id.startswith(f"cash_{booking.id}_")
    assert transaction.bank_commission == Decimal("0.00")
    assert transaction.provider_payout == Decimal("3015.00")
    assert booking.status == "confirmed"


@pytest.mark.asyncio
async def test_cannot_pay_cancelled_booking(test_session, booking_factory, payment_gateway, seller):
    booking = await booking_factory()
    booking.status = "cancelled"
    await test_session.commit()

    with pytest.raises(InvalidBookingStateError):
        await PaymentService(test_session, payment_gateway).confirm_cash_payment(booking.id, seller)


@pytest.mark.asyncio
async def test_refund_cancels_booking(test_session, booking_factory, payment_gateway, admin):
    booking = await booking_factory()
    service = PaymentService(test_session, payment_gateway)
    _, payment, _ = await service.verify_payment(booking.id, "cs_refund")

    payment, booking, gateway_status = await service.refund_payment(payment.id, admin)

    assert gateway_status == "succeeded"
    assert payment.status == "refunded"
    assert payment.refunded_amount == payment.amount
    assert booking.status == "cancelled"
    assert booking.payment_status == "refunded"
    assert payment_gateway.refunds == ["pi_test_cs_refund"]

    with pytest.raises(ConflictError):
        await service.refund_payment(payment.id, admin)


@pytest.mark.asyncio
async def test_pending_refund_is_accepted(test_session, booking_factory, payment_gateway, admin):
    booking = await booking_factory()
    service = PaymentService(test_session, payment_gateway)
    _, payment, _ = await service.verify_payment(booking.id, "cs_pending")
    payment_gateway.refund_status = "pending"

    payment, booking, gateway_status = await service.refund_payment(payment.id, admin)

    assert gateway_status == "pending"
    assert payment.status == "refunded"


@pytest.mark.asyncio
async def test_rejected_refund_changes_nothing(test_session, booking_factory, payment_gateway, admin):
    booking = await booking_factory()
    service = PaymentService(test_session, payment_gateway)
    _, payment, _ = await service.verify_payment(booking.id, "cs_failed")
    payment_gateway.refund_status = "failed"

    with pytest.raises(PaymentGatewayError):
        await service.refund_payment(payment.id, admin)

    assert payment.status == "succeeded"
    assert booking.status == "confirmed"
    assert booking.payment_status == "paid"


@pytest.mark.asyncio
async def test_cash_refund_skips_gateway(test_session, booking_factory, payment_gateway, seller, admin):
    booking = await booking_factory()
    service = PaymentService(test_session, payment_gateway)
    _, payment, _ = await service.confirm_cash_payment(booking.id, seller)

    payment, booking, gateway_status = await service.refund_payment(payment.id, admin)

    assert gateway_status == "succeeded"
    assert payment_gateway.refunds == []
    assert booking.status == "cancelled"


@pytest.mark.asyncio
async def test_confirmation_skipped_without_email(test_session, booking_factory, payment_gateway, email_service):
    booking = await booking_factory(customer_email=None)

    await PaymentService(test_session, payment_gateway, email_service).verify_payment(booking.id, "cs_no_mail")

    assert email_service.sent == []


@pytest.mark.asyncio
async def test_connect_account_stores_account_id(test_session, payment_gateway, owner):
    account = await PaymentService(test_session, payment_gateway).connect_account(owner)

    assert account.id.startswith("acct_mock_")
    assert owner.payout_account_id == account.id


@pytest.mark.asyncio
async def test_list_payments_filters_by_status(test_session, booking_factory, payment_gateway, tour_date, admin):
    first = await booking_factory()
    second = await booking_factory(booking_date=tour_date + timedelta(days=1))
    service = PaymentService(test_session, payment_gateway)
    _, refunded, _ = await service.verify_payment(first.id, "cs_a")
    await service.verify_payment(second.id, "cs_b")
    await service.refund_payment(refunded.id, admin)

    assert len(await service.list_payments()) == 2
    only_refunded = await service.list_payments(status="refunded")
    assert [p.id for p in only_refunded] == [refunded.id]
