"""Unit tests for booking creation, capacity and rescheduling."""

from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy import func, select

from bookeros.core.exceptions import (
    CapacityExceededError,
    ConflictError,
    DateUnavailableError,
    InvalidBookingStateError,
    NotFoundError,
    ValidationError,
)
from bookeros.models import AvailabilityOverride, Booking, Coupon, Referral, SeatHold
from bookeros.schemas.booking import CreateBookingRequest, CreateSeatHoldRequest
from bookeros.services.availability_service import AvailabilityService
from bookeros.services.booking_service import BookingService, InvalidResolutionTokenError


def _request(tour, tour_date, **overrides) -> CreateBookingRequest:
    values = dict(
        tour_id=tour.id,
        booking_date=tour_date,
        adults=2,
        children=0,
        customer_name="Maria Lopez",
        customer_email="maria@example.com",
    )
    values.update(overrides)
    return CreateBookingRequest(**values)


@pytest.mark.asyncio
async def test_create_booking_prices_server_side(test_session, tour, tour_date):
    booking = await BookingService(test_session).create_booking(_request(tour, tour_date, adults=2, children=1))

    assert booking.subtotal_amount == Decimal("4500.00")
    assert booking.total_amount == Decimal("4500.00")
    assert booking.discount_source == "none"
    assert booking.status == "pending"
    assert booking.payment_status == "unpaid"
    assert booking.qr_code
    assert len(booking.alphanumeric_code) == 19
    assert booking.reserved_until is not None


@pytest.mark.asyncio
async def test_create_booking_can_confirm_immediately(test_session, tour, tour_date):
    with patch("bookeros.services.booking_service.settings.confirm_bookings_on_create", True):
        booking = await BookingService(test_session).create_booking(_request(tour, tour_date))

    assert booking.status == "confirmed"


@pytest.mark.asyncio
async def test_create_booking_unknown_tour(test_session, tour, tour_date):
    from uuid import uuid4

    request = _request(tour, tour_date)
    request.tour_id = uuid4()

    with pytest.raises(NotFoundError):
        await BookingService(test_session).create_booking(request)


@pytest.mark.asyncio
async def test_create_booking_inactive_tour(test_session, tour, tour_date):
    tour.status = "inactive"
    await test_session.commit()

    with pytest.raises(ConflictError):
        await BookingService(test_session).create_booking(_request(tour, tour_date))


@pytest.mark.asyncio
async def test_create_booking_applies_coupon(test_session, tour, tour_date):
    test_session.add(Coupon(code="VERANO20", discount_type="percent", discount_value=Decimal("20"),
                            is_active=True, usage_count=0))
    await test_session.commit()

    booking = await BookingService(test_session).create_booking(
        _request(tour, tour_date, coupon_code="verano20")
    )

    assert booking.subtotal_amount == Decimal("3000.00")
    assert booking.total_amount == Decimal("2400.00")
    assert booking.discount_source == "coupon"
    assert booking.coupon_code == "VERANO20"


@pytest.mark.asyncio
async def test_create_booking_records_referral(test_session, tour, tour_date, seller, customer):
    seller.referral_code = "SELLER-ABC123"
    await test_session.commit()

    booking = await BookingService(test_session).create_booking(
        _request(tour, tour_date, referral_code="SELLER-ABC123"),
        customer=customer,
    )

    assert booking.discount_source == "referral"
    assert booking.total_amount == Decimal("2700.00")
    referral = (await test_session.execute(select(Referral))).scalar_one()
    assert referral.referrer_id == seller.id
    assert referral.booking_id == booking.id
    assert referral.reward_amount == Decimal("150.00")
    assert referral.status == "pending"


@pytest.mark.asyncio
async def test_capacity_is_enforced_per_day(test_session, tour, tour_date):
    service = BookingService(test_session)
    await service.create_booking(_request(tour, tour_date, adults=8))

    with pytest.raises(CapacityExceededError):
        await service.create_booking(_request(tour, tour_date + timedelta(hours=3), adults=3))

    # Another day is unaffected
    await service.create_booking(_request(tour, tour_date + timedelta(days=1), adults=10))


@pytest.mark.asyncio
async def test_cancelled_bookings_free_their_seats(test_session, tour, tour_date):
    service = BookingService(test_session)
    first = await service.create_booking(_request(tour, tour_date, adults=10))
    first.status = "cancelled"
    await test_session.commit()

    booking = await service.create_booking(_request(tour, tour_date, adults=10))
    assert booking.id != first.id


@pytest.mark.asyncio
async def test_blocked_date_rejected(test_session, tour, tour_date):
    test_session.add(AvailabilityOverride(tour_id=tour.id, date=tour_date.date(), is_blocked=True,
                                          reason="Port closed"))
    await test_session.commit()

    with pytest.raises(DateUnavailableError):
        await BookingService(test_session).create_booking(_request(tour, tour_date))


@pytest.mark.asyncio
async def test_custom_capacity_override(test_session, tour, tour_date):
    test_session.add(AvailabilityOverride(tour_id=tour.id, date=tour_date.date(), is_blocked=False,
                                          custom_capacity=2))
    await test_session.commit()
    service = BookingService(test_session)

    await service.create_booking(_request(tour, tour_date, adults=2))
    with pytest.raises(CapacityExceededError):
        await service.create_booking(_request(tour, tour_date, adults=1))


@pytest.mark.asyncio
async def test_seat_holds_consume_capacity_except_for_their_session(test_session, tour, tour_date):
    availability = AvailabilityService(test_session)
    await availability.create_seat_hold(CreateSeatHoldRequest(
        tour_id=tour.id, booking_date=tour_date, seats_held=9, session_id="checkout-a"
    ))
    service = BookingService(test_session)

    with pytest.raises(CapacityExceededError):
        await service.create_booking(_request(tour, tour_date, adults=2))

    booking = await service.create_booking(_request(tour, tour_date, adults=9, hold_session_id="checkout-a"))

    assert booking.adults == 9
    remaining = await test_session.scalar(select(func.count()).select_from(SeatHold))
    assert remaining == 0


@pytest.mark.asyncio
async def test_expired_seat_holds_are_ignored_and_reaped(test_session, tour, tour_date):
    now = datetime.utcnow()
    availability = AvailabilityService(test_session)
    await availability.create_seat_hold(
        CreateSeatHoldRequest(tour_id=tour.id, booking_date=tour_date, seats_held=10, session_id="s1"),
        now=now - timedelta(hours=1),
    )

    assert await availability.seats_available(tour, tour_date, now=now) == 10
    assert await availability.cleanup_expired_seat_holds(now) == 1


@pytest.mark.asyncio
async def test_duplicate_alphanumeric_code_becomes_conflict(test_session, tour, tour_date):
    service = BookingService(test_session)
    with patch("bookeros.services.booking_service.generate_alphanumeric_code", return_value="AAAA-BBBB-CCCC-DDDD"):
        await service.create_booking(_request(tour, tour_date, adults=1))
        with pytest.raises(ConflictError):
            await service.create_booking(_request(tour, tour_date, adults=1))

    count = await test_session.scalar(select(func.count()).select_from(Booking))
    assert count == 1


@pytest.mark.asyncio
async def test_lookup_by_code(test_session, tour, tour_date):
    service = BookingService(test_session)
    booking = await service.create_booking(_request(tour, tour_date))

    found, found_tour = await service.get_booking_by_code(booking.alphanumeric_code.lower())
    assert found.id == booking.id
    assert found_tour.id == tour.id

    with pytest.raises(ValidationError):
        await service.get_booking_by_code("not-a-code")
    with pytest.raises(NotFoundError):
        await service.get_booking_by_code("AAAA-BBBB-CCCC-DDDD")


@pytest.mark.asyncio
async def test_reschedule_round_trip(test_session, tour, tour_date, owner):
    service = BookingService(test_session)
    booking = await service.create_booking(_request(tour, tour_date))
    booking.status = "confirmed"
    booking.payment_status = "paid"
    await test_session.commit()
    new_date = tour_date + timedelta(days=2)

    proposed = await service.propose_reschedule(booking.id, new_date, "Storm warning", owner)
    token = proposed.resolution_token
    assert proposed.status == "pending_reschedule"
    assert proposed.status_before_reschedule == "confirmed"
    assert token

    resolved = await service.resolve_reschedule(token, accept_proposed=True)
    assert resolved.status == "confirmed"
    assert resolved.booking_date == new_date
    assert resolved.resolution_token is None
    assert resolved.status_before_reschedule is None

    with pytest.raises(InvalidResolutionTokenError):
        await service.resolve_reschedule(token)


@pytest.mark.asyncio
async def test_reschedule_keeps_unpaid_booking_unconfirmed(test_session, tour, tour_date, owner):
    service = BookingService(test_session)
    booking = await service.create_booking(_request(tour, tour_date))
    booking.status = "pending_payment"
    await test_session.commit()

    proposed = await service.propose_reschedule(booking.id, tour_date + timedelta(days=3), "Storm warning", owner)
    resolved = await service.resolve_reschedule(proposed.resolution_token, accept_proposed=True)

    assert resolved.status == "pending_payment"
    assert resolved.payment_status == "unpaid"


@pytest.mark.asyncio
async def test_reschedule_to_customer_date_checks_capacity(test_session, tour, tour_date, owner):
    service = BookingService(test_session)
    booking = await service.create_booking(_request(tour, tour_date, adults=4))
    full_day = tour_date + timedelta(days=5)
    await service.create_booking(_request(tour, full_day, adults=10))
    await service.propose_reschedule(booking.id, tour_date + timedelta(days=1), "Boat repair", owner)

    with pytest.raises(CapacityExceededError):
        await service.resolve_reschedule(booking.resolution_token, accept_proposed=False, new_date=full_day)


@pytest.mark.asyncio
async def test_cannot_reschedule_cancelled_booking(test_session, tour, tour_date, owner):
    service = BookingService(test_session)
    booking = await service.create_booking(_request(tour, tour_date))
    booking.status = "cancelled"
    await test_session.commit()

    with pytest.raises(InvalidBookingStateError):
        await service.propose_reschedule(booking.id, tour_date + timedelta(days=1), "Weather", owner)
