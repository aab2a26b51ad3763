"""Unit tests for check-in and ticket redemption."""

from datetime import datetime

import pytest

from bookeros.core.exceptions import (
    AuthorizationError,
    InvalidBookingStateError,
    NotFoundError,
    TicketAlreadyRedeemedError,
)
from bookeros.core.permissions import Role
from bookeros.models import RedemptionMethod
from bookeros.schemas.booking import CreateBookingRequest
from bookeros.services.booking_service import BookingService
from bookeros.services.ticket_service import TicketService


@pytest.fixture
def confirmed_booking(test_session, tour, tour_date):
    async def _create(status="confirmed"):
        booking = await BookingService(test_session).create_booking(CreateBookingRequest(
            tour_id=tour.id,
            booking_date=tour_date,
            adults=2,
            customer_name="Maria Lopez",
            customer_email="maria@example.com",
        ))
        booking.status = status
        await test_session.commit()
        return booking

    return _create


@pytest.mark.asyncio
async def test_check_in_is_idempotent(test_session, confirmed_booking, manager):
    booking = await confirmed_booking()
    service = TicketService(test_session)
    first_time = datetime(2030, 1, 5, 9, 15)

    booking, already = await service.check_in(booking.id, manager, now=first_time)
    assert already is False
    assert booking.checked_in is True
    assert booking.checked_in_at == first_time
    assert booking.status == "completed"

    booking, already = await service.check_in(booking.id, manager, now=datetime(2030, 1, 5, 9, 45))
    assert already is True
    assert booking.checked_in_at == first_time

    redemptions = await service.list_redemptions()
    assert len(redemptions) == 1
    assert redemptions[0].redemption_method == RedemptionMethod.MANUAL_VALIDATION.value


@pytest.mark.asyncio
async def test_pending_booking_cannot_check_in(test_session, confirmed_booking, manager):
    booking = await confirmed_booking(status="pending")

    with pytest.raises(InvalidBookingStateError):
        await TicketService(test_session).check_in(booking.id, manager)


@pytest.mark.asyncio
async def test_redeem_only_once(test_session, confirmed_booking, owner):
    booking = await confirmed_booking()
    service = TicketService(test_session)

    booking, redemption = await service.redeem(booking.id, RedemptionMethod.QR_SCAN, owner, notes="dock gate")

    assert redemption.redemption_method == "qr_scan"
    assert redemption.redeemed_by == owner.id
    assert booking.redeemed_at is not None
    assert booking.checked_in is True
    assert booking.status == "completed"

    with pytest.raises(TicketAlreadyRedeemedError) as exc_info:
        await service.redeem(booking.id, RedemptionMethod.MANUAL_CODE, owner)
    assert exc_info.value.status_code == 400
    assert exc_info.value.problem_details["code"] == "ALREADY_REDEEMED"


@pytest.mark.asyncio
async def test_redeem_after_check_in(test_session, confirmed_booking, manager):
    booking = await confirmed_booking()
    service = TicketService(test_session)
    await service.check_in(booking.id, manager)

    booking, _ = await service.redeem(booking.id, RedemptionMethod.MANUAL_CODE, manager)

    assert booking.redeemed_at is not None
    assert len(await service.list_redemptions()) == 2


@pytest.mark.asyncio
async def test_other_business_cannot_admit(test_session, confirmed_booking, make_user, other_business):
    booking = await confirmed_booking()
    outsider = await make_user(Role.MANAGER, business=other_business)

    with pytest.raises(AuthorizationError):
        await TicketService(test_session).redeem(booking.id, RedemptionMethod.QR_SCAN, outsider)
    with pytest.raises(AuthorizationError):
        await TicketService(test_session).check_in(booking.id, outsider)


@pytest.mark.asyncio
async def test_unknown_booking(test_session, manager):
    from uuid import uuid4

    with pytest.raises(NotFoundError):
        await TicketService(test_session).check_in(uuid4(), manager)


@pytest.mark.asyncio
async def test_validation_history_is_business_scoped(
    test_session, confirmed_booking, owner, tour, make_user, other_business
):
    booking = await confirmed_booking()
    await TicketService(test_session).redeem(booking.id, RedemptionMethod.QR_SCAN, owner)

    history = await TicketService(test_session).validation_history(business_id=tour.business_id)
    assert len(history) == 1
    assert history[0]["tour_name"] == "Marietas Islands Snorkel"
    assert history[0]["alphanumeric_code"] == booking.alphanumeric_code

    assert await TicketService(test_session).validation_history(business_id=other_business.id) == []
