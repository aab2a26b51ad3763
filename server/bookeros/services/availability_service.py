"""Availability service: per-date overrides, seat holds and capacity checks."""

import logging
from datetime import date, datetime, time, timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.exceptions import CapacityExceededError, DateUnavailableError, NotFoundError
from ..models.booking import ACTIVE_BOOKING_STATUSES, Booking, BookingStatus, SeatHold
from ..models.tour import AvailabilityOverride, Tour
from ..models.user import User
from ..schemas.availability import CreateAvailabilityOverrideRequest
from ..schemas.booking import CreateSeatHoldRequest
from .access import ensure_tour_access
from .tour_service import TourService

logger = logging.getLogger(__name__)

# Bookings that an operator should move when their date gets blocked
RESCHEDULABLE_STATUSES = (
    BookingStatus.PENDING.value,
    BookingStatus.PENDING_PAYMENT.value,
    BookingStatus.CONFIRMED.value,
)


def day_bounds(moment: datetime) -> tuple[datetime, datetime]:
    """Start of the calendar day containing ``moment`` and start of the next one."""
    start = datetime.combine(moment.date(), time.min)
    return start, start + timedelta(days=1)


class AvailabilityService:
    """Service for bookability and capacity of tour dates."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.tour_service = TourService(db)

    async def get_override(self, tour_id: UUID, on_date: date) -> Optional[AvailabilityOverride]:
        stmt = select(AvailabilityOverride).where(
            AvailabilityOverride.tour_id == tour_id,
            AvailabilityOverride.date == on_date,
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def seats_available(
        self,
        tour: Tour,
        booking_date: datetime,
        now: Optional[datetime] = None,
        exclude_booking_id: Optional[UUID] = None,
        exclude_hold_session: Optional[str] = None,
    ) -> int:
        """
        Free seats on the tour's calendar day.

        Capacity is the per-date custom capacity when set, otherwise the tour
        capacity. Live bookings and unexpired seat holds both consume seats.
        """
        if now is None:
            now = datetime.utcnow()
        start, end = day_bounds(booking_date)

        override = await self.get_override(tour.id, booking_date.date())
        capacity = tour.capacity
        if override is not None and override.custom_capacity is not None:
            capacity = override.custom_capacity

        booked_stmt = select(func.coalesce(func.sum(Booking.adults + Booking.children), 0)).where(
            Booking.tour_id == tour.id,
            Booking.booking_date >= start,
            Booking.booking_date < end,
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        )
        if exclude_booking_id is not None:
            booked_stmt = booked_stmt.where(Booking.id != exclude_booking_id)
        booked = (await self.db.execute(booked_stmt)).scalar_one()

        held_stmt = select(func.coalesce(func.sum(SeatHold.seats_held), 0)).where(
            SeatHold.tour_id == tour.id,
            SeatHold.booking_date >= start,
            SeatHold.booking_date < end,
            SeatHold.expires_at > now,
        )
        if exclude_hold_session is not None:
            held_stmt = held_stmt.where(SeatHold.session_id != exclude_hold_session)
        held = (await self.db.execute(held_stmt)).scalar_one()

        return max(0, capacity - int(booked) - int(held))

    async def ensure_bookable(
        self,
        tour: Tour,
        booking_date: datetime,
        seats: int,
        now: Optional[datetime] = None,
        exclude_booking_id: Optional[UUID] = None,
        exclude_hold_session: Optional[str] = None,
    ) -> None:
        """
        Raise unless the date is open and has room for ``seats``.

        Raises:
            DateUnavailableError: If the date is blocked
            CapacityExceededError: If there are not enough free seats
        """
        override = await self.get_override(tour.id, booking_date.date())
        if override is not None and override.is_blocked:
            logger.warning(
                "Booking rejected - date blocked",
                extra={"tour_id": str(tour.id), "date": booking_date.date().isoformat()}
            )
            raise DateUnavailableError(str(tour.id), booking_date.date().isoformat(), override.reason)

        available = await self.seats_available(
            tour,
            booking_date,
            now=now,
            exclude_booking_id=exclude_booking_id,
            exclude_hold_session=exclude_hold_session,
        )
        if seats > available:
            logger.warning(
                "Booking rejected - insufficient capacity",
                extra={
                    "tour_id": str(tour.id),
                    "date": booking_date.date().isoformat(),
                    "requested_seats": seats,
                    "available_seats": available,
                }
            )
            raise CapacityExceededError(str(tour.id), seats, available)

    async def create_seat_hold(self, request: CreateSeatHoldRequest, now: Optional[datetime] = None) -> SeatHold:
        """
        Hold seats for a checkout session.

        The hold expires after ``seat_hold_minutes``; re-holding with the
        same session replaces the previous hold for that tour.
        """
        if now is None:
            now = datetime.utcnow()
        tour = await self.tour_service.get_tour_by_id_or_raise(request.tour_id)
        await self.ensure_bookable(
            tour,
            request.booking_date,
            request.seats_held,
            now=now,
            exclude_hold_session=request.session_id,
        )

        await self.db.execute(
            delete(SeatHold).where(
                SeatHold.tour_id == tour.id,
                SeatHold.session_id == request.session_id,
            )
        )
        hold = SeatHold(
            tour_id=tour.id,
            booking_date=request.booking_date,
            seats_held=request.seats_held,
            session_id=request.session_id,
            expires_at=now + timedelta(minutes=settings.seat_hold_minutes),
        )
        self.db.add(hold)
        await self.db.commit()
        await self.db.refresh(hold)

        logger.info(
            "Seat hold created",
            extra={
                "hold_id": str(hold.id),
                "tour_id": str(tour.id),
                "seats": hold.seats_held,
                "expires_at": hold.expires_at.isoformat(),
            }
        )
        return hold

    async def release_seat_holds(self, tour_id: UUID, session_id: str) -> None:
        """Drop a session's holds once its booking exists. Caller commits."""
        await self.db.execute(
            delete(SeatHold).where(SeatHold.tour_id == tour_id, SeatHold.session_id == session_id)
        )

    async def cleanup_expired_seat_holds(self, now: Optional[datetime] = None) -> int:
        """Delete holds whose expiry has passed. Returns the number removed."""
        if now is None:
            now = datetime.utcnow()
        result = await self.db.execute(delete(SeatHold).where(SeatHold.expires_at <= now))
        await self.db.commit()
        return result.rowcount or 0

    async def list_overrides(
        self,
        tour_id: Optional[UUID] = None,
        business_id: Optional[UUID] = None,
    ) -> list[AvailabilityOverride]:
        stmt = select(AvailabilityOverride).order_by(AvailabilityOverride.date)
        if tour_id is not None:
            stmt = stmt.where(AvailabilityOverride.tour_id == tour_id)
        if business_id is not None:
            stmt = stmt.join(Tour, Tour.id == AvailabilityOverride.tour_id).where(Tour.business_id == business_id)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def set_override(
        self,
        request: CreateAvailabilityOverrideRequest,
        user: User,
    ) -> tuple[AvailabilityOverride, list[Booking]]:
        """
        Create or replace the override for a tour date.

        Blocking does not move bookings by itself. The bookings returned
        are the ones an operator should send a reschedule proposal to.

        Returns:
            Tuple of (override, affected bookings)
        """
        tour = await self.tour_service.get_tour_by_id_or_raise(request.tour_id)
        ensure_tour_access(user, tour)

        override = await self.get_override(tour.id, request.date)
        if override is None:
            override = AvailabilityOverride(tour_id=tour.id, date=request.date, created_by=user.id)
            self.db.add(override)
        override.is_blocked = request.is_blocked
        override.custom_capacity = request.custom_capacity
        override.reason = request.reason

        await self.db.commit()
        await self.db.refresh(override)

        affected: list[Booking] = []
        if override.is_blocked:
            affected = await self.bookings_on_date(tour.id, request.date)

        logger.info(
            "Availability override saved",
            extra={
                "override_id": str(override.id),
                "tour_id": str(tour.id),
                "date": request.date.isoformat(),
                "is_blocked": override.is_blocked,
                "affected_bookings": len(affected),
            }
        )
        return override, affected

    async def bookings_on_date(self, tour_id: UUID, on_date: date) -> list[Booking]:
        """Bookings on the date that still need to be moved."""
        start, end = day_bounds(datetime.combine(on_date, time.min))
        stmt = (
            select(Booking)
            .where(
                Booking.tour_id == tour_id,
                Booking.booking_date >= start,
                Booking.booking_date < end,
                Booking.status.in_(RESCHEDULABLE_STATUSES),
            )
            .order_by(Booking.booking_date)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def delete_override(self, override_id: UUID, user: User) -> None:
        override = await self.db.get(AvailabilityOverride, override_id)
        if override is None:
            raise NotFoundError(resource_type="availability override", resource_id=str(override_id))

        tour = await self.tour_service.get_tour_by_id_or_raise(override.tour_id)
        ensure_tour_access(user, tour)

        await self.db.delete(override)
        await self.db.commit()

        logger.info(
            "Availability override deleted",
            extra={"override_id": str(override_id), "tour_id": str(tour.id)}
        )
