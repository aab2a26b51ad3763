"""Ticket service: check-in, single-use redemption and redemption history."""

import logging
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import InvalidBookingStateError, NotFoundError, TicketAlreadyRedeemedError
from ..core.observability import metrics_collector
from ..models.booking import Booking, BookingStatus, RedemptionMethod, TicketRedemption
from ..models.tour import Tour
from ..models.user import User
from .access import ensure_tour_access

logger = logging.getLogger(__name__)

# A ticket is usable at the venue only in these states
ADMITTABLE_STATUSES = (BookingStatus.CONFIRMED.value, BookingStatus.COMPLETED.value)


class TicketService:
    """Service for admitting customers at the point of service."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_booking_and_tour(self, booking_id: UUID, user: User) -> tuple[Booking, Optional[Tour]]:
        booking = await self.db.get(Booking, booking_id)
        if booking is None:
            raise NotFoundError(resource_type="booking", resource_id=str(booking_id))
        tour = await self.db.get(Tour, booking.tour_id)
        if tour is not None:
            ensure_tour_access(user, tour)
        return booking, tour

    async def check_in(self, booking_id: UUID, user: User, now: Optional[datetime] = None) -> tuple[Booking, bool]:
        """
        Check a customer in.

        Checking in twice is not an error: the second call reports the
        original check-in time and changes nothing.

        Returns:
            Tuple of (booking, already_checked_in)

        Raises:
            NotFoundError: If booking not found
            InvalidBookingStateError: If the booking is not confirmed
        """
        booking, _ = await self._get_booking_and_tour(booking_id, user)

        if booking.checked_in and booking.checked_in_at is not None:
            logger.info(
                "Booking already checked in",
                extra={"booking_id": str(booking.id), "checked_in_at": booking.checked_in_at.isoformat()}
            )
            return booking, True

        if booking.status not in ADMITTABLE_STATUSES:
            raise InvalidBookingStateError(str(booking.id), booking.status, "check_in")

        now = now or datetime.utcnow()
        booking.checked_in = True
        booking.checked_in_at = now
        booking.status = BookingStatus.COMPLETED.value
        self.db.add(TicketRedemption(
            booking_id=booking.id,
            redeemed_by=user.id,
            redemption_method=RedemptionMethod.MANUAL_VALIDATION.value,
            notes="check-in",
            redeemed_at=now,
        ))
        await self.db.commit()

        logger.info(
            "Booking checked in",
            extra={"booking_id": str(booking.id), "user_id": str(user.id)}
        )
        return booking, False

    async def redeem(
        self,
        booking_id: UUID,
        method: RedemptionMethod,
        user: User,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> tuple[Booking, TicketRedemption]:
        """
        Mark a ticket as used. A ticket can be redeemed once.

        Raises:
            NotFoundError: If booking not found
            TicketAlreadyRedeemedError: If the ticket was redeemed before
            InvalidBookingStateError: If the booking is not confirmed
        """
        booking, _ = await self._get_booking_and_tour(booking_id, user)

        if booking.redeemed_at is not None:
            logger.warning(
                "Ticket already redeemed",
                extra={"booking_id": str(booking.id), "redeemed_at": booking.redeemed_at.isoformat()}
            )
            raise TicketAlreadyRedeemedError(str(booking.id), booking.redeemed_at)

        if booking.status not in ADMITTABLE_STATUSES:
            raise InvalidBookingStateError(str(booking.id), booking.status, "redeem")

        now = now or datetime.utcnow()
        booking.status = BookingStatus.COMPLETED.value
        booking.redeemed_at = now
        booking.redeemed_by = user.id
        if not booking.checked_in:
            booking.checked_in = True
            booking.checked_in_at = now

        redemption = TicketRedemption(
            booking_id=booking.id,
            redeemed_by=user.id,
            redemption_method=method.value,
            notes=notes,
            redeemed_at=now,
        )
        self.db.add(redemption)
        await self.db.commit()
        await self.db.refresh(redemption)

        metrics_collector.record_ticket_redeemed(method.value)
        logger.info(
            "Ticket redeemed",
            extra={"booking_id": str(booking.id), "method": method.value, "user_id": str(user.id)}
        )
        return booking, redemption

    async def list_redemptions(self, business_id: Optional[UUID] = None, limit: int = 100) -> list[TicketRedemption]:
        stmt = select(TicketRedemption).order_by(TicketRedemption.redeemed_at.desc()).limit(limit)
        if business_id is not None:
            stmt = (
                stmt.join(Booking, Booking.id == TicketRedemption.booking_id)
                .join(Tour, Tour.id == Booking.tour_id)
                .where(Tour.business_id == business_id)
            )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def validation_history(self, business_id: Optional[UUID] = None, limit: int = 100) -> list[dict[str, Any]]:
        """Redemptions joined with the booking and tour they belong to."""
        stmt = (
            select(TicketRedemption, Booking.customer_name, Booking.alphanumeric_code, Tour.name)
            .join(Booking, Booking.id == TicketRedemption.booking_id)
            .join(Tour, Tour.id == Booking.tour_id)
            .order_by(TicketRedemption.redeemed_at.desc())
            .limit(limit)
        )
        if business_id is not None:
            stmt = stmt.where(Tour.business_id == business_id)

        result = await self.db.execute(stmt)
        return [
            {
                "id": redemption.id,
                "booking_id": redemption.booking_id,
                "redeemed_by": redemption.redeemed_by,
                "redemption_method": redemption.redemption_method,
                "notes": redemption.notes,
                "redeemed_at": redemption.redeemed_at,
                "customer_name": customer_name,
                "alphanumeric_code": code,
                "tour_name": tour_name,
            }
            for redemption, customer_name, code, tour_name in result.all()
        ]
