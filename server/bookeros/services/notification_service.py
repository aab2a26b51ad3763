"""Scheduled customer notifications: reminders, review requests and cart recovery."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone
from typing import Any, Optional
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.observability import metrics_collector
from ..models.booking import Booking, BookingPaymentStatus, BookingStatus
from ..models.tour import Tour
from .email_service import EmailService

logger = logging.getLogger(__name__)

ABANDONED_CART_AFTER = timedelta(hours=1)
CART_RECOVERY_STATUSES = (BookingStatus.PENDING.value, BookingStatus.PENDING_PAYMENT.value)

REVIEW_STATUSES = (BookingStatus.CONFIRMED.value, BookingStatus.COMPLETED.value)


def booking_email_details(booking: Booking, tour: Optional[Tour]) -> dict[str, Any]:
    """Template values shared by every booking e-mail."""
    base_url = settings.public_base_url
    return {
        "customer_name": booking.customer_name,
        "tour_name": tour.name if tour else "Tour",
        "booking_date": booking.booking_date.strftime("%Y-%m-%d %H:%M"),
        "adults": booking.adults,
        "children": booking.children,
        "alphanumeric_code": booking.alphanumeric_code,
        "location": tour.location if tour else None,
        "requirements": tour.requirements if tour else None,
        "review_url": f"{base_url}/tours/{booking.tour_id}/review?booking={booking.id}",
        "recovery_url": f"{base_url}/booking/{booking.id}",
    }


def local_day_window(now: datetime, days_from_today: int, tz_name: Optional[str] = None) -> tuple[datetime, datetime]:
    """
    Naive-UTC bounds of a calendar day in the business time zone.

    ``now`` is naive UTC, like every stored timestamp. ``days_from_today``
    of 1 is tomorrow and -1 is yesterday.
    """
    tz = ZoneInfo(tz_name or settings.business_timezone)
    local_now = now.replace(tzinfo=timezone.utc).astimezone(tz)
    day = local_now.date() + timedelta(days=days_from_today)
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return (
        start.astimezone(timezone.utc).replace(tzinfo=None),
        end.astimezone(timezone.utc).replace(tzinfo=None),
    )


@dataclass
class SweepResult:
    """Outcome of one sweep: who qualified and how many messages went out."""

    kind: str
    candidate_ids: list[UUID] = field(default_factory=list)
    sent: int = 0
    failed: int = 0
    error: Optional[str] = None


class NotificationService:
    """Finds bookings that need a message and sends it."""

    def __init__(self, db: AsyncSession, email_service: EmailService):
        self.db = db
        self.email_service = email_service

    async def _select(self, stmt) -> list[Booking]:
        result = await self.db.execute(stmt.order_by(Booking.booking_date))
        return list(result.scalars().all())

    async def reminder_candidates(self, now: datetime) -> list[Booking]:
        """Confirmed bookings whose tour is tomorrow."""
        start, end = local_day_window(now, 1)
        return await self._select(
            select(Booking).where(
                Booking.status == BookingStatus.CONFIRMED.value,
                Booking.booking_date >= start,
                Booking.booking_date < end,
            )
        )

    async def review_candidates(self, now: datetime) -> list[Booking]:
        """Bookings whose tour was yesterday."""
        start, end = local_day_window(now, -1)
        return await self._select(
            select(Booking).where(
                Booking.status.in_(REVIEW_STATUSES),
                Booking.booking_date >= start,
                Booking.booking_date < end,
            )
        )

    async def abandoned_cart_candidates(self, now: datetime) -> list[Booking]:
        """Unpaid bookings left pending, or abandoned at checkout, for more than an hour."""
        return await self._select(
            select(Booking).where(
                Booking.status.in_(CART_RECOVERY_STATUSES),
                Booking.payment_status == BookingPaymentStatus.UNPAID.value,
                Booking.created_at < now - ABANDONED_CART_AFTER,
            )
        )

    async def _sweep(self, kind: str, candidates: list[Booking], stamp_field: str, send, now: datetime) -> SweepResult:
        result = SweepResult(kind=kind, candidate_ids=[b.id for b in candidates])

        for booking in candidates:
            if not booking.customer_email or getattr(booking, stamp_field) is not None:
                continue
            try:
                tour = await self.db.get(Tour, booking.tour_id)
                sent = await send(booking.customer_email, str(booking.id), booking_email_details(booking, tour))
            except Exception as e:
                result.failed += 1
                logger.error(
                    "Notification failed",
                    extra={"kind": kind, "booking_id": str(booking.id), "error": str(e)},
                    exc_info=True
                )
                continue

            if not sent:
                result.failed += 1
                continue

            setattr(booking, stamp_field, now)
            await self.db.commit()
            result.sent += 1
            metrics_collector.record_notification_sent(kind)

        logger.info(
            "Notification sweep finished",
            extra={
                "kind": kind,
                "candidates": len(result.candidate_ids),
                "sent": result.sent,
                "failed": result.failed,
            }
        )
        return result

    async def send_upcoming_reminders(self, now: Optional[datetime] = None) -> SweepResult:
        now = now or datetime.utcnow()
        candidates = await self.reminder_candidates(now)
        return await self._sweep("reminder", candidates, "reminder_sent_at", self.email_service.send_reminder, now)

    async def send_review_requests(self, now: Optional[datetime] = None) -> SweepResult:
        now = now or datetime.utcnow()
        candidates = await self.review_candidates(now)
        return await self._sweep(
            "review_request", candidates, "review_requested_at", self.email_service.send_review_request, now
        )

    async def send_cart_recovery(self, now: Optional[datetime] = None) -> SweepResult:
        now = now or datetime.utcnow()
        candidates = await self.abandoned_cart_candidates(now)
        return await self._sweep(
            "cart_recovery", candidates, "cart_recovery_sent_at", self.email_service.send_cart_recovery, now
        )

    async def run_all(self, now: Optional[datetime] = None) -> list[SweepResult]:
        """
        Run the three sweeps in turn.

        A sweep that fails as a whole is logged and reported in its result;
        the remaining sweeps still run.
        """
        now = now or datetime.utcnow()
        results = []
        sweeps = (
            ("reminder", self.send_upcoming_reminders),
            ("review_request", self.send_review_requests),
            ("cart_recovery", self.send_cart_recovery),
        )
        for kind, sweep in sweeps:
            try:
                results.append(await sweep(now))
            except Exception as e:
                await self.db.rollback()
                logger.error("Notification sweep failed", extra={"kind": kind, "error": str(e)}, exc_info=True)
                results.append(SweepResult(kind=kind, error=str(e)))
        return results
