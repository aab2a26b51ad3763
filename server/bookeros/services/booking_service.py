"""Booking service: creation, lookup, checkout and rescheduling."""

import logging
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.database import unit_of_work
from ..core.exceptions import (
    ConflictError,
    InvalidBookingStateError,
    NotFoundError,
    ProblemDetailsException,
    ValidationError,
)
from ..core.observability import metrics_collector
from ..models.booking import Booking, BookingPaymentStatus, BookingStatus
from ..models.promotion import Referral
from ..models.tour import Tour
from ..models.user import User
from ..schemas.booking import CreateBookingRequest
from .access import ensure_tour_access
from .availability_service import AvailabilityService
from .codes import (
    generate_alphanumeric_code,
    generate_qr_token,
    generate_resolution_token,
    is_valid_alphanumeric_code,
    normalize_alphanumeric_code,
)
from .discount_service import DiscountResolver
from .payment_gateway import CheckoutSession, PaymentGateway
from .settlement import to_money
from .tour_service import TourService

logger = logging.getLogger(__name__)

# Statuses from which a checkout can be started
CHECKOUT_STATUSES = (
    BookingStatus.PENDING.value,
    BookingStatus.PENDING_PAYMENT.value,
    BookingStatus.CONFIRMED.value,
)

RESCHEDULE_STATUSES = (
    BookingStatus.PENDING.value,
    BookingStatus.PENDING_PAYMENT.value,
    BookingStatus.CONFIRMED.value,
)


class InvalidResolutionTokenError(ProblemDetailsException):
    """Exception when a reschedule link is unknown or already used."""

    def __init__(self):
        super().__init__(
            status_code=404,
            title="Invalid Resolution Link",
            detail="This reschedule link is invalid or has already been used",
            type_uri="https://bookeros.com/problems/invalid-resolution-token",
            extensions={"code": "INVALID_RESOLUTION_TOKEN", "retryable": False},
        )


class BookingService:
    """Service for booking-related operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.tour_service = TourService(db)
        self.availability_service = AvailabilityService(db)
        self.discount_resolver = DiscountResolver(db)

    async def create_booking(
        self,
        request: CreateBookingRequest,
        customer: Optional[User] = None,
    ) -> Booking:
        """
        Create a booking with server-side pricing, discounts and ticket codes.

        The gross amount is the tour price times the party size. Coupon usage,
        the booking row and any referral reward are committed together.

        Args:
            request: Booking creation request
            customer: Logged-in customer, if any (used to block self-referral)

        Returns:
            Created booking entity

        Raises:
            NotFoundError: If tour not found
            ConflictError: If the tour is not active or codes collide
            DateUnavailableError: If the date is blocked
            CapacityExceededError: If there are not enough free seats
        """
        tour = await self.tour_service.get_tour_by_id_or_raise(request.tour_id)
        if tour.status != "active":
            raise ConflictError(detail=f"Tour {tour.id} is not accepting bookings")

        party_size = request.adults + request.children
        hold_session_id = request.hold_session_id
        now = datetime.utcnow()
        await self.availability_service.ensure_bookable(
            tour,
            request.booking_date,
            party_size,
            now=now,
            exclude_hold_session=hold_session_id,
        )

        gross_amount = to_money(tour.price * party_size)
        status = (
            BookingStatus.CONFIRMED.value
            if settings.confirm_bookings_on_create
            else BookingStatus.PENDING.value
        )

        try:
            async with unit_of_work(self.db):
                discount = await self.discount_resolver.resolve_discount(
                    gross_amount,
                    coupon_code=request.coupon_code,
                    referral_code=request.referral_code,
                    requesting_user_id=customer.id if customer else None,
                    business_id=tour.business_id,
                    now=now,
                )

                booking = Booking(
                    tour_id=tour.id,
                    customer_id=customer.id if customer else None,
                    customer_name=request.customer_name,
                    customer_email=request.customer_email,
                    customer_phone=request.customer_phone,
                    special_requests=request.special_requests,
                    health_conditions=request.health_conditions,
                    booking_date=request.booking_date,
                    adults=request.adults,
                    children=request.children,
                    subtotal_amount=gross_amount,
                    total_amount=discount.final_amount,
                    discount_source=discount.applied_via,
                    coupon_code=discount.coupon_code,
                    status=status,
                    payment_status=BookingPaymentStatus.UNPAID.value,
                    qr_code=generate_qr_token(),
                    alphanumeric_code=generate_alphanumeric_code(),
                    reserved_until=now + timedelta(minutes=settings.seat_hold_minutes),
                )
                self.db.add(booking)
                await self.db.flush()

                if discount.referrer_id is not None:
                    self.db.add(Referral(
                        referrer_id=discount.referrer_id,
                        booking_id=booking.id,
                        reward_amount=discount.referral_reward,
                    ))

                if hold_session_id:
                    await self.availability_service.release_seat_holds(tour.id, hold_session_id)
        except IntegrityError as e:
            logger.error(
                "Booking creation failed due to integrity constraint",
                extra={"tour_id": str(request.tour_id), "error": str(e)}
            )
            raise ConflictError(detail="Booking could not be created, please retry")

        await self.db.refresh(booking)
        metrics_collector.record_booking_created(booking.status)

        logger.info(
            "Booking created successfully",
            extra={
                "booking_id": str(booking.id),
                "tour_id": str(tour.id),
                "party_size": party_size,
                "subtotal_amount": str(gross_amount),
                "total_amount": str(booking.total_amount),
                "discount_source": booking.discount_source,
                "status": booking.status,
            }
        )
        return booking

    async def get_booking_by_id(self, booking_id: UUID) -> Optional[Booking]:
        return await self.db.get(Booking, booking_id)

    async def get_booking_by_id_or_raise(self, booking_id: UUID) -> Booking:
        """
        Get booking by ID or raise NotFoundError.

        Raises:
            NotFoundError: If booking not found
        """
        booking = await self.get_booking_by_id(booking_id)
        if not booking:
            logger.warning("Booking not found", extra={"booking_id": str(booking_id)})
            raise NotFoundError(resource_type="booking", resource_id=str(booking_id))
        return booking

    async def get_booking_with_tour(self, booking_id: UUID) -> tuple[Booking, Optional[Tour]]:
        booking = await self.get_booking_by_id_or_raise(booking_id)
        tour = await self.db.get(Tour, booking.tour_id)
        return booking, tour

    async def get_booking_by_qr(self, qr_code: str) -> tuple[Booking, Optional[Tour]]:
        """Look up a ticket by its QR token."""
        result = await self.db.execute(select(Booking).where(Booking.qr_code == qr_code.strip()))
        booking = result.scalar_one_or_none()
        if booking is None:
            raise NotFoundError(resource_type="ticket", detail="Ticket not found")
        return booking, await self.db.get(Tour, booking.tour_id)

    async def get_booking_by_code(self, code: str) -> tuple[Booking, Optional[Tour]]:
        """
        Look up a ticket by its backup code.

        Raises:
            ValidationError: If the code is not in XXXX-XXXX-XXXX-XXXX form
            NotFoundError: If no booking has that code
        """
        if not is_valid_alphanumeric_code(code):
            raise ValidationError(
                detail="Ticket codes look like XXXX-XXXX-XXXX-XXXX",
                violations=[{"path": "alphanumeric_code", "message": "invalid format"}],
            )
        normalized = normalize_alphanumeric_code(code)
        result = await self.db.execute(select(Booking).where(Booking.alphanumeric_code == normalized))
        booking = result.scalar_one_or_none()
        if booking is None:
            raise NotFoundError(resource_type="ticket", detail="Ticket not found")
        return booking, await self.db.get(Tour, booking.tour_id)

    async def list_bookings(
        self,
        business_id: Optional[UUID] = None,
        status: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Booking]:
        stmt = select(Booking).order_by(Booking.created_at.desc()).limit(limit).offset(offset)
        if business_id is not None:
            stmt = stmt.join(Tour, Tour.id == Booking.tour_id).where(Tour.business_id == business_id)
        if status is not None:
            stmt = stmt.where(Booking.status == status)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def start_checkout(self, booking_id: UUID, gateway: PaymentGateway) -> CheckoutSession:
        """
        Open a hosted checkout session for an unpaid booking.

        A pending booking moves to pending_payment; the session ID is kept
        so verification can be matched against it.
        """
        booking, tour = await self.get_booking_with_tour(booking_id)
        if booking.payment_status != BookingPaymentStatus.UNPAID.value or booking.status not in CHECKOUT_STATUSES:
            raise InvalidBookingStateError(str(booking.id), booking.status, "checkout")

        booking_ref = str(booking.id)
        session = await gateway.create_checkout_session(
            amount=booking.total_amount,
            tour_name=tour.name if tour else "Tour",
            booking_id=booking_ref,
            success_url=f"{settings.public_base_url}/booking-success/{booking_ref}",
            cancel_url=f"{settings.public_base_url}/booking/{booking_ref}?cancelled=1",
            customer_email=booking.customer_email,
            currency=settings.default_currency,
        )

        booking.gateway_session_id = session.id
        if booking.status == BookingStatus.PENDING.value:
            booking.status = BookingStatus.PENDING_PAYMENT.value
        await self.db.commit()

        logger.info(
            "Checkout session created",
            extra={"booking_id": booking_ref, "session_id": session.id, "mode": session.mode}
        )
        return session

    async def propose_reschedule(
        self,
        booking_id: UUID,
        proposed_date: datetime,
        reason: str,
        user: User,
    ) -> Booking:
        """
        Ask the customer to move a booking, typically after blocking its date.

        Stores a one-time resolution token and sets status pending_reschedule.
        """
        booking, tour = await self.get_booking_with_tour(booking_id)
        if tour is not None:
            ensure_tour_access(user, tour)
        if booking.status not in RESCHEDULE_STATUSES:
            raise InvalidBookingStateError(str(booking.id), booking.status, "propose_reschedule")

        booking.proposed_date = proposed_date
        booking.reschedule_reason = reason
        booking.resolution_token = generate_resolution_token()
        booking.status_before_reschedule = booking.status
        booking.status = BookingStatus.PENDING_RESCHEDULE.value
        await self.db.commit()

        logger.info(
            "Reschedule proposed",
            extra={
                "booking_id": str(booking.id),
                "proposed_date": proposed_date.isoformat(),
                "proposed_by": str(user.id),
            }
        )
        return booking

    @staticmethod
    def resolution_url(token: str) -> str:
        return f"{settings.public_base_url}/resolve-booking/{token}"

    async def get_booking_by_resolution_token(self, token: str) -> tuple[Booking, Optional[Tour]]:
        """
        Raises:
            InvalidResolutionTokenError: If no pending reschedule uses the token
        """
        stmt = select(Booking).where(
            Booking.resolution_token == token,
            Booking.status == BookingStatus.PENDING_RESCHEDULE.value,
        )
        result = await self.db.execute(stmt)
        booking = result.scalar_one_or_none()
        if booking is None:
            raise InvalidResolutionTokenError()
        return booking, await self.db.get(Tour, booking.tour_id)

    async def resolve_reschedule(
        self,
        token: str,
        accept_proposed: bool = True,
        new_date: Optional[datetime] = None,
    ) -> Booking:
        """
        Apply the customer's answer to a reschedule proposal.

        Accepting moves the booking to the proposed date; otherwise the
        customer's own date must be open and have room. Either way the token
        is invalidated and the booking returns to the status it had before
        the proposal, so an unpaid booking stays unpaid.
        """
        booking, tour = await self.get_booking_by_resolution_token(token)

        target_date = booking.proposed_date if accept_proposed else new_date
        if target_date is None:
            raise ValidationError(
                detail="A new date is required",
                violations=[{"path": "new_date", "message": "required"}],
            )

        if tour is not None:
            await self.availability_service.ensure_bookable(
                tour,
                target_date,
                booking.party_size,
                exclude_booking_id=booking.id,
            )

        previous_date = booking.booking_date
        booking.booking_date = target_date
        booking.proposed_date = None
        booking.resolution_token = None
        booking.status = booking.status_before_reschedule or BookingStatus.CONFIRMED.value
        booking.status_before_reschedule = None
        await self.db.commit()

        logger.info(
            "Reschedule resolved",
            extra={
                "booking_id": str(booking.id),
                "previous_date": previous_date.isoformat(),
                "new_date": target_date.isoformat(),
                "accepted_proposal": accept_proposed,
            }
        )
        return booking
