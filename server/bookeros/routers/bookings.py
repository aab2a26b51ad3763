"""Booking router: creation, lookup, checkout, payment, check-in and rescheduling."""

import logging
from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import (
    get_email_service,
    get_idempotency_key,
    get_optional_user,
    get_payment_gateway,
    require_capability,
)
from ..core.exceptions import ProblemDetailsException
from ..core.permissions import Capability
from ..models.user import User
from ..schemas.booking import (
    Booking,
    BookingWithTour,
    CheckInResponse,
    CheckoutResponse,
    CreateBookingRequest,
    PaymentConfirmation,
    ProposeRescheduleRequest,
    ProposeRescheduleResponse,
    RescheduleDetails,
    ResolveRescheduleRequest,
    VerifyPaymentRequest,
)
from ..schemas.common import Problem
from ..schemas.finance import Transaction
from ..schemas.payment import Payment
from ..services.access import ensure_tour_access, scoped_business_id
from ..services.booking_service import BookingService
from ..services.email_service import EmailService
from ..services.idempotency_service import IdempotencyService
from ..services.payment_gateway import PaymentGateway
from ..services.payment_service import PaymentService
from ..services.ticket_service import TicketService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bookings", tags=["bookings"])

DB_DEPENDENCY = Depends(get_db)
OPTIONAL_USER_DEPENDENCY = Depends(get_optional_user)
IDEMPOTENCY_KEY_DEPENDENCY = Depends(get_idempotency_key)
GATEWAY_DEPENDENCY = Depends(get_payment_gateway)
EMAIL_DEPENDENCY = Depends(get_email_service)

PROBLEM_RESPONSES = {
    400: {"model": Problem, "description": "Invalid request"},
    404: {"model": Problem, "description": "Booking or tour not found"},
    409: {"model": Problem, "description": "Date blocked, tour full or booking in the wrong state"},
}


def _payment_confirmation(booking, payment, transaction) -> dict[str, Any]:
    return PaymentConfirmation(
        booking=Booking.model_validate(booking),
        payment=Payment.model_validate(payment),
        transaction=Transaction.model_validate(transaction),
    ).model_dump(mode="json")


async def _handle_idempotent_operation(
    operation: str,
    idempotency_key: Optional[str],
    request_body: dict[str, Any],
    operation_func,
    db: AsyncSession,
    status_code: int = 200,
) -> JSONResponse:
    """Run an operation once per Idempotency-Key; replays return the stored response."""
    if idempotency_key is None:
        return JSONResponse(status_code=status_code, content=await operation_func())

    idempotency_service = IdempotencyService(db)
    cached_response = await idempotency_service.check(idempotency_key, operation, request_body)
    if cached_response:
        cached_status, cached_body = cached_response
        return JSONResponse(status_code=cached_status, content=cached_body)

    try:
        response_body = await operation_func()
    except ProblemDetailsException as e:
        await db.rollback()
        await idempotency_service.store(idempotency_key, operation, request_body, e.status_code, e.problem_details)
        raise

    await idempotency_service.store(idempotency_key, operation, request_body, status_code, response_body)
    return JSONResponse(status_code=status_code, content=response_body)


@router.post("", response_model=Booking, status_code=201, responses=PROBLEM_RESPONSES)
async def create_booking(
    request: CreateBookingRequest,
    db: AsyncSession = DB_DEPENDENCY,
    customer: Optional[User] = OPTIONAL_USER_DEPENDENCY,
    idempotency_key: Optional[str] = IDEMPOTENCY_KEY_DEPENDENCY,
) -> JSONResponse:
    """
    Create a booking.

    Price, discount and ticket codes are computed server-side. When an
    Idempotency-Key header is sent, retries with the same body return the
    original response.
    """
    booking_service = BookingService(db)

    async def operation():
        booking = await booking_service.create_booking(request, customer=customer)
        return Booking.model_validate(booking).model_dump(mode="json")

    try:
        return await _handle_idempotent_operation(
            operation="create_booking",
            idempotency_key=idempotency_key,
            request_body=request.model_dump(mode="json"),
            operation_func=operation,
            db=db,
            status_code=201,
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in booking creation",
            extra={"tour_id": str(request.tour_id), "idempotency_key": idempotency_key, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.get("", response_model=list[Booking])
async def list_bookings(
    status: Optional[str] = Query(None, description="Filter by status"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = DB_DEPENDENCY,
    user: User = Depends(require_capability(Capability.VIEW_BOOKINGS)),
) -> JSONResponse:
    """List bookings, newest first. Business staff only see their own tours."""
    try:
        bookings = await BookingService(db).list_bookings(
            business_id=scoped_business_id(user),
            status=status,
            limit=limit,
            offset=offset,
        )
        return JSONResponse(
            status_code=200,
            content=[Booking.model_validate(b).model_dump(mode="json") for b in bookings]
        )

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error("Unexpected error listing bookings", extra={"error": str(e)}, exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.get("/qr/{code}", response_model=BookingWithTour)
async def get_booking_by_qr(
    code: str,
    db: AsyncSession = DB_DEPENDENCY,
    user: User = Depends(require_capability(Capability.CHECK_IN)),
) -> JSONResponse:
    """Look up a ticket by scanned QR token."""
    booking, tour = await BookingService(db).get_booking_by_qr(code)
    if tour is not None:
        ensure_tour_access(user, tour)
    return JSONResponse(status_code=200, content=BookingWithTour.from_booking(booking, tour).model_dump(mode="json"))


@router.get("/resolve/{token}", response_model=RescheduleDetails)
async def get_reschedule(token: str, db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
    """Public view of a reschedule proposal, reached from the customer's link."""
    booking, tour = await BookingService(db).get_booking_by_resolution_token(token)
    details = RescheduleDetails(
        booking_id=booking.id,
        tour_name=tour.name if tour else "Tour",
        customer_name=booking.customer_name,
        booking_date=booking.booking_date,
        proposed_date=booking.proposed_date,
        reason=booking.reschedule_reason,
    )
    return JSONResponse(status_code=200, content=details.model_dump(mode="json"))


@router.post("/resolve/{token}", response_model=Booking)
async def resolve_reschedule(
    token: str,
    request: ResolveRescheduleRequest,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Accept the proposed date or choose another one. The link works once."""
    try:
        booking = await BookingService(db).resolve_reschedule(
            token,
            accept_proposed=request.accept_proposed,
            new_date=request.new_date,
        )
        return JSONResponse(status_code=200, content=Booking.model_validate(booking).model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error("Unexpected error resolving reschedule", extra={"error": str(e)}, exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.get("/{booking_id}", response_model=BookingWithTour)
async def get_booking(booking_id: UUID, db: AsyncSession = DB_DEPENDENCY) -> JSONResponse:
    """Booking detail with its tour, as shown on the confirmation page."""
    booking, tour = await BookingService(db).get_booking_with_tour(booking_id)
    return JSONResponse(status_code=200, content=BookingWithTour.from_booking(booking, tour).model_dump(mode="json"))


@router.post("/{booking_id}/checkout", response_model=CheckoutResponse)
async def start_checkout(
    booking_id: UUID,
    db: AsyncSession = DB_DEPENDENCY,
    gateway: PaymentGateway = GATEWAY_DEPENDENCY,
) -> JSONResponse:
    """Create a hosted checkout session and return the URL to redirect to."""
    try:
        session = await BookingService(db).start_checkout(booking_id, gateway)
        response_data = CheckoutResponse(session_id=session.id, url=session.url, mode=session.mode)
        return JSONResponse(status_code=200, content=response_data.model_dump())

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error creating checkout",
            extra={"booking_id": str(booking_id), "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/{booking_id}/verify-payment", response_model=PaymentConfirmation, responses=PROBLEM_RESPONSES)
async def verify_payment(
    booking_id: UUID,
    request: VerifyPaymentRequest,
    db: AsyncSession = DB_DEPENDENCY,
    gateway: PaymentGateway = GATEWAY_DEPENDENCY,
    email_service: EmailService = EMAIL_DEPENDENCY,
) -> JSONResponse:
    """
    Verify a checkout session and settle the booking.

    An unpaid session leaves the booking in pending_payment; the client
    may call again once the customer completes payment.
    """
    try:
        booking, payment, transaction = await PaymentService(db, gateway, email_service).verify_payment(
            booking_id, request.session_id
        )
        return JSONResponse(status_code=200, content=_payment_confirmation(booking, payment, transaction))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error verifying payment",
            extra={"booking_id": str(booking_id), "session_id": request.session_id, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/{booking_id}/confirm-cash-payment", response_model=PaymentConfirmation)
async def confirm_cash_payment(
    booking_id: UUID,
    db: AsyncSession = DB_DEPENDENCY,
    gateway: PaymentGateway = GATEWAY_DEPENDENCY,
    email_service: EmailService = EMAIL_DEPENDENCY,
    user: User = Depends(require_capability(Capability.CONFIRM_CASH_PAYMENT)),
) -> JSONResponse:
    """Record a cash payment collected by a seller or administrator."""
    try:
        booking, payment, transaction = await PaymentService(db, gateway, email_service).confirm_cash_payment(
            booking_id, user
        )
        return JSONResponse(status_code=200, content=_payment_confirmation(booking, payment, transaction))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error confirming cash payment",
            extra={"booking_id": str(booking_id), "user_id": str(user.id), "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/{booking_id}/check-in", response_model=CheckInResponse)
async def check_in(
    booking_id: UUID,
    db: AsyncSession = DB_DEPENDENCY,
    user: User = Depends(require_capability(Capability.CHECK_IN)),
) -> JSONResponse:
    """Check the customer in. Repeating the call returns the original check-in time."""
    try:
        booking, already_checked_in = await TicketService(db).check_in(booking_id, user)
        response_data = CheckInResponse(
            already_checked_in=already_checked_in,
            checked_in_at=booking.checked_in_at,
            booking=Booking.model_validate(booking),
        )
        return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in check-in",
            extra={"booking_id": str(booking_id), "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.post("/{booking_id}/propose-reschedule", response_model=ProposeRescheduleResponse)
async def propose_reschedule(
    booking_id: UUID,
    request: ProposeRescheduleRequest,
    db: AsyncSession = DB_DEPENDENCY,
    user: User = Depends(require_capability(Capability.MANAGE_BOOKINGS)),
) -> JSONResponse:
    """Send the customer a one-time link to move the booking."""
    booking_service = BookingService(db)
    try:
        booking = await booking_service.propose_reschedule(booking_id, request.proposed_date, request.reason, user)
        response_data = ProposeRescheduleResponse(
            booking=Booking.model_validate(booking),
            resolution_token=booking.resolution_token,
            resolution_url=booking_service.resolution_url(booking.resolution_token),
        )
        return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error proposing reschedule",
            extra={"booking_id": str(booking_id), "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e
