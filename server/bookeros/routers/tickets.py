"""Ticket router: validation at the door, redemption and redemption history."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import require_capability
from ..core.exceptions import ProblemDetailsException
from ..core.permissions import Capability
from ..models.user import User
from ..schemas.booking import Booking, BookingWithTour
from ..schemas.ticket import (
    RedeemTicketRequest,
    TicketRedemption,
    ValidateTicketCodeRequest,
    ValidateTicketRequest,
    ValidationHistoryEntry,
)
from ..services.access import ensure_tour_access, scoped_business_id
from ..services.booking_service import BookingService
from ..services.ticket_service import TicketService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["tickets"])

CHECK_IN_DEPENDENCY = Depends(require_capability(Capability.CHECK_IN))
VIEW_REDEMPTIONS_DEPENDENCY = Depends(require_capability(Capability.VIEW_REDEMPTIONS))


@router.post("/validate-ticket", response_model=BookingWithTour)
async def validate_ticket(
    request: ValidateTicketRequest,
    db: AsyncSession = Depends(get_db),
    user: User = CHECK_IN_DEPENDENCY,
) -> JSONResponse:
    """Look up the booking behind a scanned QR code."""
    booking, tour = await BookingService(db).get_booking_by_qr(request.qr_code)
    if tour is not None:
        ensure_tour_access(user, tour)
    return JSONResponse(status_code=200, content=BookingWithTour.from_booking(booking, tour).model_dump(mode="json"))


@router.post("/validate-ticket-code", response_model=BookingWithTour)
async def validate_ticket_code(
    request: ValidateTicketCodeRequest,
    db: AsyncSession = Depends(get_db),
    user: User = CHECK_IN_DEPENDENCY,
) -> JSONResponse:
    """Look up the booking behind a typed backup code (XXXX-XXXX-XXXX-XXXX)."""
    booking, tour = await BookingService(db).get_booking_by_code(request.alphanumeric_code)
    if tour is not None:
        ensure_tour_access(user, tour)
    return JSONResponse(status_code=200, content=BookingWithTour.from_booking(booking, tour).model_dump(mode="json"))


@router.post("/redeem-ticket", response_model=Booking)
async def redeem_ticket(
    request: RedeemTicketRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_capability(Capability.REDEEM_TICKETS)),
) -> JSONResponse:
    """Mark a ticket as used. A second attempt is rejected."""
    try:
        booking, _ = await TicketService(db).redeem(
            request.booking_id,
            request.method,
            user,
            notes=request.notes,
        )
        return JSONResponse(status_code=200, content=Booking.model_validate(booking).model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error redeeming ticket",
            extra={"booking_id": str(request.booking_id), "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.get("/ticket-redemptions", response_model=list[TicketRedemption])
async def list_redemptions(
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    user: User = VIEW_REDEMPTIONS_DEPENDENCY,
) -> JSONResponse:
    redemptions = await TicketService(db).list_redemptions(business_id=scoped_business_id(user), limit=limit)
    return JSONResponse(
        status_code=200,
        content=[TicketRedemption.model_validate(r).model_dump(mode="json") for r in redemptions]
    )


@router.get("/validation-history", response_model=list[ValidationHistoryEntry])
async def validation_history(
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    user: User = VIEW_REDEMPTIONS_DEPENDENCY,
) -> JSONResponse:
    """Redemptions with customer, code and tour name."""
    entries = await TicketService(db).validation_history(business_id=scoped_business_id(user), limit=limit)
    return JSONResponse(
        status_code=200,
        content=[ValidationHistoryEntry(**entry).model_dump(mode="json") for entry in entries]
    )
