"""Availability router: per-date overrides and seat holds."""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import require_capability
from ..core.exceptions import ProblemDetailsException
from ..core.permissions import Capability
from ..models.user import User
from ..schemas.availability import (
    AvailabilityOverride,
    AvailabilityOverrideResult,
    CreateAvailabilityOverrideRequest,
)
from ..schemas.booking import Booking, CreateSeatHoldRequest, SeatHold
from ..services.availability_service import AvailabilityService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["availability"])

MANAGE_AVAILABILITY_DEPENDENCY = Depends(require_capability(Capability.MANAGE_AVAILABILITY))


@router.get("/availability-overrides", response_model=list[AvailabilityOverride])
async def list_overrides(
    tour_id: Optional[UUID] = Query(None, description="Only overrides of this tour"),
    db: AsyncSession = Depends(get_db),
) -> JSONResponse:
    """Blocked dates and custom capacities, used by the booking calendar."""
    overrides = await AvailabilityService(db).list_overrides(tour_id=tour_id)
    return JSONResponse(
        status_code=200,
        content=[AvailabilityOverride.model_validate(o).model_dump(mode="json") for o in overrides]
    )


@router.post("/availability-overrides", response_model=AvailabilityOverrideResult, status_code=201)
async def set_override(
    request: CreateAvailabilityOverrideRequest,
    db: AsyncSession = Depends(get_db),
    user: User = MANAGE_AVAILABILITY_DEPENDENCY,
) -> JSONResponse:
    """
    Block a date or set its capacity.

    When blocking, the response lists the bookings on that date so the
    operator can propose a new date to each customer.
    """
    try:
        override, affected = await AvailabilityService(db).set_override(request, user)
        response_data = AvailabilityOverrideResult(
            override=AvailabilityOverride.model_validate(override),
            affected_bookings=[Booking.model_validate(b) for b in affected],
        )
        return JSONResponse(status_code=201, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error saving availability override",
            extra={"tour_id": str(request.tour_id), "date": request.date.isoformat(), "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.delete("/availability-overrides/{override_id}", status_code=204)
async def delete_override(
    override_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = MANAGE_AVAILABILITY_DEPENDENCY,
) -> Response:
    await AvailabilityService(db).delete_override(override_id, user)
    return Response(status_code=204)


@router.post("/seat-holds", response_model=SeatHold, status_code=201)
async def create_seat_hold(
    request: CreateSeatHoldRequest,
    db: AsyncSession = Depends(get_db),
) -> JSONResponse:
    """Hold seats while the customer completes checkout."""
    try:
        hold = await AvailabilityService(db).create_seat_hold(request)
        return JSONResponse(status_code=201, content=SeatHold.model_validate(hold).model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error creating seat hold",
            extra={"tour_id": str(request.tour_id), "seats": request.seats_held, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e
