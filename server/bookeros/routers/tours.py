"""Tour router for tour management operations."""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import get_optional_user, require_capability
from ..core.exceptions import ProblemDetailsException
from ..core.permissions import Capability, has_capability
from ..models.user import User
from ..schemas.tour import CreateTourRequest, Tour, UpdateTourRequest
from ..services.access import scoped_business_id
from ..services.tour_service import TourService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tours", tags=["tours"])


@router.get("", response_model=list[Tour])
async def list_tours(
    business_id: Optional[UUID] = Query(None, description="Only tours of this business"),
    include_inactive: bool = Query(False, description="Include inactive tours (staff only)"),
    db: AsyncSession = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
) -> JSONResponse:
    """
    List tours.

    The public catalogue shows active tours. Staff who manage tours may
    include inactive ones; business staff are limited to their own.
    """
    can_manage = user is not None and has_capability(user.role, Capability.MANAGE_TOURS)
    if can_manage and scoped_business_id(user) is not None:
        business_id = scoped_business_id(user)

    tours = await TourService(db).list_tours(
        business_id=business_id,
        include_inactive=include_inactive and can_manage,
    )
    return JSONResponse(
        status_code=200,
        content=[Tour.model_validate(t).model_dump(mode="json") for t in tours]
    )


@router.post("", response_model=Tour, status_code=201)
async def create_tour(
    request: CreateTourRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_capability(Capability.MANAGE_TOURS)),
) -> JSONResponse:
    """Create a new tour."""
    tour_service = TourService(db)

    try:
        tour = await tour_service.create_tour(request, user)
        response_data = Tour.model_validate(tour)
        return JSONResponse(status_code=201, content=response_data.model_dump(mode="json"))

    except ProblemDetailsException:
        # Re-raise Problem Details exceptions as-is
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in tour creation",
            extra={"tour_name": request.name, "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.get("/{tour_id}", response_model=Tour)
async def get_tour(tour_id: UUID, db: AsyncSession = Depends(get_db)) -> JSONResponse:
    tour = await TourService(db).get_tour_by_id_or_raise(tour_id)
    return JSONResponse(status_code=200, content=Tour.model_validate(tour).model_dump(mode="json"))


@router.put("/{tour_id}", response_model=Tour)
async def update_tour(
    tour_id: UUID,
    request: UpdateTourRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_capability(Capability.MANAGE_TOURS)),
) -> JSONResponse:
    """Update tour fields; omitted fields are left unchanged."""
    try:
        tour = await TourService(db).update_tour(tour_id, request, user)
        return JSONResponse(status_code=200, content=Tour.model_validate(tour).model_dump(mode="json"))

    except ProblemDetailsException:
        raise

    except Exception as e:
        logger.error(
            "Unexpected error in tour update",
            extra={"tour_id": str(tour_id), "error": str(e)},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Internal server error") from e
