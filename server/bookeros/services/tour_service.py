"""Tour service for business logic operations."""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import NotFoundError, ValidationError
from ..core.permissions import Role
from ..models.tour import Tour
from ..models.user import User
from ..schemas.tour import CreateTourRequest, UpdateTourRequest
from .access import ensure_tour_access

logger = logging.getLogger(__name__)


class TourService:
    """Service for tour-related operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_tour(self, request: CreateTourRequest, user: User) -> Tour:
        """
        Create a new tour.

        Business staff always create tours for their own business; only a
        master admin may pick the owning business.

        Args:
            request: Tour creation request
            user: Authenticated operator

        Returns:
            Created tour entity
        """
        business_id = request.business_id
        if user.role != Role.MASTER_ADMIN.value:
            business_id = user.business_id
        if business_id is None and user.role != Role.MASTER_ADMIN.value:
            raise ValidationError(
                detail="Your account is not linked to a business",
                violations=[{"path": "business_id", "message": "required"}],
            )

        tour = Tour(
            **request.model_dump(exclude={"business_id"}),
            business_id=business_id,
        )

        self.db.add(tour)
        await self.db.commit()
        await self.db.refresh(tour)

        logger.info(
            "Tour created successfully",
            extra={
                "tour_id": str(tour.id),
                "tour_name": tour.name,
                "business_id": str(business_id) if business_id else None,
            }
        )

        return tour

    async def update_tour(self, tour_id: UUID, request: UpdateTourRequest, user: User) -> Tour:
        """Apply a partial update to a tour."""
        tour = await self.get_tour_by_id_or_raise(tour_id)
        ensure_tour_access(user, tour)

        changes = request.model_dump(exclude_unset=True)
        for field, value in changes.items():
            setattr(tour, field, value)

        await self.db.commit()
        await self.db.refresh(tour)

        logger.info(
            "Tour updated",
            extra={"tour_id": str(tour.id), "fields": sorted(changes)}
        )
        return tour

    async def list_tours(
        self,
        business_id: Optional[UUID] = None,
        include_inactive: bool = False,
    ) -> list[Tour]:
        stmt = select(Tour).order_by(Tour.created_at.desc())
        if business_id is not None:
            stmt = stmt.where(Tour.business_id == business_id)
        if not include_inactive:
            stmt = stmt.where(Tour.status == "active")
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_tour_by_id(self, tour_id: UUID) -> Optional[Tour]:
        """
        Get tour by ID.

        Args:
            tour_id: Tour ID to search for

        Returns:
            Tour if found, None otherwise
        """
        return await self.db.get(Tour, tour_id)

    async def get_tour_by_id_or_raise(self, tour_id: UUID) -> Tour:
        """
        Get tour by ID or raise NotFoundError.

        Raises:
            NotFoundError: If tour not found
        """
        tour = await self.get_tour_by_id(tour_id)
        if not tour:
            logger.warning(
                "Tour not found",
                extra={"tour_id": str(tour_id)}
            )
            raise NotFoundError(
                resource_type="tour",
                resource_id=str(tour_id)
            )
        return tour
