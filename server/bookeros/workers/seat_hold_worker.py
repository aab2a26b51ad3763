"""Background worker for reaping expired seat holds."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from ..core.database import async_session_factory
from ..core.observability import metrics_collector
from ..services.availability_service import AvailabilityService
from ..services.idempotency_service import IdempotencyService
from .base import BaseWorker, Clock

logger = logging.getLogger(__name__)


class SeatHoldCleanupWorker(BaseWorker):
    """
    Deletes seat holds past their expiry, along with expired idempotency records.

    Capacity checks already ignore expired holds; this keeps the tables small.
    """

    def __init__(
        self,
        interval_seconds: int = 60,
        session_factory: Optional[async_sessionmaker] = None,
        clock: Optional[Clock] = None,
    ):
        super().__init__(name="SeatHoldCleanup", interval_seconds=interval_seconds, clock=clock)
        self.session_factory = session_factory or async_session_factory

    async def run_once(self, now: datetime) -> int:
        async with self.session_factory() as db:
            try:
                expired_count = await AvailabilityService(db).cleanup_expired_seat_holds(now)
                await IdempotencyService(db).cleanup_expired_records(now)
            except Exception as e:
                await db.rollback()
                logger.error(
                    f"Error expiring seat holds: {e!s}",
                    exc_info=True,
                    extra={"worker": self.name}
                )
                raise

        if expired_count > 0:
            metrics_collector.record_seat_holds_expired(expired_count)
            logger.info(
                f"Expired {expired_count} seat holds",
                extra={
                    "expired_count": expired_count,
                    "timestamp": now.isoformat(),
                    "worker": self.name,
                }
            )
        return expired_count
