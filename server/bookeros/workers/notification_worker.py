"""Background worker for scheduled customer e-mails."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from ..core.database import async_session_factory
from ..services.email_service import EmailService, build_email_service
from ..services.notification_service import NotificationService, SweepResult
from .base import BaseWorker, Clock

logger = logging.getLogger(__name__)


class NotificationSweepWorker(BaseWorker):
    """
    Sends upcoming-tour reminders, review requests and cart recovery e-mails.

    Each sweep is isolated: one failing sweep is logged and the others
    still run.
    """

    def __init__(
        self,
        interval_seconds: int = 3600,
        email_service: Optional[EmailService] = None,
        session_factory: Optional[async_sessionmaker] = None,
        clock: Optional[Clock] = None,
    ):
        super().__init__(name="NotificationSweep", interval_seconds=interval_seconds, clock=clock)
        self.email_service = email_service or build_email_service()
        self.session_factory = session_factory or async_session_factory

    async def run_once(self, now: datetime) -> list[SweepResult]:
        async with self.session_factory() as db:
            results = await NotificationService(db, self.email_service).run_all(now)

        logger.info(
            "Notification sweeps completed",
            extra={
                "worker": self.name,
                "timestamp": now.isoformat(),
                **{f"{r.kind}_sent": r.sent for r in results},
            }
        )
        return results
