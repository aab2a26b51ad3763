"""Background workers for BookerOS."""

from .notification_worker import NotificationSweepWorker
from .seat_hold_worker import SeatHoldCleanupWorker

__all__ = ["NotificationSweepWorker", "SeatHoldCleanupWorker"]
