"""FastAPI routers package."""

from .auth import router as auth_router
from .availability import router as availability_router
from .bookings import router as bookings_router
from .finance import router as finance_router
from .health import router as health_router
from .media import router as media_router
from .metrics import router as metrics_router
from .payments import router as payments_router
from .promotions import router as promotions_router
from .tickets import router as tickets_router
from .tours import router as tours_router

__all__ = [
    "auth_router",
    "availability_router",
    "bookings_router",
    "finance_router",
    "health_router",
    "media_router",
    "metrics_router",
    "payments_router",
    "promotions_router",
    "tickets_router",
    "tours_router",
]
