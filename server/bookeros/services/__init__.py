"""Service layer package."""

from .auth_service import AuthService
from .availability_service import AvailabilityService
from .booking_service import BookingService
from .discount_service import DiscountResolver
from .finance_service import FinanceService
from .idempotency_service import IdempotencyService
from .media_service import MediaService
from .notification_service import NotificationService
from .payment_service import PaymentService
from .promotion_service import PromotionService
from .ticket_service import TicketService
from .tour_service import TourService

__all__ = [
    "AuthService",
    "AvailabilityService",
    "BookingService",
    "DiscountResolver",
    "FinanceService",
    "IdempotencyService",
    "MediaService",
    "NotificationService",
    "PaymentService",
    "PromotionService",
    "TicketService",
    "TourService",
]
