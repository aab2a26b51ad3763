"""Row-level access checks for business-scoped staff."""

import logging

from ..core.exceptions import AuthorizationError
from ..core.permissions import is_business_scoped

logger = logging.getLogger(__name__)


def scoped_business_id(user):
    """Business a listing must be restricted to, or None when the user sees everything."""
    if user is not None and is_business_scoped(user.role):
        return user.business_id
    return None


def ensure_tour_access(user, tour) -> None:
    """
    Business and manager accounts may only act on tours of their own business.

    Raises:
        AuthorizationError: If the tour belongs to another business
    """
    if user is None or not is_business_scoped(user.role):
        return
    if user.business_id is None or tour.business_id != user.business_id:
        logger.warning(
            "Cross-business access denied",
            extra={"user_id": str(user.id), "tour_id": str(tour.id)}
        )
        raise AuthorizationError(detail="This tour belongs to another business")
