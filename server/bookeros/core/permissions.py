"""Role to capability mapping used by the authorization dependencies."""

from enum import Enum


class Role(str, Enum):
    """User roles."""
    MASTER_ADMIN = "master_admin"
    BUSINESS = "business"
    MANAGER = "manager"
    SELLER = "seller"
    CUSTOMER = "customer"


class Capability(str, Enum):
    """Actions a role may be granted."""
    MANAGE_TOURS = "manage_tours"
    MANAGE_AVAILABILITY = "manage_availability"
    MANAGE_BOOKINGS = "manage_bookings"
    VIEW_BOOKINGS = "view_bookings"
    CHECK_IN = "check_in"
    REDEEM_TICKETS = "redeem_tickets"
    VIEW_REDEMPTIONS = "view_redemptions"
    CONFIRM_CASH_PAYMENT = "confirm_cash_payment"
    REFUND_PAYMENTS = "refund_payments"
    VIEW_PAYMENTS = "view_payments"
    VIEW_FINANCIALS = "view_financials"
    CONFIGURE_RETENTIONS = "configure_retentions"
    MANAGE_COUPONS = "manage_coupons"
    UPLOAD_MEDIA = "upload_media"
    CONNECT_PAYOUTS = "connect_payouts"


ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.MASTER_ADMIN: frozenset({
        Capability.MANAGE_TOURS,
        Capability.MANAGE_AVAILABILITY,
        Capability.MANAGE_BOOKINGS,
        Capability.VIEW_BOOKINGS,
        Capability.CHECK_IN,
        Capability.VIEW_REDEMPTIONS,
        Capability.CONFIRM_CASH_PAYMENT,
        Capability.REFUND_PAYMENTS,
        Capability.VIEW_PAYMENTS,
        Capability.VIEW_FINANCIALS,
        Capability.CONFIGURE_RETENTIONS,
        Capability.MANAGE_COUPONS,
        Capability.UPLOAD_MEDIA,
    }),
    Role.BUSINESS: frozenset({
        Capability.MANAGE_TOURS,
        Capability.MANAGE_AVAILABILITY,
        Capability.MANAGE_BOOKINGS,
        Capability.VIEW_BOOKINGS,
        Capability.CHECK_IN,
        Capability.REDEEM_TICKETS,
        Capability.VIEW_REDEMPTIONS,
        Capability.VIEW_FINANCIALS,
        Capability.MANAGE_COUPONS,
        Capability.UPLOAD_MEDIA,
        Capability.CONNECT_PAYOUTS,
    }),
    Role.MANAGER: frozenset({
        Capability.MANAGE_TOURS,
        Capability.MANAGE_AVAILABILITY,
        Capability.MANAGE_BOOKINGS,
        Capability.VIEW_BOOKINGS,
        Capability.CHECK_IN,
        Capability.REDEEM_TICKETS,
        Capability.VIEW_REDEMPTIONS,
        Capability.UPLOAD_MEDIA,
    }),
    Role.SELLER: frozenset({
        Capability.VIEW_BOOKINGS,
        Capability.CHECK_IN,
        Capability.CONFIRM_CASH_PAYMENT,
        Capability.CONNECT_PAYOUTS,
    }),
    Role.CUSTOMER: frozenset(),
}


def has_capability(role: str | None, capability: Capability) -> bool:
    """Return True if the role is granted the capability."""
    try:
        return capability in ROLE_CAPABILITIES[Role(role)]
    except ValueError:
        return False


def is_business_scoped(role: str | None) -> bool:
    """Business staff only see data belonging to their own business."""
    return role in (Role.BUSINESS.value, Role.MANAGER.value)
