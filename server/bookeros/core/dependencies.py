"""FastAPI dependencies for database, authentication, authorization and collaborators."""

from functools import lru_cache
from typing import Callable, Optional
from uuid import UUID

from fastapi import Depends, Header
from jwt import PyJWTError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.user import User
from ..services.email_service import EmailService, build_email_service
from ..services.payment_gateway import PaymentGateway, build_payment_gateway
from .database import get_db
from .exceptions import AuthenticationError, AuthorizationError, ValidationError
from .permissions import Capability, has_capability
from .security import decode_access_token


def _parse_bearer(authorization: str) -> str:
    try:
        scheme, token = authorization.split()
    except ValueError:
        raise AuthenticationError(detail="Invalid authorization header format")
    if scheme.lower() != "bearer":
        raise AuthenticationError(detail="Invalid authentication scheme")
    return token


async def _load_user(token: str, db: AsyncSession) -> User:
    try:
        payload = decode_access_token(token)
    except PyJWTError as e:
        raise AuthenticationError(detail=f"Token validation failed: {e}")

    if payload.get("type") != "access" or not payload.get("sub"):
        raise AuthenticationError(detail="Invalid token payload")

    try:
        user_id = UUID(payload["sub"])
    except ValueError:
        raise AuthenticationError(detail="Invalid token subject")

    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        raise AuthenticationError(detail="User account is not active")
    return user


async def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Authentication dependency that validates Bearer tokens.

    Returns:
        User: The active user the token was issued to

    Raises:
        AuthenticationError: If the token is missing, invalid or expired
    """
    if not authorization:
        raise AuthenticationError(detail="Authorization header missing")
    return await _load_user(_parse_bearer(authorization), db)


async def get_optional_user(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """Like get_current_user, but anonymous requests yield None."""
    if not authorization:
        return None
    return await _load_user(_parse_bearer(authorization), db)


def require_capability(capability: Capability) -> Callable:
    """
    Build a dependency that admits only users whose role grants the capability.

    Usage:
        user: User = Depends(require_capability(Capability.REFUND_PAYMENTS))
    """

    async def dependency(user: User = Depends(get_current_user)) -> User:
        if not has_capability(user.role, capability):
            raise AuthorizationError(
                detail=f"Role '{user.role}' is not allowed to {capability.value.replace('_', ' ')}",
                required_permissions=[capability.value],
            )
        return user

    return dependency


async def get_idempotency_key(
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key")
) -> Optional[str]:
    """
    Extract and validate the idempotency key header.

    Raises:
        ValidationError: If the key is longer than 255 characters or blank
    """
    if idempotency_key is None:
        return None
    idempotency_key = idempotency_key.strip()
    if not idempotency_key or len(idempotency_key) > 255:
        raise ValidationError(
            detail="Idempotency key must be between 1 and 255 characters",
            violations=[{"path": "header.Idempotency-Key", "message": "invalid length"}],
        )
    return idempotency_key


@lru_cache
def get_payment_gateway() -> PaymentGateway:
    """Process-wide payment gateway; tests override this dependency."""
    return build_payment_gateway()


@lru_cache
def get_email_service() -> EmailService:
    """Process-wide e-mail backend; tests override this dependency."""
    return build_email_service()
