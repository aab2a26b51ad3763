"""Authentication service: credential checks and token issuance."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import AuthenticationError
from ..core.security import create_access_token, verify_password
from ..models.user import User

logger = logging.getLogger(__name__)


class AuthService:
    """Service for logging users in."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user_by_username(self, username: str) -> Optional[User]:
        stmt = select(User).where(func.lower(User.username) == username.strip().lower())
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def authenticate(self, username: str, password: str) -> tuple[User, str]:
        """
        Verify credentials and issue an access token.

        The same error is raised for an unknown user and a wrong password.

        Returns:
            Tuple of (user, access token)

        Raises:
            AuthenticationError: If the credentials are invalid or the account is disabled
        """
        user = await self.get_user_by_username(username)
        if user is None or not verify_password(password, user.password_hash):
            logger.warning("Login failed", extra={"username": username})
            raise AuthenticationError(detail="Invalid username or password")
        if not user.is_active:
            logger.warning("Login for disabled account", extra={"user_id": str(user.id)})
            raise AuthenticationError(detail="User account is not active")

        user.last_login = datetime.utcnow()
        await self.db.commit()

        token = create_access_token({
            "sub": str(user.id),
            "username": user.username,
            "role": user.role,
            "business_id": str(user.business_id) if user.business_id else None,
        })

        logger.info("User logged in", extra={"user_id": str(user.id), "role": user.role})
        return user, token
