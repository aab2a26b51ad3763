"""Authentication router."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import get_current_user
from ..models.user import User
from ..schemas.auth import LoginRequest, LoginResponse, UserResponse
from ..schemas.common import MessageResponse
from ..services.auth_service import AuthService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse)
async def login(request: LoginRequest, db: AsyncSession = Depends(get_db)) -> JSONResponse:
    """Exchange username and password for a bearer token."""
    user, token = await AuthService(db).authenticate(request.username, request.password)
    response_data = LoginResponse(user=UserResponse.from_user(user), access_token=token)
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)) -> JSONResponse:
    return JSONResponse(status_code=200, content=UserResponse.from_user(user).model_dump(mode="json"))


@router.post("/logout", response_model=MessageResponse)
async def logout(user: User = Depends(get_current_user)) -> JSONResponse:
    """
    Acknowledge a logout.

    Tokens are stateless; the client discards its token.
    """
    logger.info("User logged out", extra={"user_id": str(user.id)})
    return JSONResponse(status_code=200, content=MessageResponse(message="Logged out").model_dump())
