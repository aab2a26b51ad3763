"""Authentication Pydantic schemas."""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..core.permissions import ROLE_CAPABILITIES, Role


class LoginRequest(BaseModel):
    """Request schema for logging in."""

    username: str = Field(..., min_length=1, max_length=128, description="Username")
    password: str = Field(..., min_length=1, max_length=256, description="Password")


class UserResponse(BaseModel):
    """Public view of a user account."""

    id: UUID = Field(..., description="User ID")
    username: str = Field(..., description="Username")
    email: str = Field(..., description="E-mail address")
    full_name: str = Field(..., description="Display name")
    role: str = Field(..., description="Role")
    business_id: Optional[UUID] = Field(None, description="Business the user belongs to")
    is_active: bool = Field(..., description="Whether the account is active")
    referral_code: Optional[str] = Field(None, description="Personal referral code")
    permissions: list[str] = Field(default_factory=list, description="Capabilities granted by the role")

    class Config:
        from_attributes = True

    @classmethod
    def from_user(cls, user) -> "UserResponse":
        response = cls.model_validate(user)
        try:
            capabilities = ROLE_CAPABILITIES[Role(user.role)]
        except ValueError:
            capabilities = frozenset()
        response.permissions = sorted(c.value for c in capabilities)
        return response


class LoginResponse(BaseModel):
    """Response schema for a successful login."""

    user: UserResponse = Field(..., description="Authenticated user")
    access_token: str = Field(..., description="Bearer token for subsequent requests")
    token_type: str = Field("bearer", description="Token type")
