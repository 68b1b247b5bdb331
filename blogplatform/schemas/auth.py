"""Pydantic schemas for authentication API."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class RegisterRequest(BaseModel):
    """Request for account registration."""

    email: str = Field(..., max_length=256, pattern=EMAIL_PATTERN, description="Email address")
    password: str = Field(
        ...,
        min_length=8,
        max_length=100,
        description="Password (8-100 chars, must meet complexity requirements)",
    )
    confirm_password: str = Field(..., min_length=1, description="Must match password")
    full_name: str = Field(..., min_length=2, max_length=100)


class LoginRequest(BaseModel):
    """Request for login."""

    email: str = Field(..., min_length=1, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=1)


class RefreshTokenRequest(BaseModel):
    """Request for token refresh. The access token may be expired."""

    access_token: str = Field(..., min_length=1)
    refresh_token: str = Field(..., min_length=1)


class LogoutRequest(BaseModel):
    """Request for logout; the refresh token is blacklisted."""

    refresh_token: str = Field(..., min_length=1)


class UserInfoResponse(BaseModel):
    """Response with user information."""

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    email: str
    full_name: str
    roles: list[str]


class TokenResponse(BaseModel):
    """Response with a new token pair."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_at: datetime = Field(description="Access token expiry (UTC)")
    expires_in: int = Field(description="Access token expiry in seconds")
    user: UserInfoResponse


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str
