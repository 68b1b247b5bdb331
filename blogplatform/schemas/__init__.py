# Blog Platform Schemas
from blogplatform.schemas.auth import (
    LoginRequest,
    LogoutRequest,
    MessageResponse,
    RefreshTokenRequest,
    RegisterRequest,
    TokenResponse,
    UserInfoResponse,
)

__all__ = [
    "LoginRequest",
    "LogoutRequest",
    "MessageResponse",
    "RefreshTokenRequest",
    "RegisterRequest",
    "TokenResponse",
    "UserInfoResponse",
]
