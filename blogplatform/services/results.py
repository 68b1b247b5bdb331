"""Result objects returned by the authentication service."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from blogplatform.models.user import Role


@dataclass(frozen=True, slots=True)
class UserProfile:
    """
    Public view of a user account.

    :param user_id: Account identifier.
    :param email: Email address as registered.
    :param full_name: Display name.
    :param roles: Role names held by the user.
    """

    user_id: UUID
    email: str
    full_name: str
    roles: tuple[Role, ...] = ()


@dataclass(frozen=True, slots=True)
class AuthResult:
    """Outcome of register/login/refresh.

    Business failures (wrong password, reused refresh token, ...) are returned
    as ``AuthResult.failed(...)`` rather than raised.
    """

    success: bool
    access_token: str | None = None
    refresh_token: str | None = None
    access_token_expires_at: datetime | None = None
    profile: UserProfile | None = None
    errors: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def succeeded(
        cls,
        *,
        access_token: str,
        refresh_token: str,
        access_token_expires_at: datetime,
        profile: UserProfile,
    ) -> AuthResult:
        return cls(
            success=True,
            access_token=access_token,
            refresh_token=refresh_token,
            access_token_expires_at=access_token_expires_at,
            profile=profile,
        )

    @classmethod
    def failed(cls, *errors: str) -> AuthResult:
        return cls(success=False, errors=tuple(errors))
