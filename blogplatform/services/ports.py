"""Storage ports used by the authentication services.

The services depend on these protocols rather than on SQLAlchemy directly so
that unit tests can swap in in-memory implementations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol
from uuid import UUID

from blogplatform.models.user import Role, User


@dataclass(frozen=True, slots=True)
class CompromisedTokenRecord:
    """
    A refresh token hash that must be rejected until ``expires_at``.

    :param token_hash: SHA-256 hex digest of the raw refresh token.
    :param compromised_at: When the token was blacklisted (UTC).
    :param expires_at: When the entry may be purged (UTC).
    :param reason: Short label such as ``logout`` or ``token_refresh``.
    """

    token_hash: str
    compromised_at: datetime
    expires_at: datetime
    reason: str | None = None


class CompromisedTokenStore(Protocol):
    """
    Persistence for compromised refresh tokens.

    ``add`` is idempotent on ``token_hash``: adding a hash that already exists
    returns ``False`` and never raises.
    """

    async def is_compromised(self, token_hash: str) -> bool: ...
    async def add(self, record: CompromisedTokenRecord) -> bool: ...
    async def remove_expired(self, cutoff: datetime) -> int: ...


@dataclass(frozen=True, slots=True)
class IdentityResult:
    """Outcome of a user store write, with user-facing error messages."""

    succeeded: bool
    errors: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def success(cls) -> IdentityResult:
        return cls(succeeded=True)

    @classmethod
    def failed(cls, *errors: str) -> IdentityResult:
        return cls(succeeded=False, errors=tuple(errors))


@dataclass(frozen=True, slots=True)
class PasswordCheckResult:
    """Outcome of a password check that counts failed attempts."""

    succeeded: bool
    is_locked_out: bool = False


class UserStore(Protocol):
    """User lookup, password verification, lockout and role membership."""

    async def find_by_email(self, email: str) -> User | None: ...
    async def find_by_id(self, user_id: str | UUID) -> User | None: ...
    async def create(self, user: User, password: str) -> IdentityResult: ...
    async def check_password(self, user: User, password: str) -> PasswordCheckResult: ...
    async def is_locked_out(self, user: User) -> bool: ...
    async def get_lockout_end(self, user: User) -> datetime | None: ...
    async def get_roles(self, user: User) -> list[Role]: ...
    async def add_to_role(self, user: User, role: Role) -> None: ...
    async def update_security_stamp(self, user: User) -> None: ...
    async def update(self, user: User) -> None: ...
