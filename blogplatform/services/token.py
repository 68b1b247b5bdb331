"""JWT access tokens, opaque refresh tokens and refresh-token compromise tracking."""

import base64
import hashlib
import secrets
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import uuid4

import jwt
from jwt.exceptions import PyJWTError

from blogplatform.core.config import JwtSettings
from blogplatform.core.logging import get_logger
from blogplatform.models.base import utc_now
from blogplatform.models.user import Role, User
from blogplatform.services.ports import CompromisedTokenRecord, CompromisedTokenStore

logger = get_logger("token")

REFRESH_TOKEN_BYTES = 64

# Claims every access token must carry to be accepted
REQUIRED_CLAIMS = ["sub", "jti", "iat", "exp", "iss", "aud", "stamp"]


@dataclass(frozen=True, slots=True)
class TokenPrincipal:
    """Identity asserted by a validated access token."""

    user_id: str
    email: str | None
    name: str | None
    roles: frozenset[Role]
    token_id: str
    security_stamp: str
    expires_at: datetime

    @property
    def is_admin(self) -> bool:
        return Role.ADMIN in self.roles


def hash_token(raw_token: str) -> str:
    """SHA-256 hex digest of a raw token; only digests are ever stored."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def _principal_from_claims(claims: dict[str, Any]) -> TokenPrincipal | None:
    raw_roles = claims.get("roles", [])
    if isinstance(raw_roles, str):
        raw_roles = [raw_roles]
    if not isinstance(raw_roles, list):
        return None
    roles = set()
    for name in raw_roles:
        try:
            roles.add(Role(name))
        except ValueError:
            continue
    return TokenPrincipal(
        user_id=str(claims["sub"]),
        email=claims.get("email"),
        name=claims.get("name"),
        roles=frozenset(roles),
        token_id=str(claims["jti"]),
        security_stamp=str(claims["stamp"]),
        expires_at=datetime.fromtimestamp(claims["exp"], UTC),
    )


class TokenService:
    """Issues and validates tokens, and records compromised refresh tokens.

    Access tokens are HS256 JWTs validated with zero clock skew. Refresh
    tokens are opaque random strings; they are never stored while valid, only
    their hashes once used or revoked.
    """

    def __init__(
        self,
        jwt_settings: JwtSettings,
        store: CompromisedTokenStore,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.settings = jwt_settings
        self.store = store
        self.clock = clock

    def now(self) -> datetime:
        return self.clock()

    def access_token_expiration(self) -> datetime:
        return self.clock() + timedelta(minutes=self.settings.access_token_expire_minutes)

    def refresh_token_expiration(self) -> datetime:
        return self.clock() + timedelta(days=self.settings.refresh_token_expire_days)

    def issue_access_token(self, user: User, roles: Iterable[Role]) -> str:
        """Create a signed access token for a user."""
        issued_at = self.clock()
        payload = {
            "sub": str(user.id),
            "email": user.email,
            "name": user.full_name,
            "jti": uuid4().hex,
            "iss": self.settings.issuer,
            "aud": self.settings.audience,
            "iat": issued_at,
            "exp": issued_at + timedelta(minutes=self.settings.access_token_expire_minutes),
            "roles": [Role(role).value for role in roles],
            "stamp": user.security_stamp,
        }
        token = jwt.encode(
            payload, self.settings.secret_key, algorithm=self.settings.algorithm
        )
        return str(token)

    def issue_refresh_token(self) -> str:
        """Create an opaque refresh token (64 random bytes, base64)."""
        return base64.b64encode(secrets.token_bytes(REFRESH_TOKEN_BYTES)).decode("ascii")

    def _decode(self, token: str, verify_exp: bool = True) -> dict[str, Any]:
        return jwt.decode(
            token,
            self.settings.secret_key,
            algorithms=[self.settings.algorithm],
            audience=self.settings.audience,
            issuer=self.settings.issuer,
            leeway=0,
            options={"require": REQUIRED_CLAIMS, "verify_exp": verify_exp},
        )

    def read_access_token(self, token: str) -> TokenPrincipal | None:
        """Fully validate an access token and return its principal."""
        try:
            claims = self._decode(token)
        except PyJWTError as e:
            logger.debug(f"Access token rejected: {e}")
            return None
        return _principal_from_claims(claims)

    def verify_access_token(self, token: str) -> bool:
        """Check signature, issuer, audience, lifetime and required claims."""
        return self.read_access_token(token) is not None

    def get_principal_from_expired_token(self, token: str) -> TokenPrincipal | None:
        """Validate everything except expiry.

        Used by the refresh flow, where the access token is expected to have
        expired. Tokens not signed with HS256 are rejected outright.
        """
        try:
            header = jwt.get_unverified_header(token)
        except PyJWTError as e:
            logger.debug(f"Malformed access token presented for refresh: {e}")
            return None
        if header.get("alg") != self.settings.algorithm:
            logger.warning(
                f"SECURITY: access token with unexpected algorithm '{header.get('alg')}' "
                "presented for refresh"
            )
            return None

        try:
            claims = self._decode(token, verify_exp=False)
        except PyJWTError as e:
            logger.debug(f"Expired access token rejected: {e}")
            return None
        return _principal_from_claims(claims)

    def hash_token(self, raw_token: str) -> str:
        return hash_token(raw_token)

    async def is_refresh_token_compromised(self, refresh_token: str) -> bool:
        compromised = await self.store.is_compromised(hash_token(refresh_token))
        if compromised:
            logger.warning("SECURITY: attempt to use a compromised refresh token")
        return compromised

    async def compromise_refresh_token(self, refresh_token: str, reason: str) -> bool:
        """Blacklist a refresh token until it would have expired.

        Returns True if this call recorded it, False if it was already
        recorded (for example by a concurrent refresh).
        """
        now = self.clock()
        record = CompromisedTokenRecord(
            token_hash=hash_token(refresh_token),
            compromised_at=now,
            expires_at=now + timedelta(days=self.settings.refresh_token_expire_days),
            reason=reason,
        )
        written = await self.store.add(record)
        if written:
            logger.info(f"Refresh token marked as compromised (reason: {reason})")
        return written

    async def purge_expired_compromised_tokens(self) -> int:
        """Delete blacklist entries that expired before now."""
        removed = await self.store.remove_expired(self.clock())
        if removed > 0:
            logger.info(f"Purged {removed} expired compromised refresh tokens")
        return removed
