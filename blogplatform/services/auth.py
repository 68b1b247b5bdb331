"""Authentication service: registration, login, token refresh and revocation."""

from datetime import datetime
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from blogplatform.core.logging import get_logger
from blogplatform.models.user import Role, User
from blogplatform.services.ports import UserStore
from blogplatform.services.results import AuthResult, UserProfile
from blogplatform.services.token import TokenPrincipal, TokenService

logger = get_logger("auth")

# Compromise reasons recorded alongside blacklisted refresh tokens
REASON_TOKEN_REFRESH = "token_refresh"
REASON_LOGOUT = "logout"

PASSWORDS_DO_NOT_MATCH = "Passwords do not match."
EMAIL_ALREADY_EXISTS = "A user with this email already exists."
INVALID_CREDENTIALS = "Invalid email or password."
ACCOUNT_LOCKED_NOW = (
    "Account has been locked due to multiple failed login attempts. Please try again later."
)
INVALID_REFRESH_TOKEN = "Invalid refresh token. Please login again."
INVALID_ACCESS_TOKEN = "Invalid access token."
USER_NOT_FOUND = "User not found."
ACCOUNT_LOCKED = "Account is locked."


def account_locked_until(lockout_end: datetime | None) -> str:
    if lockout_end is None:
        return ACCOUNT_LOCKED
    return f"Account is locked. Please try again after {lockout_end:%Y-%m-%d %H:%M:%S} UTC."


class AuthService:
    """Service for authentication operations.

    Expected failures come back as ``AuthResult.failed``; database and
    configuration errors propagate to the caller.
    """

    def __init__(self, user_store: UserStore, token_service: TokenService):
        self.users = user_store
        self.tokens = token_service

    async def _profile(self, user: User, roles: list[Role] | None = None) -> UserProfile:
        if roles is None:
            roles = await self.users.get_roles(user)
        return UserProfile(
            user_id=user.id,
            email=user.email,
            full_name=user.full_name,
            roles=tuple(roles),
        )

    async def _issue_tokens(self, user: User) -> AuthResult:
        roles = await self.users.get_roles(user)
        return AuthResult.succeeded(
            access_token=self.tokens.issue_access_token(user, roles),
            refresh_token=self.tokens.issue_refresh_token(),
            access_token_expires_at=self.tokens.access_token_expiration(),
            profile=await self._profile(user, roles),
        )

    async def register(
        self, email: str, password: str, confirm_password: str, full_name: str
    ) -> AuthResult:
        """Create an account with the User role and sign it in."""
        if password != confirm_password:
            return AuthResult.failed(PASSWORDS_DO_NOT_MATCH)

        if await self.users.find_by_email(email) is not None:
            logger.info(f"Registration rejected, email already in use: {email}")
            return AuthResult.failed(EMAIL_ALREADY_EXISTS)

        user = User(email=email.strip(), full_name=full_name.strip())
        result = await self.users.create(user, password)
        if not result.succeeded:
            logger.info(f"Registration failed for {email}: {', '.join(result.errors)}")
            return AuthResult.failed(*result.errors)

        await self.users.add_to_role(user, Role.USER)
        logger.info(f"User registered: {user.email}")
        return await self._issue_tokens(user)

    async def login(self, email: str, password: str) -> AuthResult:
        """Authenticate with email and password.

        Unknown email and wrong password produce the same message to prevent
        user enumeration. A locked account is rejected before the password is
        checked.
        """
        user = await self.users.find_by_email(email)
        if user is None:
            logger.warning(f"Login failed: unknown email {email}")
            return AuthResult.failed(INVALID_CREDENTIALS)

        if await self.users.is_locked_out(user):
            lockout_end = await self.users.get_lockout_end(user)
            logger.warning(f"Login failed: account locked for {email}")
            return AuthResult.failed(account_locked_until(lockout_end))

        check = await self.users.check_password(user, password)
        if check.is_locked_out:
            return AuthResult.failed(ACCOUNT_LOCKED_NOW)
        if not check.succeeded:
            logger.warning(f"Login failed: invalid password for {email}")
            return AuthResult.failed(INVALID_CREDENTIALS)

        user.last_login_at = self.tokens.now()
        try:
            await self.users.update(user)
        except SQLAlchemyError as e:
            logger.warning(f"Could not record last login for {email}: {e}")

        logger.info(f"User logged in: {email}")
        return await self._issue_tokens(user)

    async def refresh_token(self, access_token: str, refresh_token: str) -> AuthResult:
        """Rotate a token pair.

        The presented refresh token is blacklisted before the new pair is
        issued, so each refresh token can be used once.
        """
        if await self.tokens.is_refresh_token_compromised(refresh_token):
            return AuthResult.failed(INVALID_REFRESH_TOKEN)

        principal = self.tokens.get_principal_from_expired_token(access_token)
        if principal is None or not principal.user_id:
            return AuthResult.failed(INVALID_ACCESS_TOKEN)

        user = await self.users.find_by_id(principal.user_id)
        if user is None:
            return AuthResult.failed(USER_NOT_FOUND)

        if await self.users.is_locked_out(user):
            logger.warning(f"Token refresh rejected: account locked for user {user.id}")
            return AuthResult.failed(ACCOUNT_LOCKED)

        if principal.security_stamp != user.security_stamp:
            logger.warning(
                f"SECURITY: token refresh with revoked access token for user {user.id}"
            )
            return AuthResult.failed(INVALID_REFRESH_TOKEN)

        if not await self.tokens.compromise_refresh_token(refresh_token, REASON_TOKEN_REFRESH):
            logger.warning(
                f"SECURITY: refresh token for user {user.id} was consumed by a concurrent request"
            )
            return AuthResult.failed(INVALID_REFRESH_TOKEN)

        await self.tokens.purge_expired_compromised_tokens()

        logger.info(f"Token refreshed for user {user.id}")
        return await self._issue_tokens(user)

    async def logout(self, user_id: str | UUID, refresh_token: str) -> bool:
        """Blacklist the refresh token. Always succeeds."""
        await self.tokens.compromise_refresh_token(refresh_token, REASON_LOGOUT)
        logger.info(f"User {user_id} logged out")
        return True

    async def revoke_all_tokens(self, user_id: str | UUID) -> bool:
        """Invalidate every token issued to a user by rotating the security stamp."""
        user = await self.users.find_by_id(user_id)
        if user is None:
            return False
        await self.users.update_security_stamp(user)
        logger.info(f"All tokens revoked for user {user.id}")
        return True

    async def get_user_info(self, user_id: str | UUID) -> UserProfile | None:
        user = await self.users.find_by_id(user_id)
        if user is None:
            return None
        return await self._profile(user)

    async def validate_token_user(self, principal: TokenPrincipal) -> User | None:
        """Check that the token's user exists and its security stamp is current."""
        user = await self.users.find_by_id(principal.user_id)
        if user is None:
            logger.debug(f"Token for unknown user {principal.user_id}")
            return None
        if user.security_stamp != principal.security_stamp:
            logger.warning(f"SECURITY: revoked access token presented for user {user.id}")
            return None
        return user
