"""SQLAlchemy user store: Argon2 password hashing, password policy, lockout."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from uuid import UUID

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from blogplatform.core.logging import get_logger
from blogplatform.models.base import utc_now
from blogplatform.models.user import Role, User, UserRole, new_security_stamp
from blogplatform.services.ports import IdentityResult, PasswordCheckResult

logger = get_logger("user_store")

# Argon2 password hasher with recommended parameters
# Memory: 64 MiB, Time: 3 iterations, Parallelism: 4
default_password_hasher = PasswordHasher(
    time_cost=3,
    memory_cost=65536,
    parallelism=4,
    hash_len=32,
    salt_len=16,
)

MIN_PASSWORD_LENGTH = 8
MIN_UNIQUE_PASSWORD_CHARS = 4

DEFAULT_MAX_FAILED_ATTEMPTS = 5
DEFAULT_LOCKOUT_DURATION = timedelta(minutes=15)


def password_policy_errors(password: str) -> list[str]:
    """Return every password rule the candidate violates."""
    errors = []
    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Passwords must be at least {MIN_PASSWORD_LENGTH} characters.")
    if all(ch.isalnum() for ch in password):
        errors.append("Passwords must have at least one non alphanumeric character.")
    if not any(ch.isdigit() for ch in password):
        errors.append("Passwords must have at least one digit ('0'-'9').")
    if not any(ch.islower() for ch in password):
        errors.append("Passwords must have at least one lowercase ('a'-'z').")
    if not any(ch.isupper() for ch in password):
        errors.append("Passwords must have at least one uppercase ('A'-'Z').")
    if len(set(password)) < MIN_UNIQUE_PASSWORD_CHARS:
        errors.append(
            f"Passwords must use at least {MIN_UNIQUE_PASSWORD_CHARS} different characters."
        )
    return errors


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; they were written as UTC.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


class SqlAlchemyUserStore:
    """User store over an ``AsyncSession``.

    Every failed password check increments ``access_failed_count``; reaching
    ``max_failed_attempts`` locks the account for ``lockout_duration`` and
    resets the counter. A successful check resets the counter.
    """

    def __init__(
        self,
        session: AsyncSession,
        hasher: PasswordHasher | None = None,
        max_failed_attempts: int = DEFAULT_MAX_FAILED_ATTEMPTS,
        lockout_duration: timedelta = DEFAULT_LOCKOUT_DURATION,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.session = session
        self.hasher = hasher or default_password_hasher
        self.max_failed_attempts = max_failed_attempts
        self.lockout_duration = lockout_duration
        self.clock = clock

    async def find_by_email(self, email: str) -> User | None:
        """Get user by email (case-insensitive)."""
        result = await self.session.execute(
            select(User).where(User.normalized_email == normalize_email(email))
        )
        return result.scalar_one_or_none()

    async def find_by_id(self, user_id: str | UUID) -> User | None:
        """Get user by ID; malformed IDs resolve to no user."""
        if not isinstance(user_id, UUID):
            try:
                user_id = UUID(str(user_id))
            except ValueError:
                return None
        return await self.session.get(User, user_id)

    async def create(self, user: User, password: str) -> IdentityResult:
        """Validate the password and persist a new user."""
        errors = password_policy_errors(password)
        user.normalized_email = normalize_email(user.email)
        if await self.find_by_email(user.normalized_email) is not None:
            errors.append(f"Email '{user.email}' is already taken.")
        if errors:
            return IdentityResult.failed(*errors)

        user.password_hash = self.hasher.hash(password)
        if not user.security_stamp:
            user.security_stamp = new_security_stamp()
        self.session.add(user)
        await self.session.flush()

        logger.info(f"Created user: {user.email}")
        return IdentityResult.success()

    def verify_password(self, user: User, password: str) -> bool:
        """Verify a password against the stored hash (constant-time)."""
        try:
            return self.hasher.verify(user.password_hash, password)
        except VerifyMismatchError:
            return False
        except (InvalidHashError, VerificationError):
            logger.warning(f"Stored password hash for user {user.id} could not be verified")
            return False

    async def check_password(self, user: User, password: str) -> PasswordCheckResult:
        """Check a password and update lockout counters."""
        if await self.is_locked_out(user):
            return PasswordCheckResult(succeeded=False, is_locked_out=True)

        if self.verify_password(user, password):
            if user.access_failed_count:
                user.access_failed_count = 0
                await self.session.flush()
            return PasswordCheckResult(succeeded=True)

        if not user.lockout_enabled:
            return PasswordCheckResult(succeeded=False)

        user.access_failed_count += 1
        locked = user.access_failed_count >= self.max_failed_attempts
        if locked:
            user.lockout_end = self.clock() + self.lockout_duration
            user.access_failed_count = 0
            logger.warning(
                f"SECURITY: account {user.email} locked until {user.lockout_end.isoformat()} "
                f"after {self.max_failed_attempts} failed attempts"
            )
        await self.session.flush()
        return PasswordCheckResult(succeeded=False, is_locked_out=locked)

    async def is_locked_out(self, user: User) -> bool:
        if not user.lockout_enabled:
            return False
        lockout_end = _as_utc(user.lockout_end)
        return lockout_end is not None and lockout_end > self.clock()

    async def get_lockout_end(self, user: User) -> datetime | None:
        return _as_utc(user.lockout_end)

    async def get_roles(self, user: User) -> list[Role]:
        """Get the user's roles, ignoring names outside the Role enum."""
        result = await self.session.execute(
            select(UserRole.role).where(UserRole.user_id == user.id).order_by(UserRole.role)
        )
        roles = []
        for name in result.scalars():
            try:
                roles.append(Role(name))
            except ValueError:
                logger.warning(f"Ignoring unknown role '{name}' for user {user.id}")
        return roles

    async def add_to_role(self, user: User, role: Role) -> None:
        existing = await self.session.get(UserRole, (user.id, role.value))
        if existing is None:
            self.session.add(UserRole(user_id=user.id, role=role.value))
            await self.session.flush()

    async def update_security_stamp(self, user: User) -> None:
        """Rotate the security stamp, invalidating every issued access token."""
        user.security_stamp = new_security_stamp()
        await self.session.flush()

    async def update(self, user: User) -> None:
        """Flush pending changes to the user inside a savepoint."""
        async with self.session.begin_nested():
            self.session.add(user)
