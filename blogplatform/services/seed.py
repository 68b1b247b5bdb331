"""Startup seeding of the administrator account."""

from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from blogplatform.core.config import Settings
from blogplatform.core.logging import get_logger
from blogplatform.models.user import Role, User
from blogplatform.services.user_store import SqlAlchemyUserStore

logger = get_logger("seed")


async def seed_admin_user(session: AsyncSession, settings: Settings) -> User | None:
    """Create the configured admin account if it does not exist yet.

    Does nothing unless both ADMIN_EMAIL and ADMIN_PASSWORD are set. An
    existing account with that email is granted the Admin role.
    """
    if not settings.admin_email or not settings.admin_password:
        return None

    store = SqlAlchemyUserStore(
        session,
        max_failed_attempts=settings.lockout_max_failed_attempts,
        lockout_duration=timedelta(minutes=settings.lockout_duration_minutes),
    )
    user = await store.find_by_email(settings.admin_email)
    if user is None:
        user = User(email=settings.admin_email.strip(), full_name=settings.admin_full_name)
        result = await store.create(user, settings.admin_password)
        if not result.succeeded:
            logger.error(f"Admin user not seeded: {' '.join(result.errors)}")
            return None
        logger.info(f"Seeded admin user: {user.email}")

    await store.add_to_role(user, Role.ADMIN)
    await store.add_to_role(user, Role.USER)
    return user
