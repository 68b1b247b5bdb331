"""Blog Platform Database Configuration - Async SQLAlchemy."""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from blogplatform.core.config import settings


def engine_options(database_url: str) -> dict[str, Any]:
    """Connection pool options for the given URL.

    SQLite (used for local runs and tests) does not accept pool sizing
    arguments, so they are only applied to server databases.
    """
    if database_url.startswith("sqlite"):
        return {}
    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_timeout": settings.db_pool_timeout,
        "pool_recycle": settings.db_pool_recycle,
        "pool_pre_ping": True,  # Verify connection before use
    }


# Create async engine with connection pool settings
engine = create_async_engine(
    str(settings.database_url),
    # Only echo SQL when debug is explicitly enabled
    echo=settings.debug and settings.log_level == "DEBUG",
    **engine_options(str(settings.database_url)),
)

# Session factory
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

# Base class for models
Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except (Exception, BaseException):
            # Catch both regular exceptions and BaseExceptions (e.g., asyncio.CancelledError)
            # to ensure rollback happens even on cancellation
            await session.rollback()
            raise
        finally:
            await session.close()


async def create_tables(bind: AsyncEngine | None = None) -> None:
    """Create all tables registered on ``Base`` (no-op for existing tables)."""
    # Import models so they are registered with Base.metadata
    import blogplatform.models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
