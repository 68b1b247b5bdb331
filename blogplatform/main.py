"""Blog Platform - FastAPI application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from blogplatform.api import api_router
from blogplatform.core import async_session_maker, create_tables, settings, setup_logging
from blogplatform.core.logging import get_logger
from blogplatform.services.seed import seed_admin_user
from blogplatform.services.token_cleanup import TokenCleanupService

logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    setup_logging(
        level=settings.log_level,
        format_type="dev" if settings.debug else "structured",
    )
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")

    for warning in settings.check_security_configuration():
        logger.warning(f"SECURITY: {warning}")

    # Fail fast on an unusable signing configuration
    jwt_settings = settings.jwt_settings()

    if settings.create_tables_on_startup:
        await create_tables()
        logger.info("Database tables ensured")

    async with async_session_maker() as db:
        await seed_admin_user(db, settings)
        await db.commit()

    cleanup_service = TokenCleanupService(
        jwt_settings,
        session_factory=async_session_maker,
        interval_seconds=settings.token_cleanup_interval_hours * 3600,
    )
    await cleanup_service.start()
    app.state.token_cleanup = cleanup_service

    yield

    # Shutdown
    logger.info("Shutting down...")
    await cleanup_service.stop()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="Blog platform API with JWT authentication",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
    )

    app.include_router(api_router)

    return app


app = create_app()
