"""Background purge of expired compromised refresh tokens."""

import asyncio
from collections.abc import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from blogplatform.core.config import JwtSettings
from blogplatform.core.database import async_session_maker
from blogplatform.core.logging import get_logger
from blogplatform.services.compromised_token_store import SqlAlchemyCompromisedTokenStore
from blogplatform.services.token import TokenService

logger = get_logger("token_cleanup")

# How often to run cleanup (in seconds)
DEFAULT_CLEANUP_INTERVAL_SECONDS = 24 * 60 * 60


def task_done_callback(task: asyncio.Task[None]) -> None:
    """Log unhandled exceptions from background tasks."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Background task {task.get_name()} failed: {exc}")


class TokenCleanupService:
    """Periodically deletes expired rows from the compromised token table.

    Each run uses its own session, committed and closed before the next
    sleep. A failed run is logged and the loop carries on.
    """

    def __init__(
        self,
        jwt_settings: JwtSettings,
        session_factory: Callable[[], AsyncSession] = async_session_maker,
        interval_seconds: float = DEFAULT_CLEANUP_INTERVAL_SECONDS,
        initial_delay_seconds: float = 0,
    ):
        self._jwt_settings = jwt_settings
        self._session_factory = session_factory
        self._interval_seconds = interval_seconds
        self._initial_delay_seconds = initial_delay_seconds
        self._running = False
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the background cleanup task."""
        if self._running:
            logger.warning("Token cleanup service is already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._cleanup_loop(), name="token-cleanup")
        self._task.add_done_callback(task_done_callback)
        logger.info(f"Token cleanup service started (interval: {self._interval_seconds}s)")

    async def stop(self) -> None:
        """Stop the background cleanup task, interrupting a sleep or a run."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Token cleanup service stopped")

    async def _cleanup_loop(self) -> None:
        """Run a cleanup, then wait for the interval, until stopped."""
        if self._initial_delay_seconds:
            await asyncio.sleep(self._initial_delay_seconds)

        while self._running:
            try:
                await self._run_cleanup()
            except Exception as e:
                logger.exception(f"Error in compromised token cleanup: {e}")

            # Wait before next cleanup
            await asyncio.sleep(self._interval_seconds)

    async def _run_cleanup(self) -> int:
        """Execute a single cleanup run in a fresh session."""
        async with self._session_factory() as db:
            try:
                token_service = TokenService(
                    self._jwt_settings, SqlAlchemyCompromisedTokenStore(db)
                )
                removed = await token_service.purge_expired_compromised_tokens()
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        if removed > 0:
            logger.info(f"Token cleanup removed {removed} expired entries")
        else:
            logger.debug("Token cleanup found no expired entries")
        return removed

    async def run_cleanup_now(self) -> int:
        """Manually trigger a cleanup run.

        Returns:
            Number of compromised token entries deleted
        """
        return await self._run_cleanup()
