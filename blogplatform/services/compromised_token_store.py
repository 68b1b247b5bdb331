"""SQLAlchemy-backed compromised refresh token store."""

from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from blogplatform.core.logging import get_logger
from blogplatform.models.compromised_refresh_token import CompromisedRefreshToken
from blogplatform.services.ports import CompromisedTokenRecord

logger = get_logger("compromised_tokens")

_UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class SqlAlchemyCompromisedTokenStore:
    """Compromised-token store over an ``AsyncSession``.

    Writes are flushed but never committed here; the caller's unit of work
    (request session or cleanup iteration) owns the transaction.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def is_compromised(self, token_hash: str) -> bool:
        """Check whether a token hash is blacklisted."""
        result = await self.session.execute(
            select(CompromisedRefreshToken.id)
            .where(CompromisedRefreshToken.token_hash == token_hash)
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def add(self, record: CompromisedTokenRecord) -> bool:
        """Insert a record unless its hash is already present.

        Returns True only if this call wrote the row. The unique constraint on
        ``token_hash`` decides the winner when two callers race.
        """
        values = {
            "token_hash": record.token_hash,
            "compromised_at": record.compromised_at,
            "expires_at": record.expires_at,
            "reason": record.reason,
        }
        insert = _UPSERT_INSERTS.get(self.session.get_bind().dialect.name)
        if insert is None:
            return await self._add_in_savepoint(values)

        stmt = (
            insert(CompromisedRefreshToken)
            .values(**values)
            .on_conflict_do_nothing(index_elements=[CompromisedRefreshToken.token_hash])
        )
        result = await self.session.execute(stmt)
        written = result.rowcount == 1
        if not written:
            logger.debug(f"Compromised token hash already recorded: {record.token_hash[:12]}")
        return written

    async def _add_in_savepoint(self, values: dict) -> bool:
        if await self.is_compromised(values["token_hash"]):
            return False
        try:
            async with self.session.begin_nested():
                self.session.add(CompromisedRefreshToken(**values))
        except IntegrityError:
            logger.debug(f"Concurrent insert of compromised token hash: {values['token_hash'][:12]}")
            return False
        return True

    async def remove_expired(self, cutoff: datetime) -> int:
        """Delete entries whose ``expires_at`` is strictly before ``cutoff``."""
        result = await self.session.execute(
            delete(CompromisedRefreshToken)
            .where(CompromisedRefreshToken.expires_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0
