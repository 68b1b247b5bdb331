"""Compromised refresh tokens, stored by hash until they would have expired."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from blogplatform.core.database import Base


class CompromisedRefreshToken(Base):
    """A refresh token that must never be accepted again.

    Only the SHA-256 hex digest of the raw token is stored. Rows are created
    on rotation and logout and purged once ``expires_at`` has passed.
    """

    __tablename__ = "compromised_refresh_tokens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    token_hash: Mapped[str] = mapped_column(String(512), nullable=False, unique=True, index=True)
    compromised_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
    reason: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return f"<CompromisedRefreshToken {self.token_hash[:12]}… reason={self.reason}>"
