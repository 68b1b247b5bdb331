"""User account and role membership models."""

import secrets
import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from blogplatform.core.database import Base
from blogplatform.models.base import BaseModel


class Role(str, Enum):
    """Closed set of authorization roles."""

    ADMIN = "Admin"
    USER = "User"


def new_security_stamp() -> str:
    return secrets.token_hex(16)


class User(BaseModel):
    """A blog platform account.

    The security_stamp is embedded in every access token and rotated by
    revoke-all, which invalidates all tokens issued before the rotation.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(256), nullable=False)
    normalized_email: Mapped[str] = mapped_column(
        String(256), nullable=False, unique=True, index=True
    )
    full_name: Mapped[str] = mapped_column(String(100), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    security_stamp: Mapped[str] = mapped_column(
        String(64), nullable=False, default=new_security_stamp
    )

    # Lockout tracking
    access_failed_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    lockout_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    lockout_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<User {self.email}>"


class UserRole(Base):
    """Membership of a user in a role."""

    __tablename__ = "user_roles"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    role: Mapped[str] = mapped_column(String(32), primary_key=True)

    def __repr__(self) -> str:
        return f"<UserRole {self.user_id}:{self.role}>"
