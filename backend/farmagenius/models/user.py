"""
FarmaGenius Backend — User SQLAlchemy Model
============================================

What:  ORM model representing the `users` table.
How:   Inherits from the shared DeclarativeBase; Alembic reads it for migrations.
Who:   Used by UserService (signup, profile, password, stats) and by the
       owner-row lock that serializes mapping default switches.

Table Design:
    - email is stored lower-cased and trimmed; the unique constraint on the
      stored value therefore enforces case-insensitive uniqueness.
    - password_hash holds a bcrypt hash, never the plaintext.
    - updated_at is refreshed on every profile/password change and doubles
      as the "last login" statistic (no login-event table exists).
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from farmagenius.database import Base


def utcnow() -> datetime:
    """Timezone-aware UTC now, shared by every model's timestamp defaults."""
    return datetime.now(timezone.utc)


class User(Base):
    """A FarmaGenius account. Never hard-deleted in normal flows."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    # Lower-cased before insert; uniqueness is case-insensitive by construction
    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
    )

    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}')>"
