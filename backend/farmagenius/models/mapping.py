"""
FarmaGenius Backend — Mapping SQLAlchemy Model
===============================================

What:  ORM model for `mappings`: a user's named form-name normalization table
       (raw spreadsheet label → normalized form name).
Who:   Used by MappingService.

Exclusive default:
    At most one mapping per user has is_default = true. The partial unique
    index `uq_mappings_user_default` enforces it in the database; the service
    keeps it by clearing and setting the flag inside one transaction while
    holding the owner's user row lock.
"""

import uuid
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from farmagenius.database import Base
from farmagenius.models.user import utcnow


class Mapping(Base):
    """An owner-scoped mapping configuration."""

    __tablename__ = "mappings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    # {"RAW LABEL": "NORMALIZED FORM", ...}
    mapping_data: Mapped[Dict[str, str]] = mapped_column(JSON, nullable=False, default=dict)

    is_default: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        Index(
            "uq_mappings_user_default",
            "user_id",
            unique=True,
            postgresql_where=text("is_default"),
            sqlite_where=text("is_default = 1"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Mapping(id={self.id}, name='{self.name}', is_default={self.is_default})>"
