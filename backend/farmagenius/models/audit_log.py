"""
FarmaGenius Backend — AuditLog SQLAlchemy Model
================================================

What:  Append-only audit trail (`audit_logs`).
How:   Entries are added to the same session as the audited operation, so an
       entry commits or rolls back together with the change it describes.
Who:   Written by AuditService.record(); read by GET /audit.

Table Design:
    - user_id is nullable: failed logins and anonymous uploads have no owner.
    - user_id uses ON DELETE SET NULL so the trail outlives the account.
    - old_values / new_values never contain passwords or hashes.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from farmagenius.database import Base
from farmagenius.models.user import utcnow


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # e.g. CREATE, UPDATE, DELETE, LOGIN_SUCCESS, LOGIN_FAILED, DATA_EXPORT
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    table_name: Mapped[str] = mapped_column(String(50), nullable=False)
    record_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    old_values: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    new_values: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        Index("idx_audit_logs_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<AuditLog(action='{self.action}', table='{self.table_name}')>"
