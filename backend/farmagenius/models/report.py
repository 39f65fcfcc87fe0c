"""
FarmaGenius Backend — Report & ReportItem SQLAlchemy Models
============================================================

What:  ORM models for saved production reports (`reports`) and their
       line items (`report_items`).
Who:   Used by ReportService (save, history, detail, delete) and by the
       AggregateCount query behind /user/stats.

Table Design:
    - date is the report's business day in "DD/MM" form, as typed by the
      user; history filters match on it (today = exact, month = "%/MM").
    - processed_data keeps the client's full payload (items, kpis, sellers,
      kanban) for re-rendering; report_items holds the normalized rows.
    - Deleting a report cascades to its items.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from farmagenius.database import Base
from farmagenius.models.user import utcnow


class Report(Base):
    """A saved daily production report owned by one user."""

    __tablename__ = "reports"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    date: Mapped[str] = mapped_column(String(10), nullable=False)

    # Values: processing, completed, error
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="completed")

    total_quantity: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    total_value: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    solid_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    top_seller: Mapped[str] = mapped_column(String(255), nullable=False, default="—")

    processed_data: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    items: Mapped[List["ReportItem"]] = relationship(
        back_populates="report",
        cascade="all, delete-orphan",
        order_by="ReportItem.row_index",
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_reports_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Report(id={self.id}, date='{self.date}', status='{self.status}')>"


class ReportItem(Base):
    """One normalized spreadsheet row belonging to a report."""

    __tablename__ = "report_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    report_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("reports.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    form_norm: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    linha: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    horario: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    vendedor: Mapped[str] = mapped_column(String(255), nullable=False, default="—")
    quantidade: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    valor: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    categoria: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    observacoes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    source_file: Mapped[str] = mapped_column(String(100), nullable=False, default="controle")
    row_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_mapped: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    report: Mapped[Report] = relationship(back_populates="items")
