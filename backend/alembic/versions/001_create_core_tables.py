"""Create core tables

Revision ID: 001
Revises: None
Create Date: 2025-09-01 00:00:00.000000+00:00

What:  Creates users, user_settings, mappings, reports, report_items and
       audit_logs with their indexes.
How:   Portable column types (sa.Uuid, sa.JSON) so the same migration runs on
       PostgreSQL and SQLite. The partial unique index on mappings allows at
       most one default mapping per user.

Rollback: downgrade() drops every table (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        server_default=sa.text("CURRENT_TIMESTAMP"),
        nullable=False,
    )


def upgrade() -> None:
    # ── users ─────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, comment="Stored lower-cased"),
        sa.Column("password_hash", sa.String(255), nullable=False, comment="bcrypt hash"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # ── user_settings ─────────────────────────────────────────────────────
    op.create_table(
        "user_settings",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("settings", sa.JSON(), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_id"),
    )

    # ── mappings ──────────────────────────────────────────────────────────
    op.create_table(
        "mappings",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("description", sa.String(200), nullable=True),
        sa.Column("mapping_data", sa.JSON(), nullable=False),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_mappings_user_id", "mappings", ["user_id"])
    op.create_index(
        "uq_mappings_user_default",
        "mappings",
        ["user_id"],
        unique=True,
        postgresql_where=sa.text("is_default"),
        sqlite_where=sa.text("is_default = 1"),
    )

    # ── reports ───────────────────────────────────────────────────────────
    op.create_table(
        "reports",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("date", sa.String(10), nullable=False, comment="Business day as DD/MM"),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'completed'")),
        sa.Column("total_quantity", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_value", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("solid_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("top_seller", sa.String(255), nullable=False, server_default=sa.text("'—'")),
        sa.Column("processed_data", sa.JSON(), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_reports_user_id", "reports", ["user_id"])
    op.create_index("idx_reports_user_created", "reports", ["user_id", "created_at"])

    # ── report_items ──────────────────────────────────────────────────────
    op.create_table(
        "report_items",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("report_id", sa.Uuid(), nullable=False),
        sa.Column("form_norm", sa.String(255), nullable=False, server_default=sa.text("''")),
        sa.Column("linha", sa.String(100), nullable=False, server_default=sa.text("''")),
        sa.Column("horario", sa.String(50), nullable=False, server_default=sa.text("''")),
        sa.Column("vendedor", sa.String(255), nullable=False, server_default=sa.text("'—'")),
        sa.Column("quantidade", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("valor", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("categoria", sa.String(100), nullable=False, server_default=sa.text("''")),
        sa.Column("observacoes", sa.Text(), nullable=True),
        sa.Column("source_file", sa.String(100), nullable=False, server_default=sa.text("'controle'")),
        sa.Column("row_index", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_mapped", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["report_id"], ["reports.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_report_items_report_id", "report_items", ["report_id"])

    # ── audit_logs ────────────────────────────────────────────────────────
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=True),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("table_name", sa.String(50), nullable=False),
        sa.Column("record_id", sa.String(64), nullable=True),
        sa.Column("old_values", sa.JSON(), nullable=True),
        sa.Column("new_values", sa.JSON(), nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.String(512), nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_audit_logs_user_id", "audit_logs", ["user_id"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("idx_audit_logs_created_at", "audit_logs", ["created_at"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("report_items")
    op.drop_table("reports")
    op.drop_index("uq_mappings_user_default", table_name="mappings")
    op.drop_table("mappings")
    op.drop_table("user_settings")
    op.drop_table("users")
