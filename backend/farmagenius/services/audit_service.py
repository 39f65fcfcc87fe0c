"""
FarmaGenius Backend — Audit Service
====================================

What:  Writes and queries the append-only audit trail.
How:   record() adds an AuditLog row to the caller's session without
       committing, so the entry shares the audited operation's transaction:
       both commit together or neither does. Queries join the author's
       name/email for display.
Who:   Called by UserService, MappingService, ReportService, the login
       route and the spreadsheet routes; read by GET /audit.

Suspicious actions:
    LOGIN_FAILED, SENSITIVE_PASSWORD_CHANGE, SENSITIVE_USER_DELETE, DATA_EXPORT
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import Select, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from farmagenius.dependencies import RequestMeta
from farmagenius.exceptions import DatabaseError
from farmagenius.models import AuditLog, User
from farmagenius.schemas.audit import AuditLogOut, AuditStats

logger = logging.getLogger(__name__)

# ── Action Names ──────────────────────────────────────────────────────────
ACTION_CREATE = "CREATE"
ACTION_UPDATE = "UPDATE"
ACTION_DELETE = "DELETE"
ACTION_LOGIN_SUCCESS = "LOGIN_SUCCESS"
ACTION_LOGIN_FAILED = "LOGIN_FAILED"
ACTION_PASSWORD_CHANGE = "SENSITIVE_PASSWORD_CHANGE"
ACTION_USER_DELETE = "SENSITIVE_USER_DELETE"
ACTION_FILE_UPLOAD = "FILE_UPLOAD"
ACTION_DATA_EXPORT = "DATA_EXPORT"

SUSPICIOUS_ACTIONS = (
    ACTION_LOGIN_FAILED,
    ACTION_PASSWORD_CHANGE,
    ACTION_USER_DELETE,
    ACTION_DATA_EXPORT,
)
LOGIN_ACTIONS = (ACTION_LOGIN_SUCCESS, ACTION_LOGIN_FAILED)


class AuditService:
    """Audit trail writer and reader. Stateless; sessions are passed per call."""

    def record(
        self,
        db: AsyncSession,
        action: str,
        *,
        user_id: Optional[uuid.UUID] = None,
        table_name: str = "",
        record_id: Optional[Any] = None,
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
        meta: Optional[RequestMeta] = None,
    ) -> AuditLog:
        """Stage an audit entry in `db`; it commits with the surrounding transaction."""
        entry = AuditLog(
            user_id=user_id,
            action=action,
            table_name=table_name,
            record_id=str(record_id) if record_id is not None else None,
            old_values=old_values,
            new_values=new_values,
            ip_address=meta.ip_address if meta else None,
            user_agent=meta.user_agent if meta else None,
        )
        db.add(entry)
        logger.info("Audit %s on '%s' by %s", action, table_name or "-", user_id or "anonymous")
        return entry

    # ── Queries ───────────────────────────────────────────────────────────

    def _base_query(self) -> Select:
        return (
            select(AuditLog, User.name, User.email)
            .outerjoin(User, AuditLog.user_id == User.id)
            .order_by(AuditLog.created_at.desc())
        )

    async def _fetch(self, db: AsyncSession, query: Select) -> List[AuditLogOut]:
        try:
            result = await db.execute(query)
        except SQLAlchemyError as e:
            logger.error("Database error reading audit logs: %s", str(e))
            raise DatabaseError(context={"error_type": type(e).__name__})

        logs = []
        for entry, user_name, user_email in result.all():
            item = AuditLogOut.model_validate(entry)
            item.user_name = user_name
            item.user_email = user_email
            logs.append(item)
        return logs

    async def get_logs(
        self,
        db: AsyncSession,
        user_id: Optional[uuid.UUID] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[AuditLogOut]:
        query = self._base_query()
        if user_id is not None:
            query = query.where(AuditLog.user_id == user_id)
        return await self._fetch(db, query.limit(limit).offset(offset))

    async def get_by_action(self, db: AsyncSession, action: str, limit: int = 50) -> List[AuditLogOut]:
        query = self._base_query().where(AuditLog.action == action).limit(limit)
        return await self._fetch(db, query)

    async def get_suspicious(self, db: AsyncSession, limit: int = 50) -> List[AuditLogOut]:
        query = self._base_query().where(AuditLog.action.in_(SUSPICIOUS_ACTIONS)).limit(limit)
        return await self._fetch(db, query)

    async def get_stats(
        self,
        db: AsyncSession,
        user_id: Optional[uuid.UUID] = None,
        now: Optional[datetime] = None,
    ) -> AuditStats:
        """
        Aggregate counters in one query:
            totalLogs, loginAttempts, failedLogins, recentActivity (last 24h)
            successRate = (attempts - failed) / attempts × 100, or 0 without attempts
        """
        since = (now or datetime.now(timezone.utc)) - timedelta(hours=24)
        query = select(
            func.count(AuditLog.id),
            func.count(AuditLog.id).filter(AuditLog.action.in_(LOGIN_ACTIONS)),
            func.count(AuditLog.id).filter(AuditLog.action == ACTION_LOGIN_FAILED),
            func.count(AuditLog.id).filter(AuditLog.created_at >= since),
        )
        if user_id is not None:
            query = query.where(AuditLog.user_id == user_id)

        try:
            total, attempts, failed, recent = (await db.execute(query)).one()
        except SQLAlchemyError as e:
            logger.error("Database error computing audit stats: %s", str(e))
            raise DatabaseError(context={"error_type": type(e).__name__})

        success_rate = ((attempts - failed) / attempts) * 100 if attempts else 0.0
        return AuditStats(
            total_logs=total or 0,
            login_attempts=attempts or 0,
            failed_logins=failed or 0,
            recent_activity=recent or 0,
            success_rate=round(success_rate, 2),
        )


# ── Singleton Instance ────────────────────────────────────────────────────
audit_service = AuditService()
