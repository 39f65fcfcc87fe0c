"""
FarmaGenius Backend — Report Service
=====================================

What:  Save, list, fetch and delete production reports.
How:   A report and all of its items are inserted in the request's single
       transaction, so a failure part-way leaves nothing behind. Every read
       and delete is scoped to the owner.
Who:   routes/reports.py.

History filters (matched against the "DD/MM" business date):
    today → date == "<dd>/<mm>" of the server's current day
    week  → the last 7 days, the date read as its latest occurrence
    month → date LIKE "%/<mm>"
    all   → no filter
    startDay..endDay (+ month) → days of one month, current month by default
    startDate..endDate         → (month, day) between the two dates
"""

import logging
import uuid
from datetime import date as date_type
from datetime import timedelta
from typing import Callable, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from farmagenius.dependencies import RequestMeta
from farmagenius.exceptions import DatabaseError, NotFoundError
from farmagenius.models import Report, ReportItem
from farmagenius.schemas.common import Pagination
from farmagenius.schemas.report import (
    ReportDetail,
    ReportItemIn,
    ReportKpis,
    ReportSummary,
    SaveReportRequest,
    parse_report_date,
)
from farmagenius.services.audit_service import ACTION_CREATE, ACTION_DELETE, audit_service

logger = logging.getLogger(__name__)

RESOURCE = "Relatório"


def _text(value: Optional[str], default: str = "") -> str:
    return value.strip() if value else default


def build_item(item: ReportItemIn, index: int) -> ReportItem:
    """Normalize one client row into a ReportItem (blank text → default, missing number → 0)."""
    return ReportItem(
        form_norm=_text(item.form_norm),
        linha=_text(item.linha),
        horario=_text(item.horario),
        vendedor=_text(item.vendedor, "—"),
        quantidade=item.quantidade or 0,
        valor=item.valor or 0,
        categoria=_text(item.categoria),
        observacoes=_text(item.observacoes),
        source_file=_text(item.source_file, "controle"),
        row_index=item.row_index if item.row_index is not None else index,
        is_mapped=item.is_mapped is not False,
    )


def period_filter(period: str, today: date_type):
    """Return the WHERE clause for a history period, or None when nothing is filtered in SQL."""
    if period == "today":
        return Report.date == f"{today.day:02d}/{today.month:02d}"
    if period == "month":
        return Report.date.like(f"%/{today.month:02d}")
    return None


def _calendar_date(day: int, month: int, today: date_type) -> Optional[date_type]:
    # The report date carries no year: take the latest occurrence not after today
    for year in (today.year, today.year - 1):
        try:
            candidate = date_type(year, month, day)
        except ValueError:
            continue
        if candidate <= today:
            return candidate
    return None


def _report_matches(report: Report, matcher: Callable[[Tuple[int, int]], bool]) -> bool:
    parsed = parse_report_date(report.date)
    return parsed is not None and matcher(parsed)


def date_matcher(
    period: str,
    today: date_type,
    start_date: Optional[date_type] = None,
    end_date: Optional[date_type] = None,
    start_day: Optional[int] = None,
    end_day: Optional[int] = None,
    month: Optional[int] = None,
) -> Optional[Callable[[Tuple[int, int]], bool]]:
    """
    Predicate over a report's (day, month) for filters SQL cannot express on
    a "DD/MM" string, or None when the SQL period clause is enough.

    Precedence: day range, then date range, then period=week.
    """
    if start_day is not None and end_day is not None:
        target_month = month or today.month
        return lambda dm: dm[1] == target_month and start_day <= dm[0] <= end_day
    if start_date is not None and end_date is not None:
        lower = (start_date.month, start_date.day)
        upper = (end_date.month, end_date.day)
        return lambda dm: lower <= (dm[1], dm[0]) <= upper
    if period == "week":
        week_ago = today - timedelta(days=7)

        def within_week(dm: Tuple[int, int]) -> bool:
            when = _calendar_date(dm[0], dm[1], today)
            return when is not None and week_ago <= when <= today

        return within_week
    return None


class ReportService:
    """Business logic for saved reports."""

    async def save_report(
        self,
        db: AsyncSession,
        owner_id: uuid.UUID,
        payload: SaveReportRequest,
        meta: Optional[RequestMeta] = None,
    ) -> uuid.UUID:
        kpis = payload.kpis or ReportKpis()
        sellers = payload.sellers_data or []
        kanban = payload.kanban_data or {}

        report = Report(
            user_id=owner_id,
            title=payload.title,
            date=payload.date,
            status="completed",
            total_quantity=kpis.total_quantity,
            total_value=kpis.total_value,
            solid_count=kpis.solid_count,
            top_seller=kpis.top_seller or "—",
            processed_data={
                "items": [item.model_dump(by_alias=True, exclude_none=True) for item in payload.items],
                "kpis": kpis.model_dump(by_alias=True),
                "sellersData": sellers,
                "kanbanData": kanban,
            },
        )
        report.items = [build_item(item, index) for index, item in enumerate(payload.items)]

        try:
            db.add(report)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error(
                "Database error saving report for %s (%d items): %s",
                owner_id,
                len(payload.items),
                str(e),
            )
            raise DatabaseError(context={"owner_id": str(owner_id), "items": len(payload.items)})

        audit_service.record(
            db,
            ACTION_CREATE,
            user_id=owner_id,
            table_name="reports",
            record_id=report.id,
            new_values={"title": report.title, "date": report.date, "items": len(report.items)},
            meta=meta,
        )
        logger.info("Report %s saved for %s with %d items", report.id, owner_id, len(report.items))
        return report.id

    async def list_history(
        self,
        db: AsyncSession,
        owner_id: uuid.UUID,
        limit: int = 100,
        offset: int = 0,
        period: str = "month",
        today: Optional[date_type] = None,
        start_date: Optional[date_type] = None,
        end_date: Optional[date_type] = None,
        start_day: Optional[int] = None,
        end_day: Optional[int] = None,
        month: Optional[int] = None,
    ) -> Tuple[List[ReportSummary], Pagination]:
        """
        Owner's reports, newest first, with a total for pagination.

        A day range or date range replaces the period; period=week and both
        ranges are applied to the parsed "DD/MM" date after the query, and the
        page is cut from the filtered list.
        """
        today = today or date_type.today()
        matcher = date_matcher(period, today, start_date, end_date, start_day, end_day, month)
        ranged = (start_day is not None and end_day is not None) or (
            start_date is not None and end_date is not None
        )

        conditions = [Report.user_id == owner_id]
        clause = None if ranged else period_filter(period, today)
        if clause is not None:
            conditions.append(clause)

        query = select(Report).where(*conditions).order_by(Report.created_at.desc())
        try:
            if matcher is None:
                total = (
                    await db.execute(select(func.count(Report.id)).where(*conditions))
                ).scalar() or 0
                result = await db.execute(query.limit(limit).offset(offset))
                rows = list(result.scalars().all())
            else:
                result = await db.execute(query)
                matching = [r for r in result.scalars().all() if _report_matches(r, matcher)]
                total = len(matching)
                rows = matching[offset:offset + limit]
        except SQLAlchemyError as e:
            logger.error("Database error listing history for %s: %s", owner_id, str(e))
            raise DatabaseError(context={"owner_id": str(owner_id)})

        reports = [ReportSummary.model_validate(r) for r in rows]
        pagination = Pagination(
            limit=limit,
            offset=offset,
            total=total,
            has_more=offset + len(reports) < total,
        )
        return reports, pagination

    async def _get_owned(self, db: AsyncSession, owner_id: uuid.UUID, report_id: uuid.UUID) -> Report:
        try:
            result = await db.execute(
                select(Report).where(Report.id == report_id, Report.user_id == owner_id)
            )
        except SQLAlchemyError as e:
            logger.error("Database error fetching report %s: %s", report_id, str(e))
            raise DatabaseError(context={"report_id": str(report_id)})
        report = result.scalar_one_or_none()
        if report is None:
            raise NotFoundError(resource=RESOURCE, resource_id=str(report_id))
        return report

    async def get_report(self, db: AsyncSession, owner_id: uuid.UUID, report_id: uuid.UUID) -> ReportDetail:
        report = await self._get_owned(db, owner_id, report_id)
        return ReportDetail.model_validate(report)

    async def delete_report(
        self,
        db: AsyncSession,
        owner_id: uuid.UUID,
        report_id: uuid.UUID,
        meta: Optional[RequestMeta] = None,
    ) -> None:
        report = await self._get_owned(db, owner_id, report_id)
        old_values = {"title": report.title, "date": report.date}
        try:
            await db.delete(report)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error deleting report %s: %s", report_id, str(e))
            raise DatabaseError(context={"report_id": str(report_id)})

        audit_service.record(
            db,
            ACTION_DELETE,
            user_id=owner_id,
            table_name="reports",
            record_id=report_id,
            old_values=old_values,
            meta=meta,
        )


# ── Singleton Instance ────────────────────────────────────────────────────
report_service = ReportService()
