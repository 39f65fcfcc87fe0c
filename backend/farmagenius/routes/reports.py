"""
FarmaGenius Backend — Report Route Handlers
============================================

What:  POST /save-report, GET /history, GET/DELETE /history/{id}.
How:   Owner-scoped; ReportService writes a report and its items in one
       transaction and filters history by the "DD/MM" business date.
Who:   The dashboard processing flow (save) and history page (list/detail).
"""

import logging
import uuid
from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from farmagenius.database import get_db_session
from farmagenius.dependencies import RequestMeta, get_request_meta, require_principal
from farmagenius.exceptions import ValidationError
from farmagenius.schemas.common import MessageResponse, error_responses
from farmagenius.schemas.report import (
    HistoryPeriod,
    HistoryResponse,
    ReportDetailResponse,
    SaveReportRequest,
    SaveReportResponse,
)
from farmagenius.services.auth import Principal
from farmagenius.services.report_service import report_service
from farmagenius.validation import json_body, parse_payload, require_json

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Reports"])


@router.post(
    "/save-report",
    response_model=SaveReportResponse,
    status_code=201,
    responses=error_responses(400, 401, 429, 500),
    summary="Save a processed report",
    description=(
        "Stores the report header (title, DD/MM date, KPIs) and every item in a "
        "single transaction. The full client payload is kept in processedData."
    ),
    dependencies=[Depends(require_json)],
)
async def save_report(
    principal: Principal = Depends(require_principal),
    raw: Any = Depends(json_body),
    meta: RequestMeta = Depends(get_request_meta),
    db: AsyncSession = Depends(get_db_session),
) -> SaveReportResponse:
    payload = parse_payload(SaveReportRequest, raw)
    report_id = await report_service.save_report(db, principal.id, payload, meta)
    return SaveReportResponse(report_id=report_id)


@router.get(
    "/history",
    response_model=HistoryResponse,
    responses=error_responses(400, 401, 429, 500),
    summary="List saved reports",
    description=(
        "The caller's reports, newest first. period=today matches today's DD/MM, "
        "period=week the last 7 days, period=month the current month and "
        "period=all disables the filter. startDay/endDay (with an optional month) "
        "or startDate/endDate select a range instead of a period."
    ),
)
async def list_history(
    limit: int = Query(default=100, ge=1, le=500, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Rows to skip"),
    period: HistoryPeriod = Query(default="month", description="Date filter"),
    start_date: Optional[date] = Query(default=None, alias="startDate", description="Range start, YYYY-MM-DD"),
    end_date: Optional[date] = Query(default=None, alias="endDate", description="Range end, YYYY-MM-DD"),
    start_day: Optional[int] = Query(default=None, alias="startDay", ge=1, le=31, description="First day of month"),
    end_day: Optional[int] = Query(default=None, alias="endDay", ge=1, le=31, description="Last day of month"),
    month: Optional[int] = Query(default=None, ge=1, le=12, description="Month for startDay/endDay"),
    principal: Principal = Depends(require_principal),
    db: AsyncSession = Depends(get_db_session),
) -> HistoryResponse:
    if (start_day is None) != (end_day is None):
        raise ValidationError("startDay e endDay devem ser informados juntos", field="startDay")
    if (start_date is None) != (end_date is None):
        raise ValidationError("startDate e endDate devem ser informados juntos", field="startDate")
    if start_day is not None and start_day > end_day:
        raise ValidationError("startDay deve ser menor ou igual a endDay", field="startDay")
    if start_date is not None and start_date > end_date:
        raise ValidationError("startDate deve ser anterior a endDate", field="startDate")

    reports, pagination = await report_service.list_history(
        db,
        principal.id,
        limit=limit,
        offset=offset,
        period=period,
        start_date=start_date,
        end_date=end_date,
        start_day=start_day,
        end_day=end_day,
        month=month,
    )
    return HistoryResponse(reports=reports, pagination=pagination)


@router.get(
    "/history/{report_id}",
    response_model=ReportDetailResponse,
    responses=error_responses(400, 401, 404, 429, 500),
    summary="Get a saved report with its items",
)
async def get_report(
    report_id: uuid.UUID = Path(description="Report UUID"),
    principal: Principal = Depends(require_principal),
    db: AsyncSession = Depends(get_db_session),
) -> ReportDetailResponse:
    return ReportDetailResponse(report=await report_service.get_report(db, principal.id, report_id))


@router.delete(
    "/history/{report_id}",
    response_model=MessageResponse,
    responses=error_responses(400, 401, 404, 429, 500),
    summary="Delete a saved report",
)
async def delete_report(
    report_id: uuid.UUID = Path(description="Report UUID"),
    principal: Principal = Depends(require_principal),
    meta: RequestMeta = Depends(get_request_meta),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await report_service.delete_report(db, principal.id, report_id, meta)
    return MessageResponse(message="Relatório excluído com sucesso")
