"""
FarmaGenius Backend — Audit Route Handler
==========================================

What:  GET /audit, the read side of the audit trail.
How:   Query parameters are validated through AuditQueryParams, then one of
       four AuditService queries runs:

    type=all         logs (optionally one user's), plus the caller's stats
    type=suspicious  failed logins, password changes, user deletes, exports
    type=by-action   logs with one action name (action required, else 400)
    type=stats       counters only (optionally one user's)

pagination.total is the number of logs in this page.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from farmagenius.database import get_db_session
from farmagenius.dependencies import require_principal
from farmagenius.schemas.audit import AuditPagination, AuditQueryParams, AuditResponse
from farmagenius.schemas.common import error_responses
from farmagenius.services.audit_service import audit_service
from farmagenius.services.auth import Principal
from farmagenius.validation import parse_payload

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Audit"])


@router.get(
    "/audit",
    response_model=AuditResponse,
    response_model_exclude_none=True,
    responses=error_responses(400, 401, 429, 500),
    summary="Query the audit trail",
)
async def get_audit(
    type: Optional[str] = Query(default=None, description="all | suspicious | by-action | stats"),
    action: Optional[str] = Query(default=None, description="Action name, required for by-action"),
    user_id: Optional[str] = Query(default=None, alias="userId", description="Filter by user id"),
    limit: Optional[str] = Query(default=None, description="Page size (1-500, default 50)"),
    offset: Optional[str] = Query(default=None, description="Rows to skip"),
    principal: Principal = Depends(require_principal),
    db: AsyncSession = Depends(get_db_session),
) -> AuditResponse:
    raw = {
        "type": type or "all",
        "action": action,
        "userId": user_id,
        "limit": limit,
        "offset": offset,
    }
    params = parse_payload(AuditQueryParams, {k: v for k, v in raw.items() if v is not None})

    if params.type == "stats":
        return AuditResponse(stats=await audit_service.get_stats(db, params.user_id))

    stats = None
    if params.type == "suspicious":
        logs = await audit_service.get_suspicious(db, limit=params.limit)
    elif params.type == "by-action":
        logs = await audit_service.get_by_action(db, params.action, limit=params.limit)
    else:
        logs = await audit_service.get_logs(db, params.user_id, limit=params.limit, offset=params.offset)
        stats = await audit_service.get_stats(db, principal.id)

    return AuditResponse(
        logs=logs,
        stats=stats,
        pagination=AuditPagination(limit=params.limit, offset=params.offset, total=len(logs)),
    )
