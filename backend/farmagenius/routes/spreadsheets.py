"""
FarmaGenius Backend — Spreadsheet Route Handlers
=================================================

What:  POST /preview-excel (inspect an uploaded workbook) and
       POST /export-report (download report rows as CSV or XLSX).
How:   Both are open to anonymous callers. When a principal is present the
       action is audited (FILE_UPLOAD / DATA_EXPORT) in the request's
       transaction. Parsing and writing live in SpreadsheetService.
Who:   The dashboard upload step and the report export button.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from farmagenius.config import settings
from farmagenius.database import get_db_session
from farmagenius.dependencies import RequestMeta, get_principal, get_request_meta, rate_limit
from farmagenius.exceptions import ValidationError
from farmagenius.schemas.common import error_responses
from farmagenius.schemas.spreadsheet import ExportFormat, ExportRequest, PreviewResponse
from farmagenius.services.audit_service import ACTION_DATA_EXPORT, ACTION_FILE_UPLOAD, audit_service
from farmagenius.services.auth import Principal
from farmagenius.services.spreadsheet_service import spreadsheet_service
from farmagenius.validation import json_body, parse_payload, require_json

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Spreadsheets"])


@router.post(
    "/preview-excel",
    response_model=PreviewResponse,
    responses=error_responses(400, 429, 500),
    summary="Preview an Excel workbook",
    description=(
        "Accepts one .xlsx or .xls file (multipart field `file`) and returns the "
        "first sheet's first 20 rows, its header row and up to 5 sample rows. "
        "fileType is guessed from the file name."
    ),
)
async def preview_excel(
    file: Optional[UploadFile] = File(default=None, description="Workbook (.xlsx or .xls)"),
    principal: Optional[Principal] = Depends(get_principal),
    meta: RequestMeta = Depends(get_request_meta),
    db: AsyncSession = Depends(get_db_session),
) -> PreviewResponse:
    if file is None or not file.filename:
        raise ValidationError("Nenhum arquivo encontrado", field="file")

    filename = file.filename
    spreadsheet_service.validate_upload(filename, file.size or 0)
    # Read one byte past the limit so oversized streams without a size are caught
    content = await file.read(spreadsheet_service.max_file_size + 1)
    preview = spreadsheet_service.preview_excel(filename, content)

    if principal is not None:
        audit_service.record(
            db,
            ACTION_FILE_UPLOAD,
            user_id=principal.id,
            table_name="files",
            new_values={"fileName": filename, "fileType": preview.file_type, "totalRows": preview.total_rows},
            meta=meta,
        )
    return preview


@router.post(
    "/export-report",
    response_class=Response,
    responses={
        200: {
            "description": "File download",
            "content": {"text/csv": {}, "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": {}},
        },
        **error_responses(400, 429, 500),
    },
    summary="Export report rows",
    description=(
        "Body {items: [...]}. format=csv gives a fully quoted CSV; format=xlsx "
        "(default) gives a workbook with one sheet named Relatório. Both have "
        "the same fixed 10-column header."
    ),
    dependencies=[
        Depends(rate_limit("sensitive", settings.rate_limit_sensitive_requests, settings.rate_limit_window_ms)),
        Depends(require_json),
    ],
)
async def export_report(
    format: ExportFormat = Query(default="xlsx", description="csv or xlsx"),
    raw: Any = Depends(json_body),
    principal: Optional[Principal] = Depends(get_principal),
    meta: RequestMeta = Depends(get_request_meta),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    payload = parse_payload(ExportRequest, raw)
    content, media_type, filename = spreadsheet_service.export_report(payload.items, format)

    if principal is not None:
        audit_service.record(
            db,
            ACTION_DATA_EXPORT,
            user_id=principal.id,
            table_name="reports",
            new_values={"format": format, "items": len(payload.items)},
            meta=meta,
        )
    logger.info("Exported %d rows as %s", len(payload.items), format)
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
