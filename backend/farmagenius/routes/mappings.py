"""
FarmaGenius Backend — Mapping Route Handlers
=============================================

What:  CRUD for the user's spreadsheet column mappings and the default switch.
How:   All routes require a principal; MappingService scopes every query by
       owner, so another user's mapping answers exactly like a missing one (404).
Who:   The dashboard mapping editor.
"""

import logging
import uuid
from typing import Any

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from farmagenius.database import get_db_session
from farmagenius.dependencies import RequestMeta, get_request_meta, require_principal
from farmagenius.schemas.common import MessageResponse, error_responses
from farmagenius.schemas.mapping import (
    MappingCreateRequest,
    MappingListResponse,
    MappingResponse,
    MappingUpdateRequest,
)
from farmagenius.services.auth import Principal
from farmagenius.services.mapping_service import mapping_service
from farmagenius.validation import json_body, parse_payload, require_json

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/mappings", tags=["Mappings"])


@router.get(
    "",
    response_model=MappingListResponse,
    responses=error_responses(401, 429, 500),
    summary="List mappings",
    description="The caller's mappings, default first, then most recently updated.",
)
async def list_mappings(
    principal: Principal = Depends(require_principal),
    db: AsyncSession = Depends(get_db_session),
) -> MappingListResponse:
    return MappingListResponse(mappings=await mapping_service.list_mappings(db, principal.id))


@router.post(
    "",
    response_model=MappingResponse,
    status_code=201,
    responses=error_responses(400, 401, 409, 429, 500),
    summary="Create a mapping",
    description="The caller's first mapping becomes the default. Names are unique per user, ignoring case.",
    dependencies=[Depends(require_json)],
)
async def create_mapping(
    principal: Principal = Depends(require_principal),
    raw: Any = Depends(json_body),
    meta: RequestMeta = Depends(get_request_meta),
    db: AsyncSession = Depends(get_db_session),
) -> MappingResponse:
    payload = parse_payload(MappingCreateRequest, raw)
    mapping = await mapping_service.create_mapping(db, principal.id, payload, meta)
    return MappingResponse(mapping=mapping)


@router.get(
    "/{mapping_id}",
    response_model=MappingResponse,
    responses=error_responses(400, 401, 404, 429, 500),
    summary="Get a mapping",
)
async def get_mapping(
    mapping_id: uuid.UUID = Path(description="Mapping UUID"),
    principal: Principal = Depends(require_principal),
    db: AsyncSession = Depends(get_db_session),
) -> MappingResponse:
    return MappingResponse(mapping=await mapping_service.get_mapping(db, principal.id, mapping_id))


@router.put(
    "/{mapping_id}",
    response_model=MappingResponse,
    responses=error_responses(400, 401, 404, 409, 429, 500),
    summary="Update a mapping",
    description="Only supplied fields change.",
    dependencies=[Depends(require_json)],
)
async def update_mapping(
    mapping_id: uuid.UUID = Path(description="Mapping UUID"),
    principal: Principal = Depends(require_principal),
    raw: Any = Depends(json_body),
    meta: RequestMeta = Depends(get_request_meta),
    db: AsyncSession = Depends(get_db_session),
) -> MappingResponse:
    payload = parse_payload(MappingUpdateRequest, raw)
    mapping = await mapping_service.update_mapping(db, principal.id, mapping_id, payload, meta)
    return MappingResponse(mapping=mapping)


@router.delete(
    "/{mapping_id}",
    response_model=MessageResponse,
    responses=error_responses(400, 401, 404, 429, 500),
    summary="Delete a mapping",
    description="The default mapping cannot be deleted (400); choose another default first.",
)
async def delete_mapping(
    mapping_id: uuid.UUID = Path(description="Mapping UUID"),
    principal: Principal = Depends(require_principal),
    meta: RequestMeta = Depends(get_request_meta),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await mapping_service.delete_mapping(db, principal.id, mapping_id, meta)
    return MessageResponse(message="Mapeamento excluído com sucesso")


@router.put(
    "/{mapping_id}/default",
    response_model=MessageResponse,
    responses=error_responses(400, 401, 404, 429, 500),
    summary="Set the default mapping",
    description=(
        "Makes this mapping the caller's only default. The switch is a single "
        "transaction serialized per user, so concurrent calls never leave two "
        "defaults or none."
    ),
)
async def set_default_mapping(
    mapping_id: uuid.UUID = Path(description="Mapping UUID"),
    principal: Principal = Depends(require_principal),
    meta: RequestMeta = Depends(get_request_meta),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await mapping_service.set_default(db, principal.id, mapping_id, meta)
    return MessageResponse(message="Mapeamento padrão definido com sucesso")
