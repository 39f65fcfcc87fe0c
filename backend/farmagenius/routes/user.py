"""
FarmaGenius Backend — User Route Handlers
==========================================

What:  The signed-in user's profile, password, stats, activity and settings.
How:   Every route requires a principal and acts on the principal's own row.
       The whole router carries the sensitive per-IP limit; /user/stats adds
       its own tighter limit on top.
Who:   The dashboard profile and settings pages.

Routes:
    PUT /user/profile    name/email update
    PUT /user/password   password change
    GET /user/stats      report counters
    GET /user/activity   recent report activity
    GET /user/settings   preferences (defaults on first read)
    PUT /user/settings   replace one preferences section
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from farmagenius.config import settings
from farmagenius.database import get_db_session
from farmagenius.dependencies import RequestMeta, get_request_meta, rate_limit, require_principal
from farmagenius.schemas.common import MessageResponse, error_responses
from farmagenius.schemas.settings import SettingsResponse, SettingsUpdateRequest
from farmagenius.schemas.user import (
    ActivityResponse,
    ProfileResponse,
    ProfileUpdateRequest,
    UserStatsResponse,
    validate_password_change,
)
from farmagenius.services.auth import Principal
from farmagenius.services.settings_service import settings_service
from farmagenius.services.user_service import user_service
from farmagenius.validation import json_body, parse_payload, require_json

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/user",
    tags=["User"],
    dependencies=[
        Depends(rate_limit("sensitive", settings.rate_limit_sensitive_requests, settings.rate_limit_window_ms)),
    ],
)


# ── Profile ───────────────────────────────────────────────────────────────

@router.put(
    "/profile",
    response_model=ProfileResponse,
    responses=error_responses(400, 401, 404, 409, 429, 500),
    summary="Update profile",
    description="Updates name and/or email. Only supplied fields change; a taken email returns 409.",
    dependencies=[Depends(require_json)],
)
async def update_profile(
    principal: Principal = Depends(require_principal),
    raw: Any = Depends(json_body),
    meta: RequestMeta = Depends(get_request_meta),
    db: AsyncSession = Depends(get_db_session),
) -> ProfileResponse:
    payload = parse_payload(ProfileUpdateRequest, raw)
    user = await user_service.update_profile(db, principal.id, payload, meta)
    return ProfileResponse(id=user.id, name=user.name, email=user.email)


@router.put(
    "/password",
    response_model=MessageResponse,
    responses=error_responses(400, 401, 404, 429, 500),
    summary="Change password",
    description=(
        "Requires the current password. The new password must have at least 8 "
        "characters with upper and lower case letters, a digit and a special "
        "character, must match confirmPassword and differ from the current one."
    ),
    dependencies=[Depends(require_json)],
)
async def change_password(
    principal: Principal = Depends(require_principal),
    raw: Any = Depends(json_body),
    meta: RequestMeta = Depends(get_request_meta),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    payload = validate_password_change(raw)
    await user_service.change_password(db, principal.id, payload, meta)
    return MessageResponse(message="Senha alterada com sucesso")


# ── Stats & Activity ──────────────────────────────────────────────────────

@router.get(
    "/stats",
    response_model=UserStatsResponse,
    responses=error_responses(401, 404, 429, 500),
    summary="Report statistics",
    description=(
        "Total reports, account creation time, total processing time (3 minutes per "
        "completed report) and lastLogin, which is the account's last update time."
    ),
    dependencies=[
        Depends(rate_limit("stats", settings.rate_limit_stats_requests, settings.rate_limit_window_ms)),
    ],
)
async def get_stats(
    principal: Principal = Depends(require_principal),
    db: AsyncSession = Depends(get_db_session),
) -> UserStatsResponse:
    return await user_service.get_stats(db, principal.id)


@router.get(
    "/activity",
    response_model=ActivityResponse,
    responses=error_responses(401, 429, 500),
    summary="Recent activity",
)
async def get_activity(
    principal: Principal = Depends(require_principal),
    db: AsyncSession = Depends(get_db_session),
) -> ActivityResponse:
    activities = await user_service.get_activity(db, principal.id)
    return ActivityResponse(activities=activities)


# ── Settings ──────────────────────────────────────────────────────────────

@router.get(
    "/settings",
    response_model=SettingsResponse,
    responses=error_responses(401, 429, 500),
    summary="Get preferences",
)
async def get_settings(
    principal: Principal = Depends(require_principal),
    db: AsyncSession = Depends(get_db_session),
) -> SettingsResponse:
    return SettingsResponse(settings=await settings_service.get_settings(db, principal.id))


@router.put(
    "/settings",
    response_model=SettingsResponse,
    responses=error_responses(400, 401, 429, 500),
    summary="Update one preferences section",
    description="Body: {section: notifications|processing|display, settings: {...}}.",
    dependencies=[Depends(require_json)],
)
async def update_settings(
    principal: Principal = Depends(require_principal),
    raw: Any = Depends(json_body),
    meta: RequestMeta = Depends(get_request_meta),
    db: AsyncSession = Depends(get_db_session),
) -> SettingsResponse:
    payload = parse_payload(SettingsUpdateRequest, raw)
    updated = await settings_service.update_section(
        db, principal.id, payload.section, payload.settings, meta
    )
    return SettingsResponse(message="Configurações salvas com sucesso", settings=updated)
