"""
FarmaGenius Backend — Account Route Handlers
=============================================

What:  POST /signup (create account) and POST /auth/login (issue a session).
How:   Thin handlers: decode JSON, validate into a schema, delegate to
       UserService. Login returns the token in the body and also sets it as
       an HttpOnly cookie so browser clients need no extra handling.
Who:   The frontend signup and login forms.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from farmagenius.config import settings
from farmagenius.database import get_db_session
from farmagenius.dependencies import (
    RequestMeta,
    get_principal_resolver,
    get_request_meta,
    rate_limit,
)
from farmagenius.schemas.common import error_responses
from farmagenius.schemas.user import LoginRequest, LoginResponse, SignupRequest, SignupResponse
from farmagenius.services.auth import PrincipalResolver
from farmagenius.services.user_service import user_service
from farmagenius.validation import json_body, parse_payload, require_json

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Auth"])


@router.post(
    "/signup",
    response_model=SignupResponse,
    status_code=201,
    responses=error_responses(400, 409, 429, 500),
    summary="Create an account",
    description=(
        "Registers a user with name, email and password. The email is stored "
        "lower-cased and must not already be registered (409)."
    ),
    dependencies=[Depends(require_json)],
)
async def signup(
    raw: Any = Depends(json_body),
    meta: RequestMeta = Depends(get_request_meta),
    db: AsyncSession = Depends(get_db_session),
) -> SignupResponse:
    payload = parse_payload(SignupRequest, raw)
    user = await user_service.signup(db, payload, meta)
    return SignupResponse(user=user)


@router.post(
    "/auth/login",
    response_model=LoginResponse,
    responses=error_responses(400, 401, 429, 500),
    summary="Log in",
    description=(
        "Verifies email and password and returns a session token. The token is "
        "also set as the session cookie. Limited to 5 attempts per 5 minutes per IP."
    ),
    dependencies=[
        Depends(rate_limit("login", settings.rate_limit_login_requests, settings.rate_limit_login_window_ms)),
        Depends(require_json),
    ],
)
async def login(
    response: Response,
    raw: Any = Depends(json_body),
    meta: RequestMeta = Depends(get_request_meta),
    resolver: PrincipalResolver = Depends(get_principal_resolver),
    db: AsyncSession = Depends(get_db_session),
) -> LoginResponse:
    payload = parse_payload(LoginRequest, raw)
    user = await user_service.authenticate(db, payload.email, payload.password, meta)

    token = resolver.issue_token(user.id, user.email, user.name)
    response.set_cookie(
        key=resolver.cookie_name,
        value=token,
        max_age=settings.token_ttl_seconds,
        httponly=True,
        samesite="lax",
    )
    logger.info("User %s logged in", user.id)
    return LoginResponse(token=token, user=user)
