"""
FarmaGenius Backend — General Rate Limiting Middleware
=======================================================

What:  Applies the general per-IP limit (settings.rate_limit_requests per
       settings.rate_limit_window_ms) to every request.
How:   Delegates counting to the FixedWindowRateLimiter on
       app.state.rate_limiter, keyed "ip:<client ip>", so the middleware and
       the per-route limits share one store (with distinct key prefixes).
Who:   Registered by the app factory.

Rejected requests get the standard error envelope with status 429 and a
Retry-After header. Middleware responses bypass FastAPI's exception
handlers, so the envelope is built here.
"""

import logging

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from farmagenius.config import settings
from farmagenius.dependencies import client_ip
from farmagenius.exceptions import RateLimitExceededError
from farmagenius.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Excluded paths:
        /health, /docs, /openapi.json, /redoc and CORS preflight requests.
    """

    EXCLUDED_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in self.EXCLUDED_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        limiter = request.app.state.rate_limiter
        key = f"ip:{client_ip(request)}"

        if not limiter.allow(key, settings.rate_limit_requests, settings.rate_limit_window_ms):
            retry_after = max(1, limiter.retry_after(key))
            logger.warning("General rate limit exceeded for %s", key)
            exc = RateLimitExceededError(retry_after=retry_after)
            return JSONResponse(
                status_code=429,
                content={
                    "success": False,
                    "error": exc.message,
                    "details": {"retryAfter": retry_after},
                    "request_id": request_id_var.get(""),
                },
                headers={"Retry-After": str(retry_after)},
            )

        return await call_next(request)
