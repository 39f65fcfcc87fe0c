"""
FarmaGenius Backend — FastAPI Dependencies
===========================================

What:  The per-request pipeline stages as injectable dependencies.
How:   Capabilities (rate limiter, principal resolver, payment gateway) are
       instances on `app.state`, created by the app factory. Dependencies
       look them up from the request, so tests swap them by assigning new
       instances to app.state.

Per-request order for a protected mutating route:
    rate_limit(...) → require_json → require_principal → body validation → service
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Depends, Request

from farmagenius.exceptions import RateLimitExceededError, UnauthenticatedError
from farmagenius.services.auth import Principal, PrincipalResolver
from farmagenius.services.payment_base import PaymentGateway
from farmagenius.services.rate_limiter import FixedWindowRateLimiter

logger = logging.getLogger(__name__)

# audit_logs column sizes
IP_ADDRESS_MAX_LENGTH = 64
USER_AGENT_MAX_LENGTH = 512


# ── Client Identity ───────────────────────────────────────────────────────

def client_ip(request: Request) -> str:
    """X-Forwarded-For first hop, then X-Real-IP, then the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else "unknown"


@dataclass(frozen=True)
class RequestMeta:
    """Client details recorded alongside audit entries."""

    ip_address: str
    user_agent: Optional[str]


def get_request_meta(request: Request) -> RequestMeta:
    """Client details cut to the audit_logs column sizes."""
    user_agent = request.headers.get("user-agent")
    return RequestMeta(
        ip_address=client_ip(request)[:IP_ADDRESS_MAX_LENGTH],
        user_agent=user_agent[:USER_AGENT_MAX_LENGTH] if user_agent else None,
    )


# ── Rate Limiting ─────────────────────────────────────────────────────────

def get_rate_limiter(request: Request) -> FixedWindowRateLimiter:
    return request.app.state.rate_limiter


def rate_limit(scope: str, max_requests: int, window_ms: int) -> Callable:
    """
    Build a dependency enforcing `max_requests` per `window_ms` per client IP
    under the key namespace `scope`.

    Usage:
        @router.post("/auth/login", dependencies=[Depends(rate_limit("login", 5, 300_000))])
    """

    async def _enforce(
        request: Request,
        limiter: FixedWindowRateLimiter = Depends(get_rate_limiter),
    ) -> None:
        key = f"{scope}:{client_ip(request)}"
        if not limiter.allow(key, max_requests, window_ms):
            retry_after = max(1, limiter.retry_after(key))
            logger.warning("Rate limit '%s' exceeded for %s", scope, key)
            raise RateLimitExceededError(retry_after=retry_after, context={"scope": scope})

    return _enforce


# ── Principal ─────────────────────────────────────────────────────────────

def get_principal_resolver(request: Request) -> PrincipalResolver:
    return request.app.state.principal_resolver


def get_principal(
    request: Request,
    resolver: PrincipalResolver = Depends(get_principal_resolver),
) -> Optional[Principal]:
    """The request's principal, or None for anonymous requests."""
    return resolver.resolve(request)


def require_principal(principal: Optional[Principal] = Depends(get_principal)) -> Principal:
    """Fail with 401 before any persistence work when no principal is present."""
    if principal is None:
        raise UnauthenticatedError()
    return principal


# ── Payment Gateway ───────────────────────────────────────────────────────

def get_payment_gateway(request: Request) -> PaymentGateway:
    return request.app.state.payment_gateway
