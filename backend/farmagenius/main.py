"""
FarmaGenius Backend — FastAPI Application Factory
==================================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance
       with its capabilities (rate limiter, principal resolver, payment
       gateway) attached to app.state.
Who:   Called by uvicorn (uvicorn farmagenius.main:app) and by the test suite.

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                      FastAPI App                         │
    │                                                          │
    │  Middleware Chain:                                       │
    │  ┌──────────┐ ┌──────────┐ ┌────────────┐ ┌───────────┐  │
    │  │  Req ID  │→│ Logging  │→│ Rate Limit │→│ GZip/CORS │  │
    │  └──────────┘ └──────────┘ └────────────┘ └───────────┘  │
    │                                                          │
    │  app.state:                                              │
    │    rate_limiter · principal_resolver · payment_gateway   │
    │                                                          │
    │  Exception Handlers:                                     │
    │  ┌────────────────────────────────────────────────────┐  │
    │  │ Validation→400 │ Unauth→401 │ NotFound→404 │       │  │
    │  │ Conflict→409 │ RateLimit→429 │ Gateway/DB/*→500    │  │
    │  └────────────────────────────────────────────────────┘  │
    └──────────────────────────────────────────────────────────┘

Error envelope (every non-2xx JSON response):
    {"success": false, "error": "...", "details": {...}?, "request_id": "..."}
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from farmagenius import __version__
from farmagenius.config import settings
from farmagenius.database import dispose_engine
from farmagenius.exceptions import (
    ConflictError,
    DatabaseError,
    FarmaGeniusError,
    NotFoundError,
    PaymentGatewayError,
    RateLimitExceededError,
    UnauthenticatedError,
    ValidationError,
)
from farmagenius.middleware.logging import RequestLoggingMiddleware
from farmagenius.middleware.rate_limit import RateLimitMiddleware
from farmagenius.middleware.request_id import RequestIDMiddleware, request_id_var
from farmagenius.routes import audit, auth, health, mappings, payment, reports, spreadsheets, user
from farmagenius.services.auth import PrincipalResolver
from farmagenius.services.kiwify_service import KiwifyGateway
from farmagenius.services.rate_limiter import FixedWindowRateLimiter
from farmagenius.validation import error_messages

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Erro interno do servidor"


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure the root logger once: stdout handler, one-line format.

    Third-party loggers that log every query or HTTP call are raised to WARNING.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("FarmaGenius Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving: health checks and non-payment routes still work
        logger.error("Configuration error: %s", str(e))

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("FarmaGenius Backend shutting down...")
    await app.state.payment_gateway.aclose()
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def error_body(request: Request, message: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": False, "error": message}
    if details:
        body["details"] = details
    # The catch-all handler runs outside RequestIDMiddleware, after the
    # context var is reset; request.state still carries the ID there
    body["request_id"] = request_id_var.get("") or getattr(request.state, "request_id", "")
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exception types to status codes and the error envelope.

    Handler hierarchy:
        ValidationError / RequestValidationError → 400 (messages in details)
        UnauthenticatedError                     → 401
        NotFoundError                            → 404
        ConflictError                            → 409
        RateLimitExceededError                   → 429 + Retry-After
        PaymentGatewayError / DatabaseError      → 500, generic message
        FarmaGeniusError (base) / Exception      → 500, generic message

    Internal details (exception text, SQL, provider bodies) are logged,
    never returned.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("Validation error on %s: %s", request.url.path, exc.message)
        return JSONResponse(
            status_code=400,
            content=error_body(request, exc.message, {"messages": exc.messages}),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        messages = error_messages(exc.errors())
        logger.warning("Request validation error on %s: %s", request.url.path, messages)
        return JSONResponse(
            status_code=400,
            content=error_body(request, ", ".join(messages), {"messages": messages}),
        )

    @app.exception_handler(UnauthenticatedError)
    async def handle_unauthenticated(request: Request, exc: UnauthenticatedError):
        return JSONResponse(status_code=401, content=error_body(request, exc.message))

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content=error_body(request, exc.message))

    @app.exception_handler(ConflictError)
    async def handle_conflict(request: Request, exc: ConflictError):
        logger.info("Conflict on %s: %s", request.url.path, exc.message)
        return JSONResponse(status_code=409, content=error_body(request, exc.message))

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return JSONResponse(
            status_code=429,
            content=error_body(request, exc.message, {"retryAfter": exc.retry_after}),
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(PaymentGatewayError)
    async def handle_payment_gateway_error(request: Request, exc: PaymentGatewayError):
        logger.error(
            "Payment gateway error: %s | status=%s | Context: %s",
            exc.message,
            exc.status_code,
            exc.context,
        )
        return JSONResponse(status_code=500, content=error_body(request, INTERNAL_ERROR_MESSAGE))

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error("Database error: %s | Context: %s", exc.message, exc.context)
        return JSONResponse(status_code=500, content=error_body(request, INTERNAL_ERROR_MESSAGE))

    @app.exception_handler(FarmaGeniusError)
    async def handle_application_error(request: Request, exc: FarmaGeniusError):
        logger.error("Unhandled application error: %s | Context: %s", exc.message, exc.context)
        return JSONResponse(status_code=500, content=error_body(request, INTERNAL_ERROR_MESSAGE))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("Unexpected error: %s", str(exc), exc_info=True)
        return JSONResponse(status_code=500, content=error_body(request, INTERNAL_ERROR_MESSAGE))


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Capabilities are plain instances on app.state; dependencies look them up
    per request, so tests replace them by assignment.
    """
    app = FastAPI(
        title="FarmaGenius API",
        description=(
            "Backend for pharmacy production reports: accounts, spreadsheet "
            "preview and export, saved reports, column mappings, payments and "
            "an audit trail."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Capabilities ──────────────────────────────────────────────────────
    app.state.rate_limiter = FixedWindowRateLimiter(sweep_interval=settings.rate_limit_sweep_interval)
    app.state.principal_resolver = PrincipalResolver(
        secret_key=settings.secret_key,
        ttl_seconds=settings.token_ttl_seconds,
        cookie_name=settings.session_cookie_name,
    )
    app.state.payment_gateway = KiwifyGateway(
        base_url=settings.kiwify_base_url,
        client_id=settings.kiwify_client_id,
        client_secret=settings.kiwify_client_secret,
        account_id=settings.kiwify_account_id,
        public_app_url=settings.public_app_url,
        timeout_seconds=settings.kiwify_timeout_seconds,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added runs first: RequestID → Logging → RateLimit → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After", "Content-Disposition"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(auth.router)
    app.include_router(user.router)
    app.include_router(mappings.router)
    app.include_router(reports.router)
    app.include_router(audit.router)
    app.include_router(payment.router)
    app.include_router(spreadsheets.router)
    app.include_router(health.router)

    return app


# ── Application Instance ─────────────────────────────────────────────────
app = create_app()
