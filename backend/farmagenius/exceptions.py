"""
FarmaGenius Backend — Custom Exception Hierarchy
=================================================

What:  Application-specific exceptions, one per response class.
How:   Each exception carries a user-facing message and an optional context
       dict. Global exception handlers (registered in main.py) turn them into
       the error envelope with the matching HTTP status code.
Who:   Raised by services, dependencies and middleware; caught by global handlers.

Exception Hierarchy:
    FarmaGeniusError (base)
    ├── ValidationError          → 400 Bad Request
    ├── UnauthenticatedError     → 401 Unauthorized
    ├── NotFoundError            → 404 Not Found (missing OR owned by someone else)
    ├── ConflictError            → 409 Conflict
    ├── RateLimitExceededError   → 429 Too Many Requests
    ├── PaymentGatewayError      → 500 Internal Server Error
    └── DatabaseError            → 500 Internal Server Error

The `context` dict is for server-side logs only and is never sent to clients,
except for ValidationError, whose messages are the client-facing payload.
"""

from typing import Any, Dict, List, Optional, Sequence


class FarmaGeniusError(Exception):
    """
    Base exception for all FarmaGenius application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "Erro interno do servidor",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(FarmaGeniusError):
    """
    Raised when client input fails validation.

    Carries the ordered list of violation messages. `message` is the list
    joined with ", " for the envelope's `error` field.

    Example response:
        {
            "success": false,
            "error": "Nova senha deve ter pelo menos 8 caracteres, Senhas não coincidem",
            "details": {"messages": ["Nova senha deve ...", "Senhas não coincidem"]}
        }
    """

    def __init__(
        self,
        messages: "str | Sequence[str]" = "Dados inválidos",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if isinstance(messages, str):
            messages = [messages]
        self.messages: List[str] = list(messages) or ["Dados inválidos"]
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=", ".join(self.messages), context=ctx)
        self.field = field


class UnauthenticatedError(FarmaGeniusError):
    """Raised when a handler needs a principal and the request has none."""

    def __init__(
        self,
        message: str = "Não autorizado",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(FarmaGeniusError):
    """
    Raised when a requested resource does not exist for the caller.

    Owner-scoped lookups raise this both for missing rows and for rows owned
    by another user; the two cases produce byte-identical responses.
    """

    def __init__(
        self,
        resource: str = "Recurso",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"{resource} não encontrado"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(FarmaGeniusError):
    """Raised when a uniqueness invariant is already held by another row."""

    def __init__(
        self,
        message: str = "Registro já existe",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PaymentGatewayError(FarmaGeniusError):
    """
    Raised when the payment provider rejects a call or cannot be reached.

    The provider's response body goes into `context` for logging; the client
    only ever sees the generic internal-error message.
    """

    def __init__(
        self,
        message: str = "Falha na comunicação com o provedor de pagamento",
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if status_code is not None:
            ctx["status_code"] = status_code
        super().__init__(message=message, context=ctx)
        self.status_code = status_code


class DatabaseError(FarmaGeniusError):
    """
    Raised when database operations fail unexpectedly.

    The message returned to the client is always generic; the original
    error type and query context are logged server-side only.
    """

    def __init__(
        self,
        message: str = "Erro interno do servidor",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(FarmaGeniusError):
    """
    Raised when a client exceeds a fixed-window request limit.

    retry_after: Seconds until the client's window resets (sent as Retry-After).
    """

    def __init__(
        self,
        retry_after: int = 60,
        message: str = "Muitas requisições. Tente novamente mais tarde.",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
