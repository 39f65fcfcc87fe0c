"""
FarmaGenius Backend — Shared Envelope Schemas
==============================================

What:  Base models for the fixed response envelope and camelCase wire format.
Who:   Every other schema module builds on these.

Envelope:
    Success: {"success": true, ...payload}
    Failure: {"success": false, "error": "...", "details": {...}, "request_id": "..."}

Field names are snake_case in Python and camelCase on the wire
(alias_generator=to_camel). Request models accept either spelling.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for every API model: camelCase aliases, populate by field name too."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class SuccessEnvelope(CamelModel):
    """Base for all success responses."""

    success: bool = Field(default=True, description="Always true on success")


class MessageResponse(SuccessEnvelope):
    """Success response carrying only a human-readable message."""

    message: str = Field(description="Human-readable confirmation")


class Pagination(CamelModel):
    """Offset pagination block returned by list endpoints."""

    limit: int
    offset: int
    total: int
    has_more: bool


class ErrorResponse(BaseModel):
    """
    Standardized error body for every non-2xx response (OpenAPI docs only;
    handlers in main.py build the dict directly).

    Example:
        {
            "success": false,
            "error": "Mapeamento não encontrado",
            "request_id": "1f2e3d4c"
        }
    """

    success: bool = Field(default=False)
    error: str = Field(description="Human-readable error description")
    details: Optional[Dict[str, Any]] = Field(default=None, description="Extra context, e.g. validation messages")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


def error_responses(*codes: int) -> Dict[int, Dict[str, Any]]:
    """Build the `responses=` mapping for a route from a list of status codes."""
    descriptions = {
        400: "Invalid input",
        401: "Not authenticated",
        404: "Not found or not owned by the caller",
        409: "Conflict with an existing record",
        429: "Rate limit exceeded",
        500: "Server error",
    }
    return {code: {"description": descriptions[code], "model": ErrorResponse} for code in codes}


__all__: List[str] = [
    "CamelModel",
    "SuccessEnvelope",
    "MessageResponse",
    "Pagination",
    "ErrorResponse",
    "error_responses",
]
