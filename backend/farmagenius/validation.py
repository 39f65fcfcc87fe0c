"""
FarmaGenius Backend — Request Validation Helpers
=================================================

What:  Shared building blocks for the typed validation boundary.
How:   Pydantic models (schemas/) declare the per-endpoint rules; this module
       supplies what they share:
       - sanitize_string / SanitizedStr: markup stripping applied inside schemas
       - error_messages(): pydantic error list → ordered human-readable messages
       - parse_payload(): validate an untyped dict into a schema or raise
       - require_json: dependency rejecting non-JSON mutating requests
       - json_body: dependency decoding the body after authentication
Who:   Imported by schemas, services and routes; error_messages() is also used
       by the RequestValidationError handler in main.py.

Sanitization is defense-in-depth against stored markup, not a full HTML
sanitizer. It runs as a before-validator, so it always happens before
anything reaches the database.
"""

import re
from typing import Annotated, Any, Dict, Iterable, List, Type, TypeVar

from fastapi import Request
from pydantic import BaseModel, BeforeValidator
from pydantic import ValidationError as PydanticValidationError

from farmagenius.exceptions import ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)

MAX_STRING_LENGTH = 1000

_SCRIPT_BLOCK = re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL)
_MARKUP_TAG = re.compile(r"<[^>]+>")
_JAVASCRIPT_SCHEME = re.compile(r"javascript:", re.IGNORECASE)

# Email shape check; deliverability is not verified
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


# ══════════════════════════════════════════════════════════════════════════
# Sanitization
# ══════════════════════════════════════════════════════════════════════════

def sanitize_string(value: str) -> str:
    """
    Strip script blocks, markup tags and javascript: references, then trim
    and truncate to MAX_STRING_LENGTH characters.

    >>> sanitize_string("  <b>Fórmula</b><script>alert(1)</script> ")
    'Fórmula'
    """
    cleaned = _SCRIPT_BLOCK.sub("", value)
    cleaned = _MARKUP_TAG.sub("", cleaned)
    cleaned = _JAVASCRIPT_SCHEME.sub("", cleaned)
    return cleaned.strip()[:MAX_STRING_LENGTH]


def _sanitize_if_str(value: Any) -> Any:
    if isinstance(value, str):
        return sanitize_string(value)
    return value


# Drop-in str type for schema fields that are persisted and later rendered
SanitizedStr = Annotated[str, BeforeValidator(_sanitize_if_str)]


def normalize_email(value: str) -> str:
    """Trim, lower-case and shape-check an email address."""
    email = value.strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ValueError("Email inválido")
    return email


# ══════════════════════════════════════════════════════════════════════════
# Error Translation
# ══════════════════════════════════════════════════════════════════════════

_VALUE_ERROR_PREFIX = "Value error, "


def _field_name(loc: Iterable[Any]) -> str:
    # ("body", "newPassword") → "newPassword"; query/path prefixes dropped too
    parts = [str(p) for p in loc if p not in ("body", "query", "path")]
    return ".".join(parts)


def error_messages(errors: Iterable[Dict[str, Any]]) -> List[str]:
    """
    Convert pydantic error dicts to an ordered list of user-facing messages.

    Rules:
        - Custom "password_policy" errors expand to one message per violated
          rule, so every missing character class is reported together.
        - Missing body → "Dados não fornecidos"; missing field → named message.
        - Everything else uses pydantic's message minus the "Value error, "
          prefix added for ValueError raised inside validators.
    Duplicates are dropped, first occurrence wins.
    """
    messages: List[str] = []
    for err in errors:
        err_type = err.get("type", "")
        loc = err.get("loc", ())
        ctx = err.get("ctx") or {}

        if err_type == "password_policy":
            batch = list(ctx.get("violations", [])) or [err.get("msg", "")]
        elif err_type == "missing":
            field = _field_name(loc)
            batch = [f"Campo obrigatório: {field}" if field else "Dados não fornecidos"]
        elif err_type in ("json_invalid", "model_attributes_type", "dict_type") and not _field_name(loc):
            batch = ["Dados não fornecidos"]
        else:
            msg = str(err.get("msg", "Dados inválidos"))
            if msg.startswith(_VALUE_ERROR_PREFIX):
                msg = msg[len(_VALUE_ERROR_PREFIX):]
            batch = [msg]

        for message in batch:
            if message and message not in messages:
                messages.append(message)
    return messages or ["Dados inválidos"]


def parse_payload(model: Type[ModelT], raw: Any) -> ModelT:
    """
    Validate an untyped payload into `model`.

    Raises:
        ValidationError: payload absent, not an object, or rule violations.
    """
    if not isinstance(raw, dict) or not raw:
        raise ValidationError("Dados não fornecidos")
    try:
        return model.model_validate(raw)
    except PydanticValidationError as exc:
        raise ValidationError(error_messages(exc.errors()), context={"model": model.__name__})


# ══════════════════════════════════════════════════════════════════════════
# Content-Type Guard
# ══════════════════════════════════════════════════════════════════════════

async def require_json(request: Request) -> None:
    """Dependency for mutating JSON routes: 400 unless Content-Type is JSON."""
    content_type = request.headers.get("content-type", "")
    if not content_type.split(";")[0].strip().lower() == "application/json":
        raise ValidationError(
            "Content-Type deve ser application/json",
            context={"content_type": content_type},
        )


async def json_body(request: Request) -> Any:
    """
    Dependency returning the decoded JSON body.

    Declared after require_principal in route signatures so that a malformed
    body from an anonymous caller is still answered with 401, not 400.
    """
    try:
        return await request.json()
    except ValueError:
        raise ValidationError("Dados não fornecidos")
