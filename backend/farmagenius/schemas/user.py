"""
FarmaGenius Backend — User Schemas
===================================

What:  Request/response models for signup, login, profile, password change,
       stats and activity.
Who:   routes/auth.py and routes/user.py.

Password policy (password change only):
    ≥ 8 characters, at least one uppercase letter, one lowercase letter,
    one digit and one non-alphanumeric character. Every violated rule is
    reported, not just the first. Signup only enforces the minimum length.
"""

import re
import uuid
from datetime import datetime
from typing import Any, List, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_core import PydanticCustomError

from farmagenius.exceptions import ValidationError
from farmagenius.schemas.common import CamelModel, SuccessEnvelope
from farmagenius.validation import SanitizedStr, normalize_email, parse_payload

NAME_MAX_LENGTH = 100
PASSWORD_MIN_LENGTH = 8


def _check_name(value: str) -> str:
    if not value:
        raise ValueError("Nome é obrigatório")
    if len(value) > NAME_MAX_LENGTH:
        raise ValueError("Nome muito longo")
    return value


def password_policy_violations(password: str) -> List[str]:
    """Return the ordered list of rules `password` breaks (empty when valid)."""
    violations = []
    if len(password) < PASSWORD_MIN_LENGTH:
        violations.append("Nova senha deve ter pelo menos 8 caracteres")
    if not re.search(r"[A-Z]", password):
        violations.append("Nova senha deve ter pelo menos uma letra maiúscula")
    if not re.search(r"[a-z]", password):
        violations.append("Nova senha deve ter pelo menos uma letra minúscula")
    if not re.search(r"[0-9]", password):
        violations.append("Nova senha deve ter pelo menos um número")
    if not re.search(r"[^A-Za-z0-9]", password):
        violations.append("Nova senha deve ter pelo menos um caractere especial")
    return violations


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class SignupRequest(CamelModel):
    name: SanitizedStr
    email: str
    password: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _check_name(v)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if len(v) < PASSWORD_MIN_LENGTH:
            raise ValueError("Senha deve ter pelo menos 8 caracteres")
        return v


class LoginRequest(CamelModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if not v:
            raise ValueError("Senha é obrigatória")
        return v


class ProfileUpdateRequest(CamelModel):
    """Partial update: only supplied fields are changed."""

    name: Optional[SanitizedStr] = None
    email: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _check_name(v)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else normalize_email(v)


class PasswordChangeRequest(CamelModel):
    current_password: str
    new_password: str
    confirm_password: str

    @field_validator("current_password")
    @classmethod
    def validate_current(cls, v: str) -> str:
        if not v:
            raise ValueError("Senha atual é obrigatória")
        return v

    @field_validator("new_password")
    @classmethod
    def validate_new(cls, v: str) -> str:
        violations = password_policy_violations(v)
        if violations:
            raise PydanticCustomError(
                "password_policy",
                "{summary}",
                {"summary": ", ".join(violations), "violations": violations},
            )
        return v

    @model_validator(mode="after")
    def passwords_match(self) -> "PasswordChangeRequest":
        if self.new_password != self.confirm_password:
            raise ValueError("Senhas não coincidem")
        return self


def validate_password_change(raw: Any) -> PasswordChangeRequest:
    """
    Validate a password-change body.

    The "new must differ from current" business rule is checked on the raw
    values, independently of schema validity, and its message is combined
    with any schema violations in a single ValidationError.
    """
    messages: List[str] = []
    if isinstance(raw, dict):
        current = raw.get("currentPassword", raw.get("current_password"))
        new = raw.get("newPassword", raw.get("new_password"))
        if current is not None and current == new:
            messages.append("A nova senha deve ser diferente da senha atual")

    try:
        payload = parse_payload(PasswordChangeRequest, raw)
    except ValidationError as exc:
        raise ValidationError(messages + [m for m in exc.messages if m not in messages])

    if messages:
        raise ValidationError(messages)
    return payload


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class UserPublic(CamelModel):
    """Public projection of a user; never includes the password hash."""

    id: uuid.UUID
    name: str
    email: str


class SignupResponse(SuccessEnvelope):
    message: str = "Usuário criado com sucesso"
    user: UserPublic


class LoginResponse(SuccessEnvelope):
    token: str
    user: UserPublic


class ProfileResponse(SuccessEnvelope, UserPublic):
    pass


class UserStatsResponse(SuccessEnvelope):
    total_reports: int = Field(ge=0)
    # Approximated by the user's updated_at; no login-event table exists
    last_login: Optional[datetime] = None
    account_created: datetime
    # Minutes: completed reports × 3
    total_processing_time: int = Field(ge=0)


class ActivityEntry(CamelModel):
    action: str
    details: str
    created_at: datetime


class ActivityResponse(SuccessEnvelope):
    activities: List[ActivityEntry]
