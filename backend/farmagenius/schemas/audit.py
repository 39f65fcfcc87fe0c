"""
FarmaGenius Backend — Audit Schemas
====================================

What:  Query parameters and response models for GET /audit.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field, model_validator

from farmagenius.schemas.common import CamelModel, SuccessEnvelope

AuditQueryType = Literal["all", "suspicious", "by-action", "stats"]


class AuditQueryParams(CamelModel):
    """
    type:    all (default) | suspicious | by-action | stats
    action:  required when type = by-action
    userId:  filters `all` and `stats` to one user
    """

    type: AuditQueryType = "all"
    action: Optional[str] = None
    user_id: Optional[uuid.UUID] = None
    limit: int = Field(default=50, ge=1, le=500)
    offset: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def action_required_for_by_action(self) -> "AuditQueryParams":
        if self.type == "by-action" and not self.action:
            raise ValueError("Ação é obrigatória para este tipo")
        return self


class AuditLogOut(CamelModel):
    id: uuid.UUID
    user_id: Optional[uuid.UUID] = None
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    action: str
    table_name: str
    record_id: Optional[str] = None
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime


class AuditStats(CamelModel):
    total_logs: int = 0
    login_attempts: int = 0
    failed_logins: int = 0
    # Entries in the last 24 hours
    recent_activity: int = 0
    # Percentage of successful logins among all login attempts
    success_rate: float = 0


class AuditPagination(CamelModel):
    limit: int
    offset: int
    total: int


class AuditResponse(SuccessEnvelope):
    logs: Optional[List[AuditLogOut]] = None
    stats: Optional[AuditStats] = None
    pagination: Optional[AuditPagination] = None
