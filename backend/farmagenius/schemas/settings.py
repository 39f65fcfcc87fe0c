"""
FarmaGenius Backend — User Settings Schemas
============================================

What:  The three preference sections and the PUT /user/settings body.
How:   Sections are stored as camelCase JSON (the wire format), so stored
       documents and API responses are the same shape.
"""

from typing import Any, Dict, Literal, Optional

from pydantic import Field

from farmagenius.schemas.common import CamelModel, SuccessEnvelope

SettingsSection = Literal["notifications", "processing", "display"]


class NotificationSettings(CamelModel):
    email_processing_complete: bool = True
    email_weekly_report: bool = False
    push_notifications: bool = True


class ProcessingSettings(CamelModel):
    auto_backup: bool = True
    data_retention_days: int = Field(default=90, ge=1, le=3650)
    default_export_format: Literal["csv", "xlsx"] = "xlsx"


class DisplaySettings(CamelModel):
    dark_mode: bool = True
    show_advanced_options: bool = False
    items_per_page: int = Field(default=10, ge=1, le=100)


class UserSettingsOut(CamelModel):
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    processing: ProcessingSettings = Field(default_factory=ProcessingSettings)
    display: DisplaySettings = Field(default_factory=DisplaySettings)


class SettingsUpdateRequest(CamelModel):
    section: SettingsSection
    settings: Dict[str, Any]


class SettingsResponse(SuccessEnvelope):
    message: Optional[str] = None
    settings: UserSettingsOut
