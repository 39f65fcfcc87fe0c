"""
FarmaGenius Backend — User Settings Service
============================================

What:  Read and update the per-user preference document.
How:   The row is created with defaults on first read. An update replaces one
       section: the incoming values are merged over the stored section and
       validated against that section's model before being written back.
Who:   GET/PUT /user/settings.
"""

import logging
import uuid
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from farmagenius.dependencies import RequestMeta
from farmagenius.exceptions import DatabaseError
from farmagenius.models import UserSettings
from farmagenius.models.user import utcnow
from farmagenius.schemas.settings import (
    DisplaySettings,
    NotificationSettings,
    ProcessingSettings,
    UserSettingsOut,
)
from farmagenius.services.audit_service import ACTION_UPDATE, audit_service
from farmagenius.validation import parse_payload

logger = logging.getLogger(__name__)

SECTION_MODELS = {
    "notifications": NotificationSettings,
    "processing": ProcessingSettings,
    "display": DisplaySettings,
}


def default_settings() -> Dict[str, Any]:
    return UserSettingsOut().model_dump(by_alias=True)


class SettingsService:

    async def _find(self, db: AsyncSession, owner_id: uuid.UUID) -> Optional[UserSettings]:
        result = await db.execute(select(UserSettings).where(UserSettings.user_id == owner_id))
        return result.scalar_one_or_none()

    async def _get_or_create(self, db: AsyncSession, owner_id: uuid.UUID) -> UserSettings:
        """
        Load the owner's row, inserting defaults on first use.

        A concurrent first read may insert the row between our select and
        insert; the unique user_id rejects ours and the winner's row is used.
        """
        try:
            row = await self._find(db, owner_id)
            if row is not None:
                return row
            row = UserSettings(user_id=owner_id, settings=default_settings())
            db.add(row)
            await db.flush()
            logger.info("Default settings created for %s", owner_id)
            return row
        except IntegrityError:
            await db.rollback()
            logger.info("Settings for %s created concurrently, reloading", owner_id)
        except SQLAlchemyError as e:
            logger.error("Database error loading settings for %s: %s", owner_id, str(e))
            raise DatabaseError(context={"owner_id": str(owner_id)})

        try:
            row = await self._find(db, owner_id)
        except SQLAlchemyError as e:
            logger.error("Database error reloading settings for %s: %s", owner_id, str(e))
            raise DatabaseError(context={"owner_id": str(owner_id)})
        if row is None:
            raise DatabaseError(context={"owner_id": str(owner_id), "reason": "settings row vanished"})
        return row

    async def get_settings(self, db: AsyncSession, owner_id: uuid.UUID) -> UserSettingsOut:
        row = await self._get_or_create(db, owner_id)
        return UserSettingsOut.model_validate({**default_settings(), **(row.settings or {})})

    async def update_section(
        self,
        db: AsyncSession,
        owner_id: uuid.UUID,
        section: str,
        values: Dict[str, Any],
        meta: Optional[RequestMeta] = None,
    ) -> UserSettingsOut:
        """
        Replace one section with `values` merged over what is stored.

        Raises:
            ValidationError: The merged section fails its model's rules.
        """
        row = await self._get_or_create(db, owner_id)
        document = {**default_settings(), **(row.settings or {})}
        old_section = document.get(section) or {}

        merged = parse_payload(SECTION_MODELS[section], {**old_section, **values})
        document[section] = merged.model_dump(by_alias=True)

        # Reassign so the JSON column is flagged dirty
        row.settings = document
        row.updated_at = utcnow()
        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error saving settings for %s: %s", owner_id, str(e))
            raise DatabaseError(context={"owner_id": str(owner_id), "section": section})

        audit_service.record(
            db,
            ACTION_UPDATE,
            user_id=owner_id,
            table_name="user_settings",
            record_id=row.id,
            old_values={section: old_section},
            new_values={section: document[section]},
            meta=meta,
        )
        return UserSettingsOut.model_validate(document)


# ── Singleton Instance ────────────────────────────────────────────────────
settings_service = SettingsService()
