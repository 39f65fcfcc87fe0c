"""
FarmaGenius Backend — Mapping Service
======================================

What:  Owner-scoped CRUD for mappings plus the exclusive default switch.
How:   Every lookup filters by (id, user_id); a row owned by someone else
       is indistinguishable from a missing row (NotFoundError, 404).
Who:   routes/mappings.py.

Exclusive default (set_default):
    ┌─────────────────────────┐   ┌────────────────────┐   ┌──────────────────┐   ┌───────────────┐
    │ lock owner's users row  │──▶│ target owned?      │──▶│ clear all other  │──▶│ set target    │
    │ SELECT … FOR UPDATE     │   │ no → NotFoundError │   │ owner defaults   │   │ is_default    │
    └─────────────────────────┘   └────────────────────┘   └──────────────────┘   └───────────────┘

    All four steps run in the request's transaction. The row lock serializes
    concurrent switches for the same owner, so two racing calls end with
    exactly one default (last committed wins). Any failure rolls the whole
    transaction back; no intermediate state is ever committed. The partial
    unique index uq_mappings_user_default backs the invariant in the store.
    First-mapping-becomes-default creation takes the same lock.
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from farmagenius.dependencies import RequestMeta
from farmagenius.exceptions import ConflictError, DatabaseError, NotFoundError, ValidationError
from farmagenius.models import Mapping, User
from farmagenius.models.user import utcnow
from farmagenius.schemas.mapping import MappingCreateRequest, MappingOut, MappingUpdateRequest
from farmagenius.services.audit_service import (
    ACTION_CREATE,
    ACTION_DELETE,
    ACTION_UPDATE,
    audit_service,
)

logger = logging.getLogger(__name__)

RESOURCE = "Mapeamento"


def _snapshot(mapping: Mapping) -> dict:
    return {
        "name": mapping.name,
        "description": mapping.description,
        "mappingData": mapping.mapping_data,
        "isDefault": mapping.is_default,
    }


class MappingService:
    """Business logic for mappings. Stateless; singleton at module bottom."""

    async def _lock_owner(self, db: AsyncSession, owner_id: uuid.UUID) -> None:
        """Take the owner's row lock; serializes default switches per owner."""
        result = await db.execute(select(User.id).where(User.id == owner_id).with_for_update())
        if result.scalar_one_or_none() is None:
            raise NotFoundError(resource="Usuário", resource_id=str(owner_id))

    async def _get_owned(self, db: AsyncSession, owner_id: uuid.UUID, mapping_id: uuid.UUID) -> Mapping:
        result = await db.execute(
            select(Mapping).where(Mapping.id == mapping_id, Mapping.user_id == owner_id)
        )
        mapping = result.scalar_one_or_none()
        if mapping is None:
            raise NotFoundError(resource=RESOURCE, resource_id=str(mapping_id))
        return mapping

    async def _name_taken(
        self,
        db: AsyncSession,
        owner_id: uuid.UUID,
        name: str,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> bool:
        query = select(Mapping.id).where(
            Mapping.user_id == owner_id,
            func.lower(Mapping.name) == name.lower(),
        )
        if exclude_id is not None:
            query = query.where(Mapping.id != exclude_id)
        return (await db.execute(query.limit(1))).first() is not None

    # ── Read-by-owner ─────────────────────────────────────────────────────

    async def list_mappings(self, db: AsyncSession, owner_id: uuid.UUID) -> List[MappingOut]:
        """Owner's mappings: default first, then most recently updated."""
        try:
            result = await db.execute(
                select(Mapping)
                .where(Mapping.user_id == owner_id)
                .order_by(Mapping.is_default.desc(), Mapping.updated_at.desc())
            )
        except SQLAlchemyError as e:
            logger.error("Database error listing mappings for %s: %s", owner_id, str(e))
            raise DatabaseError(context={"owner_id": str(owner_id)})
        return [MappingOut.model_validate(m) for m in result.scalars().all()]

    async def get_mapping(self, db: AsyncSession, owner_id: uuid.UUID, mapping_id: uuid.UUID) -> MappingOut:
        try:
            mapping = await self._get_owned(db, owner_id, mapping_id)
        except SQLAlchemyError as e:
            logger.error("Database error fetching mapping %s: %s", mapping_id, str(e))
            raise DatabaseError(context={"mapping_id": str(mapping_id)})
        return MappingOut.model_validate(mapping)

    # ── Create ────────────────────────────────────────────────────────────

    async def create_mapping(
        self,
        db: AsyncSession,
        owner_id: uuid.UUID,
        payload: MappingCreateRequest,
        meta: Optional[RequestMeta] = None,
    ) -> MappingOut:
        """
        Create a mapping. The owner's first mapping becomes the default.

        Raises:
            ConflictError: The owner already has a mapping with this name
                           (case-insensitive).
        """
        try:
            await self._lock_owner(db, owner_id)

            if await self._name_taken(db, owner_id, payload.name):
                raise ConflictError(
                    "Já existe um mapeamento com este nome",
                    context={"name": payload.name},
                )

            existing = await db.execute(
                select(func.count(Mapping.id)).where(Mapping.user_id == owner_id)
            )
            is_first = (existing.scalar() or 0) == 0

            mapping = Mapping(
                user_id=owner_id,
                name=payload.name,
                description=payload.description,
                mapping_data=payload.mapping_data,
                is_default=is_first,
            )
            db.add(mapping)
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise ConflictError("Já existe um mapeamento com este nome", context={"name": payload.name})
        except SQLAlchemyError as e:
            logger.error("Database error creating mapping for %s: %s", owner_id, str(e))
            raise DatabaseError(context={"owner_id": str(owner_id)})

        audit_service.record(
            db,
            ACTION_CREATE,
            user_id=owner_id,
            table_name="mappings",
            record_id=mapping.id,
            new_values=_snapshot(mapping),
            meta=meta,
        )
        logger.info("Mapping %s created for %s (default=%s)", mapping.id, owner_id, is_first)
        return MappingOut.model_validate(mapping)

    # ── Update-by-owner ───────────────────────────────────────────────────

    async def update_mapping(
        self,
        db: AsyncSession,
        owner_id: uuid.UUID,
        mapping_id: uuid.UUID,
        payload: MappingUpdateRequest,
        meta: Optional[RequestMeta] = None,
    ) -> MappingOut:
        try:
            mapping = await self._get_owned(db, owner_id, mapping_id)
            old_values = _snapshot(mapping)

            if payload.name is not None and payload.name != mapping.name:
                if await self._name_taken(db, owner_id, payload.name, exclude_id=mapping.id):
                    raise ConflictError(
                        "Já existe um mapeamento com este nome",
                        context={"name": payload.name},
                    )
                mapping.name = payload.name
            if "description" in payload.model_fields_set:
                mapping.description = payload.description
            if payload.mapping_data is not None:
                mapping.mapping_data = payload.mapping_data
            mapping.updated_at = utcnow()
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error updating mapping %s: %s", mapping_id, str(e))
            raise DatabaseError(context={"mapping_id": str(mapping_id)})

        audit_service.record(
            db,
            ACTION_UPDATE,
            user_id=owner_id,
            table_name="mappings",
            record_id=mapping.id,
            old_values=old_values,
            new_values=_snapshot(mapping),
            meta=meta,
        )
        return MappingOut.model_validate(mapping)

    async def delete_mapping(
        self,
        db: AsyncSession,
        owner_id: uuid.UUID,
        mapping_id: uuid.UUID,
        meta: Optional[RequestMeta] = None,
    ) -> None:
        """
        Raises:
            ValidationError: The mapping is the owner's default.
        """
        try:
            mapping = await self._get_owned(db, owner_id, mapping_id)
            if mapping.is_default:
                raise ValidationError("Não é possível excluir o mapeamento padrão")
            old_values = _snapshot(mapping)
            await db.delete(mapping)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error deleting mapping %s: %s", mapping_id, str(e))
            raise DatabaseError(context={"mapping_id": str(mapping_id)})

        audit_service.record(
            db,
            ACTION_DELETE,
            user_id=owner_id,
            table_name="mappings",
            record_id=mapping_id,
            old_values=old_values,
            meta=meta,
        )

    # ── SetExclusiveFlag ──────────────────────────────────────────────────

    async def set_default(
        self,
        db: AsyncSession,
        owner_id: uuid.UUID,
        mapping_id: uuid.UUID,
        meta: Optional[RequestMeta] = None,
    ) -> None:
        """
        Make `mapping_id` the owner's only default mapping.

        Clearing runs before setting so the partial unique index never sees
        two defaults, even transiently. Both UPDATEs are scoped by owner.

        Raises:
            NotFoundError: Mapping missing or owned by another user.
        """
        try:
            await self._lock_owner(db, owner_id)
            target = await self._get_owned(db, owner_id, mapping_id)
            previous = await db.execute(
                select(Mapping.id).where(
                    Mapping.user_id == owner_id,
                    Mapping.is_default.is_(True),
                )
            )
            previous_default = previous.scalar_one_or_none()

            now = utcnow()
            await db.execute(
                update(Mapping)
                .where(
                    Mapping.user_id == owner_id,
                    Mapping.id != target.id,
                    Mapping.is_default.is_(True),
                )
                .values(is_default=False, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            await db.execute(
                update(Mapping)
                .where(Mapping.id == target.id, Mapping.user_id == owner_id)
                .values(is_default=True, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error setting default mapping %s: %s", mapping_id, str(e))
            raise DatabaseError(context={"mapping_id": str(mapping_id)})

        audit_service.record(
            db,
            ACTION_UPDATE,
            user_id=owner_id,
            table_name="mappings",
            record_id=mapping_id,
            old_values={"defaultMappingId": str(previous_default) if previous_default else None},
            new_values={"defaultMappingId": str(mapping_id)},
            meta=meta,
        )
        logger.info("Default mapping for %s set to %s", owner_id, mapping_id)


# ── Singleton Instance ────────────────────────────────────────────────────
mapping_service = MappingService()
