"""
FarmaGenius Backend — User Service
===================================

What:  Account operations: signup, login, profile update, password change,
       stats and recent activity.
How:   Each method runs inside the caller's session (one request = one
       transaction, committed by get_db_session). Audit entries are staged
       in the same session so they commit atomically with the change.
Who:   routes/auth.py and routes/user.py.

Error Handling Strategy:
    - Email already taken          → ConflictError (409); a concurrent insert
                                     losing the unique-index race is mapped
                                     the same way via IntegrityError
    - Principal's row missing      → NotFoundError (404)
    - Wrong current password       → ValidationError (400)
    - Any other SQLAlchemyError    → DatabaseError (500), details logged only
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from farmagenius.config import settings
from farmagenius.dependencies import RequestMeta
from farmagenius.exceptions import (
    ConflictError,
    DatabaseError,
    NotFoundError,
    UnauthenticatedError,
    ValidationError,
)
from farmagenius.models import Report, User
from farmagenius.models.user import utcnow
from farmagenius.schemas.user import (
    ActivityEntry,
    PasswordChangeRequest,
    ProfileUpdateRequest,
    SignupRequest,
    UserPublic,
    UserStatsResponse,
)
from farmagenius.services.audit_service import (
    ACTION_CREATE,
    ACTION_LOGIN_FAILED,
    ACTION_LOGIN_SUCCESS,
    ACTION_PASSWORD_CHANGE,
    ACTION_UPDATE,
    audit_service,
)
from farmagenius.services.auth import hash_password, verify_password

logger = logging.getLogger(__name__)

# Average minutes spent per completed report, used for totalProcessingTime
MINUTES_PER_COMPLETED_REPORT = 3
ACTIVITY_LIMIT = 10

_ACTIVITY_LABELS = {
    "completed": "Processamento",
    "processing": "Upload",
    "error": "Erro",
}


class UserService:
    """Business logic for user accounts. Stateless; singleton at module bottom."""

    async def get_user(self, db: AsyncSession, user_id: uuid.UUID) -> User:
        try:
            user = await db.get(User, user_id)
        except SQLAlchemyError as e:
            logger.error("Database error loading user %s: %s", user_id, str(e))
            raise DatabaseError(context={"user_id": str(user_id)})
        if user is None:
            raise NotFoundError(resource="Usuário", resource_id=str(user_id))
        return user

    async def _email_owner(self, db: AsyncSession, email: str) -> Optional[uuid.UUID]:
        result = await db.execute(select(User.id).where(User.email == email))
        return result.scalar_one_or_none()

    # ── Create ────────────────────────────────────────────────────────────

    async def signup(
        self,
        db: AsyncSession,
        payload: SignupRequest,
        meta: Optional[RequestMeta] = None,
    ) -> UserPublic:
        """
        Create an account.

        Raises:
            ConflictError: The (lower-cased) email is already registered.
        """
        try:
            if await self._email_owner(db, payload.email) is not None:
                raise ConflictError("Usuário já existe", context={"email": payload.email})

            user = User(
                name=payload.name,
                email=payload.email,
                password_hash=await hash_password(payload.password, settings.bcrypt_rounds),
            )
            db.add(user)
            await db.flush()
        except IntegrityError:
            # Lost a race with a concurrent signup for the same email
            await db.rollback()
            raise ConflictError("Usuário já existe", context={"email": payload.email})
        except SQLAlchemyError as e:
            logger.error("Database error during signup: %s", str(e))
            raise DatabaseError(context={"operation": "signup"})

        audit_service.record(
            db,
            ACTION_CREATE,
            user_id=user.id,
            table_name="users",
            record_id=user.id,
            new_values={"name": user.name, "email": user.email},
            meta=meta,
        )
        logger.info("User created: %s", user.id)
        return UserPublic.model_validate(user)

    # ── Login ─────────────────────────────────────────────────────────────

    async def authenticate(
        self,
        db: AsyncSession,
        email: str,
        password: str,
        meta: Optional[RequestMeta] = None,
    ) -> UserPublic:
        """
        Verify credentials.

        A failed attempt is audited and committed before raising, so the
        LOGIN_FAILED entry survives the request's rollback.

        Raises:
            UnauthenticatedError: Unknown email or wrong password (same message).
        """
        try:
            result = await db.execute(select(User).where(User.email == email))
            user = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error during login: %s", str(e))
            raise DatabaseError(context={"operation": "login"})

        if user is None or not await verify_password(password, user.password_hash):
            audit_service.record(
                db,
                ACTION_LOGIN_FAILED,
                user_id=user.id if user else None,
                table_name="users",
                new_values={"email": email},
                meta=meta,
            )
            await db.commit()
            logger.warning("Failed login for %s", email)
            raise UnauthenticatedError("Email ou senha inválidos")

        audit_service.record(db, ACTION_LOGIN_SUCCESS, user_id=user.id, table_name="users", meta=meta)
        return UserPublic.model_validate(user)

    # ── Update-by-owner ───────────────────────────────────────────────────

    async def update_profile(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        payload: ProfileUpdateRequest,
        meta: Optional[RequestMeta] = None,
    ) -> UserPublic:
        """
        Apply the supplied fields only; updated_at is always refreshed.

        Raises:
            ConflictError: The new email belongs to another account.
            NotFoundError: The principal's row no longer exists.
        """
        user = await self.get_user(db, user_id)
        old_values = {"name": user.name, "email": user.email}

        try:
            if payload.email is not None and payload.email != user.email:
                owner = await self._email_owner(db, payload.email)
                if owner is not None and owner != user.id:
                    raise ConflictError("Este email já está em uso", context={"email": payload.email})
                user.email = payload.email
            if payload.name is not None:
                user.name = payload.name
            user.updated_at = utcnow()
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise ConflictError("Este email já está em uso", context={"email": payload.email})
        except SQLAlchemyError as e:
            logger.error("Database error updating profile %s: %s", user_id, str(e))
            raise DatabaseError(context={"user_id": str(user_id)})

        audit_service.record(
            db,
            ACTION_UPDATE,
            user_id=user.id,
            table_name="users",
            record_id=user.id,
            old_values=old_values,
            new_values={"name": user.name, "email": user.email},
            meta=meta,
        )
        return UserPublic.model_validate(user)

    async def change_password(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        payload: PasswordChangeRequest,
        meta: Optional[RequestMeta] = None,
    ) -> None:
        """
        Replace the password hash after verifying the current password.

        Raises:
            ValidationError: Current password does not match.
        """
        user = await self.get_user(db, user_id)

        if not await verify_password(payload.current_password, user.password_hash):
            raise ValidationError("Senha atual incorreta", field="currentPassword")

        user.password_hash = await hash_password(
            payload.new_password, settings.bcrypt_rounds_password_change
        )
        user.updated_at = utcnow()
        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error changing password for %s: %s", user_id, str(e))
            raise DatabaseError(context={"user_id": str(user_id)})

        audit_service.record(
            db,
            ACTION_PASSWORD_CHANGE,
            user_id=user.id,
            table_name="users",
            record_id=user.id,
            new_values={"passwordChanged": True},
            meta=meta,
        )
        logger.info("Password changed for user %s", user.id)

    # ── AggregateCount ────────────────────────────────────────────────────

    async def get_stats(self, db: AsyncSession, user_id: uuid.UUID) -> UserStatsResponse:
        """
        Counts over the owner's reports only, computed in SQL.

        lastLogin is the user's updated_at: there is no login-event table,
        so the last profile/password change stands in for it.
        """
        user = await self.get_user(db, user_id)
        query = select(
            func.count(Report.id),
            func.coalesce(func.sum(case((Report.status == "completed", 1), else_=0)), 0),
        ).where(Report.user_id == user_id)

        try:
            total, completed = (await db.execute(query)).one()
        except SQLAlchemyError as e:
            logger.error("Database error computing stats for %s: %s", user_id, str(e))
            raise DatabaseError(context={"user_id": str(user_id)})

        return UserStatsResponse(
            total_reports=total or 0,
            last_login=user.updated_at,
            account_created=user.created_at,
            total_processing_time=int(completed or 0) * MINUTES_PER_COMPLETED_REPORT,
        )

    async def get_activity(self, db: AsyncSession, user_id: uuid.UUID) -> List[ActivityEntry]:
        """The owner's 10 most recent reports rendered as activity entries."""
        query = (
            select(Report.title, Report.date, Report.status, Report.created_at)
            .where(Report.user_id == user_id)
            .order_by(Report.created_at.desc())
            .limit(ACTIVITY_LIMIT)
        )
        try:
            rows = (await db.execute(query)).all()
        except SQLAlchemyError as e:
            logger.error("Database error loading activity for %s: %s", user_id, str(e))
            raise DatabaseError(context={"user_id": str(user_id)})

        return [
            ActivityEntry(
                action=_ACTIVITY_LABELS.get(status, "Atividade"),
                details=f'Relatório "{title}" ({date})',
                created_at=created_at,
            )
            for title, date, status, created_at in rows
        ]


# ── Singleton Instance ────────────────────────────────────────────────────
user_service = UserService()
