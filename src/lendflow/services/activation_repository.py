"""Persistence for activation profiles.

Every write locks the user's profile row, applies one step's fields (or a
status change) together with the lifecycle metadata and an audit entry, and
commits as a single transaction.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError

from lendflow.db.models import (
    TOTAL_STEPS,
    ActivationAuditLog,
    ActivationProfile,
    ActivationStatus,
    AuditActionType,
)
from lendflow.services.errors import (
    InvalidStatusTransitionError,
    NotFoundError,
    StorageError,
)

if TYPE_CHECKING:
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from lendflow.services.step_validation import StepModel

logger = logging.getLogger(__name__)

# Status changes an admin may make
ALLOWED_TRANSITIONS: dict[ActivationStatus, frozenset[ActivationStatus]] = {
    ActivationStatus.PENDING: frozenset({ActivationStatus.IN_PROGRESS, ActivationStatus.REJECTED}),
    ActivationStatus.IN_PROGRESS: frozenset(
        {ActivationStatus.COMPLETED, ActivationStatus.REJECTED, ActivationStatus.PENDING}
    ),
    ActivationStatus.COMPLETED: frozenset({ActivationStatus.REJECTED}),
    ActivationStatus.REJECTED: frozenset({ActivationStatus.PENDING, ActivationStatus.IN_PROGRESS}),
}

# Columns too large or sensitive to copy into the audit log
_AUDIT_REDACTED = frozenset({"signature_data"})


def _audit_snapshot(values: dict[str, Any]) -> dict[str, Any]:
    return {
        key: ("[redacted]" if key in _AUDIT_REDACTED and value else value)
        for key, value in values.items()
    }


class ActivationProfileRepository:
    """Reads and writes the per-user activation profile."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: UUID) -> ActivationProfile | None:
        """Load a user's profile. Absence is not an error."""
        query = select(ActivationProfile).where(ActivationProfile.user_id == user_id)
        try:
            result = await self._session.execute(query)
        except SQLAlchemyError as e:
            logger.exception(
                "Failed to load activation profile",
                extra={"operation": "get_profile", "user_id": str(user_id)},
            )
            raise StorageError(
                "Failed to load activation profile",
                operation="get_profile",
                user_id=user_id,
            ) from e
        return result.scalar_one_or_none()

    async def upsert_step(
        self,
        user_id: UUID,
        payload: StepModel,
        *,
        actor_id: UUID | None = None,
    ) -> ActivationProfile:
        """Write one step's fields and advance the lifecycle metadata.

        Creates the profile on the first write. current_step never regresses,
        and completed_at is stamped only the first time every step is populated.

        Args:
            user_id: Owner of the profile.
            payload: Validated step payload.
            actor_id: Who made the change, when not the user.

        Returns:
            The updated profile.

        Raises:
            StorageError: If the write cannot be committed. Nothing is persisted.
        """
        step = payload.step
        try:
            created = await self._insert_if_missing(user_id, step)
            profile = await self._lock(user_id)

            previous = None if created else _audit_snapshot(profile.step_data(step))
            for column, value in payload.profile_fields().items():
                setattr(profile, column, value)

            profile.current_step = min(TOTAL_STEPS, max(profile.current_step or 1, step))
            if profile.activation_status == ActivationStatus.PENDING:
                profile.activation_status = ActivationStatus.IN_PROGRESS
            profile.updated_at = datetime.now(UTC)

            self._session.add(
                ActivationAuditLog(
                    user_id=user_id,
                    activation_profile_id=profile.id,
                    action_type=AuditActionType.CREATE if created else AuditActionType.UPDATE,
                    step_number=step,
                    old_value=previous,
                    new_value=_audit_snapshot(profile.step_data(step)),
                    actor_id=actor_id,
                )
            )
            self._complete_if_ready(profile, actor_id)

            await self._session.commit()
        except SQLAlchemyError as e:
            await self._session.rollback()
            logger.exception(
                "Failed to save activation step",
                extra={"operation": "upsert_step", "user_id": str(user_id), "step": step},
            )
            raise StorageError(
                "Failed to save activation step",
                operation="upsert_step",
                user_id=user_id,
            ) from e

        logger.info(
            "Saved activation step %d for user %s (current_step=%d, status=%s)",
            step,
            user_id,
            profile.current_step,
            profile.activation_status.value,
        )
        return profile

    async def transition_status(
        self,
        user_id: UUID,
        status: ActivationStatus,
        *,
        actor_id: UUID | None = None,
        reason: str | None = None,
    ) -> ActivationProfile:
        """Apply an admin status change.

        Raises:
            NotFoundError: If the user has no profile.
            InvalidStatusTransitionError: If the move is not allowed.
            StorageError: If the change cannot be committed.
        """
        try:
            profile = await self._lock(user_id, must_exist=True)
            current = profile.activation_status
            if status not in ALLOWED_TRANSITIONS[current]:
                await self._session.rollback()
                raise InvalidStatusTransitionError(current.value, status.value)
            if status == ActivationStatus.COMPLETED and not profile.all_steps_populated:
                await self._session.rollback()
                raise InvalidStatusTransitionError(
                    current.value, status.value, "not every step is populated"
                )

            profile.activation_status = status
            if status == ActivationStatus.COMPLETED:
                profile.completed_at = profile.completed_at or datetime.now(UTC)
            else:
                profile.completed_at = None
            profile.updated_at = datetime.now(UTC)

            self._session.add(
                ActivationAuditLog(
                    user_id=user_id,
                    activation_profile_id=profile.id,
                    action_type=AuditActionType.STATUS_CHANGE,
                    old_value={"activation_status": current.value},
                    new_value={"activation_status": status.value},
                    actor_id=actor_id,
                    reason=reason,
                )
            )
            await self._session.commit()
        except SQLAlchemyError as e:
            await self._session.rollback()
            logger.exception(
                "Failed to change activation status",
                extra={"operation": "transition_status", "user_id": str(user_id)},
            )
            raise StorageError(
                "Failed to change activation status",
                operation="transition_status",
                user_id=user_id,
            ) from e

        logger.info(
            "Activation status for user %s changed from %s to %s",
            user_id,
            current.value,
            status.value,
            extra={"actor_id": str(actor_id) if actor_id else None},
        )
        return profile

    async def list_audit_log(self, user_id: UUID, limit: int = 50) -> list[ActivationAuditLog]:
        """Newest audit entries for a user."""
        query = (
            select(ActivationAuditLog)
            .where(ActivationAuditLog.user_id == user_id)
            .order_by(ActivationAuditLog.created_at.desc())
            .limit(limit)
        )
        try:
            result = await self._session.execute(query)
        except SQLAlchemyError as e:
            logger.exception(
                "Failed to load activation audit log",
                extra={"operation": "list_audit_log", "user_id": str(user_id)},
            )
            raise StorageError(
                "Failed to load activation audit log",
                operation="list_audit_log",
                user_id=user_id,
            ) from e
        return list(result.scalars().all())

    async def _insert_if_missing(self, user_id: UUID, step: int) -> bool:
        """Create an empty profile unless one exists. Returns True if created."""
        statement = (
            insert(ActivationProfile)
            .values(
                user_id=user_id,
                current_step=step,
                activation_status=ActivationStatus.IN_PROGRESS,
                agreed_to_terms=False,
            )
            .on_conflict_do_nothing(index_elements=[ActivationProfile.user_id])
            .returning(ActivationProfile.id)
        )
        result = await self._session.execute(statement)
        return result.scalar_one_or_none() is not None

    async def _lock(self, user_id: UUID, *, must_exist: bool = False) -> ActivationProfile:
        query = (
            select(ActivationProfile)
            .where(ActivationProfile.user_id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(query)
        profile = result.scalar_one_or_none()
        if profile is None:
            if must_exist:
                raise NotFoundError("Activation profile", user_id)
            msg = f"Activation profile for {user_id} vanished during upsert"
            raise StorageError(msg, operation="upsert_step", user_id=user_id)
        return profile

    def _complete_if_ready(self, profile: ActivationProfile, actor_id: UUID | None) -> None:
        if profile.completed_at is not None:
            return
        if profile.activation_status != ActivationStatus.IN_PROGRESS:
            return
        if not profile.all_steps_populated:
            return

        profile.activation_status = ActivationStatus.COMPLETED
        profile.completed_at = datetime.now(UTC)
        self._session.add(
            ActivationAuditLog(
                user_id=profile.user_id,
                activation_profile_id=profile.id,
                action_type=AuditActionType.STATUS_CHANGE,
                old_value={"activation_status": ActivationStatus.IN_PROGRESS.value},
                new_value={"activation_status": ActivationStatus.COMPLETED.value},
                actor_id=actor_id,
            )
        )
        logger.info("Activation completed for user %s", profile.user_id)
