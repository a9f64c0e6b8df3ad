"""Activation wizard orchestration.

ActivationService validates step payloads before anything is written,
derives progress and completion from the stored profile, and exposes the
admin review operations (full-profile validation, status changes, audit).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from lendflow.core.config import ActivationSettings
from lendflow.db.models import (
    REQUIRED_DOCUMENT_TYPES,
    STEP_FIELDS,
    TOTAL_STEPS,
    ActivationStatus,
    VerificationStatus,
)
from lendflow.services.errors import FieldError, ValidationError
from lendflow.services.step_validation import check_step_number, validate_step

if TYPE_CHECKING:
    from datetime import date
    from uuid import UUID

    from pydantic import BaseModel

    from lendflow.db.models import ActivationAuditLog, ActivationProfile, UserDocument
    from lendflow.services.activation_repository import ActivationProfileRepository
    from lendflow.services.documents import DocumentStore

logger = logging.getLogger(__name__)


def compute_progress(profile: ActivationProfile | None) -> int:
    """Percentage of steps whose required fields are populated."""
    if profile is None:
        return 0
    return round(100 * len(profile.populated_steps()) / TOTAL_STEPS)


def is_profile_complete(profile: ActivationProfile | None) -> bool:
    return profile is not None and profile.activation_status == ActivationStatus.COMPLETED


def summarize_steps(profile: ActivationProfile | None) -> dict[str, Any]:
    """Per-step completion summary used by the wizard UI."""
    if profile is None:
        return {
            "current_step": 1,
            "completed_steps": [],
            "total_steps": TOTAL_STEPS,
            "status": ActivationStatus.PENDING.value,
            "completed_at": None,
            "steps": {},
        }
    return {
        "current_step": profile.current_step,
        "completed_steps": profile.populated_steps(),
        "total_steps": TOTAL_STEPS,
        "status": profile.activation_status.value,
        "completed_at": profile.completed_at.isoformat() if profile.completed_at else None,
        "steps": {
            f"step{step}": {
                "completed": profile.is_step_populated(step),
                "data": profile.step_data(step),
            }
            for step in STEP_FIELDS
        },
    }


@dataclass(frozen=True, slots=True)
class ActivationData:
    """Everything the wizard needs to resume for one user."""

    profile: ActivationProfile | None
    progress: int
    is_complete: bool
    documents: list[UserDocument] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class ProfileValidationReport:
    """Result of checking a whole profile before approval."""

    is_valid: bool
    errors: list[FieldError]
    warnings: list[FieldError]
    completion_percentage: int


class ActivationService:
    """Orchestrates step writes and derived activation state.

    Validation failures raise ValidationError and write nothing. StorageError
    from the repository or the document store passes through unchanged.
    """

    def __init__(
        self,
        profiles: ActivationProfileRepository,
        documents: DocumentStore,
        settings: ActivationSettings | None = None,
    ) -> None:
        self._profiles = profiles
        self._documents = documents
        self._settings = settings or ActivationSettings()

    async def save_step_data(
        self,
        user_id: UUID,
        step: int,
        data: BaseModel | dict[str, Any],
        *,
        actor_id: UUID | None = None,
    ) -> ActivationProfile:
        """Validate and persist one step of the wizard.

        Args:
            user_id: Owner of the profile.
            step: Step number, 1..6.
            data: Raw step fields or a step payload model.
            actor_id: Who made the change, when not the user.

        Returns:
            The updated profile.

        Raises:
            InvalidStepError: If step is outside 1..6.
            ValidationError: If the payload is invalid or skips ahead while
                step ordering is enforced.
            StorageError: If the write fails.
        """
        step = check_step_number(step)
        result = validate_step(step, data)
        if not result.is_valid:
            logger.info(
                "Rejected step %d for user %s: %s",
                step,
                user_id,
                ", ".join(f"{e.field}:{e.code}" for e in result.errors),
            )
            raise ValidationError(result.errors, f"Step {step} is invalid")

        if self._settings.enforce_step_order:
            await self._check_step_order(user_id, step)

        return await self._profiles.upsert_step(user_id, result.payload, actor_id=actor_id)

    async def get_complete_activation_data(self, user_id: UUID) -> ActivationData:
        """Profile, derived progress and documents for one user."""
        profile = await self._profiles.get(user_id)
        documents = await self._documents.list_for_user(user_id)
        return ActivationData(
            profile=profile,
            progress=compute_progress(profile),
            is_complete=is_profile_complete(profile),
            documents=documents,
        )

    async def validate_complete_profile(
        self, user_id: UUID, *, today: date | None = None
    ) -> ProfileValidationReport:
        """Re-check every stored step and the required documents."""
        profile = await self._profiles.get(user_id)
        if profile is None:
            return ProfileValidationReport(
                is_valid=False,
                errors=[FieldError("profile", "required", "Activation has not been started")],
                warnings=[],
                completion_percentage=0,
            )

        errors: list[FieldError] = []
        warnings: list[FieldError] = []
        for step in STEP_FIELDS:
            result = validate_step(step, profile.step_data(step), today=today)
            errors.extend(result.errors)
            warnings.extend(result.warnings)

        documents = await self._documents.list_for_user(user_id)
        on_file = {
            doc.document_type
            for doc in documents
            if doc.verification_status != VerificationStatus.REJECTED
        }
        for doc_type in sorted(REQUIRED_DOCUMENT_TYPES - on_file, key=lambda t: t.value):
            errors.append(
                FieldError(
                    f"documents.{doc_type.value}",
                    "document_missing",
                    f"A {doc_type.value.replace('_', ' ')} document is required",
                )
            )

        return ProfileValidationReport(
            is_valid=not errors,
            errors=errors,
            warnings=warnings,
            completion_percentage=compute_progress(profile),
        )

    async def update_activation_status(
        self,
        user_id: UUID,
        status: ActivationStatus | str,
        *,
        actor_id: UUID | None = None,
        reason: str | None = None,
    ) -> ActivationProfile:
        """Apply an admin status change.

        Raises:
            ValidationError: If the status is unknown.
            NotFoundError: If the user has no profile.
            InvalidStatusTransitionError: If the move is not allowed.
        """
        if not isinstance(status, ActivationStatus):
            try:
                status = ActivationStatus(status)
            except ValueError:
                raise ValidationError(
                    [FieldError("status", "invalid_status", f"Unknown status: {status}")]
                ) from None
        return await self._profiles.transition_status(
            user_id, status, actor_id=actor_id, reason=reason
        )

    async def get_audit_log(self, user_id: UUID, limit: int = 50) -> list[ActivationAuditLog]:
        return await self._profiles.list_audit_log(user_id, limit=limit)

    async def _check_step_order(self, user_id: UUID, step: int) -> None:
        profile = await self._profiles.get(user_id)
        current = profile.current_step if profile is not None else 0
        if step > current + 1:
            raise ValidationError(
                [
                    FieldError(
                        "step",
                        "step_out_of_order",
                        f"Complete step {current + 1} before step {step}",
                    )
                ],
                f"Step {step} is out of order",
            )
