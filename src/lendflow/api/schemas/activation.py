"""Pydantic schemas for the activation and profile endpoints.

Response models read straight from ORM objects (from_attributes). The
document schema never exposes the stored payload; content is only served
by the document data endpoint.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from lendflow.db.models import (
    ActivationStatus,
    AuditActionType,
    DocumentCategory,
    DocumentType,
    StorageKind,
    VerificationStatus,
)


class FieldErrorSchema(BaseModel):
    """A single rule violation on one input field."""

    model_config = ConfigDict(from_attributes=True)

    field: str
    code: str
    message: str


class ErrorResponse(BaseModel):
    """Standard error body."""

    error: str
    message: str
    errors: list[FieldErrorSchema] | None = None
    request_id: str | None = None


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


class SaveStepRequest(BaseModel):
    """One wizard step submission.

    Step fields are validated by the service, so violations come back as
    field-level errors rather than a request parse failure.
    """

    step: int = Field(..., description="Wizard step, 1 to 6")
    data: dict[str, Any] = Field(default_factory=dict, description="Fields of the step")


class ActivationProfileResponse(BaseModel):
    """Stored activation profile."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID

    full_name: str | None = None
    gender: str | None = None
    date_of_birth: date | None = None
    marital_status: str | None = None
    nationality: str | None = None
    agreed_to_terms: bool = False

    family_relatives: list[dict[str, Any]] | None = None

    residing_country: str | None = None
    state_region_province: str | None = None
    town_city: str | None = None

    id_type: str | None = None
    id_number: str | None = None

    account_type: str | None = None
    bank_name: str | None = None
    account_number: str | None = None
    account_holder_name: str | None = None

    signature_data: str | None = None

    current_step: int
    activation_status: ActivationStatus
    completed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class SaveStepResponse(BaseModel):
    """Profile after a step write, with derived progress."""

    profile: ActivationProfileResponse
    progress: int
    is_complete: bool


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class DocumentResponse(BaseModel):
    """Document metadata."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    activation_profile_id: UUID | None = None
    document_type: DocumentType
    document_category: DocumentCategory
    original_filename: str
    file_size: int
    mime_type: str
    file_hash: str
    storage_kind: StorageKind
    verification_status: VerificationStatus
    verification_notes: str | None = None
    verified_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class DocumentListResponse(BaseModel):
    documents: list[DocumentResponse]
    total: int


class DocumentDataResponse(BaseModel):
    """Document content as a data URL."""

    id: UUID
    document_type: DocumentType
    mime_type: str
    file_size: int
    data_url: str


class ActivationDataResponse(BaseModel):
    """Everything the wizard needs to resume."""

    profile: ActivationProfileResponse | None = None
    progress: int
    is_complete: bool
    documents: list[DocumentResponse]


class ProfileValidationResponse(BaseModel):
    is_valid: bool
    errors: list[FieldErrorSchema]
    warnings: list[FieldErrorSchema]
    completion_percentage: int


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------


class DocumentStatsResponse(BaseModel):
    total: int
    verified: int
    pending: int
    rejected: int


class BatchProfileResponse(BaseModel):
    """Consolidated activation view served to the profile page.

    degraded is set when part of the data could not be loaded; timed_out
    when the whole read exceeded its deadline and this is the empty fallback.
    """

    profile: ActivationProfileResponse | None = None
    documents: list[DocumentResponse]
    documents_by_type: dict[str, list[DocumentResponse]]
    progress: int
    is_complete: bool
    stats: DocumentStatsResponse
    activation_steps: dict[str, Any]
    degraded: bool = False
    timed_out: bool = False


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


class StatusUpdateRequest(BaseModel):
    """Admin status change."""

    status: str = Field(..., description="Target activation status")
    reason: str | None = Field(None, max_length=1000)


class AuditEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    activation_profile_id: UUID | None = None
    action_type: AuditActionType
    step_number: int | None = None
    old_value: dict[str, Any] | None = None
    new_value: dict[str, Any] | None = None
    actor_id: UUID | None = None
    reason: str | None = None
    created_at: datetime


class AuditLogResponse(BaseModel):
    user_id: UUID
    entries: list[AuditEntryResponse]
    total: int
