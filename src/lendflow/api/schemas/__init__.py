"""Pydantic schemas for the Lendflow API."""

from lendflow.api.schemas.activation import (
    ActivationDataResponse,
    ActivationProfileResponse,
    AuditEntryResponse,
    AuditLogResponse,
    BatchProfileResponse,
    DocumentDataResponse,
    DocumentListResponse,
    DocumentResponse,
    DocumentStatsResponse,
    ErrorResponse,
    FieldErrorSchema,
    ProfileValidationResponse,
    SaveStepRequest,
    SaveStepResponse,
    StatusUpdateRequest,
)

__all__ = [
    "ActivationDataResponse",
    "ActivationProfileResponse",
    "AuditEntryResponse",
    "AuditLogResponse",
    "BatchProfileResponse",
    "DocumentDataResponse",
    "DocumentListResponse",
    "DocumentResponse",
    "DocumentStatsResponse",
    "ErrorResponse",
    "FieldErrorSchema",
    "ProfileValidationResponse",
    "SaveStepRequest",
    "SaveStepResponse",
    "StatusUpdateRequest",
]
