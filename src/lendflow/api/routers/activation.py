"""Activation wizard API router.

Endpoints for the signed-in user: saving wizard steps, resuming the
wizard, checking the whole profile, and managing identity documents.
Service errors propagate to the error middleware, which maps them to
HTTP statuses.
"""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from lendflow.api.dependencies import Activation, DbSession, Documents
from lendflow.api.middleware.auth import AuthenticatedUser, require_authenticated_user
from lendflow.api.schemas.activation import (
    ActivationDataResponse,
    ActivationProfileResponse,
    DocumentDataResponse,
    DocumentListResponse,
    DocumentResponse,
    ErrorResponse,
    FieldErrorSchema,
    ProfileValidationResponse,
    SaveStepRequest,
    SaveStepResponse,
)
from lendflow.services.activation import compute_progress, is_profile_complete
from lendflow.services.activation_repository import ActivationProfileRepository
from lendflow.services.errors import FieldError, ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/activation",
    tags=["activation"],
    responses={
        401: {"description": "Authentication required", "model": ErrorResponse},
        500: {"description": "Storage failure", "model": ErrorResponse},
    },
)

CurrentUser = Annotated[AuthenticatedUser, Depends(require_authenticated_user)]


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


@router.get(
    "/profile",
    response_model=ActivationDataResponse,
    summary="Get activation data",
)
async def get_activation_profile(user: CurrentUser, service: Activation) -> ActivationDataResponse:
    """Profile, progress and documents, for resuming the wizard."""
    data = await service.get_complete_activation_data(user.user_id)
    return ActivationDataResponse(
        profile=(
            ActivationProfileResponse.model_validate(data.profile)
            if data.profile is not None
            else None
        ),
        progress=data.progress,
        is_complete=data.is_complete,
        documents=[DocumentResponse.model_validate(doc) for doc in data.documents],
    )


@router.post(
    "/profile",
    response_model=SaveStepResponse,
    responses={400: {"description": "Invalid step or step data", "model": ErrorResponse}},
    summary="Save a wizard step",
)
async def save_activation_step(
    body: SaveStepRequest, user: CurrentUser, service: Activation
) -> SaveStepResponse:
    """Validate and store one step of the wizard.

    Every violated rule is reported in the `errors` list of a 400 response,
    and nothing is written.
    """
    profile = await service.save_step_data(user.user_id, body.step, body.data)
    return SaveStepResponse(
        profile=ActivationProfileResponse.model_validate(profile),
        progress=compute_progress(profile),
        is_complete=is_profile_complete(profile),
    )


@router.get(
    "/validate",
    response_model=ProfileValidationResponse,
    summary="Validate the whole profile",
)
async def validate_activation_profile(
    user: CurrentUser, service: Activation
) -> ProfileValidationResponse:
    """Re-check every stored step and the required documents."""
    report = await service.validate_complete_profile(user.user_id)
    return ProfileValidationResponse(
        is_valid=report.is_valid,
        errors=[FieldErrorSchema.model_validate(e) for e in report.errors],
        warnings=[FieldErrorSchema.model_validate(w) for w in report.warnings],
        completion_percentage=report.completion_percentage,
    )


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@router.get(
    "/documents",
    response_model=DocumentListResponse,
    summary="List documents",
)
async def list_documents(user: CurrentUser, documents: Documents) -> DocumentListResponse:
    records = await documents.list_for_user(user.user_id)
    return DocumentListResponse(
        documents=[DocumentResponse.model_validate(doc) for doc in records],
        total=len(records),
    )


@router.post(
    "/documents",
    response_model=DocumentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"description": "Invalid upload", "model": ErrorResponse}},
    summary="Upload a document",
)
async def upload_document(
    user: CurrentUser,
    documents: Documents,
    db: DbSession,
    file: Annotated[UploadFile, File(description="Image file")],
    document_type: Annotated[str, Form(description="Document type")],
    activation_profile_id: Annotated[UUID | None, Form()] = None,
) -> DocumentResponse:
    """Store a new identity document for the caller.

    When activation_profile_id is given it must be the caller's own profile.
    """
    if activation_profile_id is not None:
        profile = await ActivationProfileRepository(db).get(user.user_id)
        if profile is None or profile.id != activation_profile_id:
            raise ValidationError(
                [
                    FieldError(
                        "activation_profile_id",
                        "invalid_profile",
                        "Activation profile does not belong to the current user",
                    )
                ],
                "Invalid document upload",
            )

    data = await file.read()
    document = await documents.save(
        user.user_id,
        data,
        file.content_type or "",
        document_type,
        file.filename or "",
        activation_profile_id,
    )
    return DocumentResponse.model_validate(document)


@router.get(
    "/documents/{document_id}",
    response_model=DocumentDataResponse,
    responses={
        404: {"description": "Document not found", "model": ErrorResponse},
        408: {"description": "Document loading timed out", "model": ErrorResponse},
    },
    summary="Get document content",
)
async def get_document(
    document_id: UUID, user: CurrentUser, documents: Documents
) -> DocumentDataResponse:
    """Document content as a data URL. Only the owner can read it."""
    content = await documents.get_data(document_id, user.user_id)
    return DocumentDataResponse(
        id=content.document.id,
        document_type=content.document.document_type,
        mime_type=content.mime_type,
        file_size=len(content.data),
        data_url=content.as_data_url(),
    )
