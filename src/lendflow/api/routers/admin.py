"""Admin API router for activation review.

All endpoints require the admin role. Document changes made here are
recorded in the activation audit log with the admin as actor.
"""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile, status

from lendflow.api.dependencies import Activation, Documents
from lendflow.api.middleware.auth import AuthenticatedUser, require_admin_user
from lendflow.api.schemas.activation import (
    ActivationProfileResponse,
    AuditEntryResponse,
    AuditLogResponse,
    DocumentDataResponse,
    DocumentResponse,
    ErrorResponse,
    StatusUpdateRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    responses={
        401: {"description": "Authentication required", "model": ErrorResponse},
        403: {"description": "Admin access required", "model": ErrorResponse},
    },
)

AdminUser = Annotated[AuthenticatedUser, Depends(require_admin_user)]


@router.get(
    "/users/{user_id}/documents/{document_id}",
    response_model=DocumentDataResponse,
    responses={
        404: {"description": "Document not found", "model": ErrorResponse},
        408: {"description": "Document loading timed out", "model": ErrorResponse},
    },
    summary="View a user's document",
)
async def get_user_document(
    user_id: UUID,
    document_id: UUID,
    admin: AdminUser,
    documents: Documents,
) -> DocumentDataResponse:
    """Document content for review. The document must belong to user_id."""
    content = await documents.get_data(document_id, user_id)
    logger.info(
        "Admin viewed document",
        extra={
            "admin_id": str(admin.user_id),
            "user_id": str(user_id),
            "document_id": str(document_id),
        },
    )
    return DocumentDataResponse(
        id=content.document.id,
        document_type=content.document.document_type,
        mime_type=content.mime_type,
        file_size=len(content.data),
        data_url=content.as_data_url(),
    )


@router.put(
    "/users/{user_id}/documents/{document_id}",
    response_model=DocumentResponse,
    responses={
        400: {"description": "Invalid file", "model": ErrorResponse},
        404: {"description": "Document not found", "model": ErrorResponse},
    },
    summary="Replace a user's document",
)
async def replace_user_document(
    user_id: UUID,
    document_id: UUID,
    admin: AdminUser,
    documents: Documents,
    file: Annotated[UploadFile, File(description="Replacement image")],
) -> DocumentResponse:
    """Swap a document's content. Verification is reset to pending."""
    data = await file.read()
    document = await documents.replace(
        document_id,
        user_id,
        data,
        file.content_type or "",
        file.filename or "",
        actor_id=admin.user_id,
    )
    logger.info(
        "Admin replaced document",
        extra={
            "admin_id": str(admin.user_id),
            "user_id": str(user_id),
            "document_id": str(document_id),
        },
    )
    return DocumentResponse.model_validate(document)


@router.delete(
    "/users/{user_id}/documents/{document_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"description": "Document not found", "model": ErrorResponse}},
    summary="Delete a user's document",
)
async def delete_user_document(
    user_id: UUID,
    document_id: UUID,
    admin: AdminUser,
    documents: Documents,
) -> Response:
    await documents.delete(document_id, user_id, actor_id=admin.user_id)
    logger.info(
        "Admin deleted document",
        extra={
            "admin_id": str(admin.user_id),
            "user_id": str(user_id),
            "document_id": str(document_id),
        },
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch(
    "/users/{user_id}/activation",
    response_model=ActivationProfileResponse,
    responses={
        400: {"description": "Unknown status", "model": ErrorResponse},
        404: {"description": "Profile not found", "model": ErrorResponse},
        409: {"description": "Transition not allowed", "model": ErrorResponse},
    },
    summary="Change activation status",
)
async def update_activation_status(
    user_id: UUID,
    body: StatusUpdateRequest,
    admin: AdminUser,
    service: Activation,
) -> ActivationProfileResponse:
    profile = await service.update_activation_status(
        user_id, body.status, actor_id=admin.user_id, reason=body.reason
    )
    return ActivationProfileResponse.model_validate(profile)


@router.get(
    "/users/{user_id}/activation/audit",
    response_model=AuditLogResponse,
    summary="Get activation audit log",
)
async def get_activation_audit(
    user_id: UUID,
    admin: AdminUser,
    service: Activation,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
) -> AuditLogResponse:
    """Newest audit entries for a user."""
    entries = await service.get_audit_log(user_id, limit=limit)
    return AuditLogResponse(
        user_id=user_id,
        entries=[AuditEntryResponse.model_validate(entry) for entry in entries],
        total=len(entries),
    )
