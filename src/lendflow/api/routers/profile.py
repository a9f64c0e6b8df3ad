"""Profile page API router.

The batch endpoint serves the whole activation view in one response.
It never fails on a slow store: past the deadline it returns an empty
fallback with a shorter cache lifetime.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Response

from lendflow.api.dependencies import AppSettings, Batch
from lendflow.api.middleware.auth import AuthenticatedUser, require_authenticated_user
from lendflow.api.schemas.activation import (
    ActivationProfileResponse,
    BatchProfileResponse,
    DocumentResponse,
    DocumentStatsResponse,
    ErrorResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/profile",
    tags=["profile"],
    responses={401: {"description": "Authentication required", "model": ErrorResponse}},
)


@router.get(
    "/batch",
    response_model=BatchProfileResponse,
    summary="Get the consolidated profile view",
)
async def get_profile_batch(
    response: Response,
    user: Annotated[AuthenticatedUser, Depends(require_authenticated_user)],
    aggregator: Batch,
    settings: AppSettings,
) -> BatchProfileResponse:
    """Profile, documents, stats and step summary for the signed-in user."""
    aggregate = await aggregator.get_batch(user.user_id)

    max_age = (
        settings.activation.fallback_cache_max_age
        if aggregate.timed_out
        else settings.activation.batch_cache_max_age
    )
    response.headers["Cache-Control"] = f"private, max-age={max_age}"

    return BatchProfileResponse(
        profile=(
            ActivationProfileResponse.model_validate(aggregate.profile)
            if aggregate.profile is not None
            else None
        ),
        documents=[DocumentResponse.model_validate(doc) for doc in aggregate.documents],
        documents_by_type={
            doc_type: [DocumentResponse.model_validate(doc) for doc in docs]
            for doc_type, docs in aggregate.documents_by_type.items()
        },
        progress=aggregate.progress,
        is_complete=aggregate.is_complete,
        stats=DocumentStatsResponse(**aggregate.stats.to_dict()),
        activation_steps=aggregate.activation_steps,
        degraded=aggregate.degraded,
        timed_out=aggregate.timed_out,
    )
