"""FastAPI dependencies wiring services to the request.

Request-scoped services share one database session. The batch loaders
each open their own session because they run concurrently.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import TYPE_CHECKING, Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from lendflow.api.middleware.auth import settings_from_request
from lendflow.core.config import Settings
from lendflow.db import get_async_session
from lendflow.services.activation import ActivationService
from lendflow.services.activation_repository import ActivationProfileRepository
from lendflow.services.batch import BatchAggregator
from lendflow.services.documents import DocumentStore, create_document_store

if TYPE_CHECKING:
    from uuid import UUID

    from lendflow.db.models import ActivationProfile, UserDocument
    from lendflow.services.object_store import ObjectStoreClient


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get a database session for the request."""
    async with get_async_session() as session:
        yield session


DbSession = Annotated[AsyncSession, Depends(get_db_session)]
AppSettings = Annotated[Settings, Depends(settings_from_request)]


def _object_store_client(request: Request) -> ObjectStoreClient | None:
    return getattr(request.app.state, "object_store_client", None)


def get_document_store(request: Request, db: DbSession, settings: AppSettings) -> DocumentStore:
    return create_document_store(db, settings, client=_object_store_client(request))


def get_activation_service(
    db: DbSession,
    settings: AppSettings,
    documents: Annotated[DocumentStore, Depends(get_document_store)],
) -> ActivationService:
    return ActivationService(
        ActivationProfileRepository(db),
        documents,
        settings.activation,
    )


def get_batch_aggregator(request: Request, settings: AppSettings) -> BatchAggregator:
    """Aggregator whose loaders each use a session of their own."""
    client = _object_store_client(request)

    async def load_profile(user_id: UUID) -> ActivationProfile | None:
        async with get_async_session() as session:
            return await ActivationProfileRepository(session).get(user_id)

    async def load_documents(user_id: UUID) -> list[UserDocument]:
        async with get_async_session() as session:
            store = create_document_store(session, settings, client=client)
            return await store.list_for_user(user_id)

    return BatchAggregator(
        load_profile,
        load_documents,
        timeout=settings.activation.batch_timeout_seconds,
    )


Documents = Annotated[DocumentStore, Depends(get_document_store)]
Activation = Annotated[ActivationService, Depends(get_activation_service)]
Batch = Annotated[BatchAggregator, Depends(get_batch_aggregator)]
