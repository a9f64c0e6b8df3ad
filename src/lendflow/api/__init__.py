"""Lendflow HTTP API.

create_app() builds the FastAPI application serving the activation wizard,
the consolidated profile view and the admin review endpoints. Tests build
their own instance with test settings; the uvicorn entry point uses
lendflow.api.main:app.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lendflow.api.middleware import ErrorHandlerMiddleware, RequestIDMiddleware
from lendflow.api.routers import activation_router, admin_router, profile_router
from lendflow.db import close_engine
from lendflow.services.object_store import ObjectStoreClient

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from lendflow.core.config import Settings

logger = logging.getLogger(__name__)

API_TITLE = "Lendflow API"
API_DESCRIPTION = """
Borrower activation service.

## Namespaces

- **/api/activation/** - Activation wizard and identity documents
- **/api/profile/** - Consolidated profile view
- **/api/admin/** - Activation review (admin role)
"""


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    client = getattr(app.state, "object_store_client", None)
    if client is not None:
        # Uploads fail with BucketNotFoundError until the bucket exists
        await asyncio.get_running_loop().run_in_executor(None, client.ensure_bucket)
        logger.info("Object store bucket ready: %s", client.bucket)
    yield
    await close_engine()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the Lendflow API application.

    Args:
        settings: Optional Settings instance. When omitted, routes fall back
            to the process-wide settings loaded from the environment.

    Returns:
        Configured FastAPI application.

    Example:
        app = create_app()

        # For testing
        test_settings = Settings(environment="dev", debug=True)
        app = create_app(test_settings)
    """
    version = settings.app_version if settings else "0.1.0"

    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=version,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.object_store_client = (
        ObjectStoreClient.from_settings(settings.s3)
        if settings is not None and settings.uses_object_store
        else None
    )

    # Add middleware (order matters - last added is outermost)
    _add_middleware(app, settings)

    _include_routers(app)

    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint for container orchestration."""
        return {"status": "healthy"}

    logger.info("Lendflow API application created (version=%s)", version)

    return app


def _add_middleware(app: FastAPI, settings: Settings | None) -> None:
    app.add_middleware(ErrorHandlerMiddleware)

    # Outside the error handler so error responses carry the request ID too
    app.add_middleware(RequestIDMiddleware)

    allowed_origins = ["http://localhost:3000", "http://localhost:8000"]
    if settings and settings.is_production:
        allowed_origins = []

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )


def _include_routers(app: FastAPI) -> None:
    app.include_router(activation_router, prefix="/api")
    app.include_router(profile_router, prefix="/api")
    app.include_router(admin_router, prefix="/api")
