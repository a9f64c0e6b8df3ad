"""Pytest configuration and shared fixtures.

Unit tests run without PostgreSQL or S3: database sessions are AsyncMock
objects fed with canned results (see tests/factories.py), and object
storage is mocked with moto.
"""

from collections.abc import AsyncGenerator
from uuid import UUID, uuid4

import pytest
from httpx import ASGITransport, AsyncClient

from lendflow.api import create_app
from lendflow.core.config import Settings


@pytest.fixture
def settings() -> Settings:
    """Development settings with the inline document backend."""
    return Settings(environment="dev")


@pytest.fixture
def user_id() -> UUID:
    return uuid4()


# ---------------------------------------------------------------------------
# API client fixture (in-process testing via ASGI transport)
# ---------------------------------------------------------------------------
@pytest.fixture
def test_app(settings: Settings):
    """Create a fresh application bound to test settings."""
    return create_app(settings)


@pytest.fixture
async def api_client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing the API in-process."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
