"""Lendflow database module.

Async engine and session factory for PostgreSQL (psycopg driver). The
engine is created on first use from the process settings, so importing
this module never opens a connection.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from sqlalchemy.ext.asyncio import AsyncEngine

    from lendflow.core.config import DatabaseSettings

PSYCOPG_SCHEME = "postgresql+psycopg://"
_PLAIN_SCHEMES = ("postgresql://", "postgres://")

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def psycopg_url(url: str) -> str:
    """Point a plain PostgreSQL URL at the psycopg driver.

    URLs that already name a driver are returned unchanged.
    """
    for scheme in _PLAIN_SCHEMES:
        if url.startswith(scheme):
            return PSYCOPG_SCHEME + url[len(scheme) :]
    return url


def create_engine_from_settings(database: DatabaseSettings) -> AsyncEngine:
    return create_async_engine(
        psycopg_url(str(database.url)),
        pool_size=database.pool_size,
        max_overflow=database.max_overflow,
        pool_timeout=database.pool_timeout,
        pool_pre_ping=True,
        echo=database.echo,
    )


def _get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _engine, _session_factory

    if _session_factory is None:
        from lendflow.core.settings import get_settings

        _engine = create_engine_from_settings(get_settings().database)
        # Detached profiles and documents stay readable after commit
        _session_factory = async_sessionmaker(bind=_engine, expire_on_commit=False)
    return _session_factory


@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Open a session, rolling back if the block raises.

    Committing is left to the caller; the repositories commit per write.

    Usage:
        async with get_async_session() as session:
            profile = await ActivationProfileRepository(session).get(user_id)
    """
    session = _get_session_factory()()
    try:
        yield session
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def close_engine() -> None:
    """Dispose of the pooled connections. Called on API shutdown."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
