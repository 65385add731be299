"""
Key store connection handling.

One async engine per process, created lazily from settings. PostgreSQL
(asyncpg) in deployments, SQLite (aiosqlite) for local runs and tests.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Annotated, Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from fastapi import Depends
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from keygate.config import Settings, get_settings

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def engine_options(settings: Settings) -> tuple[str, dict[str, Any]]:
    """
    URL and create_async_engine keyword arguments for the configured store.

    asyncpg rejects libpq's ``sslmode`` query parameter but takes the same
    mode names through its ``ssl`` connect argument, so it is moved there.
    """
    url = settings.database_url
    options: dict[str, Any] = {"echo": settings.debug}

    if url.startswith("sqlite"):
        return url, options

    parts = urlsplit(url)
    query = parse_qsl(parts.query)
    sslmode = next((value for key, value in query if key == "sslmode"), None)
    if sslmode is not None:
        query = [(key, value) for key, value in query if key != "sslmode"]
        url = urlunsplit(parts._replace(query=urlencode(query)))
        options["connect_args"] = {"ssl": sslmode}

    options.update(
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_pre_ping=True,
    )
    return url, options


def get_engine() -> AsyncEngine:
    global _engine

    if _engine is None:
        url, options = engine_options(get_settings())
        _engine = create_async_engine(url, **options)
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the process-wide engine."""
    global _session_factory

    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    return _session_factory


@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """
    Session that commits when the block exits cleanly and rolls back otherwise.

    Usage:
        async with get_db_context() as db:
            keys = await ApiKeyService(db).get_all()
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency wrapping get_db_context."""
    async with get_db_context() as session:
        yield session


DbSession = Annotated[AsyncSession, Depends(get_db)]


async def init_db() -> None:
    """Open one connection at startup so a bad URL fails fast."""
    async with get_engine().connect():
        pass


async def close_db() -> None:
    """Dispose of the engine; the next session recreates it."""
    if _engine is not None:
        await _engine.dispose()
    reset_db_state()


def reset_db_state() -> None:
    """Forget the engine without disposing it (tests swap settings)."""
    global _engine, _session_factory
    _engine = None
    _session_factory = None
