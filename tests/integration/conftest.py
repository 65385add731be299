"""
Fixtures for HTTP-level tests.

Builds the FastAPI app against the per-test SQLite database and serves it
through httpx's ASGI transport.
"""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from keygate.core.database import get_db
from keygate.main import create_app


def build_app(settings, session_factory):
    """Create the app with gate and routes bound to the test database."""
    app = create_app(settings, session_factory=session_factory)

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest.fixture
def make_app(session_factory):
    """Factory for apps with custom settings on the test database."""

    def factory(settings):
        return build_app(settings, session_factory)

    return factory


@pytest.fixture
def app(make_app, test_settings):
    return make_app(test_settings)


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for testing."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def issued_key(session_factory):
    """A stored API key: (plaintext, record)."""
    from keygate.services.api_key_service import ApiKeyService

    async with session_factory() as session:
        raw_key, api_key = await ApiKeyService(session).issue("integration")
        await session.commit()
    return raw_key, api_key
