"""
Pytest fixtures for Keygate testing infrastructure.

This module provides:
1. Database fixtures (SQLite via aiosqlite, one file per test)
2. Settings and application fixtures
3. Common test data fixtures
"""

import os
import sys
from collections.abc import AsyncGenerator
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Add parent directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Set environment variables BEFORE any imports that might load settings
os.environ.setdefault("KEYGATE_ENVIRONMENT", "testing")
os.environ.setdefault("KEYGATE_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from keygate.config import Settings  # noqa: E402
from keygate.models.orm.base import Base  # noqa: E402

LEGACY_KEY = "legacy-static-key-for-tests"


# ==================== SESSION FIXTURES ====================


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment():
    """Make sure no global engine from a previous import leaks into tests."""
    from keygate.config import clear_settings_cache
    from keygate.core.database import reset_db_state

    clear_settings_cache()
    reset_db_state()

    yield

    reset_db_state()
    clear_settings_cache()


# ==================== DATABASE FIXTURES ====================


@pytest.fixture
def database_url(tmp_path) -> str:
    """File-backed SQLite URL so separate connections share one database."""
    return f"sqlite+aiosqlite:///{tmp_path / 'keygate.db'}"


@pytest_asyncio.fixture
async def async_engine(database_url):
    """Create async SQLAlchemy engine with the schema in place.

    Uses NullPool so every session gets its own connection.
    """
    engine = create_async_engine(database_url, echo=False, poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    """Create async session factory."""
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """
    Provide a database session for each test.

    Uncommitted work is rolled back after the test.
    """
    async with session_factory() as session:
        yield session
        await session.rollback()


# ==================== SETTINGS FIXTURES ====================


@pytest.fixture
def test_settings(database_url) -> Settings:
    """Settings for a non-production deployment with a legacy key."""
    return Settings(
        environment="testing",
        database_url=database_url,
        legacy_api_key=LEGACY_KEY,
    )


# ==================== TEST DATA FIXTURES ====================


@pytest.fixture
def legacy_key() -> str:
    """The legacy static key configured in test_settings."""
    return LEGACY_KEY


@pytest.fixture
def sample_key_data() -> dict[str, Any]:
    """Sample API key creation data."""
    return {
        "name": "Web frontend",
        "description": "Key used by the public website",
        "created_by": "admin@example.com",
    }


# ==================== MARKERS ====================


def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, mocked dependencies)")
    config.addinivalue_line(
        "markers", "integration: Integration tests (in-memory database, ASGI client)"
    )
