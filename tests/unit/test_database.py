"""
Unit tests for engine option building.
"""

import pytest

from keygate.config import Settings
from keygate.core.database import engine_options


@pytest.mark.unit
class TestEngineOptions:
    """Tests for engine_options."""

    def test_sqlite_has_no_pool_options(self):
        url, options = engine_options(Settings(database_url="sqlite+aiosqlite:///:memory:"))

        assert url == "sqlite+aiosqlite:///:memory:"
        assert options == {"echo": False}

    def test_postgres_gets_pool_options(self):
        settings = Settings(
            database_url="postgresql+asyncpg://u:p@db/keys",
            database_pool_size=3,
            database_max_overflow=4,
        )

        url, options = engine_options(settings)

        assert url == "postgresql+asyncpg://u:p@db/keys"
        assert options["pool_size"] == 3
        assert options["max_overflow"] == 4
        assert "connect_args" not in options

    def test_sslmode_moves_to_connect_args(self):
        settings = Settings(
            database_url="postgresql+asyncpg://u:p@db/keys?sslmode=require&application_name=kg"
        )

        url, options = engine_options(settings)

        assert url == "postgresql+asyncpg://u:p@db/keys?application_name=kg"
        assert options["connect_args"] == {"ssl": "require"}
