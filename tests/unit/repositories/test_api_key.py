"""Tests for ApiKey repository."""
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError

from keygate.core.exceptions import ConflictError, NotFoundError
from keygate.models.orm.api_key import ApiKey
from keygate.repositories.api_key import ApiKeyRepository


def _api_key(id: int | None = 1) -> ApiKey:
    return ApiKey(
        id=id,
        key_hash="A" * 64,
        name="Test key",
        usage_count=0,
        is_active=True,
    )


@pytest.mark.unit
@pytest.mark.asyncio
class TestApiKeyRepository:
    """Tests for ApiKeyRepository."""

    async def test_get_by_key_hash_returns_none_when_not_found(self):
        """Test get_by_key_hash returns None when no key has the hash."""
        mock_session = AsyncMock()
        mock_result = MagicMock()
        mock_result.scalar_one_or_none.return_value = None
        mock_session.execute.return_value = mock_result

        repo = ApiKeyRepository(mock_session)
        result = await repo.get_by_key_hash("B" * 64)

        assert result is None
        mock_session.execute.assert_awaited_once()

    async def test_get_by_key_hash_returns_key_when_found(self):
        """Test get_by_key_hash returns the matching key."""
        mock_session = AsyncMock()
        api_key = _api_key()
        mock_result = MagicMock()
        mock_result.scalar_one_or_none.return_value = api_key
        mock_session.execute.return_value = mock_result

        repo = ApiKeyRepository(mock_session)
        result = await repo.get_by_key_hash(api_key.key_hash)

        assert result is api_key

    async def test_insert_adds_and_flushes(self):
        """Test insert adds the entity and flushes to get an ID."""
        mock_session = AsyncMock()
        mock_session.add = MagicMock()
        api_key = _api_key(id=None)

        repo = ApiKeyRepository(mock_session)
        result = await repo.insert(api_key)

        assert result is api_key
        mock_session.add.assert_called_once_with(api_key)
        mock_session.flush.assert_awaited_once()
        mock_session.refresh.assert_awaited_once_with(api_key)

    async def test_insert_duplicate_hash_raises_conflict(self):
        """Test insert maps a unique violation to ConflictError."""
        mock_session = AsyncMock()
        mock_session.add = MagicMock()
        mock_session.flush.side_effect = IntegrityError(
            "INSERT", {}, Exception("UNIQUE constraint failed: api_keys.key_hash")
        )

        repo = ApiKeyRepository(mock_session)
        with pytest.raises(ConflictError):
            await repo.insert(_api_key(id=None))

        mock_session.rollback.assert_awaited_once()

    async def test_update_missing_raises_not_found(self):
        """Test update raises NotFoundError when the ID doesn't exist."""
        mock_session = AsyncMock()
        mock_result = MagicMock()
        mock_result.scalar_one_or_none.return_value = None
        mock_session.execute.return_value = mock_result

        repo = ApiKeyRepository(mock_session)
        with pytest.raises(NotFoundError):
            await repo.update(_api_key(id=42))

        mock_session.flush.assert_not_awaited()

    async def test_update_without_id_raises_not_found(self):
        """Test update of a never-stored key raises NotFoundError."""
        mock_session = AsyncMock()

        repo = ApiKeyRepository(mock_session)
        with pytest.raises(NotFoundError):
            await repo.update(_api_key(id=None))

        mock_session.execute.assert_not_awaited()

    async def test_update_existing_flushes(self):
        """Test update flushes changes of a tracked key."""
        mock_session = AsyncMock()
        api_key = _api_key()
        mock_result = MagicMock()
        mock_result.scalar_one_or_none.return_value = api_key
        mock_session.execute.return_value = mock_result

        repo = ApiKeyRepository(mock_session)
        api_key.is_active = False
        result = await repo.update(api_key)

        assert result is api_key
        mock_session.merge.assert_not_awaited()
        mock_session.flush.assert_awaited_once()

    async def test_delete_by_id_returns_false_when_not_found(self):
        """Test delete_by_id returns False when the key doesn't exist."""
        mock_session = AsyncMock()
        mock_result = MagicMock()
        mock_result.scalar_one_or_none.return_value = None
        mock_session.execute.return_value = mock_result

        repo = ApiKeyRepository(mock_session)
        result = await repo.delete_by_id(7)

        assert result is False
        mock_session.delete.assert_not_called()

    async def test_delete_by_id_removes_key(self):
        """Test delete_by_id deletes an existing key."""
        mock_session = AsyncMock()
        api_key = _api_key()
        mock_result = MagicMock()
        mock_result.scalar_one_or_none.return_value = api_key
        mock_session.execute.return_value = mock_result

        repo = ApiKeyRepository(mock_session)
        result = await repo.delete_by_id(1)

        assert result is True
        mock_session.delete.assert_called_once_with(api_key)

    async def test_increment_usage_reports_rowcount(self):
        """Test increment_usage returns whether a row was updated."""
        mock_session = AsyncMock()
        mock_result = MagicMock()
        mock_result.rowcount = 1
        mock_session.execute.return_value = mock_result

        repo = ApiKeyRepository(mock_session)
        assert await repo.increment_usage(1, datetime.now(UTC)) is True

        mock_result.rowcount = 0
        assert await repo.increment_usage(2, datetime.now(UTC)) is False

    async def test_list_all(self):
        """Test list_all returns all keys from the query."""
        mock_session = AsyncMock()
        keys = [_api_key(id=2), _api_key(id=1)]
        mock_result = MagicMock()
        mock_result.scalars.return_value.all.return_value = keys
        mock_session.execute.return_value = mock_result

        repo = ApiKeyRepository(mock_session)
        result = await repo.list_all()

        assert result == keys
