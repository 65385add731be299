"""
API Key Repository

Provides database operations for ApiKey model.
"""

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from keygate.core.exceptions import ConflictError, NotFoundError
from keygate.models.orm.api_key import ApiKey
from keygate.repositories.base import BaseRepository


class ApiKeyRepository(BaseRepository[ApiKey]):
    """Repository for ApiKey model operations."""

    model = ApiKey

    def __init__(self, session: AsyncSession):
        super().__init__(session)

    async def insert(self, api_key: ApiKey) -> ApiKey:
        """
        Persist a new API key.

        Args:
            api_key: Unsaved API key

        Returns:
            Stored API key with its assigned ID

        Raises:
            ConflictError: If another key already has the same hash
        """
        try:
            return await self.create(api_key)
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictError("API key hash already exists") from e

    async def update(self, api_key: ApiKey) -> ApiKey:
        """
        Persist changes to an existing API key.

        Args:
            api_key: API key with updated values

        Returns:
            Updated API key

        Raises:
            NotFoundError: If no key with this ID exists
        """
        existing = await self.get_by_id(api_key.id) if api_key.id is not None else None
        if existing is None:
            raise NotFoundError(f"API key {api_key.id} not found")

        if existing is not api_key:
            api_key = await self.session.merge(api_key)

        await self.session.flush()
        await self.session.refresh(api_key)
        return api_key

    async def get_by_key_hash(self, key_hash: str) -> ApiKey | None:
        """
        Get an API key by its hash.

        Exact match on the unique key_hash index.

        Args:
            key_hash: SHA-256 hash of the API key

        Returns:
            ApiKey if found, None otherwise
        """
        result = await self.session.execute(
            select(ApiKey).where(ApiKey.key_hash == key_hash)
        )
        return result.scalar_one_or_none()

    async def list_all(self) -> list[ApiKey]:
        """
        Get all API keys, newest first.

        Returns:
            List of API keys ordered by created_at descending
        """
        result = await self.session.execute(
            select(ApiKey).order_by(ApiKey.created_at.desc(), ApiKey.id.desc())
        )
        return list(result.scalars().all())

    async def increment_usage(self, id: int, used_at: datetime) -> bool:
        """
        Atomically bump usage_count and stamp last_used_at.

        Runs as a single UPDATE so concurrent callers never lose increments.

        Args:
            id: API key ID
            used_at: Timestamp to record as last use

        Returns:
            True if a key was updated, False if not found
        """
        result = await self.session.execute(
            update(ApiKey)
            .where(ApiKey.id == id)
            .values(usage_count=ApiKey.usage_count + 1, last_used_at=used_at)
        )
        return (result.rowcount or 0) > 0
