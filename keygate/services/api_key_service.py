"""
API Key Service

Issues, validates, meters and revokes API keys. All admission rules live
here; the repository only stores and looks up records.

Every store call is bounded by a timeout. A timeout or database error is
raised as StoreUnavailableError so callers can fail closed.
"""

import asyncio
import logging
from collections.abc import Awaitable
from datetime import UTC, datetime
from typing import TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from keygate.core.exceptions import StoreUnavailableError
from keygate.core.security import generate_api_key, hash_api_key
from keygate.models.orm.api_key import ApiKey
from keygate.repositories.api_key import ApiKeyRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_STORE_TIMEOUT = 5.0


class ApiKeyService:
    """Service for API key lifecycle and admission decisions."""

    def __init__(self, db: AsyncSession, store_timeout: float = DEFAULT_STORE_TIMEOUT):
        self.db = db
        self.repo = ApiKeyRepository(db)
        self.store_timeout = store_timeout

    async def _store(self, operation: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(operation, timeout=self.store_timeout)
        except TimeoutError as e:
            raise StoreUnavailableError(
                f"Key store did not respond within {self.store_timeout}s"
            ) from e
        except (SQLAlchemyError, OSError) as e:
            # OSError: connection refused/reset before the driver wraps it
            raise StoreUnavailableError(f"Key store error: {e}") from e

    async def issue(
        self,
        name: str,
        description: str | None = None,
        created_by: str | None = None,
        expires_at: datetime | None = None,
    ) -> tuple[str, ApiKey]:
        """
        Issue a new API key.

        The plaintext key is returned exactly once and is never stored or
        logged; only its hash is persisted.

        Args:
            name: Display name
            description: Optional free text
            created_by: Optional creator identifier
            expires_at: Optional expiry (None = never expires)

        Returns:
            Tuple of (plaintext key, stored ApiKey)

        Raises:
            ConflictError: If the generated hash collides with a stored key
        """
        if expires_at is not None:
            # Stored as UTC; SQLite drops the offset without converting
            expires_at = (
                expires_at.astimezone(UTC)
                if expires_at.tzinfo
                else expires_at.replace(tzinfo=UTC)
            )

        raw_key = generate_api_key()

        api_key = ApiKey(
            key_hash=hash_api_key(raw_key),
            name=name,
            description=description,
            created_by=created_by,
            expires_at=expires_at,
            created_at=datetime.now(UTC),
            usage_count=0,
            is_active=True,
        )
        api_key = await self._store(self.repo.insert(api_key))

        logger.info(
            f"API key created: {api_key.name}",
            extra={"api_key_id": api_key.id, "created_by": created_by},
        )
        return raw_key, api_key

    async def authenticate(self, provided_key: str) -> ApiKey | None:
        """
        Find the admissible API key matching a presented key.

        Read-only; usage is recorded separately via record_usage.

        Args:
            provided_key: Key as presented by the caller (any length)

        Returns:
            ApiKey if found, active and not expired, None otherwise
        """
        api_key = await self._store(self.repo.get_by_key_hash(hash_api_key(provided_key)))
        if api_key is None or not api_key.is_admissible(datetime.now(UTC)):
            return None
        return api_key

    async def validate(self, provided_key: str) -> bool:
        """
        Check whether a presented key is admissible right now.

        Args:
            provided_key: Key as presented by the caller

        Returns:
            True if a matching key is active and not expired
        """
        return await self.authenticate(provided_key) is not None

    async def record_usage(self, id: int) -> bool:
        """
        Record one successful use of an API key.

        Each call increments usage_count; call at most once per accepted request.

        Args:
            id: API key ID

        Returns:
            True if the key exists, False otherwise
        """
        return await self._store(self.repo.increment_usage(id, datetime.now(UTC)))

    async def commit(self) -> None:
        """Commit the session, bounded like every other store call."""
        await self._store(self.db.commit())

    async def revoke(self, id: int, revoked_by: str) -> bool:
        """
        Revoke an API key.

        Revoking an already revoked key re-stamps the revocation metadata.
        A revoked key is never reactivated.

        Args:
            id: API key ID
            revoked_by: Who revoked the key

        Returns:
            True if the key exists, False otherwise
        """
        api_key = await self._store(self.repo.get_by_id(id))
        if api_key is None:
            return False

        api_key.is_active = False
        api_key.revoked_at = datetime.now(UTC)
        api_key.revoked_by = revoked_by
        await self._store(self.repo.update(api_key))

        logger.info(
            f"API key revoked: {api_key.name}",
            extra={"api_key_id": api_key.id, "revoked_by": revoked_by},
        )
        return True

    async def delete(self, id: int) -> bool:
        """
        Permanently delete an API key, active or revoked.

        Args:
            id: API key ID

        Returns:
            True if deleted, False if not found
        """
        deleted = await self._store(self.repo.delete_by_id(id))
        if deleted:
            logger.info("API key deleted", extra={"api_key_id": id})
        return deleted

    async def get_all(self) -> list[ApiKey]:
        """All API keys, newest first."""
        return await self._store(self.repo.list_all())

    async def get_by_id(self, id: int) -> ApiKey | None:
        return await self._store(self.repo.get_by_id(id))
