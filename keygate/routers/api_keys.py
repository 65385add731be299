"""
API Keys Router

Provides endpoints for API key management. These endpoints sit behind the
API key gate like every other route.
"""

import logging

from fastapi import APIRouter, HTTPException, status

from keygate.core.database import DbSession
from keygate.models.contracts.api_key import (
    ApiKeyCreate,
    ApiKeyCreated,
    ApiKeyPublic,
    ApiKeyRevoke,
)
from keygate.services.api_key_service import ApiKeyService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/api-keys", tags=["api-keys"])

# Recorded as revoked_by when the caller doesn't say who revoked the key
DEFAULT_REVOKED_BY = "api"


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="API key not found",
    )


@router.get("", response_model=list[ApiKeyPublic])
async def list_api_keys(db: DbSession) -> list[ApiKeyPublic]:
    """
    List all API keys, newest first.

    Args:
        db: Database session

    Returns:
        List of API keys (without key values or hashes)
    """
    api_keys = await ApiKeyService(db).get_all()
    return [ApiKeyPublic.model_validate(key) for key in api_keys]


@router.post("", response_model=ApiKeyCreated, status_code=status.HTTP_201_CREATED)
async def create_api_key(
    api_key_data: ApiKeyCreate,
    db: DbSession,
) -> ApiKeyCreated:
    """
    Create a new API key.

    The full API key is returned ONLY in this response. Store it securely
    as it cannot be retrieved again.

    Args:
        api_key_data: API key creation data
        db: Database session

    Returns:
        Created API key with the full key value
    """
    raw_key, api_key = await ApiKeyService(db).issue(
        name=api_key_data.name,
        description=api_key_data.description,
        created_by=api_key_data.created_by,
        expires_at=api_key_data.expires_at,
    )

    return ApiKeyCreated(
        **ApiKeyPublic.model_validate(api_key).model_dump(),
        key=raw_key,  # Return the full key only on creation
    )


@router.get("/{key_id}", response_model=ApiKeyPublic)
async def get_api_key(key_id: int, db: DbSession) -> ApiKeyPublic:
    """
    Get a single API key.

    Raises:
        HTTPException: If API key not found
    """
    api_key = await ApiKeyService(db).get_by_id(key_id)
    if api_key is None:
        raise _not_found()
    return ApiKeyPublic.model_validate(api_key)


@router.post("/{key_id}/revoke", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_api_key(
    key_id: int,
    db: DbSession,
    revoke_data: ApiKeyRevoke | None = None,
) -> None:
    """
    Revoke an API key. The key stays listed but is no longer accepted.

    Args:
        key_id: API key ID to revoke
        db: Database session
        revoke_data: Optional revocation details

    Raises:
        HTTPException: If API key not found
    """
    revoked_by = (revoke_data.revoked_by if revoke_data else None) or DEFAULT_REVOKED_BY
    if not await ApiKeyService(db).revoke(key_id, revoked_by):
        raise _not_found()


@router.delete("/{key_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_api_key(key_id: int, db: DbSession) -> None:
    """
    Permanently delete an API key.

    Args:
        key_id: API key ID to delete
        db: Database session

    Raises:
        HTTPException: If API key not found
    """
    if not await ApiKeyService(db).delete(key_id):
        raise _not_found()
