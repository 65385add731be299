"""Pydantic contracts (API request/response schemas)."""

from keygate.models.contracts.api_key import (
    ApiKeyCreate,
    ApiKeyCreated,
    ApiKeyPublic,
    ApiKeyRevoke,
)
from keygate.models.contracts.common import ErrorResponse, HealthResponse

__all__ = [
    # Common
    "ErrorResponse",
    "HealthResponse",
    # API Keys
    "ApiKeyCreate",
    "ApiKeyCreated",
    "ApiKeyPublic",
    "ApiKeyRevoke",
]
