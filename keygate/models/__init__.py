"""Keygate Models.

ORM models (database tables):
    from keygate.models import ApiKey
    from keygate.models.orm import ApiKey

Pydantic contracts (API request/response):
    from keygate.models import ApiKeyCreate, ApiKeyPublic
    from keygate.models.contracts import ApiKeyCreate, ApiKeyPublic
"""

# Pydantic contracts (API request/response)
from keygate.models.contracts import (
    ApiKeyCreate,
    ApiKeyCreated,
    ApiKeyPublic,
    ApiKeyRevoke,
    ErrorResponse,
    HealthResponse,
)

# ORM models (database tables)
from keygate.models.orm import ApiKey, Base

__all__ = [
    # ORM
    "Base",
    "ApiKey",
    # Contracts
    "ApiKeyCreate",
    "ApiKeyCreated",
    "ApiKeyPublic",
    "ApiKeyRevoke",
    "ErrorResponse",
    "HealthResponse",
]
