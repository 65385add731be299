"""Data access repositories."""

from keygate.repositories.api_key import ApiKeyRepository

__all__ = [
    "ApiKeyRepository",
]
