"""
Security Utilities

API key generation and hashing. Only the SHA-256 digest of a key is ever
persisted; the plaintext exists solely in the issuance response.
"""

import hashlib
import secrets

# 32 random bytes -> 64 hex characters
API_KEY_BYTES = 32


def generate_api_key() -> str:
    """
    Generate a new API key.

    Returns:
        64 uppercase hexadecimal characters from a CSPRNG
    """
    return secrets.token_bytes(API_KEY_BYTES).hex().upper()


def hash_api_key(api_key: str) -> str:
    """
    Hash an API key for storage and lookup.

    Uses SHA-256 since API keys are already high-entropy random strings
    and don't need bcrypt's intentional slowness. The digest is rendered as
    uppercase hex so keys hashed by earlier deployments keep matching.

    Args:
        api_key: The raw API key (any length)

    Returns:
        SHA-256 hex digest of the API key (64 characters)
    """
    return hashlib.sha256(api_key.encode("utf-8")).hexdigest().upper()


def matches_static_key(candidate: str, static_key: str | None) -> bool:
    """
    Compare a presented key against a statically configured key.

    Uses constant-time comparison. An unset or empty static key never matches.

    Args:
        candidate: Key presented by the caller
        static_key: Configured key, or None when disabled

    Returns:
        True if both are non-empty and equal, False otherwise
    """
    if not static_key:
        return False
    return secrets.compare_digest(candidate.encode("utf-8"), static_key.encode("utf-8"))
