"""Keygate - API key admission gate and key management API."""

__version__ = "1.0.0"
