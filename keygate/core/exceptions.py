"""
Domain Exceptions

Errors raised by the key store and key service. Admission failures never
surface these to API callers; the gate maps them to a 401 response.
"""


class KeygateError(Exception):
    """Base class for keygate errors."""


class ConflictError(KeygateError):
    """A record with the same unique value already exists."""


class NotFoundError(KeygateError):
    """The requested record does not exist."""


class StoreUnavailableError(KeygateError):
    """The key store failed or did not answer in time."""
