"""SQLAlchemy ORM Models for Keygate.

Pure database models using SQLAlchemy 2.0 declarative style.
"""

from keygate.models.orm.api_key import ApiKey
from keygate.models.orm.base import Base

__all__ = [
    "Base",
    "ApiKey",
]
