"""
API Key ORM model.

Represents API keys for programmatic access to the API. Only the SHA-256
hash of a key is stored.
"""

from datetime import UTC, datetime

from sqlalchemy import Boolean, DateTime, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from keygate.models.orm.base import Base


class ApiKey(Base):
    """API key database table."""

    __tablename__ = "api_keys"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    key_hash: Mapped[str] = mapped_column(String(64))  # SHA-256 hex
    name: Mapped[str] = mapped_column(String(100))  # "Web frontend"
    description: Mapped[str | None] = mapped_column(String(300), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        server_default=text("CURRENT_TIMESTAMP"),
    )
    created_by: Mapped[str | None] = mapped_column(String(100), default=None)
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )  # None = never expires
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    usage_count: Mapped[int] = mapped_column(Integer, default=0, server_default=text("0"))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default=text("true"))
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    revoked_by: Mapped[str | None] = mapped_column(String(100), default=None)

    def is_expired(self, at: datetime | None = None) -> bool:
        """Check if the API key has expired at the given time (default: now)."""
        if self.expires_at is None:
            return False
        at = at or datetime.now(UTC)
        return _as_utc(self.expires_at) <= at

    def is_admissible(self, at: datetime | None = None) -> bool:
        """Active and not expired."""
        return bool(self.is_active) and not self.is_expired(at)

    __table_args__ = (Index("ix_api_keys_key_hash", "key_hash", unique=True),)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; stored values are always UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value
