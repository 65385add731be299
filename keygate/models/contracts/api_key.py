"""
API Key contracts (API request/response schemas).
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ApiKeyCreate(BaseModel):
    """API key creation request model."""

    name: str = Field(..., min_length=1, max_length=100, description="Display name for the API key")
    description: str | None = Field(default=None, max_length=300)
    expires_at: datetime | None = Field(
        default=None, description="Optional expiration date (None = never expires)"
    )
    created_by: str | None = Field(default=None, max_length=100)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Name is required")
        return value


class ApiKeyRevoke(BaseModel):
    """API key revocation request model."""

    revoked_by: str | None = Field(default=None, max_length=100)


class ApiKeyPublic(BaseModel):
    """API key public response model (without the key value or its hash)."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None
    created_at: datetime
    created_by: str | None
    expires_at: datetime | None
    last_used_at: datetime | None
    usage_count: int
    is_active: bool
    revoked_at: datetime | None
    revoked_by: str | None


class ApiKeyCreated(ApiKeyPublic):
    """API key response model returned only on creation (includes the full key)."""

    key: str = Field(..., description="The full API key. Store it securely - it cannot be retrieved again.")
