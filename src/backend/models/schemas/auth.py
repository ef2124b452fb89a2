"""
Authentication-related schemas.

Covers the SecondMe OAuth payloads (token set, user profile), the stored
user record and the outcome of the OAuth state check.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TokenSet(BaseModel):
    """``data`` of a successful token exchange or refresh."""

    model_config = ConfigDict(
        extra="ignore",
        json_schema_extra={
            "example": {
                "access_token": "at_abc123",
                "refresh_token": "rt_def456",
                "expires_in": 7200,
            }
        },
    )

    access_token: str = Field(..., min_length=1)
    refresh_token: str = Field(..., min_length=1)
    expires_in: int = Field(..., ge=0, description="Access token lifetime (seconds)")


class SecondMeUser(BaseModel):
    """``data`` of the SecondMe user info endpoint."""

    model_config = ConfigDict(extra="ignore")

    user_id: str = Field(..., min_length=1, description="External identity ID")
    nickname: str | None = None
    avatar: str | None = None

    @field_validator("user_id", mode="before")
    @classmethod
    def coerce_user_id(cls, v: object) -> object:
        """Upstream sometimes sends numeric IDs; the store keys on text."""
        if isinstance(v, int):
            return str(v)
        return v


class User(BaseModel):
    """A stored user row."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    secondme_user_id: str
    access_token: str
    refresh_token: str
    token_expires_at: datetime
    nickname: str | None = None
    avatar: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def is_token_expired(self, now: datetime | None = None) -> bool:
        """Access token is unusable once its expiry is not in the future."""
        now = now or datetime.now(timezone.utc)
        return self.token_expires_at <= now


class OAuthStateCheck(str, Enum):
    """Outcome of comparing the callback ``state`` with the state cookie."""

    MATCH = "match"
    STATE_MISMATCH = "state_mismatch"
