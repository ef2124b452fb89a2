"""
Chat session API schemas.

Request/response models for listing sessions and fetching one session
with its message history.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, Field

from models.schemas.base import CamelModel

# =============================================================================
# Request Models
# =============================================================================


class GetSessionRequest(CamelModel):
    """Request body for fetching a single session by its external identifier."""

    model_config = ConfigDict(json_schema_extra={"example": {"sessionId": "session_1700000000000_ab12cd34"}})

    session_id: str = Field(..., min_length=1, description="External session identifier")


# =============================================================================
# Response Models
# =============================================================================


class MessageResponse(CamelModel):
    """One persisted chat message."""

    id: str = Field(..., description="Message ID (UUID)")
    session_id: str = Field(..., description="Owning session row ID (UUID)")
    role: Literal["user", "assistant"] = Field(..., description="Message author")
    content: str = Field(..., description="Message text")
    created_at: datetime = Field(..., description="Creation time")
    partial: bool = Field(default=False, description="Assistant turn was interrupted before the stream ended")


class SessionResponse(CamelModel):
    """Chat session with its messages in creation order."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "0b8f4b9e-6c1a-4f43-9d55-1b1f0f1f3a10",
                "userId": "7d1f8a5e-2b3c-4d5e-8f90-a1b2c3d4e5f6",
                "sessionId": "session_1700000000000_ab12cd34",
                "title": "hello",
                "lastMessage": "Hi there",
                "createdAt": "2025-01-15T10:30:00Z",
                "updatedAt": "2025-01-15T10:30:05Z",
                "messages": [],
            }
        }
    )

    id: str = Field(..., description="Session row ID (UUID)")
    user_id: str = Field(..., description="Owner user ID (UUID)")
    session_id: str = Field(..., description="External session identifier")
    title: str | None = Field(default=None, description="First 50 characters of the first message")
    last_message: str | None = Field(default=None, description="First 100 characters of the latest reply")
    created_at: datetime
    updated_at: datetime
    messages: list[MessageResponse] = Field(default_factory=list)


class SessionListData(CamelModel):
    """Payload of GET /sessions."""

    sessions: list[SessionResponse]


class SessionData(CamelModel):
    """Payload of POST /sessions."""

    session: SessionResponse
