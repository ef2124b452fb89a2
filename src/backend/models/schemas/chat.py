"""
Chat relay request schema.

``message`` is optional at the schema level so a missing or blank message
is reported by the relay itself as a plain-text 400.
"""

from __future__ import annotations

from pydantic import ConfigDict, Field

from models.schemas.base import CamelModel


class ChatRequest(CamelModel):
    """Request body for POST /chat."""

    model_config = ConfigDict(
        json_schema_extra={"example": {"message": "hello", "sessionId": "session_1700000000000_ab12cd34"}}
    )

    message: str | None = Field(default=None, description="User message to send upstream")
    session_id: str | None = Field(default=None, description="Existing session to continue")
