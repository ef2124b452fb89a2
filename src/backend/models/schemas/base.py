"""
Base API schemas with the response envelope used by the browser client.

All JSON API responses follow one structure:
- Success responses: {"code": 0, "data": {...}}
- Error responses: {"code": -1, "message": "...", "error_code": "...", ...}

Field names are camelCase on the wire (``sessionId``, ``lastMessage``) and
snake_case in Python; models accept either on input.
"""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from core.constants import RESPONSE_CODE_OK

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base model serializing to camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Envelope(BaseModel, Generic[T]):
    """
    Standard success envelope.

    ```json
    {"code": 0, "data": {"sessions": []}}
    ```
    """

    code: int = Field(default=RESPONSE_CODE_OK, description="0 on success")
    data: T = Field(..., description="Response payload")


class SuccessData(BaseModel):
    """Payload for actions without meaningful return data (e.g. logout)."""

    model_config = ConfigDict(json_schema_extra={"example": {"success": True}})

    success: bool = Field(default=True, description="Whether the operation succeeded")
