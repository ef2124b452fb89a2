"""
Structured judgment (act) API schemas.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from models.schemas.base import CamelModel


class ActionControl(BaseModel):
    """Natural-language description plus the JSON Schema the upstream must answer with."""

    model_config = ConfigDict(populate_by_name=True)

    description: str = Field(..., min_length=1)
    # "schema" would shadow a BaseModel attribute
    json_schema: dict[str, Any] = Field(..., alias="schema")


class ActRequest(CamelModel):
    """Request body for POST /act.

    ``type`` selects the judgment: ``compatibility`` needs both users'
    shades, ``custom`` needs a prompt and an action control.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "type": "compatibility",
                "user1Shades": ["hiking", "jazz"],
                "user2Shades": ["jazz", "cooking"],
            }
        }
    )

    type: str | None = None
    user1_shades: list[Any] | None = None
    user2_shades: list[Any] | None = None
    user1_bio: str | None = None
    user2_bio: str | None = None
    prompt: str | None = None
    action_control: ActionControl | None = None


class CompatibilityScore(BaseModel):
    """Compatibility judgment returned by the upstream."""

    score: int | float = Field(..., ge=0, le=100, description="Match score 0-100, as returned")
    reasoning: str
    strengths: list[str]
    challenges: list[str]
