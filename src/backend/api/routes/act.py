"""
Structured judgment endpoint.

``compatibility`` scores two users from their shades; ``custom`` runs a
caller-supplied prompt constrained by a caller-supplied action control.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from api.dependencies import Act
from api.middleware.auth import CurrentUser
from api.middleware.exception_handlers import ValidationException
from models.error_models import ErrorCode
from models.schemas.act import ActRequest
from models.schemas.base import Envelope

router = APIRouter()


@router.post(
    "",
    response_model=Envelope[Any],
    summary="Structured judgment",
    description="Non-streaming SecondMe call whose answer follows a JSON Schema.",
    responses={
        400: {"description": "Missing parameters or unknown type"},
        401: {"description": "Not logged in"},
        500: {"description": "Upstream call failed or returned an unusable result"},
    },
)
async def act(body: ActRequest, user: CurrentUser, act_service: Act) -> Envelope[Any]:
    if body.type == "compatibility":
        if not body.user1_shades or not body.user2_shades:
            raise ValidationException(
                "Missing required parameters: user1Shades, user2Shades",
                code=ErrorCode.VALIDATION_MISSING_FIELD,
            )
        score = await act_service.get_compatibility_score(
            user.access_token,
            body.user1_shades,
            body.user2_shades,
            body.user1_bio,
            body.user2_bio,
        )
        return Envelope(data=score.model_dump())

    if body.type == "custom":
        if not body.prompt or body.action_control is None:
            raise ValidationException(
                "Missing required parameters: prompt, actionControl",
                code=ErrorCode.VALIDATION_MISSING_FIELD,
            )
        result = await act_service.call_act(user.access_token, body.prompt, body.action_control)
        return Envelope(data=result)

    raise ValidationException('Invalid type. Must be "compatibility" or "custom"')
