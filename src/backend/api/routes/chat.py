"""
Streaming chat endpoint.

Forwards the SecondMe chat stream to the browser byte for byte while the
chat service records the turn. Every failure before the stream starts is a
plain-text response (the browser client reads them as text); once
streaming has begun a failure simply ends the stream.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse, Response, StreamingResponse
from pydantic import ValidationError

from api.dependencies import Chat
from api.middleware.auth import OptionalUser
from api.middleware.exception_handlers import ValidationException
from models.schemas.chat import ChatRequest
from utils.logger import logger

router = APIRouter()

MESSAGE_REQUIRED = "Message is required"


@router.post(
    "",
    summary="Chat",
    description="Send a message and receive the assistant reply as a server-sent event stream.",
    response_class=StreamingResponse,
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": ChatRequest.model_json_schema(by_alias=True)}},
        }
    },
    responses={
        200: {"content": {"text/event-stream": {}}, "description": "Upstream chat stream"},
        400: {"content": {"text/plain": {"example": MESSAGE_REQUIRED}}},
        401: {"content": {"text/plain": {"example": "Unauthorized"}}},
        500: {"content": {"text/plain": {"example": "Internal server error"}}},
    },
)
async def chat(request: Request, user: OptionalUser, chat_service: Chat) -> Response:
    # Authentication is checked before the body is even parsed
    if user is None:
        return PlainTextResponse("Unauthorized", status_code=401)

    try:
        body = ChatRequest.model_validate_json(await request.body())
    except ValidationError as e:
        logger.warning(f"Rejected malformed chat request: {e.error_count()} error(s)")
        return PlainTextResponse(MESSAGE_REQUIRED, status_code=400)

    try:
        stream = await chat_service.start_chat(user, body.message, body.session_id)
    except ValidationException as e:
        return PlainTextResponse(e.message, status_code=400)
    except Exception as e:
        logger.error(f"Chat error: {type(e).__name__}: {e}", exc_info=True)
        return PlainTextResponse("Internal server error", status_code=500)

    return StreamingResponse(
        stream.body,
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Session-Id": stream.session_id,
        },
    )
