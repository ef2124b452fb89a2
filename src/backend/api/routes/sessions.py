"""
Chat session endpoints.

Lists the current user's sessions with their message history and fetches
a single session by its external identifier. Sessions are only ever
visible to their owner.
"""

from __future__ import annotations

from fastapi import APIRouter

from api.dependencies import Sessions
from api.middleware.auth import CurrentUser
from api.middleware.exception_handlers import SessionNotFoundError
from models.schemas.base import Envelope
from models.schemas.sessions import GetSessionRequest, SessionData, SessionListData, SessionResponse

router = APIRouter()


@router.get(
    "",
    response_model=Envelope[SessionListData],
    summary="List sessions",
    description="All sessions of the current user, most recently updated first, each with its messages.",
    responses={401: {"description": "Not logged in"}},
)
async def list_sessions(user: CurrentUser, sessions: Sessions) -> Envelope[SessionListData]:
    rows = await sessions.list_sessions_with_messages(user.id)
    return Envelope(data=SessionListData(sessions=[SessionResponse.model_validate(r) for r in rows]))


@router.post(
    "",
    response_model=Envelope[SessionData],
    summary="Get session",
    description="One session of the current user with messages in creation order.",
    responses={
        400: {"description": "sessionId missing"},
        401: {"description": "Not logged in"},
        404: {"description": "Session not found or owned by another user"},
    },
)
async def get_session(body: GetSessionRequest, user: CurrentUser, sessions: Sessions) -> Envelope[SessionData]:
    row = await sessions.get_session_with_messages(user.id, body.session_id)
    if row is None:
        raise SessionNotFoundError(body.session_id)
    return Envelope(data=SessionData(session=SessionResponse.model_validate(row)))
