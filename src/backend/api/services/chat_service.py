from __future__ import annotations

import asyncio
import contextlib
import time

from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any, ClassVar
from uuid import UUID

import httpx

from api.middleware.exception_handlers import UpstreamError, ValidationException
from api.middleware.request_context import update_request_context
from api.services.session_service import SessionService
from core.constants import MESSAGE_ROLE_USER
from integrations.secondme_client import SecondMeClient
from models.error_models import ErrorCode
from models.schemas.auth import User
from utils.db_utils import DATABASE_ERRORS
from utils.logger import logger
from utils.metrics import chat_stream_bytes_total, chat_turns_total
from utils.stream_tee import StreamTee


@dataclass
class ChatStream:
    """An accepted chat turn: the session it belongs to and the byte stream to relay."""

    session_id: str
    body: AsyncIterator[bytes]


@dataclass
class _Turn:
    session_pk: UUID
    session_id: str
    message: str
    started: float


class ChatService:
    """Relays a streaming SecondMe chat completion and persists both sides of the turn.

    The user message is written before the upstream call. The assistant
    message is written once, after the relay ends: in full when the upstream
    stream completed, flagged ``partial`` when the client went away or the
    upstream broke off mid-stream.
    """

    # Persistence tasks outlive the request task on disconnect; keep references until done
    _background_tasks: ClassVar[set[asyncio.Task[Any]]] = set()

    def __init__(self, sessions: SessionService, client: SecondMeClient):
        self.sessions = sessions
        self.client = client

    @classmethod
    async def drain_background_tasks(cls, timeout: float) -> int:
        """Wait for pending assistant writes. Returns how many were still running at the deadline."""
        pending = set(cls._background_tasks)
        if not pending:
            return 0
        logger.info(f"Waiting for {len(pending)} pending chat turn write(s)")
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        if still_running:
            logger.warning(f"{len(still_running)} chat turn write(s) still running at shutdown deadline")
        return len(still_running)

    async def start_chat(self, user: User, message: str | None, session_id: str | None = None) -> ChatStream:
        """Accept a chat turn and open the upstream stream.

        Raises:
            ValidationException: Message missing or blank (before any I/O)
            UpstreamError: Upstream rejected the call; the user message is already stored
        """
        if message is None or not message.strip():
            raise ValidationException("Message is required", code=ErrorCode.VALIDATION_MISSING_FIELD)

        session = await self.sessions.resolve_session(user.id, session_id, message)
        update_request_context(session_id=session["session_id"])

        session_pk = UUID(session["id"])
        await self.sessions.add_message(session_pk, MESSAGE_ROLE_USER, message)

        try:
            response = await self.client.open_chat_stream(user.access_token, message, session["session_id"])
        except UpstreamError:
            chat_turns_total.labels(outcome="rejected").inc()
            raise

        turn = _Turn(
            session_pk=session_pk,
            session_id=session["session_id"],
            message=message,
            started=time.monotonic(),
        )
        tee = StreamTee(response.aiter_bytes())
        return ChatStream(session_id=turn.session_id, body=self._relay(tee, response, turn))

    async def _relay(self, tee: StreamTee, response: httpx.Response, turn: _Turn) -> AsyncIterator[bytes]:
        try:
            async with contextlib.aclosing(tee.forward()) as chunks:
                async for chunk in chunks:
                    yield chunk
        except httpx.HTTPError as e:
            # Headers are already sent; the client just sees the stream end
            logger.error(
                f"Upstream chat stream failed mid-stream: {type(e).__name__}: {e}",
                session_id=turn.session_id,
            )
        finally:
            # Runs on completion, upstream failure and client disconnect alike.
            # The write runs in its own task so cancelling this one cannot abort it.
            task = asyncio.create_task(self._finish_turn(tee, response, turn))
            self._background_tasks.add(task)
            task.add_done_callback(self._background_tasks.discard)
            await asyncio.shield(task)

    async def _finish_turn(self, tee: StreamTee, response: httpx.Response, turn: _Turn) -> None:
        """Close the upstream response and persist the assistant turn. Store failures are logged, not raised."""
        try:
            await response.aclose()
        except httpx.HTTPError as e:
            logger.debug(f"Error closing upstream chat stream: {e}", session_id=turn.session_id)

        text = tee.text()
        partial = not tee.completed
        chat_stream_bytes_total.inc(tee.byte_count)

        if partial:
            logger.warning(
                f"Chat stream ended early after {tee.byte_count} bytes; "
                + ("saving partial reply" if text else "nothing to save"),
                session_id=turn.session_id,
                chunks=tee.chunk_count,
            )
            if not text:
                chat_turns_total.labels(outcome="empty").inc()
                return

        try:
            await self.sessions.record_assistant_reply(turn.session_pk, text, partial=partial)
        except DATABASE_ERRORS as e:
            logger.error(
                f"Failed to save assistant message: {e}",
                exc_info=True,
                session_id=turn.session_id,
            )
            return

        chat_turns_total.labels(outcome="partial" if partial else "completed").inc()
        logger.log_chat_turn(
            user_input=turn.message,
            response=text,
            session_id=turn.session_id,
            duration_ms=(time.monotonic() - turn.started) * 1000,
            chunks=tee.chunk_count,
            partial=partial,
        )
