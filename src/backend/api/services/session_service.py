from __future__ import annotations

import json
import secrets
import time

from collections import defaultdict
from typing import Any
from uuid import UUID

import asyncpg

from api.services.message_utils import row_to_message, row_to_session
from core.constants import (
    LAST_MESSAGE_PREVIEW_LENGTH,
    MESSAGE_ROLE_ASSISTANT,
    MESSAGE_ROLE_USER,
    SESSION_ID_PREFIX,
    SESSION_ID_RANDOM_LENGTH,
    SESSION_TITLE_MAX_LENGTH,
)
from utils.db_utils import transaction
from utils.logger import logger


class SessionService:
    """Chat session and message persistence backed by PostgreSQL.

    Sessions are always looked up scoped to their owner: a session id that
    belongs to another user behaves exactly like one that does not exist.
    """

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    def _generate_session_id(self) -> str:
        """Generate an external session ID: ``session_<epoch-ms>_<hex>``."""
        millis = int(time.time() * 1000)
        return f"{SESSION_ID_PREFIX}{millis}_{secrets.token_hex(SESSION_ID_RANDOM_LENGTH // 2)}"

    async def create_session(self, user_id: UUID, first_message: str) -> dict[str, Any]:
        """Create a session titled after the first message."""
        session_id = self._generate_session_id()
        title = first_message[:SESSION_TITLE_MAX_LENGTH]

        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO chat_sessions (user_id, session_id, title)
                VALUES ($1, $2, $3)
                RETURNING *
                """,
                user_id,
                session_id,
                title,
            )
        logger.info(f"Created chat session {session_id}", session_id=session_id, user_id=str(user_id))
        return row_to_session(row)

    async def get_session(self, user_id: UUID, session_id: str) -> dict[str, Any] | None:
        """Get a session by external ID, scoped to its owner."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT * FROM chat_sessions
                WHERE user_id = $1 AND session_id = $2
                """,
                user_id,
                session_id,
            )
        if not row:
            return None
        return row_to_session(row)

    async def resolve_session(
        self,
        user_id: UUID,
        session_id: str | None,
        first_message: str,
    ) -> dict[str, Any]:
        """Return the caller's session, creating one when none is given or found."""
        if session_id:
            session = await self.get_session(user_id, session_id)
            if session:
                return session
            logger.info(
                "Requested chat session not found for user, starting a new one",
                requested_session_id=session_id,
                user_id=str(user_id),
            )
        return await self.create_session(user_id, first_message)

    async def add_message(
        self,
        session_pk: UUID,
        role: str,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Append a message to a session."""
        if role not in (MESSAGE_ROLE_USER, MESSAGE_ROLE_ASSISTANT):
            raise ValueError(f"Unsupported message role: {role}")

        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO chat_messages (session_id, role, content, metadata)
                VALUES ($1, $2, $3, $4::jsonb)
                RETURNING *
                """,
                session_pk,
                role,
                content,
                json.dumps(metadata or {}),
            )
        return row_to_message(row)

    async def record_assistant_reply(
        self,
        session_pk: UUID,
        content: str,
        partial: bool = False,
    ) -> dict[str, Any]:
        """Persist an assistant turn and refresh the session preview in one transaction."""
        metadata = {"partial": True} if partial else {}

        async with transaction(self.pool) as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO chat_messages (session_id, role, content, metadata)
                VALUES ($1, $2, $3, $4::jsonb)
                RETURNING *
                """,
                session_pk,
                MESSAGE_ROLE_ASSISTANT,
                content,
                json.dumps(metadata),
            )
            await conn.execute(
                """
                UPDATE chat_sessions
                SET last_message = $2, updated_at = NOW()
                WHERE id = $1
                """,
                session_pk,
                content[:LAST_MESSAGE_PREVIEW_LENGTH],
            )
        return row_to_message(row)

    async def list_sessions_with_messages(self, user_id: UUID) -> list[dict[str, Any]]:
        """All of a user's sessions, most recently updated first, each with ordered messages."""
        async with self.pool.acquire() as conn:
            session_rows = await conn.fetch(
                """
                SELECT * FROM chat_sessions
                WHERE user_id = $1
                ORDER BY updated_at DESC
                """,
                user_id,
            )
            if not session_rows:
                return []

            message_rows = await conn.fetch(
                """
                SELECT * FROM chat_messages
                WHERE session_id = ANY($1::uuid[])
                ORDER BY created_at ASC, seq ASC
                """,
                [r["id"] for r in session_rows],
            )

        by_session: dict[str, list[dict[str, Any]]] = defaultdict(list)
        for r in message_rows:
            by_session[str(r["session_id"])].append(row_to_message(r))

        return [row_to_session(r, by_session.get(str(r["id"]), [])) for r in session_rows]

    async def get_session_with_messages(self, user_id: UUID, session_id: str) -> dict[str, Any] | None:
        """One session (scoped to its owner) with messages in creation order."""
        async with self.pool.acquire() as conn:
            session_row = await conn.fetchrow(
                """
                SELECT * FROM chat_sessions
                WHERE user_id = $1 AND session_id = $2
                """,
                user_id,
                session_id,
            )
            if not session_row:
                return None

            message_rows = await conn.fetch(
                """
                SELECT * FROM chat_messages
                WHERE session_id = $1
                ORDER BY created_at ASC, seq ASC
                """,
                session_row["id"],
            )

        return row_to_session(session_row, [row_to_message(r) for r in message_rows])
