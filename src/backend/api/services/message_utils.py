"""Shared row conversion utilities for API services.

Provides common functions for converting database rows to API response formats.
"""

from __future__ import annotations

import json

from typing import Any, Protocol


class Row(Protocol):
    """Protocol for database row access (asyncpg.Record or dict)."""

    def get(self, key: str) -> Any: ...

    def __getitem__(self, key: str) -> Any: ...


def parse_metadata(raw: Any) -> dict[str, Any]:
    """Decode a JSONB metadata column (asyncpg returns text without a codec)."""
    if not raw:
        return {}
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            return {}
    return raw if isinstance(raw, dict) else {}


def row_to_message(row: Row) -> dict[str, Any]:
    """Convert a chat_messages row to a message dict.

    For partial/interrupted assistant turns:
    - partial: True (from metadata JSONB)
    """
    metadata = parse_metadata(row.get("metadata"))

    return {
        "id": str(row["id"]),
        "session_id": str(row["session_id"]),
        "role": row["role"],
        "content": row["content"],
        "created_at": row["created_at"],
        "partial": bool(metadata.get("partial", False)),
    }


def row_to_session(row: Row, messages: list[dict[str, Any]] | None = None) -> dict[str, Any]:
    """Convert a chat_sessions row to a session dict."""
    return {
        "id": str(row["id"]),
        "user_id": str(row["user_id"]),
        "session_id": row["session_id"],
        "title": row.get("title"),
        "last_message": row.get("last_message"),
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
        "messages": messages if messages is not None else [],
    }
