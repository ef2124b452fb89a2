from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import UUID

import asyncpg

from models.schemas.auth import SecondMeUser, TokenSet, User


def token_expiry(tokens: TokenSet, now: datetime | None = None) -> datetime:
    """Absolute expiry of a freshly issued token set."""
    now = now or datetime.now(timezone.utc)
    return now + timedelta(seconds=tokens.expires_in)


class UserService:
    """User persistence keyed on the SecondMe identity."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def upsert_user(self, profile: SecondMeUser, tokens: TokenSet) -> User:
        """Create or update the user for an external identity in one statement.

        Concurrent logins for the same identity converge on one row.
        """
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO users (
                    secondme_user_id, access_token, refresh_token,
                    token_expires_at, nickname, avatar
                )
                VALUES ($1, $2, $3, $4, $5, $6)
                ON CONFLICT (secondme_user_id) DO UPDATE SET
                    access_token = EXCLUDED.access_token,
                    refresh_token = EXCLUDED.refresh_token,
                    token_expires_at = EXCLUDED.token_expires_at,
                    nickname = EXCLUDED.nickname,
                    avatar = EXCLUDED.avatar,
                    updated_at = NOW()
                RETURNING *
                """,
                profile.user_id,
                tokens.access_token,
                tokens.refresh_token,
                token_expiry(tokens),
                profile.nickname,
                profile.avatar,
            )
        return User.model_validate(dict(row))

    async def get_user_by_id(self, user_id: UUID) -> User | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT * FROM users WHERE id = $1",
                user_id,
            )
        if not row:
            return None
        return User.model_validate(dict(row))

    async def update_tokens(self, user_id: UUID, tokens: TokenSet) -> User | None:
        """Store a refreshed token pair."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                UPDATE users
                SET access_token = $2,
                    refresh_token = $3,
                    token_expires_at = $4,
                    updated_at = NOW()
                WHERE id = $1
                RETURNING *
                """,
                user_id,
                tokens.access_token,
                tokens.refresh_token,
                token_expiry(tokens),
            )
        if not row:
            return None
        return User.model_validate(dict(row))
