from __future__ import annotations

import secrets

from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import urlencode
from uuid import UUID

import asyncpg

from jose import JWTError, jwt

from api.middleware.exception_handlers import UpstreamError
from api.services.user_service import UserService
from core.constants import Settings, get_settings
from integrations.secondme_client import SecondMeClient
from models.schemas.auth import OAuthStateCheck, User
from utils.db_utils import DATABASE_ERRORS
from utils.logger import logger

SESSION_TOKEN_TYPE = "session"


class AuthService:
    """OAuth login against SecondMe and session resolution.

    The session cookie carries a signed token naming the internal user id;
    SecondMe tokens stay server-side on the user row.
    """

    def __init__(
        self,
        pool: asyncpg.Pool,
        client: SecondMeClient,
        settings: Settings | None = None,
    ):
        self.pool = pool
        self.client = client
        self.settings = settings or get_settings()
        self.users = UserService(pool)

    # ------------------------------------------------------------------
    # OAuth flow
    # ------------------------------------------------------------------

    @staticmethod
    def generate_oauth_state() -> str:
        return secrets.token_urlsafe(24)

    def build_authorize_url(self, state: str) -> str:
        """SecondMe authorize page URL for a login attempt."""
        params = {
            "client_id": self.settings.secondme_client_id,
            "redirect_uri": self.settings.secondme_redirect_uri,
            "response_type": "code",
            "state": state,
            "scope": self.settings.oauth_scope,
        }
        separator = "&" if "?" in self.settings.secondme_oauth_url else "?"
        return f"{self.settings.secondme_oauth_url}{separator}{urlencode(params)}"

    @staticmethod
    def verify_oauth_state(received: str | None, expected: str | None) -> OAuthStateCheck:
        """Compare the callback state with the state cookie.

        Whether a mismatch is fatal is the caller's policy (``OAUTH_STRICT_STATE``).
        """
        if received and expected and secrets.compare_digest(received, expected):
            return OAuthStateCheck.MATCH
        return OAuthStateCheck.STATE_MISMATCH

    async def complete_login(self, code: str) -> User:
        """Exchange the authorization code, fetch the profile and upsert the user.

        Raises:
            UpstreamError: Token exchange or profile fetch failed
        """
        tokens = await self.client.exchange_code_for_token(code)
        profile = await self.client.get_user_info(tokens.access_token)
        user = await self.users.upsert_user(profile, tokens)
        logger.info(
            "User logged in",
            user_id=str(user.id),
            secondme_user_id=user.secondme_user_id,
        )
        return user

    # ------------------------------------------------------------------
    # Session tokens
    # ------------------------------------------------------------------

    def issue_session_token(self, user_id: UUID) -> str:
        expires_at = datetime.now(timezone.utc) + timedelta(days=self.settings.session_max_age_days)
        payload = {
            "sub": str(user_id),
            "type": SESSION_TOKEN_TYPE,
            "exp": expires_at,
        }
        token: str = jwt.encode(payload, self.settings.session_secret, algorithm=self.settings.session_algorithm)
        return token

    def decode_session_token(self, token: str) -> dict[str, Any]:
        """Decode and validate a session token.

        Raises:
            ValueError: Token is forged, expired, malformed or of the wrong type
        """
        try:
            payload: dict[str, Any] = jwt.decode(
                token,
                self.settings.session_secret,
                algorithms=[self.settings.session_algorithm],
            )
        except JWTError as exc:
            raise ValueError("Invalid token") from exc

        if payload.get("type") != SESSION_TOKEN_TYPE:
            raise ValueError("Invalid token type")
        return payload

    # ------------------------------------------------------------------
    # Session resolution
    # ------------------------------------------------------------------

    async def resolve_user(self, token: str | None) -> User | None:
        """Resolve a session token to a user with a usable access token.

        Never raises: every failure (bad token, unknown user, store error,
        refresh failure) resolves to ``None``, i.e. unauthenticated.
        """
        if not token:
            return None

        try:
            payload = self.decode_session_token(token)
            user_id = UUID(str(payload.get("sub")))
        except ValueError as e:
            logger.debug(f"Rejected session token: {e}")
            return None

        try:
            user = await self.users.get_user_by_id(user_id)
        except DATABASE_ERRORS as e:
            logger.error(f"User lookup failed during session resolution: {e}", exc_info=True)
            return None

        if user is None:
            return None

        if not user.is_token_expired():
            return user

        return await self._refresh_user_tokens(user)

    async def _refresh_user_tokens(self, user: User) -> User | None:
        """Refresh an expired access token exactly once.

        Stored tokens are only touched after a successful refresh.
        """
        try:
            tokens = await self.client.refresh_access_token(user.refresh_token)
        except UpstreamError as e:
            logger.warning(
                f"Token refresh failed, treating request as unauthenticated: {e.message}",
                user_id=str(user.id),
            )
            return None

        try:
            refreshed = await self.users.update_tokens(user.id, tokens)
        except DATABASE_ERRORS as e:
            logger.error(f"Persisting refreshed tokens failed: {e}", exc_info=True, user_id=str(user.id))
            return None

        if refreshed is None:
            return None

        logger.info("Refreshed SecondMe access token", user_id=str(user.id))
        return refreshed
