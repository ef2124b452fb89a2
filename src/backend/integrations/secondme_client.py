"""
SecondMe API client.

Thin async wrapper over the SecondMe OAuth and chat endpoints. Every call is
single-shot: a transport failure, a non-2xx status, a non-zero envelope
``code`` or a payload that does not validate raises ``UpstreamError`` and
nothing is retried.

The upstream wraps JSON results in ``{"code": 0, "message": "...", "data": {...}}``.
"""

from __future__ import annotations

import time

from typing import Any, TypeVar

import httpx

from pydantic import BaseModel, ValidationError

from api.middleware.exception_handlers import UpstreamError
from core.constants import (
    SECONDME_CHAT_PATH,
    SECONDME_SUCCESS_CODE,
    SECONDME_USER_INFO_PATH,
    SECONDME_USER_SHADES_PATH,
    Settings,
)
from models.error_models import ErrorCode
from models.schemas.auth import SecondMeUser, TokenSet
from utils.logger import logger
from utils.metrics import upstream_request_duration_seconds

ModelT = TypeVar("ModelT", bound=BaseModel)


class SecondMeClient:
    """Client for the SecondMe identity and chat API.

    The httpx client is shared and owned by the application lifespan;
    this class never closes it.
    """

    def __init__(self, http_client: httpx.AsyncClient, settings: Settings):
        self.http = http_client
        self.settings = settings

    # ------------------------------------------------------------------
    # OAuth
    # ------------------------------------------------------------------

    async def exchange_code_for_token(self, code: str) -> TokenSet:
        """Exchange an authorization code for an access/refresh token pair."""
        payload = {
            "client_id": self.settings.secondme_client_id,
            "client_secret": self.settings.secondme_client_secret,
            "code": code,
            "redirect_uri": self.settings.secondme_redirect_uri,
            "grant_type": "authorization_code",
        }
        response = await self._request("POST", self.settings.secondme_token_endpoint, json=payload)
        data = self._unwrap(response, "Token exchange")
        return self._parse(TokenSet, data, "Token exchange")

    async def refresh_access_token(self, refresh_token: str) -> TokenSet:
        """Trade a refresh token for a new token pair."""
        payload = {
            "client_id": self.settings.secondme_client_id,
            "client_secret": self.settings.secondme_client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }
        response = await self._request("POST", self.settings.secondme_refresh_endpoint, json=payload)
        data = self._unwrap(response, "Token refresh")
        return self._parse(TokenSet, data, "Token refresh")

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    async def get_user_info(self, access_token: str) -> SecondMeUser:
        """Fetch the authenticated user's profile."""
        response = await self._request(
            "GET", self._url(SECONDME_USER_INFO_PATH), headers=self._auth_headers(access_token)
        )
        data = self._unwrap(response, "User info")
        return self._parse(SecondMeUser, data, "User info")

    async def fetch_user_info_payload(self, access_token: str) -> Any:
        """Raw user info payload, for passthrough to the browser."""
        return await self._fetch_raw(SECONDME_USER_INFO_PATH, access_token, "User info")

    async def fetch_user_shades_payload(self, access_token: str) -> Any:
        """Raw shades (interest tags) payload, for passthrough to the browser."""
        return await self._fetch_raw(SECONDME_USER_SHADES_PATH, access_token, "User shades")

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    async def open_chat_stream(self, access_token: str, content: str, session_id: str) -> httpx.Response:
        """Start a streaming chat completion.

        Returns the open response; the caller iterates ``aiter_bytes()`` and
        must ``aclose()`` it. A non-2xx status is raised here, after the
        response has been closed, so no partial stream ever reaches the caller.
        """
        request = self.http.build_request(
            "POST",
            self._url(SECONDME_CHAT_PATH),
            json={"content": content, "sessionId": session_id, "stream": True},
            headers=self._auth_headers(access_token),
        )
        started = time.monotonic()
        try:
            response = await self.http.send(request, stream=True)
        except httpx.HTTPError as e:
            self._observe(SECONDME_CHAT_PATH, started, ok=False)
            raise self._transport_error("Chat stream", e) from e
        self._observe(SECONDME_CHAT_PATH, started, ok=response.is_success)

        if not response.is_success:
            await response.aread()
            await response.aclose()
            logger.warning(
                f"Chat stream rejected by upstream: HTTP {response.status_code}",
                upstream_status=response.status_code,
            )
            raise UpstreamError(
                f"Chat stream failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response

    async def act(self, access_token: str, content: str, action_control: dict[str, Any]) -> Any:
        """Non-streaming chat call constrained by an action control.

        Returns ``data.result`` as sent (string or structured JSON).
        """
        response = await self._request(
            "POST",
            self._url(SECONDME_CHAT_PATH),
            json={"content": content, "stream": False, "actionControl": action_control},
            headers=self._auth_headers(access_token),
        )
        data = self._unwrap(response, "Act")
        if not isinstance(data, dict) or "result" not in data:
            raise UpstreamError(
                "Act: response has no result",
                code=ErrorCode.EXTERNAL_INVALID_RESPONSE,
            )
        return data["result"]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _url(self, path: str) -> str:
        return f"{self.settings.secondme_api_base_url}{path}"

    @staticmethod
    def _auth_headers(access_token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {access_token}"}

    @staticmethod
    def _transport_error(operation: str, exc: httpx.HTTPError) -> UpstreamError:
        code = ErrorCode.EXTERNAL_SERVICE_ERROR
        if isinstance(exc, httpx.TimeoutException):
            code = ErrorCode.EXTERNAL_TIMEOUT
        logger.warning(f"{operation} transport error: {type(exc).__name__}: {exc}")
        return UpstreamError(f"{operation} failed: {type(exc).__name__}", code=code, cause=exc)

    @staticmethod
    def _observe(operation: str, started: float, ok: bool) -> None:
        upstream_request_duration_seconds.labels(
            operation=operation,
            status="success" if ok else "error",
        ).observe(time.monotonic() - started)

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        operation = httpx.URL(url).path
        started = time.monotonic()
        try:
            response = await self.http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            self._observe(operation, started, ok=False)
            raise self._transport_error(f"{method} {url}", e) from e
        self._observe(operation, started, ok=response.is_success)
        return response

    async def _fetch_raw(self, path: str, access_token: str, operation: str) -> Any:
        response = await self._request("GET", self._url(path), headers=self._auth_headers(access_token))
        if not response.is_success:
            raise UpstreamError(
                f"{operation} failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return self._json(response, operation)

    @staticmethod
    def _json(response: httpx.Response, operation: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(
                f"{operation}: response is not JSON",
                status_code=response.status_code,
                code=ErrorCode.EXTERNAL_INVALID_RESPONSE,
                cause=e,
            ) from e

    def _unwrap(self, response: httpx.Response, operation: str) -> Any:
        """Check HTTP status and envelope code, return ``data``."""
        if not response.is_success:
            raise UpstreamError(
                f"{operation} failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )

        body = self._json(response, operation)
        if not isinstance(body, dict):
            raise UpstreamError(
                f"{operation}: unexpected response shape",
                status_code=response.status_code,
                code=ErrorCode.EXTERNAL_INVALID_RESPONSE,
            )

        upstream_code = body.get("code")
        if upstream_code != SECONDME_SUCCESS_CODE:
            message = body.get("message") or f"upstream code {upstream_code}"
            raise UpstreamError(
                f"{operation} failed: {message}",
                status_code=response.status_code,
                upstream_code=upstream_code if isinstance(upstream_code, int) else None,
            )
        return body.get("data")

    @staticmethod
    def _parse(model: type[ModelT], data: Any, operation: str) -> ModelT:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise UpstreamError(
                f"{operation}: malformed payload",
                code=ErrorCode.EXTERNAL_INVALID_RESPONSE,
                cause=e,
            ) from e
