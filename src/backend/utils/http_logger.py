"""
HTTP request/response logging for debugging SecondMe API calls.

Captures request payloads and (non-streaming) responses using httpx event hooks.
"""

from __future__ import annotations

import json

from typing import Any

import httpx

from utils.logger import logger

#: Header names whose values are never logged in full
SENSITIVE_HEADERS = ("authorization", "cookie", "set-cookie", "x-api-key")

#: JSON body keys whose values are never logged
SENSITIVE_BODY_KEYS = ("client_secret", "refresh_token", "access_token", "code")


class HTTPLogger:
    """Logs HTTP requests and responses for debugging."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._request_data: dict[int, dict[str, Any]] = {}

    async def log_request(self, request: httpx.Request) -> None:
        """Log outgoing HTTP request."""
        if not self.enabled:
            return

        body_json = self._sanitize_body(self._decode_json(request.content))

        self._request_data[id(request)] = {
            "method": request.method,
            "url": str(request.url),
        }

        logger.info(
            f"HTTP Request: {request.method} {request.url}",
            http_request=True,
            method=request.method,
            url=str(request.url),
            headers=self._sanitize_headers(dict(request.headers)),
            payload=body_json,
        )

        if body_json:
            logger.debug(f"Request Payload:\n{json.dumps(body_json, indent=2, ensure_ascii=False)}")

    async def log_response(self, response: httpx.Response) -> None:
        """Log HTTP response.

        Streaming bodies are not read here: reading would consume the stream.
        """
        if not self.enabled:
            return

        request_data = self._request_data.pop(id(response.request), {})

        try:
            body: Any = self._sanitize_body(self._decode_json(response.content))
        except httpx.ResponseNotRead:
            body = {"_note": "streaming response - body not captured"}

        logger.info(
            f"HTTP Response: {response.status_code} "
            f"{request_data.get('method', 'UNKNOWN')} {request_data.get('url', 'UNKNOWN')}",
            http_response=True,
            status_code=response.status_code,
            headers=self._sanitize_headers(dict(response.headers)),
            body=body,
        )

    @staticmethod
    def _decode_json(content: bytes) -> Any:
        if not content:
            return {}
        try:
            return json.loads(content.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            return {"_error": f"Non-JSON body: {e!s}"}

    def _sanitize_body(self, body: Any) -> Any:
        """Redact credential fields from top-level and ``data`` JSON objects."""
        if not isinstance(body, dict):
            return body
        sanitized = {k: ("***" if k in SENSITIVE_BODY_KEYS else v) for k, v in body.items()}
        if isinstance(sanitized.get("data"), dict):
            sanitized["data"] = self._sanitize_body(sanitized["data"])
        return sanitized

    def _sanitize_headers(self, headers: dict[str, str]) -> dict[str, str]:
        """Remove sensitive data from headers.

        Returns:
            Sanitized headers with sensitive values redacted (last 4 chars kept)
        """
        sanitized = headers.copy()
        for key, value in headers.items():
            if key.lower() in SENSITIVE_HEADERS:
                sanitized[key] = f"***{value[-4:]}" if len(value) > 4 else "***"
        return sanitized


def create_logging_client(
    enabled: bool = True,
    timeout: httpx.Timeout | None = None,
) -> httpx.AsyncClient:
    """Create an httpx client with request/response logging.

    Args:
        enabled: Whether to enable HTTP logging
        timeout: Optional timeout configuration

    Returns:
        Configured httpx.AsyncClient with event hooks
    """
    http_logger = HTTPLogger(enabled=enabled)

    event_hooks: dict[str, list[Any]] = {
        "request": [http_logger.log_request],
        "response": [http_logger.log_response],
    }

    return httpx.AsyncClient(event_hooks=event_hooks, timeout=timeout)
