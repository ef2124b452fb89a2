"""
Per-request identity for logs and error envelopes.

``RequestContextMiddleware`` opens a ``RequestContext`` for each request
(request id, client address, start time). The auth dependency adds the
user id and the chat relay adds the chat session id, so every log line
written while handling the request can be correlated with both.
"""

from __future__ import annotations

import secrets
import time

from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from utils.metrics import request_duration_seconds

REQUEST_ID_PREFIX = "req_"
REQUEST_ID_HEADER = "X-Request-ID"

_request_context: ContextVar[RequestContext | None] = ContextVar("request_context", default=None)


@dataclass
class RequestContext:
    request_id: str
    path: str = ""
    method: str = ""
    client_ip: str | None = None
    user_id: str | None = None
    session_id: str | None = None
    started: float = field(default_factory=time.monotonic)

    @property
    def elapsed_ms(self) -> float:
        return (time.monotonic() - self.started) * 1000

    def to_log_context(self) -> dict[str, Any]:
        """Fields attached to every log record; identity only once it is known."""
        ctx: dict[str, Any] = {
            "request_id": self.request_id,
            "path": self.path,
            "method": self.method,
            "elapsed_ms": round(self.elapsed_ms, 2),
        }
        for name in ("client_ip", "user_id", "session_id"):
            if value := getattr(self, name):
                ctx[name] = value
        return ctx


def generate_request_id() -> str:
    """``req_`` followed by 16 hex characters."""
    return f"{REQUEST_ID_PREFIX}{secrets.token_hex(8)}"


def get_request_context() -> RequestContext | None:
    return _request_context.get()


def get_request_id() -> str | None:
    ctx = _request_context.get()
    return ctx.request_id if ctx else None


def set_request_context(context: RequestContext) -> None:
    _request_context.set(context)


def clear_request_context() -> None:
    _request_context.set(None)


def update_request_context(*, user_id: str | None = None, session_id: str | None = None) -> None:
    """Record the caller or chat session on the current request. Outside a request this does nothing."""
    ctx = _request_context.get()
    if ctx is None:
        return
    if user_id is not None:
        ctx.user_id = user_id
    if session_id is not None:
        ctx.session_id = session_id


def _client_ip(request: Request) -> str | None:
    # Behind a proxy the first X-Forwarded-For entry is the browser
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Opens the request context and stamps ``X-Request-ID`` and ``X-Response-Time`` on responses.

    Also observes ``request_duration_seconds``; for the chat stream this is
    the time to response headers, not to the end of the stream.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        context = RequestContext(
            request_id=request.headers.get(REQUEST_ID_HEADER) or generate_request_id(),
            path=request.url.path,
            method=request.method,
            client_ip=_client_ip(request),
        )
        token = _request_context.set(context)
        try:
            response = await call_next(request)
        finally:
            _request_context.reset(token)

        response.headers[REQUEST_ID_HEADER] = context.request_id
        response.headers["X-Response-Time"] = f"{context.elapsed_ms:.2f}ms"

        # Route template, not the raw path, keeps label cardinality bounded
        route_path = getattr(request.scope.get("route"), "path", "unmatched")
        request_duration_seconds.labels(
            method=request.method,
            path=route_path,
            status=str(response.status_code),
        ).observe(context.elapsed_ms / 1000)
        return response


__all__ = [
    "REQUEST_ID_PREFIX",
    "RequestContext",
    "RequestContextMiddleware",
    "clear_request_context",
    "generate_request_id",
    "get_request_context",
    "get_request_id",
    "set_request_context",
    "update_request_context",
]
