"""
Exception types and handlers for the JSON endpoints.

Every JSON failure leaves through ``_error_response`` so the envelope
(``code: -1`` plus ``message``, ``error_code``, ``request_id``, ``timestamp``
and ``path``) and the log line are the same whichever handler caught it.
The chat stream endpoint answers its own failures in plain text and never
reaches these handlers.
"""

from __future__ import annotations

import traceback

from typing import Any

import asyncpg

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from api.middleware.request_context import get_request_context, get_request_id
from core.constants import get_settings
from models.error_models import ErrorCode, ErrorDetail, ErrorResponse, get_status_code
from utils.logger import logger


class AppException(Exception):
    """An expected failure with an application error code.

    ``details`` become ``{"field", "message"}`` entries in the envelope;
    ``cause`` is only shown in debug mode.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        self.code = code
        self.message = message
        self.details = details
        self.cause = cause
        super().__init__(message)

    @property
    def status_code(self) -> int:
        return get_status_code(self.code)


class AuthenticationError(AppException):
    """No valid session cookie, or the SecondMe token could not be refreshed."""

    def __init__(self, message: str = "Unauthorized", code: ErrorCode = ErrorCode.AUTH_REQUIRED):
        super().__init__(code=code, message=message)


class SessionNotFoundError(AppException):
    """Chat session not found, or owned by another user."""

    def __init__(self, session_id: str):
        super().__init__(
            code=ErrorCode.SESSION_NOT_FOUND,
            message="Session not found",
            details={"resource": "Session", "id": session_id},
        )


class ValidationException(AppException):
    """Missing or contradictory request parameters detected after parsing."""

    def __init__(self, message: str = "Validation error", code: ErrorCode = ErrorCode.VALIDATION_ERROR):
        super().__init__(code=code, message=message)


class UpstreamError(AppException):
    """SecondMe call failed: transport error, non-2xx status, non-zero envelope code or malformed payload."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        upstream_code: int | None = None,
        code: ErrorCode = ErrorCode.EXTERNAL_SERVICE_ERROR,
        cause: Exception | None = None,
    ):
        details: dict[str, Any] = {"service": "secondme"}
        if status_code is not None:
            details["upstream_status"] = status_code
        if upstream_code is not None:
            details["upstream_code"] = upstream_code
        super().__init__(code=code, message=message, details=details, cause=cause)
        self.upstream_status = status_code
        self.upstream_code = upstream_code


class PersistenceError(AppException):
    """User, session or message store failure."""

    def __init__(
        self,
        message: str = "Database error",
        code: ErrorCode = ErrorCode.DATABASE_ERROR,
        cause: Exception | None = None,
    ):
        super().__init__(code=code, message=message, cause=cause)


#: Error codes for framework-raised HTTPExceptions (unknown route, wrong method)
_HTTP_STATUS_CODES: dict[int, ErrorCode] = {
    400: ErrorCode.VALIDATION_ERROR,
    401: ErrorCode.AUTH_REQUIRED,
    404: ErrorCode.RESOURCE_NOT_FOUND,
    405: ErrorCode.VALIDATION_ERROR,
    422: ErrorCode.VALIDATION_ERROR,
}


def _error_response(
    request: Request,
    exc: Exception,
    code: ErrorCode,
    message: str,
    status_code: int,
    *,
    details: list[ErrorDetail] | None = None,
    debug: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Log the failure once and render the failure envelope."""
    ctx = get_request_context()
    log_context = {**(ctx.to_log_context() if ctx else {}), "error_code": code.value, "status_code": status_code}
    if status_code >= 500:
        logger.error(f"Server error {code.value}: {type(exc).__name__}: {exc}", exc_info=True, **log_context)
    else:
        logger.warning(f"Client error {code.value}: {exc}", **log_context)

    show_debug = get_settings().debug
    body = ErrorResponse(
        error_code=code,
        message=message,
        request_id=get_request_id(),
        path=request.url.path,
        details=details,
        debug=debug if show_debug else None,
    )
    return JSONResponse(status_code=status_code, content=body.to_dict(include_debug=show_debug), headers=headers)


def _field_errors(errors: list[Any]) -> list[ErrorDetail]:
    return [
        ErrorDetail(field=".".join(str(part) for part in error["loc"]), message=error["msg"], code=error["type"])
        for error in errors
    ]


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    details = [ErrorDetail(field=k, message=str(v)) for k, v in exc.details.items()] if exc.details else None
    return _error_response(
        request,
        exc,
        exc.code,
        exc.message,
        exc.status_code,
        details=details,
        debug={"exception_type": type(exc).__name__, "cause": str(exc.cause) if exc.cause else None},
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    code = _HTTP_STATUS_CODES.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return _error_response(
        request,
        exc,
        code,
        message,
        exc.status_code,
        debug={"original_status": exc.status_code},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed query or body: a client error, reported as 400 rather than FastAPI's 422."""
    return _error_response(
        request,
        exc,
        ErrorCode.VALIDATION_ERROR,
        "Request validation failed",
        400,
        details=_field_errors(list(exc.errors())),
    )


async def pydantic_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Our own data (stored rows, SecondMe payloads) failed validation: a server error."""
    return _error_response(
        request,
        exc,
        ErrorCode.INTERNAL_ERROR,
        "Data validation failed",
        500,
        details=_field_errors(exc.errors()),
    )


async def asyncpg_exception_handler(request: Request, exc: asyncpg.PostgresError) -> JSONResponse:
    return _error_response(
        request,
        exc,
        ErrorCode.DATABASE_ERROR,
        "Database operation failed",
        500,
        debug={"pg_error_code": getattr(exc, "sqlstate", None), "pg_error_class": type(exc).__name__},
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    return _error_response(
        request,
        exc,
        ErrorCode.INTERNAL_UNEXPECTED,
        "Internal server error",
        500,
        debug={
            "exception_type": type(exc).__name__,
            "exception_message": str(exc),
            "traceback": "".join(traceback.format_exception(exc)),
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the JSON failure handlers on ``app``."""
    # Starlette's signature expects Exception; narrower handler types are fine at runtime
    app.add_exception_handler(AppException, app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(ValidationError, pydantic_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(asyncpg.PostgresError, asyncpg_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, generic_exception_handler)


__all__ = [
    "AppException",
    "AuthenticationError",
    "PersistenceError",
    "SessionNotFoundError",
    "UpstreamError",
    "ValidationException",
    "register_exception_handlers",
]
