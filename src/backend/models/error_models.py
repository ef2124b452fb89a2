"""
Standardized error response models for the SecondMe chat API.

Failures share the response envelope with successes: ``code`` is ``-1`` and
``message`` carries the human-readable reason, with the application error
code and request tracking fields alongside.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from core.constants import RESPONSE_CODE_ERROR


class ErrorCode(str, Enum):
    """Application-specific error codes for categorization."""

    # Authentication errors (1xxx)
    AUTH_REQUIRED = "AUTH_1001"

    # Validation errors (2xxx)
    VALIDATION_ERROR = "VAL_2001"
    VALIDATION_MISSING_FIELD = "VAL_2002"

    # Resource errors (3xxx)
    RESOURCE_NOT_FOUND = "RES_3001"

    # Session errors (4xxx)
    SESSION_NOT_FOUND = "SES_4001"

    # External service errors (7xxx)
    EXTERNAL_SERVICE_ERROR = "EXT_7001"
    EXTERNAL_TIMEOUT = "EXT_7002"
    EXTERNAL_INVALID_RESPONSE = "EXT_7003"

    # Database errors (8xxx)
    DATABASE_ERROR = "DB_8001"
    DATABASE_CONNECTION_FAILED = "DB_8002"

    # Internal errors (9xxx)
    INTERNAL_ERROR = "INT_9001"
    INTERNAL_UNEXPECTED = "INT_9999"


class ErrorDetail(BaseModel):
    """Detailed information about a specific validation or sub-error."""

    field: str | None = None
    message: str
    code: str | None = None
    value: Any | None = Field(default=None, exclude=True)  # Excluded from response for security


class ErrorResponse(BaseModel):
    """Standardized error response model for REST endpoints.

    Example response:
    {
        "code": -1,
        "message": "Session not found",
        "error_code": "SES_4001",
        "request_id": "req_abc123",
        "timestamp": "2025-01-15T10:30:00Z",
        "path": "/api/sessions"
    }
    """

    error_code: ErrorCode
    message: str
    request_id: str | None = None
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    details: list[ErrorDetail] | None = None
    path: str | None = None
    # Debug info - only included in development mode
    debug: dict[str, Any] | None = Field(default=None, exclude=True)

    def to_dict(self, include_debug: bool = False) -> dict[str, Any]:
        """Convert to the failure envelope.

        Args:
            include_debug: Include debug information (only in development)
        """
        data: dict[str, Any] = {"code": RESPONSE_CODE_ERROR}
        data.update(self.model_dump(mode="json", exclude_none=True))
        if include_debug and self.debug:
            data["debug"] = self.debug
        return data


# HTTP status code mappings for error codes
ERROR_CODE_TO_STATUS: dict[ErrorCode, int] = {
    # 400 Bad Request
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.VALIDATION_MISSING_FIELD: 400,
    # 401 Unauthorized
    ErrorCode.AUTH_REQUIRED: 401,
    # 404 Not Found
    ErrorCode.RESOURCE_NOT_FOUND: 404,
    ErrorCode.SESSION_NOT_FOUND: 404,
    # 500 Internal Server Error
    ErrorCode.EXTERNAL_SERVICE_ERROR: 500,
    ErrorCode.EXTERNAL_TIMEOUT: 500,
    ErrorCode.EXTERNAL_INVALID_RESPONSE: 500,
    ErrorCode.DATABASE_ERROR: 500,
    ErrorCode.DATABASE_CONNECTION_FAILED: 500,
    ErrorCode.INTERNAL_ERROR: 500,
    ErrorCode.INTERNAL_UNEXPECTED: 500,
}


def get_status_code(error_code: ErrorCode) -> int:
    """Get HTTP status code for an error code."""
    return ERROR_CODE_TO_STATUS.get(error_code, 500)


__all__ = [
    "ERROR_CODE_TO_STATUS",
    "ErrorCode",
    "ErrorDetail",
    "ErrorResponse",
    "get_status_code",
]
