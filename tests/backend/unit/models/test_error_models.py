from __future__ import annotations

import pytest

from models.error_models import ERROR_CODE_TO_STATUS, ErrorCode, ErrorDetail, ErrorResponse, get_status_code


def test_failure_envelope() -> None:
    response = ErrorResponse(
        error_code=ErrorCode.SESSION_NOT_FOUND,
        message="Session not found",
        request_id="req_1",
        path="/api/sessions",
        details=[ErrorDetail(field="resource", message="Session")],
        debug={"exception_type": "SessionNotFoundError"},
    )

    data = response.to_dict()

    assert data["code"] == -1
    assert data["message"] == "Session not found"
    assert data["error_code"] == "SES_4001"
    assert data["details"] == [{"field": "resource", "message": "Session"}]
    assert "debug" not in data
    assert response.to_dict(include_debug=True)["debug"] == {"exception_type": "SessionNotFoundError"}


def test_detail_value_never_serialized() -> None:
    detail = ErrorDetail(field="password", message="too short", value="hunter2")

    assert "value" not in detail.model_dump()


@pytest.mark.parametrize(
    ("code", "status"),
    [
        (ErrorCode.VALIDATION_MISSING_FIELD, 400),
        (ErrorCode.AUTH_REQUIRED, 401),
        (ErrorCode.SESSION_NOT_FOUND, 404),
        (ErrorCode.EXTERNAL_SERVICE_ERROR, 500),
        (ErrorCode.DATABASE_ERROR, 500),
    ],
)
def test_status_mapping(code: ErrorCode, status: int) -> None:
    assert get_status_code(code) == status


def test_every_code_has_a_status() -> None:
    assert set(ERROR_CODE_TO_STATUS) == set(ErrorCode)
