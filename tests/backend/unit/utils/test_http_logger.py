"""Tests for upstream HTTP request/response logging."""

from __future__ import annotations

from unittest.mock import patch

import httpx
import pytest

from utils.http_logger import HTTPLogger, create_logging_client


class TestSanitization:
    def test_headers_keep_last_four_chars(self) -> None:
        http_logger = HTTPLogger()

        headers = http_logger._sanitize_headers(
            {"Authorization": "Bearer at_secret_1234", "Accept": "application/json", "Cookie": "abc"}
        )

        assert headers == {"Authorization": "***1234", "Accept": "application/json", "Cookie": "***"}

    def test_body_credentials_redacted_including_data(self) -> None:
        http_logger = HTTPLogger()

        body = http_logger._sanitize_body(
            {
                "client_id": "cid",
                "client_secret": "shh",
                "code": "auth-code",
                "data": {"accessToken": "x", "access_token": "y", "nickname": "Tester"},
            }
        )

        assert body["client_id"] == "cid"
        assert body["client_secret"] == "***"
        assert body["code"] == "***"
        assert body["data"]["access_token"] == "***"
        assert body["data"]["nickname"] == "Tester"

    def test_non_json_body(self) -> None:
        assert "_error" in HTTPLogger._decode_json(b"\xff\xfe not json")
        assert HTTPLogger._decode_json(b"") == {}


@pytest.mark.asyncio
async def test_disabled_logger_logs_nothing() -> None:
    http_logger = HTTPLogger(enabled=False)
    request = httpx.Request("POST", "https://api.secondme.test/x", json={"a": 1})

    with patch("utils.http_logger.logger") as mock_logger:
        await http_logger.log_request(request)

    mock_logger.info.assert_not_called()


@pytest.mark.asyncio
async def test_hooks_log_request_and_response() -> None:
    http_logger = HTTPLogger()

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"code": 0, "data": {"accessToken": "at"}})

    client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler),
        event_hooks={"request": [http_logger.log_request], "response": [http_logger.log_response]},
    )

    with patch("utils.http_logger.logger") as mock_logger:
        await client.post("https://api.secondme.test/oauth/token/code", json={"code": "c", "client_secret": "s"})
    await client.aclose()

    request_call, response_call = mock_logger.info.call_args_list
    assert request_call.kwargs["payload"] == {"code": "***", "client_secret": "***"}
    assert response_call.kwargs["status_code"] == 200
    assert "POST https://api.secondme.test/oauth/token/code" in response_call.args[0]
    # Request bookkeeping is dropped once the response is logged
    assert http_logger._request_data == {}


def test_create_logging_client_installs_hooks() -> None:
    client = create_logging_client(enabled=True, timeout=httpx.Timeout(5.0))

    assert len(client.event_hooks["request"]) == 1
    assert len(client.event_hooks["response"]) == 1
    assert client.timeout.read == 5.0
