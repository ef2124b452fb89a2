from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

from fastapi.testclient import TestClient

from api.middleware.exception_handlers import UpstreamError


def test_user_info_requires_login(client: TestClient, secondme: AsyncMock) -> None:
    response = client.get("/api/user/info")

    assert response.status_code == 401
    assert response.json()["code"] == -1
    secondme.fetch_user_info_payload.assert_not_called()


def test_user_info_passes_upstream_payload_through(
    client: TestClient, current_user: Any, user: Any, secondme: AsyncMock
) -> None:
    current_user.user = user
    payload = {"code": 0, "data": {"userId": "sm_user_1", "name": "Tester", "extra": {"nested": [1, 2]}}}
    secondme.fetch_user_info_payload.return_value = payload

    response = client.get("/api/user/info")

    assert response.status_code == 200
    assert response.json() == payload
    secondme.fetch_user_info_payload.assert_awaited_once_with(user.access_token)


def test_user_info_upstream_failure(client: TestClient, current_user: Any, user: Any, secondme: AsyncMock) -> None:
    current_user.user = user
    secondme.fetch_user_info_payload.side_effect = UpstreamError("User info failed with HTTP 502", status_code=502)

    response = client.get("/api/user/info")

    assert response.status_code == 500
    body = response.json()
    assert body["code"] == -1
    assert body["message"] == "Failed to fetch user info"


def test_user_shades_passthrough(client: TestClient, current_user: Any, user: Any, secondme: AsyncMock) -> None:
    current_user.user = user
    payload = {"code": 0, "data": {"shades": [{"shadeName": "music"}]}}
    secondme.fetch_user_shades_payload.return_value = payload

    response = client.get("/api/user/shades")

    assert response.status_code == 200
    assert response.json() == payload


def test_user_shades_upstream_failure(client: TestClient, current_user: Any, user: Any, secondme: AsyncMock) -> None:
    current_user.user = user
    secondme.fetch_user_shades_payload.side_effect = UpstreamError("User shades failed with HTTP 401", status_code=401)

    response = client.get("/api/user/shades")

    assert response.status_code == 500
    assert response.json()["message"] == "Failed to fetch user shades"
