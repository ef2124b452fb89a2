"""App and client fixtures for route tests.

Routes are mounted exactly as in ``api.main`` (under ``/api`` with the
request context middleware and exception handlers); services are replaced
through ``app.dependency_overrides``.
"""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.dependencies import (
    get_act_service,
    get_app_settings,
    get_auth_service,
    get_chat_service,
    get_db,
    get_secondme_client,
    get_session_service,
)
from api.middleware.auth import get_optional_user
from api.middleware.exception_handlers import register_exception_handlers
from api.middleware.request_context import RequestContextMiddleware
from api.routes import router as api_router


class CurrentUserHolder:
    """Mutable holder so a test can log in or out before making requests."""

    def __init__(self) -> None:
        self.user: Any = None


@pytest.fixture
def current_user() -> CurrentUserHolder:
    return CurrentUserHolder()


@pytest.fixture
def auth_service() -> MagicMock:
    service = MagicMock()
    service.resolve_user = AsyncMock(return_value=None)
    service.complete_login = AsyncMock()
    return service


@pytest.fixture
def chat_service() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def session_service() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def act_service() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def secondme() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def app(
    settings: Any,
    current_user: CurrentUserHolder,
    auth_service: MagicMock,
    chat_service: AsyncMock,
    session_service: AsyncMock,
    act_service: AsyncMock,
    secondme: AsyncMock,
    mock_db_pool: MagicMock,
) -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)  # Add handlers so AppExceptions get converted to JSON
    app.add_middleware(RequestContextMiddleware)
    app.include_router(api_router, prefix="/api")

    app.dependency_overrides[get_app_settings] = lambda: settings
    app.dependency_overrides[get_db] = lambda: mock_db_pool
    app.dependency_overrides[get_optional_user] = lambda: current_user.user
    app.dependency_overrides[get_auth_service] = lambda: auth_service
    app.dependency_overrides[get_chat_service] = lambda: chat_service
    app.dependency_overrides[get_session_service] = lambda: session_service
    app.dependency_overrides[get_act_service] = lambda: act_service
    app.dependency_overrides[get_secondme_client] = lambda: secondme

    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app, raise_server_exceptions=False, follow_redirects=False)
