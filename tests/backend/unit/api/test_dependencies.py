from unittest.mock import Mock, patch

import pytest

from fastapi import Request

from api.dependencies import (
    get_act_service,
    get_app_settings,
    get_auth_service,
    get_chat_service,
    get_db,
    get_http_client,
    get_secondme_client,
    get_session_service,
)
from api.services.act_service import ActService
from api.services.auth_service import AuthService
from api.services.chat_service import ChatService
from api.services.session_service import SessionService
from integrations.secondme_client import SecondMeClient


def test_get_app_settings() -> None:
    mock_settings = Mock()
    with patch("api.dependencies.get_settings", return_value=mock_settings):
        assert get_app_settings() == mock_settings


@pytest.mark.asyncio
async def test_get_db() -> None:
    mock_request = Mock(spec=Request)
    mock_db_pool = Mock()
    mock_request.app.state.db_pool = mock_db_pool

    assert await get_db(mock_request) == mock_db_pool


def test_get_http_client() -> None:
    mock_request = Mock(spec=Request)
    mock_client = Mock()
    mock_request.app.state.http_client = mock_client

    assert get_http_client(mock_request) == mock_client


def test_get_secondme_client() -> None:
    http_client = Mock()
    settings = Mock()
    client = get_secondme_client(http_client, settings)
    assert isinstance(client, SecondMeClient)
    assert client.http == http_client
    assert client.settings == settings


def test_get_session_service() -> None:
    mock_db_pool = Mock()
    service = get_session_service(mock_db_pool)
    assert isinstance(service, SessionService)
    assert service.pool == mock_db_pool


def test_get_auth_service() -> None:
    service = get_auth_service(Mock(), Mock(), Mock())
    assert isinstance(service, AuthService)


def test_get_chat_service() -> None:
    sessions = Mock()
    client = Mock()
    service = get_chat_service(sessions, client)
    assert isinstance(service, ChatService)
    assert service.sessions == sessions
    assert service.client == client


def test_get_act_service() -> None:
    assert isinstance(get_act_service(Mock()), ActService)
