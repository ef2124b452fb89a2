import asyncio

from collections.abc import Iterator
from typing import Any
from unittest.mock import AsyncMock, Mock, patch

import pytest

from api.main import app, lifespan
from api.services.chat_service import ChatService
from models.schemas.health import DatabaseHealth

HEALTHY = DatabaseHealth(healthy=True, pool_size=2, pool_free=2, pool_used=0)


@pytest.fixture(autouse=True)
def isolated_background_tasks() -> Iterator[set[Any]]:
    """Start each test with no pending chat turn writes from other tests."""
    with patch.object(ChatService, "_background_tasks", set()) as tasks:
        yield tasks


@pytest.fixture
def mock_settings(settings: Any) -> Any:
    return settings.model_copy(update={"http_read_timeout": 10.0, "shutdown_timeout": 1.0})


@pytest.mark.asyncio
async def test_lifespan_startup_and_shutdown(mock_settings: Any) -> None:
    mock_app = Mock()
    mock_app.state = Mock()
    mock_http_client = Mock()
    mock_http_client.aclose = AsyncMock()

    with (
        patch("api.main.settings", mock_settings),
        patch("api.main.create_database_pool", new_callable=AsyncMock) as mock_create_db,
        patch("api.main.check_pool_health", new_callable=AsyncMock, return_value=HEALTHY),
        patch("api.main.graceful_pool_close", new_callable=AsyncMock) as mock_close_db,
        patch("api.main.create_http_client", return_value=mock_http_client) as mock_create_http,
    ):
        mock_db_pool = Mock()
        mock_create_db.return_value = mock_db_pool

        async with lifespan(mock_app):
            mock_create_db.assert_awaited_once_with(mock_settings)
            mock_create_http.assert_called_once_with(enable_logging=False, read_timeout=10.0)
            assert mock_app.state.db_pool is mock_db_pool
            assert mock_app.state.http_client is mock_http_client

        mock_http_client.aclose.assert_awaited_once()
        mock_close_db.assert_awaited_once_with(mock_db_pool, timeout=1.0)


@pytest.mark.asyncio
async def test_lifespan_unhealthy_database(mock_settings: Any) -> None:
    mock_app = Mock()
    mock_app.state = Mock()
    mock_db_pool = Mock()
    mock_db_pool.close = AsyncMock()

    with (
        patch("api.main.settings", mock_settings),
        patch("api.main.create_database_pool", new_callable=AsyncMock, return_value=mock_db_pool),
        patch(
            "api.main.check_pool_health",
            new_callable=AsyncMock,
            return_value=DatabaseHealth(healthy=False),
        ),
        patch("api.main.create_http_client") as mock_create_http,
        pytest.raises(RuntimeError, match="Database connection failed"),
    ):
        async with lifespan(mock_app):
            pass

    mock_db_pool.close.assert_awaited_once()
    mock_create_http.assert_not_called()


@pytest.mark.asyncio
async def test_shutdown_waits_for_pending_chat_writes(mock_settings: Any) -> None:
    mock_app = Mock()
    mock_app.state = Mock()
    mock_http_client = Mock()
    mock_http_client.aclose = AsyncMock()
    order: list[str] = []

    async def assistant_write() -> None:
        await asyncio.sleep(0.05)
        order.append("assistant message saved")

    def record(name: str) -> Any:
        async def _record(*args: Any, **kwargs: Any) -> None:
            order.append(name)

        return _record

    mock_http_client.aclose.side_effect = record("upstream client closed")

    with (
        patch("api.main.settings", mock_settings),
        patch("api.main.create_database_pool", new_callable=AsyncMock),
        patch("api.main.check_pool_health", new_callable=AsyncMock, return_value=HEALTHY),
        patch("api.main.graceful_pool_close", side_effect=record("pool closed")),
        patch("api.main.create_http_client", return_value=mock_http_client),
    ):
        async with lifespan(mock_app):
            task = asyncio.create_task(assistant_write())
            ChatService._background_tasks.add(task)
            task.add_done_callback(ChatService._background_tasks.discard)

    assert task.done()
    assert order == ["assistant message saved", "upstream client closed", "pool closed"]
    assert task not in ChatService._background_tasks


@pytest.mark.asyncio
async def test_drain_background_tasks_gives_up_at_deadline() -> None:
    task = asyncio.create_task(asyncio.sleep(10))
    ChatService._background_tasks.add(task)
    try:
        assert await ChatService.drain_background_tasks(timeout=0.01) == 1
    finally:
        task.cancel()
        ChatService._background_tasks.discard(task)


@pytest.mark.asyncio
async def test_drain_background_tasks_nothing_pending() -> None:
    assert await ChatService.drain_background_tasks(timeout=0.01) == 0


def test_routes_mounted_under_api() -> None:
    paths = {route.path for route in app.routes}  # type: ignore[attr-defined]

    for path in (
        "/api/auth/login",
        "/api/auth/callback",
        "/api/auth/logout",
        "/api/chat",
        "/api/sessions",
        "/api/user/info",
        "/api/user/shades",
        "/api/act",
        "/api/health",
        "/api/metrics",
    ):
        assert path in paths
