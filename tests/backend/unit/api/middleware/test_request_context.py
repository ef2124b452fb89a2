import time

import pytest

from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.middleware.request_context import (
    REQUEST_ID_PREFIX,
    RequestContext,
    RequestContextMiddleware,
    clear_request_context,
    generate_request_id,
    get_request_context,
    get_request_id,
    set_request_context,
    update_request_context,
)


def test_request_context_dataclass() -> None:
    ctx = RequestContext(request_id="123")
    assert ctx.request_id == "123"
    assert ctx.elapsed_ms >= 0
    assert "request_id" in ctx.to_log_context()

    time.sleep(0.01)
    assert ctx.elapsed_ms > 0


def test_log_context_only_includes_known_identity() -> None:
    ctx = RequestContext(request_id="req_1", path="/api/chat", method="POST")
    assert "user_id" not in ctx.to_log_context()
    assert "session_id" not in ctx.to_log_context()

    ctx.user_id = "u1"
    ctx.session_id = "session_1700000000000_ab12cd34"
    log_ctx = ctx.to_log_context()
    assert log_ctx["user_id"] == "u1"
    assert log_ctx["session_id"] == "session_1700000000000_ab12cd34"


def test_generate_request_id() -> None:
    rid1 = generate_request_id()
    rid2 = generate_request_id()
    assert rid1.startswith(REQUEST_ID_PREFIX)
    assert len(rid1) == len(REQUEST_ID_PREFIX) + 16
    assert rid1 != rid2


def test_context_var_management() -> None:
    ctx = RequestContext(request_id="test")

    set_request_context(ctx)
    assert get_request_context() == ctx
    assert get_request_id() == "test"

    update_request_context(user_id="user1")
    update_request_context(session_id="session_1700000000000_ab12cd34")
    assert ctx.user_id == "user1"
    assert ctx.session_id == "session_1700000000000_ab12cd34"

    clear_request_context()
    assert get_request_context() is None
    assert get_request_id() is None


def test_update_without_context_is_noop() -> None:
    update_request_context(user_id="user1")
    assert get_request_context() is None


@pytest.fixture
def app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(RequestContextMiddleware)

    @app.get("/context")
    def get_ctx() -> dict[str, str | None]:
        ctx = get_request_context()
        assert ctx is not None
        return {
            "request_id": ctx.request_id,
            "client_ip": ctx.client_ip,
            "path": ctx.path,
        }

    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


def test_middleware_request_id(client: TestClient) -> None:
    response = client.get("/context")
    assert response.status_code == 200
    data = response.json()

    assert response.headers["x-request-id"].startswith(REQUEST_ID_PREFIX)
    assert response.headers["x-response-time"].endswith("ms")
    assert data["request_id"] == response.headers["x-request-id"]
    assert data["path"] == "/context"


def test_middleware_existing_request_id(client: TestClient) -> None:
    response = client.get("/context", headers={"X-Request-ID": "external_123"})
    assert response.headers["x-request-id"] == "external_123"
    assert response.json()["request_id"] == "external_123"


def test_middleware_client_ip(client: TestClient) -> None:
    response = client.get("/context")
    assert response.json()["client_ip"] == "testclient"

    response = client.get("/context", headers={"X-Forwarded-For": "10.0.0.1, 192.168.1.1"})
    assert response.json()["client_ip"] == "10.0.0.1"


def test_middleware_clears_context_after_request(client: TestClient) -> None:
    client.get("/context")
    assert get_request_context() is None
