from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from api.middleware.auth import get_current_user, get_optional_user
from api.middleware.exception_handlers import AuthenticationError
from api.middleware.request_context import RequestContext, get_request_context, set_request_context
from models.error_models import ErrorCode


def _request(cookies: dict[str, str]) -> MagicMock:
    request = MagicMock()
    request.cookies = cookies
    return request


@pytest.mark.asyncio
async def test_optional_user_resolves_session_cookie(settings: Any, user: Any) -> None:
    auth = MagicMock()
    auth.resolve_user = AsyncMock(return_value=user)
    set_request_context(RequestContext(request_id="req_1"))

    result = await get_optional_user(_request({"session": "signed"}), auth, settings)

    assert result is user
    auth.resolve_user.assert_awaited_once_with("signed")
    ctx = get_request_context()
    assert ctx is not None
    assert ctx.user_id == str(user.id)


@pytest.mark.asyncio
async def test_optional_user_without_cookie(settings: Any) -> None:
    auth = MagicMock()
    auth.resolve_user = AsyncMock(return_value=None)

    result = await get_optional_user(_request({}), auth, settings)

    assert result is None
    auth.resolve_user.assert_awaited_once_with(None)


@pytest.mark.asyncio
async def test_current_user_required() -> None:
    with pytest.raises(AuthenticationError) as exc_info:
        await get_current_user(None)

    assert exc_info.value.code == ErrorCode.AUTH_REQUIRED
    assert exc_info.value.status_code == 401
    assert exc_info.value.message == "Unauthorized"


@pytest.mark.asyncio
async def test_current_user_passthrough(user: Any) -> None:
    assert await get_current_user(user) is user
