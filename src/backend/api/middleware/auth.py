from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from api.dependencies import Auth, get_app_settings
from api.middleware.exception_handlers import AuthenticationError
from api.middleware.request_context import update_request_context
from core.constants import Settings
from models.error_models import ErrorCode
from models.schemas.auth import User


async def get_optional_user(
    request: Request,
    auth: Auth,
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> User | None:
    """Resolve the session cookie to a user, or None when unauthenticated.

    Records the user in the request context so every later log line carries it.
    """
    token = request.cookies.get(settings.session_cookie_name)
    user = await auth.resolve_user(token)
    if user is not None:
        update_request_context(user_id=str(user.id))
    return user


async def get_current_user(
    user: Annotated[User | None, Depends(get_optional_user)],
) -> User:
    """Authenticate incoming REST requests."""
    if user is None:
        raise AuthenticationError(
            message="Unauthorized",
            code=ErrorCode.AUTH_REQUIRED,
        )
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]
OptionalUser = Annotated[User | None, Depends(get_optional_user)]
