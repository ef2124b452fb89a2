from __future__ import annotations

from typing import Annotated

import asyncpg
import httpx

from fastapi import Depends, Request

from api.services.act_service import ActService
from api.services.auth_service import AuthService
from api.services.chat_service import ChatService
from api.services.session_service import SessionService
from core.constants import Settings, get_settings
from integrations.secondme_client import SecondMeClient


def get_app_settings() -> Settings:
    """Provide application settings via dependency injection.

    Settings are validated at startup and cached for performance.

    Usage in routes:
        @router.get("/example")
        async def example(settings: AppSettings):
            return {"debug": settings.debug}
    """
    return get_settings()


async def get_db(request: Request) -> asyncpg.Pool:
    """Get database connection pool from application state."""
    return request.app.state.db_pool


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Get the shared upstream HTTP client from application state."""
    return request.app.state.http_client


def get_secondme_client(
    http_client: Annotated[httpx.AsyncClient, Depends(get_http_client)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> SecondMeClient:
    """Provide the SecondMe API client over the shared HTTP client."""
    return SecondMeClient(http_client, settings)


def get_auth_service(
    db: Annotated[asyncpg.Pool, Depends(get_db)],
    client: Annotated[SecondMeClient, Depends(get_secondme_client)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> AuthService:
    """Provide auth service (OAuth flow and session resolution)."""
    return AuthService(db, client, settings)


def get_session_service(db: Annotated[asyncpg.Pool, Depends(get_db)]) -> SessionService:
    """Provide session service backed by PostgreSQL."""
    return SessionService(db)


def get_chat_service(
    sessions: Annotated[SessionService, Depends(get_session_service)],
    client: Annotated[SecondMeClient, Depends(get_secondme_client)],
) -> ChatService:
    """Provide the chat relay."""
    return ChatService(sessions, client)


def get_act_service(client: Annotated[SecondMeClient, Depends(get_secondme_client)]) -> ActService:
    """Provide the structured judgment client."""
    return ActService(client)


# Type aliases for cleaner route signatures
DB = Annotated[asyncpg.Pool, Depends(get_db)]
SecondMe = Annotated[SecondMeClient, Depends(get_secondme_client)]
Auth = Annotated[AuthService, Depends(get_auth_service)]
Sessions = Annotated[SessionService, Depends(get_session_service)]
Chat = Annotated[ChatService, Depends(get_chat_service)]
Act = Annotated[ActService, Depends(get_act_service)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
