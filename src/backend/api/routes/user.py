"""
SecondMe profile endpoints.

The upstream payload is passed through unchanged so the browser sees
exactly what SecondMe returns.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from api.dependencies import SecondMe
from api.middleware.auth import CurrentUser
from api.middleware.exception_handlers import UpstreamError

router = APIRouter()


@router.get(
    "/info",
    summary="User info",
    description="SecondMe profile of the current user, passed through as returned upstream.",
    responses={401: {"description": "Not logged in"}, 500: {"description": "Failed to fetch user info"}},
)
async def user_info(user: CurrentUser, client: SecondMe) -> JSONResponse:
    try:
        payload: Any = await client.fetch_user_info_payload(user.access_token)
    except UpstreamError as e:
        raise UpstreamError(
            "Failed to fetch user info",
            status_code=e.upstream_status,
            upstream_code=e.upstream_code,
            code=e.code,
            cause=e,
        ) from e
    return JSONResponse(payload)


@router.get(
    "/shades",
    summary="User shades",
    description="SecondMe interest tags of the current user, passed through as returned upstream.",
    responses={401: {"description": "Not logged in"}, 500: {"description": "Failed to fetch user shades"}},
)
async def user_shades(user: CurrentUser, client: SecondMe) -> JSONResponse:
    try:
        payload: Any = await client.fetch_user_shades_payload(user.access_token)
    except UpstreamError as e:
        raise UpstreamError(
            "Failed to fetch user shades",
            status_code=e.upstream_status,
            upstream_code=e.upstream_code,
            code=e.code,
            cause=e,
        ) from e
    return JSONResponse(payload)
