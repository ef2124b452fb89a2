"""
Authentication endpoints.

OAuth login against SecondMe: redirect to the authorize page, handle the
callback (code exchange, profile upsert, session cookie) and logout.
"""

from __future__ import annotations

from urllib.parse import urlencode

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response

from api.dependencies import AppSettings, Auth
from api.middleware.exception_handlers import UpstreamError
from core.constants import Settings
from models.schemas.auth import OAuthStateCheck
from models.schemas.base import Envelope, SuccessData
from utils.db_utils import DATABASE_ERRORS
from utils.logger import logger

router = APIRouter()


def _home_url(settings: Settings, error: str | None = None) -> str:
    if not error:
        return settings.post_login_redirect
    separator = "&" if "?" in settings.post_login_redirect else "?"
    return f"{settings.post_login_redirect}{separator}{urlencode({'error': error})}"


def _redirect_home(settings: Settings, error: str | None = None) -> RedirectResponse:
    response = RedirectResponse(_home_url(settings, error))
    response.delete_cookie(settings.oauth_state_cookie_name, path="/")
    return response


def _clear_session_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        settings.session_cookie_name,
        path="/",
        secure=settings.cookie_secure,
        httponly=True,
        samesite="lax",
    )


@router.get(
    "/login",
    summary="Start login",
    description="Redirect to the SecondMe authorize page with a fresh anti-forgery state.",
    responses={307: {"description": "Redirect to SecondMe"}},
)
async def login(auth: Auth, settings: AppSettings) -> RedirectResponse:
    state = auth.generate_oauth_state()
    response = RedirectResponse(auth.build_authorize_url(state))
    response.set_cookie(
        settings.oauth_state_cookie_name,
        state,
        max_age=settings.oauth_state_max_age,
        path="/",
        secure=settings.cookie_secure,
        httponly=True,
        samesite="lax",
    )
    return response


@router.get(
    "/callback",
    summary="OAuth callback",
    description="Exchange the authorization code, store the user and set the session cookie.",
    responses={307: {"description": "Redirect home (with ?error=... on failure)"}},
)
async def callback(
    request: Request,
    auth: Auth,
    settings: AppSettings,
    code: str | None = None,
    state: str | None = None,
) -> RedirectResponse:
    expected_state = request.cookies.get(settings.oauth_state_cookie_name)
    if auth.verify_oauth_state(state, expected_state) is OAuthStateCheck.STATE_MISMATCH:
        if settings.oauth_strict_state:
            logger.warning("OAuth state mismatch, rejecting callback")
            return _redirect_home(settings, error="state_mismatch")
        # Embedded WebViews often drop the state cookie between redirects
        logger.warning("OAuth state mismatch, continuing (lenient state policy)")

    if not code:
        return _redirect_home(settings, error="no_code")

    try:
        user = await auth.complete_login(code)
    except (UpstreamError, *DATABASE_ERRORS) as e:
        logger.error(f"OAuth callback failed: {e}", exc_info=True)
        return _redirect_home(settings, error="auth_failed")

    response = _redirect_home(settings)
    response.set_cookie(
        settings.session_cookie_name,
        auth.issue_session_token(user.id),
        max_age=settings.session_max_age_seconds,
        path="/",
        secure=settings.cookie_secure,
        httponly=True,
        samesite="lax",
    )
    return response


@router.post(
    "/logout",
    response_model=Envelope[SuccessData],
    summary="Logout",
    description="Clear the session cookie.",
)
async def logout(settings: AppSettings) -> JSONResponse:
    response = JSONResponse(Envelope[SuccessData](data=SuccessData()).model_dump(mode="json"))
    _clear_session_cookie(response, settings)
    return response


@router.get(
    "/logout",
    summary="Logout and go home",
    description="Clear the session cookie and redirect home.",
    responses={307: {"description": "Redirect home"}},
)
async def logout_redirect(settings: AppSettings) -> RedirectResponse:
    response = RedirectResponse(settings.post_login_redirect)
    _clear_session_cookie(response, settings)
    return response
