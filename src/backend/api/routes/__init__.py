"""
API Router - Aggregates all endpoints.

Usage in main.py:
    from api.routes import router as api_router
    app.include_router(api_router, prefix="/api")
"""

from fastapi import APIRouter

from api.routes import act, auth, chat, health, sessions, user

router = APIRouter()

# Health endpoints (no auth required)
router.include_router(
    health.router,
    tags=["Health"],
)

# OAuth login and logout
router.include_router(
    auth.router,
    prefix="/auth",
    tags=["Authentication"],
)

# Streaming chat relay
router.include_router(
    chat.router,
    prefix="/chat",
    tags=["Chat"],
)

# Session history
router.include_router(
    sessions.router,
    prefix="/sessions",
    tags=["Sessions"],
)

# SecondMe profile passthrough
router.include_router(
    user.router,
    prefix="/user",
    tags=["User"],
)

# Structured judgments
router.include_router(
    act.router,
    prefix="/act",
    tags=["Act"],
)

__all__ = ["router"]
