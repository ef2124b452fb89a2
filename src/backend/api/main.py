from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware.exception_handlers import register_exception_handlers
from api.middleware.request_context import RequestContextMiddleware
from api.routes import router as api_router
from api.services.chat_service import ChatService
from core.constants import get_settings
from utils.client_factory import create_http_client
from utils.db_utils import check_pool_health, create_database_pool, graceful_pool_close
from utils.logger import configure_uvicorn_logging, logger

# Settings are loaded via Pydantic Settings with environment-specific file support
# (.env, .env.{APP_ENV}, .env.local). Missing SecondMe settings fail here, at startup.
settings = get_settings()

# Log loaded settings in debug mode
if settings.debug:
    from core.constants import _get_env_files

    logger.info(f"Env files: {[f.name for f in _get_env_files()]}")
    logger.info(
        f"Settings: app_env={settings.app_env}, "
        f"db_pool=[{settings.db_pool_min_size},{settings.db_pool_max_size}], "
        f"api_base={settings.secondme_api_base_url}"
    )

# Configure uvicorn logging at module level to ensure workers use it
configure_uvicorn_logging()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown with graceful handling."""
    app.state.db_pool = await create_database_pool(settings)

    # Verify database connectivity
    health = await check_pool_health(app.state.db_pool)
    if not health.healthy:
        logger.error("Database health check failed during startup")
        await app.state.db_pool.close()
        raise RuntimeError("Database connection failed")
    logger.info(f"Database pool healthy: {health.pool_size} connection(s), {health.pool_free} free")

    # One upstream client for the whole process (connection pooling to SecondMe)
    app.state.http_client = create_http_client(
        enable_logging=settings.http_request_logging,
        read_timeout=settings.http_read_timeout,
    )

    try:
        yield
    finally:
        logger.info("Initiating graceful shutdown sequence")

        # Phase 1: Let finished or interrupted chat turns write their assistant message.
        # They still need both the upstream client and the pool.
        await ChatService.drain_background_tasks(timeout=settings.shutdown_timeout)

        # Phase 2: Close upstream connections
        await app.state.http_client.aclose()

        # Phase 3: Gracefully close database pool
        await graceful_pool_close(app.state.db_pool, timeout=settings.shutdown_timeout)


app = FastAPI(
    title="SecondMe Chat API",
    description="""
## SecondMe Chat API

Chat backend for SecondMe: OAuth login, streaming chat relay with
persisted history, and structured judgments.

### Features
- **OAuth Login**: Sign in with SecondMe; the session lives in an httpOnly cookie
- **Streaming Chat**: Upstream chat stream relayed byte for byte and stored per session
- **Session History**: Sessions with their messages, newest first
- **Structured Judgments**: Compatibility scoring and custom JSON-Schema answers

### Authentication
All endpoints except health checks and the auth flow require the session
cookie set by `/api/auth/callback`. Start at `/api/auth/login`.
""",
    version=settings.app_version,
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "Health",
            "description": "Health check endpoints for monitoring and orchestration",
        },
        {
            "name": "Authentication",
            "description": "SecondMe OAuth login and logout",
        },
        {
            "name": "Chat",
            "description": "Streaming chat relay",
        },
        {
            "name": "Sessions",
            "description": "Chat session history",
        },
        {
            "name": "User",
            "description": "SecondMe profile and shades",
        },
        {
            "name": "Act",
            "description": "Structured judgments",
        },
    ],
    openapi_url="/api/openapi.json",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

# Register global exception handlers for consistent error responses
register_exception_handlers(app)

# Request context middleware (adds request ID tracking)
# Note: Middleware is executed in reverse order of registration
app.add_middleware(RequestContextMiddleware)

# CORS configuration (uses Settings for origin control)
# Production: Set CORS_ALLOW_ORIGINS to explicit list of allowed domains
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Session-Id", "X-Request-ID"],
)

app.include_router(api_router, prefix="/api")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
        reload_dirs=["src"],
        log_config=None,
    )
