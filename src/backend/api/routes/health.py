"""
Health check endpoints.

Database pool health for load balancers, a liveness probe and the
Prometheus scrape endpoint.
"""

from __future__ import annotations

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from api.dependencies import DB, AppSettings
from models.schemas.health import HealthResponse, LivenessResponse
from utils.db_utils import check_pool_health

router = APIRouter()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Overall status with database pool statistics.",
    responses={
        200: {
            "description": "System health status",
            "content": {
                "application/json": {
                    "example": {
                        "status": "healthy",
                        "version": "1.0.0",
                        "database": {
                            "healthy": True,
                            "pool_size": 10,
                            "pool_free": 8,
                            "pool_used": 2,
                        },
                    }
                }
            },
        }
    },
)
async def health_check(db: DB, settings: AppSettings) -> HealthResponse:
    """Health check endpoint."""
    database = await check_pool_health(db)
    return HealthResponse(
        status="healthy" if database.healthy else "unhealthy",
        version=settings.app_version,
        database=database,
    )


@router.get(
    "/health/live",
    response_model=LivenessResponse,
    summary="Liveness probe",
    description="Confirms the process is running.",
    responses={
        200: {
            "description": "Process alive",
            "content": {"application/json": {"example": {"alive": True}}},
        }
    },
)
async def liveness_check() -> LivenessResponse:
    return LivenessResponse(alive=True)


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Metrics in the Prometheus text exposition format.",
    response_class=Response,
    responses={200: {"content": {CONTENT_TYPE_LATEST: {}}}},
)
async def metrics() -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
