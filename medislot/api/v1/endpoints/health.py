"""Health check endpoints."""

from datetime import datetime

from fastapi import APIRouter, status
from pydantic import BaseModel

from medislot.config import settings
from medislot.core.clock import clinic_now
from medislot.core.redis_client import check_redis_connection
from medislot.database import check_database_connection

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    environment: str
    clinic_timezone: str
    clinic_time: datetime


class DetailedHealthResponse(HealthResponse):
    """Health check including backing services."""

    database: str
    redis: str


def _base_health() -> dict:
    return {
        "version": settings.app_version,
        "environment": settings.environment,
        "clinic_timezone": settings.clinic_timezone,
        "clinic_time": clinic_now(),
    }


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
)
async def health_check() -> HealthResponse:
    """Liveness probe; also reports the clinic clock used for scheduling."""
    return HealthResponse(status="healthy", **_base_health())


@router.get(
    "/health/detailed",
    response_model=DetailedHealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Detailed health check",
)
async def detailed_health_check() -> DetailedHealthResponse:
    """Readiness probe covering the database and Redis."""
    db_healthy = await check_database_connection()
    redis_healthy = await check_redis_connection()

    return DetailedHealthResponse(
        status="healthy" if db_healthy and redis_healthy else "degraded",
        database="healthy" if db_healthy else "unhealthy",
        redis="healthy" if redis_healthy else "unhealthy",
        **_base_health(),
    )


@router.get(
    "/ping",
    status_code=status.HTTP_200_OK,
    summary="Simple ping",
)
async def ping() -> dict[str, str]:
    """Simple ping endpoint."""
    return {"message": "pong"}
