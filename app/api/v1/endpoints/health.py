"""Health check endpoints."""

import asyncio
from datetime import UTC, datetime

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from app.config import settings
from app.core.redis_client import check_redis_connection
from app.database import check_database_connection

router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    """Liveness of the API process."""

    status: str
    service: str
    version: str
    environment: str
    timestamp: datetime


class DetailedHealthResponse(HealthResponse):
    """Liveness plus the state of each backing service."""

    database: str
    redis: str


def _state(ok: bool) -> str:
    return "healthy" if ok else "unhealthy"


@router.get("/health", response_model=HealthResponse, summary="Basic health check")
async def health_check() -> HealthResponse:
    """Answer as long as the process serves requests."""
    return HealthResponse(
        status="healthy",
        service=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
        timestamp=datetime.now(UTC),
    )


@router.get(
    "/health/detailed",
    response_model=DetailedHealthResponse,
    summary="Database and Redis health",
)
async def detailed_health_check(response: Response) -> DetailedHealthResponse:
    """
    Check PostgreSQL and Redis.

    Only a database outage turns the response into 503; Redis down reads as
    degraded.
    """
    db_ok, redis_ok = await asyncio.gather(check_database_connection(), check_redis_connection())

    if not db_ok:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return DetailedHealthResponse(
        status="healthy" if db_ok and redis_ok else "degraded",
        service=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
        timestamp=datetime.now(UTC),
        database=_state(db_ok),
        redis=_state(redis_ok),
    )


@router.get("/ping", summary="Simple ping")
async def ping() -> dict[str, str]:
    """Return pong."""
    return {"message": "pong"}
