"""Process and dependency probes for the translation service."""

from typing import Literal

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from sitecms.config import settings
from sitecms.core.database import check_db_connection
from sitecms.core.redis import check_redis_connection

router = APIRouter()

ReadinessStatus = Literal["ok", "degraded", "unavailable"]


class HealthResponse(BaseModel):
    status: Literal["ok"] = "ok"
    service: str
    version: str


class ReadinessResponse(BaseModel):
    """Dependency status plus the active cache invalidation strategy."""

    status: ReadinessStatus
    checks: dict[str, bool]
    cache_invalidation: str


def _readiness_status(database: bool, redis: bool) -> ReadinessStatus:
    # Redis is advisory: translations are served uncached without it
    if not database:
        return "unavailable"
    return "ok" if redis else "degraded"


@router.get("/health", response_model=HealthResponse, summary="Basic health check")
@router.get("/health/live", response_model=HealthResponse, summary="Liveness probe")
async def health() -> HealthResponse:
    """OK while the process is serving requests; touches no dependency."""
    return HealthResponse(service=settings.app_name, version=settings.app_version)


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    summary="Readiness probe",
    responses={status.HTTP_503_SERVICE_UNAVAILABLE: {"description": "Database unreachable"}},
)
async def readiness(response: Response) -> ReadinessResponse:
    checks = {
        "database": await check_db_connection(),
        "redis": await check_redis_connection(),
    }
    state = _readiness_status(**checks)
    if state == "unavailable":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return ReadinessResponse(
        status=state,
        checks=checks,
        cache_invalidation=settings.cache_invalidation_strategy,
    )
