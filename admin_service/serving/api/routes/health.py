"""
Health Check Endpoints

Provides health and readiness checks for orchestration systems.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel

from admin_service.database.connection import check_database_health
from admin_service.serving.api.dependencies import AppContainer, get_container

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    environment: str
    timestamp: datetime
    checks: Dict[str, Any]


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request, container: AppContainer = Depends(get_container)) -> HealthResponse:
    """
    Comprehensive health check endpoint.

    Checks:
    - Database connectivity
    - Redis connectivity (degraded only; the cache is optional)
    - In-process order events consumer, when enabled
    """
    checks = {}
    overall_status = "healthy"

    db_health = await check_database_health(container.session_factory)
    checks["database"] = db_health
    if db_health.get("status") != "healthy":
        overall_status = "unhealthy"

    if container.stats_cache is None:
        checks["redis"] = {"status": "disabled"}
    else:
        try:
            await container.stats_cache.client.ping()
            checks["redis"] = {"status": "healthy"}
        except Exception as e:
            checks["redis"] = {"status": "unhealthy", "error": str(e)}
            if overall_status == "healthy":
                overall_status = "degraded"

    consumer_task = getattr(request.app.state, "consumer_task", None)
    if consumer_task is not None:
        if consumer_task.done():
            checks["consumer"] = {"status": "stopped"}
            if overall_status == "healthy":
                overall_status = "degraded"
        else:
            checks["consumer"] = {"status": "running"}

    return HealthResponse(
        status=overall_status,
        version=container.settings.version,
        environment=container.settings.app_env,
        timestamp=datetime.now(timezone.utc),
        checks=checks,
    )


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """
    Kubernetes liveness probe endpoint.

    Returns 200 if the application is running.
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(
    response: Response,
    container: AppContainer = Depends(get_container),
) -> Dict[str, str]:
    """Returns 200 once the counter store answers, 503 otherwise."""
    db_health = await check_database_health(container.session_factory)
    if db_health.get("status") != "healthy":
        response.status_code = 503
        return {"status": "not_ready", "reason": "database_unavailable"}
    return {"status": "ready"}
