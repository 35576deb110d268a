"""
Health check endpoint.
"""

import time

import structlog
from fastapi import APIRouter, Depends

from signal_digest.api.dependencies import get_database
from signal_digest.api.models import ComponentHealth, HealthResponse
from signal_digest.config.settings import get_settings
from signal_digest.dispatch.tasks import get_supervisor
from signal_digest.storage.database import Database

router = APIRouter()
logger = structlog.get_logger(__name__)


async def _check_database(db: Database) -> ComponentHealth:
    """Check database connectivity and measure latency."""
    start = time.perf_counter()
    try:
        healthy = await db.health_check()
        latency_ms = (time.perf_counter() - start) * 1000
        return ComponentHealth(
            status="healthy" if healthy else "unhealthy",
            latency_ms=round(latency_ms, 2),
        )
    except Exception as e:
        latency_ms = (time.perf_counter() - start) * 1000
        return ComponentHealth(
            status="unhealthy",
            latency_ms=round(latency_ms, 2),
            details={"error": str(e)},
        )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description="Check the health of the service and its database.",
)
async def health_check(db: Database = Depends(get_database)) -> HealthResponse:
    """
    Status logic:
    - unhealthy: database is down
    - degraded: no delivery webhook configured (briefings are only logged)
    - healthy: all components operational
    """
    settings = get_settings()

    components = {"database": await _check_database(db)}

    if components["database"].status == "unhealthy":
        status = "unhealthy"
    elif not settings.delivery_configured:
        status = "degraded"
    else:
        status = "healthy"

    return HealthResponse(
        status=status,
        components=components,
        in_flight=get_supervisor().in_flight,
        delivery_channel="webhook" if settings.delivery_configured else "log",
        version="0.1.0",
    )
