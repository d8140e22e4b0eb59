"""
Health Check Endpoints

Liveness and readiness probes.

ARCHITECTURE: Health checks must never fail the application.
Degraded local storage is reported, not treated as fatal, because
crisis features keep working from memory.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Request, Response
from pydantic import BaseModel

from astral import __version__
from astral.config.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


class HealthStatus(BaseModel):
    """Health check response."""

    status: str  # healthy, degraded, unhealthy, starting
    timestamp: str
    version: str = __version__
    checks: dict[str, dict] = {}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/live", response_model=HealthStatus)
async def liveness() -> HealthStatus:
    """Returns 200 while the process is alive."""
    return HealthStatus(status="healthy", timestamp=_now(), checks={"process": {"status": "alive"}})


@router.get("/ready", response_model=HealthStatus)
async def readiness(request: Request, response: Response) -> HealthStatus:
    """
    Readiness probe.

    Checks:
    - Resilience core started
    - Local storage writable (degraded when not)
    """
    core = getattr(request.app.state, "core", None)
    if core is None or not core.is_initialized:
        response.status_code = 503
        return HealthStatus(
            status="starting",
            timestamp=_now(),
            checks={"core": {"status": "in_progress"}},
        )

    status = core.offline_status()
    checks = {
        "core": {"status": "healthy"},
        "storage": {"status": "degraded" if status.degraded else "healthy"},
        "network": {"status": "online" if status.is_online else "offline"},
        "sync_queue": {"status": "healthy", "size": status.queue_size},
    }
    overall = "degraded" if status.degraded else "healthy"
    return HealthStatus(status=overall, timestamp=_now(), checks=checks)
