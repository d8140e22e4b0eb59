"""
Offline Resilience Endpoints

Sync queue, crisis resource cache, connectivity and capability
signals reported by the UI host.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from astral.api.dependencies import get_core
from astral.config.logging_config import get_logger
from astral.services.orchestration import ResilienceCore

logger = get_logger(__name__)

router = APIRouter(prefix="/offline", tags=["offline"])
capabilities_router = APIRouter(tags=["capabilities"])


class SyncItemRequest(BaseModel):
    """Operation queued for delivery to the sync endpoint."""

    type: str = Field(..., min_length=1, max_length=64)
    payload: dict[str, Any]
    priority: Optional[int] = Field(default=None, ge=1, le=10)
    language: str = Field(default="en", min_length=2, max_length=8)
    context: dict[str, Any] = Field(default_factory=dict)


class NetworkReport(BaseModel):
    online: bool


class CapabilityReport(BaseModel):
    """Platform signals; omitted sections are treated as unavailable."""

    hardware_concurrency: Optional[int] = Field(default=None, ge=1)
    memory: Optional[dict[str, Any]] = None
    connection: Optional[dict[str, Any]] = None
    battery: Optional[dict[str, Any]] = None
    storage: Optional[dict[str, Any]] = None
    user_agent: Optional[str] = None
    features: Optional[dict[str, bool]] = None


@router.get("/status")
async def offline_status(core: ResilienceCore = Depends(get_core)) -> dict:
    return core.offline_status().to_dict()


@router.get("/resources")
async def crisis_resources(
    type: Optional[str] = Query(default=None, max_length=32),
    language: Optional[str] = Query(default=None, max_length=8),
    core: ResilienceCore = Depends(get_core),
) -> dict:
    """Cached crisis resources. Works with no connectivity."""
    resources = core.get_crisis_resources(type, language)
    return {"resources": [resource.to_dict() for resource in resources]}


@router.post("/resources/refresh")
async def refresh_resources(core: ResilienceCore = Depends(get_core)) -> dict:
    """Reload the configured resource catalogue. Clients cannot choose the file."""
    updated = await core.update_offline_resources()
    return {"updated": updated}


@router.get("/features/{name}")
async def feature_availability(name: str, core: ResilienceCore = Depends(get_core)) -> dict:
    return {"feature": name, "available": core.is_feature_available(name)}


@router.post("/sync-queue", status_code=202)
async def add_to_sync_queue(
    request: SyncItemRequest,
    core: ResilienceCore = Depends(get_core),
) -> dict:
    """Queue an operation. Persisted before the response is sent."""
    item_id = await core.add_to_sync_queue(
        request.type,
        request.payload,
        priority=request.priority,
        language=request.language,
        context=request.context,
    )
    return {"id": item_id, "queue_size": core.offline_status().queue_size}


@router.post("/sync")
async def force_sync(core: ResilienceCore = Depends(get_core)) -> dict:
    result = await core.force_sync()
    return result.to_dict()


@router.delete("/data")
async def clear_offline_data(core: ResilienceCore = Depends(get_core)) -> dict:
    """Clear non-crisis cached content. Crisis resources and queued items remain."""
    removed = await core.clear_offline_data()
    return {"removed": removed}


@router.post("/network")
async def report_network(
    report: NetworkReport,
    core: ResilienceCore = Depends(get_core),
) -> dict:
    core.report_network_status(report.online)
    return {"online": core.monitor.is_online}


@capabilities_router.post("/capabilities")
async def report_capabilities(
    report: CapabilityReport,
    core: ResilienceCore = Depends(get_core),
) -> dict:
    """Re-derive the optimization strategy from host-reported signals."""
    try:
        strategy = core.report_capabilities(report.model_dump(exclude_none=True))
    except (TypeError, ValueError, AttributeError) as e:
        logger.warning("Malformed capability report", error_type=type(e).__name__)
        raise HTTPException(status_code=422, detail="Malformed capability report") from e
    snapshot = core.probe.snapshot
    return {
        "strategy": strategy.to_dict(),
        "thresholds": snapshot.thresholds.to_dict() if snapshot else None,
    }
