"""FastAPI dependencies."""

from fastapi import HTTPException, Request

from astral.services.orchestration import ResilienceCore


def get_core(request: Request) -> ResilienceCore:
    """Resilience core attached to the application during startup."""
    core = getattr(request.app.state, "core", None)
    if core is None or not core.is_initialized:
        raise HTTPException(status_code=503, detail="Resilience core is not ready")
    return core
