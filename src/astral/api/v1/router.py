"""
API v1 Router

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter

from astral.api.routes.crisis import router as crisis_router
from astral.api.routes.health import router as health_router
from astral.api.routes.offline import capabilities_router
from astral.api.routes.offline import router as offline_router

api_router = APIRouter()

api_router.include_router(health_router)
api_router.include_router(crisis_router)
api_router.include_router(offline_router)
api_router.include_router(capabilities_router)
