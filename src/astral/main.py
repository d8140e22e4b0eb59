"""
Astral FastAPI Application Entry Point

Main application initialization with:
- Lifespan management (startup/shutdown)
- CORS configuration
- Error handling middleware
- Router registration
- Metrics endpoint

The HTTP adapter is a thin UI-facing layer over ResilienceCore.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from astral import __version__
from astral.api.middleware.error_handler import ErrorHandlerMiddleware
from astral.api.v1.router import api_router
from astral.config import get_settings
from astral.config.logging_config import configure_logging, get_logger
from astral.config.settings import Settings
from astral.infrastructure.metrics import metrics_router, update_system_info
from astral.infrastructure.monitoring import init_sentry
from astral.services.orchestration import ResilienceCore

logger = get_logger(__name__)


def create_application(
    core: Optional[ResilienceCore] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        core: Pre-built core (tests inject one with fake collaborators)
        settings: Settings override; defaults to get_settings()

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Starting Astral core", env=settings.env, version=__version__)
        resilience = app.state.core or ResilienceCore(settings, watch_connectivity=True)
        app.state.core = resilience
        try:
            if not resilience.is_initialized:
                await resilience.initialize()
            update_system_info(settings.env)
            yield
        finally:
            logger.info("Shutting down Astral core")
            await resilience.shutdown()
            logger.info("Astral core shutdown complete")

    app = FastAPI(
        title="Astral Core API",
        description="Crisis detection and offline resilience core",
        version=__version__,
        docs_url="/docs" if not settings.is_production() else None,
        redoc_url="/redoc" if not settings.is_production() else None,
        lifespan=lifespan,
    )
    app.state.core = core
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(ErrorHandlerMiddleware)

    app.include_router(api_router, prefix=f"/api/{settings.api_version}")
    app.include_router(metrics_router)

    @app.get("/", include_in_schema=False)
    async def root() -> dict:
        return {
            "name": "Astral Core API",
            "version": __version__,
            "status": "operational",
        }

    return app


def build_app() -> FastAPI:
    """Uvicorn factory: configure logging and error tracking, then build the app."""
    settings = get_settings()
    configure_logging(settings)
    init_sentry(settings)
    return create_application(settings=settings)


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "astral.main:build_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=settings.env == "development",
        log_level=settings.log_level.lower(),
    )
