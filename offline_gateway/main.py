"""FastAPI application entrypoint.

Application startup order:
1. Load settings (from environment)
2. Configure structured logging
3. Build the worker (tier store, network transport, client registry)
4. Install the current version (preload tiers) and activate it
5. Include all routers

Shutdown order:
1. Drain detached background tasks
2. Close the tier store and the network transport
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse

from offline_gateway.api import health, routes
from offline_gateway.api.ws import ws_router
from offline_gateway.config import Settings, get_settings
from offline_gateway.telemetry.logging import configure_logging
from offline_gateway.worker import OfflineWorker

log = structlog.get_logger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    worker: OfflineWorker | None = None,
) -> FastAPI:
    """Application factory.

    Args:
        settings: Overrides get_settings() (tests).
        worker: Pre-built worker, e.g. one wired to a mock network transport.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan: startup and shutdown."""
        configure_logging(
            json_logs=settings.is_prod,
            log_level="DEBUG" if settings.debug else "INFO",
        )
        log.info(
            "app.starting",
            environment=settings.environment,
            version=settings.version_tag,
            cache_backend=settings.cache_backend,
        )

        app.state.worker = worker or OfflineWorker.create(settings)
        report = await app.state.worker.install()
        log.info(
            "app.ready",
            state=app.state.worker.state,
            preload_failures=len(report.failed),
        )
        yield

        log.info("app.clients_shutdown", active_clients=app.state.worker.clients.connection_count())
        await app.state.worker.shutdown()
        log.info("app.shutdown")

    app = FastAPI(
        title="Offline Gateway",
        description=(
            "Offline-first request routing with versioned cache tiers, "
            "stale-while-revalidate and synthesized fallbacks."
        ),
        version=settings.version_tag,
        docs_url="/docs" if settings.is_dev else None,
        redoc_url="/redoc" if settings.is_dev else None,
        openapi_url="/openapi.json" if settings.is_dev else None,
        lifespan=lifespan,
    )

    # ------------------------------------------------------------------ #
    # Routers
    # ------------------------------------------------------------------ #
    api_v1_router = APIRouter(prefix="/api/v1")
    api_v1_router.include_router(routes.router)

    app.include_router(health.router)
    app.include_router(api_v1_router)
    app.include_router(ws_router)

    # ------------------------------------------------------------------ #
    # Global exception handlers
    # ------------------------------------------------------------------ #

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        log.error(
            "app.unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app


# Module-level app instance for uvicorn
app = create_app()
