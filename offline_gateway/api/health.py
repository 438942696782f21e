"""Health check endpoints.

/health/live   - Liveness probe: is the process up?
/health/ready  - Readiness probe: has the current version activated?

These are public endpoints.
"""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from offline_gateway.api.dependencies import get_worker
from offline_gateway.worker import LifecycleState, OfflineWorker

router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict:
    """Liveness probe - always returns 200 if the process is running."""
    return {"status": "ok", "timestamp": datetime.now(UTC).isoformat()}


@router.get("/ready")
async def readiness(worker: OfflineWorker = Depends(get_worker)) -> JSONResponse:
    """Readiness probe - ready once routing goes through the strategy engine."""
    is_ready = worker.state == LifecycleState.ACTIVATED
    return JSONResponse(
        status_code=200 if is_ready else 503,
        content={
            "status": "ready" if is_ready else "not_ready",
            "state": worker.state,
            "version": worker.version,
            "clients": worker.clients.connection_count(),
            "background": worker.background.stats(),
            "timestamp": datetime.now(UTC).isoformat(),
        },
    )
