"""FastAPI dependencies."""

from __future__ import annotations

from fastapi import HTTPException, Request, WebSocket, status

from offline_gateway.worker import OfflineWorker


def get_worker(request: Request) -> OfflineWorker:
    """Return the worker built by the application lifespan."""
    worker = getattr(request.app.state, "worker", None)
    if worker is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Worker not started",
        )
    return worker


def get_ws_worker(websocket: WebSocket) -> OfflineWorker | None:
    return getattr(websocket.app.state, "worker", None)
