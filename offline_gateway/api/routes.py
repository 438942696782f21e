"""Gateway API - /api/v1

Endpoints:
    GET  /version        - {"version": <version tag>}
    POST /messages       - inbound message envelope (SKIP_WAITING, GET_VERSION)
    POST /sync           - sync trigger, notifies connected clients
    POST /periodic-sync  - periodic sync trigger
    POST /push           - push payload delivery (raw body)
    GET  /fetch?url=...  - route a GET through the worker, return the result
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from pydantic import BaseModel, ConfigDict, Field

from offline_gateway.api.dependencies import get_worker
from offline_gateway.worker import GET_VERSION, OfflineWorker

log = structlog.get_logger(__name__)

router = APIRouter(tags=["gateway"])

# Request headers forwarded to the routed fetch; they decide document
# detection and content negotiation.
_FORWARDED_HEADERS = ("accept", "accept-language", "sec-fetch-dest")


# ------------------------------------------------------------------ #
# Schemas
# ------------------------------------------------------------------ #


class MessageEnvelope(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str = Field(..., min_length=1, description="Message type, e.g. GET_VERSION")


class SyncTrigger(BaseModel):
    tag: str = Field(..., min_length=1)


class SyncResult(BaseModel):
    tag: str
    notified: int


class _CollectingPort:
    """Reply port that keeps what was posted to it."""

    def __init__(self) -> None:
        self.messages: list[dict[str, Any]] = []

    async def post_message(self, payload: dict[str, Any]) -> None:
        self.messages.append(payload)


# ------------------------------------------------------------------ #
# Endpoints
# ------------------------------------------------------------------ #


@router.get("/version")
async def get_version(worker: OfflineWorker = Depends(get_worker)) -> dict[str, str]:
    return {"version": worker.version}


@router.post("/messages")
async def post_message(
    envelope: MessageEnvelope,
    worker: OfflineWorker = Depends(get_worker),
) -> dict[str, Any]:
    port = _CollectingPort()
    await worker.handle_message(envelope.model_dump(), port)
    if envelope.type == GET_VERSION:
        return port.messages[-1]
    return {"status": "accepted", "state": worker.state}


@router.post("/sync", response_model=SyncResult)
async def trigger_sync(
    trigger: SyncTrigger,
    worker: OfflineWorker = Depends(get_worker),
) -> SyncResult:
    notified = await worker.handle_sync(trigger.tag)
    return SyncResult(tag=trigger.tag, notified=notified)


@router.post("/periodic-sync", response_model=SyncResult)
async def trigger_periodic_sync(
    trigger: SyncTrigger,
    worker: OfflineWorker = Depends(get_worker),
) -> SyncResult:
    notified = await worker.handle_periodic_sync(trigger.tag)
    return SyncResult(tag=trigger.tag, notified=notified)


@router.post("/push")
async def deliver_push(
    request: Request,
    worker: OfflineWorker = Depends(get_worker),
) -> dict[str, Any]:
    payload = await request.body()
    notice = await worker.handle_push(payload or None)
    return {"status": "delivered", "title": notice.title, "body": notice.body}


@router.get("/fetch")
async def routed_fetch(
    request: Request,
    url: str = Query(..., min_length=1, description="Absolute URL to fetch"),
    worker: OfflineWorker = Depends(get_worker),
) -> Response:
    """Fetch url through the worker, as an intercepted app request would be."""
    try:
        target = httpx.URL(url)
    except httpx.InvalidURL as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if target.scheme not in ("http", "https"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only http(s) URLs can be fetched",
        )

    headers = {
        name: request.headers[name] for name in _FORWARDED_HEADERS if name in request.headers
    }
    try:
        upstream = await worker.fetch(httpx.Request("GET", target, headers=headers))
        body = await upstream.aread()
    except httpx.TransportError as exc:
        # Only unintercepted (OTHER) requests can surface a transport error.
        log.info("api.fetch_unreachable", url=url, error=str(exc))
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Upstream unreachable",
        ) from exc

    content_type = upstream.headers.get("content-type")
    return Response(
        content=body,
        status_code=upstream.status_code,
        media_type=content_type,
    )
