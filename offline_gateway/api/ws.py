"""Client websocket - ws /api/v1/ws/clients

Application instances connect here to be registered as clients. While
connected they receive broadcasts ({"type": "BACKGROUND_SYNC", ...},
{"type": "PERIODIC_SYNC", ...}) and may send message envelopes:

    {"type": "SKIP_WAITING"}
    {"type": "GET_VERSION"}   - answered on the same socket with {"version": ...}

Connection lifecycle:
1. Client connects and is registered with the worker's ClientRegistry
2. Message loop: each JSON envelope goes to OfflineWorker.handle_message()
3. On disconnect/error, the client is removed from the registry
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from offline_gateway.api.dependencies import get_ws_worker
from offline_gateway.clients.manager import WebSocketClient
from offline_gateway.worker import LifecycleState

log = structlog.get_logger(__name__)

ws_router = APIRouter(prefix="/api/v1/ws", tags=["websocket"])


@ws_router.websocket("/clients")
async def ws_clients(websocket: WebSocket) -> None:
    worker = get_ws_worker(websocket)
    if worker is None:
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return

    await websocket.accept()
    client = WebSocketClient(websocket)
    await worker.clients.connect(client)
    if worker.state == LifecycleState.ACTIVATED:
        # Clients arriving after activation are controlled straight away.
        client.controller_version = worker.version

    try:
        while True:
            envelope = await websocket.receive_json()
            await worker.handle_message(envelope, client)
    except WebSocketDisconnect:
        log.info("ws.client_disconnected", client_id=client.client_id)
    except ValueError as exc:
        log.warning("ws.invalid_message", client_id=client.client_id, error=str(exc))
        await websocket.close(code=status.WS_1003_UNSUPPORTED_DATA)
    finally:
        await worker.clients.disconnect(client)
