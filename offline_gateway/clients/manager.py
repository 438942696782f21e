"""ClientRegistry - tracks connected application instances.

Design:
- One registry per worker; clients register on connect and are removed on
  disconnect.
- Single-threaded event loop assumed; no locking.
- Broadcasts fan out to a snapshot of the registry taken at call time.
  Clients that connect afterwards do not receive that broadcast and
  nothing is retried.

Usage:
    registry = ClientRegistry()

    # When an app instance connects
    await registry.connect(WebSocketClient(websocket))

    # Take control of every connected instance for the active version
    await registry.claim_all(version="3.0")

    # Fan out a message
    await registry.broadcast({"type": "BACKGROUND_SYNC", "message": "..."})

    # When it disconnects
    await registry.disconnect(client)
"""

from __future__ import annotations

import asyncio
import uuid
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import structlog

if TYPE_CHECKING:
    from starlette.websockets import WebSocket

log = structlog.get_logger(__name__)


@runtime_checkable
class MessagePort(Protocol):
    """Anything that can receive a JSON-serialisable message."""

    async def post_message(self, payload: dict[str, Any]) -> None: ...


@runtime_checkable
class Client(MessagePort, Protocol):
    """A connected application instance."""

    client_id: str
    controller_version: str | None


class WebSocketClient:
    """Client reached over a Starlette/FastAPI websocket."""

    def __init__(self, websocket: WebSocket, client_id: str | None = None) -> None:
        self.websocket = websocket
        self.client_id = client_id or uuid.uuid4().hex
        self.controller_version: str | None = None

    async def post_message(self, payload: dict[str, Any]) -> None:
        await self.websocket.send_json(payload)


class ClientRegistry:
    """Registry of connected clients, keyed by client_id."""

    def __init__(self) -> None:
        self._clients: dict[str, Client] = {}

    # ------------------------------------------------------------------ #
    # Connection lifecycle
    # ------------------------------------------------------------------ #

    async def connect(self, client: Client) -> None:
        self._clients[client.client_id] = client
        log.info(
            "clients.connected",
            client_id=client.client_id,
            total_clients=len(self._clients),
        )

    async def disconnect(self, client: Client) -> None:
        """Remove a client. Safe to call for unknown clients (no-op)."""
        if self._clients.pop(client.client_id, None) is None:
            return
        log.info(
            "clients.disconnected",
            client_id=client.client_id,
            total_clients=len(self._clients),
        )

    def list_clients(self) -> list[Client]:
        """Snapshot of the currently connected clients."""
        return list(self._clients.values())

    async def claim_all(self, version: str) -> int:
        """Make the given version the controller of every connected client.

        Returns:
            Number of clients claimed.
        """
        clients = self.list_clients()
        for client in clients:
            client.controller_version = version
        log.info("clients.claimed", version=version, claimed=len(clients))
        return len(clients)

    async def broadcast(self, message: dict[str, Any]) -> int:
        """Send message to every client in a snapshot of the registry.

        Send failures are logged per client and do not stop the others.

        Returns:
            Number of clients the message was delivered to.
        """
        targets = self.list_clients()
        if not targets:
            return 0
        results = await asyncio.gather(
            *(_safe_post(client, message) for client in targets),
        )
        delivered = sum(1 for ok in results if ok)
        log.info(
            "clients.broadcast",
            message_type=message.get("type"),
            targets=len(targets),
            delivered=delivered,
        )
        return delivered

    def connection_count(self) -> int:
        """Return the number of currently connected clients."""
        return len(self._clients)


# ------------------------------------------------------------------ #
# Safe send helper
# ------------------------------------------------------------------ #

async def _safe_post(client: Client, message: dict[str, Any]) -> bool:
    """Post to a client, logging but not re-raising on failure."""
    try:
        await client.post_message(message)
    except Exception as exc:
        log.warning("clients.send_failed", client_id=client.client_id, error=str(exc))
        return False
    return True
