"""ClientNotifier - lifecycle and connectivity messages for app instances.

Message mapping:
    notify_connectivity_restored(tag) -> {"type": "BACKGROUND_SYNC", "message": "..."}
    notify_periodic_refresh(tag)      -> {"type": "PERIODIC_SYNC", "message": "..."}
    reply_version(port)               -> {"version": "<version tag>"} on the reply port

Only the configured sync tag produces a broadcast; any other tag is
ignored. Delivery is best effort to the clients connected at call time.
"""

from __future__ import annotations

import structlog

from offline_gateway.clients.manager import ClientRegistry, MessagePort

log = structlog.get_logger(__name__)

BACKGROUND_SYNC = "BACKGROUND_SYNC"
PERIODIC_SYNC = "PERIODIC_SYNC"


class ClientNotifier:
    def __init__(
        self,
        *,
        registry: ClientRegistry,
        version_tag: str,
        sync_tag: str,
        background_sync_message: str,
        periodic_sync_message: str,
    ) -> None:
        self._registry = registry
        self._version_tag = version_tag
        self._sync_tag = sync_tag
        self._background_sync_message = background_sync_message
        self._periodic_sync_message = periodic_sync_message

    async def notify_connectivity_restored(self, tag: str) -> int:
        """Broadcast BACKGROUND_SYNC for the sync tag. Returns clients reached."""
        if tag != self._sync_tag:
            log.debug("notifier.sync_tag_ignored", tag=tag)
            return 0
        return await self._registry.broadcast(
            {"type": BACKGROUND_SYNC, "message": self._background_sync_message}
        )

    async def notify_periodic_refresh(self, tag: str) -> int:
        """Broadcast PERIODIC_SYNC for the sync tag. Returns clients reached."""
        if tag != self._sync_tag:
            log.debug("notifier.periodic_tag_ignored", tag=tag)
            return 0
        return await self._registry.broadcast(
            {"type": PERIODIC_SYNC, "message": self._periodic_sync_message}
        )

    async def reply_version(self, port: MessagePort) -> dict[str, str]:
        payload = {"version": self._version_tag}
        await port.post_message(payload)
        return payload
