"""Offline Gateway - offline-first request routing for httpx clients.

Every outbound request of an httpx.AsyncClient built with OfflineTransport
is classified and answered from a versioned cache tier, the network, or a
synthesized fallback, so the application keeps working read-only when the
network is degraded or gone.

Usage:
    ```python
    from offline_gateway import OfflineWorker, offline_client
    from offline_gateway.config import get_settings

    worker = OfflineWorker.create(get_settings())
    await worker.install()
    async with offline_client(worker) as client:
        response = await client.get("http://localhost:8000/index.html")
    ```

For the HTTP surface:
    ```python
    from offline_gateway.main import app
    ```
"""

from offline_gateway.config import Settings, get_settings
from offline_gateway.routing.transport import OfflineTransport, offline_client
from offline_gateway.worker import LifecycleState, OfflineWorker, PushNotice

__all__ = [
    "Settings",
    "get_settings",
    "OfflineTransport",
    "offline_client",
    "OfflineWorker",
    "LifecycleState",
    "PushNotice",
]
