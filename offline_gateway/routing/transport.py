"""httpx transport that routes every outbound request through the worker.

Usage:
    worker = OfflineWorker.create(settings)
    await worker.install()
    async with httpx.AsyncClient(transport=OfflineTransport(worker)) as client:
        response = await client.get("https://cdnjs.cloudflare.com/...")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from offline_gateway.worker import OfflineWorker


class OfflineTransport(httpx.AsyncBaseTransport):
    def __init__(self, worker: OfflineWorker) -> None:
        self._worker = worker

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        return await self._worker.fetch(request)

    async def aclose(self) -> None:
        """No-op: the worker is shared, and its owner calls shutdown()."""


def offline_client(worker: OfflineWorker, **kwargs) -> httpx.AsyncClient:
    """AsyncClient whose requests are all intercepted by worker."""
    return httpx.AsyncClient(transport=OfflineTransport(worker), **kwargs)
