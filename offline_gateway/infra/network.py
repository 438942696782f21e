"""Network fetch collaborator.

The gateway never talks to sockets itself: every fetch goes through an
httpx async transport (a real AsyncHTTPTransport in production, a
MockTransport in tests) wrapped as a plain coroutine function.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

import httpx

Fetch = Callable[[httpx.Request], Awaitable[httpx.Response]]


def transport_fetch(transport: httpx.AsyncBaseTransport, *, timeout: float) -> Fetch:
    """Adapt transport into a Fetch, applying timeout to requests that lack one.

    Requests built by an AsyncClient already carry the client's timeout;
    requests built directly (manifest preloading) get this default.
    """
    default_timeout = httpx.Timeout(timeout).as_dict()

    async def fetch(request: httpx.Request) -> httpx.Response:
        request.extensions.setdefault("timeout", default_timeout)
        return await transport.handle_async_request(request)

    return fetch
