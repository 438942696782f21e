"""Fakes and constants shared by the test modules."""

from __future__ import annotations

from typing import Any

import httpx

APP_ORIGIN = "https://app.example.com"
INDEX_URL = f"{APP_ORIGIN}/index.html"
MANIFEST_URL = f"{APP_ORIGIN}/manifest.json"
CDN_URL = "https://cdnjs.cloudflare.com/ajax/libs/font-awesome/6.4.0/css/all.min.css"
REALTIME_URL = "https://demo-default-rtdb.firebaseio.com/cases.json"


class FakeNetwork:
    """Scriptable origin server.

    Unknown URLs answer 404. URLs in `failing`, or every URL while
    `offline` is set, raise httpx.ConnectError like an unreachable host.
    """

    def __init__(self) -> None:
        self.routes: dict[str, tuple[int, bytes, dict[str, str]]] = {}
        self.failing: set[str] = set()
        self.offline = False
        self.calls: list[httpx.Request] = []

    def serve(
        self,
        url: str,
        body: bytes | str,
        *,
        status: int = 200,
        headers: dict[str, str] | None = None,
    ) -> None:
        content = body.encode() if isinstance(body, str) else body
        self.routes[url] = (status, content, headers or {})

    def calls_to(self, url: str, method: str = "GET") -> int:
        return sum(1 for r in self.calls if str(r.url) == url and r.method == method)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        url = str(request.url)
        if self.offline or url in self.failing:
            raise httpx.ConnectError("network unreachable", request=request)
        route = self.routes.get(url)
        if route is None:
            return httpx.Response(404, text="not found")
        status, body, headers = route
        return httpx.Response(status, content=body, headers=headers)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)


class RecordingClient:
    """Client that records every message posted to it."""

    def __init__(self, client_id: str, *, fail: bool = False) -> None:
        self.client_id = client_id
        self.controller_version: str | None = None
        self.messages: list[dict[str, Any]] = []
        self._fail = fail

    async def post_message(self, payload: dict[str, Any]) -> None:
        if self._fail:
            raise ConnectionError("client went away")
        self.messages.append(payload)


def get_request(url: str, *, document: bool = False, method: str = "GET") -> httpx.Request:
    if document:
        headers = {"Sec-Fetch-Dest": "document", "Accept": "text/html"}
    else:
        headers = {"Accept": "*/*"}
    return httpx.Request(method, url, headers=headers)
