"""Cached response snapshots and resource keys.

A CachedEntry is an immutable snapshot of a fully read response. Because an
httpx response body can only be streamed once, every strategy that needs to
both return a response and store it snapshots the response first and then
builds as many fresh responses from the snapshot as it needs.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import httpx

# The stored body is already decoded and re-framed on replay, so these
# headers would describe bytes that no longer exist.
_DROPPED_HEADERS = frozenset({"content-encoding", "content-length", "transfer-encoding"})


def resource_key(request: httpx.Request) -> str:
    """Return the cache identity of a GET request: method plus absolute URL.

    Raises:
        ValueError: for any method other than GET (only idempotent reads
            are cached).
    """
    if request.method != "GET":
        raise ValueError(f"only GET requests have a resource key, got {request.method}")
    url = request.url.copy_with(fragment=None)
    return f"GET {url}"


def asset_url(origin: str, path: str) -> str:
    """Resolve a manifest path ("./index.html") against the app origin."""
    return str(httpx.URL(origin.rstrip("/") + "/").join(path))


def url_resource_key(url: str) -> str:
    """Resource key of a plain GET for url."""
    return resource_key(httpx.Request("GET", url))


@dataclass(frozen=True)
class CachedEntry:
    """Represents a stored response snapshot."""

    status_code: int
    headers: tuple[tuple[str, str], ...]
    body: bytes
    stored_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    async def from_response(cls, response: httpx.Response) -> CachedEntry:
        """Read the response body to completion and snapshot it."""
        body = await response.aread()
        headers = tuple(
            (name, value)
            for name, value in response.headers.multi_items()
            if name.lower() not in _DROPPED_HEADERS
        )
        return cls(status_code=response.status_code, headers=headers, body=body)

    def to_response(self, request: httpx.Request | None = None) -> httpx.Response:
        """Build a fresh, unconsumed response carrying this snapshot."""
        return httpx.Response(
            status_code=self.status_code,
            headers=list(self.headers),
            content=self.body,
            request=request,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "status_code": self.status_code,
            "headers": [list(pair) for pair in self.headers],
            "body": base64.b64encode(self.body).decode("ascii"),
            "stored_at": self.stored_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CachedEntry:
        return cls(
            status_code=data["status_code"],
            headers=tuple((name, value) for name, value in data["headers"]),
            body=base64.b64decode(data["body"]),
            stored_at=datetime.fromisoformat(data["stored_at"]),
        )
