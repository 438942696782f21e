"""Request classification.

Assigns every intercepted GET request to exactly one routing class. The
rules are an explicit, ordered tuple of typed matchers; the first matcher
that accepts the request decides its class, and a request no matcher
accepts is OTHER. Non-GET requests are never classified.

Default order:
    1. method != GET                       -> None (not intercepted)
    2. hostname contains a realtime marker -> REALTIME_BACKEND
    3. hostname is / ends with a CDN host  -> ACCELERATOR
    4. origin equals the app origin        -> SAME_ORIGIN
    5. anything else                       -> OTHER
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Protocol

import httpx


class Classification(StrEnum):
    SAME_ORIGIN = "same_origin"
    REALTIME_BACKEND = "realtime_backend"
    ACCELERATOR = "accelerator"
    OTHER = "other"


class Matcher(Protocol):
    classification: Classification

    def matches(self, url: httpx.URL) -> bool: ...


def origin_of(url: httpx.URL) -> str:
    """Serialise the origin (scheme://host[:port]) of a URL, default ports omitted."""
    host = url.host
    if ":" in host:
        host = f"[{host}]"
    if url.port is None:
        return f"{url.scheme}://{host}"
    return f"{url.scheme}://{host}:{url.port}"


@dataclass(frozen=True)
class HostSubstringMatcher:
    """Accepts hostnames containing any of the markers."""

    markers: tuple[str, ...]
    classification: Classification

    def matches(self, url: httpx.URL) -> bool:
        host = url.host.lower()
        return any(marker.lower() in host for marker in self.markers)


@dataclass(frozen=True)
class HostSuffixMatcher:
    """Accepts hostnames equal to a listed host or a subdomain of one."""

    hosts: tuple[str, ...]
    classification: Classification

    def matches(self, url: httpx.URL) -> bool:
        host = url.host.lower()
        for candidate in self.hosts:
            candidate = candidate.lower()
            if host == candidate or host.endswith("." + candidate):
                return True
        return False


@dataclass(frozen=True)
class ExactOriginMatcher:
    """Accepts URLs whose origin is exactly the given origin."""

    origin: str
    classification: Classification

    def matches(self, url: httpx.URL) -> bool:
        return origin_of(url) == origin_of(httpx.URL(self.origin))


class RequestClassifier:
    """Evaluates matchers in their declared order; first match wins."""

    def __init__(self, matchers: tuple[Matcher, ...]) -> None:
        self._matchers = matchers

    @classmethod
    def from_settings(cls, settings: Any) -> RequestClassifier:
        return cls(
            (
                HostSubstringMatcher(
                    markers=tuple(settings.realtime_host_markers),
                    classification=Classification.REALTIME_BACKEND,
                ),
                HostSuffixMatcher(
                    hosts=tuple(settings.accelerator_hosts),
                    classification=Classification.ACCELERATOR,
                ),
                ExactOriginMatcher(
                    origin=settings.app_origin,
                    classification=Classification.SAME_ORIGIN,
                ),
            )
        )

    @property
    def matchers(self) -> tuple[Matcher, ...]:
        return self._matchers

    def classify(self, request: httpx.Request) -> Classification | None:
        """Return the routing class, or None for requests that are not GET."""
        if request.method != "GET":
            return None
        for matcher in self._matchers:
            if matcher.matches(request.url):
                return matcher.classification
        return Classification.OTHER


def is_document_request(request: httpx.Request) -> bool:
    """True when the request loads a top-level document (a page navigation)."""
    dest = request.headers.get("sec-fetch-dest")
    if dest is not None:
        return dest.lower() == "document"
    return "text/html" in request.headers.get("accept", "").lower()
