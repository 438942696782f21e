"""Strategy engine - decides, per request, cache vs network vs fallback.

Routing by classification:

    REALTIME_BACKEND  network-first with cache fallback
        fetch; 200 -> write to runtime tier (detached) and return;
        network down -> any cached entry, else 503 JSON placeholder.

    ACCELERATOR       stale-while-revalidate on the dynamic tier
        hit -> return cached, refresh in the background;
        miss -> fetch, store 200s (awaited), return.

    SAME_ORIGIN       cache-first with document refresh
        hit -> return cached (pages also refresh the static tier in the
        background); miss -> fetch, store 200s in static (bundled assets)
        or runtime (everything else); network down -> app shell for
        pages, 503 plain text for anything else.

    OTHER / non-GET   straight to the network, no cache read or write.

Only 200 responses are stored. Non-200 responses reach the caller as they
came from the network. Background work never reports to the caller; its
failures are logged by BackgroundTasks.
"""

from __future__ import annotations

import json
import time

import httpx
import structlog

from offline_gateway.cache.backend import TierStore
from offline_gateway.cache.entry import CachedEntry, resource_key
from offline_gateway.cache.tiers import TierNaming, TierRole
from offline_gateway.infra.background import BackgroundTasks
from offline_gateway.infra.network import Fetch
from offline_gateway.routing.classifier import (
    Classification,
    RequestClassifier,
    is_document_request,
)
from offline_gateway.telemetry.logging import bind_request_context, reset_request_context

log = structlog.get_logger(__name__)


class NetworkUnavailableError(Exception):
    """The network fetch failed at the transport level (no response at all)."""


class StrategyEngine:
    """Executes the caching strategy selected by the request's classification.

    Stateless apart from its collaborators: every piece of cached data lives
    in the tier store, and entries are only held for the duration of one
    strategy execution.
    """

    def __init__(
        self,
        *,
        store: TierStore,
        naming: TierNaming,
        classifier: RequestClassifier,
        fetch: Fetch,
        background: BackgroundTasks,
        static_keys: frozenset[str],
        app_shell_key: str,
        offline_json_message: str = "The application is working offline",
        offline_text_message: str = "Unavailable offline",
    ) -> None:
        self._store = store
        self._naming = naming
        self._classifier = classifier
        self._fetch = fetch
        self._background = background
        self._static_keys = static_keys
        self._app_shell_key = app_shell_key
        self._offline_json_message = offline_json_message
        self._offline_text_message = offline_text_message

    # ------------------------------------------------------------------ #
    # Dispatch
    # ------------------------------------------------------------------ #

    async def handle(self, request: httpx.Request) -> httpx.Response:
        classification = self._classifier.classify(request)
        if classification is None or classification == Classification.OTHER:
            return await self._fetch(request)

        key = resource_key(request)
        tokens = bind_request_context(key, classification)
        try:
            if classification == Classification.REALTIME_BACKEND:
                return await self.network_first(request, key)
            if classification == Classification.ACCELERATOR:
                return await self.stale_while_revalidate(request, key)
            return await self.cache_first(request, key)
        finally:
            reset_request_context(tokens)

    # ------------------------------------------------------------------ #
    # Strategies
    # ------------------------------------------------------------------ #

    async def network_first(self, request: httpx.Request, key: str) -> httpx.Response:
        try:
            response = await self._network(request)
        except NetworkUnavailableError as exc:
            log.info("strategy.network_unavailable", error=str(exc))
            cached = await self._match_any(key)
            if cached is not None:
                log.info("strategy.offline_cache_hit")
                return cached.to_response(request)
            log.info("strategy.offline_placeholder", status=503)
            return self._offline_json_response(request)

        if response.status_code != 200:
            return response

        entry = await CachedEntry.from_response(response)
        self._write_behind(TierRole.RUNTIME, key, entry)
        return entry.to_response(request)

    async def stale_while_revalidate(self, request: httpx.Request, key: str) -> httpx.Response:
        tier = await self._store.open(self._naming.name(TierRole.DYNAMIC))
        cached = await tier.get(key)
        if cached is not None:
            log.debug("strategy.cache_hit", tier=tier.name)
            self._background.spawn(
                self._refresh(request, key, TierRole.DYNAMIC),
                name=f"revalidate {key}",
            )
            return cached.to_response(request)

        log.debug("strategy.cache_miss", tier=tier.name)
        try:
            response = await self._network(request)
        except NetworkUnavailableError as exc:
            log.info("strategy.network_unavailable", error=str(exc))
            return await self._offline_fallback(request, key)

        if response.status_code != 200:
            return response

        entry = await CachedEntry.from_response(response)
        await tier.put(key, entry)
        return entry.to_response(request)

    async def cache_first(self, request: httpx.Request, key: str) -> httpx.Response:
        document = is_document_request(request)
        cached = await self._match_any(key)
        if cached is not None:
            log.debug("strategy.cache_hit", document=document)
            if document:
                self._background.spawn(
                    self._refresh(request, key, TierRole.STATIC),
                    name=f"document-refresh {key}",
                )
            return cached.to_response(request)

        try:
            response = await self._network(request)
        except NetworkUnavailableError as exc:
            log.info("strategy.network_unavailable", error=str(exc), document=document)
            if document:
                shell = await self._match_any(self._app_shell_key)
                if shell is not None:
                    log.info("strategy.app_shell_fallback")
                    return shell.to_response(request)
            return self._offline_text_response(request)

        if response.status_code != 200:
            return response

        entry = await CachedEntry.from_response(response)
        role = TierRole.STATIC if key in self._static_keys else TierRole.RUNTIME
        self._write_behind(role, key, entry)
        return entry.to_response(request)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    async def _network(self, request: httpx.Request) -> httpx.Response:
        """Fetch and read the whole body, mapping transport errors."""
        try:
            response = await self._fetch(request)
            await response.aread()
        except httpx.TransportError as exc:
            raise NetworkUnavailableError(f"{type(exc).__name__}: {exc}") from exc
        return response

    async def _match_any(self, key: str) -> CachedEntry | None:
        return await self._store.match(key, self._naming.lookup_names())

    async def _put(self, role: TierRole, key: str, entry: CachedEntry) -> None:
        tier = await self._store.open(self._naming.name(role))
        await tier.put(key, entry)
        log.debug("strategy.stored", tier=tier.name, status=entry.status_code)

    def _write_behind(self, role: TierRole, key: str, entry: CachedEntry) -> None:
        self._background.spawn(self._put(role, key, entry), name=f"{role}-write {key}")

    async def _refresh(self, request: httpx.Request, key: str, role: TierRole) -> None:
        response = await self._network(request)
        if response.status_code != 200:
            log.debug("strategy.refresh_skipped", status=response.status_code)
            return
        entry = await CachedEntry.from_response(response)
        await self._put(role, key, entry)

    async def _offline_fallback(self, request: httpx.Request, key: str) -> httpx.Response:
        cached = await self._match_any(key)
        if cached is not None:
            return cached.to_response(request)
        return self._offline_text_response(request)

    def _offline_json_response(self, request: httpx.Request) -> httpx.Response:
        body = {
            "error": "offline",
            "message": self._offline_json_message,
            "timestamp": int(time.time() * 1000),
        }
        return httpx.Response(
            status_code=503,
            headers={"Content-Type": "application/json", "Cache-Control": "no-cache"},
            content=json.dumps(body).encode(),
            request=request,
        )

    def _offline_text_response(self, request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            status_code=503,
            headers={"Content-Type": "text/plain; charset=utf-8"},
            content=self._offline_text_message.encode("utf-8"),
            request=request,
            extensions={"reason_phrase": b"Service Unavailable"},
        )
