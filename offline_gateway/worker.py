"""OfflineWorker - lifecycle facade wiring the gateway together.

Lifecycle:
    parsed -> installing -> installed -> activating -> activated

- install() populates the tiers of the new version. With skip-waiting set
  (the default) it activates straight away; otherwise activation waits for
  a SKIP_WAITING message.
- activate() cleans up stale tiers and claims connected clients. Requests
  arriving while activation runs wait for it; requests arriving before
  activation starts go straight to the network.
- fetch() is the interception point used by OfflineTransport.

Inbound messages are envelopes {"type": ..., ...}:
    SKIP_WAITING  - activate as soon as installation has finished
    GET_VERSION   - reply {"version": <version tag>} on the reply port
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

import httpx
import structlog

from offline_gateway.cache.backend import TierStore, get_tier_store
from offline_gateway.cache.entry import asset_url, url_resource_key
from offline_gateway.cache.generations import ActivationReport, CacheGenerationManager
from offline_gateway.cache.preloader import AssetPreloader, PreloadReport
from offline_gateway.cache.tiers import TierNaming
from offline_gateway.clients.manager import ClientRegistry, MessagePort
from offline_gateway.clients.notifier import ClientNotifier
from offline_gateway.config import Settings
from offline_gateway.infra.background import BackgroundTasks
from offline_gateway.infra.network import transport_fetch
from offline_gateway.routing.classifier import RequestClassifier
from offline_gateway.routing.strategies import StrategyEngine

log = structlog.get_logger(__name__)

SKIP_WAITING = "SKIP_WAITING"
GET_VERSION = "GET_VERSION"


class LifecycleState(StrEnum):
    PARSED = "parsed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATING = "activating"
    ACTIVATED = "activated"


@dataclass(frozen=True)
class PushNotice:
    """What a push delivery asks the host to display. Rendering is not ours."""
    title: str
    body: str
    icon: str
    badge: str
    tag: str


NotificationSink = Callable[[PushNotice], Awaitable[None]]


async def _log_notification(notice: PushNotice) -> None:
    log.info("push.notification", title=notice.title, tag=notice.tag, body=notice.body)


class OfflineWorker:
    """Owns one version of the gateway: its tiers, routing and clients."""

    def __init__(
        self,
        *,
        settings: Settings,
        store: TierStore,
        network: httpx.AsyncBaseTransport,
        clients: ClientRegistry | None = None,
        background: BackgroundTasks | None = None,
        notification_sink: NotificationSink | None = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.network = network
        self.clients = clients or ClientRegistry()
        self.background = background or BackgroundTasks()
        self._notification_sink = notification_sink or _log_notification

        self._fetch = transport_fetch(network, timeout=settings.fetch_timeout_seconds)
        self.naming = TierNaming(prefix=settings.cache_prefix, version_tag=settings.version_tag)

        static_urls = [asset_url(settings.app_origin, path) for path in settings.static_assets]
        self.preloader = AssetPreloader(self._fetch, static_urls, settings.external_assets)
        self.generations = CacheGenerationManager(
            store=store,
            naming=self.naming,
            preloader=self.preloader,
            clients=self.clients,
        )
        self.classifier = RequestClassifier.from_settings(settings)
        self.engine = StrategyEngine(
            store=store,
            naming=self.naming,
            classifier=self.classifier,
            fetch=self._fetch,
            background=self.background,
            static_keys=frozenset(url_resource_key(url) for url in static_urls),
            app_shell_key=url_resource_key(asset_url(settings.app_origin, settings.app_shell_path)),
            offline_json_message=settings.offline_json_message,
            offline_text_message=settings.offline_text_message,
        )
        self.notifier = ClientNotifier(
            registry=self.clients,
            version_tag=settings.version_tag,
            sync_tag=settings.sync_tag,
            background_sync_message=settings.background_sync_message,
            periodic_sync_message=settings.periodic_sync_message,
        )

        self._state = LifecycleState.PARSED
        self._skip_waiting = settings.skip_waiting_on_install
        self._activated = asyncio.Event()
        self._activation_lock = asyncio.Lock()

    @classmethod
    def create(
        cls,
        settings: Settings,
        *,
        network: httpx.AsyncBaseTransport | None = None,
        **kwargs: Any,
    ) -> OfflineWorker:
        """Build a worker with the store selected by settings.

        Example:
            worker = OfflineWorker.create(get_settings())
            await worker.install()
        """
        return cls(
            settings=settings,
            store=get_tier_store(settings),
            network=network or httpx.AsyncHTTPTransport(retries=0),
            **kwargs,
        )

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def version(self) -> str:
        return self.settings.version_tag

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def install(self) -> PreloadReport:
        """Populate the tiers of this version; activate if skip-waiting is set."""
        self._state = LifecycleState.INSTALLING
        log.info("worker.installing", version=self.version)
        report = await self.generations.on_install()
        self._state = LifecycleState.INSTALLED
        log.info("worker.installed", version=self.version, skip_waiting=self._skip_waiting)
        if self._skip_waiting:
            await self.activate()
        return report

    async def skip_waiting(self) -> None:
        """Stop waiting: activate now if installed, or right after install."""
        self._skip_waiting = True
        if self._state == LifecycleState.INSTALLED:
            await self.activate()

    async def activate(self) -> ActivationReport | None:
        """Clean up stale tiers, claim clients, and release routing.

        Returns None when this version is already activated or activating.
        """
        async with self._activation_lock:
            if self._state in (LifecycleState.ACTIVATING, LifecycleState.ACTIVATED):
                return None
            self._state = LifecycleState.ACTIVATING
            log.info("worker.activating", version=self.version)
            try:
                report = await self.generations.on_activate()
            except Exception:
                log.exception("worker.activation_failed", version=self.version)
                self._state = LifecycleState.INSTALLED
                # Waiters fall through to the network; a retry gets a fresh event.
                self._activated.set()
                self._activated = asyncio.Event()
                raise
            self._state = LifecycleState.ACTIVATED
            self._activated.set()
            log.info("worker.activated", version=self.version)
            return report

    async def shutdown(self) -> None:
        """Drain detached tasks and release the store and transport."""
        log.info("worker.shutdown_initiated", background=self.background.stats())
        await self.background.drain(timeout=self.settings.background_drain_timeout_seconds)
        await self.store.close()
        await self.network.aclose()
        log.info("worker.shutdown_complete")

    # ------------------------------------------------------------------ #
    # Interception
    # ------------------------------------------------------------------ #

    async def fetch(self, request: httpx.Request) -> httpx.Response:
        if request.method != "GET":
            return await self._fetch(request)
        if self._state == LifecycleState.ACTIVATING:
            await self._activated.wait()
        if self._state != LifecycleState.ACTIVATED:
            return await self._fetch(request)
        return await self.engine.handle(request)

    # ------------------------------------------------------------------ #
    # Messages and triggers
    # ------------------------------------------------------------------ #

    async def handle_message(
        self,
        envelope: dict[str, Any],
        reply_port: MessagePort | None = None,
    ) -> dict[str, Any] | None:
        """Dispatch an inbound message envelope.

        Returns the reply payload for GET_VERSION, None otherwise.
        """
        message_type = envelope.get("type") if isinstance(envelope, dict) else None
        if message_type == SKIP_WAITING:
            await self.skip_waiting()
            return None
        if message_type == GET_VERSION:
            if reply_port is None:
                log.warning("worker.version_query_without_port")
                return None
            return await self.notifier.reply_version(reply_port)
        log.debug("worker.message_ignored", message_type=message_type)
        return None

    async def handle_sync(self, tag: str) -> int:
        log.info("worker.sync_triggered", tag=tag)
        return await self.notifier.notify_connectivity_restored(tag)

    async def handle_periodic_sync(self, tag: str) -> int:
        log.info("worker.periodic_sync_triggered", tag=tag)
        return await self.notifier.notify_periodic_refresh(tag)

    async def handle_push(self, payload: bytes | None) -> PushNotice:
        body = payload.decode("utf-8", errors="replace") if payload else ""
        notice = PushNotice(
            title=self.settings.push_title,
            body=body or self.settings.push_default_body,
            icon=self.settings.push_icon,
            badge=self.settings.push_badge,
            tag=self.settings.push_tag,
        )
        log.info("worker.push_received", has_payload=bool(payload))
        await self._notification_sink(notice)
        return notice
