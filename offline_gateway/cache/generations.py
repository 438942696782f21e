"""Cache generation lifecycle.

Install opens the static and dynamic tiers of the current version and
preloads them. Activate removes every tier that is not one of the three
tiers of the current version, makes sure those three exist, and then
claims all connected clients for the new version.

Stale tier deletions are independent: each one is attempted, a failure
is logged and recorded in the ActivationReport, and cleanup moves on to
the next name. A failed deletion never blocks activation.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from offline_gateway.cache.backend import TierStore
from offline_gateway.cache.preloader import AssetPreloader, PreloadReport
from offline_gateway.cache.tiers import TierNaming, TierRole
from offline_gateway.clients.manager import ClientRegistry

log = structlog.get_logger(__name__)


@dataclass
class ActivationReport:
    """Outcome of one activation."""
    deleted: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    kept: list[str] = field(default_factory=list)
    clients_claimed: int = 0


class CacheGenerationManager:
    """Owns tier naming for the current version across install/activate."""

    def __init__(
        self,
        *,
        store: TierStore,
        naming: TierNaming,
        preloader: AssetPreloader,
        clients: ClientRegistry,
    ) -> None:
        self._store = store
        self._naming = naming
        self._preloader = preloader
        self._clients = clients

    @property
    def version_tag(self) -> str:
        return self._naming.version_tag

    async def on_install(self) -> PreloadReport:
        log.info("generation.installing", version=self.version_tag)
        static_tier = await self._store.open(self._naming.name(TierRole.STATIC))
        dynamic_tier = await self._store.open(self._naming.name(TierRole.DYNAMIC))
        report = await self._preloader.preload(static_tier, dynamic_tier)
        log.info(
            "generation.installed",
            version=self.version_tag,
            failed_items=len(report.failed),
        )
        return report

    async def on_activate(self) -> ActivationReport:
        log.info("generation.activating", version=self.version_tag)
        report = ActivationReport()
        valid = self._naming.valid_names()

        existing = await self._store.list_tier_names()
        for name in sorted(existing - valid):
            try:
                await self._store.delete_tier(name)
            except Exception as exc:
                report.failed[name] = f"{type(exc).__name__}: {exc}"
                log.warning("generation.tier_delete_failed", tier=name, error=str(exc))
                continue
            report.deleted.append(name)
            log.info("generation.tier_deleted", tier=name)

        for role in TierRole:
            tier = await self._store.open(self._naming.name(role))
            report.kept.append(tier.name)

        report.clients_claimed = await self._clients.claim_all(self.version_tag)

        if report.failed:
            log.warning(
                "generation.cleanup_incomplete",
                version=self.version_tag,
                failed=sorted(report.failed),
            )
        log.info(
            "generation.activated",
            version=self.version_tag,
            deleted=len(report.deleted),
            clients_claimed=report.clients_claimed,
        )
        return report
