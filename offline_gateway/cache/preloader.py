"""Install-time population of the static and dynamic tiers.

Both manifests are fetched concurrently and each item is independent: a
failing item (transport error or non-200 status) is logged and recorded,
never raised, so installation always completes.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import httpx
import structlog

from offline_gateway.cache.backend import Tier
from offline_gateway.cache.entry import CachedEntry, url_resource_key
from offline_gateway.cache.tiers import TierRole
from offline_gateway.infra.network import Fetch

log = structlog.get_logger(__name__)


@dataclass
class PreloadReport:
    """Outcome of one preload run."""
    cached: dict[TierRole, list[str]] = field(default_factory=dict)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def partial_failure(self) -> bool:
        return bool(self.failed)


class AssetPreloader:
    """Bulk-populates tiers from fixed URL manifests.

    Args:
        fetch: Network fetch (the wrapped transport).
        static_urls: Absolute URLs of the bundled app assets.
        external_urls: Absolute URLs of third-party assets.
    """

    def __init__(self, fetch: Fetch, static_urls: list[str], external_urls: list[str]) -> None:
        self._fetch = fetch
        self._static_urls = list(static_urls)
        self._external_urls = list(external_urls)

    async def preload(self, static_tier: Tier, dynamic_tier: Tier) -> PreloadReport:
        report = PreloadReport()
        await asyncio.gather(
            self._populate(TierRole.STATIC, static_tier, self._static_urls, report),
            self._populate(TierRole.DYNAMIC, dynamic_tier, self._external_urls, report),
        )
        if report.partial_failure:
            log.warning(
                "preload.partial_failure",
                failed=len(report.failed),
                cached=sum(len(keys) for keys in report.cached.values()),
            )
        else:
            log.info("preload.complete", cached=sum(len(keys) for keys in report.cached.values()))
        return report

    async def _populate(
        self,
        role: TierRole,
        tier: Tier,
        urls: list[str],
        report: PreloadReport,
    ) -> None:
        log.info("preload.tier_started", tier=tier.name, items=len(urls))
        stored = report.cached.setdefault(role, [])
        results = await asyncio.gather(
            *(self._add(tier, url) for url in urls),
            return_exceptions=True,
        )
        for url, result in zip(urls, results):
            if isinstance(result, BaseException):
                report.failed[url] = f"{type(result).__name__}: {result}"
                log.warning("preload.item_failed", tier=tier.name, url=url, error=str(result))
            else:
                stored.append(result)

    async def _add(self, tier: Tier, url: str) -> str:
        """Fetch url and store it; raise if the response is not a 200."""
        request = httpx.Request("GET", url)
        response = await self._fetch(request)
        await response.aread()
        if response.status_code != 200:
            raise httpx.HTTPStatusError(
                f"unexpected status {response.status_code}",
                request=request,
                response=response,
            )
        key = url_resource_key(url)
        await tier.put(key, await CachedEntry.from_response(response))
        return key
