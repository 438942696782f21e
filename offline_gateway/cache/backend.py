"""Cache tier store implementations.

Defines the TierStore / Tier ABCs and two concrete implementations:
- RedisTierStore: Production store using one Redis hash per tier
- InMemoryTierStore: Dict-based store, for testing/dev

The factory function get_tier_store() selects the appropriate store based
on settings. In-memory is the default so the gateway works without Redis.
"""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from typing import Any

import structlog

from offline_gateway.cache.entry import CachedEntry
from offline_gateway.config import CacheBackendKind

log = structlog.get_logger(__name__)


class Tier(ABC):
    """Handle to one named key -> CachedEntry store."""

    def __init__(self, name: str) -> None:
        self.name = name

    @abstractmethod
    async def get(self, key: str) -> CachedEntry | None:
        """Return the entry stored under key, or None."""

    @abstractmethod
    async def put(self, key: str, entry: CachedEntry) -> None:
        """Store entry under key, replacing any previous entry whole."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete key. Returns True if an entry was removed."""

    @abstractmethod
    async def keys(self) -> list[str]:
        """Return every key currently stored in the tier."""


class TierStore(ABC):
    """Abstract interface all tier stores must implement."""

    @abstractmethod
    async def open(self, tier_name: str) -> Tier:
        """Return a handle to tier_name, creating the tier if absent."""

    @abstractmethod
    async def delete_tier(self, tier_name: str) -> bool:
        """Delete a whole tier. Returns True if it existed."""

    @abstractmethod
    async def list_tier_names(self) -> set[str]:
        """Return the names of every existing tier, across all versions."""

    async def match(self, key: str, tier_names: list[str]) -> CachedEntry | None:
        """Return the first entry for key found in tier_names, in order.

        Tiers that do not exist are skipped rather than created.
        """
        existing = await self.list_tier_names()
        for name in tier_names:
            if name not in existing:
                continue
            tier = await self.open(name)
            entry = await tier.get(key)
            if entry is not None:
                return entry
        return None

    async def close(self) -> None:
        """Release backend resources. No-op by default."""


# ---------------------------------------------------------------------------
# Redis store
# ---------------------------------------------------------------------------


class RedisTier(Tier):
    """Tier stored as a single Redis hash: field = resource key."""

    def __init__(self, name: str, store: RedisTierStore) -> None:
        super().__init__(name)
        self._store = store

    async def get(self, key: str) -> CachedEntry | None:
        try:
            client = await self._store._get_client()
            raw = await client.hget(self._store.tier_key(self.name), key)
            if raw is None:
                return None
            return CachedEntry.from_dict(json.loads(raw))
        except Exception as exc:
            log.warning("tier.redis.get_failed", tier=self.name, key=key, error=str(exc))
            return None

    async def put(self, key: str, entry: CachedEntry) -> None:
        try:
            client = await self._store._get_client()
            serialised = json.dumps(entry.to_dict())
            # A tier holding entries is always listed in the index.
            pipe = client.pipeline(transaction=True)
            pipe.sadd(self._store.index_key, self.name)
            pipe.hset(self._store.tier_key(self.name), key, serialised)
            await pipe.execute()
        except Exception as exc:
            log.warning("tier.redis.put_failed", tier=self.name, key=key, error=str(exc))

    async def delete(self, key: str) -> bool:
        try:
            client = await self._store._get_client()
            return bool(await client.hdel(self._store.tier_key(self.name), key))
        except Exception as exc:
            log.warning("tier.redis.delete_failed", tier=self.name, key=key, error=str(exc))
            return False

    async def keys(self) -> list[str]:
        try:
            client = await self._store._get_client()
            return list(await client.hkeys(self._store.tier_key(self.name)))
        except Exception as exc:
            log.warning("tier.redis.keys_failed", tier=self.name, error=str(exc))
            return []


class RedisTierStore(TierStore):
    """Production tier store backed by Redis.

    Each tier is one hash ("<namespace>:tier:<name>") whose fields are
    resource keys and whose values are JSON-serialised entries. Tier names
    are tracked in a set ("<namespace>:tiers") so they can be enumerated
    without SCAN. Initialised lazily on first call so import never blocks.
    """

    def __init__(self, redis_url: str, namespace: str = "offline-gateway") -> None:
        self._redis_url = redis_url
        self._namespace = namespace
        self._client: Any = None  # redis.asyncio.Redis, set on first use

    async def _get_client(self) -> Any:
        """Return or create the Redis client (lazy init)."""
        if self._client is None:
            import redis.asyncio as aioredis

            self._client = aioredis.from_url(
                self._redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
        return self._client

    @property
    def index_key(self) -> str:
        return f"{self._namespace}:tiers"

    def tier_key(self, tier_name: str) -> str:
        return f"{self._namespace}:tier:{tier_name}"

    async def open(self, tier_name: str) -> Tier:
        try:
            client = await self._get_client()
            await client.sadd(self.index_key, tier_name)
        except Exception as exc:
            log.warning("tier.redis.open_failed", tier=tier_name, error=str(exc))
        return RedisTier(tier_name, self)

    async def delete_tier(self, tier_name: str) -> bool:
        try:
            client = await self._get_client()
            removed = await client.srem(self.index_key, tier_name)
            await client.delete(self.tier_key(tier_name))
        except Exception as exc:
            log.warning("tier.redis.delete_tier_failed", tier=tier_name, error=str(exc))
            return False
        return bool(removed)

    async def list_tier_names(self) -> set[str]:
        try:
            client = await self._get_client()
            return set(await client.smembers(self.index_key))
        except Exception as exc:
            log.warning("tier.redis.list_failed", error=str(exc))
            return set()

    async def close(self) -> None:
        """Close the Redis connection pool."""
        if self._client is not None:
            try:
                await self._client.aclose()
            except Exception as exc:
                log.warning("tier.redis.close_failed", error=str(exc))
            self._client = None


# ---------------------------------------------------------------------------
# In-memory store (testing / dev default)
# ---------------------------------------------------------------------------


class InMemoryTier(Tier):
    def __init__(self, name: str, entries: dict[str, CachedEntry], lock: asyncio.Lock) -> None:
        super().__init__(name)
        self._entries = entries
        self._lock = lock

    async def get(self, key: str) -> CachedEntry | None:
        async with self._lock:
            return self._entries.get(key)

    async def put(self, key: str, entry: CachedEntry) -> None:
        async with self._lock:
            self._entries[key] = entry

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._entries.pop(key, None) is not None

    async def keys(self) -> list[str]:
        async with self._lock:
            return list(self._entries)


class InMemoryTierStore(TierStore):
    """Dict-of-dicts tier store.

    Safe under concurrent tasks via asyncio.Lock. Suitable for testing and
    single-process deployments. Does NOT persist across process restarts.
    """

    def __init__(self) -> None:
        self._tiers: dict[str, dict[str, CachedEntry]] = {}
        self._lock = asyncio.Lock()

    async def open(self, tier_name: str) -> Tier:
        async with self._lock:
            entries = self._tiers.setdefault(tier_name, {})
        return InMemoryTier(tier_name, entries, self._lock)

    async def delete_tier(self, tier_name: str) -> bool:
        async with self._lock:
            return self._tiers.pop(tier_name, None) is not None

    async def list_tier_names(self) -> set[str]:
        async with self._lock:
            return set(self._tiers)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def get_tier_store(settings: Any) -> TierStore:
    """Return the appropriate TierStore for the given settings.

    Uses Redis when cache_backend is "redis" and a redis_url is configured;
    otherwise the in-memory store.

    Args:
        settings: Application Settings instance.

    Returns:
        A TierStore implementation ready for use.
    """
    redis_url: str = getattr(settings, "redis_url", "")
    kind = getattr(settings, "cache_backend", CacheBackendKind.MEMORY)

    if kind == CacheBackendKind.REDIS:
        if redis_url:
            log.info("tier_store.selected", backend="redis", url=redis_url)
            return RedisTierStore(redis_url, namespace=settings.redis_namespace)
        log.warning("tier_store.redis_url_missing", fallback="memory")

    log.info("tier_store.selected", backend="memory")
    return InMemoryTierStore()
