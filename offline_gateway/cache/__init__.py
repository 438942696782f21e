"""Cache tiers and their lifecycle.

Public API:
    TierStore / Tier        - Abstract base for all tier stores
    RedisTierStore          - Redis-backed production store
    InMemoryTierStore       - Dict-backed store for dev/testing
    get_tier_store          - Factory: selects store from settings

    CachedEntry             - Immutable response snapshot
    TierRole, TierNaming    - Roles and generation-tagged tier names

    AssetPreloader          - Install-time manifest population
    CacheGenerationManager  - Install / activate lifecycle of tiers
"""

from offline_gateway.cache.backend import (
    InMemoryTierStore,
    RedisTierStore,
    Tier,
    TierStore,
    get_tier_store,
)
from offline_gateway.cache.entry import CachedEntry, asset_url, resource_key
from offline_gateway.cache.generations import ActivationReport, CacheGenerationManager
from offline_gateway.cache.preloader import AssetPreloader, PreloadReport
from offline_gateway.cache.tiers import TierNaming, TierRole

__all__ = [
    "Tier",
    "TierStore",
    "RedisTierStore",
    "InMemoryTierStore",
    "get_tier_store",
    "CachedEntry",
    "asset_url",
    "resource_key",
    "TierNaming",
    "TierRole",
    "AssetPreloader",
    "PreloadReport",
    "CacheGenerationManager",
    "ActivationReport",
]
