"""
Shared test fixtures for pytest.

Provides common fakes and test data for all test modules:
- settings: Test environment configuration (small manifests, fixed origin)
- network: FakeNetwork serving the app shell, manifest and one CDN asset
- store: Fresh InMemoryTierStore
- worker: OfflineWorker wired to the fake network (not installed)
- installed_worker: worker after install + activate, drained on teardown
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest
from helpers import APP_ORIGIN, CDN_URL, INDEX_URL, MANIFEST_URL, FakeNetwork

from offline_gateway.cache.backend import InMemoryTierStore
from offline_gateway.config import Environment, Settings, get_settings
from offline_gateway.telemetry.logging import clear_context
from offline_gateway.worker import OfflineWorker


# ------------------------------------------------------------------ #
# Session-scoped: clear settings cache between test sessions
# ------------------------------------------------------------------ #

@pytest.fixture(autouse=True, scope="session")
def _clear_settings_cache():
    """Clear the lru_cache on get_settings so test overrides take effect."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _clear_log_context():
    clear_context()
    yield
    clear_context()


# ------------------------------------------------------------------ #
# Settings & worker fixtures
# ------------------------------------------------------------------ #


@pytest.fixture
def settings() -> Settings:
    return Settings(
        environment=Environment.TEST,
        version_tag="3.0",
        cache_prefix="offline-app",
        app_origin=APP_ORIGIN,
        static_assets=["./index.html", "./manifest.json"],
        external_assets=[CDN_URL],
        cache_backend="memory",
        redis_url="",
    )


@pytest.fixture
def network() -> FakeNetwork:
    net = FakeNetwork()
    net.serve(INDEX_URL, "<html>shell v1</html>", headers={"content-type": "text/html"})
    net.serve(MANIFEST_URL, '{"name": "app"}', headers={"content-type": "application/json"})
    net.serve(CDN_URL, "/* css v1 */", headers={"content-type": "text/css"})
    return net


@pytest.fixture
def store() -> InMemoryTierStore:
    return InMemoryTierStore()


@pytest.fixture
def worker(settings: Settings, network: FakeNetwork, store: InMemoryTierStore) -> OfflineWorker:
    return OfflineWorker(settings=settings, store=store, network=network.transport)


@pytest.fixture
async def installed_worker(worker: OfflineWorker) -> AsyncGenerator[OfflineWorker, None]:
    await worker.install()
    yield worker
    await worker.background.drain(timeout=5)
