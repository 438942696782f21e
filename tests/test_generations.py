"""Tests for install/activate and the worker lifecycle.

Covers:
- Preload: per-item isolation, non-200 items counted as failures
- Activation: stale tier cleanup, isolated deletion failures, client claim
- Lifecycle: skip-waiting, SKIP_WAITING message, requests during activation
"""

from __future__ import annotations

import asyncio

import httpx
import pytest
from helpers import CDN_URL, INDEX_URL, MANIFEST_URL, RecordingClient, get_request

from offline_gateway.cache.backend import InMemoryTierStore
from offline_gateway.cache.entry import url_resource_key
from offline_gateway.cache.tiers import TierRole
from offline_gateway.worker import LifecycleState, OfflineWorker

VALID_TIERS = {
    "offline-app-static-v3.0",
    "offline-app-dynamic-v3.0",
    "offline-app-runtime-v3.0",
}


class BrokenDeleteStore(InMemoryTierStore):
    """Store whose deletion of one named tier always fails."""

    def __init__(self, broken: str) -> None:
        super().__init__()
        self.broken = broken

    async def delete_tier(self, tier_name: str) -> bool:
        if tier_name == self.broken:
            raise RuntimeError("storage refused deletion")
        return await super().delete_tier(tier_name)


class FlakyListingStore(InMemoryTierStore):
    """Store that cannot enumerate its tiers until `healthy` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.healthy = False

    async def list_tier_names(self) -> set[str]:
        if not self.healthy:
            raise RuntimeError("tier index unavailable")
        return await super().list_tier_names()


class GatedDeleteStore(InMemoryTierStore):
    """Store whose tier deletions wait until the gate opens."""

    def __init__(self) -> None:
        super().__init__()
        self.gate = asyncio.Event()

    async def delete_tier(self, tier_name: str) -> bool:
        await self.gate.wait()
        return await super().delete_tier(tier_name)


async def _wait_for_state(worker: OfflineWorker, state: LifecycleState) -> None:
    for _ in range(1000):
        if worker.state == state:
            return
        await asyncio.sleep(0)
    raise AssertionError(f"worker never reached {state}, stuck in {worker.state}")


# ---------------------------------------------------------------------------
# Install
# ---------------------------------------------------------------------------


class TestInstall:
    @pytest.mark.asyncio
    async def test_preloads_static_and_dynamic_tiers(self, worker, store):
        report = await worker.install()

        assert not report.partial_failure
        static = await store.open("offline-app-static-v3.0")
        dynamic = await store.open("offline-app-dynamic-v3.0")
        assert set(await static.keys()) == {url_resource_key(INDEX_URL), url_resource_key(MANIFEST_URL)}
        assert await dynamic.keys() == [url_resource_key(CDN_URL)]

    @pytest.mark.asyncio
    async def test_failing_item_does_not_fail_install(self, worker, network, store):
        network.failing.add(MANIFEST_URL)

        report = await worker.install()

        assert report.partial_failure
        assert MANIFEST_URL in report.failed
        assert report.cached[TierRole.STATIC] == [url_resource_key(INDEX_URL)]
        static = await store.open("offline-app-static-v3.0")
        assert await static.keys() == [url_resource_key(INDEX_URL)]
        assert worker.state == LifecycleState.ACTIVATED

    @pytest.mark.asyncio
    async def test_non_200_item_counts_as_failure(self, worker, network, store):
        network.serve(CDN_URL, "gone", status=404)

        report = await worker.install()

        assert CDN_URL in report.failed
        dynamic = await store.open("offline-app-dynamic-v3.0")
        assert await dynamic.keys() == []


# ---------------------------------------------------------------------------
# Activate
# ---------------------------------------------------------------------------


class TestActivate:
    @pytest.mark.asyncio
    async def test_stale_tiers_are_removed(self, worker, store):
        for name in ("offline-app-static-v2.0", "offline-app-runtime-v2.0", "other-cache"):
            await store.open(name)

        await worker.install()

        assert await store.list_tier_names() == VALID_TIERS

    @pytest.mark.asyncio
    async def test_all_three_tiers_exist_after_activation(self, worker, store):
        await worker.install()
        assert VALID_TIERS <= await store.list_tier_names()

    @pytest.mark.asyncio
    async def test_deletion_failure_is_isolated(self, settings, network):
        store = BrokenDeleteStore(broken="offline-app-static-v2.0")
        for name in ("offline-app-static-v2.0", "offline-app-dynamic-v2.0"):
            await store.open(name)
        worker = OfflineWorker(
            settings=settings.model_copy(update={"skip_waiting_on_install": False}),
            store=store,
            network=network.transport,
        )

        await worker.install()
        report = await worker.activate()

        assert report.deleted == ["offline-app-dynamic-v2.0"]
        assert "offline-app-static-v2.0" in report.failed
        assert worker.state == LifecycleState.ACTIVATED
        assert await store.list_tier_names() == VALID_TIERS | {"offline-app-static-v2.0"}

    @pytest.mark.asyncio
    async def test_connected_clients_are_claimed(self, settings, network, store):
        worker = OfflineWorker(
            settings=settings.model_copy(update={"skip_waiting_on_install": False}),
            store=store,
            network=network.transport,
        )
        first, second = RecordingClient("a"), RecordingClient("b")
        await worker.clients.connect(first)
        await worker.clients.connect(second)

        await worker.install()
        report = await worker.activate()

        assert report.clients_claimed == 2
        assert first.controller_version == "3.0"
        assert second.controller_version == "3.0"

    @pytest.mark.asyncio
    async def test_second_activation_is_a_no_op(self, installed_worker):
        assert installed_worker.state == LifecycleState.ACTIVATED
        assert await installed_worker.activate() is None


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    @pytest.fixture
    def waiting_worker(self, settings, network, store):
        return OfflineWorker(
            settings=settings.model_copy(update={"skip_waiting_on_install": False}),
            store=store,
            network=network.transport,
        )

    @pytest.mark.asyncio
    async def test_starts_parsed(self, worker):
        assert worker.state == LifecycleState.PARSED

    @pytest.mark.asyncio
    async def test_installed_worker_waits_without_skip_waiting(self, waiting_worker):
        await waiting_worker.install()
        assert waiting_worker.state == LifecycleState.INSTALLED

    @pytest.mark.asyncio
    async def test_requests_before_activation_go_to_network(self, waiting_worker, network):
        await waiting_worker.install()
        network.offline = True

        with pytest.raises(httpx.ConnectError):
            await waiting_worker.fetch(get_request(INDEX_URL))

    @pytest.mark.asyncio
    async def test_skip_waiting_message_activates(self, waiting_worker, network):
        await waiting_worker.install()

        await waiting_worker.handle_message({"type": "SKIP_WAITING"})

        assert waiting_worker.state == LifecycleState.ACTIVATED
        network.offline = True
        response = await waiting_worker.fetch(get_request(INDEX_URL))
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_skip_waiting_before_install_activates_after_install(self, waiting_worker):
        await waiting_worker.handle_message({"type": "SKIP_WAITING"})
        assert waiting_worker.state == LifecycleState.PARSED

        await waiting_worker.install()

        assert waiting_worker.state == LifecycleState.ACTIVATED

    @pytest.mark.asyncio
    async def test_request_during_activation_waits_for_it(self, settings, network):
        store = GatedDeleteStore()
        await store.open("offline-app-static-v1.0")
        worker = OfflineWorker(settings=settings, store=store, network=network.transport)

        install = asyncio.create_task(worker.install())
        await _wait_for_state(worker, LifecycleState.ACTIVATING)

        network.offline = True
        pending = asyncio.create_task(worker.fetch(get_request(INDEX_URL)))
        for _ in range(10):
            await asyncio.sleep(0)
        assert not pending.done()

        store.gate.set()
        await install
        response = await pending

        assert response.status_code == 200
        assert await response.aread() == b"<html>shell v1</html>"

    @pytest.mark.asyncio
    async def test_failed_activation_does_not_release_routing(self, settings, network):
        store = FlakyListingStore()
        worker = OfflineWorker(
            settings=settings.model_copy(update={"skip_waiting_on_install": False}),
            store=store,
            network=network.transport,
        )
        await worker.install()

        with pytest.raises(RuntimeError):
            await worker.activate()

        assert worker.state == LifecycleState.INSTALLED
        network.offline = True
        with pytest.raises(httpx.ConnectError):
            await worker.fetch(get_request(INDEX_URL))

        store.healthy = True
        network.offline = False
        assert await worker.activate() is not None
        assert worker.state == LifecycleState.ACTIVATED
