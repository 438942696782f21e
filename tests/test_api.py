"""Tests for the HTTP and websocket surface.

Uses starlette.testclient.TestClient (synchronous) so the application
lifespan runs: the worker is installed and activated on startup and shut
down on exit. The worker is wired to the FakeNetwork transport.
"""

from __future__ import annotations

import pytest
from helpers import CDN_URL, INDEX_URL, REALTIME_URL
from starlette.testclient import TestClient

from offline_gateway.clients.notifier import BACKGROUND_SYNC
from offline_gateway.main import create_app


@pytest.fixture
def client(settings, worker):
    app = create_app(settings, worker=worker)
    with TestClient(app) as test_client:
        yield test_client


class TestHealth:
    def test_liveness(self, client):
        response = client.get("/health/live")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_readiness_after_startup(self, client):
        response = client.get("/health/ready")
        assert response.status_code == 200
        body = response.json()
        assert body["state"] == "activated"
        assert body["version"] == "3.0"
        assert body["clients"] == 0

    def test_readiness_before_activation(self, settings, network, store):
        from offline_gateway.worker import OfflineWorker

        waiting = OfflineWorker(
            settings=settings.model_copy(update={"skip_waiting_on_install": False}),
            store=store,
            network=network.transport,
        )
        with TestClient(create_app(settings, worker=waiting)) as test_client:
            response = test_client.get("/health/ready")
        assert response.status_code == 503
        assert response.json()["state"] == "installed"


class TestMessages:
    def test_version(self, client):
        assert client.get("/api/v1/version").json() == {"version": "3.0"}

    def test_get_version_message(self, client):
        response = client.post("/api/v1/messages", json={"type": "GET_VERSION"})
        assert response.json() == {"version": "3.0"}

    def test_unknown_message_is_accepted_and_ignored(self, client):
        response = client.post("/api/v1/messages", json={"type": "REFRESH_ALL", "force": True})
        assert response.status_code == 200
        assert response.json() == {"status": "accepted", "state": "activated"}

    def test_envelope_requires_type(self, client):
        response = client.post("/api/v1/messages", json={"kind": "GET_VERSION"})
        assert response.status_code == 422

    def test_skip_waiting_message_activates(self, settings, network, store):
        from offline_gateway.worker import OfflineWorker

        waiting = OfflineWorker(
            settings=settings.model_copy(update={"skip_waiting_on_install": False}),
            store=store,
            network=network.transport,
        )
        with TestClient(create_app(settings, worker=waiting)) as test_client:
            response = test_client.post("/api/v1/messages", json={"type": "SKIP_WAITING"})
        assert response.json() == {"status": "accepted", "state": "activated"}


class TestSyncAndPush:
    def test_sync_without_clients(self, client):
        response = client.post("/api/v1/sync", json={"tag": "background-sync"})
        assert response.json() == {"tag": "background-sync", "notified": 0}

    def test_sync_broadcasts_to_websocket_client(self, client):
        with client.websocket_connect("/api/v1/ws/clients") as ws:
            # the reply proves the socket is registered before the trigger
            ws.send_json({"type": "GET_VERSION"})
            assert ws.receive_json() == {"version": "3.0"}

            response = client.post("/api/v1/sync", json={"tag": "background-sync"})
            assert response.json()["notified"] == 1

            message = ws.receive_json()
            assert message["type"] == BACKGROUND_SYNC

    def test_unknown_sync_tag_notifies_nobody(self, client):
        with client.websocket_connect("/api/v1/ws/clients") as ws:
            ws.send_json({"type": "GET_VERSION"})
            ws.receive_json()
            response = client.post("/api/v1/periodic-sync", json={"tag": "other"})
        assert response.json() == {"tag": "other", "notified": 0}

    def test_push_with_body(self, client, settings):
        response = client.post("/api/v1/push", content=b"Case 42 updated")
        assert response.json() == {
            "status": "delivered",
            "title": settings.push_title,
            "body": "Case 42 updated",
        }

    def test_push_without_body(self, client, settings):
        response = client.post("/api/v1/push")
        assert response.json()["body"] == settings.push_default_body


class TestRoutedFetch:
    def test_cached_app_asset_served_offline(self, client, network):
        network.offline = True
        response = client.get("/api/v1/fetch", params={"url": INDEX_URL})
        assert response.status_code == 200
        assert response.text == "<html>shell v1</html>"

    def test_accelerator_asset(self, client):
        response = client.get("/api/v1/fetch", params={"url": CDN_URL})
        assert response.status_code == 200
        assert response.text == "/* css v1 */"

    def test_realtime_offline_placeholder(self, client, network):
        network.offline = True
        response = client.get("/api/v1/fetch", params={"url": REALTIME_URL})
        assert response.status_code == 503
        assert response.json()["error"] == "offline"

    def test_unintercepted_origin_unreachable(self, client, network):
        network.offline = True
        response = client.get("/api/v1/fetch", params={"url": "https://api.weather.example.net/"})
        assert response.status_code == 502

    def test_non_http_url_rejected(self, client):
        response = client.get("/api/v1/fetch", params={"url": "ftp://files.example.com/a"})
        assert response.status_code == 400
