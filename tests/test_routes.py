"""Tests for the sync trigger routes."""
import httpx
import pytest
from fastapi.testclient import TestClient

from fieldsync.core.config import settings as app_settings
from fieldsync.core.dependencies import get_http_client, get_sync_store
from fieldsync.middleware.rate_limit import limiter
from main import app

from .conftest import FakeJobber, InMemorySyncStore, connection, graphql_response
from .test_entity_sync import JOB_NODE, QUOTE_NODE, REQUEST_NODE

API_KEY = "test-sync-key"
HEADERS = {"X-API-Key": API_KEY}


@pytest.fixture
def route_store():
    return InMemorySyncStore()


@pytest.fixture
def route_jobber():
    return FakeJobber()


@pytest.fixture
def api(monkeypatch, route_store, route_jobber):
    monkeypatch.setattr(app_settings, "sync_api_key", API_KEY)
    monkeypatch.setattr(app_settings, "jobber_accounts", "residential")
    monkeypatch.setattr(app_settings, "jobber_api_url", "https://jobber.test/api/graphql")
    monkeypatch.setattr(app_settings, "opportunities_account", "residential")
    monkeypatch.setattr(limiter, "enabled", False)

    async def http_client_override():
        async with httpx.AsyncClient(transport=httpx.MockTransport(route_jobber)) as client:
            yield client

    app.dependency_overrides[get_sync_store] = lambda: route_store
    app.dependency_overrides[get_http_client] = http_client_override
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestAuth:
    def test_missing_api_key(self, api):
        response = api.get("/sync/jobber/status/residential")

        assert response.status_code == 401

    def test_wrong_api_key(self, api):
        response = api.get("/sync/jobber/status/residential", headers={"X-API-Key": "nope"})

        assert response.status_code == 401

    def test_health_is_public(self, api):
        response = api.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestManualSync:
    def test_rejects_unknown_account(self, api):
        response = api.get("/sync/jobber/manual", params={"account": "commercial"}, headers=HEADERS)

        assert response.status_code == 400

    def test_failure_returns_500_with_errors_and_stats(self, api):
        response = api.get("/sync/jobber/manual", params={"account": "residential"}, headers=HEADERS)

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert "No token found for residential" in body["errors"][0]
        assert body["stats"]["quotesProcessed"] == 0

    def test_success_returns_stats(self, api, route_store, route_jobber):
        route_store.add_token("residential")
        route_store.opportunities_result = 3
        route_jobber.queue("SyncQuotes", graphql_response(connection("quotes", [QUOTE_NODE])))
        route_jobber.queue("SyncJobs", graphql_response(connection("jobs", [JOB_NODE])))
        route_jobber.queue("SyncRequests", graphql_response(connection("requests", [REQUEST_NODE])))

        response = api.get("/sync/jobber/manual", params={"account": "residential", "full": "true"}, headers=HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["stats"]["syncMode"] == "full"
        assert body["stats"]["opportunitiesComputed"] == 3
        assert route_store.statuses["residential"]["last_sync_status"] == "success"


class TestConnectionTest:
    def test_reports_failure_without_raising(self, api):
        response = api.get("/sync/jobber/test", params={"account": "residential"}, headers=HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert "No token found" in body["error"]

    def test_reports_account_name(self, api, route_store, route_jobber):
        route_store.add_token("residential")
        route_jobber.queue("TestConnection", graphql_response({"account": {"id": "a1", "name": "Acme Lawns"}}))

        response = api.get("/sync/jobber/test", params={"account": "residential"}, headers=HEADERS)

        assert response.json()["jobber_account"]["name"] == "Acme Lawns"


class TestStatus:
    def test_unknown_status_is_empty(self, api):
        response = api.get("/sync/jobber/status/residential", headers=HEADERS)

        assert response.status_code == 200
        assert response.json()["last_sync_status"] is None

    def test_returns_persisted_row(self, api, route_store):
        route_store.statuses["residential"] = {
            "id": "residential",
            "last_sync_status": "failed",
            "last_error": "boom",
        }

        body = api.get("/sync/jobber/status/residential", headers=HEADERS).json()

        assert body["last_sync_status"] == "failed"
        assert body["last_error"] == "boom"


class TestQueueSync:
    def test_enqueues_actor(self, api, monkeypatch):
        sent = []

        class _Message:
            message_id = "msg-1"

        def fake_send(account, force_full):
            sent.append((account, force_full))
            return _Message()

        from fieldsync.api.v1.routes import sync as sync_routes
        monkeypatch.setattr(sync_routes.sync_jobber_task, "send", fake_send)

        response = api.post("/sync/jobber", json={"account": "residential", "mode": "full"}, headers=HEADERS)

        assert response.status_code == 202
        assert response.json() == {"status": "queued", "account": "residential", "force_full": True, "message_id": "msg-1"}
        assert sent == [("residential", True)]
