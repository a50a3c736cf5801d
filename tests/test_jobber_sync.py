"""End-to-end tests for the sync orchestrator against a fake Jobber."""
from datetime import datetime, timedelta, timezone

import httpx

from fieldsync.models.schemas.jobber import SyncMode
from fieldsync.services.sync.orchestration.jobber_sync import check_jobber_connection, run_jobber_sync

from .conftest import connection, graphql_response
from .test_entity_sync import JOB_NODE, QUOTE_NODE, REQUEST_NODE


def _queue_one_page_each(jobber):
    jobber.queue("SyncQuotes", graphql_response(connection("quotes", [QUOTE_NODE])))
    jobber.queue("SyncJobs", graphql_response(connection("jobs", [JOB_NODE, {**JOB_NODE, "id": "j2"}])))
    jobber.queue("SyncRequests", graphql_response(connection("requests", [REQUEST_NODE])))


class TestRunJobberSync:
    async def test_missing_token_fails_before_any_query(self, http_client, store, settings, jobber, sleep):
        stats = await run_jobber_sync(http_client, store, "residential", config=settings, sleep=sleep)

        assert stats.errors == [
            "No token found for residential. Please connect via OAuth first at /settings/integrations."
        ]
        assert jobber.graphql_requests == []
        assert store.statuses["residential"]["last_sync_status"] == "failed"
        assert "No token found" in store.statuses["residential"]["last_error"]

    async def test_first_run_is_full_and_records_success(self, http_client, store, settings, jobber, sleep):
        store.add_token("residential")
        store.opportunities_result = 7
        _queue_one_page_each(jobber)

        stats = await run_jobber_sync(http_client, store, "residential", config=settings, sleep=sleep)

        assert stats.errors == []
        assert stats.succeeded
        assert stats.sync_mode == SyncMode.FULL
        assert (stats.quotes_processed, stats.jobs_processed, stats.requests_processed) == (1, 2, 1)
        assert stats.opportunities_computed == 7
        assert store.rpc_calls == 1
        assert stats.duration_seconds >= 0

        status = store.statuses["residential"]
        assert status["last_sync_status"] == "success"
        assert status["last_sync_type"] == "full"
        assert status["quotes_synced"] == 1
        assert status["jobs_synced"] == 2
        assert status["opportunities_computed"] == 7
        assert status["last_full_sync_at"] == status["last_sync_at"]

    async def test_ineligible_account_skips_opportunities(self, http_client, store, settings, jobber, sleep):
        store.add_token("builders")
        _queue_one_page_each(jobber)

        stats = await run_jobber_sync(http_client, store, "builders", config=settings, sleep=sleep)

        assert stats.errors == []
        assert stats.opportunities_computed == 0
        assert store.rpc_calls == 0

    async def test_second_run_is_incremental(self, http_client, store, settings, jobber, sleep):
        store.add_token("residential")
        last_full = datetime(2025, 5, 1, tzinfo=timezone.utc)
        last_sync = datetime.now(timezone.utc) - timedelta(days=1)
        store.statuses["residential"] = {
            "id": "residential",
            "last_sync_at": last_sync,
            "last_sync_status": "success",
            "last_full_sync_at": last_full,
        }
        _queue_one_page_each(jobber)

        stats = await run_jobber_sync(http_client, store, "residential", config=settings, sleep=sleep)

        assert stats.sync_mode == SyncMode.INCREMENTAL
        assert store.statuses["residential"]["last_sync_type"] == "incremental"
        assert store.statuses["residential"]["last_full_sync_at"] == last_full

        since = (last_sync - timedelta(minutes=5)).strftime("%Y-%m-%dT%H:%M:%SZ")
        assert f'updatedAt: {{ after: "{since}" }}' in jobber.queries("SyncQuotes")[0]

    async def test_force_full(self, http_client, store, settings, jobber, sleep):
        store.add_token("residential")
        store.statuses["residential"] = {
            "id": "residential",
            "last_sync_at": datetime.now(timezone.utc),
            "last_sync_status": "success",
        }
        _queue_one_page_each(jobber)

        stats = await run_jobber_sync(http_client, store, "residential", True, config=settings, sleep=sleep)

        assert stats.sync_mode == SyncMode.FULL

    async def test_unreadable_status_runs_full_sync(self, http_client, store, settings, jobber, sleep):
        store.add_token("residential")
        store.fail_status_lookup = True
        _queue_one_page_each(jobber)

        stats = await run_jobber_sync(http_client, store, "residential", config=settings, sleep=sleep)

        assert stats.errors == []
        assert stats.sync_mode == SyncMode.FULL
        assert store.statuses["residential"]["last_sync_status"] == "success"

    async def test_entity_failure_is_recorded_not_raised(self, http_client, store, settings, jobber, sleep):
        store.add_token("residential")
        _queue_one_page_each(jobber)
        jobber.graphql["SyncJobs"] = [httpx.Response(403, text="forbidden")]

        stats = await run_jobber_sync(http_client, store, "residential", config=settings, sleep=sleep)

        assert len(stats.errors) == 1
        assert "403" in stats.errors[0]
        assert store.rpc_calls == 0
        assert store.statuses["residential"]["last_sync_status"] == "failed"

    async def test_failure_to_record_failure_is_swallowed(self, http_client, store, settings, sleep):
        store.fail_mark_failed = True

        stats = await run_jobber_sync(http_client, store, "residential", config=settings, sleep=sleep)

        assert len(stats.errors) == 1

    async def test_expiring_token_is_refreshed_before_querying(self, http_client, store, settings, jobber, sleep):
        store.add_token("residential", access_token="old", expires_in=timedelta(minutes=10))
        jobber.token_responses.append(httpx.Response(200, json={"access_token": "new", "expires_in": 7200}))
        _queue_one_page_each(jobber)

        stats = await run_jobber_sync(http_client, store, "residential", config=settings, sleep=sleep)

        assert stats.errors == []
        assert jobber.requests[0] is jobber.token_requests[0]
        assert {r.headers["Authorization"] for r in jobber.graphql_requests} == {"Bearer new"}

    async def test_stats_serialise_with_camel_case(self, http_client, store, settings, sleep):
        stats = await run_jobber_sync(http_client, store, "residential", config=settings, sleep=sleep)

        body = stats.model_dump(by_alias=True)
        assert set(body) >= {"quotesProcessed", "jobsProcessed", "requestsProcessed",
                             "opportunitiesComputed", "syncMode", "errors", "durationSeconds"}


class TestCheckJobberConnection:
    async def test_reports_account(self, http_client, store, settings, jobber):
        store.add_token("residential")
        jobber.queue("TestConnection", graphql_response({"account": {"id": "a1", "name": "Acme Lawns"}}))

        result = await check_jobber_connection(http_client, store, "residential", config=settings)

        assert result == {"account": "residential", "jobber_account": {"id": "a1", "name": "Acme Lawns"}}
