"""Shared doubles for the Jobber sync tests: in-memory store, fake sleep, fake Jobber."""
import json
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from fieldsync.core.config import Settings
from fieldsync.core.errors import PersistenceError
from fieldsync.models.schemas.jobber import (
    JobberToken,
    SyncConfig,
    SyncMode,
    SyncStatus,
    SyncStatusValue,
)

GRAPHQL_URL = "https://jobber.test/api/graphql"
TOKEN_URL = "https://jobber.test/api/oauth/token"


class InMemorySyncStore:
    """SyncStore double that keeps everything in dicts and records every call."""

    def __init__(self) -> None:
        self.tokens: Dict[str, JobberToken] = {}
        self.statuses: Dict[str, Dict[str, Any]] = {}
        self.tables: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.upsert_calls: List[Dict[str, Any]] = []
        self.saved_tokens: List[Dict[str, Any]] = []
        self.rpc_calls = 0
        self.opportunities_result = 0
        self.fail_tables: set = set()
        self.fail_token_lookup = False
        self.fail_token_save = False
        self.fail_mark_failed = False
        self.fail_status_lookup = False

    def add_token(self, account: str, access_token: str = "access-1", refresh_token: str = "refresh-1",
                  expires_in: timedelta = timedelta(hours=2)) -> None:
        self.tokens[account] = JobberToken(
            id=account,
            access_token=access_token,
            refresh_token=refresh_token,
            access_token_expires_at=datetime.now(timezone.utc) + expires_in,
        )

    async def get_token(self, account: str) -> Optional[JobberToken]:
        if self.fail_token_lookup:
            raise PersistenceError(f"Failed to look up token for {account}: connection refused")
        return self.tokens.get(account)

    async def save_token(self, account, access_token, refresh_token, expires_at) -> None:
        if self.fail_token_save:
            raise PersistenceError("token table unavailable")
        self.saved_tokens.append({
            "account": account,
            "access_token": access_token,
            "refresh_token": refresh_token,
            "expires_at": expires_at,
        })
        self.tokens[account] = JobberToken(
            id=account,
            access_token=access_token,
            refresh_token=refresh_token,
            access_token_expires_at=expires_at,
        )

    async def get_sync_status(self, account: str) -> Optional[SyncStatus]:
        if self.fail_status_lookup:
            raise PersistenceError(f"Failed to read sync status for {account}: connection refused")
        row = self.statuses.get(account)
        return SyncStatus.model_validate(row) if row else None

    async def mark_sync_in_progress(self, account: str) -> None:
        row = self.statuses.setdefault(account, {"id": account})
        row.update({"last_sync_status": SyncStatusValue.IN_PROGRESS.value, "last_error": None})

    async def mark_sync_success(self, account: str, config: SyncConfig, counts: Dict[str, int]) -> None:
        now = datetime.now(timezone.utc)
        row = self.statuses.setdefault(account, {"id": account})
        row.update({
            "last_sync_at": now,
            "last_sync_type": config.mode.value,
            "last_sync_status": SyncStatusValue.SUCCESS.value,
            "last_error": None,
            "quotes_synced": counts.get("quotes", 0),
            "jobs_synced": counts.get("jobs", 0),
            "requests_synced": counts.get("requests", 0),
            "opportunities_computed": counts.get("opportunities", 0),
        })
        if config.mode == SyncMode.FULL:
            row["last_full_sync_at"] = now

    async def mark_sync_failed(self, account: str, error_message: str) -> None:
        if self.fail_mark_failed:
            raise RuntimeError("status table unavailable")
        row = self.statuses.setdefault(account, {"id": account})
        row.update({"last_sync_status": SyncStatusValue.FAILED.value, "last_error": error_message})

    async def upsert_rows(self, table: str, rows: List[Dict[str, Any]], on_conflict: str = "jobber_id") -> None:
        self.upsert_calls.append({"table": table, "count": len(rows), "on_conflict": on_conflict})
        if table in self.fail_tables:
            raise PersistenceError(f"Upsert into {table} failed: duplicate key")
        target = self.tables.setdefault(table, {})
        for row in rows:
            target[row[on_conflict]] = row

    async def compute_opportunities(self) -> int:
        self.rpc_calls += 1
        return self.opportunities_result


class RecordingSleep:
    """Async sleep replacement that returns immediately and remembers each delay."""

    def __init__(self) -> None:
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def _fresh(response: httpx.Response) -> httpx.Response:
    # Responses can be served more than once; hand out a copy each time
    return httpx.Response(response.status_code, headers=response.headers, content=response.content)


class FakeJobber:
    """
    httpx handler standing in for both Jobber endpoints.

    GraphQL responses are queued per operation name (SyncQuotes, SyncJobs, ...);
    the last queued response repeats once the queue runs dry.
    """

    def __init__(self) -> None:
        self.graphql: Dict[str, List[Any]] = {}
        self.token_responses: List[httpx.Response] = []
        self.requests: List[httpx.Request] = []

    def queue(self, operation: str, *responses: Any) -> None:
        self.graphql.setdefault(operation, []).extend(responses)

    @property
    def graphql_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if str(r.url) == GRAPHQL_URL]

    @property
    def token_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if str(r.url) == TOKEN_URL]

    def queries(self, operation: str) -> List[str]:
        found = []
        for request in self.graphql_requests:
            query = json.loads(request.content)["query"]
            if query.startswith(f"query {operation} "):
                found.append(query)
        return found

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if str(request.url) == TOKEN_URL:
            if not self.token_responses:
                raise AssertionError("Unexpected token refresh")
            response = self.token_responses.pop(0) if len(self.token_responses) > 1 else self.token_responses[0]
            return _fresh(response)

        query = json.loads(request.content)["query"]
        operation = query.split()[1]
        queued = self.graphql.get(operation)
        if not queued:
            raise AssertionError(f"No response queued for {operation}")

        response = queued.pop(0) if len(queued) > 1 else queued[0]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(request)
        return _fresh(response)


def graphql_response(data: Optional[Dict[str, Any]] = None, *, errors: Optional[List[Dict[str, Any]]] = None,
                     cost: Optional[Dict[str, Any]] = None, status_code: int = 200,
                     headers: Optional[Dict[str, str]] = None) -> httpx.Response:
    body: Dict[str, Any] = {}
    if data is not None:
        body["data"] = data
    if errors is not None:
        body["errors"] = errors
    if cost is not None:
        body["extensions"] = {"cost": cost}
    return httpx.Response(status_code, json=body, headers=headers)


def connection(kind: str, nodes: List[Dict[str, Any]], *, has_next: bool = False,
               cursor: Optional[str] = None) -> Dict[str, Any]:
    return {kind: {"nodes": nodes, "pageInfo": {"hasNextPage": has_next, "endCursor": cursor}}}


def cost_block(available: float, *, actual: float = 1000, restore: float = 500,
               maximum: float = 10000) -> Dict[str, Any]:
    return {
        "requestedQueryCost": actual,
        "actualQueryCost": actual,
        "throttleStatus": {
            "maximumAvailable": maximum,
            "currentlyAvailable": available,
            "restoreRate": restore,
        },
    }


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        environment="test",
        jobber_client_id="client-id",
        jobber_client_secret="client-secret",
        jobber_api_url=GRAPHQL_URL,
        jobber_token_url=TOKEN_URL,
        jobber_accounts="residential,builders",
        opportunities_account="residential",
    )


@pytest.fixture
def store() -> InMemorySyncStore:
    return InMemorySyncStore()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def jobber() -> FakeJobber:
    return FakeJobber()


@pytest.fixture
async def http_client(jobber: FakeJobber):
    async with httpx.AsyncClient(transport=httpx.MockTransport(jobber)) as client:
        yield client


@pytest.fixture
def fixed_now() -> Callable[[], datetime]:
    moment = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
    return lambda: moment
