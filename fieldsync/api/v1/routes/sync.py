"""
Sync Routes
Trigger, inspect and diagnose Jobber syncs

All routes require X-API-Key.
"""
import logging

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from fieldsync.core.config import settings
from fieldsync.core.dependencies import get_http_client, get_sync_store
from fieldsync.core.errors import JobberSyncError
from fieldsync.core.security import sanitize_for_logging, verify_api_key
from fieldsync.middleware.rate_limit import (
    MANUAL_SYNC_LIMIT,
    QUEUED_SYNC_LIMIT,
    TEST_CONNECTION_LIMIT,
    limiter,
)
from fieldsync.models.schemas.sync import (
    ConnectionTestResponse,
    SyncQueuedResponse,
    SyncRunResponse,
    SyncStatusResponse,
    SyncTriggerRequest,
)
from fieldsync.services.jobs.tasks import sync_jobber_task
from fieldsync.services.sync.database import SyncStore
from fieldsync.services.sync.orchestration.jobber_sync import check_jobber_connection, run_jobber_sync

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync/jobber", tags=["sync"], dependencies=[Depends(verify_api_key)])


def require_enabled_account(account: str) -> str:
    """Reject accounts that are not listed in JOBBER_ACCOUNTS."""
    if account not in settings.enabled_accounts:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid account. Must be one of: {', '.join(settings.enabled_accounts)}"
        )
    return account


@router.post("", response_model=SyncQueuedResponse, status_code=202)
@limiter.limit(QUEUED_SYNC_LIMIT)
async def queue_sync(request: Request, body: SyncTriggerRequest):
    """
    Queue a sync on the Dramatiq worker.

    Returns immediately; poll /sync/jobber/status/{account} for the outcome.
    """
    account = require_enabled_account(body.account)

    message = sync_jobber_task.send(account, body.force_full)
    logger.info(f"📥 Queued Jobber sync for {account} (force_full={body.force_full}, message {message.message_id})")

    return SyncQueuedResponse(account=account, force_full=body.force_full, message_id=message.message_id)


@router.get("/manual", response_model=SyncRunResponse, response_model_by_alias=True)
@limiter.limit(MANUAL_SYNC_LIMIT)
async def manual_sync(
    request: Request,
    account: str = Query(default="residential"),
    full: bool = Query(default=False),
    store: SyncStore = Depends(get_sync_store),
    http_client: httpx.AsyncClient = Depends(get_http_client),
):
    """
    Run a sync inline and return its stats.

    200 with {success: true, stats} or 500 with {success: false, errors, stats}.
    """
    require_enabled_account(account)
    logger.info(f"Manual Jobber sync requested for {sanitize_for_logging(account)} (full={full})")

    stats = await run_jobber_sync(http_client, store, account, force_full=full)

    if stats.errors:
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "errors": stats.errors,
                "stats": stats.model_dump(mode="json", by_alias=True),
            },
        )

    return SyncRunResponse(success=True, stats=stats)


@router.get("/test", response_model=ConnectionTestResponse)
@limiter.limit(TEST_CONNECTION_LIMIT)
async def test_connection(
    request: Request,
    account: str = Query(default="residential"),
    store: SyncStore = Depends(get_sync_store),
    http_client: httpx.AsyncClient = Depends(get_http_client),
):
    """Check that the stored token works against the Jobber API."""
    require_enabled_account(account)

    try:
        result = await check_jobber_connection(http_client, store, account)
    except JobberSyncError as e:
        logger.warning(f"Jobber connection test failed for {account}: {e.message}")
        return ConnectionTestResponse(success=False, account=account, error=e.message)

    return ConnectionTestResponse(success=True, account=account, jobber_account=result["jobber_account"])


@router.get("/status/{account}", response_model=SyncStatusResponse)
async def sync_status(account: str, store: SyncStore = Depends(get_sync_store)):
    """Persisted status row for an account."""
    require_enabled_account(account)

    status = await store.get_sync_status(account)
    if status is None:
        return SyncStatusResponse(account=account)

    return SyncStatusResponse(
        account=account,
        **status.model_dump(mode="json", exclude={"id"}),
    )
