"""
Jobber sync orchestrator
Runs one sync for one account end to end

1. Resolve full vs. incremental
2. Mark the status row in progress
3. Acquire a token
4. Sync quotes, jobs and requests concurrently
5. Recompute opportunities (eligible account only)
6. Persist success or failure

Never raises. Every failure lands in SyncStats.errors.
"""
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from fieldsync.core.config import Settings, settings as default_settings
from fieldsync.models.schemas.jobber import EntityKind, SyncConfig, SyncStats
from fieldsync.services.sync.database import SyncStore
from fieldsync.services.sync.mode import determine_sync_mode
from fieldsync.services.sync.oauth import JobberTokenManager
from fieldsync.services.sync.orchestration.entity_sync import sync_entity
from fieldsync.services.sync.orchestration.jobber_entities import ENTITIES
from fieldsync.services.sync.providers.jobber import JobberGraphQLClient

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


def _first_error(exc: BaseException) -> BaseException:
    # TaskGroup wraps failures; report the first leaf
    while isinstance(exc, BaseExceptionGroup) and exc.exceptions:
        exc = exc.exceptions[0]
    return exc


def _error_message(exc: BaseException) -> str:
    return getattr(exc, "message", None) or str(exc) or type(exc).__name__


async def _sync_all_entities(
    client: JobberGraphQLClient,
    store: SyncStore,
    access_token: str,
    account: str,
    config: SyncConfig,
    sleep: Sleep,
) -> Dict[EntityKind, int]:
    """Fan out the three entity syncs; the first failure cancels the rest."""
    async with asyncio.TaskGroup() as tg:
        tasks = {
            kind: tg.create_task(
                sync_entity(client, store, access_token, account, entity, config, sleep=sleep),
                name=f"sync-{account}-{kind.value}",
            )
            for kind, entity in ENTITIES.items()
        }
    return {kind: task.result() for kind, task in tasks.items()}


async def run_jobber_sync(
    http_client: httpx.AsyncClient,
    store: SyncStore,
    account: str,
    force_full: bool = False,
    *,
    config: Optional[Settings] = None,
    sleep: Sleep = asyncio.sleep,
) -> SyncStats:
    """
    Sync quotes, jobs and requests for one Jobber account.

    Args:
        http_client: Shared client for both the token endpoint and GraphQL
        store: Storage handle for tokens, status and rows
        account: Jobber account name (e.g. "residential")
        force_full: Ignore the previous watermark and run a full sync

    Returns:
        SyncStats; success means stats.errors is empty
    """
    config = config or default_settings
    started = time.monotonic()
    stats = SyncStats()

    logger.info(f"🚀 Starting Jobber sync for {account}")

    try:
        sync_config = await determine_sync_mode(store, account, force_full)
        stats.sync_mode = sync_config.mode

        await store.mark_sync_in_progress(account)

        token_manager = JobberTokenManager(http_client, store, config=config)
        client = JobberGraphQLClient(http_client, token_manager, config=config, sleep=sleep)

        access_token = await token_manager.get_access_token(account)

        try:
            counts = await _sync_all_entities(client, store, access_token, account, sync_config, sleep)
        except BaseExceptionGroup as group:
            raise _first_error(group)

        stats.quotes_processed = counts[EntityKind.QUOTES]
        stats.jobs_processed = counts[EntityKind.JOBS]
        stats.requests_processed = counts[EntityKind.REQUESTS]

        if account == config.opportunities_account:
            logger.info(f"📊 Computing opportunities for {account}...")
            stats.opportunities_computed = await store.compute_opportunities()
            logger.info(f"   Computed {stats.opportunities_computed} opportunities")

        await store.mark_sync_success(account, sync_config, {
            "quotes": stats.quotes_processed,
            "jobs": stats.jobs_processed,
            "requests": stats.requests_processed,
            "opportunities": stats.opportunities_computed,
        })

    except Exception as e:
        message = _error_message(e)
        logger.error(f"❌ Jobber sync failed for {account}: {message}", exc_info=True)
        stats.errors.append(message)

        try:
            await store.mark_sync_failed(account, message)
        except Exception as status_error:
            logger.error(f"Failed to record sync failure for {account}: {status_error}")

    stats.duration_seconds = round(time.monotonic() - started, 3)

    if stats.succeeded:
        logger.info(
            f"✅ Jobber sync complete for {account} ({stats.sync_mode.value}): "
            f"{stats.quotes_processed} quotes, {stats.jobs_processed} jobs, "
            f"{stats.requests_processed} requests in {stats.duration_seconds:.1f}s"
        )

    return stats


async def check_jobber_connection(
    http_client: httpx.AsyncClient,
    store: SyncStore,
    account: str,
    *,
    config: Optional[Settings] = None,
) -> Dict[str, Any]:
    """
    Connection diagnostic: acquire a token and read the Jobber account name.

    Raises the underlying JobberSyncError on failure so callers can report it.
    """
    config = config or default_settings
    token_manager = JobberTokenManager(http_client, store, config=config)
    client = JobberGraphQLClient(http_client, token_manager, config=config)

    access_token = await token_manager.get_access_token(account)
    jobber_account = await client.test_connection(access_token, account)
    logger.info(f"✅ Jobber connection OK for {account}: {jobber_account.get('name')}")
    return {"account": account, "jobber_account": jobber_account}
