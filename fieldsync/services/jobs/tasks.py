"""
Dramatiq Background Tasks
Runs Jobber syncs outside the request cycle
"""
import asyncio
import logging
from typing import Any, Dict

import dramatiq

from fieldsync.core.dependencies import create_http_client, create_supabase_client
from fieldsync.services.jobs.broker import broker  # must be set before actors are declared
from fieldsync.services.sync.database import SupabaseSyncStore
from fieldsync.services.sync.orchestration.jobber_sync import run_jobber_sync

logger = logging.getLogger(__name__)


async def _run_sync_with_cleanup(account: str, force_full: bool) -> Dict[str, Any]:
    """
    Build fresh clients for this run and close them in the same event loop.
    Worker processes can't share the API process's globals.
    """
    store = SupabaseSyncStore(create_supabase_client())
    http_client = create_http_client()
    try:
        stats = await run_jobber_sync(http_client, store, account, force_full)
    finally:
        await http_client.aclose()
    return stats.model_dump(mode="json", by_alias=True)


# The orchestrator records its own failures and the next run self-heals with
# a full sync, so the actor is never retried
@dramatiq.actor(max_retries=0, queue_name="jobber_sync")
def sync_jobber_task(account: str, force_full: bool = False):
    """
    Background job for one Jobber account sync.

    Args:
        account: Jobber account name
        force_full: Skip the watermark and run a full sync
    """
    logger.info(f"🚀 Starting queued Jobber sync for {account} (force_full={force_full})")

    result = asyncio.run(_run_sync_with_cleanup(account, force_full))

    if result["errors"]:
        logger.error(f"❌ Queued Jobber sync for {account} failed: {'; '.join(result['errors'])}")
    else:
        logger.info(
            f"✅ Queued Jobber sync for {account} complete: "
            f"{result['quotesProcessed']} quotes, {result['jobsProcessed']} jobs, "
            f"{result['requestsProcessed']} requests"
        )
    return result
