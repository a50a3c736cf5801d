"""
Sync mode resolution
Full vs. incremental, decided from the persisted status of the previous run
"""
import logging
from datetime import timedelta

from fieldsync.core.errors import PersistenceError
from fieldsync.models.schemas.jobber import SyncConfig, SyncMode, SyncStatusValue
from fieldsync.services.sync.database import SyncStore

logger = logging.getLogger(__name__)

# Absorbs clock skew and records updated just before the last watermark
SYNC_BUFFER = timedelta(minutes=5)


async def determine_sync_mode(store: SyncStore, account: str, force_full: bool = False) -> SyncConfig:
    """
    Determine the sync mode for a run.

    - forced → full
    - no prior successful run → full (self-heals after any failure)
    - otherwise → incremental since last_sync_at minus 5 minutes
    """
    if force_full:
        logger.info(f"Forced full sync requested for {account}")
        return SyncConfig(mode=SyncMode.FULL)

    try:
        status = await store.get_sync_status(account)
    except PersistenceError as e:
        logger.warning(f"Could not read sync status for {account}, running full sync: {e.message}")
        return SyncConfig(mode=SyncMode.FULL)

    if status is None or status.last_sync_at is None or status.last_sync_status != SyncStatusValue.SUCCESS:
        logger.info(f"No previous successful sync for {account}, running full sync")
        return SyncConfig(mode=SyncMode.FULL)

    sync_since = status.last_sync_at - SYNC_BUFFER
    logger.info(f"Incremental sync for {account} since {sync_since.isoformat()}")
    return SyncConfig(mode=SyncMode.INCREMENTAL, sync_since=sync_since)
