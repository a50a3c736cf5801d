"""
Jobber Sync System
Token lifecycle, retrying GraphQL transport and the sync orchestrator
"""
from fieldsync.services.sync.database import SupabaseSyncStore, SyncStore
from fieldsync.services.sync.mode import determine_sync_mode
from fieldsync.services.sync.oauth import JobberTokenManager
from fieldsync.services.sync.orchestration.jobber_sync import check_jobber_connection, run_jobber_sync

__all__ = [
    "SupabaseSyncStore",
    "SyncStore",
    "determine_sync_mode",
    "JobberTokenManager",
    "check_jobber_connection",
    "run_jobber_sync",
]
