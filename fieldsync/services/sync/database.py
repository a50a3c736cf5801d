"""
Database helper functions for the Jobber sync engine
Handles tokens, sync status rows, batch upserts and the opportunities RPC

One SupabaseSyncStore is constructed per run and passed into every component.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

from postgrest.exceptions import APIError
from supabase import Client

from fieldsync.core.errors import PersistenceError
from fieldsync.models.schemas.jobber import (
    JobberToken,
    SyncConfig,
    SyncMode,
    SyncStatus,
    SyncStatusValue,
)

logger = logging.getLogger(__name__)

TOKENS_TABLE = "jobber_tokens"
SYNC_STATUS_TABLE = "jobber_sync_status"
OPPORTUNITIES_RPC = "compute_api_opportunities"


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SyncStore(Protocol):
    """Storage collaborator used by the sync engine."""

    async def get_token(self, account: str) -> Optional[JobberToken]: ...

    async def save_token(
        self,
        account: str,
        access_token: str,
        refresh_token: str,
        expires_at: datetime,
    ) -> None: ...

    async def get_sync_status(self, account: str) -> Optional[SyncStatus]: ...

    async def mark_sync_in_progress(self, account: str) -> None: ...

    async def mark_sync_success(self, account: str, config: SyncConfig, counts: Dict[str, int]) -> None: ...

    async def mark_sync_failed(self, account: str, error_message: str) -> None: ...

    async def upsert_rows(self, table: str, rows: List[Dict[str, Any]], on_conflict: str = "jobber_id") -> None: ...

    async def compute_opportunities(self) -> int: ...


class SupabaseSyncStore:
    """
    SyncStore backed by the Supabase service-role client.

    Every write is its own atomic unit; there are no cross-table transactions.
    """

    def __init__(self, supabase: Client):
        self.supabase = supabase

    # ========================================================================
    # TOKENS
    # ========================================================================

    async def get_token(self, account: str) -> Optional[JobberToken]:
        """Load the token row for an account, or None if never connected."""
        try:
            result = self.supabase.table(TOKENS_TABLE)\
                .select("*")\
                .eq("id", account)\
                .maybe_single()\
                .execute()
        except APIError as e:
            logger.error(f"Token lookup error for {account}: {e.message}")
            raise PersistenceError(f"Failed to look up token for {account}: {e.message}", detail=e.details) from e

        if result is None or not result.data:
            return None
        return JobberToken.model_validate(result.data)

    async def save_token(
        self,
        account: str,
        access_token: str,
        refresh_token: str,
        expires_at: datetime,
    ) -> None:
        try:
            self.supabase.table(TOKENS_TABLE)\
                .update({
                    "access_token": access_token,
                    "refresh_token": refresh_token,
                    "access_token_expires_at": expires_at.isoformat(),
                    "updated_at": _utcnow_iso(),
                })\
                .eq("id", account)\
                .execute()
        except APIError as e:
            raise PersistenceError(f"Failed to save refreshed token for {account}: {e.message}", detail=e.details) from e

    # ========================================================================
    # SYNC STATUS
    # ========================================================================

    async def get_sync_status(self, account: str) -> Optional[SyncStatus]:
        try:
            result = self.supabase.table(SYNC_STATUS_TABLE)\
                .select("*")\
                .eq("id", account)\
                .maybe_single()\
                .execute()
        except APIError as e:
            raise PersistenceError(f"Failed to read sync status for {account}: {e.message}", detail=e.details) from e

        if result is None or not result.data:
            return None
        return SyncStatus.model_validate(result.data)

    async def mark_sync_in_progress(self, account: str) -> None:
        # Upsert so the first run creates the row
        self.supabase.table(SYNC_STATUS_TABLE).upsert({
            "id": account,
            "last_sync_status": SyncStatusValue.IN_PROGRESS.value,
            "last_error": None,
            "updated_at": _utcnow_iso(),
        }, on_conflict="id").execute()

    async def mark_sync_success(self, account: str, config: SyncConfig, counts: Dict[str, int]) -> None:
        now = _utcnow_iso()
        payload = {
            "last_sync_at": now,
            "last_sync_type": config.mode.value,
            "last_sync_status": SyncStatusValue.SUCCESS.value,
            "last_error": None,
            "quotes_synced": counts.get("quotes", 0),
            "jobs_synced": counts.get("jobs", 0),
            "requests_synced": counts.get("requests", 0),
            "opportunities_computed": counts.get("opportunities", 0),
            "updated_at": now,
        }
        if config.mode == SyncMode.FULL:
            payload["last_full_sync_at"] = now

        self.supabase.table(SYNC_STATUS_TABLE).update(payload).eq("id", account).execute()

    async def mark_sync_failed(self, account: str, error_message: str) -> None:
        self.supabase.table(SYNC_STATUS_TABLE).update({
            "last_sync_status": SyncStatusValue.FAILED.value,
            "last_error": error_message,
            "updated_at": _utcnow_iso(),
        }).eq("id", account).execute()

    # ========================================================================
    # RECORDS
    # ========================================================================

    async def upsert_rows(self, table: str, rows: List[Dict[str, Any]], on_conflict: str = "jobber_id") -> None:
        """Idempotent upsert keyed by on_conflict. Raises PersistenceError on failure."""
        if not rows:
            return
        try:
            self.supabase.table(table).upsert(rows, on_conflict=on_conflict).execute()
        except APIError as e:
            raise PersistenceError(f"Upsert into {table} failed: {e.message}", detail=e.details) from e

    async def compute_opportunities(self) -> int:
        """Run the derived-aggregate RPC and return the number of rows it produced."""
        try:
            result = self.supabase.rpc(OPPORTUNITIES_RPC).execute()
        except APIError as e:
            logger.error(f"Error computing opportunities: {e.message}")
            raise PersistenceError(f"Failed to compute opportunities: {e.message}", detail=e.details) from e

        return int(result.data or 0)
