"""
Sync Schemas
Request/response models for the Jobber sync trigger routes
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from fieldsync.models.schemas.jobber import SyncMode, SyncStats


class SyncTriggerRequest(BaseModel):
    """
    Body for POST /sync/jobber.
    mode="full" forces a full sync; anything else lets the resolver decide.
    """
    account: str = Field(default="residential", min_length=1, max_length=64)
    mode: Optional[str] = None

    @property
    def force_full(self) -> bool:
        return (self.mode or "").lower() == SyncMode.FULL.value


class SyncQueuedResponse(BaseModel):
    status: str = "queued"
    account: str
    force_full: bool
    message_id: Optional[str] = None


class SyncRunResponse(BaseModel):
    """Response for the inline (manual) sync endpoint."""
    success: bool
    stats: SyncStats
    errors: List[str] = []


class ConnectionTestResponse(BaseModel):
    success: bool
    account: str
    jobber_account: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class SyncStatusResponse(BaseModel):
    """Persisted status row for one account."""
    account: str
    last_sync_at: Optional[datetime] = None
    last_sync_status: Optional[str] = None
    last_sync_type: Optional[str] = None
    last_full_sync_at: Optional[datetime] = None
    quotes_synced: Optional[int] = None
    jobs_synced: Optional[int] = None
    requests_synced: Optional[int] = None
    opportunities_computed: Optional[int] = None
    last_error: Optional[str] = None
