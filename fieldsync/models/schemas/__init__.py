"""
Pydantic Schemas
Jobber records, sync state and API request/response models
"""

# Health check schemas
from .health import HealthResponse

# Jobber records and sync state
from .jobber import (
    CostFeedback,
    EntityKind,
    GraphQLResult,
    JobberJob,
    JobberQuote,
    JobberRequest,
    JobberToken,
    Page,
    SyncConfig,
    SyncMode,
    SyncStats,
    SyncStatus,
    SyncStatusValue,
)

# Sync route schemas
from .sync import (
    ConnectionTestResponse,
    SyncQueuedResponse,
    SyncRunResponse,
    SyncStatusResponse,
    SyncTriggerRequest,
)

__all__ = [
    # Health
    "HealthResponse",
    # Jobber
    "CostFeedback",
    "EntityKind",
    "GraphQLResult",
    "JobberJob",
    "JobberQuote",
    "JobberRequest",
    "JobberToken",
    "Page",
    "SyncConfig",
    "SyncMode",
    "SyncStats",
    "SyncStatus",
    "SyncStatusValue",
    # Sync routes
    "ConnectionTestResponse",
    "SyncQueuedResponse",
    "SyncRunResponse",
    "SyncStatusResponse",
    "SyncTriggerRequest",
]
