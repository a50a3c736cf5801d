"""
Jobber Schemas
Typed shapes for tokens, sync state, GraphQL responses and remote records
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SyncMode(str, Enum):
    FULL = "full"
    INCREMENTAL = "incremental"


class SyncStatusValue(str, Enum):
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    FAILED = "failed"


class EntityKind(str, Enum):
    QUOTES = "quotes"
    JOBS = "jobs"
    REQUESTS = "requests"


# ============================================================================
# PERSISTED STATE
# ============================================================================

class JobberToken(BaseModel):
    """Row of jobber_tokens (id = account)."""
    model_config = ConfigDict(extra="ignore")

    id: str
    access_token: str
    refresh_token: str
    access_token_expires_at: datetime


class SyncStatus(BaseModel):
    """Row of jobber_sync_status (id = account)."""
    model_config = ConfigDict(extra="ignore")

    id: str
    last_sync_at: Optional[datetime] = None
    last_sync_status: Optional[SyncStatusValue] = None
    last_sync_type: Optional[SyncMode] = None
    last_full_sync_at: Optional[datetime] = None
    quotes_synced: Optional[int] = None
    jobs_synced: Optional[int] = None
    requests_synced: Optional[int] = None
    opportunities_computed: Optional[int] = None
    last_error: Optional[str] = None


class SyncConfig(BaseModel):
    """Per-run sync mode. Computed once, never mutated."""
    model_config = ConfigDict(frozen=True)

    mode: SyncMode
    sync_since: Optional[datetime] = None


# ============================================================================
# GRAPHQL RESPONSE
# ============================================================================

class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class ThrottleStatus(_CamelModel):
    maximum_available: Optional[float] = None
    currently_available: Optional[float] = None
    restore_rate: Optional[float] = None


class CostFeedback(_CamelModel):
    """extensions.cost of a GraphQL response."""
    requested_query_cost: Optional[float] = None
    actual_query_cost: Optional[float] = None
    # Jobber reports an object; older responses used a bare status string
    throttle_status: Union[ThrottleStatus, str, None] = None

    @property
    def is_throttled(self) -> bool:
        return isinstance(self.throttle_status, str) and self.throttle_status.upper() == "THROTTLED"

    @property
    def budget(self) -> Optional[ThrottleStatus]:
        return self.throttle_status if isinstance(self.throttle_status, ThrottleStatus) else None


class GraphQLResult(BaseModel):
    data: Dict[str, Any]
    cost: Optional[CostFeedback] = None


class PageInfo(_CamelModel):
    has_next_page: bool = False
    end_cursor: Optional[str] = None


NodeT = TypeVar("NodeT", bound=BaseModel)


class Page(BaseModel, Generic[NodeT]):
    """One page of a Jobber connection."""
    model_config = ConfigDict(populate_by_name=True)

    nodes: List[NodeT] = Field(default_factory=list)
    page_info: PageInfo = Field(default_factory=PageInfo, alias="pageInfo")


# ============================================================================
# REMOTE RECORDS
# ============================================================================

class Address(_CamelModel):
    street: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    postal_code: Optional[str] = None


class Property(_CamelModel):
    address: Optional[Address] = None


class ClientRef(_CamelModel):
    id: Optional[str] = None
    name: Optional[str] = None
    billing_address: Optional[Address] = None


class QuoteAmounts(_CamelModel):
    total: Optional[float] = None
    subtotal: Optional[float] = None
    discount_amount: Optional[float] = None


class QuoteTransitions(_CamelModel):
    approved_at: Optional[str] = None
    converted_at: Optional[str] = None


class IdRef(_CamelModel):
    id: Optional[str] = None


class QuoteRef(_CamelModel):
    id: Optional[str] = None
    quote_number: Optional[int] = None


class UserName(_CamelModel):
    full: Optional[str] = None


class AssignedUser(_CamelModel):
    name: Optional[UserName] = None


class AssignedUsers(_CamelModel):
    nodes: List[AssignedUser] = Field(default_factory=list)


class Assessment(_CamelModel):
    start_at: Optional[str] = None
    completed_at: Optional[str] = None
    assigned_users: Optional[AssignedUsers] = None


class JobberQuote(_CamelModel):
    id: str
    quote_number: Optional[int] = None
    title: Optional[str] = None
    quote_status: Optional[str] = None
    amounts: Optional[QuoteAmounts] = None
    client: Optional[ClientRef] = None
    property_: Optional[Property] = Field(default=None, alias="property")
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    sent_at: Optional[str] = None
    last_transitioned: Optional[QuoteTransitions] = None
    request: Optional[IdRef] = None


class JobberJob(_CamelModel):
    id: str
    job_number: Optional[int] = None
    title: Optional[str] = None
    job_status: Optional[str] = None
    total: Optional[float] = None
    invoiced_total: Optional[float] = None
    client: Optional[ClientRef] = None
    property_: Optional[Property] = Field(default=None, alias="property")
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    start_at: Optional[str] = None
    end_at: Optional[str] = None
    quote: Optional[QuoteRef] = None


class JobberRequest(_CamelModel):
    id: str
    title: Optional[str] = None
    request_status: Optional[str] = None
    source: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    client: Optional[ClientRef] = None
    property_: Optional[Property] = Field(default=None, alias="property")
    assessment: Optional[Assessment] = None


# ============================================================================
# RUN RESULT
# ============================================================================

class SyncStats(BaseModel):
    """
    Outcome of one orchestrated run.
    Success is an empty errors list; the orchestrator never raises.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    quotes_processed: int = 0
    jobs_processed: int = 0
    requests_processed: int = 0
    opportunities_computed: int = 0
    sync_mode: SyncMode = SyncMode.FULL
    errors: List[str] = Field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return not self.errors
