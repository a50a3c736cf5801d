"""
Jobber entity definitions
One tagged definition per entity kind: destination table, query builder,
page extractor and row normalizer

Rows are keyed by jobber_id and never deleted; rows that fall out of the
lookback window simply stop being refreshed.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Generic, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from fieldsync.core.errors import PageExtractionError
from fieldsync.models.schemas.jobber import (
    Address,
    EntityKind,
    JobberJob,
    JobberQuote,
    JobberRequest,
    Page,
    SyncConfig,
)
from fieldsync.services.sync.queries import build_query

NodeT = TypeVar("NodeT", bound=BaseModel)

Row = Dict[str, Any]


def _synced_at() -> str:
    return datetime.now(timezone.utc).isoformat()


def _raw(node: BaseModel) -> Dict[str, Any]:
    return node.model_dump(mode="json", by_alias=True, exclude_unset=True)


def _lower(value: Optional[str]) -> Optional[str]:
    return value.lower() if value else value


def _address_columns(addr: Optional[Address]) -> Row:
    return {
        "service_street": addr.street if addr else None,
        "service_city": addr.city if addr else None,
        "service_state": addr.province if addr else None,
        "service_zip": addr.postal_code if addr else None,
    }


# ============================================================================
# NORMALIZERS
# ============================================================================

def normalize_quote(q: JobberQuote) -> Row:
    """
    Flatten a Jobber quote into a jobber_api_quotes row.

    Falls back to the client's billing address when the quote has no property.
    """
    addr = (q.property_.address if q.property_ else None) or (q.client.billing_address if q.client else None)
    amounts = q.amounts
    transitions = q.last_transitioned

    return {
        "jobber_id": q.id,
        "quote_number": q.quote_number,
        "title": q.title,
        "status": _lower(q.quote_status),
        "total": (amounts.total if amounts else None) or 0,
        "subtotal": (amounts.subtotal if amounts else None) or 0,
        "discount": (amounts.discount_amount if amounts else None) or 0,
        "client_jobber_id": q.client.id if q.client else None,
        "client_name": q.client.name if q.client else None,
        **_address_columns(addr),
        "drafted_at": q.created_at,
        "sent_at": q.sent_at,
        "approved_at": transitions.approved_at if transitions else None,
        "converted_at": transitions.converted_at if transitions else None,
        "request_jobber_id": q.request.id if q.request else None,
        "updated_at_jobber": q.updated_at,
        "synced_at": _synced_at(),
        "raw_data": _raw(q),
    }


def normalize_job(j: JobberJob) -> Row:
    """Flatten a Jobber job into a jobber_api_jobs row."""
    addr = j.property_.address if j.property_ else None

    return {
        "jobber_id": j.id,
        "job_number": j.job_number,
        "title": j.title,
        "status": _lower(j.job_status),
        "total": j.total or 0,
        "invoiced_total": j.invoiced_total or 0,
        "client_jobber_id": j.client.id if j.client else None,
        "client_name": j.client.name if j.client else None,
        **_address_columns(addr),
        "created_at_jobber": j.created_at,
        "scheduled_start_at": j.start_at,
        "completed_at": j.end_at,
        "quote_jobber_id": j.quote.id if j.quote else None,
        "quote_number": j.quote.quote_number if j.quote else None,
        "updated_at_jobber": j.updated_at,
        "synced_at": _synced_at(),
        "raw_data": _raw(j),
    }


def normalize_request(r: JobberRequest) -> Row:
    """
    Flatten a Jobber request into a jobber_api_requests row.

    The salesperson is the first user assigned to the assessment.
    """
    addr = r.property_.address if r.property_ else None
    assessment = r.assessment

    salesperson = None
    if assessment and assessment.assigned_users and assessment.assigned_users.nodes:
        first = assessment.assigned_users.nodes[0]
        salesperson = first.name.full if first.name else None

    return {
        "jobber_id": r.id,
        "title": r.title,
        "status": _lower(r.request_status),
        "lead_source": r.source or None,
        "created_at_jobber": r.created_at,
        "salesperson": salesperson or None,
        "client_jobber_id": r.client.id if r.client else None,
        "client_name": r.client.name if r.client else None,
        **_address_columns(addr),
        "assessment_start_at": assessment.start_at if assessment else None,
        "assessment_completed_at": assessment.completed_at if assessment else None,
        "updated_at_jobber": r.updated_at,
        "synced_at": _synced_at(),
        "raw_data": _raw(r),
    }


# ============================================================================
# ENTITY DEFINITIONS
# ============================================================================

@dataclass(frozen=True)
class EntityDefinition(Generic[NodeT]):
    kind: EntityKind
    table: str
    node_model: Type[NodeT]
    normalize: Callable[[NodeT], Row]

    def query_builder(self, config: SyncConfig, now: Optional[datetime] = None) -> Callable[[Optional[str]], str]:
        return build_query(self.kind, config, now)

    def extract_page(self, data: Dict[str, Any]) -> Page[NodeT]:
        """Pull {nodes, pageInfo} for this kind out of the response data."""
        connection = data.get(self.kind.value)
        if not isinstance(connection, dict):
            raise PageExtractionError(
                f"Failed to extract {self.kind.value} from GraphQL response: missing connection",
                detail=list(data.keys()),
            )
        try:
            return Page[self.node_model].model_validate(connection)
        except ValidationError as e:
            raise PageExtractionError(
                f"Failed to extract {self.kind.value} from GraphQL response: {e.error_count()} invalid field(s)",
                detail=e.errors(),
            ) from e


QUOTES = EntityDefinition(EntityKind.QUOTES, "jobber_api_quotes", JobberQuote, normalize_quote)
JOBS = EntityDefinition(EntityKind.JOBS, "jobber_api_jobs", JobberJob, normalize_job)
REQUESTS = EntityDefinition(EntityKind.REQUESTS, "jobber_api_requests", JobberRequest, normalize_request)

ENTITIES: Dict[EntityKind, EntityDefinition] = {
    EntityKind.QUOTES: QUOTES,
    EntityKind.JOBS: JOBS,
    EntityKind.REQUESTS: REQUESTS,
}
