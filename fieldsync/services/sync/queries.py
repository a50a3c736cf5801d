"""
Jobber query builders
Typed selections and filters that serialize to GraphQL documents

Filter asymmetry: Jobber exposes an updatedAt filter for quotes only. Jobs
and requests filter on createdAt in both modes, so incremental syncs of those
kinds only pick up newly created records.
"""
import json
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional, Tuple, Union

from fieldsync.models.schemas.jobber import EntityKind, SyncConfig, SyncMode

PAGE_SIZE = 50

# Rolling window for full syncs. Rows older than this stay in the database,
# they are just no longer re-fetched.
FULL_SYNC_LOOKBACK = timedelta(days=100)


@dataclass(frozen=True)
class Field:
    """One node of a GraphQL selection set."""
    name: str
    children: Tuple["Field", ...] = ()

    def render(self) -> str:
        if not self.children:
            return self.name
        return f"{self.name} {{ {' '.join(child.render() for child in self.children)} }}"


def field(name: str, *children: Union[str, Field]) -> Field:
    return Field(name, tuple(c if isinstance(c, Field) else Field(c) for c in children))


@dataclass(frozen=True)
class DateFilter:
    """filter: { <field>: { after: "<timestamp>" } }"""
    field: str
    after: datetime

    def render(self) -> str:
        after = self.after
        if after.tzinfo is None:
            after = after.replace(tzinfo=timezone.utc)
        after = after.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        return f'filter: {{ {self.field}: {{ after: "{after}" }} }}'


@dataclass(frozen=True)
class EntityQuery:
    kind: EntityKind
    operation: str
    selection: Tuple[Field, ...]
    filters_on_updated_at: bool = False

    def filter_for(self, config: SyncConfig, now: datetime) -> DateFilter:
        if config.mode == SyncMode.INCREMENTAL and config.sync_since is not None:
            field_name = "updatedAt" if self.filters_on_updated_at else "createdAt"
            return DateFilter(field_name, config.sync_since)
        return DateFilter("createdAt", now - FULL_SYNC_LOOKBACK)

    def render(self, date_filter: DateFilter, cursor: Optional[str] = None) -> str:
        arguments = [f"first: {PAGE_SIZE}"]
        if cursor:
            arguments.append(f"after: {json.dumps(cursor)}")
        arguments.append(date_filter.render())

        nodes = " ".join(f.render() for f in self.selection)
        return (
            f"query {self.operation} {{ "
            f"{self.kind.value}({', '.join(arguments)}) {{ "
            f"nodes {{ {nodes} }} "
            f"pageInfo {{ hasNextPage endCursor }} "
            f"}} }}"
        )


ADDRESS = field("address", "street", "city", "province", "postalCode")
PROPERTY = field("property", ADDRESS)

ENTITY_QUERIES: Dict[EntityKind, EntityQuery] = {
    EntityKind.QUOTES: EntityQuery(
        kind=EntityKind.QUOTES,
        operation="SyncQuotes",
        filters_on_updated_at=True,
        selection=(
            field("id"),
            field("quoteNumber"),
            field("title"),
            field("quoteStatus"),
            field("amounts", "total", "subtotal", "discountAmount"),
            field("client", "id", "name", field("billingAddress", "street", "city", "province", "postalCode")),
            PROPERTY,
            field("createdAt"),
            field("updatedAt"),
            field("sentAt"),
            field("lastTransitioned", "approvedAt", "convertedAt"),
            field("request", "id"),
        ),
    ),
    EntityKind.JOBS: EntityQuery(
        kind=EntityKind.JOBS,
        operation="SyncJobs",
        selection=(
            field("id"),
            field("jobNumber"),
            field("title"),
            field("jobStatus"),
            field("total"),
            field("invoicedTotal"),
            field("client", "id", "name"),
            PROPERTY,
            field("createdAt"),
            field("updatedAt"),
            field("startAt"),
            field("endAt"),
            field("quote", "id", "quoteNumber"),
        ),
    ),
    EntityKind.REQUESTS: EntityQuery(
        kind=EntityKind.REQUESTS,
        operation="SyncRequests",
        selection=(
            field("id"),
            field("title"),
            field("requestStatus"),
            field("source"),
            field("createdAt"),
            field("updatedAt"),
            field("client", "id", "name"),
            PROPERTY,
            field(
                "assessment",
                "startAt",
                "completedAt",
                field("assignedUsers", field("nodes", field("name", "full"))),
            ),
        ),
    ),
}


def build_query(
    kind: EntityKind,
    config: SyncConfig,
    now: Optional[datetime] = None,
) -> Callable[[Optional[str]], str]:
    """
    Build a cursor → query document function for one entity kind.

    The filter is fixed when the builder is created so every page of a run
    uses the same lower bound.
    """
    entity_query = ENTITY_QUERIES[kind]
    date_filter = entity_query.filter_for(config, now or datetime.now(timezone.utc))

    def for_cursor(cursor: Optional[str] = None) -> str:
        return entity_query.render(date_filter, cursor)

    return for_cursor
