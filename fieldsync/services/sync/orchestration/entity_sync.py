"""
Entity sync engine
Generic pagination driver shared by quotes, jobs and requests

1. Build the query for the current cursor
2. Execute through the retrying GraphQL client
3. Extract the page and normalize nodes into rows
4. Upsert rows in batches of 100
5. Adapt the inter-page delay from Jobber's cost feedback
"""
import asyncio
import logging
import math
from typing import Any, Awaitable, Callable, Optional

from fieldsync.core.errors import PageExtractionError, PersistenceError
from fieldsync.models.schemas.jobber import CostFeedback, SyncConfig
from fieldsync.services.sync.database import SyncStore
from fieldsync.services.sync.orchestration.jobber_entities import EntityDefinition
from fieldsync.services.sync.providers.jobber import JobberGraphQLClient

logger = logging.getLogger(__name__)

UPSERT_BATCH_SIZE = 100

INITIAL_PAGE_DELAY_SECONDS = 3.0
MIN_PAGE_DELAY_SECONDS = 2.5

# Fallbacks when the cost block omits a value
DEFAULT_QUERY_COST = 1500
DEFAULT_RESTORE_RATE = 500

# Above this many available points the delay decays toward the minimum
RELAXED_BUDGET_THRESHOLD = 6000

Sleep = Callable[[float], Awaitable[Any]]


def next_page_delay(delay: float, cost: Optional[CostFeedback]) -> float:
    """
    Adjust the pause before the next page from the remaining budget.

    Low budget (less than two queries' worth): wait long enough for the
    restore rate to refill the shortfall, plus half a second. Never shortens.
    Plenty of budget: decay by 5%, floored at 2.5s.
    """
    budget = cost.budget if cost else None
    if budget is None or budget.currently_available is None:
        return delay

    available = budget.currently_available
    query_cost = cost.actual_query_cost or DEFAULT_QUERY_COST
    restore_rate = budget.restore_rate or DEFAULT_RESTORE_RATE

    if available < query_cost * 2:
        wait_ms = math.ceil((query_cost * 2 - available) / restore_rate * 1000) + 500
        new_delay = max(delay, wait_ms / 1000)
        logger.info(f"Low API budget ({available:.0f} available), next page in {new_delay:.2f}s")
        return new_delay

    if available > RELAXED_BUDGET_THRESHOLD:
        return max(MIN_PAGE_DELAY_SECONDS, delay * 0.95)

    return delay


async def sync_entity(
    client: JobberGraphQLClient,
    store: SyncStore,
    access_token: str,
    account: str,
    entity: EntityDefinition,
    config: SyncConfig,
    sleep: Sleep = asyncio.sleep,
) -> int:
    """
    Page through one Jobber connection and upsert every record.

    Returns the number of records normalized. Failed upsert batches are
    logged and skipped; transport and extraction errors propagate.
    """
    kind = entity.kind.value
    query_for = entity.query_builder(config)

    total = 0
    page_number = 0
    cursor: Optional[str] = None
    delay = INITIAL_PAGE_DELAY_SECONDS

    logger.info(f"🔄 Syncing {kind} for {account} ({config.mode.value})")

    while True:
        page_number += 1
        result = await client.execute(access_token, query_for(cursor), account)
        page = entity.extract_page(result.data)

        rows = [entity.normalize(node) for node in page.nodes]
        total += len(rows)

        for start in range(0, len(rows), UPSERT_BATCH_SIZE):
            batch = rows[start:start + UPSERT_BATCH_SIZE]
            try:
                await store.upsert_rows(entity.table, batch)
            except PersistenceError as e:
                logger.error(f"❌ Error upserting {kind} batch for {account}: {e.message}")

        logger.info(f"   Page {page_number}: {len(rows)} {kind} ({total} total)")

        delay = next_page_delay(delay, result.cost)

        if not page.page_info.has_next_page:
            break

        if not page.page_info.end_cursor:
            raise PageExtractionError(f"{kind} page {page_number}: hasNextPage without endCursor")

        cursor = page.page_info.end_cursor
        await sleep(delay)

    logger.info(f"✅ Synced {total} {kind} for {account}")
    return total
