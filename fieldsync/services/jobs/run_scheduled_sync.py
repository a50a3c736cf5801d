"""
CLI Entry Point for the Scheduled Jobber Sync
Called by cron every day at 08:00 UTC

Usage:
    python -m fieldsync.services.jobs.run_scheduled_sync [account ...]

With no arguments every account in JOBBER_ACCOUNTS is synced in turn.
Exits non-zero if any run reported errors.
"""
import asyncio
import logging
import sys
from typing import List, Optional

from dotenv import load_dotenv

# Cron runs outside the app process; pick up .env before settings load
load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


async def run_accounts(accounts: List[str]) -> bool:
    """Sync each account sequentially. Returns True when every run succeeded."""
    from fieldsync.core.dependencies import create_http_client, create_supabase_client
    from fieldsync.services.sync.database import SupabaseSyncStore
    from fieldsync.services.sync.orchestration.jobber_sync import run_jobber_sync

    store = SupabaseSyncStore(create_supabase_client())
    all_ok = True

    async with create_http_client() as http_client:
        for account in accounts:
            stats = await run_jobber_sync(http_client, store, account)
            if stats.errors:
                all_ok = False
                logger.error(f"❌ Scheduled sync for {account} failed: {'; '.join(stats.errors)}")
            else:
                logger.info(f"✅ Scheduled sync for {account}: {stats.model_dump_json(by_alias=True)}")

    return all_ok


def main(argv: Optional[List[str]] = None):
    """
    Run the scheduled sync.
    Called by cron: 0 8 * * * (08:00 UTC daily)
    """
    from fieldsync.core.config import settings

    accounts = list(argv if argv is not None else sys.argv[1:]) or settings.enabled_accounts

    logger.info(f"⏰ Scheduled Jobber sync started for: {', '.join(accounts)}")

    try:
        ok = asyncio.run(run_accounts(accounts))
    except Exception as e:
        logger.error(f"❌ Scheduled Jobber sync crashed: {e}", exc_info=True)
        sys.exit(1)

    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
