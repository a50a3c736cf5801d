"""
Dramatiq Background Worker
Processes queued Jobber syncs

Usage:
    dramatiq worker -p 2 -t 1

One thread per process: each sync already fans out three concurrent entity
syncs against the same Jobber rate budget.
"""
import logging

from dotenv import load_dotenv

load_dotenv()

from fieldsync.core.config import settings

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Initialize Sentry for error tracking (if configured)
if settings.sentry_dsn:
    try:
        import sentry_sdk
        from sentry_sdk.integrations.logging import LoggingIntegration

        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            environment=settings.environment,
            traces_sample_rate=0.1,
            integrations=[
                LoggingIntegration(level=logging.INFO, event_level=logging.ERROR)
            ]
        )
        logger.info("✅ Sentry initialized in worker")
    except Exception as e:
        logger.warning(f"⚠️  Failed to initialize Sentry in worker: {e}")
else:
    logger.info("ℹ️  Sentry not configured (SENTRY_DSN not set)")

# Import tasks (this registers them with Dramatiq)
try:
    from fieldsync.services.jobs.broker import broker
    from fieldsync.services.jobs.tasks import sync_jobber_task

    logger.info("✅ FieldSync worker initialized")
    logger.info(f"📋 Registered tasks: {sync_jobber_task.actor_name}")

except Exception as e:
    logger.error(f"❌ Failed to initialize worker: {e}", exc_info=True)
    raise
