"""
Dramatiq Redis Broker Configuration
Queue for sync runs triggered over HTTP

Without REDIS_URL the StubBroker keeps the app importable (local dev, tests);
messages are accepted but never processed.
"""
import logging

import dramatiq
from dramatiq.brokers.redis import RedisBroker
from dramatiq.brokers.stub import StubBroker
from dramatiq.middleware import (
    AgeLimit, Callbacks, Pipelines,
    Retries, ShutdownNotifications
)

from fieldsync.core.config import settings

logger = logging.getLogger(__name__)

if not settings.redis_url:
    logger.warning("⚠️  REDIS_URL not set - queued syncs will not be processed")
    broker = StubBroker()
else:
    # Explicit middleware (TimeLimit excluded for Python 3.13 compatibility)
    broker = RedisBroker(
        url=settings.redis_url,
        middleware=[
            AgeLimit(),
            Retries(max_retries=0),
            Callbacks(),
            Pipelines(),
            ShutdownNotifications(),
        ]
    )
    logger.info(f"✅ Redis broker initialized: {settings.redis_url[:20]}...")

dramatiq.set_broker(broker)
