"""
Rate Limiting Middleware
Keeps sync triggers from stampeding the Jobber API budget, using slowapi

RATE LIMITS:
- Global: 60 requests/minute per caller (default)
- Manual sync: 5/minute (each run can take minutes and burns query cost)
- Queued sync: 10/minute
- Connection test: 20/minute
"""
import hashlib
import logging

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from fieldsync.core.config import settings

logger = logging.getLogger(__name__)

MANUAL_SYNC_LIMIT = "5/minute"
QUEUED_SYNC_LIMIT = "10/minute"
TEST_CONNECTION_LIMIT = "20/minute"


def rate_limit_key_func(request: Request) -> str:
    """
    Key by API key when one is presented, otherwise by client IP.

    The key itself never reaches the limiter storage, only a short digest.
    """
    api_key = request.headers.get("X-API-Key")
    if api_key:
        digest = hashlib.sha256(api_key.encode()).hexdigest()[:16]
        return f"key:{digest}"

    ip = get_remote_address(request)
    logger.debug(f"Rate limit key: ip={ip}")
    return f"ip:{ip}"


limiter = Limiter(
    key_func=rate_limit_key_func,
    default_limits=["60/minute"],
    # Share counters across instances when Redis is available
    storage_uri=settings.redis_url or "memory://",
)
