"""
Security and Authentication
API key authentication for the sync trigger routes

SECURITY FEATURES:
- X-API-Key header with timing-safe comparison
- Fails closed when SYNC_API_KEY is not configured
"""
import hmac
import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import APIKeyHeader

from fieldsync.core.config import settings

logger = logging.getLogger(__name__)

api_key_scheme = APIKeyHeader(name="X-API-Key", auto_error=False)


async def verify_api_key(api_key: Optional[str] = Depends(api_key_scheme)) -> bool:
    """
    Verify API key for sync triggers (cron, admin tools, internal callers).

    Uses timing-safe comparison to prevent timing attacks.

    Raises:
        HTTPException if API key is invalid or missing
    """
    if not settings.sync_api_key:
        logger.error("API key authentication attempted but SYNC_API_KEY not configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="API key authentication not configured"
        )

    if not api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key required (X-API-Key header)"
        )

    if not hmac.compare_digest(api_key, settings.sync_api_key):
        logger.warning(f"Invalid API key attempt: {api_key[:4]}...")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key"
        )

    return True


def sanitize_for_logging(text: str, max_length: int = 50) -> str:
    """
    Truncate untrusted input before it reaches the logs.

    Example:
        "very long text..." -> "very long te..."
    """
    if not text:
        return ""
    if len(text) > max_length:
        return text[:max_length] + "..."
    return text
