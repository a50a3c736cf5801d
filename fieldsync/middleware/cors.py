"""
CORS Configuration
Cross-Origin Resource Sharing for the admin dashboard that triggers syncs

SECURITY:
- Production: Only origins listed in CORS_ALLOWED_ORIGINS
- Development: Any origin, without credentials
- NO "null" origin (prevents file:// attacks)
"""
import logging
from typing import Any, Dict, List, Tuple, Type

from fastapi.middleware.cors import CORSMiddleware as FastAPICORSMiddleware

from fieldsync.core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


def parse_origins(raw: str) -> List[str]:
    return [o.strip().rstrip("/") for o in raw.split(",") if o.strip() and o.strip() != "null"]


def get_cors_middleware(config: Settings = default_settings) -> Tuple[Type[FastAPICORSMiddleware], Dict[str, Any]]:
    """Returns the CORS middleware class and its kwargs for the current environment."""
    if config.environment == "development":
        logger.warning("⚠️  DEV MODE: CORS allowing ALL origins (*)")
        return FastAPICORSMiddleware, {
            "allow_origins": ["*"],
            "allow_credentials": False,  # Must be False when using "*"
            "allow_methods": ["GET", "POST", "OPTIONS"],
            "allow_headers": ["*"],
            "expose_headers": ["X-Request-ID"],
            "max_age": 600,
        }

    allowed_origins = parse_origins(config.cors_allowed_origins)
    logger.info(f"🌐 CORS allowed origins: {allowed_origins}")

    return FastAPICORSMiddleware, {
        "allow_origins": allowed_origins,
        "allow_credentials": True,
        "allow_methods": ["GET", "POST", "OPTIONS"],
        "allow_headers": [
            "Content-Type",
            "X-API-Key",
            "X-Request-ID",
        ],
        "expose_headers": ["X-Request-ID"],
        "max_age": 600,  # Cache preflight requests for 10 minutes
    }
