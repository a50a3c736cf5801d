"""
FieldSync - Jobber Sync Engine
==============================
Version: 1.0.0

FastAPI application entry point.

Architecture:
- fieldsync/core/: Configuration, dependencies, security, error taxonomy
- fieldsync/middleware/: Error handling, logging, CORS, rate limiting
- fieldsync/models/: Pydantic schemas (Jobber records, sync state, API models)
- fieldsync/services/sync/: Token lifecycle, GraphQL transport, sync orchestration
- fieldsync/services/jobs/: Dramatiq actor and the scheduled sync entry point
- fieldsync/api/v1/routes/: API endpoints
"""
import sys
import logging
import traceback
from contextlib import asynccontextmanager
from fastapi import FastAPI

# Startup error handling
try:
    from fieldsync.core.config import settings
    from fieldsync.core.dependencies import initialize_clients, shutdown_clients

    from fieldsync.middleware.error_handler import ErrorHandlerMiddleware
    from fieldsync.middleware.logging import RequestLoggingMiddleware
    from fieldsync.middleware.cors import get_cors_middleware
    from fieldsync.middleware.rate_limit import limiter

    from fieldsync.api.v1.routes.health import router as health_router, VERSION
    from fieldsync.api.v1.routes.sync import router as sync_router

except Exception as e:
    print(f"🚨 FATAL STARTUP ERROR: {e}", file=sys.stderr)
    print(f"Traceback:\n{traceback.format_exc()}", file=sys.stderr)
    sys.exit(1)

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.environment == "production" else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# ============================================================================
# SENTRY ERROR TRACKING
# ============================================================================

if settings.sentry_dsn:
    try:
        import sentry_sdk
        from sentry_sdk.integrations.fastapi import FastApiIntegration
        from sentry_sdk.integrations.logging import LoggingIntegration

        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            environment=settings.environment,
            traces_sample_rate=0.1,
            integrations=[
                FastApiIntegration(),
                LoggingIntegration(level=logging.INFO, event_level=logging.ERROR)
            ]
        )
        logger.info("✅ Sentry error tracking initialized")
    except Exception as e:
        logger.warning(f"⚠️  Failed to initialize Sentry: {e}")
else:
    logger.info("ℹ️  Sentry not configured (SENTRY_DSN not set)")

# ============================================================================
# LIFECYCLE MANAGEMENT
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown."""
    logger.info("=" * 80)
    logger.info("Starting FieldSync")
    logger.info("=" * 80)
    logger.info(f"Version: {VERSION}")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Jobber accounts: {', '.join(settings.enabled_accounts)}")

    await initialize_clients()

    logger.info("✅ FieldSync started successfully")

    yield

    logger.info("Shutting down FieldSync...")
    await shutdown_clients()
    logger.info("✅ Shutdown complete")


# ============================================================================
# APP INITIALIZATION
# ============================================================================

app = FastAPI(
    title="FieldSync API",
    description="Jobber quotes, jobs and requests synced into Supabase",
    version=VERSION,
    docs_url="/docs" if settings.debug else None,  # Disable docs in production
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan
)

# ============================================================================
# RATE LIMITING
# ============================================================================

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# ============================================================================
# MIDDLEWARE (order matters!)
# ============================================================================

cors_middleware, cors_config = get_cors_middleware()
app.add_middleware(cors_middleware, **cors_config)

app.add_middleware(RequestLoggingMiddleware)

# Global error handler (must be last)
app.add_middleware(ErrorHandlerMiddleware)

# ============================================================================
# ROUTES
# ============================================================================

app.include_router(health_router)
app.include_router(sync_router)

logger.info("✅ All routes registered")

# ============================================================================
# MAIN
# ============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=settings.debug,
        log_level="info"
    )
