"""
Unified Configuration
All environment variables and settings in one place

ARCHITECTURE:
- ONE Supabase project for tokens, sync status and synced Jobber tables
- Jobber OAuth app credentials for token refresh
- Redis only backs the Dramatiq worker queue

SECURITY:
- All secrets loaded from environment variables
- No hardcoded credentials
"""
from typing import List, Optional
import logging
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, model_validator

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Unified application settings.
    Validates all environment variables at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ============================================================================
    # SERVER
    # ============================================================================

    environment: str = Field(default="production", description="Environment: development/staging/production")
    port: int = Field(default=8080, description="Server port")
    debug: bool = Field(default=False, description="Debug mode")

    # ============================================================================
    # DATABASE (Supabase PostgreSQL)
    # ============================================================================

    supabase_url: Optional[str] = Field(default=None, description="Supabase project URL")
    supabase_service_key: Optional[str] = Field(default=None, description="Supabase service role key (backend uses this)")

    # ============================================================================
    # JOBBER API
    # ============================================================================

    jobber_client_id: Optional[str] = Field(default=None, description="Jobber OAuth app client ID")
    jobber_client_secret: Optional[str] = Field(default=None, description="Jobber OAuth app client secret")
    jobber_api_url: str = Field(default="https://api.getjobber.com/api/graphql", description="Jobber GraphQL endpoint")
    jobber_token_url: str = Field(default="https://api.getjobber.com/api/oauth/token", description="Jobber OAuth token endpoint")
    jobber_api_version: str = Field(default="2025-01-20", description="Value for the X-JOBBER-GRAPHQL-VERSION header")

    # Accounts that have been connected and may be synced
    jobber_accounts: str = Field(default="residential", description="Comma-separated list of syncable Jobber accounts")
    # Only this account feeds the opportunities rollup
    opportunities_account: str = Field(default="residential", description="Account whose sync triggers compute_api_opportunities")

    # ============================================================================
    # API KEYS
    # ============================================================================

    sync_api_key: Optional[str] = Field(default=None, description="API key required by the sync trigger routes (X-API-Key)")

    # ============================================================================
    # BACKGROUND JOBS
    # ============================================================================

    redis_url: Optional[str] = Field(default=None, description="Redis connection URL for the Dramatiq broker")

    # ============================================================================
    # PRODUCTION INFRASTRUCTURE
    # ============================================================================

    sentry_dsn: Optional[str] = Field(default=None, description="Sentry DSN for error tracking")

    # ============================================================================
    # CORS
    # ============================================================================

    cors_allowed_origins: str = Field(default="http://localhost:3000", description="Comma-separated list of allowed CORS origins")

    @property
    def enabled_accounts(self) -> List[str]:
        """Accounts parsed from JOBBER_ACCOUNTS."""
        return [a.strip() for a in self.jobber_accounts.split(",") if a.strip()]

    @model_validator(mode='after')
    def validate_settings(self):
        """
        Validate critical settings at startup.

        CHECKS:
        - Warn when Supabase or Jobber credentials are missing
        - Warn if running in production without Sentry
        - Warn if debug mode enabled in production
        """
        if self.environment == "production":
            if self.debug:
                logger.warning("⚠️  DEBUG MODE ENABLED IN PRODUCTION! This is insecure.")

            if not self.sentry_dsn:
                logger.warning("⚠️  Sentry not configured in production. Error tracking disabled.")

        if not self.supabase_url or not self.supabase_service_key:
            logger.warning("⚠️  SUPABASE_URL / SUPABASE_SERVICE_KEY not set. Sync state cannot be persisted.")

        if not self.jobber_client_id or not self.jobber_client_secret:
            logger.warning("⚠️  JOBBER_CLIENT_ID / JOBBER_CLIENT_SECRET not set. Token refresh will fail.")

        logger.debug("=" * 80)
        logger.debug("FieldSync Configuration Loaded")
        logger.debug("=" * 80)
        logger.debug(f"Environment: {self.environment}")
        logger.debug(f"Debug: {self.debug}")
        logger.debug(f"Supabase URL: {self.supabase_url}")
        logger.debug(f"Jobber API: {self.jobber_api_url} (version {self.jobber_api_version})")
        logger.debug(f"Jobber accounts: {', '.join(self.enabled_accounts) or 'none'}")
        logger.debug(f"Redis: {'✅ Configured' if self.redis_url else '❌ Not configured'}")
        logger.debug(f"Sentry: {'✅ Configured' if self.sentry_dsn else '❌ Not configured'}")
        logger.debug("=" * 80)

        return self


# Global settings instance
settings = Settings()
