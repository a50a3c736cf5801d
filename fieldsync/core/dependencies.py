"""
Dependency Injection
Provides reusable dependencies for FastAPI routes

DEPENDENCIES:
- Supabase client (service role, token and sync tables)
- SyncStore (storage handle handed to the sync engine)
- HTTP client (Jobber OAuth + GraphQL)
"""
import logging
from typing import AsyncGenerator, Optional

import httpx
from fastapi import Depends
from supabase import Client, create_client

from fieldsync.core.config import settings
from fieldsync.services.sync.database import SupabaseSyncStore

logger = logging.getLogger(__name__)

# Full syncs page slowly, but a single GraphQL call should never take this long
HTTP_TIMEOUT_SECONDS = 60.0

# ============================================================================
# GLOBAL CLIENTS (initialized once, reused across requests)
# ============================================================================

_supabase_client: Optional[Client] = None


# ============================================================================
# INITIALIZATION (called on app startup)
# ============================================================================

def create_supabase_client() -> Client:
    """Build a service-role Supabase client from settings."""
    return create_client(settings.supabase_url, settings.supabase_service_key)


def create_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS)


async def initialize_clients():
    """
    Initialize global clients on app startup.

    Called from main.py lifespan event.
    """
    global _supabase_client

    logger.info("Initializing global clients...")

    try:
        _supabase_client = create_supabase_client()
        logger.info("✅ Supabase client initialized")
    except Exception as e:
        logger.error(f"❌ Failed to initialize Supabase: {e}")
        raise


async def shutdown_clients():
    """Called from main.py lifespan event."""
    global _supabase_client

    # Supabase doesn't need explicit cleanup
    _supabase_client = None
    logger.info("✅ All clients shutdown complete")


# ============================================================================
# DEPENDENCY FUNCTIONS (injected into routes)
# ============================================================================

def get_supabase() -> Client:
    """
    Get Supabase client for dependency injection.

    Returns:
        Supabase client (service role)
    """
    if _supabase_client is None:
        logger.error("Supabase client not initialized")
        raise RuntimeError("Supabase client not initialized. Call initialize_clients() first.")

    return _supabase_client


def get_sync_store(supabase: Client = Depends(get_supabase)) -> SupabaseSyncStore:
    """Storage handle for one request's sync run."""
    return SupabaseSyncStore(supabase)


async def get_http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    """
    Get HTTP client for Jobber API calls.

    Yields:
        httpx.AsyncClient (closed after the request)
    """
    client = create_http_client()
    try:
        yield client
    finally:
        await client.aclose()
