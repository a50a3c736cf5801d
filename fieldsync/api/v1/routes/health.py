"""
Health Check Routes
System status and diagnostics
"""
import logging

from fastapi import APIRouter

from fieldsync.core.config import settings
from fieldsync.models.schemas.health import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

VERSION = "1.0.0"


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(status="healthy", version=VERSION, accounts=settings.enabled_accounts)


@router.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": "FieldSync Jobber Sync API",
        "version": VERSION,
        "description": "Pulls Jobber quotes, jobs and requests into Supabase",
        "endpoints": {
            "health": "/health",
            "sync": {
                "queue": "POST /sync/jobber",
                "manual": "GET /sync/jobber/manual?account=residential&full=false",
                "test": "GET /sync/jobber/test?account=residential",
                "status": "GET /sync/jobber/status/{account}",
            },
        },
    }
