"""
Global Error Handler Middleware
Catches unhandled exceptions and returns structured error responses
"""
import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from fieldsync.core.errors import (
    AuthorizationError,
    ConfigurationError,
    JobberSyncError,
    NotConnectedError,
    ReauthRequiredError,
)

logger = logging.getLogger(__name__)

# Sync errors that escape a route map to these statuses; everything else is 502
SYNC_ERROR_STATUS = {
    NotConnectedError: 409,
    ReauthRequiredError: 409,
    AuthorizationError: 403,
    ConfigurationError: 500,
}


def status_for_sync_error(exc: JobberSyncError) -> int:
    for error_type, status_code in SYNC_ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return status_code
    return 502


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Global error handler middleware.
    Sync errors keep their message; anything else is an opaque 500.
    """

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except JobberSyncError as exc:
            logger.error(f"Sync error during {request.method} {request.url.path}: {exc.message}")
            return JSONResponse(
                status_code=status_for_sync_error(exc),
                content={
                    "detail": exc.message,
                    "error_type": type(exc).__name__,
                    "path": request.url.path,
                },
            )
        except Exception as exc:
            logger.error(
                "Unhandled exception during request",
                exc_info=True,
                extra={
                    "path": request.url.path,
                    "method": request.method,
                    "client_host": request.client.host if request.client else None,
                },
            )
            return JSONResponse(
                status_code=500,
                content={
                    "detail": "Internal server error",
                    "error_type": type(exc).__name__,
                    "path": request.url.path,
                },
            )
