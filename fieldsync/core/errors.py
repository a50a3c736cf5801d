"""
Sync Error Taxonomy
Every failure the Jobber sync engine can raise, split into fatal and retryable
"""
from typing import Any, Optional


class JobberSyncError(Exception):
    """Base class for all sync engine failures."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        detail: Any = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)


# ============================================================================
# TOKEN LIFECYCLE (fatal)
# ============================================================================

class NotConnectedError(JobberSyncError):
    """No token on file for the account."""


class ReauthRequiredError(JobberSyncError):
    """Refresh token rejected or app deauthorized. A human must reconnect."""


class TokenRefreshError(JobberSyncError):
    """Token endpoint failed for a reason that does not need reauthorization."""


class ConfigurationError(JobberSyncError):
    """Required OAuth client configuration is missing."""


# ============================================================================
# TRANSPORT (retryable)
# ============================================================================

class TransientError(JobberSyncError):
    """Failure worth retrying within the attempt budget."""


class RateLimitError(TransientError):
    """HTTP 429. retry_after is in seconds when the server supplied one."""

    def __init__(self, message: str, retry_after: Optional[float] = None, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class AuthExpiredError(TransientError):
    """HTTP 401. The transport re-acquires a token before retrying."""


class ThrottledError(TransientError):
    """GraphQL-level throttling reported in errors[]."""


class TransientServerError(TransientError):
    """5xx, network failure or a temporary GraphQL error."""


class MalformedResponseError(TransientError):
    """Body was not JSON or had no data field."""


# ============================================================================
# TRANSPORT (fatal)
# ============================================================================

class AuthorizationError(JobberSyncError):
    """HTTP 403. Never retried."""


class GraphQLError(JobberSyncError):
    """Non-retryable errors[] returned by the GraphQL endpoint."""


class RetriesExhaustedError(JobberSyncError):
    """Attempt budget spent; message embeds the last failure reason."""


class PageExtractionError(JobberSyncError):
    """Response data did not contain the expected connection shape."""


# ============================================================================
# STORAGE
# ============================================================================

class PersistenceError(JobberSyncError):
    """Storage call failed. Non-fatal for batch upserts and status reads."""
