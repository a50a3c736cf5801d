"""
Jobber GraphQL client
Issues one logical GraphQL request with bounded retries, 401 token recovery
and throttle awareness
"""
import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
)

from fieldsync.core.config import Settings, settings as default_settings
from fieldsync.core.errors import (
    AuthExpiredError,
    AuthorizationError,
    GraphQLError,
    MalformedResponseError,
    RateLimitError,
    RetriesExhaustedError,
    ThrottledError,
    TransientError,
    TransientServerError,
)
from fieldsync.models.schemas.jobber import CostFeedback, GraphQLResult
from fieldsync.services.sync.oauth import JobberTokenManager

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_BASE_DELAY_SECONDS = 1.0
THROTTLE_FLOOR_SECONDS = 1.5

TEMPORARY_ERROR_MARKERS = ("timeout", "timed out", "temporarily")

TEST_CONNECTION_QUERY = "query TestConnection { account { id name } }"

Sleep = Callable[[float], Awaitable[Any]]


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


def _parse_cost(extensions: Any) -> Optional[CostFeedback]:
    cost_payload = extensions.get("cost") if isinstance(extensions, dict) else None
    if not cost_payload:
        return None
    try:
        return CostFeedback.model_validate(cost_payload)
    except ValidationError as e:
        raise MalformedResponseError(f"Invalid extensions.cost block: {str(cost_payload)[:100]}") from e


def _parse_errors(errors: Any) -> List[Dict[str, Any]]:
    """Normalize the errors array; bare entries become {"message": ...}."""
    if not errors:
        return []
    if not isinstance(errors, list):
        raise MalformedResponseError(f"Unexpected GraphQL errors type: {type(errors).__name__}")
    return [e if isinstance(e, dict) else {"message": str(e)} for e in errors]


def _error_message(error: Dict[str, Any]) -> str:
    return str(error.get("message") or "Unknown")


def _error_code(error: Dict[str, Any]) -> Optional[str]:
    extensions = error.get("extensions")
    return extensions.get("code") if isinstance(extensions, dict) else None


def _is_throttle_error(error: Dict[str, Any]) -> bool:
    return "throttl" in _error_message(error).lower() or _error_code(error) == "THROTTLED"


def _is_temporary_error(error: Dict[str, Any]) -> bool:
    message = _error_message(error).lower()
    return any(marker in message for marker in TEMPORARY_ERROR_MARKERS) or _error_code(error) == "INTERNAL_SERVER_ERROR"


class JobberGraphQLClient:
    """
    Retrying transport for the Jobber GraphQL endpoint.

    Retry policy per attempt:
    - 429: wait Retry-After (or exponential backoff) and retry
    - 401: re-acquire a token through the token manager, retry immediately
    - 403: fatal, exactly one attempt
    - other non-2xx, network errors, bad JSON, missing data: backoff and retry
    - GraphQL throttling: retry after at least 1.5s
    - GraphQL temporary errors: retry while attempts remain
    - any other GraphQL error: fatal
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        token_manager: JobberTokenManager,
        config: Optional[Settings] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.http_client = http_client
        self.token_manager = token_manager
        self.config = config or default_settings
        self.sleep = sleep

    def _headers(self, access_token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
            "X-JOBBER-GRAPHQL-VERSION": self.config.jobber_api_version,
        }

    @staticmethod
    def _wait_strategy(base_delay: float) -> Callable[[RetryCallState], float]:
        def wait(retry_state: RetryCallState) -> float:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            backoff = base_delay * 2 ** (retry_state.attempt_number - 1)
            if isinstance(exc, AuthExpiredError):
                return 0
            if isinstance(exc, RateLimitError) and exc.retry_after is not None:
                return exc.retry_after
            if isinstance(exc, ThrottledError):
                return max(THROTTLE_FLOOR_SECONDS, backoff)
            return backoff

        return wait

    async def execute(
        self,
        access_token: str,
        query: str,
        account: str,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY_SECONDS,
    ) -> GraphQLResult:
        """
        Run a GraphQL query and return its data plus cost feedback.

        Raises:
            AuthorizationError: 403 from Jobber
            GraphQLError: Non-retryable GraphQL errors
            RetriesExhaustedError: max_attempts spent on retryable failures
            NotConnectedError / ReauthRequiredError: token recovery after a 401 failed
        """
        token = access_token
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(TransientError),
            stop=stop_after_attempt(max_attempts),
            wait=self._wait_strategy(base_delay),
            sleep=self.sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
        )

        result: Optional[GraphQLResult] = None
        try:
            async for attempt in retrying:
                with attempt:
                    attempt_index = attempt.retry_state.attempt_number - 1
                    try:
                        result = await self._attempt(token, query, attempt_index, max_attempts, base_delay)
                    except AuthExpiredError:
                        logger.info(f"Token expired (401) for {account}, re-acquiring...")
                        token = await self.token_manager.get_access_token(account)
                        raise
        except RetryError as e:
            last_error = e.last_attempt.exception()
            raise RetriesExhaustedError(
                f"GraphQL request failed after {max_attempts} attempts: {last_error or 'Unknown error'}"
            ) from last_error

        return result

    async def _attempt(
        self,
        access_token: str,
        query: str,
        attempt_index: int,
        max_attempts: int,
        base_delay: float,
    ) -> GraphQLResult:
        backoff = base_delay * 2 ** attempt_index

        try:
            response = await self.http_client.post(
                self.config.jobber_api_url,
                json={"query": query},
                headers=self._headers(access_token),
            )
        except httpx.TransportError as e:
            raise TransientServerError(f"Request error: {e}") from e

        if response.status_code == 429:
            raise RateLimitError(
                "Rate limited (429)",
                retry_after=_parse_retry_after(response.headers.get("Retry-After")),
                status_code=429,
            )

        if response.status_code == 401:
            raise AuthExpiredError("Token expired (401)", status_code=401)

        if response.status_code == 403:
            logger.error(f"❌ Jobber returned 403: {response.text[:500]}")
            raise AuthorizationError(f"Auth error: 403 - {response.text}", status_code=403)

        if not response.is_success:
            logger.error(f"HTTP {response.status_code} response: {response.text[:500]}")
            raise TransientServerError(
                f"HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        # ValueError also covers bodies that are not valid UTF-8
        try:
            body = response.json()
        except ValueError as e:
            logger.error(f"Failed to parse JSON response: {response.text[:500]}")
            raise MalformedResponseError(f"Invalid JSON response: {response.text[:100]}") from e

        if not isinstance(body, dict):
            raise MalformedResponseError(f"Unexpected GraphQL payload type: {type(body).__name__}")

        cost = _parse_cost(body.get("extensions"))
        if cost is not None:
            logger.debug(f"Query cost: {cost.actual_query_cost}/{cost.requested_query_cost}")
            if cost.is_throttled:
                logger.warning(f"Throttled by Jobber (extensions.cost). Waiting {backoff:.1f}s...")
                await self.sleep(backoff)

        errors = _parse_errors(body.get("errors"))
        if errors:
            messages = ", ".join(_error_message(e) for e in errors)

            if any(_is_throttle_error(e) for e in errors):
                raise ThrottledError(f"GraphQL throttled: {messages}")

            if any(_is_temporary_error(e) for e in errors) and attempt_index < max_attempts - 1:
                raise TransientServerError(f"Temporary error: {messages}")

            logger.error(f"GraphQL errors: {json.dumps(errors)[:1000]}")
            raise GraphQLError(f"GraphQL errors: {messages}", detail=errors)

        data = body.get("data")
        if not isinstance(data, dict):
            raise MalformedResponseError("GraphQL response missing data field")

        return GraphQLResult(data=data, cost=cost)

    async def test_connection(self, access_token: str, account: str) -> Dict[str, Any]:
        """Single-attempt diagnostic query used by the connection test route."""
        result = await self.execute(access_token, TEST_CONNECTION_QUERY, account, max_attempts=1)
        return result.data.get("account") or {}
