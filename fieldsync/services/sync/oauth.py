"""
Jobber OAuth token lifecycle
Loads stored tokens and refreshes them before they can expire mid-sync
"""
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

import httpx

from fieldsync.core.config import Settings, settings as default_settings
from fieldsync.core.errors import (
    ConfigurationError,
    NotConnectedError,
    PersistenceError,
    ReauthRequiredError,
    TokenRefreshError,
)
from fieldsync.services.sync.database import SyncStore

logger = logging.getLogger(__name__)

# Must exceed the longest sync (~10 min for the parallel full sync)
REFRESH_BUFFER = timedelta(minutes=15)
DEFAULT_EXPIRES_IN_SECONDS = 3600

REAUTH_MESSAGES = {
    "invalid_grant": "Refresh token is invalid or expired. Please reconnect the Jobber integration at /settings/integrations.",
    "unauthorized_client": "App is not authorized. Please reconnect the Jobber integration.",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobberTokenManager:
    """
    Hands out valid Jobber access tokens for an account.

    Refreshes are serialised per account inside this process, so concurrent
    entity syncs hitting a 401 at the same time trigger a single refresh.
    Separate processes are not coordinated.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        store: SyncStore,
        config: Optional[Settings] = None,
        now: Callable[[], datetime] = _utcnow,
    ):
        self.http_client = http_client
        self.store = store
        self.config = config or default_settings
        self.now = now
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, account: str) -> asyncio.Lock:
        if account not in self._locks:
            self._locks[account] = asyncio.Lock()
        return self._locks[account]

    async def get_access_token(self, account: str) -> str:
        """
        Get a valid access token, refreshing if it expires within 15 minutes.

        Raises:
            NotConnectedError: No token row, or the lookup failed
            ReauthRequiredError: The refresh token was rejected
        """
        async with self._lock_for(account):
            try:
                token = await self.store.get_token(account)
            except PersistenceError as e:
                raise NotConnectedError(e.message) from e

            if token is None:
                raise NotConnectedError(
                    f"No token found for {account}. Please connect via OAuth first at /settings/integrations."
                )

            now = self.now()
            expires_at = token.access_token_expires_at
            if expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=timezone.utc)

            if expires_at < now + REFRESH_BUFFER:
                logger.info(f"Access token for {account} {'expired' if expires_at < now else 'expiring soon'}, refreshing...")
                return await self.refresh(account, token.refresh_token)

            logger.debug(f"Token for {account} valid until {expires_at.isoformat()}")
            return token.access_token

    async def refresh(self, account: str, refresh_token: str) -> str:
        """
        Exchange a refresh token for a new access token and persist the pair.

        A failure to persist is logged only; the new token is still returned
        so the current run can use it.
        """
        logger.info(f"🔄 Refreshing Jobber token for {account}...")

        if not self.config.jobber_client_id:
            raise ConfigurationError("JOBBER_CLIENT_ID environment variable is not set")
        if not self.config.jobber_client_secret:
            raise ConfigurationError("JOBBER_CLIENT_SECRET environment variable is not set")

        response = await self.http_client.post(
            self.config.jobber_token_url,
            data={
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": self.config.jobber_client_id,
                "client_secret": self.config.jobber_client_secret,
            },
            headers={"Accept": "application/json"},
        )

        if not response.is_success:
            raise self._classify_refresh_failure(response)

        payload = response.json()
        access_token = payload.get("access_token")
        if not access_token:
            raise TokenRefreshError("Token refresh response missing access_token", status_code=response.status_code)

        expires_in = payload.get("expires_in") or DEFAULT_EXPIRES_IN_SECONDS
        expires_at = self.now() + timedelta(seconds=expires_in)
        # Jobber may omit a new refresh token; keep the old one then
        new_refresh_token = payload.get("refresh_token") or refresh_token

        try:
            await self.store.save_token(account, access_token, new_refresh_token, expires_at)
        except Exception as e:
            logger.error(f"Failed to save refreshed token for {account}: {e}")

        logger.info(f"✅ Token refreshed for {account}, valid until {expires_at.isoformat()}")
        return access_token

    @staticmethod
    def _classify_refresh_failure(response: httpx.Response) -> Exception:
        body = response.text
        try:
            error_json = response.json()
        except ValueError:
            return TokenRefreshError(
                f"Token refresh failed: {response.status_code} - {body}",
                status_code=response.status_code,
            )

        error_code = error_json.get("error") if isinstance(error_json, dict) else None
        if error_code in REAUTH_MESSAGES:
            logger.error(f"❌ Jobber rejected refresh ({error_code}), reauthorization required")
            return ReauthRequiredError(REAUTH_MESSAGES[error_code], status_code=response.status_code, detail=error_json)

        if isinstance(error_json, dict) and error_json.get("error_description"):
            return TokenRefreshError(
                f"Token refresh failed: {error_json['error_description']}",
                status_code=response.status_code,
                detail=error_json,
            )

        return TokenRefreshError(
            f"Token refresh failed: {response.status_code}",
            status_code=response.status_code,
            detail=error_json,
        )
