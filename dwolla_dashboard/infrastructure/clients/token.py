"""OAuth token lifecycle for the Dwolla client-credentials grant"""

import asyncio
import time
from typing import Callable, Optional

import httpx

from dwolla_dashboard.config import settings
from dwolla_dashboard.domain.exceptions import AuthenticationError, ConfigurationError, ProviderError
from dwolla_dashboard.domain.models import Credentials, Token
from dwolla_dashboard.infrastructure.observability.logging import log_token_refresh
from dwolla_dashboard.infrastructure.observability.metrics import token_refresh_counter


class TokenManager:
    """
    Holds the configured key/secret and the current bearer token.

    The token is refreshed lazily: get_valid_token() requests a new one only
    when none is held or the held one is within ``safety_margin`` seconds of
    expiry. Concurrent callers share a single refresh.
    """

    def __init__(
        self,
        api_base: Optional[str] = None,
        timeout: Optional[float] = None,
        safety_margin: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.api_base = (api_base or settings.dwolla_api_base).rstrip("/")
        self.timeout = timeout or settings.http_timeout_seconds
        self.safety_margin = settings.token_safety_margin_seconds if safety_margin is None else safety_margin
        self.transport = transport
        self.clock = clock
        self.credentials: Optional[Credentials] = None
        self.token: Optional[Token] = None
        self._refresh_lock = asyncio.Lock()

    @property
    def is_configured(self) -> bool:
        return self.credentials is not None

    def configure(self, key: str, secret: str) -> None:
        """Replace credentials; any token held for the old pair is dropped"""
        self.credentials = Credentials(key=key, secret=secret)
        self.token = None

    def clear(self) -> None:
        self.credentials = None
        self.token = None

    def invalidate(self) -> None:
        """Forget the held token so the next call re-authenticates"""
        self.token = None

    def status(self) -> dict:
        """Snapshot for GET /config/status"""
        if self.token is None:
            return {"has_token": False, "token_status": "none", "remaining_token_time": 0}

        remaining = self.token.remaining(self.clock())
        return {
            "has_token": True,
            "token_status": "valid" if remaining > 0 else "expired",
            "remaining_token_time": max(0.0, remaining),
        }

    async def get_valid_token(self) -> Token:
        """
        Return a usable token, requesting a new one if needed.

        Raises:
            ConfigurationError: No credentials configured
            AuthenticationError: Dwolla rejected the credentials (not retried)
            ProviderError: Dwolla unreachable or answered 5xx
        """
        async with self._refresh_lock:
            # Credentials may have been cleared while waiting on the lock
            credentials = self.credentials
            if credentials is None:
                raise ConfigurationError("Dwolla credentials not configured. Please set up API key and secret.")

            token = self.token
            if token is None or not token.is_usable(self.clock(), self.safety_margin):
                token = await self._request_token(credentials)
                self.token = token
            return token

    async def _request_token(self, credentials: Credentials) -> Token:
        async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
            try:
                response = await client.post(
                    f"{self.api_base}/token",
                    auth=(credentials.key, credentials.secret),
                    data={"grant_type": "client_credentials"},
                )
            except httpx.RequestError as e:
                token_refresh_counter.labels(outcome="unreachable").inc()
                raise ProviderError(f"Dwolla token endpoint unreachable: {e.__class__.__name__}") from e

        if response.status_code >= 500:
            token_refresh_counter.labels(outcome="unreachable").inc()
            raise ProviderError("Dwolla token endpoint unavailable", provider_status=response.status_code)

        if response.status_code >= 400:
            token_refresh_counter.labels(outcome="rejected").inc()
            raise AuthenticationError("Failed to obtain Dwolla access token. Check your API credentials.")

        try:
            data = response.json()
            token = Token(
                access_token=data["access_token"],
                expires_in=int(data["expires_in"]),
                issued_at=self.clock(),
            )
        except (KeyError, ValueError, TypeError) as e:
            token_refresh_counter.labels(outcome="rejected").inc()
            raise AuthenticationError("Dwolla returned an unusable token response") from e

        token_refresh_counter.labels(outcome="success").inc()
        log_token_refresh(token.expires_in)
        return token
