from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

import httpx
from authlib.integrations.base_client import OAuthError
from authlib.integrations.httpx_client import AsyncOAuth1Client, OAuth1Auth
from loguru import logger

from tradewatch.core.orders.errors import BrokerError, CredentialExpired
from tradewatch.core.trade.ports import AuthPort

SANDBOX_BASE_URL = "https://apisb.etrade.com"
LIVE_BASE_URL = "https://api.etrade.com"
AUTHORIZE_URL = "https://us.etrade.com/e/t/etws/authorize"


@dataclass
class ETradeConfig:
    consumer_key: str
    consumer_secret: str
    oauth_token: Optional[str] = None
    oauth_token_secret: Optional[str] = None
    sandbox: bool = True
    timeout: float = 30.0

    @property
    def base_url(self) -> str:
        return SANDBOX_BASE_URL if self.sandbox else LIVE_BASE_URL

    @classmethod
    def from_env(cls) -> "ETradeConfig":
        return cls(
            consumer_key=os.getenv("ETRADE_CONSUMER_KEY", ""),
            consumer_secret=os.getenv("ETRADE_CONSUMER_SECRET", ""),
            oauth_token=os.getenv("ETRADE_OAUTH_TOKEN") or None,
            oauth_token_secret=os.getenv("ETRADE_OAUTH_TOKEN_SECRET") or None,
            sandbox=os.getenv("ETRADE_SANDBOX", "1") == "1",
            timeout=float(os.getenv("ETRADE_TIMEOUT", "30")),
        )


@dataclass(frozen=True)
class _RequestToken:
    token: str
    secret: str


class ETradeSession(AuthPort):
    """
    OAuth 1.0a credentials for the E*TRADE API plus the out-of-band PIN flow.

    Access tokens live in memory only. `auth()` hands the order adapter a
    signing `httpx.Auth` for the current tokens and raises CredentialExpired
    when there are none, which the trade flow answers with a re-authorization.
    """

    def __init__(self, config: ETradeConfig, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._config = config
        self._transport = transport
        self._token = config.oauth_token
        self._token_secret = config.oauth_token_secret
        self._pending: dict[str, _RequestToken] = {}

    @property
    def config(self) -> ETradeConfig:
        return self._config

    @property
    def authenticated(self) -> bool:
        return bool(self._token and self._token_secret)

    def has_pending_flow(self, user_id: str) -> bool:
        return user_id in self._pending

    def auth(self) -> httpx.Auth:
        if not self.authenticated:
            raise CredentialExpired("Not authenticated. Complete the E*TRADE authorization flow.")
        return OAuth1Auth(
            client_id=self._config.consumer_key,
            client_secret=self._config.consumer_secret,
            token=self._token,
            token_secret=self._token_secret,
        )

    def set_tokens(self, token: str, token_secret: str) -> None:
        self._token = token
        self._token_secret = token_secret

    def clear_tokens(self) -> None:
        self._token = None
        self._token_secret = None

    async def start_auth_flow(self, user_id: str) -> str:
        self.clear_tokens()
        self._pending.pop(user_id, None)

        async with self._client(redirect_uri="oob") as client:
            try:
                token = await client.fetch_request_token(f"{self._config.base_url}/oauth/request_token")
            except (OAuthError, httpx.HTTPError) as exc:
                raise BrokerError(f"Failed to get request token: {exc}") from exc

        request_token = token.get("oauth_token")
        request_secret = token.get("oauth_token_secret")
        if not request_token or not request_secret:
            raise BrokerError("Invalid request token response", status=500, payload=dict(token))

        self._pending[user_id] = _RequestToken(token=request_token, secret=request_secret)
        logger.info(f"E*TRADE auth flow started for user {user_id}")
        return f"{AUTHORIZE_URL}?key={self._config.consumer_key}&token={request_token}"

    async def exchange_pin(self, user_id: str, pin: str) -> None:
        pending = self._pending.get(user_id)
        if pending is None:
            raise BrokerError("No pending auth flow. Please start again.")

        async with self._client(token=pending.token, token_secret=pending.secret) as client:
            try:
                token = await client.fetch_access_token(
                    f"{self._config.base_url}/oauth/access_token",
                    verifier=pin,
                )
            except OAuthError as exc:
                # the request token stays pending so the user can retry with a fresh PIN
                raise CredentialExpired(f"PIN rejected: {exc}") from exc
            except httpx.HTTPError as exc:
                self._pending.pop(user_id, None)
                raise BrokerError(f"Failed to exchange token: {exc}") from exc

        access_token = token.get("oauth_token")
        access_secret = token.get("oauth_token_secret")
        if not access_token or not access_secret:
            self._pending.pop(user_id, None)
            raise BrokerError("Invalid access token response", status=500, payload=dict(token))

        self._pending.pop(user_id, None)
        self.set_tokens(access_token, access_secret)
        logger.info(f"E*TRADE auth flow completed for user {user_id}")

    def cleanup(self, user_id: str) -> None:
        self._pending.pop(user_id, None)

    def _client(self, **kwargs) -> AsyncOAuth1Client:
        return AsyncOAuth1Client(
            self._config.consumer_key,
            self._config.consumer_secret,
            timeout=self._config.timeout,
            transport=self._transport,
            **kwargs,
        )
