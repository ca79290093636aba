"""Base Token Broker for marketplace integrations.

Defines the OAuth token lifecycle shared by every platform:
exchange -> store -> ensure valid (refresh near expiry) -> signed calls
-> disconnect. Each platform subclass supplies URL building, signing and
the token endpoints.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx

from storehub.config import PlatformConfig, get_http_timeout
from storehub.errors import ProviderError, ReauthorizationRequired, TransportError
from storehub.logging import get_logger, sanitize_id_for_logging, scrub_secrets
from storehub.services.models import BusinessAccount, ConnectionStatus
from storehub.services.repositories import BusinessAccountRepository

logger = get_logger(__name__)

# Refresh tokens that expire within this window before using them
TOKEN_REFRESH_WINDOW = timedelta(minutes=5)

_BODY_METHODS = ("POST", "PUT", "PATCH")


@dataclass
class AuthResult:
    """Outcome of a code exchange or token refresh.

    Provider-reported failures come back as success=False; only transport
    failures raise.
    """
    success: bool
    access_token: str | None = None
    refresh_token: str | None = None
    expires_at: datetime | None = None
    shop_id: str | None = None
    error: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def failed(cls, error: str, shop_id: str | None = None) -> "AuthResult":
        return cls(success=False, error=error, shop_id=shop_id)

    def to_tokens(self) -> "TokenSet":
        if not self.success or not self.access_token or not self.shop_id:
            raise ValueError("Cannot build tokens from a failed auth result")
        return TokenSet(
            access_token=self.access_token,
            refresh_token=self.refresh_token,
            expires_at=self.expires_at,
            shop_id=self.shop_id,
        )


@dataclass
class TokenSet:
    """Token pair ready to be stored for a shop."""
    access_token: str
    refresh_token: str | None
    expires_at: datetime | None
    shop_id: str

    def as_columns(self) -> dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_expires_at": self.expires_at,
        }


@dataclass
class SignedRequest:
    """URL, query and headers for one authenticated provider call."""
    url: str
    params: dict[str, Any] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)


class TokenBroker(ABC):
    """Obtains, stores and refreshes OAuth tokens for one marketplace.

    Dependencies are injected so routes and tests can share or replace them:
    - config: platform credentials
    - accounts: repository for the platform's business account table
    - http_client: optional shared httpx client (created lazily otherwise)
    - clock: returns the current aware UTC datetime
    """

    platform: str = ""

    def __init__(
        self,
        config: PlatformConfig,
        accounts: BusinessAccountRepository,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config
        self.accounts = accounts
        self._http_client = http_client
        self._owns_http_client = http_client is None
        self._clock = clock or (lambda: datetime.now(UTC))

    # ==================== PLATFORM HOOKS ====================

    @abstractmethod
    def generate_auth_url(self, state: str | None = None) -> str:
        """Build the provider authorization URL. No side effects."""

    @abstractmethod
    async def exchange_code_for_token(self, code: str, shop_id: str) -> AuthResult:
        """Exchange a one-time authorization code for a token pair."""

    @abstractmethod
    async def refresh_access_token(self, refresh_token: str, shop_id: str) -> AuthResult:
        """Get a new token pair from a refresh token."""

    @abstractmethod
    def _build_signed_request(
        self, endpoint: str, shop_id: str, access_token: str
    ) -> SignedRequest:
        """Sign an authenticated call to `endpoint` for a shop."""

    def _default_profile(self, shop_id: str, shop_info: dict[str, Any]) -> dict[str, Any]:
        """Columns written when an account is created for the first time."""
        name = shop_info.get("shop_name") or f"{self.platform.title()} Shop {shop_id}"
        return {
            "partner_id": self.config.partner_id,
            "shop_id": shop_id,
            "display_name": name,
            "shop_name": name,
            "shop_logo": shop_info.get("shop_logo"),
            "shop_type": shop_info.get("shop_type") or "normal",
            "region": self.config.region,
            "contact_email": shop_info.get("contact_email"),
            "contact_phone": shop_info.get("contact_phone"),
        }

    # ==================== HELPERS ====================

    def _now(self) -> datetime:
        return self._clock()

    def _timestamp(self) -> int:
        return int(self._now().timestamp())

    def _expires_at(self, expires_in: Any) -> datetime | None:
        """Absolute expiry from a provider TTL in seconds."""
        try:
            seconds = int(expires_in)
        except (TypeError, ValueError):
            return None
        return self._now() + timedelta(seconds=seconds)

    def _secrets(self, *extra: str | None) -> tuple[str | None, ...]:
        return (self.config.partner_key, *extra)

    def _scrub(self, text: Any, *extra: str | None) -> str:
        return scrub_secrets(str(text) if text is not None else "", *self._secrets(*extra))

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Lazy creation of shared httpx client with timeouts."""
        if self._http_client is None:
            timeout = get_http_timeout()
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(timeout, connect=5.0),
                limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
            )
        return self._http_client

    async def _send(
        self, method: str, url: str, *, shop_id: str | None = None, **kwargs: Any
    ) -> httpx.Response:
        """Perform an HTTP call, turning network failures into TransportError."""
        client = await self._get_http_client()
        try:
            return await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            # Exception text can contain the signed URL
            logger.error(
                "%s transport error for shop %s on %s: %s",
                self.platform,
                sanitize_id_for_logging(shop_id),
                httpx.URL(url).path,
                type(e).__name__,
            )
            raise TransportError(platform=self.platform) from e

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        """Decode a JSON object body; non-JSON bodies decode to {}."""
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {"data": data}

    # ==================== TOKEN LIFECYCLE ====================

    async def get_business_account(self, shop_id: str) -> BusinessAccount | None:
        return await self.accounts.get_by_shop_id(shop_id)

    async def connection_status(self, shop_id: str) -> ConnectionStatus:
        account = await self.get_business_account(shop_id)
        if account is None:
            return ConnectionStatus.UNCONNECTED
        return account.status

    async def store_business_account(
        self, tokens: TokenSet, shop_info: dict[str, Any] | None = None
    ) -> BusinessAccount:
        """Upsert the account for tokens.shop_id and mark it connected."""
        profile = self._default_profile(tokens.shop_id, shop_info or {})
        return await self.accounts.upsert_tokens(profile, tokens.as_columns())

    async def ensure_valid_token(self, shop_id: str) -> str | None:
        """Return a usable access token for the shop, refreshing if needed.

        Returns None when the shop has no token or a needed refresh failed;
        callers must then ask the seller to reauthorize. A refused refresh
        (or a missing refresh token) also moves the account to disconnected.
        A TransportError during refresh propagates and leaves the row as is.
        """
        account = await self.get_business_account(shop_id)
        if not account or not account.access_token:
            return None

        if not account.expires_within(TOKEN_REFRESH_WINDOW, now=self._now()):
            return account.access_token

        if not account.refresh_token:
            logger.warning(
                "%s token for shop %s expiring and no refresh token stored",
                self.platform,
                sanitize_id_for_logging(shop_id),
            )
            await self.accounts.clear_tokens(shop_id)
            return None

        result = await self.refresh_access_token(account.refresh_token, shop_id)
        if not result.success or not result.access_token:
            logger.warning(
                "%s token refresh failed for shop %s: %s",
                self.platform,
                sanitize_id_for_logging(shop_id),
                result.error,
            )
            await self.accounts.clear_tokens(shop_id)
            return None

        await self.accounts.update_tokens(
            shop_id,
            {
                "access_token": result.access_token,
                # Some providers only rotate the access token
                "refresh_token": result.refresh_token or account.refresh_token,
                "token_expires_at": result.expires_at,
            },
        )
        logger.info(
            "%s token refreshed for shop %s", self.platform, sanitize_id_for_logging(shop_id)
        )
        return result.access_token

    async def make_authenticated_request(
        self,
        endpoint: str,
        shop_id: str,
        method: str = "GET",
        data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Call a partner API endpoint on behalf of a shop.

        Raises:
            ReauthorizationRequired: no valid token could be obtained
            ProviderError: non-2xx response (carries status code and text)
            TransportError: the provider could not be reached
        """
        access_token = await self.ensure_valid_token(shop_id)
        if not access_token:
            raise ReauthorizationRequired(platform=self.platform)

        method = method.upper()
        signed = self._build_signed_request(endpoint, shop_id, access_token)
        params = dict(signed.params)
        kwargs: dict[str, Any] = {"headers": {"Content-Type": "application/json", **signed.headers}}
        if data:
            if method in _BODY_METHODS:
                kwargs["json"] = data
            else:
                params.update(data)
        kwargs["params"] = params

        response = await self._send(method, signed.url, shop_id=shop_id, **kwargs)
        if not response.is_success:
            status_text = response.reason_phrase
            logger.error(
                "%s API %s failed for shop %s: %s %s",
                self.platform,
                endpoint,
                sanitize_id_for_logging(shop_id),
                response.status_code,
                status_text,
            )
            raise ProviderError(
                f"{self.platform.title()} API request failed: {response.status_code} {status_text}",
                platform=self.platform,
                provider_status=response.status_code,
                status_text=status_text,
            )
        return self._json(response)

    async def disconnect_shop(self, shop_id: str) -> None:
        """Clear stored tokens and mark the account disconnected."""
        await self.accounts.clear_tokens(shop_id)
        logger.info("%s shop %s disconnected", self.platform, sanitize_id_for_logging(shop_id))

    async def aclose(self) -> None:
        """Close the HTTP client if this broker created it."""
        if self._http_client is not None and self._owns_http_client:
            await self._http_client.aclose()
            self._http_client = None
