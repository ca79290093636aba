"""TikTok token broker (TikTok Business and TikTok Shop login).

Standard OAuth2: code and refresh grants against the v2 token endpoint,
Bearer authentication for API calls. The account's open_id is used as
its shop id.
"""

import secrets
from typing import Any
from urllib.parse import urlencode

import httpx

from storehub.config import PlatformConfig
from storehub.errors import ERROR_TOKEN_EXCHANGE_FAILED, ERROR_TOKEN_REFRESH_FAILED, ProviderError
from storehub.logging import get_logger
from storehub.services.repositories import BusinessAccountRepository

from .base import AuthResult, SignedRequest, TokenBroker

logger = get_logger(__name__)

BUSINESS_AUTHORIZE_URL = "https://www.tiktok.com/v2/auth/authorize/"
SHOP_AUTHORIZE_URL = "https://services.tiktok.com/shop/oauth/authorize/"
TOKEN_URL = "https://open.tiktokapis.com/v2/oauth/token/"
API_BASE_URL = "https://open.tiktokapis.com/v2/"

BUSINESS_SCOPES = "user.info.basic,business.get,video.list,video.upload"
SHOP_SCOPES = "user.info.basic,shop.product.list,shop.order.list,shop.fulfillment"

USER_PROFILE_FIELDS = "open_id,union_id,avatar_url,display_name,bio_description,is_verified"

FLOW_KINDS = ("shop", "business")


class TikTokTokenBroker(TokenBroker):
    """Token broker for TikTok accounts.

    `kind` selects the authorization flow: "shop" (seller) or "business".
    """

    platform = "tiktok"

    def __init__(
        self,
        config: PlatformConfig,
        accounts: BusinessAccountRepository,
        http_client: httpx.AsyncClient | None = None,
        clock=None,
        kind: str = "shop",
    ) -> None:
        super().__init__(config, accounts, http_client=http_client, clock=clock)
        if kind not in FLOW_KINDS:
            raise ValueError(f"Unknown TikTok flow: {kind}")
        self.kind = kind

    @staticmethod
    def generate_state() -> str:
        return secrets.token_hex(32)

    @property
    def redirect_uri(self) -> str:
        if self.kind == "shop" and self.config.shop_redirect_uri:
            return self.config.shop_redirect_uri
        return self.config.redirect_uri

    def generate_auth_url(self, state: str | None = None) -> str:
        params = urlencode({
            "client_key": self.config.partner_id,
            "redirect_uri": self.redirect_uri,
            "state": state or self.generate_state(),
            "scope": SHOP_SCOPES if self.kind == "shop" else BUSINESS_SCOPES,
            "response_type": "code",
        })
        base = SHOP_AUTHORIZE_URL if self.kind == "shop" else BUSINESS_AUTHORIZE_URL
        return f"{base}?{params}"

    async def _token_call(self, form: dict[str, str], shop_id: str, default_error: str, secret: str) -> AuthResult:
        response = await self._send(
            "POST",
            TOKEN_URL,
            shop_id=shop_id,
            data={
                "client_key": self.config.partner_id,
                "client_secret": self.config.partner_key,
                **form,
            },
            headers={
                "Content-Type": "application/x-www-form-urlencoded",
                "Cache-Control": "no-cache",
            },
        )
        data = self._json(response)

        if data.get("error") or not response.is_success:
            description = data.get("error_description") or data.get("error") or response.reason_phrase
            message = self._scrub(f"{default_error}: {description}", secret)
            logger.warning("TikTok token endpoint rejected request: %s", message)
            return AuthResult.failed(message, shop_id=shop_id or None)

        access_token = data.get("access_token")
        if not access_token:
            return AuthResult.failed(default_error, shop_id=shop_id or None)

        return AuthResult(
            success=True,
            access_token=access_token,
            refresh_token=data.get("refresh_token"),
            expires_at=self._expires_at(data.get("expires_in")),
            shop_id=data.get("open_id") or shop_id,
            raw=data,
        )

    async def exchange_code_for_token(self, code: str, shop_id: str = "") -> AuthResult:
        """Authorization-code grant; the shop id comes back as open_id."""
        return await self._token_call(
            {
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": self.redirect_uri,
            },
            shop_id,
            ERROR_TOKEN_EXCHANGE_FAILED,
            code,
        )

    async def refresh_access_token(self, refresh_token: str, shop_id: str) -> AuthResult:
        return await self._token_call(
            {"grant_type": "refresh_token", "refresh_token": refresh_token},
            shop_id,
            ERROR_TOKEN_REFRESH_FAILED,
            refresh_token,
        )

    def _build_signed_request(
        self, endpoint: str, shop_id: str, access_token: str
    ) -> SignedRequest:
        return SignedRequest(
            url=f"{API_BASE_URL}{endpoint.lstrip('/')}",
            headers={"Authorization": f"Bearer {access_token}"},
        )

    async def get_user_profile(self, access_token: str) -> dict[str, Any]:
        """Profile of the user who just authorized (before the account is stored)."""
        response = await self._send(
            "GET",
            f"{API_BASE_URL}user/info/",
            params={"fields": USER_PROFILE_FIELDS},
            headers={"Authorization": f"Bearer {access_token}"},
        )
        data = self._json(response)
        error = data.get("error") or {}
        # TikTok always returns an error object; code "ok" means success
        if not response.is_success or (isinstance(error, dict) and error.get("code") not in (None, "ok")):
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise ProviderError(
                self._scrub(f"TikTok user profile error: {message or response.reason_phrase}", access_token),
                platform=self.platform,
                provider_status=response.status_code,
                status_text=response.reason_phrase,
            )
        return (data.get("data") or {}).get("user") or {}

    def _default_profile(self, shop_id: str, shop_info: dict[str, Any]) -> dict[str, Any]:
        profile = super()._default_profile(shop_id, shop_info)
        profile["shop_type"] = self.kind
        return profile
