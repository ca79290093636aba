"""Shopee Open Platform v2 token broker.

Every call is signed with HMAC-SHA256 over
    partner_id + api_path + timestamp [+ access_token/code/refresh_token + shop_id]
using the partner key. Timestamps are unix seconds.
"""

import hashlib
import hmac
from typing import Any
from urllib.parse import urlencode

from storehub.errors import ERROR_TOKEN_EXCHANGE_FAILED, ERROR_TOKEN_REFRESH_FAILED
from storehub.logging import get_logger, sanitize_id_for_logging

from .base import AuthResult, SignedRequest, TokenBroker

logger = get_logger(__name__)

SHOPEE_PRODUCTION_URL = "https://partner.shopeemobile.com"
SHOPEE_SANDBOX_URL = "https://partner.test-stable.shopeemobile.com"

REGION_BASE_URLS = {
    "VN": SHOPEE_PRODUCTION_URL,
    "TH": SHOPEE_PRODUCTION_URL,
    "MY": SHOPEE_PRODUCTION_URL,
    "SG": SHOPEE_PRODUCTION_URL,
    "PH": SHOPEE_PRODUCTION_URL,
    "ID": SHOPEE_PRODUCTION_URL,
    "BR": SHOPEE_PRODUCTION_URL,
    "test": SHOPEE_SANDBOX_URL,
}

AUTH_PARTNER_PATH = "/api/v2/shop/auth_partner"
TOKEN_GET_PATH = "/api/v2/auth/token/get"
ACCESS_TOKEN_GET_PATH = "/api/v2/auth/access_token/get"
API_PREFIX = "/api/v2/"


def get_regional_base_url(region: str | None) -> str:
    """Partner API host for a region; unknown regions use VN."""
    return REGION_BASE_URLS.get(region or "VN", REGION_BASE_URLS["VN"])


class ShopeeTokenBroker(TokenBroker):
    """Token broker for Shopee shops."""

    platform = "shopee"

    @property
    def base_url(self) -> str:
        return get_regional_base_url(self.config.region)

    def with_region(self, region: str | None) -> "ShopeeTokenBroker":
        """Broker for a shop in another region, sharing the HTTP client."""
        config = self.config.with_region(region)
        if config is self.config:
            return self
        return ShopeeTokenBroker(
            config, self.accounts, http_client=self._http_client, clock=self._clock
        )

    def generate_sign(self, path: str, timestamp: int, additional: str = "") -> str:
        """HMAC-SHA256 signature of partner_id + path + timestamp + additional."""
        base_string = f"{self.config.partner_id}{path}{timestamp}{additional}"
        return hmac.new(
            self.config.partner_key.encode("utf-8"),
            base_string.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def generate_auth_url(self, state: str | None = None) -> str:
        """Seller authorization URL.

        Shopee echoes only `code` and `shop_id` back, so the state token
        rides along as a query parameter of the redirect URI.
        """
        timestamp = self._timestamp()
        sign = self.generate_sign(AUTH_PARTNER_PATH, timestamp)

        redirect = self.config.redirect_uri
        if state:
            separator = "&" if "?" in redirect else "?"
            redirect = f"{redirect}{separator}{urlencode({'state': state})}"

        params = urlencode({
            "partner_id": self.config.partner_id,
            "redirect": redirect,
            "timestamp": timestamp,
            "sign": sign,
        })
        return f"{self.base_url}{AUTH_PARTNER_PATH}?{params}"

    async def _token_call(
        self, path: str, extra_sign: str, body: dict[str, Any], shop_id: str, default_error: str,
        secret: str,
    ) -> AuthResult:
        timestamp = self._timestamp()
        sign = self.generate_sign(path, timestamp, extra_sign)
        # partner_id and shop_id are integers in the v2 API
        payload = {
            **body,
            "partner_id": _as_int(self.config.partner_id),
            "shop_id": _as_int(shop_id),
        }
        response = await self._send(
            "POST",
            f"{self.base_url}{path}",
            shop_id=shop_id,
            params={"partner_id": self.config.partner_id, "timestamp": timestamp, "sign": sign},
            json=payload,
        )
        data = self._json(response)

        if data.get("error") or not response.is_success:
            message = self._scrub(
                data.get("message") or data.get("error") or response.reason_phrase or default_error,
                secret,
            )
            logger.warning(
                "Shopee %s rejected for shop %s: %s",
                path,
                sanitize_id_for_logging(shop_id),
                message,
            )
            return AuthResult.failed(message or default_error, shop_id=shop_id)

        access_token = data.get("access_token")
        if not access_token:
            return AuthResult.failed(default_error, shop_id=shop_id)

        return AuthResult(
            success=True,
            access_token=access_token,
            refresh_token=data.get("refresh_token"),
            expires_at=self._expires_at(data.get("expire_in", data.get("expires_in"))),
            shop_id=shop_id,
            raw=data,
        )

    async def exchange_code_for_token(self, code: str, shop_id: str) -> AuthResult:
        """POST /api/v2/auth/token/get."""
        return await self._token_call(
            TOKEN_GET_PATH,
            code + shop_id,
            {"code": code},
            shop_id,
            ERROR_TOKEN_EXCHANGE_FAILED,
            code,
        )

    async def refresh_access_token(self, refresh_token: str, shop_id: str) -> AuthResult:
        """POST /api/v2/auth/access_token/get."""
        return await self._token_call(
            ACCESS_TOKEN_GET_PATH,
            refresh_token + shop_id,
            {"refresh_token": refresh_token},
            shop_id,
            ERROR_TOKEN_REFRESH_FAILED,
            refresh_token,
        )

    def _build_signed_request(
        self, endpoint: str, shop_id: str, access_token: str
    ) -> SignedRequest:
        path = f"{API_PREFIX}{endpoint.lstrip('/')}"
        timestamp = self._timestamp()
        sign = self.generate_sign(path, timestamp, access_token + shop_id)
        return SignedRequest(
            url=f"{self.base_url}{path}",
            params={
                "partner_id": self.config.partner_id,
                "shop_id": shop_id,
                "timestamp": timestamp,
                "access_token": access_token,
                "sign": sign,
            },
        )

    async def get_shop_info(self, shop_id: str) -> dict[str, Any]:
        """Shop profile in the shape store_business_account expects."""
        data = await self.make_authenticated_request("shop/get_shop_info", shop_id)
        if data.get("error"):
            return {}
        # Older responses put fields at top level, newer under "response"
        info = data.get("response") or data
        return {
            "shop_name": info.get("shop_name"),
            "shop_logo": info.get("shop_logo"),
            "shop_type": info.get("shop_type") or "normal",
            "contact_email": info.get("contact_email"),
            "contact_phone": info.get("contact_phone"),
        }


def _as_int(value: str) -> int | str:
    try:
        return int(value)
    except (TypeError, ValueError):
        return value
