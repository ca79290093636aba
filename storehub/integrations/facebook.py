"""Facebook Graph API token broker.

Facebook issues no refresh tokens. The code grant is immediately upgraded
to a long-lived (~60 day) user token, and "refreshing" exchanges the
current long-lived token for a new one while it is still valid. Calls are
signed with appsecret_proof = HMAC-SHA256(app_secret, access_token).
"""

import hashlib
import hmac
import secrets
from typing import Any
from urllib.parse import urlencode

from storehub.errors import (
    ERROR_TOKEN_EXCHANGE_FAILED,
    ERROR_TOKEN_REFRESH_FAILED,
    ProviderError,
    TransportError,
)
from storehub.logging import get_logger, sanitize_id_for_logging

from .base import AuthResult, SignedRequest, TokenBroker

logger = get_logger(__name__)

GRAPH_VERSION = "v18.0"
GRAPH_URL = f"https://graph.facebook.com/{GRAPH_VERSION}/"
DIALOG_URL = f"https://www.facebook.com/{GRAPH_VERSION}/dialog/oauth"

SCOPES = ",".join((
    "pages_show_list",
    "pages_read_engagement",
    "pages_manage_posts",
    "pages_messaging",
    "business_management",
))


class FacebookTokenBroker(TokenBroker):
    """Token broker for Facebook user accounts managing shop pages."""

    platform = "facebook"

    @staticmethod
    def generate_state() -> str:
        return secrets.token_hex(32)

    def appsecret_proof(self, access_token: str) -> str:
        return hmac.new(
            self.config.partner_key.encode("utf-8"),
            access_token.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def generate_auth_url(self, state: str | None = None) -> str:
        params = urlencode({
            "client_id": self.config.partner_id,
            "redirect_uri": self.config.redirect_uri,
            "state": state or self.generate_state(),
            "scope": SCOPES,
            "response_type": "code",
        })
        return f"{DIALOG_URL}?{params}"

    async def _graph_token(self, params: dict[str, str], shop_id: str, default_error: str, secret: str) -> AuthResult:
        response = await self._send(
            "GET",
            f"{GRAPH_URL}oauth/access_token",
            shop_id=shop_id,
            params={
                "client_id": self.config.partner_id,
                "client_secret": self.config.partner_key,
                **params,
            },
        )
        data = self._json(response)
        error = data.get("error")
        if error or not response.is_success:
            message = error.get("message") if isinstance(error, dict) else error
            message = self._scrub(message or response.reason_phrase or default_error, secret)
            logger.warning(
                "Facebook token endpoint rejected request for %s: %s",
                sanitize_id_for_logging(shop_id),
                message,
            )
            return AuthResult.failed(message, shop_id=shop_id or None)

        access_token = data.get("access_token")
        if not access_token:
            return AuthResult.failed(default_error, shop_id=shop_id or None)
        return AuthResult(
            success=True,
            access_token=access_token,
            # The long-lived token is its own refresh credential
            refresh_token=access_token,
            expires_at=self._expires_at(data.get("expires_in")),
            shop_id=shop_id or None,
            raw=data,
        )

    async def exchange_code_for_token(self, code: str, shop_id: str = "") -> AuthResult:
        """Code grant, upgraded to a long-lived token; shop id = Facebook user id."""
        short = await self._graph_token(
            {"redirect_uri": self.config.redirect_uri, "code": code},
            shop_id,
            ERROR_TOKEN_EXCHANGE_FAILED,
            code,
        )
        if not short.success or not short.access_token:
            return short

        result = await self.refresh_access_token(short.access_token, shop_id)
        if not result.success or not result.access_token:
            return AuthResult.failed(ERROR_TOKEN_EXCHANGE_FAILED, shop_id=shop_id or None)

        if not shop_id:
            profile = await self.get_user_profile(result.access_token)
            result.shop_id = profile.get("id")
            if not result.shop_id:
                return AuthResult.failed(ERROR_TOKEN_EXCHANGE_FAILED)
        return result

    async def refresh_access_token(self, refresh_token: str, shop_id: str) -> AuthResult:
        """fb_exchange_token grant on the current long-lived token."""
        return await self._graph_token(
            {"grant_type": "fb_exchange_token", "fb_exchange_token": refresh_token},
            shop_id,
            ERROR_TOKEN_REFRESH_FAILED,
            refresh_token,
        )

    def _build_signed_request(
        self, endpoint: str, shop_id: str, access_token: str
    ) -> SignedRequest:
        return SignedRequest(
            url=f"{GRAPH_URL}{endpoint.lstrip('/')}",
            params={
                "access_token": access_token,
                "appsecret_proof": self.appsecret_proof(access_token),
            },
        )

    async def _graph_get(self, path: str, access_token: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        response = await self._send(
            "GET",
            f"{GRAPH_URL}{path}",
            params={
                **(params or {}),
                "access_token": access_token,
                "appsecret_proof": self.appsecret_proof(access_token),
            },
        )
        data = self._json(response)
        if not response.is_success or data.get("error"):
            error = data.get("error") or {}
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise ProviderError(
                self._scrub(f"Facebook {path} failed: {message or response.reason_phrase}", access_token),
                platform=self.platform,
                provider_status=response.status_code,
                status_text=response.reason_phrase,
            )
        return data

    async def get_user_profile(self, access_token: str) -> dict[str, Any]:
        return await self._graph_get("me", access_token, {"fields": "id,name,picture"})

    async def get_user_pages(self, access_token: str) -> list[dict[str, Any]]:
        data = await self._graph_get(
            "me/accounts", access_token, {"fields": "id,name,access_token,category,fan_count"}
        )
        return data.get("data") or []

    async def revoke_token(self, shop_id: str) -> bool:
        """Revoke app permissions for the stored token (best-effort)."""
        account = await self.get_business_account(shop_id)
        if not account or not account.access_token:
            return False
        response = await self._send(
            "DELETE",
            f"{GRAPH_URL}me/permissions",
            shop_id=shop_id,
            params={
                "access_token": account.access_token,
                "appsecret_proof": self.appsecret_proof(account.access_token),
            },
        )
        return response.is_success

    async def disconnect_shop(self, shop_id: str) -> None:
        try:
            await self.revoke_token(shop_id)
        except TransportError as e:
            # Local disconnect must still happen when Facebook is unreachable
            logger.warning(
                "Failed to revoke Facebook token for %s: %s",
                sanitize_id_for_logging(shop_id),
                type(e).__name__,
            )
        await super().disconnect_shop(shop_id)
