"""
Environment Configuration

Marketplace credentials and runtime knobs, read from os.environ.
Each platform gets a frozen config object built once at startup and
passed to its token broker.
"""

import os
from dataclasses import dataclass

DEFAULT_APP_URL = "http://localhost:5000"
DEFAULT_HTTP_TIMEOUT = 10.0
DEFAULT_OAUTH_STATE_TTL = 600

SHOPEE_REGIONS = ("VN", "TH", "MY", "SG", "PH", "ID", "BR", "test")


def get_app_url() -> str:
    """Public base URL used to build OAuth redirect URIs."""
    return os.environ.get("APP_URL", DEFAULT_APP_URL).rstrip("/")


def get_http_timeout() -> float:
    """Timeout (seconds) for every marketplace HTTP call."""
    try:
        return float(os.environ.get("HTTP_TIMEOUT_SECONDS", DEFAULT_HTTP_TIMEOUT))
    except ValueError:
        return DEFAULT_HTTP_TIMEOUT


def get_oauth_state_ttl() -> int:
    """Lifetime of a pending OAuth state token in seconds."""
    try:
        ttl = int(os.environ.get("OAUTH_STATE_TTL_SECONDS", DEFAULT_OAUTH_STATE_TTL))
    except ValueError:
        return DEFAULT_OAUTH_STATE_TTL
    return ttl if ttl > 0 else DEFAULT_OAUTH_STATE_TTL


@dataclass(frozen=True)
class PlatformConfig:
    """Credentials for one marketplace integration.

    For Shopee partner_id/partner_key are the partner credentials; for
    TikTok and Facebook they hold the app's client id and secret.
    """

    platform: str
    partner_id: str
    partner_key: str
    redirect_uri: str
    region: str = "VN"
    # TikTok Shop uses a second redirect for the seller (shop) flow
    shop_redirect_uri: str | None = None

    def __post_init__(self):
        if not self.partner_id:
            raise ValueError(f"{self.platform}: partner/client id is not configured")
        if not self.partner_key:
            raise ValueError(f"{self.platform}: partner key/client secret is not configured")
        if not self.redirect_uri:
            raise ValueError(f"{self.platform}: redirect URI is not configured")

    def with_region(self, region: str | None) -> "PlatformConfig":
        """Copy of this config for another region (Shopee only)."""
        if not region or region == self.region:
            return self
        return PlatformConfig(
            platform=self.platform,
            partner_id=self.partner_id,
            partner_key=self.partner_key,
            redirect_uri=self.redirect_uri,
            region=region,
            shop_redirect_uri=self.shop_redirect_uri,
        )

    @classmethod
    def shopee_from_env(cls, region: str | None = None) -> "PlatformConfig":
        return cls(
            platform="shopee",
            partner_id=os.environ.get("SHOPEE_PARTNER_ID", ""),
            partner_key=os.environ.get("SHOPEE_PARTNER_KEY", ""),
            redirect_uri=os.environ.get(
                "SHOPEE_REDIRECT_URI", f"{get_app_url()}/auth/shopee/callback"
            ),
            region=region or os.environ.get("SHOPEE_REGION", "VN"),
        )

    @classmethod
    def tiktok_from_env(cls) -> "PlatformConfig":
        app_url = get_app_url()
        return cls(
            platform="tiktok",
            partner_id=os.environ.get("TIKTOK_CLIENT_ID") or os.environ.get("TIKTOK_APP_ID", ""),
            partner_key=(
                os.environ.get("TIKTOK_CLIENT_SECRET") or os.environ.get("TIKTOK_APP_SECRET", "")
            ),
            redirect_uri=os.environ.get(
                "TIKTOK_REDIRECT_URI", f"{app_url}/auth/tiktok-business/callback"
            ),
            shop_redirect_uri=os.environ.get(
                "TIKTOK_SHOP_REDIRECT_URI", f"{app_url}/auth/tiktok-shop/callback"
            ),
        )

    @classmethod
    def facebook_from_env(cls) -> "PlatformConfig":
        return cls(
            platform="facebook",
            partner_id=os.environ.get("FACEBOOK_APP_ID", ""),
            partner_key=os.environ.get("FACEBOOK_APP_SECRET", ""),
            redirect_uri=os.environ.get(
                "FACEBOOK_REDIRECT_URI", f"{get_app_url()}/auth/facebook/callback"
            ),
        )
