"""
Shared Dependencies for Routers

Lazy-loaded singletons to optimize cold start, plus the FastAPI
dependencies that build token brokers per request. Tests replace any of
them through app.dependency_overrides.
"""

from collections.abc import Callable
from typing import TYPE_CHECKING, Optional

import httpx
from fastapi import Depends, HTTPException

from storehub.config import PlatformConfig, get_http_timeout
from storehub.logging import get_logger

if TYPE_CHECKING:
    from storehub.integrations.facebook import FacebookTokenBroker
    from storehub.integrations.oauth_state import OAuthStateStore
    from storehub.integrations.shopee import ShopeeTokenBroker
    from storehub.integrations.tiktok import TikTokTokenBroker
    from storehub.services.database import Database
    from storehub.services.sellers import SellerService

logger = get_logger(__name__)


# ==================== LAZY SINGLETONS ====================

_http_client: Optional[httpx.AsyncClient] = None
_state_store: Optional["OAuthStateStore"] = None


def get_db() -> "Database":
    """Database container initialized in the app lifespan."""
    from storehub.services.database import get_database
    return get_database()


def get_http_client() -> httpx.AsyncClient:
    """Shared httpx client for every broker (lazy loaded)"""
    global _http_client
    if _http_client is None:
        _http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(get_http_timeout(), connect=5.0),
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
        )
    return _http_client


def get_state_store() -> "OAuthStateStore":
    """Redis-backed OAuth state store, in-memory when Upstash is not configured"""
    global _state_store
    if _state_store is None:
        from storehub.db import get_redis, redis_configured
        from storehub.integrations.oauth_state import MemoryOAuthStateStore, RedisOAuthStateStore

        if redis_configured():
            _state_store = RedisOAuthStateStore(get_redis())
        else:
            logger.warning("Upstash Redis not configured, OAuth state kept in process memory")
            _state_store = MemoryOAuthStateStore()
    return _state_store


# ==================== BROKERS ====================

def _load_config(platform: str, loader: Callable[[], PlatformConfig]) -> PlatformConfig:
    try:
        return loader()
    except ValueError as e:
        logger.error("%s integration misconfigured: %s", platform, e)
        raise HTTPException(status_code=503, detail=f"{platform.title()} integration is not configured")


def get_shopee_broker(db: "Database" = Depends(get_db)) -> "ShopeeTokenBroker":
    """Shopee broker for the default region; use .with_region() for others."""
    from storehub.integrations.shopee import ShopeeTokenBroker

    config = _load_config("shopee", PlatformConfig.shopee_from_env)
    return ShopeeTokenBroker(config, db.accounts("shopee"), http_client=get_http_client())


def get_tiktok_broker_factory(
    db: "Database" = Depends(get_db),
) -> Callable[[str], "TikTokTokenBroker"]:
    """Returns kind -> TikTokTokenBroker ("shop" or "business")."""
    from storehub.integrations.tiktok import TikTokTokenBroker

    config = _load_config("tiktok", PlatformConfig.tiktok_from_env)
    accounts = db.accounts("tiktok")

    def build(kind: str) -> TikTokTokenBroker:
        return TikTokTokenBroker(config, accounts, http_client=get_http_client(), kind=kind)

    return build


def get_facebook_broker(db: "Database" = Depends(get_db)) -> "FacebookTokenBroker":
    from storehub.integrations.facebook import FacebookTokenBroker

    config = _load_config("facebook", PlatformConfig.facebook_from_env)
    return FacebookTokenBroker(config, db.accounts("facebook"), http_client=get_http_client())


def get_seller_service(
    db: "Database" = Depends(get_db),
    broker: "ShopeeTokenBroker" = Depends(get_shopee_broker),
) -> "SellerService":
    from storehub.services.sellers import SellerService
    return SellerService(db.accounts("shopee"), db.orders, broker)


# ==================== SHUTDOWN HELPERS ====================

async def shutdown_services():
    """Cleanly close singleton services (http clients, etc.)."""
    global _http_client, _state_store
    _state_store = None
    if _http_client is not None:
        try:
            await _http_client.aclose()
        finally:
            _http_client = None
