"""
Marketplace integrations.

Token brokers share the lifecycle in base.TokenBroker:
- ShopeeTokenBroker: Shopee Open Platform v2 (HMAC-signed)
- TikTokTokenBroker: TikTok Business / TikTok Shop (OAuth2 Bearer)
- FacebookTokenBroker: Facebook Graph (long-lived tokens, appsecret_proof)
"""
from .base import TOKEN_REFRESH_WINDOW, AuthResult, SignedRequest, TokenBroker, TokenSet
from .facebook import FacebookTokenBroker
from .oauth_state import MemoryOAuthStateStore, OAuthState, OAuthStateStore, RedisOAuthStateStore
from .shopee import ShopeeTokenBroker
from .tiktok import TikTokTokenBroker

__all__ = [
    "TOKEN_REFRESH_WINDOW",
    "AuthResult",
    "SignedRequest",
    "TokenBroker",
    "TokenSet",
    "ShopeeTokenBroker",
    "TikTokTokenBroker",
    "FacebookTokenBroker",
    "OAuthState",
    "OAuthStateStore",
    "RedisOAuthStateStore",
    "MemoryOAuthStateStore",
]
