"""OAuth state storage.

Correlates an outgoing authorization redirect with the provider callback.
States are random, expire after a TTL and can be consumed once.

Only non-secret data is stored: the broker for the callback is rebuilt from
server configuration plus the stored region.
"""

import json
import secrets
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import asdict, dataclass
from typing import Any

from storehub.config import get_oauth_state_ttl
from storehub.db import RedisKeys
from storehub.logging import get_logger, sanitize_id_for_logging

logger = get_logger(__name__)

# Post-auth paths the console may send the browser back to
ALLOWED_REDIRECTS = {
    "shopee": ("/shopee-shop", "/social-media", "/marketplace"),
    "tiktok": ("/tiktok-shop", "/social-media", "/marketplace"),
    "facebook": ("/social-media", "/facebook-apps"),
}

DEFAULT_REDIRECTS = {
    "shopee": "/shopee-shop",
    "tiktok": "/tiktok-shop",
    "facebook": "/social-media",
}


def new_state_token() -> str:
    """Cryptographically random state token."""
    return secrets.token_urlsafe(32)


def safe_redirect_path(platform: str, requested: str | None) -> str:
    """Requested path if allow-listed for the platform, else its default."""
    if requested and requested in ALLOWED_REDIRECTS.get(platform, ()):
        return requested
    return DEFAULT_REDIRECTS.get(platform, "/")


@dataclass
class OAuthState:
    """A pending authorization flow."""
    state: str
    platform: str
    redirect_url: str
    created_at: float
    region: str | None = None
    kind: str | None = None  # TikTok: "shop" | "business"

    @classmethod
    def create(
        cls,
        platform: str,
        redirect_url: str | None = None,
        region: str | None = None,
        kind: str | None = None,
    ) -> "OAuthState":
        return cls(
            state=new_state_token(),
            platform=platform,
            redirect_url=safe_redirect_path(platform, redirect_url),
            created_at=time.time(),
            region=region,
            kind=kind,
        )

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, raw: str | bytes) -> "OAuthState":
        data: dict[str, Any] = json.loads(raw)
        return cls(**data)


class OAuthStateStore(ABC):
    """Time-bounded, read-once store of pending OAuth states."""

    def __init__(self, ttl_seconds: int | None = None) -> None:
        self.ttl_seconds = ttl_seconds or get_oauth_state_ttl()

    @abstractmethod
    async def save(self, state: OAuthState) -> None:
        """Persist a state until it is consumed or expires."""

    @abstractmethod
    async def consume(self, token: str) -> OAuthState | None:
        """Return and delete the state; None if unknown, expired or used."""


class RedisOAuthStateStore(OAuthStateStore):
    """Upstash Redis backed store; works across serverless instances."""

    def __init__(self, redis: Any, ttl_seconds: int | None = None) -> None:
        super().__init__(ttl_seconds)
        self.redis = redis

    def _key(self, token: str) -> str:
        return f"{RedisKeys.OAUTH_STATE}{token}"

    async def save(self, state: OAuthState) -> None:
        await self.redis.set(self._key(state.state), state.to_json(), ex=self.ttl_seconds)

    async def consume(self, token: str) -> OAuthState | None:
        if not token:
            return None
        # GETDEL makes the read-once guarantee atomic
        raw = await self.redis.getdel(self._key(token))
        if not raw:
            return None
        try:
            return OAuthState.from_json(raw)
        except (ValueError, TypeError) as e:
            logger.warning("Corrupt OAuth state %s: %s", sanitize_id_for_logging(token), e)
            return None


class MemoryOAuthStateStore(OAuthStateStore):
    """In-process store for tests and single-instance local runs.

    Entries are evicted when their TTL passes and, past max_entries,
    oldest first.
    """

    def __init__(
        self,
        ttl_seconds: int | None = None,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(ttl_seconds)
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, str]] = OrderedDict()

    def __len__(self) -> int:
        self._evict_expired()
        return len(self._entries)

    def _evict_expired(self) -> None:
        now = self._clock()
        expired = [token for token, (expires, _) in self._entries.items() if expires <= now]
        for token in expired:
            del self._entries[token]

    async def save(self, state: OAuthState) -> None:
        self._evict_expired()
        self._entries[state.state] = (self._clock() + self.ttl_seconds, state.to_json())
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    async def consume(self, token: str) -> OAuthState | None:
        self._evict_expired()
        entry = self._entries.pop(token, None) if token else None
        if entry is None:
            return None
        return OAuthState.from_json(entry[1])
