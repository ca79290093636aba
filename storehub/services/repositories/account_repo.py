"""Business Account Repository - marketplace seller accounts and their tokens.

All methods use async/await with supabase-py v2.
"""

from datetime import UTC, datetime
from typing import Any

from supabase._async.client import AsyncClient

from storehub.logging import get_logger, sanitize_id_for_logging
from storehub.services.models import BusinessAccount

from .base import BaseRepository

logger = get_logger(__name__)

PLATFORM_TABLES = {
    "shopee": "shopee_business_accounts",
    "tiktok": "tiktok_business_accounts",
    "facebook": "facebook_business_accounts",
}

# Columns a reconnect is allowed to overwrite
TOKEN_COLUMNS = ("access_token", "refresh_token", "token_expires_at")


def _serialize(data: dict[str, Any]) -> dict[str, Any]:
    """Make a row JSON-safe for PostgREST."""
    return {
        key: value.isoformat() if isinstance(value, datetime) else value
        for key, value in data.items()
    }


class BusinessAccountRepository(BaseRepository):
    """Business account database operations for one platform."""

    def __init__(self, client: AsyncClient, platform: str = "shopee") -> None:
        super().__init__(client)
        if platform not in PLATFORM_TABLES:
            raise ValueError(f"Unknown platform: {platform}")
        self.platform = platform
        self.table = PLATFORM_TABLES[platform]

    def _to_model(self, row: dict[str, Any]) -> BusinessAccount:
        return BusinessAccount(**{**row, "platform": self.platform})

    async def get_by_shop_id(self, shop_id: str) -> BusinessAccount | None:
        """Get account by marketplace shop ID."""
        result = await self.client.table(self.table).select("*").eq("shop_id", shop_id).execute()
        return self._to_model(result.data[0]) if result.data else None

    async def get_by_id(self, account_id: str) -> BusinessAccount | None:
        """Get account by internal ID."""
        result = await self.client.table(self.table).select("*").eq("id", account_id).execute()
        return self._to_model(result.data[0]) if result.data else None

    async def list_all(self) -> list[BusinessAccount]:
        """All accounts, newest first."""
        result = (
            await self.client.table(self.table)
            .select("*")
            .order("created_at", desc=True)
            .execute()
        )
        return [self._to_model(row) for row in result.data or []]

    async def upsert_tokens(
        self, profile: dict[str, Any], token_fields: dict[str, Any]
    ) -> BusinessAccount:
        """Insert a new account or refresh the tokens of an existing one.

        On conflict (same shop_id) only tokens, connection flag and sync
        timestamps change; profile columns edited in the console survive
        a reconnect.
        """
        shop_id = profile["shop_id"]
        now = datetime.now(UTC)
        update = {
            **{key: token_fields.get(key) for key in TOKEN_COLUMNS},
            "connected": True,
            "last_sync": now,
            "updated_at": now,
        }

        # Insert-if-absent in one statement; an existing row keeps its
        # profile and only gets the token update below
        row = {**profile, **update, "is_active": True}
        inserted = (
            await self.client.table(self.table)
            .upsert(_serialize(row), on_conflict="shop_id", ignore_duplicates=True)
            .execute()
        )
        result = (
            await self.client.table(self.table)
            .update(_serialize(update))
            .eq("shop_id", shop_id)
            .execute()
        )
        if inserted.data:
            logger.info("%s account %s created", self.platform, sanitize_id_for_logging(shop_id))
        else:
            logger.info(
                "%s account %s reconnected", self.platform, sanitize_id_for_logging(shop_id)
            )

        if result.data:
            return self._to_model(result.data[0])
        # PostgREST returns no rows when representation is disabled
        account = await self.get_by_shop_id(shop_id)
        if account is None:
            raise RuntimeError(f"Failed to persist {self.platform} account")
        return account

    async def update_tokens(self, shop_id: str, token_fields: dict[str, Any]) -> None:
        """Store a refreshed token pair."""
        now = datetime.now(UTC)
        update = {key: token_fields.get(key) for key in TOKEN_COLUMNS}
        update.update({"last_sync": now, "updated_at": now})
        await self.client.table(self.table).update(_serialize(update)).eq("shop_id", shop_id).execute()

    async def clear_tokens(self, shop_id: str) -> None:
        """Disconnect: drop tokens, keep the account row."""
        now = datetime.now(UTC)
        update = {
            "access_token": None,
            "refresh_token": None,
            "token_expires_at": None,
            "connected": False,
            "last_sync": now,
            "updated_at": now,
        }
        await self.client.table(self.table).update(_serialize(update)).eq("shop_id", shop_id).execute()

    async def update_profile(self, account_id: str, fields: dict[str, Any]) -> None:
        """Update profile columns (shop name, logo, contacts, analytics cache)."""
        now = datetime.now(UTC)
        data = {**fields, "last_sync": now, "updated_at": now}
        await self.client.table(self.table).update(_serialize(data)).eq("id", account_id).execute()
