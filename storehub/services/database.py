"""
Supabase Database Service

Holds the async Supabase client and the repositories built on it.

Usage:
    from storehub.services.database import get_database

    # At FastAPI startup (lifespan):
    await init_database()

    db = get_database()
    account = await db.accounts("shopee").get_by_id(account_id)
"""

import asyncio
import os
from typing import Optional

from supabase._async.client import AsyncClient
from supabase._async.client import create_client as acreate_client

from storehub.logging import get_logger
from storehub.services.repositories import (
    PLATFORM_TABLES,
    BusinessAccountRepository,
    MarketplaceOrderRepository,
)

logger = get_logger(__name__)


class Database:
    """
    Repository container over one async Supabase client.

    Must be initialized via async factory method `create()` or `init_database()`.
    """

    def __init__(self, client: AsyncClient):
        self.client = client
        self._accounts = {
            platform: BusinessAccountRepository(client, platform) for platform in PLATFORM_TABLES
        }
        self.orders = MarketplaceOrderRepository(client)

    @classmethod
    async def create(cls) -> "Database":
        url = os.environ.get("SUPABASE_URL")
        key = os.environ.get("SUPABASE_SERVICE_ROLE_KEY")
        if not url or not key:
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")

        client = await acreate_client(url, key)
        return cls(client)

    def accounts(self, platform: str) -> BusinessAccountRepository:
        """Business account repository for a platform."""
        try:
            return self._accounts[platform]
        except KeyError:
            raise ValueError(f"Unknown platform: {platform}") from None


# Process-wide container, created in the FastAPI lifespan

_db: Optional[Database] = None
_db_lock: Optional[asyncio.Lock] = None


def _get_lock() -> asyncio.Lock:
    global _db_lock
    if _db_lock is None:
        _db_lock = asyncio.Lock()
    return _db_lock


async def init_database() -> Database:
    """Create the shared Database once; concurrent callers wait on the lock."""
    global _db
    if _db is not None:
        return _db

    async with _get_lock():
        if _db is None:
            logger.info("Connecting repositories to Supabase")
            _db = await Database.create()
            logger.info("Supabase repositories ready (%d account tables)", len(PLATFORM_TABLES))
    return _db


async def close_database() -> None:
    """Drop the singleton at shutdown."""
    global _db
    if _db is not None:
        _db = None
        logger.info("Supabase client released")


def get_database() -> Database:
    """Shared Database for request handlers; raises RuntimeError before startup."""
    if _db is None:
        raise RuntimeError(
            "Storehub database is not ready: the app lifespan did not run init_database()"
        )
    return _db
