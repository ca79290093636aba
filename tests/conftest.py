"""Pytest configuration and fixtures"""
import asyncio
import copy
import os
import uuid
from datetime import UTC, datetime
from typing import Any, Dict, List, Optional

import pytest

# Set test environment variables
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test_key")
os.environ.setdefault("ADMIN_API_KEY", "test_admin_key")
os.environ.setdefault("APP_URL", "https://console.test")
os.environ.setdefault("SHOPEE_PARTNER_ID", "2001234")
os.environ.setdefault("SHOPEE_PARTNER_KEY", "shopee-partner-key")
os.environ.setdefault("TIKTOK_CLIENT_ID", "tt-client")
os.environ.setdefault("TIKTOK_CLIENT_SECRET", "tt-secret")
os.environ.setdefault("FACEBOOK_APP_ID", "fb-app")
os.environ.setdefault("FACEBOOK_APP_SECRET", "fb-secret")


# ==================== FAKE SUPABASE ====================

class _Result:
    def __init__(self, data, count=None):
        self.data = data
        self.count = count


class _FakeQuery:
    """Chainable stand-in for a PostgREST query on one table."""

    def __init__(
        self, tables: Dict[str, List[Dict[str, Any]]], name: str, calls: List, latency: float = 0.0
    ):
        self.rows = tables.setdefault(name, [])
        self.latency = latency
        self.name = name
        self.calls = calls
        self._mode = "select"
        self._payload: Any = None
        self._filters: List = []
        self._order: Optional[tuple] = None
        self._range: Optional[tuple] = None
        self._count = False
        self._on_conflict: Optional[str] = None
        self._ignore_duplicates = False

    def select(self, *_columns, count=None):
        self._mode = "select"
        self._count = count == "exact"
        return self

    def insert(self, row):
        self._mode, self._payload = "insert", row
        return self

    def update(self, data):
        self._mode, self._payload = "update", data
        return self

    def upsert(self, row, on_conflict=None, ignore_duplicates=False):
        self._mode, self._payload, self._on_conflict = "upsert", row, on_conflict
        self._ignore_duplicates = ignore_duplicates
        return self

    def delete(self):
        self._mode = "delete"
        return self

    def eq(self, column, value):
        self._filters.append(lambda r: r.get(column) == value)
        return self

    def gte(self, column, value):
        self._filters.append(lambda r: r.get(column) is not None and r[column] >= value)
        return self

    def lte(self, column, value):
        self._filters.append(lambda r: r.get(column) is not None and r[column] <= value)
        return self

    def or_(self, expression):
        checks = []
        for part in expression.split(","):
            column, _op, pattern = part.split(".", 2)
            checks.append((column, pattern.strip("%").lower()))
        self._filters.append(
            lambda r: any(term in str(r.get(col) or "").lower() for col, term in checks)
        )
        return self

    def order(self, column, desc=False):
        self._order = (column, desc)
        return self

    def range(self, start, end):
        self._range = (start, end)
        return self

    def limit(self, n):
        self._range = (0, n - 1)
        return self

    def _matching(self):
        return [r for r in self.rows if all(f(r) for f in self._filters)]

    def _insert(self, row):
        stored = {"id": str(uuid.uuid4()), "created_at": datetime.now(UTC).isoformat(), **row}
        self.rows.append(stored)
        return stored

    async def execute(self):
        if self.latency:
            # Network round trip: other requests run before this statement applies
            await asyncio.sleep(self.latency)
        self.calls.append((self.name, self._mode, copy.deepcopy(self._payload)))
        if self._mode == "select":
            rows = self._matching()
            if self._order:
                column, desc = self._order
                rows = sorted(rows, key=lambda r: str(r.get(column) or ""), reverse=desc)
            count = len(rows)
            if self._range:
                rows = rows[self._range[0]:self._range[1] + 1]
            return _Result(copy.deepcopy(rows), count if self._count else None)
        if self._mode == "insert":
            return _Result([copy.deepcopy(self._insert(self._payload))])
        if self._mode == "update":
            matched = self._matching()
            for row in matched:
                row.update(self._payload)
            return _Result(copy.deepcopy(matched))
        if self._mode == "upsert":
            key = self._on_conflict
            existing = [r for r in self.rows if key and r.get(key) == self._payload.get(key)]
            if existing and self._ignore_duplicates:
                return _Result([])
            if existing:
                existing[0].update(self._payload)
                return _Result([copy.deepcopy(existing[0])])
            return _Result([copy.deepcopy(self._insert(self._payload))])
        if self._mode == "delete":
            matched = self._matching()
            for row in matched:
                self.rows.remove(row)
            return _Result(copy.deepcopy(matched))
        return _Result([])


class FakeSupabase:
    """In-memory async Supabase client: tables are lists of dict rows."""

    def __init__(
        self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None, latency: float = 0.0
    ):
        self.tables = tables if tables is not None else {}
        self.calls: List = []
        self.latency = latency

    def table(self, name: str):
        return _FakeQuery(self.tables, name, self.calls, self.latency)


@pytest.fixture
def fake_supabase():
    return FakeSupabase()


@pytest.fixture
def database(fake_supabase):
    """Real Database container over the in-memory client."""
    from storehub.services.database import Database
    return Database(fake_supabase)


@pytest.fixture
def shopee_config():
    from storehub.config import PlatformConfig
    return PlatformConfig(
        platform="shopee",
        partner_id="2001234",
        partner_key="shopee-partner-key",
        redirect_uri="https://console.test/auth/shopee/callback",
    )


@pytest.fixture
def fixed_now():
    return datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def admin_headers():
    return {"Authorization": "Bearer test_admin_key"}


@pytest.fixture
def sample_account_row():
    """Connected Shopee account row as stored in Supabase"""
    return {
        "id": "6f1c2b8e-1d2a-4c3b-9e8f-0a1b2c3d4e5f",
        "partner_id": "2001234",
        "shop_id": "556677",
        "display_name": "Rasa Store",
        "shop_name": "Rasa Store",
        "access_token": "stored-access",
        "refresh_token": "stored-refresh",
        "token_expires_at": "2026-03-01T16:00:00+00:00",
        "region": "VN",
        "connected": True,
        "is_active": True,
        "created_at": "2026-01-10T08:00:00+00:00",
    }
