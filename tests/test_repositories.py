"""Tests for Supabase repositories and models"""
import asyncio
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from storehub.services.models import BusinessAccount, ConnectionStatus
from storehub.services.repositories import (
    BusinessAccountRepository,
    MarketplaceOrderRepository,
    OrderFilters,
)

ORDERS = "shopee_shop_orders"


def _order(n, status="to_ship", amount=100_000, shop_id="556677", created="2026-02-0{}T10:00:00+00:00"):
    return {
        "id": f"order-{n}",
        "shopee_order_id": f"SN{n}",
        "order_sn": f"SN{n}",
        "order_number": f"SN{n}",
        "shop_id": shop_id,
        "order_status": status,
        "total_amount": amount,
        "create_time": created.format(n),
    }


class TestBusinessAccountModel:
    def test_naive_timestamps_are_utc(self):
        account = BusinessAccount(
            id="a", shop_id="1", display_name="x", token_expires_at="2026-03-01T10:00:00"
        )
        assert account.token_expires_at.tzinfo is UTC

    def test_expires_within(self):
        now = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
        account = BusinessAccount(
            id="a", shop_id="1", display_name="x", token_expires_at=now + timedelta(minutes=4)
        )
        assert account.expires_within(timedelta(minutes=5), now=now)
        assert not account.expires_within(timedelta(minutes=3), now=now)

    def test_no_expiry_never_expires(self):
        account = BusinessAccount(id="a", shop_id="1", display_name="x", access_token="t")
        assert not account.expires_within(timedelta(days=365))

    def test_public_dict_hides_tokens(self):
        account = BusinessAccount(
            id="a", shop_id="1", display_name="x", access_token="t", refresh_token="r", connected=True
        )
        data = account.public_dict()
        assert "access_token" not in data
        assert "refresh_token" not in data
        assert data["status"] == ConnectionStatus.CONNECTED.value

    def test_connected_flag_without_token_is_disconnected(self):
        account = BusinessAccount(id="a", shop_id="1", display_name="x", connected=True)
        assert account.status == ConnectionStatus.DISCONNECTED


class TestBusinessAccountRepository:
    def test_unknown_platform(self, fake_supabase):
        with pytest.raises(ValueError):
            BusinessAccountRepository(fake_supabase, "lazada")

    @pytest.mark.asyncio
    async def test_list_all_newest_first(self, fake_supabase):
        fake_supabase.tables["shopee_business_accounts"] = [
            {"id": "old", "shop_id": "1", "display_name": "Old", "created_at": "2025-01-01T00:00:00+00:00"},
            {"id": "new", "shop_id": "2", "display_name": "New", "created_at": "2026-01-01T00:00:00+00:00"},
        ]
        repo = BusinessAccountRepository(fake_supabase, "shopee")
        accounts = await repo.list_all()
        assert [a.id for a in accounts] == ["new", "old"]

    @pytest.mark.asyncio
    async def test_platform_tables_are_separate(self, fake_supabase):
        repo = BusinessAccountRepository(fake_supabase, "facebook")
        await repo.upsert_tokens(
            {"shop_id": "fb-1", "display_name": "FB"}, {"access_token": "t"}
        )
        assert "facebook_business_accounts" in fake_supabase.tables
        assert "shopee_business_accounts" not in fake_supabase.tables

    @pytest.mark.asyncio
    async def test_update_profile_touches_only_given_account(self, fake_supabase, sample_account_row):
        other = {**sample_account_row, "id": "other", "shop_id": "1"}
        fake_supabase.tables["shopee_business_accounts"] = [sample_account_row, other]
        repo = BusinessAccountRepository(fake_supabase, "shopee")

        await repo.update_profile(sample_account_row["id"], {"total_orders": 7})

        rows = fake_supabase.tables["shopee_business_accounts"]
        assert rows[0]["total_orders"] == 7
        assert "total_orders" not in rows[1]


    @pytest.mark.asyncio
    async def test_concurrent_first_connect_creates_one_row(self, fake_supabase):
        # Two callbacks for the same shop interleave their round trips
        fake_supabase.latency = 0.01
        repo = BusinessAccountRepository(fake_supabase, "shopee")
        profile = {"shop_id": "556677", "display_name": "Rasa Store"}

        first, second = await asyncio.gather(
            repo.upsert_tokens(profile, {"access_token": "acc-1", "refresh_token": "ref-1"}),
            repo.upsert_tokens(profile, {"access_token": "acc-2", "refresh_token": "ref-2"}),
        )

        rows = fake_supabase.tables["shopee_business_accounts"]
        assert len(rows) == 1
        assert first.id == second.id == rows[0]["id"]
        assert rows[0]["connected"] is True
        assert rows[0]["access_token"] in ("acc-1", "acc-2")

    @pytest.mark.asyncio
    async def test_reconnect_updates_tokens_only(self, fake_supabase, sample_account_row):
        sample_account_row["display_name"] = "Edited in console"
        sample_account_row["connected"] = False
        fake_supabase.tables["shopee_business_accounts"] = [sample_account_row]
        repo = BusinessAccountRepository(fake_supabase, "shopee")

        account = await repo.upsert_tokens(
            {"shop_id": "556677", "display_name": "Shopee Shop 556677"},
            {"access_token": "new-acc", "refresh_token": "new-ref"},
        )

        assert account.display_name == "Edited in console"
        assert account.access_token == "new-acc"
        assert account.connected is True
        assert len(fake_supabase.tables["shopee_business_accounts"]) == 1


class TestMarketplaceOrderRepository:
    @pytest.mark.asyncio
    async def test_list_orders_filters_and_pages(self, fake_supabase):
        fake_supabase.tables[ORDERS] = [
            _order(1, "to_ship"),
            _order(2, "completed"),
            _order(3, "to_ship"),
            _order(4, "to_ship", shop_id="other"),
        ]
        repo = MarketplaceOrderRepository(fake_supabase)

        result = await repo.list_orders(OrderFilters(order_status="to_ship", shop_id="556677", limit=1))

        assert result["total"] == 2
        assert result["limit"] == 1
        assert [o["order_sn"] for o in result["orders"]] == ["SN3"]

    @pytest.mark.asyncio
    async def test_list_orders_search_and_dates(self, fake_supabase):
        fake_supabase.tables[ORDERS] = [_order(1), _order(2), _order(3)]
        repo = MarketplaceOrderRepository(fake_supabase)

        searched = await repo.list_orders(OrderFilters(search="sn2"))
        dated = await repo.list_orders(
            OrderFilters(start_date="2026-02-02T00:00:00+00:00", sort_order="asc")
        )

        assert [o["order_sn"] for o in searched["orders"]] == ["SN2"]
        assert [o["order_sn"] for o in dated["orders"]] == ["SN2", "SN3"]

    @pytest.mark.asyncio
    async def test_limit_is_clamped(self, fake_supabase):
        repo = MarketplaceOrderRepository(fake_supabase)
        result = await repo.list_orders(OrderFilters(limit=10_000, offset=-5))
        assert result["limit"] == 200
        assert result["offset"] == 0

    @pytest.mark.asyncio
    async def test_analytics_excludes_lost_revenue(self, fake_supabase):
        fake_supabase.tables[ORDERS] = [
            _order(1, "completed", 300_000),
            _order(2, "to_ship", 100_000),
            _order(3, "cancelled", 900_000),
        ]
        repo = MarketplaceOrderRepository(fake_supabase)

        analytics = await repo.analytics(shop_id="556677")

        assert analytics["total_orders"] == 3
        assert analytics["orders_by_status"]["cancelled"] == 1
        assert analytics["orders_by_status"]["unpaid"] == 0
        assert analytics["total_revenue"] == 400_000
        assert analytics["avg_order_value"] == 200_000

    @pytest.mark.asyncio
    async def test_analytics_empty(self, fake_supabase):
        analytics = await MarketplaceOrderRepository(fake_supabase).analytics()
        assert analytics["total_orders"] == 0
        assert analytics["avg_order_value"] == 0

    @pytest.mark.asyncio
    async def test_update_status_with_tracking(self, fake_supabase):
        fake_supabase.tables[ORDERS] = [_order(1)]
        repo = MarketplaceOrderRepository(fake_supabase)

        order = await repo.update_status(
            "order-1", "shipped", {"tracking_number": "VN123", "shipping_carrier": "GHN"}
        )

        assert order.order_status == "shipped"
        assert order.tracking_number == "VN123"
        assert order.fulfillment_status == "shipped"

    @pytest.mark.asyncio
    async def test_update_status_unknown_order(self, fake_supabase):
        repo = MarketplaceOrderRepository(fake_supabase)
        assert await repo.update_status("missing", "shipped") is None

    @pytest.mark.asyncio
    async def test_upsert_is_keyed_by_shopee_order_id(self, fake_supabase):
        repo = MarketplaceOrderRepository(fake_supabase)
        row = {
            "shopee_order_id": "SN9",
            "order_sn": "SN9",
            "order_number": "SN9",
            "shop_id": "556677",
            "order_status": "unpaid",
            "total_amount": Decimal("150000.5"),
            "create_time": datetime(2026, 2, 1, tzinfo=UTC),
        }
        await repo.upsert(row)
        await repo.upsert({**row, "order_status": "to_ship"})

        rows = fake_supabase.tables[ORDERS]
        assert len(rows) == 1
        assert rows[0]["order_status"] == "to_ship"
        assert rows[0]["total_amount"] == "150000.5"
        assert rows[0]["create_time"] == "2026-02-01T00:00:00+00:00"
