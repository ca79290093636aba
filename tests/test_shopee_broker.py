"""Tests for the Shopee token broker and the shared token lifecycle"""
import hashlib
import hmac
import json
from datetime import timedelta
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from storehub.errors import ProviderError, ReauthorizationRequired, TransportError
from storehub.integrations.base import TokenSet
from storehub.integrations.shopee import (
    ACCESS_TOKEN_GET_PATH,
    AUTH_PARTNER_PATH,
    SHOPEE_PRODUCTION_URL,
    SHOPEE_SANDBOX_URL,
    TOKEN_GET_PATH,
    ShopeeTokenBroker,
    get_regional_base_url,
)
from storehub.services.models import ConnectionStatus
from storehub.services.repositories import BusinessAccountRepository

ACCOUNTS_TABLE = "shopee_business_accounts"


def _make_broker(fake_supabase, config, handler, now):
    accounts = BusinessAccountRepository(fake_supabase, "shopee")
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ShopeeTokenBroker(config, accounts, http_client=client, clock=lambda: now)


def _expected_sign(key: str, base: str) -> str:
    return hmac.new(key.encode(), base.encode(), hashlib.sha256).hexdigest()


def _no_http(request):
    raise AssertionError(f"unexpected HTTP call to {request.url}")


class TestSigning:
    """Tests for signatures and authorization URLs"""

    def test_generate_sign(self, fake_supabase, shopee_config, fixed_now):
        broker = _make_broker(fake_supabase, shopee_config, _no_http, fixed_now)
        sign = broker.generate_sign("/api/v2/shop/get_shop_info", 1700000000, "tok556677")
        assert sign == _expected_sign(
            "shopee-partner-key", "2001234/api/v2/shop/get_shop_info1700000000tok556677"
        )
        assert len(sign) == 64

    def test_auth_url_carries_state_in_redirect(self, fake_supabase, shopee_config, fixed_now):
        broker = _make_broker(fake_supabase, shopee_config, _no_http, fixed_now)
        url = urlparse(broker.generate_auth_url("state-123"))
        query = parse_qs(url.query)
        timestamp = int(fixed_now.timestamp())

        assert f"{url.scheme}://{url.netloc}" == SHOPEE_PRODUCTION_URL
        assert url.path == AUTH_PARTNER_PATH
        assert query["partner_id"] == ["2001234"]
        assert query["timestamp"] == [str(timestamp)]
        assert query["sign"] == [
            _expected_sign("shopee-partner-key", f"2001234{AUTH_PARTNER_PATH}{timestamp}")
        ]
        assert query["redirect"] == ["https://console.test/auth/shopee/callback?state=state-123"]

    def test_regional_hosts(self):
        assert get_regional_base_url("TH") == SHOPEE_PRODUCTION_URL
        assert get_regional_base_url("test") == SHOPEE_SANDBOX_URL
        assert get_regional_base_url("XX") == SHOPEE_PRODUCTION_URL
        assert get_regional_base_url(None) == SHOPEE_PRODUCTION_URL

    def test_with_region_shares_accounts(self, fake_supabase, shopee_config, fixed_now):
        broker = _make_broker(fake_supabase, shopee_config, _no_http, fixed_now)
        sandbox = broker.with_region("test")
        assert sandbox.base_url == SHOPEE_SANDBOX_URL
        assert sandbox.accounts is broker.accounts
        assert broker.with_region("VN") is broker


class TestTokenExchange:
    """Tests for code exchange and refresh"""

    @pytest.mark.asyncio
    async def test_exchange_success(self, fake_supabase, shopee_config, fixed_now):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(
                200, json={"access_token": "acc-1", "refresh_token": "ref-1", "expire_in": 14400}
            )

        broker = _make_broker(fake_supabase, shopee_config, handler, fixed_now)
        result = await broker.exchange_code_for_token("code-xyz", "556677")

        assert result.success
        assert result.access_token == "acc-1"
        assert result.refresh_token == "ref-1"
        assert result.expires_at == fixed_now + timedelta(seconds=14400)

        request = seen[0]
        timestamp = int(fixed_now.timestamp())
        assert request.url.path == TOKEN_GET_PATH
        assert request.url.params["sign"] == _expected_sign(
            "shopee-partner-key", f"2001234{TOKEN_GET_PATH}{timestamp}code-xyz556677"
        )
        assert json.loads(request.content) == {
            "code": "code-xyz",
            "partner_id": 2001234,
            "shop_id": 556677,
        }

    @pytest.mark.asyncio
    async def test_exchange_provider_error_is_not_raised(self, fake_supabase, shopee_config, fixed_now):
        def handler(request):
            return httpx.Response(200, json={"error": "error_auth", "message": "Invalid code"})

        broker = _make_broker(fake_supabase, shopee_config, handler, fixed_now)
        result = await broker.exchange_code_for_token("bad-code", "556677")

        assert result.success is False
        assert result.error == "Invalid code"
        assert result.access_token is None

    @pytest.mark.asyncio
    async def test_exchange_error_message_is_scrubbed(self, fake_supabase, shopee_config, fixed_now):
        def handler(request):
            return httpx.Response(
                400, json={"error": "error_sign", "message": "sign mismatch for key shopee-partner-key"}
            )

        broker = _make_broker(fake_supabase, shopee_config, handler, fixed_now)
        result = await broker.exchange_code_for_token("code", "556677")

        assert result.success is False
        assert "shopee-partner-key" not in result.error
        assert "***" in result.error

    @pytest.mark.asyncio
    async def test_exchange_transport_failure_raises(self, fake_supabase, shopee_config, fixed_now):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        broker = _make_broker(fake_supabase, shopee_config, handler, fixed_now)
        with pytest.raises(TransportError) as exc_info:
            await broker.exchange_code_for_token("code", "556677")
        assert "shopee-partner-key" not in str(exc_info.value)


class TestTokenLifecycle:
    """Tests for store / ensure_valid_token / disconnect"""

    @pytest.mark.asyncio
    async def test_store_creates_connected_account(self, fake_supabase, shopee_config, fixed_now):
        broker = _make_broker(fake_supabase, shopee_config, _no_http, fixed_now)
        tokens = TokenSet("acc", "ref", fixed_now + timedelta(hours=4), "556677")

        account = await broker.store_business_account(tokens, {"shop_name": "Rasa Store"})

        assert account.shop_id == "556677"
        assert account.display_name == "Rasa Store"
        assert account.connected is True
        assert account.access_token == "acc"
        assert await broker.connection_status("556677") == ConnectionStatus.CONNECTED

    @pytest.mark.asyncio
    async def test_reconnect_keeps_profile(self, fake_supabase, shopee_config, fixed_now, sample_account_row):
        sample_account_row["display_name"] = "Renamed in console"
        fake_supabase.tables[ACCOUNTS_TABLE] = [sample_account_row]
        broker = _make_broker(fake_supabase, shopee_config, _no_http, fixed_now)

        account = await broker.store_business_account(
            TokenSet("new-acc", "new-ref", None, "556677"), {"shop_name": "Other"}
        )

        assert account.display_name == "Renamed in console"
        assert account.access_token == "new-acc"
        assert len(fake_supabase.tables[ACCOUNTS_TABLE]) == 1

    @pytest.mark.asyncio
    async def test_valid_token_returned_without_refresh(self, fake_supabase, shopee_config, fixed_now, sample_account_row):
        fake_supabase.tables[ACCOUNTS_TABLE] = [sample_account_row]
        broker = _make_broker(fake_supabase, shopee_config, _no_http, fixed_now)

        assert await broker.ensure_valid_token("556677") == "stored-access"

    @pytest.mark.asyncio
    async def test_expiring_token_is_refreshed_once(self, fake_supabase, shopee_config, fixed_now, sample_account_row):
        sample_account_row["token_expires_at"] = (fixed_now + timedelta(minutes=2)).isoformat()
        fake_supabase.tables[ACCOUNTS_TABLE] = [sample_account_row]
        refresh_calls = []

        def handler(request):
            assert request.url.path == ACCESS_TOKEN_GET_PATH
            refresh_calls.append(json.loads(request.content))
            return httpx.Response(
                200, json={"access_token": "fresh-acc", "refresh_token": "fresh-ref", "expire_in": 14400}
            )

        broker = _make_broker(fake_supabase, shopee_config, handler, fixed_now)

        assert await broker.ensure_valid_token("556677") == "fresh-acc"
        assert await broker.ensure_valid_token("556677") == "fresh-acc"
        assert len(refresh_calls) == 1
        assert refresh_calls[0]["refresh_token"] == "stored-refresh"

        stored = fake_supabase.tables[ACCOUNTS_TABLE][0]
        assert stored["refresh_token"] == "fresh-ref"
        assert stored["token_expires_at"] == (fixed_now + timedelta(seconds=14400)).isoformat()

    @pytest.mark.asyncio
    async def test_refused_refresh_disconnects_account(
        self, fake_supabase, shopee_config, fixed_now, sample_account_row
    ):
        sample_account_row["token_expires_at"] = (fixed_now - timedelta(hours=1)).isoformat()
        fake_supabase.tables[ACCOUNTS_TABLE] = [sample_account_row]

        def handler(request):
            return httpx.Response(200, json={"error": "error_param", "message": "refresh_token expired"})

        broker = _make_broker(fake_supabase, shopee_config, handler, fixed_now)
        assert await broker.ensure_valid_token("556677") is None

        # A refused refresh ends the connection; the seller must reconnect
        assert await broker.connection_status("556677") == ConnectionStatus.DISCONNECTED
        stored = fake_supabase.tables[ACCOUNTS_TABLE][0]
        assert stored["access_token"] is None
        assert stored["connected"] is False
        with pytest.raises(ReauthorizationRequired):
            await broker.make_authenticated_request("shop/get_shop_info", "556677")

    @pytest.mark.asyncio
    async def test_expiring_without_refresh_token_disconnects(
        self, fake_supabase, shopee_config, fixed_now, sample_account_row
    ):
        sample_account_row["token_expires_at"] = (fixed_now + timedelta(minutes=1)).isoformat()
        sample_account_row["refresh_token"] = None
        fake_supabase.tables[ACCOUNTS_TABLE] = [sample_account_row]
        broker = _make_broker(fake_supabase, shopee_config, _no_http, fixed_now)

        assert await broker.ensure_valid_token("556677") is None
        assert await broker.connection_status("556677") == ConnectionStatus.DISCONNECTED

    @pytest.mark.asyncio
    async def test_unreachable_refresh_keeps_account_connected(
        self, fake_supabase, shopee_config, fixed_now, sample_account_row
    ):
        sample_account_row["token_expires_at"] = (fixed_now - timedelta(hours=1)).isoformat()
        fake_supabase.tables[ACCOUNTS_TABLE] = [sample_account_row]

        def handler(request):
            raise httpx.ConnectError("down", request=request)

        broker = _make_broker(fake_supabase, shopee_config, handler, fixed_now)
        with pytest.raises(TransportError):
            await broker.ensure_valid_token("556677")

        stored = fake_supabase.tables[ACCOUNTS_TABLE][0]
        assert stored["refresh_token"] == "stored-refresh"
        assert stored["connected"] is True

    @pytest.mark.asyncio
    async def test_unknown_shop(self, fake_supabase, shopee_config, fixed_now):
        broker = _make_broker(fake_supabase, shopee_config, _no_http, fixed_now)
        assert await broker.ensure_valid_token("999") is None
        assert await broker.connection_status("999") == ConnectionStatus.UNCONNECTED

    @pytest.mark.asyncio
    async def test_disconnect_clears_tokens(self, fake_supabase, shopee_config, fixed_now, sample_account_row):
        fake_supabase.tables[ACCOUNTS_TABLE] = [sample_account_row]
        broker = _make_broker(fake_supabase, shopee_config, _no_http, fixed_now)

        await broker.disconnect_shop("556677")

        assert await broker.ensure_valid_token("556677") is None
        assert await broker.connection_status("556677") == ConnectionStatus.DISCONNECTED
        # Row is kept for history
        assert len(fake_supabase.tables[ACCOUNTS_TABLE]) == 1


class TestAuthenticatedRequests:
    """Tests for make_authenticated_request"""

    @pytest.mark.asyncio
    async def test_get_is_signed_with_token_and_shop(self, fake_supabase, shopee_config, fixed_now, sample_account_row):
        fake_supabase.tables[ACCOUNTS_TABLE] = [sample_account_row]
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"response": {"shop_name": "Rasa Store"}})

        broker = _make_broker(fake_supabase, shopee_config, handler, fixed_now)
        data = await broker.make_authenticated_request("shop/get_shop_info", "556677", data={"foo": "bar"})

        assert data["response"]["shop_name"] == "Rasa Store"
        params = seen[0].url.params
        timestamp = int(fixed_now.timestamp())
        assert seen[0].url.path == "/api/v2/shop/get_shop_info"
        assert params["access_token"] == "stored-access"
        assert params["shop_id"] == "556677"
        assert params["foo"] == "bar"
        assert params["sign"] == _expected_sign(
            "shopee-partner-key",
            f"2001234/api/v2/shop/get_shop_info{timestamp}stored-access556677",
        )

    @pytest.mark.asyncio
    async def test_post_sends_json_body(self, fake_supabase, shopee_config, fixed_now, sample_account_row):
        fake_supabase.tables[ACCOUNTS_TABLE] = [sample_account_row]
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={})

        broker = _make_broker(fake_supabase, shopee_config, handler, fixed_now)
        await broker.make_authenticated_request(
            "logistics/ship_order", "556677", "POST", {"order_sn": "SN1"}
        )

        assert seen[0].method == "POST"
        assert json.loads(seen[0].content) == {"order_sn": "SN1"}
        assert "order_sn" not in seen[0].url.params

    @pytest.mark.asyncio
    async def test_non_2xx_raises_provider_error(self, fake_supabase, shopee_config, fixed_now, sample_account_row):
        fake_supabase.tables[ACCOUNTS_TABLE] = [sample_account_row]

        def handler(request):
            return httpx.Response(403, json={"error": "error_permission"})

        broker = _make_broker(fake_supabase, shopee_config, handler, fixed_now)
        with pytest.raises(ProviderError) as exc_info:
            await broker.make_authenticated_request("shop/get_shop_info", "556677")

        assert exc_info.value.provider_status == 403
        assert exc_info.value.status_text == "Forbidden"
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_server_error_maps_to_bad_gateway(self, fake_supabase, shopee_config, fixed_now, sample_account_row):
        fake_supabase.tables[ACCOUNTS_TABLE] = [sample_account_row]

        def handler(request):
            return httpx.Response(503)

        broker = _make_broker(fake_supabase, shopee_config, handler, fixed_now)
        with pytest.raises(ProviderError) as exc_info:
            await broker.make_authenticated_request("shop/get_shop_info", "556677")
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_timeout_raises_transport_error(self, fake_supabase, shopee_config, fixed_now, sample_account_row):
        fake_supabase.tables[ACCOUNTS_TABLE] = [sample_account_row]

        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        broker = _make_broker(fake_supabase, shopee_config, handler, fixed_now)
        with pytest.raises(TransportError) as exc_info:
            await broker.make_authenticated_request("shop/get_shop_info", "556677")
        assert "stored-access" not in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_without_token_requires_reauthorization(self, fake_supabase, shopee_config, fixed_now):
        broker = _make_broker(fake_supabase, shopee_config, _no_http, fixed_now)
        with pytest.raises(ReauthorizationRequired):
            await broker.make_authenticated_request("shop/get_shop_info", "556677")

    @pytest.mark.asyncio
    async def test_get_shop_info(self, fake_supabase, shopee_config, fixed_now, sample_account_row):
        fake_supabase.tables[ACCOUNTS_TABLE] = [sample_account_row]

        def handler(request):
            return httpx.Response(200, json={"response": {"shop_name": "Rasa", "shop_logo": "logo.png"}})

        broker = _make_broker(fake_supabase, shopee_config, handler, fixed_now)
        info = await broker.get_shop_info("556677")
        assert info["shop_name"] == "Rasa"
        assert info["shop_logo"] == "logo.png"
        assert info["shop_type"] == "normal"
