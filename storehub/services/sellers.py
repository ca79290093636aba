"""Seller Service - admin operations on connected Shopee sellers."""

from typing import Any

from storehub.errors import ERROR_ACCOUNT_NOT_FOUND, NotFoundError, ReauthorizationRequired
from storehub.integrations.shopee import ShopeeTokenBroker
from storehub.integrations.shopee_sync import ShopeeSyncService
from storehub.logging import get_logger, sanitize_id_for_logging
from storehub.services.models import BusinessAccount
from storehub.services.repositories import BusinessAccountRepository, MarketplaceOrderRepository

logger = get_logger(__name__)


class SellerService:
    """Dashboard, sync and disconnect for Shopee business accounts."""

    def __init__(
        self,
        accounts: BusinessAccountRepository,
        orders: MarketplaceOrderRepository,
        broker: ShopeeTokenBroker,
    ) -> None:
        self.accounts = accounts
        self.orders = orders
        self.broker = broker

    async def _require_account(self, account_id: str) -> BusinessAccount:
        account = await self.accounts.get_by_id(account_id)
        if account is None:
            raise NotFoundError(ERROR_ACCOUNT_NOT_FOUND)
        return account

    async def list_sellers(self) -> list[dict[str, Any]]:
        """All seller accounts, tokens excluded."""
        return [account.public_dict() for account in await self.accounts.list_all()]

    async def get_seller_dashboard(self, account_id: str) -> dict[str, Any]:
        """Account profile plus order analytics for its shop."""
        account = await self._require_account(account_id)
        analytics = await self.orders.analytics(shop_id=account.shop_id)
        return {
            "account": account.public_dict(),
            "analytics": analytics,
        }

    async def sync_seller(self, account_id: str) -> dict[str, Any]:
        """Full sync of one seller's orders and shop info."""
        account = await self._require_account(account_id)
        if not account.has_token:
            raise ReauthorizationRequired(platform="shopee")

        broker = self.broker.with_region(account.region)
        try:
            sync = ShopeeSyncService(broker, self.orders, self.accounts)
            result = await sync.full_sync(account.id, account.shop_id)
        finally:
            if broker is not self.broker:
                await broker.aclose()

        # Refresh the analytics cache on the account row
        analytics = await self.orders.analytics(shop_id=account.shop_id)
        await self.accounts.update_profile(
            account.id,
            {
                "total_orders": analytics["total_orders"],
                "total_revenue": analytics["total_revenue"],
            },
        )
        logger.info(
            "Seller %s synced: success=%s", sanitize_id_for_logging(account.shop_id), result["success"]
        )
        return result

    async def disconnect_seller(self, account_id: str) -> None:
        account = await self._require_account(account_id)
        await self.broker.disconnect_shop(account.shop_id)
