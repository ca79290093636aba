"""
Repository Pattern for Database Operations

- BusinessAccountRepository: marketplace seller accounts and OAuth tokens
- MarketplaceOrderRepository: orders synced from Shopee
"""
from .account_repo import PLATFORM_TABLES, BusinessAccountRepository
from .order_repo import ORDER_STATUSES, MarketplaceOrderRepository, OrderFilters

__all__ = [
    "PLATFORM_TABLES",
    "ORDER_STATUSES",
    "BusinessAccountRepository",
    "MarketplaceOrderRepository",
    "OrderFilters",
]
