"""Marketplace Order Repository - orders synced from Shopee."""

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from storehub.services.models import MarketplaceOrder
from storehub.services.money import round_money, to_decimal, to_float

from .base import BaseRepository

ORDERS_TABLE = "shopee_shop_orders"

ORDER_STATUSES = (
    "unpaid",
    "to_ship",
    "shipped",
    "to_confirm_receive",
    "in_cancel",
    "cancelled",
    "to_return",
    "completed",
)

# Statuses that never turn into revenue
_LOST_STATUSES = {"cancelled", "in_cancel", "to_return"}

SORT_COLUMNS = {
    "create_time": "create_time",
    "total_amount": "total_amount",
    "updated_at": "updated_at",
}


@dataclass
class OrderFilters:
    """Filters for the admin order list."""
    order_status: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    search: str | None = None
    shop_id: str | None = None
    limit: int = 50
    offset: int = 0
    sort_by: str = "create_time"
    sort_order: str = "desc"


class MarketplaceOrderRepository(BaseRepository):
    """Marketplace order database operations."""

    table = ORDERS_TABLE

    async def list_orders(self, filters: OrderFilters) -> dict[str, Any]:
        """Paged order list with total count."""
        query = self.client.table(self.table).select("*", count="exact")

        if filters.order_status:
            query = query.eq("order_status", filters.order_status)
        if filters.shop_id:
            query = query.eq("shop_id", filters.shop_id)
        if filters.start_date:
            query = query.gte("create_time", filters.start_date)
        if filters.end_date:
            query = query.lte("create_time", filters.end_date)
        if filters.search:
            term = filters.search.replace(",", " ").strip()
            query = query.or_(f"order_sn.ilike.%{term}%,order_number.ilike.%{term}%")

        sort_column = SORT_COLUMNS.get(filters.sort_by, "create_time")
        limit = max(1, min(filters.limit, 200))
        offset = max(0, filters.offset)

        result = await (
            query.order(sort_column, desc=filters.sort_order != "asc")
            .range(offset, offset + limit - 1)
            .execute()
        )
        orders = [MarketplaceOrder(**row) for row in result.data or []]
        return {
            "orders": [o.model_dump(mode="json") for o in orders],
            "total": getattr(result, "count", None) or len(orders),
            "limit": limit,
            "offset": offset,
        }

    async def get_by_id(self, order_id: str) -> MarketplaceOrder | None:
        result = await self.client.table(self.table).select("*").eq("id", order_id).execute()
        return MarketplaceOrder(**result.data[0]) if result.data else None

    async def upsert(self, order_data: dict[str, Any]) -> None:
        """Insert or update an order keyed by its Shopee order id."""
        row = {
            key: value.isoformat() if isinstance(value, datetime) else (
                str(value) if isinstance(value, Decimal) else value
            )
            for key, value in order_data.items()
        }
        await (
            self.client.table(self.table)
            .upsert(row, on_conflict="shopee_order_id")
            .execute()
        )

    async def update_status(
        self, order_id: str, status: str, tracking_info: dict[str, Any] | None = None
    ) -> MarketplaceOrder | None:
        """Set the order status (and tracking data when given)."""
        data: dict[str, Any] = {"order_status": status, "updated_at": datetime.now(UTC).isoformat()}
        if tracking_info:
            if tracking_info.get("tracking_number"):
                data["tracking_number"] = tracking_info["tracking_number"]
            if tracking_info.get("shipping_carrier"):
                data["shipping_carrier"] = tracking_info["shipping_carrier"]
        if status == "shipped":
            data["fulfillment_status"] = "shipped"

        result = await self.client.table(self.table).update(data).eq("id", order_id).execute()
        return MarketplaceOrder(**result.data[0]) if result.data else None

    async def mark_shipped(self, order_sn: str, tracking_number: str, carrier: str) -> None:
        """Record a shipment confirmed by the marketplace."""
        now = datetime.now(UTC).isoformat()
        await (
            self.client.table(self.table)
            .update({
                "order_status": "shipped",
                "tracking_number": tracking_number,
                "shipping_carrier": carrier,
                "ship_time": now,
                "fulfillment_status": "shipped",
                "updated_at": now,
            })
            .eq("order_sn", order_sn)
            .execute()
        )

    async def analytics(self, shop_id: str | None = None) -> dict[str, Any]:
        """Order counts by status, revenue and average order value."""
        query = self.client.table(self.table).select("order_status,total_amount")
        if shop_id:
            query = query.eq("shop_id", shop_id)
        result = await query.execute()
        rows = result.data or []

        by_status = {status: 0 for status in ORDER_STATUSES}
        revenue = Decimal("0")
        revenue_orders = 0
        for row in rows:
            status = row.get("order_status") or "unpaid"
            by_status[status] = by_status.get(status, 0) + 1
            if status not in _LOST_STATUSES:
                revenue += to_decimal(row.get("total_amount"))
                revenue_orders += 1

        avg = revenue / revenue_orders if revenue_orders else Decimal("0")
        return {
            "total_orders": len(rows),
            "orders_by_status": by_status,
            "total_revenue": to_float(round_money(revenue)),
            "avg_order_value": to_float(round_money(avg)),
        }
