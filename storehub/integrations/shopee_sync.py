"""Shopee Sync Service.

Pulls orders and shop profile data from the Shopee API into Supabase and
pushes shipments back. All calls go through the token broker, so tokens
are refreshed transparently.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from storehub.errors import IntegrationError
from storehub.logging import get_logger, sanitize_id_for_logging
from storehub.services.money import from_shopee_amount
from storehub.services.repositories import BusinessAccountRepository, MarketplaceOrderRepository

from .shopee import ShopeeTokenBroker

logger = get_logger(__name__)

SYNC_WINDOW = timedelta(days=90)
# Shopee rejects create_time ranges longer than 15 days
SHOPEE_MAX_RANGE = timedelta(days=15)
PAGE_SIZE = 100

ORDER_DETAIL_FIELDS = ",".join((
    "buyer_user_id",
    "buyer_username",
    "recipient_address",
    "actual_shipping_fee",
    "item_list",
    "pay_time",
    "shipping_carrier",
    "payment_method",
    "total_amount",
    "note",
))

ORDER_STATUS_MAP = {
    "UNPAID": "unpaid",
    "TO_CONFIRM_RECEIVE": "to_confirm_receive",
    "TO_SHIP": "to_ship",
    "SHIPPED": "shipped",
    "COMPLETED": "completed",
    "IN_CANCEL": "in_cancel",
    "CANCELLED": "cancelled",
    "TO_RETURN": "to_return",
    "INVOICE_PENDING": "unpaid",
    "RETRY_SHIPPING": "to_ship",
}

PRODUCT_STATUS_MAP = {
    "NORMAL": "normal",
    "DELETED": "deleted",
    "BANNED": "banned",
    "REVIEWING": "reviewing",
    "DRAFT": "reviewing",
}


def map_order_status(shopee_status: str | None) -> str:
    return ORDER_STATUS_MAP.get(shopee_status or "", "unpaid")


def map_product_status(shopee_status: str | None) -> str:
    return PRODUCT_STATUS_MAP.get(shopee_status or "", "normal")


def _from_unix(value: Any) -> datetime | None:
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=UTC)


@dataclass
class SyncResult:
    success: bool
    synced_count: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"success": self.success, "synced_count": self.synced_count, "errors": self.errors}


@dataclass
class ShipResult:
    success: bool
    tracking_number: str | None = None
    shipping_carrier: str | None = None
    ship_time: datetime | None = None
    error: str | None = None


def build_order_row(detail: dict[str, Any], shop_id: str, business_account_id: str) -> dict[str, Any]:
    """Map a Shopee order detail to a shopee_shop_orders row."""
    order_sn = detail["order_sn"]
    items = [
        {
            "item_id": str(item.get("item_id") or ""),
            "item_name": item.get("item_name") or "",
            "item_sku": item.get("item_sku") or "",
            "model_id": str(item["model_id"]) if item.get("model_id") is not None else None,
            "model_name": item.get("model_name"),
            "quantity": item.get("model_quantity_purchased") or 0,
            "original_price": str(from_shopee_amount(item.get("model_original_price"))),
            "discounted_price": str(from_shopee_amount(item.get("model_discounted_price"))),
            "image_url": (item.get("image_info") or {}).get("image_url"),
        }
        for item in detail.get("item_list") or []
    ]
    address = detail.get("recipient_address") or {}
    return {
        "shopee_order_id": order_sn,
        "order_sn": order_sn,
        "shop_id": shop_id,
        "business_account_id": business_account_id,
        "order_number": order_sn,
        "order_status": map_order_status(detail.get("order_status")),
        "customer_info": {
            "buyer_user_id": str(detail.get("buyer_user_id") or ""),
            "buyer_username": detail.get("buyer_username") or "",
            "recipient_address": {
                "name": address.get("name") or "",
                "phone": address.get("phone") or "",
                "full_address": address.get("full_address") or "",
                "district": address.get("district") or "",
                "city": address.get("city") or "",
                "state": address.get("state") or "",
                "zip_code": address.get("zipcode") or "",
                "country": address.get("region") or "VN",
            },
        },
        "total_amount": from_shopee_amount(detail.get("total_amount")),
        "currency": detail.get("currency") or "VND",
        "actual_shipping_fee": from_shopee_amount(detail.get("actual_shipping_fee")),
        "items": items,
        "payment_method": detail.get("payment_method") or "",
        "shipping_carrier": detail.get("shipping_carrier") or "shopee",
        "create_time": _from_unix(detail.get("create_time")),
        "pay_time": _from_unix(detail.get("pay_time")),
        "updated_at": _from_unix(detail.get("update_time")) or datetime.now(UTC),
        "notes": detail.get("note"),
    }


class ShopeeSyncService:
    """Order and shop data synchronisation for one Shopee partner."""

    def __init__(
        self,
        broker: ShopeeTokenBroker,
        orders: MarketplaceOrderRepository,
        accounts: BusinessAccountRepository,
    ) -> None:
        self.broker = broker
        self.orders = orders
        self.accounts = accounts

    async def _fetch_order_sns(self, shop_id: str, time_from: int, time_to: int) -> list[str]:
        """All order SNs created in one range, following the cursor."""
        order_sns: list[str] = []
        cursor = ""
        while True:
            data = await self.broker.make_authenticated_request(
                "order/get_order_list",
                shop_id,
                "GET",
                {
                    "time_range_field": "create_time",
                    "time_from": time_from,
                    "time_to": time_to,
                    "page_size": PAGE_SIZE,
                    "cursor": cursor,
                },
            )
            if data.get("error"):
                raise IntegrationError(
                    f"get_order_list failed: {data.get('message') or data['error']}",
                    platform="shopee",
                )
            response = data.get("response") or {}
            order_sns.extend(o["order_sn"] for o in response.get("order_list") or [])
            cursor = response.get("next_cursor") or ""
            if not response.get("more") or not cursor:
                return order_sns

    async def sync_orders(self, business_account_id: str, shop_id: str) -> SyncResult:
        """Upsert the shop's orders from the last 90 days."""
        logger.info("Syncing Shopee orders for shop %s", sanitize_id_for_logging(shop_id))
        now = datetime.now(UTC)
        start = now - SYNC_WINDOW
        result = SyncResult(success=True)

        try:
            order_sns: list[str] = []
            window_start = start
            while window_start < now:
                window_end = min(window_start + SHOPEE_MAX_RANGE, now)
                order_sns.extend(await self._fetch_order_sns(
                    shop_id, int(window_start.timestamp()), int(window_end.timestamp())
                ))
                window_start = window_end
        except IntegrationError as e:
            logger.error("Shopee order list failed for shop %s: %s", sanitize_id_for_logging(shop_id), e)
            return SyncResult(success=False, errors=[e.message])

        for order_sn in order_sns:
            try:
                detail = await self.broker.make_authenticated_request(
                    "order/get_order_detail",
                    shop_id,
                    "GET",
                    {"order_sn_list": order_sn, "response_optional_fields": ORDER_DETAIL_FIELDS},
                )
                detail_list = (detail.get("response") or {}).get("order_list") or []
                if not detail_list:
                    result.errors.append(f"Order {order_sn}: no detail returned")
                    continue
                await self.orders.upsert(build_order_row(detail_list[0], shop_id, business_account_id))
                result.synced_count += 1
            except IntegrationError as e:
                result.errors.append(f"Order {order_sn}: {e.message}")

        logger.info(
            "Synced %s Shopee orders for shop %s (%s errors)",
            result.synced_count,
            sanitize_id_for_logging(shop_id),
            len(result.errors),
        )
        return result

    async def sync_shop_info(self, business_account_id: str, shop_id: str) -> SyncResult:
        """Refresh the account's profile columns from get_shop_info."""
        try:
            info = await self.broker.get_shop_info(shop_id)
        except IntegrationError as e:
            return SyncResult(success=False, errors=[e.message])
        if not info.get("shop_name"):
            return SyncResult(success=False, errors=["Shop info unavailable"])

        await self.accounts.update_profile(
            business_account_id,
            {
                "display_name": info["shop_name"],
                "shop_name": info["shop_name"],
                "shop_logo": info.get("shop_logo"),
                "contact_email": info.get("contact_email"),
                "contact_phone": info.get("contact_phone"),
            },
        )
        return SyncResult(success=True, synced_count=1)

    async def full_sync(self, business_account_id: str, shop_id: str) -> dict[str, Any]:
        """Orders + shop info; succeeds if any part succeeded."""
        orders = await self.sync_orders(business_account_id, shop_id)
        shop_info = await self.sync_shop_info(business_account_id, shop_id)
        return {
            "success": orders.success or shop_info.success,
            "results": {"orders": orders.to_dict(), "shop_info": shop_info.to_dict()},
        }

    async def ship_order(
        self, shop_id: str, order_sn: str, tracking_number: str, shipping_carrier: str
    ) -> ShipResult:
        """Confirm shipment to Shopee and mark the local order shipped."""
        ship_time = datetime.now(UTC)
        data = await self.broker.make_authenticated_request(
            "logistics/ship_order",
            shop_id,
            "POST",
            {
                "order_sn": order_sn,
                "tracking_number": tracking_number,
                "shipping_carrier": shipping_carrier,
                "ship_time": int(ship_time.timestamp()),
            },
        )
        if data.get("error"):
            message = data.get("message") or data["error"]
            logger.warning("Shopee ship_order failed for %s: %s", order_sn, message)
            return ShipResult(success=False, error=str(message))

        await self.orders.mark_shipped(order_sn, tracking_number, shipping_carrier)
        return ShipResult(
            success=True,
            tracking_number=tracking_number,
            shipping_carrier=shipping_carrier,
            ship_time=ship_time,
        )
