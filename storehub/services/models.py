"""Database Models - Pydantic models for persisted marketplace entities."""
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from storehub.services.money import to_decimal as _to_decimal


class ConnectionStatus(str, Enum):
    """Connection state of a business account as seen by callers."""
    UNCONNECTED = "unconnected"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class BusinessAccount(BaseModel):
    """A seller account connected through a marketplace OAuth flow.

    One row per (platform table, shop_id). Tokens are cleared, not the
    row, when the shop is disconnected.
    """
    model_config = ConfigDict(extra="ignore")  # Ignore unknown fields from DB

    id: str
    platform: str = "shopee"
    partner_id: Optional[str] = None
    shop_id: str
    display_name: str
    shop_name: Optional[str] = None
    shop_logo: Optional[str] = None
    # Authentication
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    token_expires_at: Optional[datetime] = None
    # Shop information
    shop_type: Optional[str] = None
    shop_status: str = "normal"
    region: str = "VN"
    currency: str = "VND"
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    # Analytics cache
    total_orders: int = 0
    total_revenue: Decimal = Decimal("0")
    # Status
    connected: bool = False
    is_active: bool = True
    last_sync: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("total_revenue", mode="before")
    @classmethod
    def convert_to_decimal(cls, v):
        return _to_decimal(v)

    @field_validator("token_expires_at", "last_sync", "created_at", "updated_at")
    @classmethod
    def assume_utc(cls, v):
        # Postgres "timestamp" columns come back naive
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @property
    def has_token(self) -> bool:
        return bool(self.access_token)

    @property
    def status(self) -> ConnectionStatus:
        # UNCONNECTED is reported for shops without a row at all
        if self.connected and self.access_token:
            return ConnectionStatus.CONNECTED
        return ConnectionStatus.DISCONNECTED

    def expires_within(self, window: timedelta, now: datetime | None = None) -> bool:
        """True if the access token is expired or expires within window.

        An account without a recorded expiry is treated as not expiring.
        """
        if self.token_expires_at is None:
            return False
        now = now or datetime.now(UTC)
        return self.token_expires_at < now + window

    def public_dict(self) -> dict[str, Any]:
        """Account data safe to return to the admin UI (no tokens)."""
        data = self.model_dump(
            mode="json", exclude={"access_token", "refresh_token"}
        )
        data["status"] = self.status.value
        return data


class MarketplaceOrder(BaseModel):
    """Order pulled from a marketplace (Shopee order SN)."""
    model_config = ConfigDict(extra="ignore")

    id: str
    shopee_order_id: str
    order_sn: str
    shop_id: str
    business_account_id: Optional[str] = None
    order_number: str
    order_status: str = "unpaid"
    customer_info: dict[str, Any] = {}
    total_amount: Decimal = Decimal("0")
    currency: str = "VND"
    actual_shipping_fee: Decimal = Decimal("0")
    items: list[dict[str, Any]] = []
    payment_method: Optional[str] = None
    tracking_number: Optional[str] = None
    shipping_carrier: Optional[str] = None
    fulfillment_status: str = "pending"
    create_time: Optional[datetime] = None
    ship_time: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("total_amount", "actual_shipping_fee", mode="before")
    @classmethod
    def convert_amounts(cls, v):
        return _to_decimal(v)
