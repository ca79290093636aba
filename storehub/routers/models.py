"""
Router Pydantic Models

Request bodies shared by the marketplace routers.
"""
from typing import Optional

from pydantic import BaseModel, field_validator

from storehub.config import SHOPEE_REGIONS
from storehub.services.repositories import ORDER_STATUSES


# ==================== CONNECT MODELS ====================

class ShopeeConnectRequest(BaseModel):
    region: Optional[str] = None
    redirect_url: Optional[str] = None

    @field_validator("region")
    @classmethod
    def check_region(cls, v):
        if v is not None and v not in SHOPEE_REGIONS:
            raise ValueError(f"region must be one of {', '.join(SHOPEE_REGIONS)}")
        return v


class TikTokConnectRequest(BaseModel):
    kind: str = "shop"
    redirect_url: Optional[str] = None

    @field_validator("kind")
    @classmethod
    def check_kind(cls, v):
        if v not in ("shop", "business"):
            raise ValueError("kind must be 'shop' or 'business'")
        return v


class FacebookConnectRequest(BaseModel):
    redirect_url: Optional[str] = None


# ==================== ORDER MODELS ====================

class TrackingInfo(BaseModel):
    tracking_number: Optional[str] = None
    shipping_carrier: Optional[str] = None


class UpdateOrderStatusRequest(BaseModel):
    status: str
    tracking_info: Optional[TrackingInfo] = None

    @field_validator("status")
    @classmethod
    def check_status(cls, v):
        if v not in ORDER_STATUSES:
            raise ValueError(f"status must be one of {', '.join(ORDER_STATUSES)}")
        return v


class ShipOrderRequest(BaseModel):
    tracking_number: str
    shipping_carrier: str
