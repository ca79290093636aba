"""
Shopee Shop Router

Seller connection (OAuth), order management and seller dashboards.
The OAuth callback is public and mounted at the redirect URI path.
"""
import re
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from storehub.auth import verify_admin
from storehub.errors import (
    ERROR_INVALID_ACCOUNT_ID,
    ERROR_ORDER_NOT_FOUND,
    IntegrationError,
    InvalidStateError,
    StorehubError,
    http_error_from,
)
from storehub.integrations.oauth_state import OAuthState, OAuthStateStore
from storehub.integrations.shopee import ShopeeTokenBroker
from storehub.integrations.shopee_sync import ShopeeSyncService
from storehub.logging import get_logger, sanitize_id_for_logging
from storehub.services.database import Database
from storehub.services.repositories import ORDER_STATUSES, OrderFilters
from storehub.services.sellers import SellerService

from .deps import get_db, get_seller_service, get_shopee_broker, get_state_store
from .models import ShipOrderRequest, ShopeeConnectRequest, UpdateOrderStatusRequest
from .oauth import (
    ERROR_ACCESS_DENIED,
    ERROR_AUTHENTICATION,
    ERROR_INVALID_REQUEST,
    ERROR_INVALID_STATE,
    ERROR_TOKEN_EXCHANGE,
    console_redirect,
    consume_state,
    error_redirect,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api/shopee-shop", tags=["shopee"])
callback_router = APIRouter(tags=["oauth-callbacks"])

_ACCOUNT_ID_RE = re.compile(r"^[0-9a-fA-F-]{36}$")


def _check_account_id(account_id: str) -> None:
    if not _ACCOUNT_ID_RE.match(account_id or ""):
        raise HTTPException(status_code=400, detail=ERROR_INVALID_ACCOUNT_ID)


# ==================== CONNECT ====================

@router.post("/connect")
async def connect_shop(
    request: ShopeeConnectRequest,
    admin=Depends(verify_admin),
    broker: ShopeeTokenBroker = Depends(get_shopee_broker),
    store: OAuthStateStore = Depends(get_state_store),
):
    """Start seller authorization; returns the Shopee URL to open."""
    state = OAuthState.create("shopee", request.redirect_url, region=request.region)
    await store.save(state)
    auth_url = broker.with_region(request.region).generate_auth_url(state.state)
    return {"auth_url": auth_url, "state": state.state}


@callback_router.get("/auth/shopee/callback")
async def shopee_callback(
    code: Optional[str] = None,
    shop_id: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    broker: ShopeeTokenBroker = Depends(get_shopee_broker),
    store: OAuthStateStore = Depends(get_state_store),
    db: Database = Depends(get_db),
):
    """Shopee redirects the seller here after authorization."""
    if error:
        logger.warning("Shopee authorization denied: %s", error)
        return error_redirect("shopee", ERROR_ACCESS_DENIED)
    if not code or not shop_id:
        return error_redirect("shopee", ERROR_INVALID_REQUEST)

    try:
        pending = await consume_state(store, state, "shopee")
    except InvalidStateError:
        return error_redirect("shopee", ERROR_INVALID_STATE)

    broker = broker.with_region(pending.region)
    try:
        result = await broker.exchange_code_for_token(code, shop_id)
        if not result.success:
            return error_redirect("shopee", ERROR_TOKEN_EXCHANGE, pending)

        is_new = await broker.get_business_account(shop_id) is None
        account = await broker.store_business_account(result.to_tokens())
        if is_new:
            await ShopeeSyncService(broker, db.orders, broker.accounts).sync_shop_info(account.id, shop_id)
    except IntegrationError as e:
        logger.error(
            "Shopee callback failed for shop %s: %s", sanitize_id_for_logging(shop_id), e.message
        )
        return error_redirect("shopee", ERROR_AUTHENTICATION, pending)

    logger.info("Shopee shop %s connected", sanitize_id_for_logging(shop_id))
    return console_redirect(pending.redirect_url, success="shopee_connected")


# ==================== ORDERS ====================

@router.get("/orders")
async def list_orders(
    status: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    search: Optional[str] = None,
    shop_id: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    sort_by: str = "create_time",
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    admin=Depends(verify_admin),
    db: Database = Depends(get_db),
):
    if status and status not in ORDER_STATUSES:
        raise HTTPException(status_code=400, detail=f"Unknown order status: {status}")
    filters = OrderFilters(
        order_status=status,
        start_date=start_date,
        end_date=end_date,
        search=search,
        shop_id=shop_id,
        limit=limit,
        offset=offset,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return await db.orders.list_orders(filters)


@router.get("/orders/analytics")
async def order_analytics(
    shop_id: Optional[str] = None,
    admin=Depends(verify_admin),
    db: Database = Depends(get_db),
):
    return await db.orders.analytics(shop_id=shop_id)


@router.get("/orders/{order_id}")
async def get_order(order_id: str, admin=Depends(verify_admin), db: Database = Depends(get_db)):
    order = await db.orders.get_by_id(order_id)
    if order is None:
        raise HTTPException(status_code=404, detail=ERROR_ORDER_NOT_FOUND)
    return order.model_dump(mode="json")


@router.put("/orders/{order_id}/status")
async def update_order_status(
    order_id: str,
    request: UpdateOrderStatusRequest,
    admin=Depends(verify_admin),
    db: Database = Depends(get_db),
):
    tracking = request.tracking_info.model_dump() if request.tracking_info else None
    order = await db.orders.update_status(order_id, request.status, tracking)
    if order is None:
        raise HTTPException(status_code=404, detail=ERROR_ORDER_NOT_FOUND)
    return order.model_dump(mode="json")


@router.post("/orders/{order_id}/ship")
async def ship_order(
    order_id: str,
    request: ShipOrderRequest,
    admin=Depends(verify_admin),
    db: Database = Depends(get_db),
    broker: ShopeeTokenBroker = Depends(get_shopee_broker),
):
    """Confirm shipment with Shopee, then mark the order shipped locally."""
    order = await db.orders.get_by_id(order_id)
    if order is None:
        raise HTTPException(status_code=404, detail=ERROR_ORDER_NOT_FOUND)

    account = await broker.get_business_account(order.shop_id)
    if account is not None:
        broker = broker.with_region(account.region)
    sync = ShopeeSyncService(broker, db.orders, broker.accounts)
    try:
        result = await sync.ship_order(
            order.shop_id, order.order_sn, request.tracking_number, request.shipping_carrier
        )
    except StorehubError as e:
        raise http_error_from(e)
    if not result.success:
        raise HTTPException(status_code=502, detail=result.error or "Shopee rejected the shipment")
    return {
        "success": True,
        "tracking_number": result.tracking_number,
        "shipping_carrier": result.shipping_carrier,
        "ship_time": result.ship_time.isoformat() if result.ship_time else None,
    }


# ==================== SELLERS ====================

@router.get("/seller/{business_account_id}/dashboard")
async def seller_dashboard(
    business_account_id: str,
    admin=Depends(verify_admin),
    sellers: SellerService = Depends(get_seller_service),
):
    _check_account_id(business_account_id)
    try:
        return await sellers.get_seller_dashboard(business_account_id)
    except StorehubError as e:
        raise http_error_from(e)


@router.post("/seller/{business_account_id}/sync")
async def sync_seller(
    business_account_id: str,
    admin=Depends(verify_admin),
    sellers: SellerService = Depends(get_seller_service),
):
    _check_account_id(business_account_id)
    try:
        return await sellers.sync_seller(business_account_id)
    except StorehubError as e:
        raise http_error_from(e)


@router.get("/sellers")
async def list_sellers(
    admin=Depends(verify_admin),
    sellers: SellerService = Depends(get_seller_service),
):
    return {"sellers": await sellers.list_sellers()}


@router.delete("/disconnect/{business_account_id}")
async def disconnect_shop(
    business_account_id: str,
    admin=Depends(verify_admin),
    sellers: SellerService = Depends(get_seller_service),
):
    _check_account_id(business_account_id)
    try:
        await sellers.disconnect_seller(business_account_id)
    except StorehubError as e:
        raise http_error_from(e)
    return {"success": True}
