"""
Facebook Router

Connects the Facebook user that manages the shop's pages.
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from storehub.auth import verify_admin
from storehub.errors import (
    ERROR_ACCOUNT_NOT_FOUND,
    IntegrationError,
    InvalidStateError,
    ReauthorizationRequired,
    StorehubError,
    http_error_from,
)
from storehub.integrations.facebook import FacebookTokenBroker
from storehub.integrations.oauth_state import OAuthState, OAuthStateStore
from storehub.logging import get_logger, sanitize_id_for_logging
from storehub.services.database import Database

from .deps import get_db, get_facebook_broker, get_state_store
from .models import FacebookConnectRequest
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

router = APIRouter(prefix="/api/facebook", tags=["facebook"])
callback_router = APIRouter(tags=["oauth-callbacks"])


@router.post("/connect")
async def connect_facebook(
    request: FacebookConnectRequest,
    admin=Depends(verify_admin),
    broker: FacebookTokenBroker = Depends(get_facebook_broker),
    store: OAuthStateStore = Depends(get_state_store),
):
    state = OAuthState.create("facebook", request.redirect_url)
    await store.save(state)
    return {"auth_url": broker.generate_auth_url(state.state), "state": state.state}


@callback_router.get("/auth/facebook/callback")
async def facebook_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    broker: FacebookTokenBroker = Depends(get_facebook_broker),
    store: OAuthStateStore = Depends(get_state_store),
):
    if error:
        logger.warning("Facebook authorization denied: %s", error)
        return error_redirect("facebook", ERROR_ACCESS_DENIED)
    if not code:
        return error_redirect("facebook", ERROR_INVALID_REQUEST)

    try:
        pending = await consume_state(store, state, "facebook")
    except InvalidStateError:
        return error_redirect("facebook", ERROR_INVALID_STATE)

    try:
        result = await broker.exchange_code_for_token(code)
        if not result.success or not result.shop_id:
            return error_redirect("facebook", ERROR_TOKEN_EXCHANGE, pending)

        profile = await broker.get_user_profile(result.access_token)
        picture = ((profile.get("picture") or {}).get("data") or {}).get("url")
        await broker.store_business_account(
            result.to_tokens(), {"shop_name": profile.get("name"), "shop_logo": picture}
        )
    except IntegrationError as e:
        logger.error("Facebook callback failed: %s", e.message)
        return error_redirect("facebook", ERROR_AUTHENTICATION, pending)

    logger.info("Facebook account %s connected", sanitize_id_for_logging(result.shop_id))
    return console_redirect(pending.redirect_url, success="facebook_connected")


@router.get("/accounts")
async def list_accounts(admin=Depends(verify_admin), db: Database = Depends(get_db)):
    accounts = await db.accounts("facebook").list_all()
    return {"accounts": [a.public_dict() for a in accounts]}


@router.get("/accounts/{account_id}/pages")
async def list_pages(
    account_id: str,
    admin=Depends(verify_admin),
    db: Database = Depends(get_db),
    broker: FacebookTokenBroker = Depends(get_facebook_broker),
):
    """Pages the connected user manages (page tokens omitted)."""
    account = await db.accounts("facebook").get_by_id(account_id)
    if account is None:
        raise HTTPException(status_code=404, detail=ERROR_ACCOUNT_NOT_FOUND)
    try:
        token = await broker.ensure_valid_token(account.shop_id)
        if not token:
            raise ReauthorizationRequired(platform="facebook")
        pages = await broker.get_user_pages(token)
    except StorehubError as e:
        raise http_error_from(e)
    return {"pages": [{k: v for k, v in page.items() if k != "access_token"} for page in pages]}


@router.delete("/disconnect/{account_id}")
async def disconnect_account(
    account_id: str,
    admin=Depends(verify_admin),
    db: Database = Depends(get_db),
    broker: FacebookTokenBroker = Depends(get_facebook_broker),
):
    account = await db.accounts("facebook").get_by_id(account_id)
    if account is None:
        raise HTTPException(status_code=404, detail=ERROR_ACCOUNT_NOT_FOUND)
    await broker.disconnect_shop(account.shop_id)
    return {"success": True}
