"""
TikTok Router

TikTok Shop (seller) and TikTok Business account connection. Each flow
has its own public callback path.
"""
from collections.abc import Callable
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from storehub.auth import verify_admin
from storehub.errors import ERROR_ACCOUNT_NOT_FOUND, IntegrationError, InvalidStateError
from storehub.integrations.oauth_state import OAuthState, OAuthStateStore
from storehub.integrations.tiktok import FLOW_KINDS, TikTokTokenBroker
from storehub.logging import get_logger, sanitize_id_for_logging
from storehub.services.database import Database

from .deps import get_db, get_state_store, get_tiktok_broker_factory
from .models import TikTokConnectRequest
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

router = APIRouter(prefix="/api/tiktok", tags=["tiktok"])
callback_router = APIRouter(tags=["oauth-callbacks"])


@router.post("/connect")
async def connect_tiktok(
    request: TikTokConnectRequest,
    admin=Depends(verify_admin),
    brokers: Callable[[str], TikTokTokenBroker] = Depends(get_tiktok_broker_factory),
    store: OAuthStateStore = Depends(get_state_store),
):
    state = OAuthState.create("tiktok", request.redirect_url, kind=request.kind)
    await store.save(state)
    auth_url = brokers(request.kind).generate_auth_url(state.state)
    return {"auth_url": auth_url, "state": state.state}


async def _complete(
    kind: str,
    code: Optional[str],
    state: Optional[str],
    error: Optional[str],
    brokers: Callable[[str], TikTokTokenBroker],
    store: OAuthStateStore,
):
    if error:
        logger.warning("TikTok %s authorization denied: %s", kind, error)
        return error_redirect("tiktok", ERROR_ACCESS_DENIED)
    if not code:
        return error_redirect("tiktok", ERROR_INVALID_REQUEST)

    try:
        pending = await consume_state(store, state, "tiktok", kind=kind)
    except InvalidStateError:
        return error_redirect("tiktok", ERROR_INVALID_STATE)

    broker = brokers(kind)
    try:
        result = await broker.exchange_code_for_token(code)
        if not result.success or not result.shop_id:
            return error_redirect("tiktok", ERROR_TOKEN_EXCHANGE, pending)

        profile = await broker.get_user_profile(result.access_token)
        await broker.store_business_account(
            result.to_tokens(),
            {"shop_name": profile.get("display_name"), "shop_logo": profile.get("avatar_url")},
        )
    except IntegrationError as e:
        logger.error("TikTok %s callback failed: %s", kind, e.message)
        return error_redirect("tiktok", ERROR_AUTHENTICATION, pending)

    logger.info("TikTok %s account %s connected", kind, sanitize_id_for_logging(result.shop_id))
    return console_redirect(pending.redirect_url, success=f"tiktok_{kind}_connected")


@callback_router.get("/auth/tiktok-shop/callback")
async def tiktok_shop_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    brokers: Callable[[str], TikTokTokenBroker] = Depends(get_tiktok_broker_factory),
    store: OAuthStateStore = Depends(get_state_store),
):
    return await _complete("shop", code, state, error, brokers, store)


@callback_router.get("/auth/tiktok-business/callback")
async def tiktok_business_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    brokers: Callable[[str], TikTokTokenBroker] = Depends(get_tiktok_broker_factory),
    store: OAuthStateStore = Depends(get_state_store),
):
    return await _complete("business", code, state, error, brokers, store)


@router.get("/accounts")
async def list_accounts(admin=Depends(verify_admin), db: Database = Depends(get_db)):
    accounts = await db.accounts("tiktok").list_all()
    return {"accounts": [a.public_dict() for a in accounts]}


@router.delete("/disconnect/{account_id}")
async def disconnect_account(
    account_id: str,
    admin=Depends(verify_admin),
    db: Database = Depends(get_db),
    brokers: Callable[[str], TikTokTokenBroker] = Depends(get_tiktok_broker_factory),
):
    account = await db.accounts("tiktok").get_by_id(account_id)
    if account is None:
        raise HTTPException(status_code=404, detail=ERROR_ACCOUNT_NOT_FOUND)
    kind = account.shop_type if account.shop_type in FLOW_KINDS else "shop"
    await brokers(kind).disconnect_shop(account.shop_id)
    return {"success": True}
