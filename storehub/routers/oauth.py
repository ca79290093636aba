"""
OAuth Callback Helpers

Shared by the platform routers: state validation and the redirect back
to the console with a success or error code.
"""
from typing import Optional
from urllib.parse import urlencode

from fastapi.responses import RedirectResponse

from storehub.errors import InvalidStateError
from storehub.integrations.oauth_state import DEFAULT_REDIRECTS, OAuthState, OAuthStateStore
from storehub.logging import get_logger

logger = get_logger(__name__)

# Error codes the console understands
ERROR_ACCESS_DENIED = "access_denied"
ERROR_INVALID_REQUEST = "invalid_request"
ERROR_INVALID_STATE = "invalid_state"
ERROR_TOKEN_EXCHANGE = "token_exchange_failed"
ERROR_AUTHENTICATION = "authentication_failed"


def console_redirect(path: str, **params: str) -> RedirectResponse:
    """302 to a console path with query parameters."""
    query = urlencode(params)
    return RedirectResponse(url=f"{path}?{query}" if query else path, status_code=302)


def error_redirect(platform: str, code: str, state: Optional[OAuthState] = None) -> RedirectResponse:
    path = state.redirect_url if state else DEFAULT_REDIRECTS[platform]
    return console_redirect(path, error=code)


async def consume_state(
    store: OAuthStateStore, token: Optional[str], platform: str, kind: Optional[str] = None
) -> OAuthState:
    """Pending state for this callback.

    Raises InvalidStateError when the token is missing, unknown, expired,
    already used, or was issued for another platform or TikTok flow.
    """
    if not token:
        raise InvalidStateError("Missing OAuth state", platform)
    state = await store.consume(token)
    if state is None:
        logger.warning("%s callback with unknown or expired state", platform)
        raise InvalidStateError("Unknown or expired OAuth state", platform)
    if state.platform != platform:
        logger.warning("%s callback with state issued for %s", platform, state.platform)
        raise InvalidStateError("OAuth state issued for another platform", platform)
    if kind is not None and (state.kind or "shop") != kind:
        logger.warning("%s %s callback with state issued for %s", platform, kind, state.kind)
        raise InvalidStateError("OAuth state issued for another flow", platform)
    return state
