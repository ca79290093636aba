"""Admin API key validation for the console's admin endpoints."""
import hmac
import os

from fastapi import Header

from storehub.errors import ERROR_ADMIN_NOT_CONFIGURED, AuthRequired, StorehubError


async def verify_admin(
    authorization: str = Header(None, alias="Authorization")
):
    """
    Verify ADMIN_API_KEY sent as a Bearer token.

    Use for every non-public marketplace and seller endpoint.
    Raises AuthRequired (401); the app's StorehubError handler renders it.
    """
    admin_key = os.environ.get("ADMIN_API_KEY", "")

    if not admin_key:
        raise StorehubError(ERROR_ADMIN_NOT_CONFIGURED)

    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not hmac.compare_digest(token.encode(), admin_key.encode()):
        raise AuthRequired()

    return True
