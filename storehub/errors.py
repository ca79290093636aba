"""
Common Errors

Centralized error messages to avoid string duplication (SonarQube S1192)
and the typed exceptions raised by loyalty and integration code.

Routers translate these into HTTP responses with `http_error_from()`.
"""

from fastapi import HTTPException

# Auth errors
ERROR_UNAUTHORIZED = "Unauthorized"
ERROR_ADMIN_NOT_CONFIGURED = "ADMIN_API_KEY not configured"

# Account errors
ERROR_ACCOUNT_NOT_FOUND = "Business account not found"
ERROR_INVALID_ACCOUNT_ID = "Invalid business account ID format"
ERROR_REAUTH_REQUIRED = "Marketplace authorization expired, reconnect the shop"

# Order errors
ERROR_ORDER_NOT_FOUND = "Order not found"

# Provider errors
ERROR_PROVIDER_UNREACHABLE = "Marketplace API is unreachable, please try again later"
ERROR_TOKEN_EXCHANGE_FAILED = "Token exchange failed"
ERROR_TOKEN_REFRESH_FAILED = "Token refresh failed"

# Generic errors
ERROR_INVALID_REQUEST = "Invalid request"
ERROR_INTERNAL = "Internal server error"


class StorehubError(Exception):
    """Base class for all domain errors."""

    status_code = 500

    def __init__(self, message: str = ERROR_INTERNAL):
        super().__init__(message)
        self.message = message


class InvalidArgumentError(StorehubError, ValueError):
    """Caller passed a value outside the accepted domain."""

    status_code = 400


class AuthRequired(StorehubError):
    """Missing or wrong admin credentials."""

    status_code = 401

    def __init__(self, message: str = ERROR_UNAUTHORIZED):
        super().__init__(message)


class NotFoundError(StorehubError):
    status_code = 404


class IntegrationError(StorehubError):
    """Base class for failures talking to a marketplace."""

    status_code = 502

    def __init__(self, message: str, platform: str | None = None):
        super().__init__(message)
        self.platform = platform


class ProviderError(IntegrationError):
    """The marketplace answered but rejected the request."""

    def __init__(
        self,
        message: str,
        platform: str | None = None,
        provider_status: int | None = None,
        status_text: str | None = None,
    ):
        super().__init__(message, platform)
        self.provider_status = provider_status
        self.status_text = status_text
        # Relay client errors (bad signature, expired code) as-is,
        # anything else is a bad gateway from our point of view
        if provider_status is not None and 400 <= provider_status < 500:
            self.status_code = provider_status


class TransportError(IntegrationError):
    """The marketplace could not be reached."""

    def __init__(self, message: str = ERROR_PROVIDER_UNREACHABLE, platform: str | None = None):
        super().__init__(message, platform)


class ReauthorizationRequired(IntegrationError):
    """No usable token: the seller has to go through OAuth again."""

    status_code = 409

    def __init__(self, message: str = ERROR_REAUTH_REQUIRED, platform: str | None = None):
        super().__init__(message, platform)


class InvalidStateError(StorehubError):
    """OAuth callback state is missing, unknown, expired or already used."""

    status_code = 400

    def __init__(self, message: str = "Invalid OAuth state", platform: str | None = None):
        super().__init__(message)
        self.platform = platform


def http_error_from(exc: StorehubError) -> HTTPException:
    """Map a domain error to the HTTPException the routers raise."""
    if isinstance(exc, TransportError):
        # Never relay transport details (hostnames, signed URLs)
        return HTTPException(status_code=exc.status_code, detail=ERROR_PROVIDER_UNREACHABLE)
    return HTTPException(status_code=exc.status_code, detail=exc.message)
