"""
Logging for Storehub.

Every module logs through `get_logger(__name__)`. Marketplace identifiers
come from query strings and provider payloads, so they go through
`sanitize_id_for_logging()` before reaching a log line, and provider
messages go through `scrub_secrets()` before being logged or relayed.
"""

import logging
import os
import sys
from functools import cache

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
# Vercel prefixes its own timestamp
LOG_FORMAT_SERVERLESS = "%(levelname)s - %(name)s - %(message)s"

REDACTED = "***"
ID_LOG_LENGTH = 8

# Request-level loggers that print full URLs; signed Shopee URLs and Graph
# calls carry access tokens in the query string.
QUIET_LOGGERS = ("httpx", "httpcore", "hpack", "urllib3")

_CONTROL_CHARS = str.maketrans({"\n": "\\n", "\r": "\\r", "\t": "\\t", "\x00": None})


def configure_logging(level: str | None = None) -> None:
    """Attach a stdout handler to the root logger unless one already exists."""
    root = logging.getLogger()
    if root.handlers:
        return

    level_name = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    root.setLevel(getattr(logging, level_name, logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    serverless = os.environ.get("VERCEL") == "1"
    handler.setFormatter(logging.Formatter(LOG_FORMAT_SERVERLESS if serverless else LOG_FORMAT))
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


configure_logging()


@cache
def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def sanitize_id_for_logging(id_value: object) -> str:
    """
    Shorten a shop, account or state id for a log line.

    Control characters are escaped (CWE-117) and only the first eight
    characters are kept, enough to correlate without logging full ids.
    """
    if id_value is None or id_value == "":
        return "N/A"
    return str(id_value).translate(_CONTROL_CHARS)[:ID_LOG_LENGTH]


def scrub_secrets(text: str | None, *secrets: str | None) -> str:
    """
    Replace each non-empty secret in text with "***".

    Longer secrets are replaced first so one that contains another is
    fully redacted.
    """
    if not text:
        return ""
    scrubbed = str(text)
    for secret in sorted(filter(None, secrets), key=len, reverse=True):
        scrubbed = scrubbed.replace(secret, REDACTED)
    return scrubbed


__all__ = [
    "configure_logging",
    "get_logger",
    "sanitize_id_for_logging",
    "scrub_secrets",
]
