"""
Storehub Core Package

Backend for the multi-tenant shop admin console:
- loyalty: VIP tier table and progress calculator
- integrations: marketplace OAuth token brokers (Shopee, TikTok, Facebook)
- services: Supabase persistence (business accounts, marketplace orders)
- routers: FastAPI endpoints mounted by api/index.py

Note: Imports are lazy to keep serverless cold starts cheap.
"""

__all__ = [
    "get_redis",
    "compute_progress",
    "VIP_TIERS",
]


def __getattr__(name):
    """Lazy attribute access for clean serverless loading."""
    if name == "get_redis":
        from storehub.db import get_redis
        return get_redis
    elif name == "compute_progress":
        from storehub.loyalty import compute_progress
        return compute_progress
    elif name == "VIP_TIERS":
        from storehub.loyalty import VIP_TIERS
        return VIP_TIERS
    raise AttributeError(f"module 'storehub' has no attribute '{name}'")
