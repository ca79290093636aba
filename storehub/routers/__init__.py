"""
API Routers

Modular FastAPI routers for the admin console backend.
"""
from .facebook import callback_router as facebook_callback_router
from .facebook import router as facebook_router
from .loyalty import router as loyalty_router
from .shopee import callback_router as shopee_callback_router
from .shopee import router as shopee_router
from .tiktok import callback_router as tiktok_callback_router
from .tiktok import router as tiktok_router

__all__ = [
    "shopee_router",
    "shopee_callback_router",
    "tiktok_router",
    "tiktok_callback_router",
    "facebook_router",
    "facebook_callback_router",
    "loyalty_router",
]
