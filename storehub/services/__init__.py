# Services Module
# SellerService lives in services.sellers; it depends on integrations,
# which import from this package.
from .database import Database

__all__ = ["Database"]
