"""Authentication package."""
from .admin import verify_admin

__all__ = ["verify_admin"]
