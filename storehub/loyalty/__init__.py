"""Loyalty package: VIP tier table and progress calculator."""
from .progress import VipProgress, apply_tier_discount, compute_progress, total_spent_from_orders
from .tiers import VIP_TIERS, VipTier, VipTierId, get_tier, validate_tiers

__all__ = [
    "VIP_TIERS",
    "VipTier",
    "VipTierId",
    "VipProgress",
    "compute_progress",
    "total_spent_from_orders",
    "apply_tier_discount",
    "get_tier",
    "validate_tiers",
]
