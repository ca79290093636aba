"""
Loyalty Router

Public, read-only VIP endpoints for the customer shop.
"""
from decimal import Decimal

from fastapi import APIRouter, HTTPException, Query

from storehub.errors import InvalidArgumentError
from storehub.loyalty import VIP_TIERS, compute_progress

router = APIRouter(prefix="/api/loyalty", tags=["loyalty"])


@router.get("/tiers")
async def get_tiers():
    """VIP tier table, lowest tier first."""
    return {"tiers": [tier.to_dict() for tier in VIP_TIERS]}


@router.get("/progress")
async def get_progress(total_spent: Decimal = Query(...)):
    """Current tier and progress toward the next one for a spend amount."""
    try:
        progress = compute_progress(total_spent)
    except InvalidArgumentError as e:
        raise HTTPException(status_code=400, detail=e.message)
    return progress.to_dict()
