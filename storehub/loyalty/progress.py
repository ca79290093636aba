"""VIP Progress Calculator.

Maps cumulative spend to the customer's current tier and how far they are
from the next one. Everything here is pure: progress is derived on every
read and never persisted.
"""

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from storehub.errors import InvalidArgumentError
from storehub.services.money import percent, round_money, to_decimal

from .tiers import VIP_TIERS, VipTier

# Only orders in this status count toward the customer's spend
COUNTED_ORDER_STATUS = "delivered"

_HUNDRED = Decimal(100)


def _json_number(value: Decimal) -> int | float:
    return int(value) if value == value.to_integral_value() else float(value)


@dataclass(frozen=True)
class VipProgress:
    """Derived loyalty status for one customer."""
    current_tier: VipTier
    total_spent: Decimal
    next_tier: VipTier | None
    progress_to_next: float  # 0-100
    amount_to_next: Decimal  # >= 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API response."""
        return {
            "current_tier": self.current_tier.to_dict(),
            "total_spent": _json_number(self.total_spent),
            "next_tier": self.next_tier.to_dict() if self.next_tier else None,
            "progress_to_next": self.progress_to_next,
            "amount_to_next": _json_number(self.amount_to_next),
        }


def _coerce_spend(total_spent: Any) -> Decimal:
    """Validate a spend amount without silently fixing it."""
    if isinstance(total_spent, bool) or not isinstance(total_spent, (int, float, Decimal)):
        raise InvalidArgumentError("total_spent must be a number")
    if isinstance(total_spent, float) and (math.isnan(total_spent) or math.isinf(total_spent)):
        raise InvalidArgumentError("total_spent must be a finite number")
    if isinstance(total_spent, Decimal) and not total_spent.is_finite():
        raise InvalidArgumentError("total_spent must be a finite number")

    spent = to_decimal(total_spent)
    if spent < 0:
        raise InvalidArgumentError("total_spent cannot be negative")
    return spent


def compute_progress(total_spent: int | float | Decimal, tiers: Sequence[VipTier] = VIP_TIERS) -> VipProgress:
    """Compute VIP progress for a cumulative spend.

    The current tier is the highest tier whose threshold is <= spend, so a
    spend exactly at a threshold belongs to that tier. Progress is the share
    of the gap between the current and next thresholds already covered.

    Args:
        total_spent: Cumulative spend, must be >= 0
        tiers: Tier table in ascending threshold order (first threshold 0)

    Returns:
        VipProgress

    Raises:
        InvalidArgumentError: negative, non-numeric or non-finite spend,
            or an empty tier table
    """
    spent = _coerce_spend(total_spent)
    if not tiers:
        raise InvalidArgumentError("Tier table is empty")

    current_index = 0
    for index, tier in enumerate(tiers):
        if tier.threshold <= spent:
            current_index = index
        else:
            break

    current = tiers[current_index]
    next_tier = tiers[current_index + 1] if current_index + 1 < len(tiers) else None

    if next_tier is None:
        return VipProgress(
            current_tier=current,
            total_spent=spent,
            next_tier=None,
            progress_to_next=100.0,
            amount_to_next=Decimal(0),
        )

    band = Decimal(next_tier.threshold - current.threshold)
    covered = (spent - current.threshold) / band * _HUNDRED
    progress = min(max(covered, Decimal(0)), _HUNDRED)

    return VipProgress(
        current_tier=current,
        total_spent=spent,
        next_tier=next_tier,
        progress_to_next=float(progress),
        amount_to_next=max(Decimal(0), next_tier.threshold - spent),
    )


def _order_field(order: Any, name: str) -> Any:
    if isinstance(order, Mapping):
        return order.get(name)
    return getattr(order, name, None)


def total_spent_from_orders(orders: Iterable[Any]) -> Decimal:
    """Sum order totals that count toward loyalty (delivered orders only).

    Orders may be dicts (API rows) or objects with `status` and `total`.
    """
    total = Decimal(0)
    for order in orders:
        if _order_field(order, "status") != COUNTED_ORDER_STATUS:
            continue
        total += to_decimal(_order_field(order, "total"))
    return total


def apply_tier_discount(amount: int | float | Decimal, tier: VipTier) -> Decimal:
    """Price after the tier discount, rounded to whole VND."""
    price = to_decimal(amount)
    if price < 0:
        raise InvalidArgumentError("amount cannot be negative")
    return round_money(price - percent(price, tier.discount), to_int=True)
