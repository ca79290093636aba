"""VIP Tier Table.

Static, ordered loyalty levels unlocked by cumulative spend (VND).
The table is configuration: it is never stored per customer.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from storehub.errors import InvalidArgumentError


class VipTierId(str, Enum):
    """Identifier of a loyalty tier."""
    MEMBER = "member"
    SILVER = "silver"
    GOLD = "gold"
    DIAMOND = "diamond"


@dataclass(frozen=True)
class VipTier:
    """One loyalty level."""
    id: VipTierId
    name: str
    emoji: str
    threshold: int  # Minimum cumulative spend, inclusive
    benefits: tuple[str, ...]
    discount: int  # Percent off every product

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API response."""
        return {
            "id": self.id.value,
            "name": self.name,
            "emoji": self.emoji,
            "threshold": self.threshold,
            "benefits": list(self.benefits),
            "discount": self.discount,
        }


VIP_TIERS: tuple[VipTier, ...] = (
    VipTier(
        id=VipTierId.MEMBER,
        name="Thành viên",
        emoji="🥉",
        threshold=0,
        benefits=(
            "Tích điểm với mỗi đơn hàng",
            "Nhận thông báo khuyến mãi",
            "Hỗ trợ khách hàng 24/7",
        ),
        discount=0,
    ),
    VipTier(
        id=VipTierId.SILVER,
        name="Bạc",
        emoji="🥈",
        threshold=1_000_000,
        benefits=(
            "Giảm giá 5% tất cả sản phẩm",
            "Miễn phí ship đơn >500K",
            "Ưu tiên xử lý đơn hàng",
            "Tích điểm x1.5",
        ),
        discount=5,
    ),
    VipTier(
        id=VipTierId.GOLD,
        name="Vàng",
        emoji="🥇",
        threshold=3_000_000,
        benefits=(
            "Giảm giá 10% tất cả sản phẩm",
            "Miễn phí ship toàn quốc",
            "Tư vấn chuyên gia 1-1",
            "Tích điểm x2",
            "Early access sản phẩm mới",
        ),
        discount=10,
    ),
    VipTier(
        id=VipTierId.DIAMOND,
        name="Kim Cương",
        emoji="💎",
        threshold=10_000_000,
        benefits=(
            "Giảm giá 20% tất cả sản phẩm",
            "Miễn phí ship express",
            "Hotline VIP riêng",
            "Tích điểm x3",
            "Quà tặng sinh nhật đặc biệt",
            "Trải nghiệm độc quyền",
        ),
        discount=20,
    ),
)


def validate_tiers(tiers: Sequence[VipTier]) -> None:
    """Check that a tier table is usable by the progress calculator.

    Raises:
        InvalidArgumentError: empty table, first threshold not 0, or
            thresholds not strictly increasing.
    """
    if not tiers:
        raise InvalidArgumentError("Tier table is empty")
    if tiers[0].threshold != 0:
        raise InvalidArgumentError("First tier must start at threshold 0")
    for lower, upper in zip(tiers, tiers[1:]):
        if upper.threshold <= lower.threshold:
            raise InvalidArgumentError(
                f"Tier thresholds must be strictly increasing: "
                f"{lower.id.value}={lower.threshold}, {upper.id.value}={upper.threshold}"
            )


def get_tier(tier_id: str | VipTierId, tiers: Sequence[VipTier] = VIP_TIERS) -> VipTier | None:
    """Look up a tier by id."""
    for tier in tiers:
        if tier.id == tier_id:
            return tier
    return None


validate_tiers(VIP_TIERS)
