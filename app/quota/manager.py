"""
Quota manager for tier-limited resume slots.
"""

import logging
from typing import Any

from app.exceptions import InvalidTier
from .models import QuotaResult, TierCapacityTable

logger = logging.getLogger(__name__)


class SlotQuotaManager:
    """
    Resolves tiers to slot capacities and enforces them.

    Capacity is a hard ceiling on occupied slots:
    - submissions are rejected once ``occupied >= capacity``
    - tier changes are rejected when ``occupied > capacity(new_tier)``
    """

    def __init__(self, table: TierCapacityTable):
        """
        Initialize SlotQuotaManager.

        Args:
            table: TierCapacityTable mapping tier -> max slots
        """
        self.table = table

    def resolve_tier(self, value: Any) -> int:
        """
        Coerce a caller-supplied tier to an int in the capacity table.

        Accepts ints and numeric strings; bools and anything else are rejected.

        Raises:
            InvalidTier: If the value is not a known tier
        """
        if isinstance(value, bool):
            raise InvalidTier(value, self.table.tiers)
        if isinstance(value, str) and value.strip().isdigit():
            tier = int(value.strip())
        elif isinstance(value, int):
            tier = value
        elif isinstance(value, float) and value.is_integer():
            tier = int(value)
        else:
            raise InvalidTier(value, self.table.tiers)

        if not self.table.has_tier(tier):
            raise InvalidTier(value, self.table.tiers)
        return tier

    def capacity(self, tier: Any) -> int:
        """Get max slots for a tier."""
        return self.table.capacities[self.resolve_tier(tier)]

    def check_capacity(self, occupied: int, tier: Any) -> QuotaResult:
        """
        Check whether one more slot may be occupied.

        Args:
            occupied: Currently occupied slot count
            tier: Tier the submission is made under

        Returns:
            QuotaResult with allowed status and details
        """
        tier = self.resolve_tier(tier)
        capacity = self.table.capacities[tier]

        if occupied >= capacity:
            logger.info(f"Quota reached: tier={tier}, occupied={occupied}, capacity={capacity}")
            return QuotaResult(
                allowed=False,
                tier=tier,
                capacity=capacity,
                occupied=occupied,
                reason="quota_exceeded",
                message=f"Maximum {capacity} resumes allowed for your plan."
            )

        return QuotaResult(
            allowed=True,
            tier=tier,
            capacity=capacity,
            occupied=occupied,
            message=f"{capacity - occupied} of {capacity} slots free"
        )

    def check_downgrade(self, occupied: int, new_tier: Any) -> QuotaResult:
        """
        Check whether a user holding ``occupied`` slots may move to ``new_tier``.

        Upgrades always pass; downgrades pass only when every occupied slot
        still fits.
        """
        new_tier = self.resolve_tier(new_tier)
        capacity = self.table.capacities[new_tier]

        if occupied > capacity:
            return QuotaResult(
                allowed=False,
                tier=new_tier,
                capacity=capacity,
                occupied=occupied,
                reason="downgrade_conflict",
                message=f"{occupied} resumes stored, tier {new_tier} allows {capacity}"
            )

        return QuotaResult(
            allowed=True,
            tier=new_tier,
            capacity=capacity,
            occupied=occupied
        )

    def get_quota_info(self, tier: Any, occupied: int) -> dict:
        """
        Get quota information for display.

        Returns dict with:
        - tier: Tier number
        - max_resumes_allowed: Capacity of the tier
        - current_resume_count: Occupied slots
        - remaining: Free slots
        """
        tier = self.resolve_tier(tier)
        capacity = self.table.capacities[tier]
        return {
            "tier": tier,
            "max_resumes_allowed": capacity,
            "current_resume_count": occupied,
            "remaining": max(0, capacity - occupied)
        }
