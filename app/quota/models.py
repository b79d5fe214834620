"""
Data models for the slot quota system.
"""

from enum import IntEnum
from dataclasses import dataclass, field
from typing import Dict, Optional


class SubscriptionTier(IntEnum):
    """Subscription levels, stored as ``user_subscription`` on the record."""
    FREE = 1
    STANDARD = 2
    PREMIUM = 3


# Canonical tier -> max resume slots. Some deployments used {1: 3, 2: 5, 3: 10};
# that table is available through configuration, not as a default.
DEFAULT_TIER_CAPACITIES: Dict[int, int] = {
    int(SubscriptionTier.FREE): 3,
    int(SubscriptionTier.STANDARD): 10,
    int(SubscriptionTier.PREMIUM): 50,
}


@dataclass
class QuotaResult:
    """Result of a slot capacity check."""
    allowed: bool
    tier: int
    capacity: int
    occupied: int
    reason: Optional[str] = None  # "quota_exceeded", "downgrade_conflict"
    message: Optional[str] = None  # User-facing message

    @property
    def remaining(self) -> int:
        return max(0, self.capacity - self.occupied)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "allowed": self.allowed,
            "tier": self.tier,
            "capacity": self.capacity,
            "occupied": self.occupied,
            "remaining": self.remaining,
            "reason": self.reason,
            "message": self.message
        }


@dataclass
class TierCapacityTable:
    """Versionable tier -> capacity lookup."""
    capacities: Dict[int, int] = field(default_factory=lambda: dict(DEFAULT_TIER_CAPACITIES))

    @property
    def tiers(self) -> list:
        return sorted(self.capacities)

    def has_tier(self, tier: int) -> bool:
        return tier in self.capacities

    @classmethod
    def from_dict(cls, data: dict) -> "TierCapacityTable":
        """Create TierCapacityTable from a (possibly string-keyed) dictionary."""
        return cls(capacities={int(k): int(v) for k, v in data.items()})

    def to_dict(self) -> dict:
        return {str(k): v for k, v in sorted(self.capacities.items())}
