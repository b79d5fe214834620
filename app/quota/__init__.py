"""
Quota management module for tier-limited resume slots.
Supports Free, Standard and Premium subscription tiers.
"""

from .models import SubscriptionTier, QuotaResult, TierCapacityTable, DEFAULT_TIER_CAPACITIES
from .manager import SlotQuotaManager
from .factory import create_quota_module

__all__ = [
    "SubscriptionTier",
    "QuotaResult",
    "TierCapacityTable",
    "DEFAULT_TIER_CAPACITIES",
    "SlotQuotaManager",
    "create_quota_module",
]
