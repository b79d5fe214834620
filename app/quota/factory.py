"""
Factory for creating quota management components.
"""

from typing import Dict, Optional

from .models import TierCapacityTable
from .manager import SlotQuotaManager


def create_quota_module(tier_capacities: Optional[Dict[int, int]] = None) -> dict:
    """
    Create quota management module.

    Args:
        tier_capacities: Tier -> max slots; the canonical table when omitted

    Returns:
        Dictionary with:
        - manager: SlotQuotaManager instance
        - table: TierCapacityTable instance
    """
    if tier_capacities:
        table = TierCapacityTable.from_dict(tier_capacities)
    else:
        table = TierCapacityTable()

    manager = SlotQuotaManager(table=table)

    return {
        "manager": manager,
        "table": table
    }
