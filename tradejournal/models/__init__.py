"""Database models."""

from tradejournal.models.profile import Profile
from tradejournal.models.trade import Trade
from tradejournal.models.asset import AssetListEntry
from tradejournal.models.cycle_log import CycleLog

__all__ = [
    "Profile",
    "Trade",
    "AssetListEntry",
    "CycleLog",
]
