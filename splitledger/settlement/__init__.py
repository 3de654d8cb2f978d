"""Settlement tracking package."""

from splitledger.settlement.tracker import SettlementTracker, utc_now

__all__ = ["SettlementTracker", "utc_now"]
