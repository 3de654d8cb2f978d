"""Balance aggregation package."""

from splitledger.balances.aggregator import BalanceAggregator

__all__ = ["BalanceAggregator"]
