"""
SplitLedger - Source Package

The expense-split and balance-netting engine behind a shared-expenses
app: split a cost between people, check the split adds up, track who
has paid back, and net everything into one balance per friend or group.

DESIGN PRINCIPLES:
1. Money is exact: integer minor units, half-up rounding, no floats
2. Shares always add back to the total
3. No silent corrections: a split that does not add up is reported
4. Balances are derived, never stored
5. Every step must be auditable
6. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "SplitLedger Team"
