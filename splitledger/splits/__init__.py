"""Split calculation package."""

from splitledger.splits.calculator import (
    InvalidInputError,
    SplitCalculator,
    parse_percentage,
)

__all__ = ["InvalidInputError", "SplitCalculator", "parse_percentage"]
