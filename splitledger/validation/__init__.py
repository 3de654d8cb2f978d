"""Share validation package."""

from splitledger.validation.validator import SplitValidator

__all__ = ["SplitValidator"]
