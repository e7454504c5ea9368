"""Split validation package."""

from split_tracker.validation.validator import SplitValidator

__all__ = ["SplitValidator"]
