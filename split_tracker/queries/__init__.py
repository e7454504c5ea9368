"""Split list query package."""

from split_tracker.queries.filters import (
    SplitExpenseQuery,
    filter_split_expenses,
    with_summaries,
)

__all__ = ["SplitExpenseQuery", "filter_split_expenses", "with_summaries"]
