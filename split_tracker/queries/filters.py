"""
Split List Queries

DESIGN DECISION: Queries are DETERMINISTIC filters over the cached splits.
They never touch storage, so list views are cheap to recompute on every
snapshot.

"pending" means "not settled": it matches both PENDING and PARTIAL splits.
"""

from datetime import date, timezone
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

from split_tracker.models.split import SplitExpense, SplitStatus, SplitSummary
from split_tracker.settlement import get_split_summary


class SplitExpenseQuery(BaseModel):
    """Filter, search and limit for split list views."""
    model_config = ConfigDict(str_strip_whitespace=True)

    status_filter: str = Field(
        default="all",
        pattern="^(all|pending|settled)$",
        description="'pending' also matches partially paid splits"
    )
    search: Optional[str] = Field(
        default=None,
        description="Case-insensitive match on description, category or participant name"
    )
    limit: Optional[int] = Field(
        default=None,
        ge=1,
        description="Maximum number of results"
    )


def _matches_status(split: SplitExpense, status_filter: str) -> bool:
    if status_filter == "pending":
        return split.status in (SplitStatus.PENDING, SplitStatus.PARTIAL)
    if status_filter == "settled":
        return split.status == SplitStatus.SETTLED
    return True


def _matches_search(split: SplitExpense, search: Optional[str]) -> bool:
    if not search:
        return True
    needle = search.lower()
    haystack = [split.description, split.category] + [p.name for p in split.participants]
    return any(needle in (text or "").lower() for text in haystack)


def _sort_key(split: SplitExpense) -> tuple:
    created_at = split.created_at
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return (split.expense_date or date.min, created_at)


def filter_split_expenses(
    splits: Iterable[SplitExpense],
    query: Optional[SplitExpenseQuery] = None,
) -> list[SplitExpense]:
    """
    Apply a SplitExpenseQuery.

    Returns:
        Matching splits, newest first by expense date, then creation time
    """
    query = query or SplitExpenseQuery()

    results = [
        split for split in splits
        if _matches_status(split, query.status_filter)
        and _matches_search(split, query.search)
    ]
    results.sort(key=_sort_key, reverse=True)

    if query.limit is not None:
        return results[:query.limit]
    return results


def with_summaries(splits: Iterable[SplitExpense]) -> list[tuple[SplitExpense, SplitSummary]]:
    """Pair each split with its paid/pending summary."""
    return [(split, get_split_summary(split)) for split in splits]
