"""
Share Allocation

Computes every participant's share of a split total for the three split
methods: equal, percentage and fixed amount.

DESIGN DECISION: Amounts are computed in whole cents. Whatever cannot be
divided evenly is handed out one cent at a time to participants in list
order, so the first participants absorb the remainder and the shares add
up to the total exactly instead of "within a cent".

DESIGN DECISION: Only None means "not supplied". A participant with an
explicit share of zero keeps it.

This module is pure: no I/O, and the output preserves participant order.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional, Union

from split_tracker.config import get_settings
from split_tracker.models.split import (
    HUNDRED,
    MONEY_QUANTUM,
    Participant,
    SplitMethod,
    quantize_money,
    quantize_percentage,
    to_decimal,
)


class AllocationError(ValueError):
    """Raised when allocation inputs are invalid."""
    pass


def _to_cents(value: Decimal) -> int:
    return int((value * 100).to_integral_value(rounding=ROUND_HALF_UP))


def _from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(MONEY_QUANTUM)


def _spread_cents(cents: int, count: int) -> list[int]:
    """Split cents over count slots; the first slots get the leftovers."""
    base, remainder = divmod(cents, count)
    return [base + 1 if i < remainder else base for i in range(count)]


class ShareAllocator:
    """
    Allocates a split total among participants.

    GUARANTEE: for valid input (shares that can add up to the total),
    the returned amounts sum to the total exactly.
    Callers must still check is_balanced() before persisting, because
    explicit shares supplied by the user may not add up.
    """

    def __init__(self, tolerance: Optional[Union[Decimal, float, str]] = None):
        """
        Initialize allocator.

        Args:
            tolerance: Allowed |sum(shares) - total|. Defaults to the
                      configured share tolerance.
        """
        if tolerance is None:
            tolerance = get_settings().split.share_tolerance
        self._tolerance = to_decimal(tolerance)

    @property
    def tolerance(self) -> Decimal:
        return self._tolerance

    def _prepare(
        self,
        total_amount: Any,
        participants: Iterable[Union[Participant, dict]],
        method: Union[SplitMethod, str],
    ) -> tuple[Decimal, list[Participant], SplitMethod]:
        try:
            total = to_decimal(total_amount)
        except ValueError as e:
            raise AllocationError(str(e))
        if total is None or total <= 0:
            raise AllocationError("Total amount must be greater than zero")
        total = quantize_money(total)
        if total <= 0:
            raise AllocationError("Total amount must be at least 0.01")

        try:
            split_method = SplitMethod(method)
        except ValueError:
            raise AllocationError(f"Unknown split method: {method}")

        prepared = [
            p if isinstance(p, Participant) else Participant.model_validate(p)
            for p in participants
        ]
        if not prepared:
            raise AllocationError("At least one participant is required")

        return total, prepared, split_method

    def allocate(
        self,
        total_amount: Any,
        participants: Iterable[Union[Participant, dict]],
        method: Union[SplitMethod, str] = SplitMethod.EQUAL,
    ) -> list[Participant]:
        """
        Compute share_percentage and share_amount for every participant.

        Args:
            total_amount: Total being split (> 0)
            participants: Participants, optionally carrying explicit shares
            method: equal, percentage or amount

        Returns:
            New Participant objects in the same order (inputs are not modified)

        Raises:
            AllocationError: If the total, method or participant list is invalid
        """
        total, prepared, split_method = self._prepare(
            total_amount, participants, method
        )

        if split_method == SplitMethod.EQUAL:
            percentages, cents = self._equal(total, len(prepared))
        elif split_method == SplitMethod.PERCENTAGE:
            percentages, cents = self._by_percentage(total, prepared)
        else:
            percentages, cents = self._by_amount(total, prepared)

        return [
            participant.model_copy(update={
                "share_percentage": percentage,
                "share_amount": _from_cents(amount_cents),
            })
            for participant, percentage, amount_cents in zip(prepared, percentages, cents)
        ]

    def _equal(self, total: Decimal, count: int) -> tuple[list[Decimal], list[int]]:
        percentage = quantize_percentage(HUNDRED / count)
        return [percentage] * count, _spread_cents(_to_cents(total), count)

    def _by_percentage(
        self,
        total: Decimal,
        participants: list[Participant],
    ) -> tuple[list[Decimal], list[int]]:
        assigned = sum(
            (p.share_percentage for p in participants if p.share_percentage is not None),
            Decimal("0"),
        )
        unassigned = [i for i, p in enumerate(participants) if p.share_percentage is None]

        default_percentage = Decimal("0")
        if unassigned and assigned < HUNDRED:
            default_percentage = quantize_percentage((HUNDRED - assigned) / len(unassigned))

        percentages = [
            p.share_percentage if p.share_percentage is not None else default_percentage
            for p in participants
        ]
        cents = [
            _to_cents(quantize_money(total * percentage / HUNDRED))
            for percentage in percentages
        ]

        # Reconcile rounding drift only when the percentages describe the
        # whole total; anything else is a user error for the validator.
        if abs(sum(percentages) - HUNDRED) <= MONEY_QUANTUM:
            self._reconcile(cents, _to_cents(total))

        return percentages, cents

    def _by_amount(
        self,
        total: Decimal,
        participants: list[Participant],
    ) -> tuple[list[Decimal], list[int]]:
        total_cents = _to_cents(total)
        cents = [
            _to_cents(p.share_amount) if p.share_amount is not None else 0
            for p in participants
        ]
        unassigned = [i for i, p in enumerate(participants) if p.share_amount is None]

        remaining = total_cents - sum(cents)
        if unassigned and remaining > 0:
            for index, share in zip(unassigned, _spread_cents(remaining, len(unassigned))):
                cents[index] = share

        percentages = [
            quantize_percentage(_from_cents(amount) / total * HUNDRED)
            for amount in cents
        ]
        return percentages, cents

    @staticmethod
    def _reconcile(cents: list[int], total_cents: int) -> None:
        """Move the sum of cents onto total_cents, one cent per participant in order."""
        difference = total_cents - sum(cents)
        step = 1 if difference > 0 else -1
        index = 0
        while difference != 0:
            slot = index % len(cents)
            if step > 0 or cents[slot] > 0:
                cents[slot] += step
                difference -= step
            index += 1

    def discrepancy(
        self,
        total_amount: Any,
        participants: Iterable[Union[Participant, dict]],
    ) -> Decimal:
        """sum(share_amount) - total; missing shares count as zero."""
        total = to_decimal(total_amount) or Decimal("0")
        shares = Decimal("0")
        for participant in participants:
            if isinstance(participant, Participant):
                amount = participant.share_amount
            else:
                amount = to_decimal(participant.get("share_amount"))
            shares += amount or Decimal("0")
        return shares - total

    def is_balanced(
        self,
        total_amount: Any,
        participants: Iterable[Union[Participant, dict]],
    ) -> bool:
        """Do the shares add up to the total within tolerance?"""
        return abs(self.discrepancy(total_amount, participants)) <= self._tolerance


def allocate_shares(
    total_amount: Any,
    participants: Iterable[Union[Participant, dict]],
    method: Union[SplitMethod, str] = SplitMethod.EQUAL,
) -> list[Participant]:
    """Allocate with the configured tolerance. See ShareAllocator.allocate."""
    return ShareAllocator().allocate(total_amount, participants, method)
