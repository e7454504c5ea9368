"""
Split Expense Records

Construction of participants and split expenses, and the paid/pending
summary used by list and detail views. Everything here is pure.
"""

from collections.abc import Mapping
from decimal import Decimal
from typing import Any, Iterable, Optional, Union

from split_tracker.allocation import ShareAllocator
from split_tracker.models.split import (
    HUNDRED,
    ExpenseInput,
    Participant,
    SplitExpense,
    SplitMethod,
    SplitSummary,
    quantize_money,
    quantize_percentage,
    to_decimal,
    utcnow,
)
from split_tracker.settlement.state_machine import (
    calculate_split_status,
    is_paid,
    participant_field,
    participants_of,
)


def create_participant(
    name: str,
    email: Optional[str] = None,
    share_percentage: Any = None,
    share_amount: Any = None,
) -> Participant:
    """Create an unpaid participant with a fresh id."""
    return Participant(
        name=name,
        email=email,
        share_percentage=share_percentage,
        share_amount=share_amount,
    )


def _fill_missing_shares(
    total: Decimal,
    participants: list[Participant],
) -> list[Participant]:
    """
    Fill in whatever share values are missing, never overwriting present ones.

    - no percentage, no amount -> equal percentage, amount derived from it
    - no percentage, amount    -> percentage back-computed from the amount
    - percentage, no amount    -> amount derived from the percentage
    """
    equal_percentage = quantize_percentage(HUNDRED / len(participants))
    filled = []

    for participant in participants:
        updates = {}
        percentage = participant.share_percentage

        if percentage is None:
            if participant.share_amount is not None:
                percentage = quantize_percentage(participant.share_amount / total * HUNDRED)
            else:
                percentage = equal_percentage
            updates["share_percentage"] = percentage

        if participant.share_amount is None:
            updates["share_amount"] = quantize_money(total * percentage / HUNDRED)

        filled.append(participant.model_copy(update=updates) if updates else participant)

    return filled


def fill_participant_shares(
    total: Decimal,
    participants: Iterable[Union[Participant, Mapping]],
    allocator: Optional[ShareAllocator] = None,
) -> list[Participant]:
    """
    Return participants with both share values present.

    When nobody carries a share at all, the equal allocation is used so
    the amounts add up to the total exactly.
    """
    prepared = [
        p if isinstance(p, Participant) else Participant.model_validate(p)
        for p in participants
    ]
    if not prepared:
        return []

    if all(p.share_percentage is None and p.share_amount is None for p in prepared):
        allocator = allocator or ShareAllocator()
        return allocator.allocate(total, prepared, SplitMethod.EQUAL)

    return _fill_missing_shares(total, prepared)


def create_split_expense(
    expense: Union[ExpenseInput, Mapping],
    participants: Iterable[Union[Participant, Mapping]],
    allocator: Optional[ShareAllocator] = None,
) -> SplitExpense:
    """
    Build a new SplitExpense from its base expense and participants.

    Shares already present on the participants (for example from the
    ShareAllocator) are kept. When nobody carries a share at all the total
    is split equally with exact cent reconciliation.

    Args:
        expense: Base expense; must carry the ledger entry id and the owner id
        participants: At least one participant

    Returns:
        SplitExpense with a fresh id and a derived (pending) status

    Raises:
        pydantic.ValidationError: If the expense or a participant is malformed
    """
    if not isinstance(expense, ExpenseInput):
        expense = ExpenseInput.model_validate(expense)

    filled = fill_participant_shares(expense.amount, participants, allocator)

    return SplitExpense(
        expense_id=expense.id,
        total_amount=expense.amount,
        category=expense.category,
        description=expense.description,
        expense_date=expense.expense_date,
        notes=expense.notes or "",
        receipt_image_url=expense.receipt_image_url,
        participants=filled,
        status=calculate_split_status(filled),
        user_id=expense.user_id,
        created_at=utcnow(),
    )


def _safe_amount(value: Any) -> Decimal:
    try:
        amount = to_decimal(value)
    except ValueError:
        return Decimal("0")
    return amount if amount is not None else Decimal("0")


def get_split_summary(split: Any) -> SplitSummary:
    """
    Summarize paid and pending amounts of a split.

    Never raises: a missing or malformed participant list yields a zeroed
    summary with status PENDING.
    """
    participants = participants_of(split)
    if participants is None:
        return SplitSummary()

    paid_amount = Decimal("0")
    pending_amount = Decimal("0")
    paid_count = 0

    for participant in participants:
        amount = _safe_amount(participant_field(participant, "share_amount"))
        if is_paid(participant):
            paid_amount += amount
            paid_count += 1
        else:
            pending_amount += amount

    if isinstance(split, (list, tuple)):
        total_amount = paid_amount + pending_amount
    elif isinstance(split, Mapping):
        total_amount = _safe_amount(split.get("total_amount"))
    else:
        total_amount = _safe_amount(getattr(split, "total_amount", None))

    return SplitSummary(
        total_amount=total_amount,
        paid_amount=paid_amount,
        pending_amount=pending_amount,
        participant_count=len(participants),
        paid_count=paid_count,
        status=calculate_split_status(participants),
    )
