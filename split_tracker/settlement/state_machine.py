"""
Settlement State Machine

The aggregate status of a split is a pure function of its participants:

    0 paid          -> pending
    some paid       -> partial
    everybody paid  -> settled

Status is recomputed on every change and never stored on its own, so
regressions fall out for free: un-marking a participant of a settled split
yields partial again.

Both functions here are total: malformed input produces a safe value
instead of an exception, because views render whatever the live
subscription hands them, including half-written documents.
"""

from collections.abc import Mapping
from typing import Any, Optional, Union

from split_tracker.models.split import (
    Participant,
    ParticipantStatus,
    SplitStatus,
    utcnow,
)


def participants_of(split: Any) -> Optional[list]:
    """
    Extract the participant list from a split model, a mapping or a bare list.

    Returns None when there is no usable list.
    """
    if split is None:
        return None
    if isinstance(split, (list, tuple)):
        return list(split)
    if isinstance(split, Mapping):
        participants = split.get("participants")
    else:
        participants = getattr(split, "participants", None)
    if isinstance(participants, (list, tuple)):
        return list(participants)
    return None


def participant_field(participant: Any, name: str, default: Any = None) -> Any:
    if isinstance(participant, Mapping):
        return participant.get(name, default)
    return getattr(participant, name, default)


def is_paid(participant: Any) -> bool:
    # str-valued enum: compares equal to the raw "paid" string as well
    return participant_field(participant, "status") == ParticipantStatus.PAID


def calculate_split_status(split: Any) -> SplitStatus:
    """
    Derive the aggregate status of a split.

    Args:
        split: SplitExpense, a mapping with "participants", or a participant list

    Returns:
        SplitStatus; PENDING for missing or malformed participant data
    """
    participants = participants_of(split)
    if participants is None:
        return SplitStatus.PENDING

    paid_count = sum(1 for participant in participants if is_paid(participant))

    if paid_count == 0:
        return SplitStatus.PENDING
    if paid_count == len(participants):
        return SplitStatus.SETTLED
    return SplitStatus.PARTIAL


def update_participant_status(
    participant: Union[Participant, dict],
    status: Union[ParticipantStatus, str],
    payment_method: Optional[str] = None,
) -> Participant:
    """
    Apply one participant's payment-status change.

    Moving to PAID stamps paid_date and records the payment method (the
    existing method is kept when none is given). Any other status leaves
    paid_date and payment_method as they were; there is no "un-pay" reset.

    Returns a new Participant; the input is never modified. The caller is
    responsible for recomputing the split status and persisting both.

    Raises:
        ValueError: If status is not a known participant status
    """
    if not isinstance(participant, Participant):
        participant = Participant.model_validate(participant)

    new_status = ParticipantStatus(status)
    updates: dict[str, Any] = {"status": new_status}

    if new_status == ParticipantStatus.PAID:
        updates["paid_date"] = utcnow()
        if payment_method and payment_method.strip():
            updates["payment_method"] = payment_method.strip()

    return participant.model_copy(update=updates)
