"""Settlement package: split records and the payment-status state machine."""

from split_tracker.settlement.records import (
    create_participant,
    create_split_expense,
    fill_participant_shares,
    get_split_summary,
)
from split_tracker.settlement.state_machine import (
    calculate_split_status,
    update_participant_status,
)

__all__ = [
    "calculate_split_status",
    "create_participant",
    "create_split_expense",
    "fill_participant_shares",
    "get_split_summary",
    "update_participant_status",
]
