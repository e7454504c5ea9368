"""Tests for split records and the settlement state machine."""

import pytest
from decimal import Decimal

from split_tracker.models import (
    ExpenseInput,
    Participant,
    ParticipantStatus,
    SplitStatus,
    SplitSummary,
)
from split_tracker.settlement import (
    calculate_split_status,
    create_participant,
    create_split_expense,
    fill_participant_shares,
    get_split_summary,
    update_participant_status,
)


@pytest.fixture
def expense() -> ExpenseInput:
    return ExpenseInput(
        id="exp-1",
        amount="100",
        category="Food",
        description="Groceries",
        user_id="user-1",
    )


def unpaid_trio() -> list[Participant]:
    return [Participant(id=name.lower(), name=name) for name in ("Ann", "Ben", "Cid")]


class TestCreateSplitExpense:
    """Tests for building split records."""

    def test_equal_split_when_no_shares_given(self, expense):
        """Nobody carries a share: equal split, exact to the cent."""
        split = create_split_expense(expense, unpaid_trio())

        assert split.expense_id == "exp-1"
        assert split.user_id == "user-1"
        assert split.status == SplitStatus.PENDING
        assert [p.share_percentage for p in split.participants] == [Decimal("33.3333")] * 3
        assert sum(p.share_amount for p in split.participants) == Decimal("100.00")

    def test_missing_amount_derived_from_percentage(self, expense):
        participants = [
            Participant(name="Ann", share_percentage=25),
            Participant(name="Ben", share_percentage=75),
        ]
        split = create_split_expense(expense, participants)
        assert [p.share_amount for p in split.participants] == [Decimal("25.00"), Decimal("75.00")]

    def test_missing_percentage_back_computed_from_amount(self, expense):
        participants = [
            Participant(name="Ann", share_amount=40),
            Participant(name="Ben", share_amount=60),
        ]
        split = create_split_expense(expense, participants)
        assert [p.share_percentage for p in split.participants] == [
            Decimal("40.0000"), Decimal("60.0000"),
        ]

    def test_present_values_never_overwritten(self, expense):
        """Inconsistent explicit values are kept as given."""
        participants = [Participant(name="Ann", share_percentage=10, share_amount=90)]
        split = create_split_expense(expense, participants)
        assert split.participants[0].share_percentage == Decimal("10.0000")
        assert split.participants[0].share_amount == Decimal("90.00")

    def test_accepts_plain_mappings(self):
        split = create_split_expense(
            {"id": 5, "amount": 30, "user_id": "u"},
            [{"name": "Ann"}, {"name": "Ben", "share_percentage": ""}],
        )
        assert split.expense_id == "5"
        assert [p.share_amount for p in split.participants] == [Decimal("15.00"), Decimal("15.00")]

    def test_each_split_gets_a_fresh_id(self, expense):
        first = create_split_expense(expense, unpaid_trio())
        second = create_split_expense(expense, unpaid_trio())
        assert first.id != second.id

    def test_fill_participant_shares_empty(self):
        assert fill_participant_shares(Decimal("10"), []) == []

    def test_create_participant(self):
        participant = create_participant(" Dee ", email="dee@example.com", share_amount="5")
        assert participant.name == "Dee"
        assert participant.status == ParticipantStatus.UNPAID
        assert participant.share_amount == Decimal("5.00")
        assert participant.id.startswith("p_")


class TestCalculateSplitStatus:
    """Tests for the aggregate status derivation."""

    def test_all_unpaid_is_pending(self):
        assert calculate_split_status(unpaid_trio()) == SplitStatus.PENDING

    def test_partial_then_settled(self):
        """One paid is partial; all three paid is settled."""
        participants = unpaid_trio()
        participants[0] = update_participant_status(participants[0], "paid")
        assert calculate_split_status(participants) == SplitStatus.PARTIAL

        participants = [update_participant_status(p, ParticipantStatus.PAID) for p in participants]
        assert calculate_split_status(participants) == SplitStatus.SETTLED

    def test_settled_regresses_to_partial(self):
        """Status is never cached: un-marking a payment lowers it again."""
        participants = [
            update_participant_status(p, "paid") for p in unpaid_trio()
        ]
        assert calculate_split_status(participants) == SplitStatus.SETTLED

        participants[1] = update_participant_status(participants[1], "unpaid")
        assert calculate_split_status(participants) == SplitStatus.PARTIAL

    def test_declined_counts_as_not_paid(self):
        participants = [
            update_participant_status(p, "paid") for p in unpaid_trio()
        ]
        participants[2] = update_participant_status(participants[2], "declined")
        assert calculate_split_status(participants) == SplitStatus.PARTIAL

    def test_accepts_mappings_and_raw_strings(self):
        split = {"participants": [{"status": "paid"}, {"status": "paid"}]}
        assert calculate_split_status(split) == SplitStatus.SETTLED

    @pytest.mark.parametrize("malformed", [None, {}, {"participants": None}, {"participants": "x"}, 42])
    def test_malformed_input_is_pending(self, malformed):
        assert calculate_split_status(malformed) == SplitStatus.PENDING


class TestUpdateParticipantStatus:
    """Tests for single participant transitions."""

    def test_marking_paid_stamps_date_and_method(self):
        participant = Participant(name="Ann")
        updated = update_participant_status(participant, "paid", payment_method="  Cash ")

        assert updated.status == ParticipantStatus.PAID
        assert updated.paid_date is not None
        assert updated.payment_method == "Cash"

    def test_input_is_never_mutated(self):
        participant = Participant(name="Ann")
        update_participant_status(participant, "paid")
        assert participant.status == ParticipantStatus.UNPAID
        assert participant.paid_date is None

    def test_existing_method_kept_without_new_one(self):
        participant = Participant(name="Ann", payment_method="Card")
        updated = update_participant_status(participant, "paid")
        assert updated.payment_method == "Card"

    def test_unpaying_keeps_paid_date(self):
        """There is no un-pay reset of paid_date or payment_method."""
        paid = update_participant_status(Participant(name="Ann"), "paid", "Cash")
        reverted = update_participant_status(paid, "unpaid")
        assert reverted.status == ParticipantStatus.UNPAID
        assert reverted.paid_date == paid.paid_date
        assert reverted.payment_method == "Cash"

    def test_unknown_status_is_rejected(self):
        with pytest.raises(ValueError):
            update_participant_status(Participant(name="Ann"), "maybe")


class TestSplitSummary:
    """Tests for the paid/pending summary."""

    def test_summary_of_partially_paid_split(self, expense):
        split = create_split_expense(expense, unpaid_trio())
        split.participants[0] = update_participant_status(split.participants[0], "paid")

        summary = get_split_summary(split)
        assert summary.total_amount == Decimal("100.00")
        assert summary.paid_amount == Decimal("33.34")
        assert summary.pending_amount == Decimal("66.66")
        assert summary.paid_count == 1
        assert summary.participant_count == 3
        assert summary.status == SplitStatus.PARTIAL

    def test_summary_without_participants_degrades(self):
        """A missing participant list yields a zeroed pending summary."""
        summary = get_split_summary({"participants": None})
        assert summary == SplitSummary()
        assert summary.participant_count == 0
        assert summary.status == SplitStatus.PENDING
        assert summary.paid_amount == Decimal("0")
        assert summary.pending_amount == Decimal("0")

    def test_summary_of_none(self):
        assert get_split_summary(None).participant_count == 0

    def test_summary_tolerates_bad_amounts(self):
        summary = get_split_summary({
            "total_amount": "50",
            "participants": [
                {"status": "paid", "share_amount": "oops"},
                {"status": "unpaid", "share_amount": 25},
            ],
        })
        assert summary.paid_amount == Decimal("0")
        assert summary.pending_amount == Decimal("25")
        assert summary.total_amount == Decimal("50")

    def test_summary_of_bare_list(self):
        summary = get_split_summary([{"status": "paid", "share_amount": 10}])
        assert summary.total_amount == Decimal("10")
        assert summary.status == SplitStatus.SETTLED
