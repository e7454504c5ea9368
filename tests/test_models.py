"""
Tests for Split Tracker

Test strategy:
1. Unit tests for individual components (models, allocator, validator)
2. Integration tests for flows (in-memory store, fake dispatcher)
3. No real API calls in tests (use fakes)
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from split_tracker.models import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    Contact,
    ExpenseInput,
    Participant,
    ParticipantStatus,
    SplitExpense,
    SplitStatus,
    UserContext,
    ValidationIssue,
    ValidationResult,
    ensure_string_id,
    normalize_email,
)
from split_tracker.models.split import to_decimal


class TestHelpers:
    """Tests for id, email and number normalization."""

    def test_ensure_string_id(self):
        """Numeric ids become strings, blanks become None."""
        assert ensure_string_id(1700000000) == "1700000000"
        assert ensure_string_id("  abc ") == "abc"
        assert ensure_string_id("") is None
        assert ensure_string_id(None) is None

    def test_normalize_email(self):
        """Emails are trimmed and lower-cased."""
        assert normalize_email("  Bob@Example.COM ") == "bob@example.com"
        assert normalize_email("   ") is None
        assert normalize_email(None) is None

    def test_to_decimal_keeps_float_digits(self):
        """Floats go through str() so 33.33 stays 33.33."""
        assert to_decimal(33.33) == Decimal("33.33")
        assert to_decimal("12.50") == Decimal("12.50")
        assert to_decimal(" ") is None

    def test_to_decimal_rejects_garbage(self):
        """Non-numbers and non-finite values are rejected."""
        with pytest.raises(ValueError):
            to_decimal("twelve")
        with pytest.raises(ValueError):
            to_decimal("NaN")
        with pytest.raises(ValueError):
            to_decimal(True)


class TestParticipantModel:
    """Tests for the Participant model."""

    def test_participant_defaults(self):
        """A new participant is unpaid with a generated id and no shares."""
        participant = Participant(name="Bob")
        assert participant.id.startswith("p_")
        assert participant.status == ParticipantStatus.UNPAID
        assert participant.share_amount is None
        assert participant.share_percentage is None
        assert participant.is_paid is False

    def test_participant_strips_whitespace(self):
        """Test that whitespace is stripped from the name."""
        participant = Participant(name="  Bob  ")
        assert participant.name == "Bob"

    def test_participant_numeric_id_becomes_string(self):
        """Legacy numeric ids are normalized to strings."""
        participant = Participant(id=1700000000123, name="Bob")
        assert participant.id == "1700000000123"

    def test_participant_coerces_shares(self):
        """Numeric strings and floats become quantized Decimals."""
        participant = Participant(name="Bob", share_amount="33.333", share_percentage=33.33333)
        assert participant.share_amount == Decimal("33.33")
        assert participant.share_percentage == Decimal("33.3333")

    def test_participant_zero_share_is_kept(self):
        """An explicit zero is a share, not a missing value."""
        participant = Participant(name="Bob", share_amount=0)
        assert participant.share_amount == Decimal("0.00")

    def test_participant_blank_share_is_missing(self):
        """Blank strings mean "not supplied"."""
        participant = Participant(name="Bob", share_amount="", email="  ")
        assert participant.share_amount is None
        assert participant.email is None

    def test_participant_rejects_bad_percentage(self):
        """Percentages must be within 0-100."""
        with pytest.raises(ValueError):
            Participant(name="Bob", share_percentage=150)

    def test_participant_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValueError):
            Participant(name="Bob", share_amount="-1")


class TestSplitExpenseModel:
    """Tests for the SplitExpense model."""

    def _split(self, **overrides) -> SplitExpense:
        data = {
            "expense_id": "exp-1",
            "total_amount": "60",
            "participants": [Participant(id="a", name="Ann"), Participant(id="b", name="Ben")],
            "user_id": "user-1",
        }
        data.update(overrides)
        return SplitExpense(**data)

    def test_split_creation(self):
        """Test SplitExpense model creation."""
        split = self._split()
        assert split.total_amount == Decimal("60.00")
        assert split.status == SplitStatus.PENDING
        assert split.category == "Other"
        assert split.notes == ""

    def test_split_requires_positive_total(self):
        """A split of zero is rejected."""
        with pytest.raises(ValueError):
            self._split(total_amount=0)

    def test_split_requires_participants(self):
        """A split needs at least one participant."""
        with pytest.raises(ValueError):
            self._split(participants=[])

    def test_find_participant_normalizes_id(self):
        """Participant lookup works for numeric ids too."""
        split = self._split(participants=[Participant(id=7, name="Ann")])
        assert split.find_participant(7).name == "Ann"
        assert split.find_participant("missing") is None

    def test_document_round_trip_keeps_participant_ids(self):
        """to_document drops the split id; participant ids survive."""
        split = self._split(expense_date=date(2024, 12, 15))
        document = split.to_document()
        assert "id" not in document
        assert document["participants"][0]["id"] == "a"

        restored = SplitExpense.from_document({"id": "split-9", **document})
        assert restored.id == "split-9"
        assert restored.expense_date == date(2024, 12, 15)
        assert [p.id for p in restored.participants] == ["a", "b"]


class TestOtherModels:
    """Tests for contacts, expense input and identity."""

    def test_contact_normalized_email(self):
        """Contacts expose a normalized email for dedupe."""
        contact = Contact(name="Bob", email=" Bob@Example.com ", user_id="user-1")
        assert contact.normalized_email == "bob@example.com"

    def test_contact_blank_email_is_none(self):
        contact = Contact(name="Bob", email="", user_id="user-1")
        assert contact.email is None
        assert contact.normalized_email is None

    def test_expense_input_defaults(self):
        """Expense date defaults to today; amounts are quantized."""
        expense = ExpenseInput(amount="19.999")
        assert expense.amount == Decimal("20.00")
        assert expense.expense_date == date.today()
        assert expense.category == "Other"

    def test_user_context_is_frozen(self):
        """The authenticated user cannot be changed in place."""
        user = UserContext(user_id=42, email="a@b.c")
        assert user.user_id == "42"
        with pytest.raises(ValueError):
            user.user_id = "someone-else"


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.SPLIT_CREATED,
            description="Split created",
        )
        assert event.event_type == AuditEventType.SPLIT_CREATED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.PAYMENT_STATUS_UPDATED,
            description="Participant marked paid",
            details={"participant_id": "p_1", "split_status": "partial"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "payment_status_updated"
        assert log_dict["details"]["split_status"] == "partial"

    def test_audit_event_to_document(self):
        """Documents are JSON-compatible."""
        correlation_id = uuid4()
        event = AuditEvent(
            event_type=AuditEventType.SPLIT_DELETED,
            description="Split deleted",
            correlation_id=correlation_id,
            is_user_action=True,
        )
        document = event.to_document()
        assert document["event_type"] == "split_deleted"
        assert document["correlation_id"] == str(correlation_id)
        assert isinstance(document["timestamp"], str)

    def test_audit_event_builder_split_created(self):
        """Test AuditEventBuilder.split_created."""
        correlation_id = uuid4()

        event = AuditEventBuilder.split_created(
            split_id="split-1",
            expense_id="exp-1",
            total_amount="90.00",
            participant_count=3,
            user_id="user-1",
            correlation_id=correlation_id,
        )

        assert event.event_type == AuditEventType.SPLIT_CREATED
        assert event.entity_id == "split-1"
        assert event.correlation_id == correlation_id
        assert event.details["participant_count"] == 3
        assert event.is_user_action is True

    def test_audit_event_builder_notification_failed(self):
        """Failed notifications are warnings carrying the error."""
        event = AuditEventBuilder.notification_failed(
            split_id="split-1",
            participant_id="p_1",
            kind="new_split",
            error_message="rate limited",
        )

        assert event.event_type == AuditEventType.NOTIFICATION_FAILED
        assert event.severity == AuditSeverity.WARNING
        assert event.error_message == "rate limited"


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            structure_valid=False,
            semantic_valid=False,
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="total_amount",
                    issue_type="missing",
                    message="Total amount is required",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.error_count == 1

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            structure_valid=True,
            semantic_valid=True,
            is_valid=True,
            issues=[
                ValidationIssue(
                    field="participants",
                    issue_type="duplicate",
                    message="bob@example.com appears more than once",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
