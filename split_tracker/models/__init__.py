"""
Data Models Package

This package contains all Pydantic models used in the Split Tracker core.
All data flowing through the system must conform to these schemas.
"""

from split_tracker.models.split import (
    Contact,
    EmailStatus,
    ExpenseEntry,
    ExpenseInput,
    NotificationKind,
    NotificationResult,
    Participant,
    ParticipantStatus,
    ReminderLog,
    SplitExpense,
    SplitMethod,
    SplitStatus,
    SplitSummary,
    UserContext,
    ValidationIssue,
    ValidationResult,
    ensure_string_id,
    normalize_email,
)
from split_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Split models
    "Contact",
    "EmailStatus",
    "ExpenseEntry",
    "ExpenseInput",
    "NotificationKind",
    "NotificationResult",
    "Participant",
    "ParticipantStatus",
    "ReminderLog",
    "SplitExpense",
    "SplitMethod",
    "SplitStatus",
    "SplitSummary",
    "UserContext",
    "ValidationIssue",
    "ValidationResult",
    "ensure_string_id",
    "normalize_email",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
