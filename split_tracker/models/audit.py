"""
Audit Models for Split Tracker

Every significant action in the settlement core is logged for audit purposes.
This provides:
1. Complete traceability of who changed which payment status, and when
2. Debugging information when a notification or write goes wrong
3. Ability to reconstruct the history of a split

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from split_tracker.models.split import utcnow


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step of the split workflows has its own event type.
    """
    # Split lifecycle
    SPLIT_VALIDATION_FAILED = "split_validation_failed"
    BASE_EXPENSE_CREATED = "base_expense_created"
    SPLIT_CREATED = "split_created"
    SPLIT_CREATION_FAILED = "split_creation_failed"
    SPLIT_DELETED = "split_deleted"

    # Settlement
    PAYMENT_STATUS_UPDATED = "payment_status_updated"

    # Contacts
    CONTACT_ADDED = "contact_added"
    CONTACT_DUPLICATE_SKIPPED = "contact_duplicate_skipped"
    CONTACT_DELETED = "contact_deleted"

    # Notifications
    NOTIFICATION_SENT = "notification_sent"
    NOTIFICATION_FAILED = "notification_failed"
    REMINDER_SENT = "reminder_sent"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'split_expense', 'contact', 'participant')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Who did it
    user_id: Optional[str] = Field(
        default=None,
        description="User whose action triggered the event"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events of one split creation)"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    # Additional data (event-specific)
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    # User action tracking
    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "user_id": self.user_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_document(self) -> dict:
        """Convert to a document for the audit collection."""
        return self.model_dump(mode="json")


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.split_created(split_id, expense_id, ...)
        event = AuditEventBuilder.payment_status_updated(split_id, participant_id, ...)
    """

    @staticmethod
    def split_validation_failed(
        issues: list[dict],
        user_id: Optional[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SPLIT_VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="split_expense",
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Split validation failed with {len(issues)} issues",
            details={
                "issues": issues,
            },
            is_user_action=True,
        )

    @staticmethod
    def base_expense_created(
        expense_id: str,
        amount: str,
        user_share: str,
        user_id: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BASE_EXPENSE_CREATED,
            entity_type="expense",
            entity_id=expense_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Base expense created for split: {amount}",
            details={
                "amount": amount,
                "user_share": user_share,
            },
        )

    @staticmethod
    def split_created(
        split_id: str,
        expense_id: str,
        total_amount: str,
        participant_count: int,
        user_id: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SPLIT_CREATED,
            entity_type="split_expense",
            entity_id=split_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Split created: {total_amount} among {participant_count} participants",
            details={
                "expense_id": expense_id,
                "total_amount": total_amount,
                "participant_count": participant_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def split_creation_failed(
        stage: str,
        error_message: str,
        user_id: Optional[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SPLIT_CREATION_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="split_expense",
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Split creation failed at stage: {stage}",
            error_message=error_message,
            details={
                "stage": stage,
            },
        )

    @staticmethod
    def split_deleted(
        split_id: str,
        user_id: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SPLIT_DELETED,
            entity_type="split_expense",
            entity_id=split_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description="Split expense deleted",
            is_user_action=True,
        )

    @staticmethod
    def payment_status_updated(
        split_id: str,
        participant_id: str,
        new_status: str,
        split_status: str,
        user_id: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_STATUS_UPDATED,
            entity_type="split_expense",
            entity_id=split_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Participant marked {new_status}; split is now {split_status}",
            details={
                "participant_id": participant_id,
                "participant_status": new_status,
                "split_status": split_status,
            },
            is_user_action=True,
        )

    @staticmethod
    def contact_added(
        contact_id: str,
        name: str,
        user_id: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONTACT_ADDED,
            entity_type="contact",
            entity_id=contact_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Contact added: {name}",
            details={
                "name": name,
            },
        )

    @staticmethod
    def contact_duplicate_skipped(
        email: str,
        user_id: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONTACT_DUPLICATE_SKIPPED,
            severity=AuditSeverity.DEBUG,
            entity_type="contact",
            user_id=user_id,
            correlation_id=correlation_id,
            description="Contact not added: email already known",
            details={
                "email": email,
            },
        )

    @staticmethod
    def contact_deleted(
        contact_id: str,
        user_id: str
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONTACT_DELETED,
            entity_type="contact",
            entity_id=contact_id,
            user_id=user_id,
            description="Contact deleted",
            is_user_action=True,
        )

    @staticmethod
    def notification_sent(
        split_id: str,
        participant_id: str,
        kind: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NOTIFICATION_SENT,
            entity_type="participant",
            entity_id=participant_id,
            correlation_id=correlation_id,
            description=f"Notification sent: {kind}",
            details={
                "split_id": split_id,
                "kind": kind,
            },
        )

    @staticmethod
    def notification_failed(
        split_id: str,
        participant_id: str,
        kind: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NOTIFICATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="participant",
            entity_id=participant_id,
            correlation_id=correlation_id,
            description=f"Notification failed: {kind}",
            error_message=error_message,
            details={
                "split_id": split_id,
                "kind": kind,
            },
        )

    @staticmethod
    def reminder_sent(
        split_id: str,
        participant_id: str,
        share_amount: str,
        user_id: str
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMINDER_SENT,
            entity_type="split_expense",
            entity_id=split_id,
            user_id=user_id,
            description="Payment reminder sent",
            details={
                "participant_id": participant_id,
                "share_amount": share_amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
