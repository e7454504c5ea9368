"""
Audit Logger

DESIGN DECISION: Every significant action on a split is logged.
This provides:
1. Complete traceability of payment-status changes
2. Debugging capability when a write or an email goes wrong
3. User can see the history of a split

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from split_tracker.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from split_tracker.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The audit collection of the document store (for persistence)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        # Always log locally
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        # Persist to storage if available
        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_split_validation_failed(
        self,
        issues: list[dict],
        user_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        """Log a split rejected before any write."""
        await self.log(AuditEventBuilder.split_validation_failed(
            issues=issues,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_base_expense_created(
        self,
        expense_id: str,
        amount: str,
        user_share: str,
        user_id: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.base_expense_created(
            expense_id=expense_id,
            amount=amount,
            user_share=user_share,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_split_created(
        self,
        split_id: str,
        expense_id: str,
        total_amount: str,
        participant_count: int,
        user_id: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.split_created(
            split_id=split_id,
            expense_id=expense_id,
            total_amount=total_amount,
            participant_count=participant_count,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_split_creation_failed(
        self,
        stage: str,
        error_message: str,
        user_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.split_creation_failed(
            stage=stage,
            error_message=error_message,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_split_deleted(self, split_id: str, user_id: str) -> None:
        await self.log(AuditEventBuilder.split_deleted(split_id=split_id, user_id=user_id))

    async def log_payment_status_updated(
        self,
        split_id: str,
        participant_id: str,
        new_status: str,
        split_status: str,
        user_id: str,
    ) -> None:
        """Log a participant payment-status change and the resulting split status."""
        await self.log(AuditEventBuilder.payment_status_updated(
            split_id=split_id,
            participant_id=participant_id,
            new_status=new_status,
            split_status=split_status,
            user_id=user_id,
        ))

    async def log_contact_added(
        self,
        contact_id: str,
        name: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.contact_added(
            contact_id=contact_id,
            name=name,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_contact_duplicate_skipped(
        self,
        email: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.contact_duplicate_skipped(
            email=email,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_contact_deleted(self, contact_id: str, user_id: str) -> None:
        await self.log(AuditEventBuilder.contact_deleted(contact_id=contact_id, user_id=user_id))

    async def log_notification_sent(
        self,
        split_id: str,
        participant_id: str,
        kind: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.notification_sent(
            split_id=split_id,
            participant_id=participant_id,
            kind=kind,
            correlation_id=correlation_id,
        ))

    async def log_notification_failed(
        self,
        split_id: str,
        participant_id: str,
        kind: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.notification_failed(
            split_id=split_id,
            participant_id=participant_id,
            kind=kind,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_reminder_sent(
        self,
        split_id: str,
        participant_id: str,
        share_amount: str,
        user_id: str,
    ) -> None:
        await self.log(AuditEventBuilder.reminder_sent(
            split_id=split_id,
            participant_id=participant_id,
            share_amount=share_amount,
            user_id=user_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., creating a split).
    Pass it through all subsequent operations.
    """
    return uuid4()
