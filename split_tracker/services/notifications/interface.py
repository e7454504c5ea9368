"""
Notification dispatcher contract.

The settlement core never talks to an email provider directly. It hands a
recipient, a template kind and the template parameters to a dispatcher
and gets back a NotificationResult.
"""

from abc import ABC, abstractmethod
from typing import Any

from split_tracker.models.split import NotificationKind, NotificationResult


class NotificationDispatcherInterface(ABC):
    """
    Abstract interface for notification dispatch.

    Implementations must not raise for delivery failures; they report
    them as NotificationResult(success=False, message=...).
    """

    @abstractmethod
    async def send(
        self,
        recipient_email: str,
        kind: NotificationKind,
        parameters: dict[str, Any],
    ) -> NotificationResult:
        """
        Send one notification.

        Args:
            recipient_email: Destination address
            kind: NEW_SPLIT or PAYMENT_REMINDER
            parameters: Template parameters (see build_split_email_params)
        """
        pass


class NotificationError(Exception):
    """Base exception for notification transport errors."""
    pass
