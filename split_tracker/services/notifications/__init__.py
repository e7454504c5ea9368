"""Notification services package."""

from split_tracker.services.notifications.interface import (
    NotificationDispatcherInterface,
    NotificationError,
)
from split_tracker.services.notifications.emailjs_service import (
    EmailJSNotificationDispatcher,
    build_split_email_params,
)

__all__ = [
    "EmailJSNotificationDispatcher",
    "NotificationDispatcherInterface",
    "NotificationError",
    "build_split_email_params",
]
