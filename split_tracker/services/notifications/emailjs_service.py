"""
Notification Service using EmailJS

DESIGN DECISION: We use the EmailJS REST endpoint because:
1. The split email template already lives in EmailJS
2. One HTTP POST per message, no SMTP setup
3. The same template serves new-split notices and payment reminders,
   switched by the is_reminder parameter

This service handles:
1. Building template parameters from a split and a participant
2. Posting them to EmailJS
3. Turning every failure into NotificationResult(success=False)

CRITICAL: send() never raises. A failed email must not undo a split that
has already been saved.
"""

import asyncio
from datetime import date
from typing import Any, Optional

import requests
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from split_tracker.config import EmailJSSettings, get_settings
from split_tracker.models.split import (
    NotificationKind,
    NotificationResult,
    Participant,
    SplitExpense,
    UserContext,
)
from split_tracker.services.notifications.interface import (
    NotificationDispatcherInterface,
    NotificationError,
)


def _format_amount(value: Any) -> str:
    try:
        return f"{float(value or 0):.2f}"
    except (TypeError, ValueError):
        return "0.00"


def build_split_email_params(
    participant: Participant,
    split: SplitExpense,
    creator: Optional[UserContext],
    is_reminder: bool = False,
    currency_symbol: str = "$",
) -> dict[str, Any]:
    """
    Build EmailJS template parameters for a split notification.

    Reminders additionally carry a ready-made reminder_message and subject.
    """
    description = split.description or "Split expense"
    share_amount = _format_amount(participant.share_amount)
    creator_name = (creator.name if creator else None) or "Someone"
    creator_email = (creator.email if creator else None) or ""
    expense_date = (split.expense_date or date.today()).isoformat()

    params = {
        "to_email": participant.email,
        "to_name": participant.name or "Participant",
        "creator_name": creator_name,
        "from_name": creator_name,
        "from_email": creator_email,
        "reply_to": creator_email,
        "expense_description": description,
        "expense_category": split.category or "Other",
        "expense_date": expense_date,
        "expense_amount": _format_amount(split.total_amount),
        "share_amount": share_amount,
        "is_reminder": is_reminder,
    }

    if is_reminder:
        params["reminder_message"] = (
            f"This is a friendly reminder that your payment of "
            f"{currency_symbol}{share_amount} for \"{description}\" is still pending."
        )
        params["subject"] = f"Payment Reminder: {description}"

    return params


class EmailJSNotificationDispatcher(NotificationDispatcherInterface):
    """
    Notification dispatcher posting to the EmailJS REST API.

    IMPORTANT BOUNDARIES:
    1. This service ONLY sends - it does not decide who gets notified
    2. Transport errors are retried, provider rejections are not
    3. Failures are reported, never raised
    """

    def __init__(self, settings: Optional[EmailJSSettings] = None):
        self._settings = settings or get_settings().emailjs
        self._logger = structlog.get_logger(__name__)

    def _template_for(self, kind: NotificationKind) -> str:
        # Both kinds share one template; is_reminder switches the wording
        return self._settings.split_template_id

    def _build_payload(
        self,
        kind: NotificationKind,
        parameters: dict[str, Any],
    ) -> dict[str, Any]:
        payload = {
            "service_id": self._settings.service_id,
            "template_id": self._template_for(kind),
            "user_id": self._settings.public_key,
            "template_params": parameters,
        }
        if self._settings.private_key:
            payload["accessToken"] = self._settings.private_key
        return payload

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
        reraise=True,
    )
    def _post(self, payload: dict[str, Any]) -> None:
        """POST one message; raises NotificationError when EmailJS rejects it."""
        response = requests.post(
            self._settings.api_url,
            json=payload,
            timeout=self._settings.timeout_seconds,
        )
        if response.status_code >= 400:
            raise NotificationError(
                f"EmailJS returned {response.status_code}: {response.text}"
            )

    async def send(
        self,
        recipient_email: str,
        kind: NotificationKind,
        parameters: dict[str, Any],
    ) -> NotificationResult:
        if not recipient_email:
            return NotificationResult(success=False, message="Recipient email is missing")

        template_params = {**parameters, "to_email": recipient_email}
        payload = self._build_payload(kind, template_params)

        try:
            await asyncio.to_thread(self._post, payload)
        except NotificationError as e:
            self._logger.warning(
                "notification_rejected", kind=kind.value, error=str(e)
            )
            return NotificationResult(success=False, message=f"Failed to send email: {e}")
        except requests.RequestException as e:
            self._logger.error(
                "notification_transport_failed", kind=kind.value, error=str(e)
            )
            return NotificationResult(success=False, message=f"Failed to send email: {e}")

        self._logger.info("notification_sent", kind=kind.value)
        return NotificationResult(success=True, message="Email sent successfully")
