"""
Main Orchestrator for Split Tracker

This module ties together all the components and defines the
end-to-end flows for:
1. Split creation (validate → ledger entry → split record → contacts → emails)
2. Settlement (payment-status change → recompute status → single write)
3. Reminders, deletion and contact CRUD

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing persists before validation passes
- Aggregate status is always recomputed, never taken from the caller
- Later steps never unwind earlier committed ones (a failed email does
  not delete a saved split)
- Every step is audited

Failures of collaborators are caught, logged and turned into False/None
returns. Callers never see an exception from this layer.
"""

import asyncio
from collections.abc import Mapping
from typing import Any, Callable, Iterable, Optional, Union
from uuid import UUID

import structlog
from pydantic import ValidationError

from split_tracker.allocation import ShareAllocator
from split_tracker.audit import AuditLogger, create_correlation_id
from split_tracker.config import SplitSettings, get_settings
from split_tracker.contacts import ContactDirectory
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
    SplitSummary,
    UserContext,
    ensure_string_id,
    normalize_email,
    utcnow,
)
from split_tracker.queries import SplitExpenseQuery, filter_split_expenses
from split_tracker.services.ledger import DocumentStoreExpenseLedger, ExpenseLedgerInterface
from split_tracker.services.notifications import (
    EmailJSNotificationDispatcher,
    NotificationDispatcherInterface,
    build_split_email_params,
)
from split_tracker.services.storage import (
    DocumentStoreAuditStorage,
    DocumentStoreInterface,
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
    InMemoryDocumentStore,
    NotFoundError,
    Subscription,
)
from split_tracker.settlement import (
    calculate_split_status,
    create_split_expense,
    fill_participant_shares,
    get_split_summary,
    update_participant_status,
)
from split_tracker.validation import SplitValidator


SPLIT_EXPENSES_COLLECTION = "splitExpenses"
REMINDER_LOGS_COLLECTION = "reminderLogs"

# Timer key for clearing the whole email status map
ALL_STATUSES = "all"

EmailStatusCallback = Callable[[dict[str, EmailStatus]], None]


class SplitExpenseStore:
    """
    Orchestrates every split workflow for one authenticated user.

    The store is the only component that talks to the document store,
    the expense ledger and the notification dispatcher. Reads are served
    from a cache fed by a live subscription, so a write made here may take
    a moment to show up in get_split_expense().

    Usage:
        store = SplitExpenseStore(document_store, user=user)
        store.start()
        split = await store.create_new_split_expense(expense, participants)
        await store.update_payment_status(split.id, participant_id, "paid")
        await store.close()
    """

    def __init__(
        self,
        document_store: DocumentStoreInterface,
        user: Optional[UserContext] = None,
        ledger: Optional[ExpenseLedgerInterface] = None,
        dispatcher: Optional[NotificationDispatcherInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[SplitSettings] = None,
        contacts: Optional[ContactDirectory] = None,
        validator: Optional[SplitValidator] = None,
        allocator: Optional[ShareAllocator] = None,
    ):
        self._store = document_store
        self._user = user
        self._ledger = ledger or DocumentStoreExpenseLedger(document_store)
        self._dispatcher = dispatcher
        self._audit = audit_logger or AuditLogger()
        self._settings = settings or get_settings().split
        self._allocator = allocator or ShareAllocator(self._settings.share_tolerance)
        self._validator = validator or SplitValidator(self._settings, self._allocator)
        self._contacts = contacts or ContactDirectory(document_store, user, self._audit)

        self._split_expenses: list[SplitExpense] = []
        self._subscription: Optional[Subscription] = None
        self._loading = user is not None

        self._email_status: dict[str, EmailStatus] = {}
        self._email_status_listeners: list[EmailStatusCallback] = []
        self._clear_timers: dict[str, asyncio.TimerHandle] = {}
        self._notification_tasks: set[asyncio.Task] = set()

        self._logger = structlog.get_logger(__name__)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @property
    def user(self) -> Optional[UserContext]:
        return self._user

    @property
    def contacts(self) -> ContactDirectory:
        return self._contacts

    @property
    def loading(self) -> bool:
        """True until both the splits and the contacts snapshots have arrived."""
        return self._loading or self._contacts.loading

    def start(self) -> None:
        """Open the live subscriptions for the current user."""
        if self._user is None:
            self._logger.info("store_start_skipped", reason="no authenticated user")
            return

        if self._subscription is None:
            self._loading = True
            self._subscription = self._store.subscribe(
                SPLIT_EXPENSES_COLLECTION,
                self._user.user_id,
                self._on_split_snapshot,
                self._on_subscription_error,
            )
        self._contacts.start()

    def set_user(self, user: Optional[UserContext]) -> None:
        """Switch to another user (or sign out with None)."""
        self._unsubscribe()
        self._user = user
        self._split_expenses = []
        self._loading = user is not None
        self._contacts.set_user(user)
        self.start()

    def _unsubscribe(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    async def close(self) -> None:
        """Unsubscribe, cancel status timers and pending notification work."""
        self._unsubscribe()
        self._contacts.stop()

        for handle in self._clear_timers.values():
            handle.cancel()
        self._clear_timers.clear()

        tasks = list(self._notification_tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._notification_tasks.clear()

    async def wait_for_notifications(self) -> None:
        """Wait until every queued notification has been dispatched."""
        while self._notification_tasks:
            await asyncio.gather(*list(self._notification_tasks), return_exceptions=True)

    def _on_split_snapshot(self, documents: list[dict]) -> None:
        splits = []
        for document in documents:
            try:
                splits.append(SplitExpense.from_document(document))
            except ValidationError as e:
                self._logger.warning(
                    "split_document_skipped",
                    split_id=document.get("id"),
                    error=str(e),
                )
        self._split_expenses = splits
        self._loading = False

    def _on_subscription_error(self, error: Exception) -> None:
        self._logger.error("split_subscription_failed", error=str(error))
        self._loading = False

    # =========================================================================
    # READS
    # =========================================================================

    def get_all_split_expenses(self) -> list[SplitExpense]:
        return list(self._split_expenses)

    def list_split_expenses(
        self,
        query: Optional[SplitExpenseQuery] = None,
    ) -> list[SplitExpense]:
        """Filtered, searched, newest-first view of the cached splits."""
        return filter_split_expenses(self._split_expenses, query)

    def get_split_expense(self, split_expense_id: Any) -> Optional[SplitExpense]:
        """Look a split up in the cache; None when absent."""
        wanted = ensure_string_id(split_expense_id)
        if wanted is None:
            return None
        for split in self._split_expenses:
            if split.id == wanted:
                return split
        return None

    def get_split_summary(self, split_expense_id: Any) -> Optional[SplitSummary]:
        split = self.get_split_expense(split_expense_id)
        return get_split_summary(split) if split else None

    def get_all_contacts(self) -> list[Contact]:
        return self._contacts.get_all_contacts()

    # =========================================================================
    # EMAIL STATUS MAP
    # =========================================================================

    @property
    def email_status(self) -> dict[str, EmailStatus]:
        """Snapshot of per-participant notification display state."""
        return dict(self._email_status)

    def subscribe_email_status(self, callback: EmailStatusCallback) -> Subscription:
        """
        Observe the email status map.

        The callback receives a snapshot copy after every change.
        """
        self._email_status_listeners.append(callback)

        def _remove() -> None:
            if callback in self._email_status_listeners:
                self._email_status_listeners.remove(callback)

        return Subscription(_remove)

    def _publish_email_status(self) -> None:
        snapshot = self.email_status
        for listener in list(self._email_status_listeners):
            try:
                listener(dict(snapshot))
            except Exception as e:
                self._logger.error("email_status_listener_failed", error=str(e))

    def _set_email_status(self, participant_id: str, status: EmailStatus) -> None:
        self._email_status = {**self._email_status, participant_id: status}
        self._publish_email_status()

    def _status_from_result(self, result: NotificationResult) -> EmailStatus:
        if result.success:
            return EmailStatus(sending=False, sent=True)
        return EmailStatus(sending=False, sent=False, error=result.message or "Failed to send email")

    def _clear_email_status(self, key: str) -> None:
        self._clear_timers.pop(key, None)
        if key == ALL_STATUSES:
            self._email_status = {}
        elif key in self._email_status:
            self._email_status = {
                pid: status for pid, status in self._email_status.items() if pid != key
            }
        else:
            return
        self._publish_email_status()

    def _schedule_clear(self, key: str) -> None:
        """Clear a status entry (or the whole map) after the display window."""
        existing = self._clear_timers.pop(key, None)
        if existing is not None:
            existing.cancel()
        loop = asyncio.get_running_loop()
        self._clear_timers[key] = loop.call_later(
            self._settings.email_status_clear_seconds,
            self._clear_email_status,
            key,
        )

    # =========================================================================
    # NOTIFICATIONS
    # =========================================================================

    async def _dispatch(
        self,
        participant: Participant,
        split: SplitExpense,
        kind: NotificationKind,
        correlation_id: Optional[UUID] = None,
    ) -> NotificationResult:
        """Send one notification and audit its outcome."""
        params = build_split_email_params(
            participant,
            split,
            self._user,
            is_reminder=kind == NotificationKind.PAYMENT_REMINDER,
            currency_symbol=self._settings.currency_symbol,
        )

        try:
            result = await self._dispatcher.send(participant.email, kind, params)
        except Exception as e:
            self._logger.error(
                "notification_dispatch_failed",
                split_id=split.id,
                participant_id=participant.id,
                error=str(e),
            )
            await self._audit.log_error(
                error_type="notification_dispatch_failed",
                error_message=str(e),
                details={"split_id": split.id, "participant_id": participant.id},
                correlation_id=correlation_id,
            )
            result = NotificationResult(success=False, message=str(e))

        if result.success:
            await self._audit.log_notification_sent(
                split_id=split.id,
                participant_id=participant.id,
                kind=kind.value,
                correlation_id=correlation_id,
            )
        else:
            await self._audit.log_notification_failed(
                split_id=split.id,
                participant_id=participant.id,
                kind=kind.value,
                error_message=result.message or "unknown error",
                correlation_id=correlation_id,
            )
        return result

    async def _run_notification_queue(
        self,
        split: SplitExpense,
        recipients: list[Participant],
        correlation_id: UUID,
    ) -> None:
        """Send new-split notices one at a time, pausing between sends."""
        for index, participant in enumerate(recipients):
            self._set_email_status(participant.id, EmailStatus(sending=True))
            result = await self._dispatch(
                participant, split, NotificationKind.NEW_SPLIT, correlation_id
            )
            self._set_email_status(participant.id, self._status_from_result(result))

            if index < len(recipients) - 1:
                delay = (
                    self._settings.notification_delay_seconds
                    if result.success
                    else self._settings.notification_error_delay_seconds
                )
                await asyncio.sleep(delay)

        self._schedule_clear(ALL_STATUSES)

    def _enqueue_notifications(
        self,
        split: SplitExpense,
        recipients: list[Participant],
        correlation_id: UUID,
    ) -> None:
        task = asyncio.create_task(
            self._run_notification_queue(split, recipients, correlation_id)
        )
        self._notification_tasks.add(task)
        task.add_done_callback(self._notification_tasks.discard)

    # =========================================================================
    # SPLIT CREATION
    # =========================================================================

    def _normalize_participants(
        self,
        participants: Iterable[Union[Participant, Mapping]],
    ) -> list[Participant]:
        """
        Coerce caller input into Participant models.

        Ids become strings (generated when absent), numeric strings and
        floats become Decimal, blank shares mean "not supplied" and the
        status defaults to unpaid.

        Raises:
            ValidationError: If a participant is malformed
        """
        normalized = []
        for participant in participants:
            data = (
                participant.model_dump()
                if isinstance(participant, Participant)
                else dict(participant)
            )
            if not data.get("status"):
                data["status"] = ParticipantStatus.UNPAID
            normalized.append(Participant.model_validate(data))
        return normalized

    def _find_creator(self, participants: list[Participant]) -> Optional[Participant]:
        """The participant that is the current user: email first, then name."""
        user_email = normalize_email(self._user.email)
        for participant in participants:
            if user_email and normalize_email(participant.email) == user_email:
                return participant
        if self._user.name:
            for participant in participants:
                if participant.name == self._user.name:
                    return participant
        return None

    async def _add_new_contacts(
        self,
        participants: list[Participant],
        correlation_id: UUID,
    ) -> None:
        """Best effort: a failed contact write never fails the split."""
        for participant in participants:
            if not participant.email or self._contacts.has_email(participant.email):
                continue
            try:
                await self._contacts.add_contact(
                    participant.name, participant.email, correlation_id=correlation_id
                )
            except Exception as e:
                self._logger.warning(
                    "contact_autoadd_failed",
                    participant_id=participant.id,
                    error=str(e),
                )
                await self._audit.log_error(
                    error_type="contact_autoadd_failed",
                    error_message=str(e),
                    details={"participant_id": participant.id},
                    correlation_id=correlation_id,
                )

    async def create_new_split_expense(
        self,
        expense_data: Union[ExpenseInput, Mapping],
        participants: Iterable[Union[Participant, Mapping]],
    ) -> Optional[SplitExpense]:
        """
        Create a split and everything that hangs off it.

        Steps:
        1. Normalize participants, fill missing shares, validate
        2. Identify the creator's participant (their share is user_share)
        3. Create the base ledger entry - abort on failure
        4. Build the split record referencing the ledger entry
        5. Persist the split record
        6. Add unknown participant emails as contacts (best effort)
        7. Queue new-split emails to everybody but the creator
        8. Return the saved split

        Returns:
            The saved SplitExpense (with its store-assigned id), or None
        """
        if self._user is None:
            self._logger.warning("split_create_skipped", reason="no authenticated user")
            return None

        user_id = self._user.user_id
        correlation_id = create_correlation_id()

        # Step 1
        try:
            expense = (
                expense_data
                if isinstance(expense_data, ExpenseInput)
                else ExpenseInput.model_validate(dict(expense_data))
            )
            prepared = self._normalize_participants(participants)
            filled = fill_participant_shares(expense.amount, prepared, self._allocator)
        except (ValidationError, ValueError, TypeError) as e:
            self._logger.warning("split_input_rejected", error=str(e))
            await self._audit.log_split_validation_failed(
                issues=[{"field": "input", "message": str(e)}],
                user_id=user_id,
                correlation_id=correlation_id,
            )
            return None

        validation = self._validator.validate(expense.amount, filled)
        if not validation.is_valid:
            self._logger.warning(
                "split_validation_failed",
                summary=self._validator.get_user_friendly_summary(validation),
            )
            await self._audit.log_split_validation_failed(
                issues=[issue.model_dump() for issue in validation.issues],
                user_id=user_id,
                correlation_id=correlation_id,
            )
            return None

        # Step 2
        creator = self._find_creator(filled)
        user_share = (creator or filled[0]).share_amount

        # Step 3
        entry = ExpenseEntry(
            user_id=user_id,
            category=expense.category,
            amount=expense.amount,
            expense_date=expense.expense_date,
            description=expense.description,
            notes=expense.notes or f"Split with {len(filled)} people",
            receipt_image_url=expense.receipt_image_url,
            is_split=True,
            user_share=user_share,
            participant_count=len(filled),
        )
        try:
            expense_id = ensure_string_id(await self._ledger.create_entry(entry))
            if expense_id is None:
                raise ValueError("ledger returned no id")
        except Exception as e:
            self._logger.error("base_expense_failed", error=str(e))
            await self._audit.log_split_creation_failed(
                stage="base_expense",
                error_message=str(e),
                user_id=user_id,
                correlation_id=correlation_id,
            )
            return None

        await self._audit.log_base_expense_created(
            expense_id=expense_id,
            amount=str(expense.amount),
            user_share=str(user_share),
            user_id=user_id,
            correlation_id=correlation_id,
        )

        # Step 4
        split = create_split_expense(
            expense.model_copy(update={"id": expense_id, "user_id": user_id}),
            filled,
            self._allocator,
        )

        # Step 5
        try:
            split_id = ensure_string_id(
                await self._store.create(SPLIT_EXPENSES_COLLECTION, split.to_document())
            )
            if split_id is None:
                raise ValueError("document store returned no id")
        except Exception as e:
            self._logger.error("split_record_failed", expense_id=expense_id, error=str(e))
            await self._audit.log_split_creation_failed(
                stage="split_record",
                error_message=str(e),
                user_id=user_id,
                correlation_id=correlation_id,
            )
            return None

        saved = split.model_copy(update={"id": split_id})
        if self.get_split_expense(split_id) is None:
            self._split_expenses = self._split_expenses + [saved]

        await self._audit.log_split_created(
            split_id=split_id,
            expense_id=expense_id,
            total_amount=str(saved.total_amount),
            participant_count=len(saved.participants),
            user_id=user_id,
            correlation_id=correlation_id,
        )

        # Step 6
        await self._add_new_contacts(saved.participants, correlation_id)

        # Step 7
        user_email = normalize_email(self._user.email)
        recipients = [
            p for p in saved.participants
            if p.email
            and (creator is None or p.id != creator.id)
            and normalize_email(p.email) != user_email
        ]
        if recipients:
            if self._dispatcher is None:
                self._logger.info(
                    "notifications_skipped",
                    reason="no dispatcher configured",
                    split_id=split_id,
                )
            else:
                self._enqueue_notifications(saved, recipients, correlation_id)

        # Step 8
        return saved

    # =========================================================================
    # SETTLEMENT
    # =========================================================================

    async def update_payment_status(
        self,
        split_expense_id: Any,
        participant_id: Any,
        status: Union[ParticipantStatus, str],
        payment_method: Optional[str] = None,
    ) -> bool:
        """
        Change one participant's payment status.

        The participants array, the recomputed split status and updated_at
        are written together in one update. Concurrent updates to the same
        split are last-write-wins on the whole participants array.

        Returns:
            True only when the write was confirmed
        """
        if self._user is None:
            self._logger.warning("payment_update_skipped", reason="no authenticated user")
            return False

        split = self.get_split_expense(split_expense_id)
        wanted = ensure_string_id(participant_id)
        if split is None or wanted is None or split.find_participant(wanted) is None:
            self._logger.warning(
                "payment_update_skipped",
                reason="split or participant not found",
                split_id=ensure_string_id(split_expense_id),
                participant_id=wanted,
            )
            return False

        try:
            participants = [
                update_participant_status(p, status, payment_method)
                if p.id == wanted
                else p.model_copy()
                for p in split.participants
            ]
        except ValueError as e:
            self._logger.warning("payment_update_rejected", error=str(e))
            return False

        split_status = calculate_split_status(participants)
        updated_at = utcnow()

        try:
            if await self._store.get(SPLIT_EXPENSES_COLLECTION, split.id) is None:
                self._logger.warning(
                    "payment_update_skipped",
                    reason="split no longer exists",
                    split_id=split.id,
                )
                return False

            await self._store.update(
                SPLIT_EXPENSES_COLLECTION,
                split.id,
                {
                    "participants": [p.model_dump(mode="json") for p in participants],
                    "status": split_status.value,
                    "updated_at": updated_at.isoformat(),
                },
            )
        except NotFoundError:
            self._logger.warning("payment_update_skipped", reason="split deleted", split_id=split.id)
            return False
        except Exception as e:
            self._logger.error("payment_update_failed", split_id=split.id, error=str(e))
            await self._audit.log_external_service_error(
                service="document_store",
                error_message=str(e),
            )
            return False

        updated = split.model_copy(update={
            "participants": participants,
            "status": split_status,
            "updated_at": updated_at,
        })
        self._split_expenses = [
            updated if s.id == split.id else s for s in self._split_expenses
        ]

        new_status = next(p.status for p in participants if p.id == wanted)
        await self._audit.log_payment_status_updated(
            split_id=split.id,
            participant_id=wanted,
            new_status=new_status.value,
            split_status=split_status.value,
            user_id=self._user.user_id,
        )
        return True

    async def send_payment_reminder(
        self,
        split_expense_id: Any,
        participant_id: Any,
    ) -> bool:
        """
        Email a participant a reminder of their outstanding share.

        Returns:
            The dispatch outcome; says nothing about whether anyone pays
        """
        if self._user is None or self._dispatcher is None:
            self._logger.warning(
                "reminder_skipped",
                reason="no authenticated user" if self._user is None else "no dispatcher configured",
            )
            return False

        split = self.get_split_expense(split_expense_id)
        participant = split.find_participant(participant_id) if split else None
        if participant is None or not participant.email:
            self._logger.warning(
                "reminder_skipped",
                reason="split, participant or email missing",
                split_id=ensure_string_id(split_expense_id),
                participant_id=ensure_string_id(participant_id),
            )
            return False

        self._set_email_status(participant.id, EmailStatus(sending=True))
        result = await self._dispatch(participant, split, NotificationKind.PAYMENT_REMINDER)
        self._set_email_status(participant.id, self._status_from_result(result))

        if result.success:
            reminder = ReminderLog(
                split_expense_id=split.id,
                participant_id=participant.id,
                user_id=self._user.user_id,
            )
            try:
                await self._store.create(REMINDER_LOGS_COLLECTION, reminder.to_document())
            except Exception as e:
                self._logger.warning("reminder_log_failed", split_id=split.id, error=str(e))

            await self._audit.log_reminder_sent(
                split_id=split.id,
                participant_id=participant.id,
                share_amount=str(participant.share_amount),
                user_id=self._user.user_id,
            )

        self._schedule_clear(participant.id)
        return result.success

    async def delete_split_expense(self, split_expense_id: Any) -> bool:
        """
        Delete a split record.

        The linked ledger entry and the contacts are left alone.
        """
        wanted = ensure_string_id(split_expense_id)
        if self._user is None or wanted is None:
            self._logger.warning("split_delete_skipped", reason="missing user or split id")
            return False

        try:
            deleted = await self._store.delete(SPLIT_EXPENSES_COLLECTION, wanted)
        except Exception as e:
            self._logger.error("split_delete_failed", split_id=wanted, error=str(e))
            await self._audit.log_external_service_error(
                service="document_store",
                error_message=str(e),
            )
            return False

        self._split_expenses = [s for s in self._split_expenses if s.id != wanted]
        if deleted:
            await self._audit.log_split_deleted(split_id=wanted, user_id=self._user.user_id)
        return deleted

    # =========================================================================
    # CONTACTS
    # =========================================================================

    async def add_contact(self, name: Optional[str], email: Optional[str] = None) -> bool:
        return await self._contacts.add_contact(name, email)

    async def delete_contact(self, contact_id: Any) -> bool:
        return await self._contacts.delete_contact(contact_id)


def create_split_store(
    user: Optional[UserContext] = None,
    use_notifications: bool = True,
) -> SplitExpenseStore:
    """
    Factory function to create a fully wired SplitExpenseStore.

    The document store follows AppSettings.storage_backend. The audit
    trail is written to the same store. Without EmailJS configuration the
    store runs with notifications disabled.

    Args:
        user: The authenticated user, if already known
        use_notifications: Set to False to never send emails
    """
    logger = structlog.get_logger(__name__)
    settings = get_settings()

    if settings.app.storage_backend == "google_sheets":
        document_store: DocumentStoreInterface = GoogleSheetsDocumentStore(GoogleSheetsClient())
    else:
        document_store = InMemoryDocumentStore()

    audit_logger = AuditLogger(DocumentStoreAuditStorage(document_store))

    dispatcher = None
    if use_notifications:
        try:
            dispatcher = EmailJSNotificationDispatcher()
        except ValidationError as e:
            # EmailJS not configured - continue without it
            logger.warning("notifications_not_configured", error=str(e))

    return SplitExpenseStore(
        document_store,
        user=user,
        dispatcher=dispatcher,
        audit_logger=audit_logger,
        settings=settings.split,
    )
