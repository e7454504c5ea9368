"""
Contact Directory

The deduplicated list of people the user splits with, used for
participant autofill.

DESIGN DECISION: The cache is owned by a live subscription. Every snapshot
replaces it wholesale; successful writes update it optimistically so the
caller sees its own change before the snapshot arrives.

INVARIANT: At most one contact per normalized (trimmed, lower-cased) email
per user. Contacts without an email are never deduplicated. The invariant
is checked against the cache and then against the remote store, which
covers a cache that has not caught up yet.
"""

from typing import Optional
from uuid import UUID

import structlog
from pydantic import ValidationError

from split_tracker.audit import AuditLogger
from split_tracker.models.split import Contact, UserContext, ensure_string_id, normalize_email
from split_tracker.services.storage import DocumentStoreInterface, Subscription


CONTACTS_COLLECTION = "contacts"


class ContactDirectory:
    """
    Cached, owner-filtered view of the contacts collection plus its
    add/delete entry points.
    """

    def __init__(
        self,
        store: DocumentStoreInterface,
        user: Optional[UserContext] = None,
        audit_logger: Optional[AuditLogger] = None,
        collection: str = CONTACTS_COLLECTION,
    ):
        self._store = store
        self._user = user
        self._audit = audit_logger or AuditLogger()
        self._collection = collection
        self._contacts: list[Contact] = []
        self._subscription: Optional[Subscription] = None
        self._loading = user is not None
        self._logger = structlog.get_logger(__name__)

    @property
    def user(self) -> Optional[UserContext]:
        return self._user

    @property
    def loading(self) -> bool:
        """True until the first snapshot for the current user has arrived."""
        return self._loading

    # =========================================================================
    # SUBSCRIPTION
    # =========================================================================

    def start(self) -> None:
        """Open the live subscription for the current user."""
        if self._user is None or self._subscription is not None:
            return
        self._loading = True
        self._subscription = self._store.subscribe(
            self._collection,
            self._user.user_id,
            self._on_snapshot,
            self._on_error,
        )

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def set_user(self, user: Optional[UserContext]) -> None:
        """Switch owners: drop the old subscription and cache, subscribe anew."""
        self.stop()
        self._user = user
        self._contacts = []
        self._loading = user is not None
        self.start()

    def _on_snapshot(self, documents: list[dict]) -> None:
        contacts = []
        for document in documents:
            try:
                contacts.append(Contact.from_document(document))
            except ValidationError as e:
                self._logger.warning(
                    "contact_document_skipped",
                    contact_id=document.get("id"),
                    error=str(e),
                )
        self._contacts = contacts
        self._loading = False

    def _on_error(self, error: Exception) -> None:
        self._logger.error("contact_subscription_failed", error=str(error))
        self._loading = False

    # =========================================================================
    # READS
    # =========================================================================

    def get_all_contacts(self) -> list[Contact]:
        """Current cached snapshot (a copy)."""
        return list(self._contacts)

    def find_by_email(self, email: Optional[str]) -> Optional[Contact]:
        wanted = normalize_email(email)
        if wanted is None:
            return None
        for contact in self._contacts:
            if contact.normalized_email == wanted:
                return contact
        return None

    def has_email(self, email: Optional[str]) -> bool:
        return self.find_by_email(email) is not None

    async def _exists_remotely(self, email: str) -> bool:
        documents = await self._store.query(self._collection, user_id=self._user.user_id)
        return any(normalize_email(d.get("email")) == email for d in documents)

    # =========================================================================
    # WRITES
    # =========================================================================

    async def add_contact(
        self,
        name: Optional[str],
        email: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Add a contact unless its email is already known.

        Returns:
            True if a contact was written; False for a missing user,
            a blank name, a duplicate email or a storage failure
        """
        if self._user is None:
            self._logger.warning("contact_add_skipped", reason="no authenticated user")
            return False

        if not isinstance(name, str) or not name.strip():
            self._logger.warning("contact_add_skipped", reason="blank name")
            return False

        normalized = normalize_email(email)

        try:
            if normalized is not None and (
                self.has_email(normalized) or await self._exists_remotely(normalized)
            ):
                await self._audit.log_contact_duplicate_skipped(
                    email=normalized,
                    user_id=self._user.user_id,
                    correlation_id=correlation_id,
                )
                return False

            contact = Contact(
                name=name.strip(),
                email=email.strip() if normalized else None,
                user_id=self._user.user_id,
            )
            contact_id = await self._store.create(self._collection, contact.to_document())
        except ValidationError as e:
            self._logger.warning("contact_add_rejected", error=str(e))
            return False
        except Exception as e:
            self._logger.error("contact_add_failed", error=str(e))
            await self._audit.log_external_service_error(
                service="document_store",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            return False

        stored = contact.model_copy(update={"id": contact_id})
        if not any(c.id == contact_id for c in self._contacts):
            self._contacts = self._contacts + [stored]

        await self._audit.log_contact_added(
            contact_id=contact_id,
            name=stored.name,
            user_id=self._user.user_id,
            correlation_id=correlation_id,
        )
        return True

    async def delete_contact(self, contact_id) -> bool:
        """
        Delete a contact by id.

        Returns:
            True if the contact was deleted, False otherwise
        """
        wanted = ensure_string_id(contact_id)
        if self._user is None or wanted is None:
            self._logger.warning("contact_delete_skipped", reason="missing user or contact id")
            return False

        try:
            deleted = await self._store.delete(self._collection, wanted)
        except Exception as e:
            self._logger.error("contact_delete_failed", contact_id=wanted, error=str(e))
            await self._audit.log_external_service_error(
                service="document_store",
                error_message=str(e),
            )
            return False

        self._contacts = [c for c in self._contacts if c.id != wanted]
        if deleted:
            await self._audit.log_contact_deleted(contact_id=wanted, user_id=self._user.user_id)
        return deleted
