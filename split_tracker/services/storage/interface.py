"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for the document store.
This allows us to:
1. Swap Google Sheets for a real document database later
2. Use in-memory storage for testing
3. Keep the settlement workflows decoupled from storage implementation

The interface is intentionally small - it is not an ORM. Documents are
plain JSON-compatible dicts; the store assigns their ids and returns them
under the "id" key. Every document carries a "user_id" owner field, which
is what subscriptions filter on.
"""

from abc import ABC, abstractmethod
from itertools import count
from typing import Any, Callable, Optional
from uuid import UUID

import structlog

from split_tracker.models.audit import AuditEvent


SnapshotCallback = Callable[[list[dict]], None]
ErrorCallback = Callable[[Exception], None]

OWNER_FIELD = "user_id"


class Subscription:
    """
    Handle for a live collection subscription.

    unsubscribe() is idempotent.
    """

    def __init__(self, unsubscribe: Callable[[], None]):
        self._unsubscribe = unsubscribe
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if self._active:
            self._active = False
            self._unsubscribe()


class SubscriptionHub:
    """
    Subscriber bookkeeping shared by store implementations.

    After every write the store publishes the collection; each subscriber
    then receives the full snapshot of the documents it owns.
    """

    def __init__(self):
        self._subscribers: dict[str, dict[int, tuple[str, SnapshotCallback, Optional[ErrorCallback]]]] = {}
        self._keys = count()
        self._logger = structlog.get_logger(__name__)

    def add(
        self,
        collection: str,
        owner_id: str,
        callback: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        key = next(self._keys)
        self._subscribers.setdefault(collection, {})[key] = (owner_id, callback, on_error)

        def _remove() -> None:
            self._subscribers.get(collection, {}).pop(key, None)

        return Subscription(_remove)

    def subscriber_count(self, collection: str) -> int:
        return len(self._subscribers.get(collection, {}))

    def deliver(
        self,
        owner_id: str,
        callback: SnapshotCallback,
        on_error: Optional[ErrorCallback],
        snapshot: Callable[[str], list[dict]],
    ) -> None:
        """Push one snapshot to one subscriber; subscriber errors never reach the writer."""
        try:
            callback(snapshot(owner_id))
        except Exception as e:
            self._logger.error("subscription_delivery_failed", error=str(e))
            if on_error:
                on_error(e)

    def publish(self, collection: str, snapshot: Callable[[str], list[dict]]) -> None:
        for owner_id, callback, on_error in list(self._subscribers.get(collection, {}).values()):
            self.deliver(owner_id, callback, on_error, snapshot)

    def fail(self, collection: str, error: Exception) -> None:
        """Report a snapshot that could not be produced to every subscriber."""
        self._logger.error("snapshot_read_failed", collection=collection, error=str(error))
        for _, _, on_error in list(self._subscribers.get(collection, {}).values()):
            if on_error:
                try:
                    on_error(error)
                except Exception as e:
                    self._logger.error("subscription_error_handler_failed", error=str(e))


class DocumentStoreInterface(ABC):
    """
    Abstract interface for the remote document store.

    Any storage implementation (Google Sheets, Firestore, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def create(self, collection: str, document: dict) -> str:
        """
        Create a document.

        Args:
            collection: Collection name (e.g. 'splitExpenses')
            document: JSON-compatible document body (any "id" key is ignored)

        Returns:
            The store-assigned document id

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        """
        Read a document by id.

        Returns:
            The document (with its "id") if found, None otherwise
        """
        pass

    @abstractmethod
    async def update(self, collection: str, doc_id: str, fields: dict) -> bool:
        """
        Merge fields into an existing document as a single write.

        Returns:
            True if updated successfully

        Raises:
            NotFoundError: If the document doesn't exist
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> bool:
        """
        Delete a document by id.

        Returns:
            True if deleted, False if it did not exist
        """
        pass

    @abstractmethod
    async def query(self, collection: str, **equals: Any) -> list[dict]:
        """
        List documents whose fields equal all given values.

        Example: await store.query("contacts", user_id="u1", email="a@b.c")
        """
        pass

    @abstractmethod
    def subscribe(
        self,
        collection: str,
        owner_id: str,
        callback: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        """
        Observe the documents of one owner in a collection.

        The callback receives the full owner-filtered snapshot immediately
        and again after every change, until the subscription is cancelled.
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one split creation).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
