"""
Audit log storage on top of the document store.

Audit events are append-only documents in the "auditLog" collection.
Whatever backend holds the splits holds the audit trail too.
"""

from typing import Optional
from uuid import UUID

import structlog
from pydantic import ValidationError

from split_tracker.models.audit import AuditEvent
from split_tracker.services.storage.interface import (
    AuditStorageInterface,
    DocumentStoreInterface,
    StorageError,
)


AUDIT_COLLECTION = "auditLog"


class DocumentStoreAuditStorage(AuditStorageInterface):
    """
    Audit storage that appends events as documents.
    """

    def __init__(
        self,
        store: DocumentStoreInterface,
        collection: str = AUDIT_COLLECTION,
    ):
        self._store = store
        self._collection = collection
        self._logger = structlog.get_logger(__name__)

    def _to_events(self, documents: list[dict]) -> list[AuditEvent]:
        events = []
        for document in documents:
            body = {key: value for key, value in document.items() if key != "id"}
            try:
                events.append(AuditEvent.model_validate(body))
            except ValidationError:
                continue  # Skip malformed documents
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        try:
            await self._store.create(self._collection, event.to_document())
            return True
        except StorageError as e:
            # Don't raise - audit logging should not break the main flow
            self._logger.warning(
                "audit_write_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        documents = await self._store.query(
            self._collection, correlation_id=str(correlation_id)
        )
        events = self._to_events(documents)
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        documents = await self._store.query(
            self._collection, entity_type=entity_type, entity_id=str(entity_id)
        )
        events = self._to_events(documents)
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
        user_id: Optional[str] = None,
    ) -> list[AuditEvent]:
        filters = {"user_id": user_id} if user_id else {}
        documents = await self._store.query(self._collection, **filters)
        events = self._to_events(documents)
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
