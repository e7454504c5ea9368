"""
In-Memory Document Store

Used for tests and local runs (storage_backend = "memory"). Behaves like
the remote store as far as the settlement core can tell: store-assigned
ids, merge updates, owner-filtered live snapshots pushed after each write.
"""

import copy
from typing import Any, Optional

from split_tracker.models.split import generate_document_id
from split_tracker.services.storage.interface import (
    OWNER_FIELD,
    DocumentStoreInterface,
    ErrorCallback,
    NotFoundError,
    SnapshotCallback,
    Subscription,
    SubscriptionHub,
)


class InMemoryDocumentStore(DocumentStoreInterface):
    """
    Dict-backed document store.

    Documents are deep-copied on the way in and out, so callers can never
    mutate stored state by accident.
    """

    def __init__(self):
        self._collections: dict[str, dict[str, dict]] = {}
        self._hub = SubscriptionHub()

    def _collection(self, name: str) -> dict[str, dict]:
        return self._collections.setdefault(name, {})

    def _with_id(self, doc_id: str, document: dict) -> dict:
        return {"id": doc_id, **copy.deepcopy(document)}

    def _snapshot(self, collection: str, owner_id: str) -> list[dict]:
        return [
            self._with_id(doc_id, document)
            for doc_id, document in self._collection(collection).items()
            if document.get(OWNER_FIELD) == owner_id
        ]

    def _publish(self, collection: str) -> None:
        self._hub.publish(
            collection, lambda owner_id: self._snapshot(collection, owner_id)
        )

    async def create(self, collection: str, document: dict) -> str:
        doc_id = generate_document_id()
        body = {key: value for key, value in document.items() if key != "id"}
        self._collection(collection)[doc_id] = copy.deepcopy(body)
        self._publish(collection)
        return doc_id

    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        document = self._collection(collection).get(str(doc_id))
        if document is None:
            return None
        return self._with_id(str(doc_id), document)

    async def update(self, collection: str, doc_id: str, fields: dict) -> bool:
        document = self._collection(collection).get(str(doc_id))
        if document is None:
            raise NotFoundError(f"Document not found: {collection}/{doc_id}")

        for key, value in fields.items():
            if key != "id":
                document[key] = copy.deepcopy(value)

        self._publish(collection)
        return True

    async def delete(self, collection: str, doc_id: str) -> bool:
        removed = self._collection(collection).pop(str(doc_id), None)
        if removed is None:
            return False
        self._publish(collection)
        return True

    async def query(self, collection: str, **equals: Any) -> list[dict]:
        return [
            self._with_id(doc_id, document)
            for doc_id, document in self._collection(collection).items()
            if all(document.get(field) == value for field, value in equals.items())
        ]

    def subscribe(
        self,
        collection: str,
        owner_id: str,
        callback: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        subscription = self._hub.add(collection, owner_id, callback, on_error)
        self._hub.deliver(
            owner_id,
            callback,
            on_error,
            lambda owner: self._snapshot(collection, owner),
        )
        return subscription

    def subscriber_count(self, collection: str) -> int:
        return self._hub.subscriber_count(collection)
