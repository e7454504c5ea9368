"""Tests for the in-memory document store and audit storage on top of it."""

import pytest
from datetime import timedelta
from uuid import uuid4

from split_tracker.models import AuditEventBuilder
from split_tracker.services.storage import (
    DocumentStoreAuditStorage,
    InMemoryDocumentStore,
    NotFoundError,
)


@pytest.fixture
def memory_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


class TestDocumentOperations:

    async def test_create_assigns_id_and_get_returns_it(self, memory_store):
        doc_id = await memory_store.create("things", {"id": "ignored", "user_id": "u1", "n": 1})
        assert doc_id != "ignored"

        document = await memory_store.get("things", doc_id)
        assert document == {"id": doc_id, "user_id": "u1", "n": 1}

    async def test_get_missing_returns_none(self, memory_store):
        assert await memory_store.get("things", "nope") is None

    async def test_stored_documents_are_copies(self, memory_store):
        """Mutating what the caller holds never changes the store."""
        body = {"user_id": "u1", "items": [1]}
        doc_id = await memory_store.create("things", body)
        body["items"].append(2)

        fetched = await memory_store.get("things", doc_id)
        fetched["items"].append(3)

        assert (await memory_store.get("things", doc_id))["items"] == [1]

    async def test_update_merges_fields(self, memory_store):
        doc_id = await memory_store.create("things", {"user_id": "u1", "a": 1, "b": 2})
        assert await memory_store.update("things", doc_id, {"b": 3}) is True
        assert await memory_store.get("things", doc_id) == {"id": doc_id, "user_id": "u1", "a": 1, "b": 3}

    async def test_update_missing_raises_not_found(self, memory_store):
        with pytest.raises(NotFoundError):
            await memory_store.update("things", "nope", {"a": 1})

    async def test_delete(self, memory_store):
        doc_id = await memory_store.create("things", {"user_id": "u1"})
        assert await memory_store.delete("things", doc_id) is True
        assert await memory_store.delete("things", doc_id) is False

    async def test_query_by_equality(self, memory_store):
        await memory_store.create("things", {"user_id": "u1", "color": "red"})
        await memory_store.create("things", {"user_id": "u1", "color": "blue"})
        await memory_store.create("things", {"user_id": "u2", "color": "red"})

        results = await memory_store.query("things", user_id="u1", color="red")
        assert len(results) == 1
        assert results[0]["color"] == "red"


class TestSubscriptions:

    async def test_subscriber_gets_initial_and_owner_filtered_snapshots(self, memory_store):
        await memory_store.create("things", {"user_id": "u1", "n": 1})
        snapshots = []

        subscription = memory_store.subscribe("things", "u1", snapshots.append)
        assert [d["n"] for d in snapshots[-1]] == [1]

        await memory_store.create("things", {"user_id": "u2", "n": 2})
        assert [d["n"] for d in snapshots[-1]] == [1]

        await memory_store.create("things", {"user_id": "u1", "n": 3})
        assert sorted(d["n"] for d in snapshots[-1]) == [1, 3]

        subscription.unsubscribe()
        count = len(snapshots)
        await memory_store.create("things", {"user_id": "u1", "n": 4})
        assert len(snapshots) == count
        assert memory_store.subscriber_count("things") == 0

    async def test_unsubscribe_is_idempotent(self, memory_store):
        subscription = memory_store.subscribe("things", "u1", lambda docs: None)
        subscription.unsubscribe()
        subscription.unsubscribe()
        assert subscription.active is False

    async def test_failing_subscriber_does_not_break_writes(self, memory_store):
        errors = []

        def explode(documents):
            raise RuntimeError("boom")

        memory_store.subscribe("things", "u1", explode, errors.append)
        doc_id = await memory_store.create("things", {"user_id": "u1"})

        assert await memory_store.get("things", doc_id) is not None
        assert len(errors) == 2  # initial snapshot and the write


class TestDocumentStoreAuditStorage:

    async def test_append_and_read_back_by_entity(self, memory_store):
        storage = DocumentStoreAuditStorage(memory_store)
        created = AuditEventBuilder.split_created(
            split_id="s1",
            expense_id="e1",
            total_amount="10.00",
            participant_count=2,
            user_id="u1",
            correlation_id=None,
        )
        other = AuditEventBuilder.split_deleted(split_id="s1", user_id="u1")
        other = other.model_copy(update={"timestamp": created.timestamp + timedelta(seconds=1)})

        assert await storage.append_event(created) is True
        assert await storage.append_event(other) is True

        by_entity = await storage.get_events_by_entity("split_expense", "s1")
        assert [e.event_id for e in by_entity] == [created.event_id, other.event_id]

        recent = await storage.get_recent_events(limit=1)
        assert recent[0].event_id == other.event_id

    async def test_query_by_correlation_id(self, memory_store):
        storage = DocumentStoreAuditStorage(memory_store)
        correlation_id = uuid4()
        event = AuditEventBuilder.split_creation_failed(
            stage="base_expense",
            error_message="down",
            user_id="u1",
            correlation_id=correlation_id,
        )
        await storage.append_event(event)

        events = await storage.get_events_by_correlation_id(correlation_id)
        assert len(events) == 1
        assert events[0].error_message == "down"
