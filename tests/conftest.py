"""
Shared fixtures for Split Tracker tests.

No real network calls: the document store is in memory and the
notification dispatcher is a recording fake.
"""

from typing import Any, Optional

import pytest

from split_tracker.config import SplitSettings
from split_tracker.models import NotificationKind, NotificationResult, UserContext
from split_tracker.orchestrator import SplitExpenseStore
from split_tracker.services.ledger import ExpenseLedgerInterface
from split_tracker.services.notifications import NotificationDispatcherInterface
from split_tracker.services.storage import InMemoryDocumentStore, StorageError


class RecordingDispatcher(NotificationDispatcherInterface):
    """Records every send; fails for addresses listed in fail_for."""

    def __init__(self, fail_for: Optional[set[str]] = None, raise_for: Optional[set[str]] = None):
        self.sent: list[tuple[str, NotificationKind, dict[str, Any]]] = []
        self.fail_for = fail_for or set()
        self.raise_for = raise_for or set()

    async def send(self, recipient_email, kind, parameters):
        self.sent.append((recipient_email, kind, parameters))
        if recipient_email in self.raise_for:
            raise RuntimeError("dispatcher exploded")
        if recipient_email in self.fail_for:
            return NotificationResult(success=False, message="rate limited")
        return NotificationResult(success=True, message="Email sent successfully")


class FailingLedger(ExpenseLedgerInterface):
    async def create_entry(self, entry):
        raise StorageError("ledger unavailable")


class FlakyDocumentStore(InMemoryDocumentStore):
    """In-memory store whose writes to selected collections fail."""

    def __init__(self, failing_collections: Optional[set[str]] = None):
        super().__init__()
        self.failing_collections = failing_collections or set()
        self.update_calls = 0

    async def create(self, collection, document):
        if collection in self.failing_collections:
            raise StorageError(f"cannot write to {collection}")
        return await super().create(collection, document)

    async def update(self, collection, doc_id, fields):
        self.update_calls += 1
        if collection in self.failing_collections:
            raise StorageError(f"cannot write to {collection}")
        return await super().update(collection, doc_id, fields)


@pytest.fixture
def user() -> UserContext:
    return UserContext(user_id="user-1", email="alice@example.com", name="Alice")


@pytest.fixture
def split_settings() -> SplitSettings:
    return SplitSettings(
        notification_delay_seconds=0,
        notification_error_delay_seconds=0,
        email_status_clear_seconds=60,
    )


@pytest.fixture
def document_store() -> FlakyDocumentStore:
    return FlakyDocumentStore()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def store(document_store, user, dispatcher, split_settings) -> SplitExpenseStore:
    split_store = SplitExpenseStore(
        document_store,
        user=user,
        dispatcher=dispatcher,
        settings=split_settings,
    )
    split_store.start()
    return split_store


@pytest.fixture
def three_people() -> list[dict]:
    return [
        {"name": "Alice", "email": "alice@example.com"},
        {"name": "Bob", "email": "bob@example.com"},
        {"name": "Carol", "email": "carol@example.com"},
    ]


@pytest.fixture
def dinner() -> dict:
    return {
        "amount": "90.00",
        "category": "Food",
        "description": "Team dinner",
        "expense_date": "2024-12-15",
    }
