"""
Storage Services Package

Provides the abstract document store interface and its implementations:
in-memory (tests, local runs) and Google Sheets (hosted). Designed to be
swappable.
"""

from split_tracker.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DocumentStoreInterface,
    DuplicateError,
    NotFoundError,
    StorageError,
    Subscription,
    SubscriptionHub,
)
from split_tracker.services.storage.audit_store import (
    AUDIT_COLLECTION,
    DocumentStoreAuditStorage,
)
from split_tracker.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
)
from split_tracker.services.storage.memory import InMemoryDocumentStore

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "DocumentStoreInterface",
    "Subscription",
    "SubscriptionHub",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Implementations
    "AUDIT_COLLECTION",
    "DocumentStoreAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsDocumentStore",
    "InMemoryDocumentStore",
]
