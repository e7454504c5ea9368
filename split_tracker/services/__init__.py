"""Services package."""

from split_tracker.services.ledger import (
    EXPENSES_COLLECTION,
    DocumentStoreExpenseLedger,
    ExpenseLedgerInterface,
)
from split_tracker.services.notifications import (
    EmailJSNotificationDispatcher,
    NotificationDispatcherInterface,
    NotificationError,
    build_split_email_params,
)
from split_tracker.services.storage import (
    AUDIT_COLLECTION,
    AuditStorageInterface,
    ConnectionError,
    DocumentStoreAuditStorage,
    DocumentStoreInterface,
    DuplicateError,
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
    InMemoryDocumentStore,
    NotFoundError,
    StorageError,
    Subscription,
)

__all__ = [
    # Ledger
    "EXPENSES_COLLECTION",
    "DocumentStoreExpenseLedger",
    "ExpenseLedgerInterface",
    # Notifications
    "EmailJSNotificationDispatcher",
    "NotificationDispatcherInterface",
    "NotificationError",
    "build_split_email_params",
    # Storage services
    "AUDIT_COLLECTION",
    "AuditStorageInterface",
    "ConnectionError",
    "DocumentStoreAuditStorage",
    "DocumentStoreInterface",
    "DuplicateError",
    "GoogleSheetsClient",
    "GoogleSheetsDocumentStore",
    "InMemoryDocumentStore",
    "NotFoundError",
    "StorageError",
    "Subscription",
]
