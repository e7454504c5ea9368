"""
Expense ledger collaborator.

Every split is backed by one ordinary expense entry in the ledger. The
entry carries the creator's own share (user_share) so budget tracking
counts only what the creator actually spent.
"""

from abc import ABC, abstractmethod

from split_tracker.models.split import ExpenseEntry
from split_tracker.services.storage.interface import DocumentStoreInterface


EXPENSES_COLLECTION = "expenses"


class ExpenseLedgerInterface(ABC):
    """Abstract interface for the expense ledger."""

    @abstractmethod
    async def create_entry(self, entry: ExpenseEntry) -> str:
        """
        Materialize a ledger entry.

        Returns:
            The new entry id

        Raises:
            StorageError: If the entry could not be written
        """
        pass


class DocumentStoreExpenseLedger(ExpenseLedgerInterface):
    """Ledger entries stored as documents in the "expenses" collection."""

    def __init__(
        self,
        store: DocumentStoreInterface,
        collection: str = EXPENSES_COLLECTION,
    ):
        self._store = store
        self._collection = collection

    async def create_entry(self, entry: ExpenseEntry) -> str:
        return await self._store.create(self._collection, entry.to_document())
