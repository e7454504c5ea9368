"""Contact directory package."""

from split_tracker.contacts.directory import CONTACTS_COLLECTION, ContactDirectory

__all__ = ["CONTACTS_COLLECTION", "ContactDirectory"]
