"""
Services package.

Notification senders live in family_budget.services.notifications and are
imported from there directly.
"""

from family_budget.services.storage import (
    ActionLogStorageInterface,
    ConnectionError,
    GoogleSheetsActionLogStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)

__all__ = [
    "ActionLogStorageInterface",
    "ConnectionError",
    "GoogleSheetsActionLogStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
    "LedgerStorageInterface",
    "NotFoundError",
    "StorageError",
]
