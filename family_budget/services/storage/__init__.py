"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Currently implements Google Sheets as the backend, but designed to be swappable.
"""

from family_budget.services.storage.columns import (
    ColumnMappings,
    SheetType,
)
from family_budget.services.storage.interface import (
    ActionLogStorageInterface,
    ConnectionError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)
from family_budget.services.storage.sheets_client import GoogleSheetsClient
from family_budget.services.storage.google_sheets import (
    GoogleSheetsActionLogStorage,
    GoogleSheetsLedgerStorage,
)

__all__ = [
    # Layout
    "ColumnMappings",
    "SheetType",
    # Interfaces
    "ActionLogStorageInterface",
    "LedgerStorageInterface",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    # Google Sheets implementation
    "GoogleSheetsActionLogStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
]
