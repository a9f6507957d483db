"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep business logic (goals, fiscal lookup) decoupled from the spreadsheet

The interface is intentionally simple - we're not building a full ORM.
Just the operations the budget endpoints need.
"""

from abc import ABC, abstractmethod

from family_budget.models.audit import ActionLogEntry
from family_budget.models.fiscal import FiscalMonth, FiscalWeek, FiscalYear
from family_budget.models.ledger import (
    GoalPeriod,
    Goals,
    HistoryRow,
    HsaReimbursement,
    ItemType,
    LedgerItem,
    RecurringRow,
)


class LedgerStorageInterface(ABC):
    """
    Abstract interface for the budget ledger.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    async def refresh_column_mappings(self) -> None:
        """
        Re-read whatever layout information the backend needs.

        No-op for backends without a user-editable layout.
        """
        return None

    @abstractmethod
    async def list_history(self) -> list[HistoryRow]:
        """
        List every history entry, HSA reimbursement fields joined in.
        """
        pass

    @abstractmethod
    async def list_recurring(self) -> list[RecurringRow]:
        """List every recurring entry."""
        pass

    @abstractmethod
    async def insert_item(self, item: LedgerItem) -> None:
        """
        Append a history or recurring entry.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def update_item(self, item: LedgerItem) -> list:
        """
        Overwrite the entry at `item.row_index`.

        Returns:
            The row as it was BEFORE the update (for goal deltas)

        Raises:
            NotFoundError: If the row or its ID doesn't exist
        """
        pass

    @abstractmethod
    def value_from_row(self, item_type: ItemType, row: list) -> float:
        """VALUE of a raw row as returned by update_item (blank reads as 0)."""
        pass

    @abstractmethod
    async def delete_item(self, item_type: ItemType, item_id: str) -> None:
        """
        Delete a history or recurring entry by ID.

        Raises:
            NotFoundError: If no entry has this ID
        """
        pass

    @abstractmethod
    async def upsert_hsa_item(self, reimbursement: HsaReimbursement) -> None:
        """Create or replace the HSA reimbursement for a history entry."""
        pass

    @abstractmethod
    async def delete_hsa_item(self, history_id: str) -> bool:
        """
        Delete the HSA reimbursement for a history entry.

        Returns:
            True if a row was deleted, False if none existed
        """
        pass

    @abstractmethod
    async def get_categories_and_tags(self) -> tuple[list[str], list[str]]:
        """Known categories and tags from the Metadata sheet."""
        pass

    @abstractmethod
    async def add_missing_tags(self, tags: list[str]) -> list[str]:
        """
        Record tags that aren't in the Metadata sheet yet.

        Returns:
            The tags that were added
        """
        pass

    @abstractmethod
    async def read_goals(self) -> Goals:
        """Read both goal cells."""
        pass

    @abstractmethod
    async def read_goal(self, period: GoalPeriod) -> float:
        """Read one goal cell (blank reads as 0)."""
        pass

    @abstractmethod
    async def write_goal(self, period: GoalPeriod, value: float) -> None:
        """Overwrite one goal cell."""
        pass

    @abstractmethod
    async def load_fiscal_tables(
        self,
    ) -> tuple[list[FiscalYear], list[FiscalMonth], list[FiscalWeek]]:
        """Read the fiscal years, months and weeks tables."""
        pass


class ActionLogStorageInterface(ABC):
    """
    Abstract interface for the action log.

    The log is append-only - we never delete or modify entries.
    """

    @abstractmethod
    async def append_entry(self, entry: ActionLogEntry) -> bool:
        """
        Append an entry to the log.

        Returns:
            True if logged successfully
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
