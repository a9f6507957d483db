"""
Data Models Package

This package contains all Pydantic models used in the Family Budget system.
All data flowing through the system must conform to these schemas.
"""

from family_budget.models.fiscal import (
    FiscalIds,
    FiscalMonth,
    FiscalPeriod,
    FiscalWeek,
    FiscalYear,
    format_sheet_date,
    parse_sheet_date,
)
from family_budget.models.ledger import (
    GoalPeriod,
    Goals,
    GoalUpdate,
    HistoryItem,
    HistoryRow,
    HsaReimbursement,
    ItemType,
    LedgerItem,
    DeleteRequest,
    NotificationAction,
    RecurringItem,
    RecurringRow,
)
from family_budget.models.audit import (
    ActionLogEntry,
    ActionType,
    log_timestamp,
)

__all__ = [
    # Fiscal models
    "FiscalIds",
    "FiscalMonth",
    "FiscalPeriod",
    "FiscalWeek",
    "FiscalYear",
    "format_sheet_date",
    "parse_sheet_date",
    # Ledger models
    "GoalPeriod",
    "Goals",
    "GoalUpdate",
    "HistoryItem",
    "HistoryRow",
    "HsaReimbursement",
    "ItemType",
    "LedgerItem",
    "DeleteRequest",
    "NotificationAction",
    "RecurringItem",
    "RecurringRow",
    # Audit models
    "ActionLogEntry",
    "ActionType",
    "log_timestamp",
]
