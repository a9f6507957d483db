"""Fiscal calendar package."""

from family_budget.fiscal.calendar import FiscalCalendar, FiscalCalendarCache

__all__ = [
    "FiscalCalendar",
    "FiscalCalendarCache",
]
