"""
Fiscal Calendar Models

Fiscal periods are NOT calendar months. Each year, month and week is a row
in its own sheet with explicit start/end dates, and months/weeks point at
their parent by title/id.
"""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


# Formats seen in the fiscal and history sheets. USER_ENTERED dates come back
# as M/D/YYYY; values typed by hand are sometimes ISO.
SHEET_DATE_FORMATS = ("%m/%d/%Y", "%Y-%m-%d", "%m/%d/%y")


def parse_sheet_date(value) -> Optional[date]:
    """Parse a spreadsheet or request date. Returns None if unparseable."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    # ISO timestamps from the frontend ("2025-01-05T00:00:00.000Z")
    if "T" in text:
        text = text.split("T", 1)[0]
    for fmt in SHEET_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def format_sheet_date(value: date) -> str:
    """Format a date the way the History sheet stores it (MM/DD/YYYY)."""
    return value.strftime("%m/%d/%Y")


class FiscalPeriod(BaseModel):
    """Common shape of a fiscal year, month or week row."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    def contains(self, day: date) -> bool:
        """Inclusive on both ends. Periods with missing dates never match."""
        if self.start_date is None or self.end_date is None:
            return False
        return self.start_date <= day <= self.end_date


class FiscalYear(FiscalPeriod):
    title: str = ""
    item_type: Literal["fiscalYear"] = Field(default="fiscalYear", alias="itemType")


class FiscalMonth(FiscalPeriod):
    year_title: str = ""
    item_type: Literal["fiscalMonth"] = Field(default="fiscalMonth", alias="itemType")


class FiscalWeek(FiscalPeriod):
    number: str = ""
    year_title: str = ""
    month_id: str = ""
    item_type: Literal["fiscalWeek"] = Field(default="fiscalWeek", alias="itemType")


class FiscalIds(BaseModel):
    """The fiscal year/month/week a history entry belongs to."""
    model_config = ConfigDict(populate_by_name=True)

    fiscal_year_id: str = Field(..., alias="fiscalYearId")
    fiscal_month_id: str = Field(..., alias="fiscalMonthId")
    fiscal_week_id: str = Field(..., alias="fiscalWeekId")
