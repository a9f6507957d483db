"""
Fiscal Calendar

Maps a date to the fiscal year, month and week that contain it.

DESIGN DECISION: The fiscal tables are tiny (a few years, ~12 months and
~52 weeks each) and change once a year, so they are read once per process
and searched linearly. First match wins at every level, and a month or
week only matches inside its parent (by year title / month id), so
overlapping rows in different years can't produce a mixed result.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional, Sequence

import structlog

from family_budget.models.fiscal import (
    FiscalIds,
    FiscalMonth,
    FiscalPeriod,
    FiscalWeek,
    FiscalYear,
    parse_sheet_date,
)
from family_budget.services.storage.interface import LedgerStorageInterface


logger = structlog.get_logger(__name__)


def local_today(utc_offset_hours: int = -7) -> date:
    """Today's date at a fixed UTC offset (the family's timezone)."""
    return datetime.now(timezone(timedelta(hours=utc_offset_hours))).date()


def _first_containing(periods: Sequence[FiscalPeriod], day: date) -> Optional[FiscalPeriod]:
    for period in periods:
        if period.contains(day):
            return period
    return None


class FiscalCalendar:
    """
    Read-only view over the fiscal years, months and weeks tables.
    """

    def __init__(
        self,
        years: Sequence[FiscalYear],
        months: Sequence[FiscalMonth],
        weeks: Sequence[FiscalWeek],
        utc_offset_hours: int = -7,
    ):
        self.years = list(years)
        self.months = list(months)
        self.weeks = list(weeks)
        self._utc_offset_hours = utc_offset_hours

    @classmethod
    async def from_storage(
        cls,
        storage: LedgerStorageInterface,
        utc_offset_hours: int = -7,
    ) -> "FiscalCalendar":
        years, months, weeks = await storage.load_fiscal_tables()
        return cls(years, months, weeks, utc_offset_hours=utc_offset_hours)

    def today(self) -> date:
        return local_today(self._utc_offset_hours)

    def resolve(self, day) -> Optional[FiscalIds]:
        """
        Fiscal ids for a date.

        Args:
            day: A date, or anything parse_sheet_date understands

        Returns:
            FiscalIds, or None when the date is invalid or any level
            (year, month within that year, week within that month) is missing
        """
        parsed = parse_sheet_date(day)
        if parsed is None:
            logger.warning("fiscal_resolve_invalid_date", date=str(day))
            return None

        year = _first_containing(self.years, parsed)
        if year is None:
            logger.warning("fiscal_year_not_found", date=parsed.isoformat())
            return None

        month = _first_containing(
            [m for m in self.months if m.year_title == year.title],
            parsed,
        )
        if month is None:
            logger.warning("fiscal_month_not_found", date=parsed.isoformat(), year=year.title)
            return None

        week = _first_containing(
            [w for w in self.weeks if w.year_title == year.title and w.month_id == month.id],
            parsed,
        )
        if week is None:
            logger.warning("fiscal_week_not_found", date=parsed.isoformat(), month=month.id)
            return None

        return FiscalIds(
            fiscal_year_id=year.id,
            fiscal_month_id=month.id,
            fiscal_week_id=week.id,
        )

    def current_week_id(self, today: Optional[date] = None) -> Optional[str]:
        week = _first_containing(self.weeks, today or self.today())
        if week is None:
            logger.warning("current_fiscal_week_not_found")
            return None
        return week.id

    def current_month_id(self, today: Optional[date] = None) -> Optional[str]:
        month = _first_containing(self.months, today or self.today())
        if month is None:
            logger.warning("current_fiscal_month_not_found")
            return None
        return month.id

    def is_current_week(self, fiscal_week_id: Optional[str], today: Optional[date] = None) -> bool:
        if not fiscal_week_id:
            return False
        current = self.current_week_id(today)
        return current is not None and current == fiscal_week_id

    def is_current_month(self, fiscal_month_id: Optional[str], today: Optional[date] = None) -> bool:
        if not fiscal_month_id:
            return False
        current = self.current_month_id(today)
        return current is not None and current == fiscal_month_id

    def within_window(
        self,
        days: int = 365,
        today: Optional[date] = None,
    ) -> tuple[list[FiscalYear], list[FiscalMonth], list[FiscalWeek]]:
        """
        Periods whose start date lies within +/- `days` of today.

        Periods without a start date are left out.
        """
        today = today or self.today()
        low = today - timedelta(days=days)
        high = today + timedelta(days=days)

        def keep(period: FiscalPeriod) -> bool:
            return period.start_date is not None and low <= period.start_date <= high

        return (
            [y for y in self.years if keep(y)],
            [m for m in self.months if keep(m)],
            [w for w in self.weeks if keep(w)],
        )


class FiscalCalendarCache:
    """
    Holds the fiscal calendar for the life of the process.

    The first request loads it; later requests reuse it. Call clear()
    after editing the fiscal sheets.
    """

    def __init__(self, utc_offset_hours: int = -7):
        self._calendar: Optional[FiscalCalendar] = None
        self._utc_offset_hours = utc_offset_hours

    async def get(self, storage: LedgerStorageInterface) -> FiscalCalendar:
        if self._calendar is None:
            self._calendar = await FiscalCalendar.from_storage(
                storage,
                utc_offset_hours=self._utc_offset_hours,
            )
        return self._calendar

    def clear(self) -> None:
        self._calendar = None
