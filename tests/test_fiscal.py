"""
Tests for the fiscal calendar.
"""

import asyncio
from datetime import date

import pytest

from family_budget.fiscal import FiscalCalendar, FiscalCalendarCache
from family_budget.models.fiscal import FiscalMonth, FiscalWeek, FiscalYear


@pytest.fixture
def calendar():
    years = [
        FiscalYear(id="FY25", title="FY 2025", start_date=date(2024, 12, 29), end_date=date(2025, 12, 27)),
        FiscalYear(id="FY26", title="FY 2026", start_date=date(2025, 12, 28), end_date=date(2026, 12, 26)),
    ]
    months = [
        FiscalMonth(id="FY25-01", year_title="FY 2025", start_date=date(2024, 12, 29), end_date=date(2025, 1, 25)),
        FiscalMonth(id="FY25-02", year_title="FY 2025", start_date=date(2025, 1, 26), end_date=date(2025, 2, 22)),
        # Misfiled month for another year that overlaps FY25-01
        FiscalMonth(id="FY26-XX", year_title="FY 2026", start_date=date(2025, 1, 1), end_date=date(2025, 1, 31)),
    ]
    weeks = [
        FiscalWeek(id="FY25-W01", number="1", year_title="FY 2025", month_id="FY25-01",
                   start_date=date(2024, 12, 29), end_date=date(2025, 1, 4)),
        FiscalWeek(id="FY25-W02", number="2", year_title="FY 2025", month_id="FY25-01",
                   start_date=date(2025, 1, 5), end_date=date(2025, 1, 11)),
        FiscalWeek(id="FY25-W05", number="5", year_title="FY 2025", month_id="FY25-02",
                   start_date=date(2025, 1, 26), end_date=date(2025, 2, 1)),
    ]
    return FiscalCalendar(years, months, weeks)


class TestResolve:
    """Date -> (year, month, week) ids."""

    def test_resolves_all_levels(self, calendar):
        ids = calendar.resolve(date(2025, 1, 6))
        assert ids.fiscal_year_id == "FY25"
        assert ids.fiscal_month_id == "FY25-01"
        assert ids.fiscal_week_id == "FY25-W02"

    def test_boundaries_are_inclusive(self, calendar):
        assert calendar.resolve(date(2025, 1, 11)).fiscal_week_id == "FY25-W02"
        assert calendar.resolve(date(2024, 12, 29)).fiscal_week_id == "FY25-W01"

    def test_accepts_sheet_and_iso_strings(self, calendar):
        assert calendar.resolve("01/06/2025").fiscal_week_id == "FY25-W02"
        assert calendar.resolve("2025-01-06T00:00:00.000Z").fiscal_week_id == "FY25-W02"

    def test_invalid_date(self, calendar):
        assert calendar.resolve("not a date") is None
        assert calendar.resolve(None) is None

    def test_no_year(self, calendar):
        assert calendar.resolve(date(2030, 1, 1)) is None

    def test_before_every_year(self, calendar):
        assert calendar.resolve(date(2024, 12, 28)) is None

    def test_year_end_date_is_inclusive(self):
        short = FiscalCalendar(
            [FiscalYear(id="Y1", title="Y1", start_date=date(2025, 1, 1), end_date=date(2025, 1, 14))],
            [FiscalMonth(id="M1", year_title="Y1", start_date=date(2025, 1, 1), end_date=date(2025, 1, 14))],
            [FiscalWeek(id="W2", number="2", year_title="Y1", month_id="M1",
                        start_date=date(2025, 1, 8), end_date=date(2025, 1, 14))],
        )
        ids = short.resolve(date(2025, 1, 14))
        assert (ids.fiscal_year_id, ids.fiscal_month_id, ids.fiscal_week_id) == ("Y1", "M1", "W2")
        assert short.resolve(date(2025, 1, 15)) is None

    def test_no_week_in_month(self, calendar):
        # FY25-01 has no week covering Jan 20
        assert calendar.resolve(date(2025, 1, 20)) is None

    def test_month_must_belong_to_year(self, calendar):
        # FY26-XX also covers Jan 2025 but belongs to FY 2026
        assert calendar.resolve(date(2025, 1, 6)).fiscal_month_id == "FY25-01"


class TestCurrentPeriods:
    """Which week/month is 'now'."""

    def test_current_ids(self, calendar):
        today = date(2025, 1, 27)
        assert calendar.current_week_id(today) == "FY25-W05"
        assert calendar.current_month_id(today) == "FY25-02"

    def test_is_current(self, calendar):
        today = date(2025, 1, 27)
        assert calendar.is_current_week("FY25-W05", today)
        assert not calendar.is_current_week("FY25-W02", today)
        assert calendar.is_current_month("FY25-02", today)
        assert not calendar.is_current_month("FY25-01", today)

    def test_missing_ids_are_never_current(self, calendar):
        today = date(2025, 1, 27)
        assert not calendar.is_current_week(None, today)
        assert not calendar.is_current_month("", today)

    def test_no_current_week(self, calendar):
        today = date(2029, 6, 1)
        assert calendar.current_week_id(today) is None
        assert not calendar.is_current_week("FY25-W05", today)


class TestWithinWindow:
    """Fiscal periods sent to the frontend."""

    def test_filters_by_start_date(self, calendar):
        years, months, weeks = calendar.within_window(days=30, today=date(2025, 1, 10))
        assert [y.id for y in years] == ["FY25"]
        assert [m.id for m in months] == ["FY25-01", "FY25-02", "FY26-XX"]
        assert [w.id for w in weeks] == ["FY25-W01", "FY25-W02", "FY25-W05"]

    def test_periods_without_start_are_dropped(self):
        calendar = FiscalCalendar([FiscalYear(id="X", title="X")], [], [])
        assert calendar.within_window(today=date(2025, 1, 1)) == ([], [], [])


class TestFiscalCalendarCache:
    """The fiscal tables are read once per process."""

    def test_loads_once(self, storage, spreadsheet):
        cache = FiscalCalendarCache()

        first = asyncio.run(cache.get(storage))
        reads = len(spreadsheet.calls)
        second = asyncio.run(cache.get(storage))

        assert first is second
        assert len(spreadsheet.calls) == reads
        assert [w.id for w in first.weeks] == ["W-OLD", "W-PREV", "W-CUR"]

    def test_clear_reloads(self, storage):
        cache = FiscalCalendarCache()
        first = asyncio.run(cache.get(storage))
        cache.clear()
        assert asyncio.run(cache.get(storage)) is not first

    def test_resolves_today_from_the_sheet(self, storage):
        calendar = asyncio.run(FiscalCalendarCache().get(storage))
        ids = calendar.resolve(calendar.today())
        assert (ids.fiscal_year_id, ids.fiscal_month_id, ids.fiscal_week_id) == (
            "FY-1", "M-CUR", "W-CUR",
        )
