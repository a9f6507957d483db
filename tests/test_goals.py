"""
Tests for goal arithmetic and the goal adjuster.
"""

import asyncio

import pytest

from family_budget.goals import (
    GoalAdjuster,
    apply_added,
    apply_deleted,
    apply_edited,
    is_expense_type,
)
from family_budget.models.ledger import GoalPeriod, HistoryItem

from tests.conftest import logged_actions


def run(coro):
    return asyncio.run(coro)


def history(value: float, entry_type: str = "Expense", week: str = "W-CUR", month: str = "M-CUR"):
    return HistoryItem.model_validate({
        "id": "h9",
        "date": "2025-01-06",
        "type": entry_type,
        "category": "Groceries",
        "tags": [],
        "value": value,
        "fiscalYearId": "FY-1",
        "fiscalMonthId": month,
        "fiscalWeekId": week,
    })


class TestGoalArithmetic:
    """Pure goal math."""

    def test_expense_type_is_case_insensitive(self):
        assert is_expense_type("Expense")
        assert is_expense_type(" EXPENSE ")
        assert not is_expense_type("Refund")
        assert not is_expense_type(None)

    def test_added(self):
        assert apply_added(100, 12.5, "expense") == 87.5
        assert apply_added(100, 12.5, "Refund") == 112.5

    def test_edited(self):
        assert apply_edited(100, 10, 15, "Expense") == 95
        assert apply_edited(100, 15, 10, "Expense") == 105
        assert apply_edited(100, 10, 15, "Income") == 105
        assert apply_edited(100, 10, 10, "Expense") == 100

    def test_deleted_reverses_added(self):
        for entry_type in ("Expense", "Refund"):
            assert apply_deleted(apply_added(250, 33.33, entry_type), 33.33, entry_type) == 250

    def test_rounds_to_cents(self):
        assert apply_added(0.3, 0.1, "Expense") == 0.2
        assert apply_added(100, 0.005, "Income") == pytest.approx(100.0, abs=0.01)


class TestGoalAdjuster:
    """Only the current fiscal week/month moves."""

    @pytest.fixture
    def adjuster(self, storage, calendars, action_logger):
        return GoalAdjuster(storage, calendars, action_logger)

    def test_current_period_expense(self, adjuster, storage, spreadsheet):
        run(adjuster.on_added(history(20)))

        assert run(storage.read_goal(GoalPeriod.WEEKLY)) == 80.0
        assert run(storage.read_goal(GoalPeriod.MONTHLY)) == 480.0
        assert logged_actions(spreadsheet) == ["UPDATE_WEEKLY_GOAL", "UPDATE_MONTHLY_GOAL"]

    def test_past_week_in_current_month(self, adjuster, storage, spreadsheet):
        run(adjuster.on_added(history(20, week="W-PREV")))

        assert run(storage.read_goal(GoalPeriod.WEEKLY)) == 100.0
        assert run(storage.read_goal(GoalPeriod.MONTHLY)) == 480.0
        assert logged_actions(spreadsheet) == ["UPDATE_MONTHLY_GOAL"]

    def test_past_periods_leave_goals_alone(self, adjuster, storage, spreadsheet):
        run(adjuster.on_added(history(20, week="W-OLD", month="M-PREV")))

        assert run(storage.read_goals()).weekly == 100.0
        assert run(storage.read_goals()).monthly == 500.0
        assert logged_actions(spreadsheet) == []

    def test_edit_moves_by_difference(self, adjuster, storage):
        run(adjuster.on_edited(history(30), old_value=25))
        assert run(storage.read_goal(GoalPeriod.WEEKLY)) == 95.0

    def test_unchanged_edit_is_a_no_op(self, adjuster, spreadsheet):
        run(adjuster.on_edited(history(25), old_value=25))
        assert logged_actions(spreadsheet) == []

    def test_delete_gives_income_back(self, adjuster, storage):
        run(adjuster.on_deleted("Income", 50, "W-CUR", "M-CUR", user_email="a@example.com"))
        assert run(storage.read_goal(GoalPeriod.WEEKLY)) == 50.0
        assert run(storage.read_goal(GoalPeriod.MONTHLY)) == 450.0

    def test_log_records_before_and_after(self, adjuster, spreadsheet):
        run(adjuster.on_added(history(20)))
        data = spreadsheet.data_rows("Logs")[0][3]
        assert '"before": 100.0' in data
        assert '"after": 80.0' in data

    def test_write_failure_is_swallowed(self, adjuster, spreadsheet):
        del spreadsheet.sheets["Goals"]
        run(adjuster.on_added(history(20)))
        assert logged_actions(spreadsheet) == []
