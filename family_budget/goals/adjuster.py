"""
Goal Adjuster

The Goals sheet holds two numbers: how much is left to spend this fiscal
week and this fiscal month. Adding, editing or deleting a history entry
that falls in the CURRENT week/month moves those numbers; entries in any
other period leave them alone.

DESIGN DECISION: The arithmetic is pure functions so it can be tested
without a spreadsheet. GoalAdjuster only decides which goals apply and
does the read-modify-write. There is no locking: two simultaneous writes
can lose an update, which is acceptable for a family ledger.
"""

from typing import Any, Callable, Optional

import structlog

from family_budget.audit import ActionLogger
from family_budget.fiscal import FiscalCalendarCache
from family_budget.models.audit import ActionType
from family_budget.models.ledger import GoalPeriod, HistoryItem
from family_budget.services.storage import LedgerStorageInterface


logger = structlog.get_logger(__name__)


def is_expense_type(entry_type: Optional[str]) -> bool:
    """'Expense', 'expense', 'EXPENSE' -> True; anything else -> False."""
    return (entry_type or "").strip().lower() == "expense"


def _cents(value: float) -> float:
    return round(value, 2)


def apply_added(goal: float, value: float, entry_type: str) -> float:
    """Expenses use up the goal; refunds and income give it back."""
    if is_expense_type(entry_type):
        return _cents(goal - value)
    return _cents(goal + value)


def apply_edited(goal: float, old_value: float, new_value: float, entry_type: str) -> float:
    delta = new_value - old_value
    if delta == 0:
        return _cents(goal)
    if is_expense_type(entry_type):
        return _cents(goal - delta)
    return _cents(goal + delta)


def apply_deleted(goal: float, value: float, entry_type: str) -> float:
    """Undo apply_added."""
    if is_expense_type(entry_type):
        return _cents(goal + value)
    return _cents(goal - value)


_GOAL_ACTIONS = {
    GoalPeriod.WEEKLY: ActionType.UPDATE_WEEKLY_GOAL,
    GoalPeriod.MONTHLY: ActionType.UPDATE_MONTHLY_GOAL,
}


class GoalAdjuster:
    """
    Applies history changes to the weekly and monthly goals.

    Failures are logged and swallowed per period: a goal that could not be
    adjusted never fails the ledger write that triggered it.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        calendars: FiscalCalendarCache,
        action_logger: ActionLogger,
    ):
        self._storage = storage
        self._calendars = calendars
        self._action_logger = action_logger

    async def on_added(self, item: HistoryItem) -> None:
        await self._adjust(
            item.fiscal_week_id,
            item.fiscal_month_id,
            lambda goal: apply_added(goal, item.value, item.type),
            {
                "itemType": "history",
                "type": item.type,
                "userEmail": item.user_email,
                "value": item.value,
            },
        )

    async def on_edited(self, item: HistoryItem, old_value: float) -> None:
        if item.value == old_value:
            return
        await self._adjust(
            item.fiscal_week_id,
            item.fiscal_month_id,
            lambda goal: apply_edited(goal, old_value, item.value, item.type),
            {
                "itemType": "history",
                "type": item.type,
                "userEmail": item.user_email,
                "oldValue": old_value,
                "newValue": item.value,
                "difference": _cents(abs(item.value - old_value)),
            },
        )

    async def on_deleted(
        self,
        entry_type: str,
        value: float,
        fiscal_week_id: Optional[str],
        fiscal_month_id: Optional[str],
        user_email: Optional[str] = None,
    ) -> None:
        await self._adjust(
            fiscal_week_id,
            fiscal_month_id,
            lambda goal: apply_deleted(goal, value, entry_type),
            {
                "itemType": "history",
                "type": entry_type,
                "userEmail": user_email,
                "value": value,
                "reason": "deleted",
            },
        )

    async def _adjust(
        self,
        fiscal_week_id: Optional[str],
        fiscal_month_id: Optional[str],
        compute: Callable[[float], float],
        log_data: dict[str, Any],
    ) -> None:
        for period, period_id in (
            (GoalPeriod.WEEKLY, fiscal_week_id),
            (GoalPeriod.MONTHLY, fiscal_month_id),
        ):
            if not period_id:
                continue
            try:
                calendar = await self._calendars.get(self._storage)
                if period == GoalPeriod.WEEKLY:
                    current = calendar.is_current_week(period_id)
                else:
                    current = calendar.is_current_month(period_id)
                if not current:
                    continue

                before = await self._storage.read_goal(period)
                after = compute(before)
                await self._storage.write_goal(period, after)
                await self._action_logger.log(
                    _GOAL_ACTIONS[period],
                    {**log_data, "before": before, "after": after},
                )
            except Exception as e:
                logger.error(
                    "goal_adjust_failed",
                    period=period.value,
                    period_id=period_id,
                    error=str(e),
                )
