"""Goal adjustment package."""

from family_budget.goals.adjuster import (
    GoalAdjuster,
    apply_added,
    apply_deleted,
    apply_edited,
    is_expense_type,
)

__all__ = [
    "GoalAdjuster",
    "apply_added",
    "apply_deleted",
    "apply_edited",
    "is_expense_type",
]
