"""Action logging package."""

from family_budget.audit.logger import ActionLogger

__all__ = ["ActionLogger"]
