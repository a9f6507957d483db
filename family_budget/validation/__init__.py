"""Request validation package."""

from family_budget.validation.validator import (
    RequestRejected,
    RequestValidator,
    is_number,
)

__all__ = [
    "RequestRejected",
    "RequestValidator",
    "is_number",
]
