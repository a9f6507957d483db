"""
Core Data Models for Family Budget

These models define the schemas for everything the frontend sends and the
spreadsheet stores:
1. History entries (one expense/refund/income on a date)
2. Recurring entries (templates for the forecast view)
3. HSA reimbursements (linked to a history entry)
4. Goal updates

DESIGN DECISION: Field aliases match the frontend's camelCase JSON
(editURL, rowIndex, fiscalWeekId, ...) so payloads validate as-is and
responses serialize back with `by_alias=True`.
"""

from datetime import date
from enum import Enum
from typing import Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
)

from family_budget.models.fiscal import FiscalIds, format_sheet_date, parse_sheet_date


# =============================================================================
# ENUMS
# =============================================================================

class ItemType(str, Enum):
    """What a request body is about (the `itemType` field)."""
    HISTORY = "history"
    RECURRING = "recurring"
    HSA = "hsa"
    WEEKLY_GOAL = "weeklyGoal"
    MONTHLY_GOAL = "monthlyGoal"


class GoalPeriod(str, Enum):
    """The two single-cell goals on the Goals sheet."""
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class NotificationAction(str, Enum):
    """Which change triggered an expense notification."""
    ADDED = "added"
    UPDATED = "updated"
    DELETED = "deleted"


def _strict_number(v):
    # JSON numbers only; "12.5" and true are rejected
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        raise ValueError("must be a number")
    return float(v)


def _optional_date(v):
    if v is None or v == "":
        return None
    parsed = parse_sheet_date(v)
    if parsed is None:
        raise ValueError(f"invalid date: {v!r}")
    return parsed


# =============================================================================
# LEDGER ITEMS
# =============================================================================

class LedgerItem(BaseModel):
    """Fields shared by history and recurring entries."""
    model_config = ConfigDict(
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    id: str = Field(..., min_length=1)
    type: str = Field(
        ...,
        min_length=1,
        description="Expense, Refund, Income... compared case-insensitively"
    )
    category: str
    tags: list[str]
    value: float
    description: str = ""
    edit_url: str = Field(default="", alias="editURL")
    user_email: Optional[str] = Field(default=None, alias="userEmail")
    row_index: Optional[int] = Field(
        default=None,
        alias="rowIndex",
        ge=2,
        description="1-based sheet row (row 1 is the header)"
    )

    @field_validator('id', mode='before')
    @classmethod
    def coerce_id(cls, v):
        """Numeric ids (Date.now() style) are stored as text."""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator('value', mode='before')
    @classmethod
    def require_number(cls, v):
        return _strict_number(v)

    @field_validator('description', mode='before')
    @classmethod
    def empty_description(cls, v):
        return v or ""

    @field_validator('tags')
    @classmethod
    def clean_tags(cls, v: list[str]) -> list[str]:
        return [tag.strip() for tag in v if tag and tag.strip()]


class HistoryItem(LedgerItem):
    """
    A dated expense, refund or income entry.

    Fiscal ids are filled in by the server from the date; the frontend sends
    them back on edit/delete so goals can be reversed.
    """

    item_type: Literal["history"] = Field(default="history", alias="itemType")
    date: date
    hsa: bool = False

    fiscal_year_id: Optional[str] = Field(default=None, alias="fiscalYearId")
    fiscal_month_id: Optional[str] = Field(default=None, alias="fiscalMonthId")
    fiscal_week_id: Optional[str] = Field(default=None, alias="fiscalWeekId")

    # Joined from the HSA sheet on read; accepted on edit
    hsa_amount: Optional[float] = Field(default=None, alias="hsaAmount")
    hsa_date: Optional[date] = Field(default=None, alias="hsaDate")
    hsa_notes: Optional[str] = Field(default=None, alias="hsaNotes")

    @field_validator('date', mode='before')
    @classmethod
    def parse_date(cls, v):
        parsed = parse_sheet_date(v)
        if parsed is None:
            raise ValueError(f"invalid date: {v!r}")
        return parsed

    @field_validator('hsa_date', mode='before')
    @classmethod
    def parse_hsa_date(cls, v):
        return _optional_date(v)

    @field_validator('hsa_amount', mode='before')
    @classmethod
    def parse_hsa_amount(cls, v):
        if v is None or v == "":
            return None
        return _strict_number(v)

    @field_serializer('date', 'hsa_date')
    def serialize_sheet_date(self, v: Optional[date]) -> Optional[str]:
        return format_sheet_date(v) if v else None

    @property
    def fiscal_ids(self) -> Optional[FiscalIds]:
        if not (self.fiscal_year_id and self.fiscal_month_id and self.fiscal_week_id):
            return None
        return FiscalIds(
            fiscal_year_id=self.fiscal_year_id,
            fiscal_month_id=self.fiscal_month_id,
            fiscal_week_id=self.fiscal_week_id,
        )

    def with_fiscal_ids(self, ids: FiscalIds) -> "HistoryItem":
        return self.model_copy(update={
            "fiscal_year_id": ids.fiscal_year_id,
            "fiscal_month_id": ids.fiscal_month_id,
            "fiscal_week_id": ids.fiscal_week_id,
        })


class RecurringItem(LedgerItem):
    """A recurring income/expense used for the forecast view."""

    item_type: Literal["recurring"] = Field(default="recurring", alias="itemType")


# =============================================================================
# SHEET ROWS (read side)
# =============================================================================

class LedgerRow(BaseModel):
    """
    A history or recurring row as the sheet holds it.

    The sheet is edited by hand, so reads never reject a row: blank cells
    become empty strings and an unreadable date is passed through as text.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    type: str = ""
    category: str = ""
    tags: list[str] = Field(default_factory=list)
    value: float = 0.0
    description: str = ""
    edit_url: str = Field(default="", alias="editURL")
    row_index: int = Field(..., alias="rowIndex")


class HistoryRow(LedgerRow):
    item_type: Literal["history"] = Field(default="history", alias="itemType")
    entry_date: str = Field(default="", alias="date")
    hsa: bool = False

    fiscal_year_id: Optional[str] = Field(default=None, alias="fiscalYearId")
    fiscal_month_id: Optional[str] = Field(default=None, alias="fiscalMonthId")
    fiscal_week_id: Optional[str] = Field(default=None, alias="fiscalWeekId")

    hsa_amount: Optional[float] = Field(default=None, alias="hsaAmount")
    hsa_date: Optional[date] = Field(default=None, alias="hsaDate")
    hsa_notes: Optional[str] = Field(default=None, alias="hsaNotes")

    @field_validator('entry_date', mode='before')
    @classmethod
    def normalize_date(cls, v):
        parsed = parse_sheet_date(v)
        if parsed is not None:
            return format_sheet_date(parsed)
        return "" if v is None else str(v).strip()

    @field_serializer('hsa_date')
    def serialize_hsa_date(self, v: Optional[date]) -> Optional[str]:
        return format_sheet_date(v) if v else None


class RecurringRow(LedgerRow):
    item_type: Literal["recurring"] = Field(default="recurring", alias="itemType")


class HsaReimbursement(BaseModel):
    """
    An HSA reimbursement linked to one history entry.

    The HSA sheet is keyed by the history id; there is at most one
    reimbursement per history entry.
    """
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    history_id: str = Field(..., min_length=1, alias="historyId")
    amount: float = Field(..., alias="hsaAmount")
    reimbursement_date: Optional[date] = Field(default=None, alias="hsaDate")
    notes: str = Field(default="", alias="hsaNotes")
    user_email: Optional[str] = Field(default=None, alias="userEmail")

    @field_validator('history_id', mode='before')
    @classmethod
    def coerce_history_id(cls, v):
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator('amount', mode='before')
    @classmethod
    def require_number(cls, v):
        return _strict_number(v)

    @field_validator('reimbursement_date', mode='before')
    @classmethod
    def parse_date(cls, v):
        return _optional_date(v)

    @field_validator('notes', mode='before')
    @classmethod
    def empty_notes(cls, v):
        return v or ""


class GoalUpdate(BaseModel):
    """Direct overwrite of the weekly or monthly goal cell."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    item_type: Literal["weeklyGoal", "monthlyGoal"] = Field(..., alias="itemType")
    value: float
    user_email: Optional[str] = Field(default=None, alias="userEmail")

    @field_validator('value', mode='before')
    @classmethod
    def require_number(cls, v):
        return _strict_number(v)

    @property
    def period(self) -> GoalPeriod:
        return GoalPeriod.WEEKLY if self.item_type == "weeklyGoal" else GoalPeriod.MONTHLY


class Goals(BaseModel):
    """Current remaining goals as read from the Goals sheet."""
    model_config = ConfigDict(populate_by_name=True)

    weekly: float = Field(default=0.0, alias="weeklyGoal")
    monthly: float = Field(default=0.0, alias="monthlyGoal")


class DeleteRequest(BaseModel):
    """
    Body of a DELETE request.

    History and recurring entries are addressed by `id`, HSA
    reimbursements by `historyId`. The other fields describe the deleted
    history entry so its goal effect can be reversed and announced.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    item_type: ItemType = Field(..., alias="itemType")
    id: Optional[str] = None
    history_id: Optional[str] = Field(default=None, alias="historyId")
    value: Optional[float] = None
    type: str = ""
    category: str = ""
    description: str = ""
    entry_date: Optional[date] = Field(default=None, alias="date")
    fiscal_month_id: Optional[str] = Field(default=None, alias="fiscalMonthId")
    fiscal_week_id: Optional[str] = Field(default=None, alias="fiscalWeekId")
    user_email: Optional[str] = Field(default=None, alias="userEmail")

    @field_validator('id', 'history_id', mode='before')
    @classmethod
    def coerce_ids(cls, v):
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v or None

    @field_validator('value', mode='before')
    @classmethod
    def optional_number(cls, v):
        # Only history deletions require a number (checked by the validator)
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return None
        return float(v)

    @field_validator('entry_date', mode='before')
    @classmethod
    def lenient_date(cls, v):
        # Only used for display and as a fiscal fallback
        return parse_sheet_date(v)

    @field_validator('type', 'category', 'description', mode='before')
    @classmethod
    def empty_text(cls, v):
        return "" if v is None else str(v)

    @property
    def target_id(self) -> Optional[str]:
        if self.item_type == ItemType.HSA:
            return self.history_id
        return self.id
