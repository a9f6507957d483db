"""
Two-Stage Request Validation

DESIGN DECISION: Request bodies are validated in two distinct stages:

STAGE 1 - SHAPE CHECK:
- Required field presence
- Exact JSON types (a value of "12.50" is NOT a number, tags must be a list)
- Produces the short messages the frontend already knows
  ("Missing or invalid required fields")

STAGE 2 - MODEL PARSING:
- Pydantic models parse dates, coerce ids and clean tags
- Anything stage 1 let through but the model rejects is still a 400

WHY TWO STAGES:
1. The frontend relies on the stage 1 messages
2. Stage 2 gives precise errors for the rarer cases (bad dates, rowIndex < 2)

IMPORTANT: Validation NEVER silently fixes issues and always runs
before any write.
"""

from typing import Any, Iterable, TypeVar

from pydantic import BaseModel, ValidationError

from family_budget.models.ledger import (
    DeleteRequest,
    GoalUpdate,
    HistoryItem,
    HsaReimbursement,
    ItemType,
    RecurringItem,
)


MISSING_FIELDS = "Missing or invalid required fields"
INVALID_ITEM_TYPE = "Missing or invalid itemType"
INVALID_GOAL = "Missing or invalid goal"
INVALID_VALUE = "Missing or invalid value"
MISSING_ID = "Missing id/historyId field in request body."

ModelT = TypeVar("ModelT", bound=BaseModel)


class RequestRejected(Exception):
    """A request the API refuses, with the HTTP status to answer with."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def is_number(value: Any) -> bool:
    """JSON number check: bools and numeric strings don't count."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _describe(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        location = ".".join(str(loc) for loc in err.get("loc", ()))
        parts.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return "; ".join(parts)


class RequestValidator:
    """
    Validates /expenses request bodies.

    Every method either returns a parsed model or raises RequestRejected.
    """

    # -------------------------------------------------------------------------
    # Stage 1
    # -------------------------------------------------------------------------

    @staticmethod
    def _require_body(data: Any) -> dict:
        if not isinstance(data, dict):
            raise RequestRejected("Request body must be a JSON object")
        return data

    def item_type(self, data: Any, allowed: Iterable[ItemType]) -> ItemType:
        data = self._require_body(data)
        raw = data.get("itemType")
        allowed = list(allowed)
        for item_type in allowed:
            if raw == item_type.value:
                return item_type
        raise RequestRejected(INVALID_ITEM_TYPE)

    def _check_ledger_shape(
        self,
        data: dict,
        require_date: bool = False,
        require_row_index: bool = False,
        require_description: bool = False,
    ) -> None:
        ok = (
            bool(data.get("type"))
            and isinstance(data.get("category"), str)
            and isinstance(data.get("tags"), list)
            and is_number(data.get("value"))
            and data.get("id") not in (None, "")
        )
        if require_date:
            ok = ok and bool(data.get("date"))
        if require_row_index:
            ok = ok and is_number(data.get("rowIndex")) and bool(data.get("rowIndex"))
        if require_description:
            ok = ok and bool(data.get("description"))
        if not ok:
            raise RequestRejected(MISSING_FIELDS)

    # -------------------------------------------------------------------------
    # Stage 2
    # -------------------------------------------------------------------------

    @staticmethod
    def _parse(model: type[ModelT], data: dict) -> ModelT:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise RequestRejected(f"{MISSING_FIELDS}: {_describe(e)}")

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def new_history(self, data: dict) -> HistoryItem:
        self._check_ledger_shape(data, require_date=True)
        return self._parse(HistoryItem, data)

    def new_recurring(self, data: dict) -> RecurringItem:
        self._check_ledger_shape(data)
        return self._parse(RecurringItem, data)

    def edited_history(self, data: dict) -> HistoryItem:
        """
        Same fields as a new entry plus rowIndex.

        An entry flagged hsa=true that carries an hsaAmount must carry a number.
        """
        self._check_ledger_shape(data, require_date=True, require_row_index=True)
        hsa_amount = data.get("hsaAmount")
        if hsa_amount not in (None, "") and not is_number(hsa_amount):
            raise RequestRejected(MISSING_FIELDS)
        return self._parse(HistoryItem, data)

    def edited_recurring(self, data: dict) -> RecurringItem:
        self._check_ledger_shape(data, require_row_index=True, require_description=True)
        return self._parse(RecurringItem, data)

    def hsa_reimbursement(self, data: dict) -> HsaReimbursement:
        if data.get("historyId") in (None, "") or not is_number(data.get("hsaAmount")):
            raise RequestRejected(MISSING_FIELDS)
        return self._parse(HsaReimbursement, data)

    def goal_update(self, data: dict) -> GoalUpdate:
        if not is_number(data.get("value")):
            raise RequestRejected(INVALID_GOAL)
        return self._parse(GoalUpdate, data)

    def deletion(self, data: Any) -> DeleteRequest:
        """
        DELETE bodies: the id comes first, then the itemType.

        History deletions also need a numeric value so the goal effect can
        be reversed; this is checked here, before anything is deleted.
        """
        data = self._require_body(data)
        key = "historyId" if data.get("itemType") == ItemType.HSA.value else "id"
        if data.get(key) in (None, ""):
            raise RequestRejected(MISSING_ID)

        self.item_type(data, (ItemType.HISTORY, ItemType.RECURRING, ItemType.HSA))

        if data.get("itemType") == ItemType.HISTORY.value and not is_number(data.get("value")):
            raise RequestRejected(INVALID_VALUE)

        return self._parse(DeleteRequest, data)

