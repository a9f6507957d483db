"""
Audit Models for Family Budget

Every write to the spreadsheet, every goal change and every notification
attempt is recorded as a row in the Logs sheet. Family members can open the
sheet and see who changed what.

DESIGN DECISION: The Logs sheet is append-only. We never delete or modify rows.
"""

import json
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class ActionType(str, Enum):
    """
    Types of actions we record.

    Values are written verbatim into the ACTION column.
    """
    # History / recurring writes
    ADD_HISTORY = "ADD_HISTORY"
    ADD_RECURRING = "ADD_RECURRING"
    UPDATE_HISTORY = "UPDATE_HISTORY"
    UPDATE_RECURRING = "UPDATE_RECURRING"
    DELETE_HISTORY = "DELETE_HISTORY"
    DELETE_RECURRING = "DELETE_RECURRING"

    # HSA
    UPDATE_HSA = "UPDATE_HSA"
    DELETE_HSA = "DELETE_HSA"
    DELETE_HSA_AUTO = "DELETE_HSA_AUTO"

    # Goals
    UPDATE_WEEKLY_GOAL = "UPDATE_WEEKLY_GOAL"
    UPDATE_MONTHLY_GOAL = "UPDATE_MONTHLY_GOAL"

    # Request failures
    POST_ERROR = "POST_ERROR"
    PUT_ERROR = "PUT_ERROR"
    DELETE_ERROR = "DELETE_ERROR"
    TOP_LEVEL_ERROR = "TOP_LEVEL_ERROR"

    # Notifications
    NOTIFICATION_SENT = "NOTIFICATION_SENT"
    NOTIFICATION_SKIPPED = "NOTIFICATION_SKIPPED"
    NOTIFICATION_ERROR = "NOTIFICATION_ERROR"
    BASIC_NOTIFICATION_SENT = "BASIC_NOTIFICATION_SENT"
    BASIC_NOTIFICATION_SKIPPED = "BASIC_NOTIFICATION_SKIPPED"
    BASIC_NOTIFICATION_ERROR = "BASIC_NOTIFICATION_ERROR"
    BASIC_NOTIFICATION_UNAUTHORIZED = "BASIC_NOTIFICATION_UNAUTHORIZED"
    TEST_EXPENSE_NOTIFICATION = "TEST_EXPENSE_NOTIFICATION"
    TEST_EXPENSE_NOTIFICATION_ERROR = "TEST_EXPENSE_NOTIFICATION_ERROR"
    TEST_EXPENSE_NOTIFICATION_UNAUTHORIZED = "TEST_EXPENSE_NOTIFICATION_UNAUTHORIZED"

    @property
    def is_error(self) -> bool:
        return self.value.endswith("_ERROR") or self.value.endswith("_UNAUTHORIZED")


def log_timestamp(utc_offset_hours: int = -7, now: Optional[datetime] = None) -> str:
    """
    Timestamp for the Logs sheet, e.g. 2025-01-03T14:05:06.

    Always a fixed offset (MST by default), regardless of server timezone.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local = now.astimezone(timezone(timedelta(hours=utc_offset_hours)))
    return local.strftime("%Y-%m-%dT%H:%M:%S")


class ActionLogEntry(BaseModel):
    """
    A single row of the Logs sheet.
    """

    timestamp: str = Field(
        ...,
        description="Fixed-offset timestamp (see log_timestamp)"
    )
    action: ActionType
    user_email: str = Field(
        default="",
        description="Who triggered the action, when known"
    )
    data: dict[str, Any] = Field(
        default_factory=dict,
        description="Action payload"
    )
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "timestamp": self.timestamp,
            "action": self.action.value,
            "user_email": self.user_email,
            "data": self.data,
            "error_message": self.error_message,
        }

    def to_sheet_fields(self) -> dict[str, str]:
        """
        Named fields for the Logs sheet.

        DATA is pretty-printed JSON (empty when there is no data);
        ERROR is the JSON-encoded message.
        """
        return {
            "TIMESTAMP": self.timestamp,
            "USER_EMAIL": self.user_email,
            "ACTION": self.action.value,
            "DATA": json.dumps(self.data, indent=2, default=str) if self.data else "",
            "ERROR": json.dumps(self.error_message) if self.error_message else "",
        }
