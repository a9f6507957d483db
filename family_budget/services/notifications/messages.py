"""
Notification Content

Builds the text and FCM message payloads. Nothing here does I/O, so the
exact wording can be tested directly.
"""

import json
import math
from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from family_budget.models.fiscal import parse_sheet_date
from family_budget.models.ledger import DeleteRequest, HistoryItem, NotificationAction


MONEY_ICON = "\U0001F4B2"  # heavy dollar sign
SEPARATOR = " • "

# Alias so the `date` field below does not shadow the type
Day = date

_TITLE_PREFIX = {
    NotificationAction.ADDED: "New",
    NotificationAction.UPDATED: "Updated",
    NotificationAction.DELETED: "Deleted",
}

_BY_VERB = {
    NotificationAction.ADDED: "Added",
    NotificationAction.UPDATED: "Updated",
    NotificationAction.DELETED: "Deleted",
}


class ExpenseNotice(BaseModel):
    """
    What a notification says about a history entry.

    Built from a saved HistoryItem, or from a delete payload, which may
    carry only a few of these fields.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = None
    date: Optional[Day] = None
    type: str = ""
    category: str = ""
    description: str = ""
    value: Any = 0
    tags: list[str] = Field(default_factory=list)
    hsa: bool = False
    user_email: Optional[str] = Field(default=None, alias="userEmail")
    hsa_amount: Optional[float] = Field(default=None, alias="hsaAmount")

    @field_validator('id', mode='before')
    @classmethod
    def coerce_id(cls, v):
        return None if v is None else str(v)

    @field_validator('date', mode='before')
    @classmethod
    def lenient_date(cls, v):
        return parse_sheet_date(v)

    @field_validator('type', 'category', 'description', mode='before')
    @classmethod
    def empty_text(cls, v):
        return "" if v is None else str(v)

    @classmethod
    def from_history(cls, item: HistoryItem) -> "ExpenseNotice":
        return cls(
            id=item.id,
            date=item.date,
            type=item.type,
            category=item.category,
            description=item.description,
            value=item.value,
            tags=item.tags,
            hsa=item.hsa,
            user_email=item.user_email,
            hsa_amount=item.hsa_amount,
        )

    @classmethod
    def from_deletion(cls, request: DeleteRequest) -> "ExpenseNotice":
        """Only the already validated delete fields; the rest of the body is ignored."""
        return cls(
            id=request.id,
            date=request.entry_date,
            type=request.type,
            category=request.category,
            description=request.description,
            value=request.value,
            user_email=request.user_email,
        )


def format_currency(amount: Any) -> str:
    """
    Absolute value as USD: -1234.5 -> '$1,234.50'.

    Anything that isn't a finite number gives '$0.00'.
    """
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        return "$0.00"
    if math.isnan(amount) or math.isinf(amount):
        return "$0.00"
    return f"${abs(amount):,.2f}"


def format_short_date(day: date) -> str:
    """1/5/2025 style, no zero padding."""
    return f"{day.month}/{day.day}/{day.year}"


def expense_title(
    notice: ExpenseNotice,
    action: NotificationAction = NotificationAction.ADDED,
) -> str:
    """'💲 New Expense - Groceries: $12.50'"""
    amount = format_currency(notice.value)
    category = notice.category or "Expense"
    type_part = f"{notice.type} - " if notice.type else ""
    return f"{MONEY_ICON} {_TITLE_PREFIX[action]} {type_part}{category}: {amount}"


def expense_body(
    notice: ExpenseNotice,
    action: NotificationAction = NotificationAction.ADDED,
    today: Optional[date] = None,
) -> str:
    amount = format_currency(notice.value)
    category = notice.category or "Uncategorized"
    user_name = (notice.user_email or "Unknown user").split("@")[0]
    description = notice.description.strip()

    parts = [f"{amount}{SEPARATOR}{category}"]
    if notice.type:
        parts.append(f"Type: {notice.type}")
    if description and description.lower() != "no description":
        parts.append(f'"{description}"')
    parts.append(f"{_BY_VERB[action]} by {user_name}")
    if notice.hsa_amount and notice.hsa_amount > 0:
        parts.append(f"HSA Reimbursable: {format_currency(notice.hsa_amount)}")
    if notice.date and notice.date != (today or date.today()):
        parts.append(f"Date: {format_short_date(notice.date)}")

    return SEPARATOR.join(parts)


# =============================================================================
# FCM PAYLOADS
# =============================================================================

def expense_message(
    token: str,
    title: str,
    body: str,
    notice: ExpenseNotice,
    action: NotificationAction,
    sent_at_ms: int,
) -> dict:
    """Rich message with android, webpush and data blocks."""
    return {
        "token": token,
        "notification": {"title": title, "body": body},
        "android": {
            "notification": {
                "title": title,
                "body": body,
                "icon": "ic_notification",
                "color": "#2E7D32",
                "default_sound": True,
                "channel_id": "budget_expenses",
                # Distinct tags keep separate expenses from collapsing
                "tag": f"expense_{notice.category}_{sent_at_ms}",
            },
            "priority": "high",
        },
        "webpush": {
            "notification": {
                "title": title,
                "body": body,
                "icon": "/icon-192x192.png",
                "badge": "/badge-72x72.png",
                "requireInteraction": False,
                "silent": False,
            },
            "headers": {"Urgency": "high"},
        },
        # FCM data values must be strings
        "data": {
            "title": title,
            "body": body,
            "icon": "/favicon.ico",
            "expenseId": notice.id or "",
            "actionType": action.value,
        },
    }


def basic_message(token: str, title: str, body: str, data: Optional[dict] = None) -> dict:
    message: dict = {
        "token": token,
        "notification": {"title": title, "body": body},
    }
    if data:
        message["data"] = {str(k): str(v) for k, v in data.items()}
    return message


def legacy_message(token: str, title: str, body: str) -> dict:
    """Data-only message; the service worker renders it."""
    return {
        "token": token,
        "data": {"title": title, "body": body, "icon": "/favicon.ico"},
    }


def dummy_expense_notice(today: date, sent_at_ms: int) -> ExpenseNotice:
    """Fixed dummy expense for the test endpoint. Never saved."""
    return ExpenseNotice(
        id=str(sent_at_ms),
        date=today,
        type="Expense",
        category="Groceries",
        description="Whole Foods Weekly Shopping - Organic Produce & Essentials",
        value=127.43,
        tags=["organic", "weekly-shopping", "family", "essentials"],
        hsa=False,
        user_email="john.davis@example.com",
    )


def dummy_expense_message(
    token: str,
    title: str,
    body: str,
    notice: ExpenseNotice,
    sent_at_ms: int,
) -> dict:
    message = expense_message(
        token, title, body, notice, NotificationAction.ADDED, sent_at_ms
    )
    message["data"].update({
        "type": "expense_added",
        "amount": str(notice.value),
        "description": notice.description,
        "category": notice.category,
        "hsa": str(notice.hsa).lower(),
        "tags": json.dumps(notice.tags),
        "date": notice.date.isoformat() if notice.date else "",
        "timestamp": str(sent_at_ms),
        "isTest": "true",
    })
    return message
