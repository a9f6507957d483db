"""
Shared fixtures.

No test talks to Google or Firebase: the spreadsheet is an in-memory
stand-in for the handful of gspread Spreadsheet calls the storage layer
makes, and FCM goes through httpx.MockTransport.
"""

import json
import re
from datetime import timedelta
from typing import Any, Optional

import httpx
import pytest

from family_budget.audit import ActionLogger
from family_budget.config import GoogleSheetsSettings
from family_budget.fiscal import FiscalCalendarCache
from family_budget.fiscal.calendar import local_today
from family_budget.models.fiscal import format_sheet_date
from family_budget.services.notifications import FcmClient, TokenStoreInterface
from family_budget.services.storage import (
    GoogleSheetsActionLogStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
)
from family_budget.services.storage.columns import DEFAULT_COLUMN_MAPPINGS, SheetType


# =============================================================================
# FAKE SPREADSHEET
# =============================================================================

_CELL = re.compile(r"^([A-Z]*)(\d*)$")


def _column_number(letters: str) -> int:
    number = 0
    for ch in letters:
        number = number * 26 + (ord(ch) - ord("A") + 1)
    return number


def _split_range(range_name: str) -> tuple[str, Optional[str]]:
    """"'History'!A2:M2" -> ('History', 'A2:M2')"""
    if "!" in range_name:
        title, cells = range_name.rsplit("!", 1)
    else:
        title, cells = range_name, None
    if title.startswith("'") and title.endswith("'"):
        title = title[1:-1].replace("''", "'")
    return title, cells


def _bounds(cells: Optional[str]) -> tuple[int, int, Optional[int], Optional[int]]:
    """1-based (first_row, first_col, last_row, last_col); None is unbounded."""
    if not cells:
        return 1, 1, None, None
    start, _, end = cells.partition(":")
    end = end or start
    s_col, s_row = _CELL.match(start).groups()
    e_col, e_row = _CELL.match(end).groups()
    return (
        int(s_row) if s_row else 1,
        _column_number(s_col) if s_col else 1,
        int(e_row) if e_row else None,
        _column_number(e_col) if e_col else None,
    )


def _trim(row: list) -> list:
    row = list(row)
    while row and row[-1] in ("", None):
        row.pop()
    return row


class FakeWorksheet:
    def __init__(self, spreadsheet: "FakeSpreadsheet", title: str):
        self._spreadsheet = spreadsheet
        self.title = title

    def delete_rows(self, index: int) -> None:
        self._spreadsheet.sheets[self.title].pop(index - 1)


class FakeSpreadsheet:
    """
    Rows are kept as Python lists, header included.

    Reads trim trailing blanks the way the Sheets API does.
    """

    def __init__(self, sheets: Optional[dict[str, list[list]]] = None):
        self.sheets: dict[str, list[list]] = {
            title: [list(row) for row in rows] for title, rows in (sheets or {}).items()
        }
        self.calls: list[tuple[str, str]] = []

    def _sheet(self, title: str) -> list[list]:
        if title not in self.sheets:
            raise KeyError(f"Unknown sheet {title}")
        return self.sheets[title]

    def values_get(self, range_name: str, params=None) -> dict:
        self.calls.append(("get", range_name))
        title, cells = _split_range(range_name)
        rows = self._sheet(title)
        first_row, first_col, last_row, last_col = _bounds(cells)

        selected = rows[first_row - 1:last_row]
        values = [
            _trim(row[first_col - 1:last_col]) for row in selected
        ]
        while values and not values[-1]:
            values.pop()
        response: dict[str, Any] = {"range": range_name}
        if values:
            response["values"] = values
        return response

    def values_append(self, range_name: str, params=None, body=None) -> dict:
        self.calls.append(("append", range_name))
        title, _ = _split_range(range_name)
        self._sheet(title).extend(list(row) for row in body["values"])
        return {}

    def values_update(self, range_name: str, params=None, body=None) -> dict:
        self.calls.append(("update", range_name))
        title, cells = _split_range(range_name)
        rows = self._sheet(title)
        first_row, first_col, _, _ = _bounds(cells)

        for offset, values in enumerate(body["values"]):
            row_number = first_row + offset
            while len(rows) < row_number:
                rows.append([])
            row = rows[row_number - 1]
            needed = first_col - 1 + len(values)
            if len(row) < needed:
                row.extend([""] * (needed - len(row)))
            row[first_col - 1:needed] = values
        return {}

    def worksheet(self, title: str) -> FakeWorksheet:
        self._sheet(title)
        return FakeWorksheet(self, title)

    def data_rows(self, title: str) -> list[list]:
        return self.sheets[title][1:]


def default_headers(sheet: SheetType) -> list[str]:
    mapping = DEFAULT_COLUMN_MAPPINGS[sheet]
    return [name for name, _ in sorted(mapping.items(), key=lambda kv: kv[1])]


# =============================================================================
# BUDGET WORKBOOK
# =============================================================================

TODAY = local_today(-7)


def day(offset: int) -> str:
    return format_sheet_date(TODAY + timedelta(days=offset))


def history_row(
    item_id: str,
    value: float,
    entry_type: str = "Expense",
    category: str = "Groceries",
    offset: int = 0,
    week_id: str = "W-CUR",
    month_id: str = "M-CUR",
) -> list:
    return [
        day(offset),         # DATE
        entry_type,          # TYPE
        category,            # CATEGORY
        "food, weekly",      # TAGS
        value,               # VALUE
        "FALSE",             # HSA
        "Weekly shop",       # DESCRIPTION
        f"https://example.com/edit/{item_id}",  # EDIT_URL
        "=HYPERLINK(...)",   # HYPERLINK
        item_id,             # ID
        "FY-1",              # FISCAL_YEAR_ID
        month_id,            # FISCAL_MONTH_ID
        week_id,             # FISCAL_WEEK_ID
    ]


def budget_workbook() -> dict[str, list[list]]:
    """A small but complete budget spreadsheet centred on today."""
    return {
        "History": [
            default_headers(SheetType.HISTORY),
            history_row("h1", 25.0),
            history_row("h2", 40.0, offset=-38, week_id="W-OLD", month_id="M-PREV"),
        ],
        "Recurring": [
            default_headers(SheetType.RECURRING),
            ["Expense", "Utilities", "bills", "$120.00", "Power", "https://example.com/r1", "", "r1"],
        ],
        "HSA": [
            default_headers(SheetType.HSA),
            ["h1", "10", day(0), "pharmacy"],
        ],
        "Logs": [default_headers(SheetType.LOGS)],
        "Metadata": [
            default_headers(SheetType.METADATA),
            ["Groceries", "food"],
            ["Utilities", "weekly"],
            ["Groceries", ""],
        ],
        "Goals": [
            ["Weekly", "Monthly"],
            [100, 500],
        ],
        "Fiscal Years": [
            default_headers(SheetType.FISCAL_YEARS),
            ["FY-1", "FY Current", day(-200), day(165)],
            ["FY-OLD", "FY Ancient", day(-2000), day(-1600)],
        ],
        "Fiscal Months": [
            default_headers(SheetType.FISCAL_MONTHS),
            ["M-PREV", day(-40), day(-11), "FY Current"],
            ["M-CUR", day(-10), day(10), "FY Current"],
        ],
        "Fiscal Weeks": [
            default_headers(SheetType.FISCAL_WEEKS),
            ["W-OLD", "1", day(-40), day(-34), "FY Current", "M-PREV"],
            ["W-PREV", "5", day(-10), day(-4), "FY Current", "M-CUR"],
            ["W-CUR", "6", day(-3), day(3), "FY Current", "M-CUR"],
        ],
    }


@pytest.fixture
def sheets_settings():
    # Any existing file will do for the credentials path
    return GoogleSheetsSettings(credentials_path=__file__, spreadsheet_id="test-spreadsheet")


@pytest.fixture
def spreadsheet():
    return FakeSpreadsheet(budget_workbook())


@pytest.fixture
def sheets_client(sheets_settings, spreadsheet):
    return GoogleSheetsClient(sheets_settings, spreadsheet=spreadsheet)


@pytest.fixture
def storage(sheets_client):
    return GoogleSheetsLedgerStorage(sheets_client)


@pytest.fixture
def action_logger(sheets_client, storage):
    return ActionLogger(GoogleSheetsActionLogStorage(sheets_client, storage.columns))


@pytest.fixture
def calendars():
    return FiscalCalendarCache()


def logged_actions(spreadsheet: FakeSpreadsheet) -> list[str]:
    """ACTION column of every Logs row, oldest first."""
    return [row[2] for row in spreadsheet.data_rows("Logs")]


# =============================================================================
# FCM
# =============================================================================

SEND_URL = "https://fcm.example.test/v1/projects/demo/messages:send"


class StaticTokenStore(TokenStoreInterface):
    def __init__(self, tokens):
        self.tokens = list(tokens)

    async def list_raw_tokens(self):
        return list(self.tokens)


class RecordingFcm:
    """MockTransport handler that fails for tokens starting with 'bad'."""

    def __init__(self):
        self.messages: list[dict] = []
        self.headers: list[httpx.Headers] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        message = json.loads(request.content)["message"]
        self.messages.append(message)
        self.headers.append(request.headers)
        if message["token"].startswith("bad"):
            return httpx.Response(404, json={"error": {"status": "NOT_FOUND"}})
        return httpx.Response(200, json={"name": "projects/demo/messages/1"})


@pytest.fixture
def fcm_handler():
    return RecordingFcm()


@pytest.fixture
def fcm(fcm_handler):
    return FcmClient(SEND_URL, lambda: "access-token", transport=httpx.MockTransport(fcm_handler))
