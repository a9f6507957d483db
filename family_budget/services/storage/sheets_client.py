"""
Google Sheets Client

Low-level access to the budget spreadsheet. Everything above this module
speaks in named fields (see columns.py); everything here speaks in A1
ranges and raw rows.

DESIGN DECISION: All reads/writes go through the Spreadsheet-level
values API (values_get / values_append / values_update) instead of
Worksheet helpers. One call per range keeps us well under the Sheets
quota for a family-sized ledger.

gspread is blocking, so every API call runs on a worker thread and the
event loop stays free while a request waits on Google.
"""

import asyncio
from typing import Any, Optional

import gspread
import structlog
from google.oauth2.service_account import Credentials
from gspread.utils import absolute_range_name
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from family_budget.config import GoogleSheetsSettings, get_settings
from family_budget.services.storage.interface import ConnectionError


logger = structlog.get_logger(__name__)


SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]

# Quota / 5xx errors are worth retrying; bad ranges are not, but
# gspread raises APIError for both.
api_retry = retry(
    retry=retry_if_exception_type(gspread.exceptions.APIError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


def sheet_range(sheet_title: str, cells: Optional[str] = None) -> str:
    """
    'Fiscal Weeks', 'A:F' -> "'Fiscal Weeks'!A:F"

    Without `cells` the whole sheet is addressed.
    """
    if not cells:
        return absolute_range_name(sheet_title)
    return absolute_range_name(sheet_title, cells)


class GoogleSheetsClient:
    """
    Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(
        self,
        settings: Optional[GoogleSheetsSettings] = None,
        spreadsheet: Optional[gspread.Spreadsheet] = None,
    ):
        """
        Args:
            settings: Sheets settings; loaded from the environment when None.
            spreadsheet: An already-open spreadsheet (skips authentication).
        """
        self._settings = settings
        self._client: Optional[gspread.Client] = None
        self._spreadsheet = spreadsheet

    @property
    def settings(self) -> GoogleSheetsSettings:
        if self._settings is None:
            self._settings = get_settings().google_sheets
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                credentials = Credentials.from_service_account_file(
                    self.settings.credentials_path,
                    scopes=SCOPES,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self.settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(self.settings.spreadsheet_id)
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self.settings.spreadsheet_id}"
                )
        return self._spreadsheet

    # -------------------------------------------------------------------------
    # Blocking calls (retried, run on a worker thread)
    # -------------------------------------------------------------------------

    @api_retry
    def _values_get(self, range_name: str) -> list[list]:
        response = self.get_spreadsheet().values_get(range_name)
        return response.get("values", []) or []

    @api_retry
    def _values_append(self, range_name: str, rows: list[list]) -> None:
        self.get_spreadsheet().values_append(
            range_name,
            params={
                "valueInputOption": "USER_ENTERED",
                "insertDataOption": "INSERT_ROWS",
            },
            body={"values": rows},
        )

    @api_retry
    def _values_update(self, range_name: str, rows: list[list]) -> None:
        self.get_spreadsheet().values_update(
            range_name,
            params={"valueInputOption": "USER_ENTERED"},
            body={"values": rows},
        )

    @api_retry
    def _delete_rows(self, sheet_title: str, row_index: int) -> None:
        self.get_spreadsheet().worksheet(sheet_title).delete_rows(row_index)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_sheet_data(self, range_name: str, remove_header: bool = True) -> list[list]:
        """
        Read a range as a list of rows.

        Rows come back ragged (trailing blanks trimmed by the API).
        An empty range gives [].
        """
        rows = await asyncio.to_thread(self._values_get, range_name)
        if remove_header:
            return rows[1:]
        return rows

    async def get_header_row(self, sheet_title: str) -> list:
        rows = await self.get_sheet_data(sheet_range(sheet_title, "1:1"), remove_header=False)
        return rows[0] if rows else []

    async def read_single_cell(self, range_name: str) -> Any:
        """Value of a single cell, or None when blank."""
        rows = await self.get_sheet_data(range_name, remove_header=False)
        if not rows or not rows[0]:
            return None
        return rows[0][0]

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def append_rows(self, range_name: str, rows: list[list]) -> None:
        """Append rows after the last row of the range's table."""
        await asyncio.to_thread(self._values_append, range_name, rows)
        logger.debug("sheet_rows_appended", range=range_name, count=len(rows))

    async def update_row(self, range_name: str, rows: list[list]) -> None:
        """Overwrite the cells of `range_name`."""
        await asyncio.to_thread(self._values_update, range_name, rows)
        logger.debug("sheet_rows_updated", range=range_name, count=len(rows))

    async def update_single_cell(self, range_name: str, value: Any) -> None:
        await self.update_row(range_name, [[value]])

    async def delete_row(self, sheet_title: str, row_index: int) -> None:
        """
        Delete one row and shift the rows below it up.

        Args:
            sheet_title: Worksheet title
            row_index: 1-based sheet row (row 1 is the header)
        """
        if row_index < 2:
            raise ValueError(f"Refusing to delete header row {row_index} of {sheet_title}")
        await asyncio.to_thread(self._delete_rows, sheet_title, row_index)
        logger.debug("sheet_row_deleted", sheet=sheet_title, row_index=row_index)
