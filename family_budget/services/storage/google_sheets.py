"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the system of record because:
1. Family members can view and fix their data directly in Sheets
2. No database setup required
3. Built-in backup and edit history (Google's infrastructure)

TRADEOFFS:
- No transactions (we handle this with careful ordering in the flows)
- No concurrency control: rows are addressed by position, so two
  simultaneous edits can race. Acceptable for a family ledger.
- Limited query capabilities (we filter in Python)

Column positions are never hard-coded here; every row goes through
ColumnMappings so reordered sheets keep working.
"""

from typing import Any, Optional

import structlog
from gspread.utils import rowcol_to_a1

from family_budget.config import GoogleSheetsSettings
from family_budget.models.audit import ActionLogEntry
from family_budget.models.fiscal import (
    FiscalMonth,
    FiscalWeek,
    FiscalYear,
    format_sheet_date,
    parse_sheet_date,
)
from family_budget.models.ledger import (
    GoalPeriod,
    Goals,
    HistoryItem,
    HistoryRow,
    HsaReimbursement,
    ItemType,
    LedgerItem,
    RecurringItem,
    RecurringRow,
)
from family_budget.services.storage.columns import (
    ColumnMappings,
    SheetType,
    find_row_index_by_id,
    hyperlink_formula,
    join_tags,
    parse_cell_bool,
    parse_cell_value,
    split_tags,
)
from family_budget.services.storage.interface import (
    ActionLogStorageInterface,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)
from family_budget.services.storage.sheets_client import GoogleSheetsClient, sheet_range


logger = structlog.get_logger(__name__)


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _is_header_like(value: str) -> bool:
    # Some fiscal sheets repeat their header row mid-table
    return value.upper() == "ID"


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    One row per history/recurring entry, one row per HSA reimbursement,
    single cells for goals, and three read-only fiscal tables.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        columns: Optional[ColumnMappings] = None,
    ):
        self._client = client or GoogleSheetsClient()
        self._columns = columns or ColumnMappings()

    @property
    def columns(self) -> ColumnMappings:
        return self._columns

    @property
    def _settings(self) -> GoogleSheetsSettings:
        return self._client.settings

    def _title(self, sheet: SheetType) -> str:
        s = self._settings
        return {
            SheetType.HISTORY: s.history_sheet_name,
            SheetType.RECURRING: s.recurring_sheet_name,
            SheetType.HSA: s.hsa_sheet_name,
            SheetType.LOGS: s.logs_sheet_name,
            SheetType.METADATA: s.metadata_sheet_name,
            SheetType.FISCAL_YEARS: s.fiscal_years_sheet_name,
            SheetType.FISCAL_MONTHS: s.fiscal_months_sheet_name,
            SheetType.FISCAL_WEEKS: s.fiscal_weeks_sheet_name,
        }[sheet]

    async def _rows(self, sheet: SheetType) -> list[list]:
        """All data rows of a sheet (header removed)."""
        return await self._client.get_sheet_data(sheet_range(self._title(sheet)))

    def _row_range(self, sheet: SheetType, row_index: int) -> str:
        width = max(self._columns[sheet].values()) + 1
        cells = f"{rowcol_to_a1(row_index, 1)}:{rowcol_to_a1(row_index, width)}"
        return sheet_range(self._title(sheet), cells)

    def _goal_range(self, period: GoalPeriod) -> str:
        cell = (
            self._settings.weekly_goal_cell
            if period == GoalPeriod.WEEKLY
            else self._settings.monthly_goal_cell
        )
        return sheet_range(self._settings.goals_sheet_name, cell)

    # -------------------------------------------------------------------------
    # Layout
    # -------------------------------------------------------------------------

    async def refresh_column_mappings(self) -> None:
        header_rows: dict[SheetType, Optional[list]] = {}
        for sheet in SheetType:
            try:
                header_rows[sheet] = await self._client.get_header_row(self._title(sheet))
            except Exception as e:
                logger.warning(
                    "header_row_unreadable",
                    sheet=sheet.value,
                    error=str(e),
                )
                header_rows[sheet] = None
        self._columns.initialize(header_rows)

    # -------------------------------------------------------------------------
    # History / recurring
    # -------------------------------------------------------------------------

    async def _hsa_by_history_id(self) -> dict[str, dict]:
        cols = self._columns
        joined: dict[str, dict] = {}
        for row in await self._rows(SheetType.HSA):
            history_id = _text(cols.cell(row, SheetType.HSA, "HISTORY_ID"))
            if not history_id:
                continue
            joined[history_id] = {
                "hsaAmount": parse_cell_value(
                    cols.cell(row, SheetType.HSA, "REIMBURSEMENT_AMOUNT")
                ),
                "hsaDate": parse_sheet_date(cols.cell(row, SheetType.HSA, "REIMBURSEMENT_DATE")),
                "hsaNotes": _text(cols.cell(row, SheetType.HSA, "NOTES")),
            }
        return joined

    def _ledger_fields(self, row: list, sheet: SheetType, row_index: int) -> dict:
        cols = self._columns
        return {
            "id": _text(cols.cell(row, sheet, "ID")),
            "type": _text(cols.cell(row, sheet, "TYPE")),
            "category": _text(cols.cell(row, sheet, "CATEGORY")),
            "tags": split_tags(cols.cell(row, sheet, "TAGS")),
            "value": parse_cell_value(cols.cell(row, sheet, "VALUE")),
            "description": _text(cols.cell(row, sheet, "DESCRIPTION")),
            "editURL": _text(cols.cell(row, sheet, "EDIT_URL")),
            "rowIndex": row_index,
        }

    async def list_history(self) -> list[HistoryRow]:
        try:
            rows = await self._rows(SheetType.HISTORY)
            hsa = await self._hsa_by_history_id()
        except Exception as e:
            raise StorageError(f"Failed to list history: {e}")

        cols = self._columns
        items = []
        for idx, row in enumerate(rows):
            if not any(_text(cell) for cell in row):
                continue
            fields = self._ledger_fields(row, SheetType.HISTORY, idx + 2)
            fields.update({
                "date": cols.cell(row, SheetType.HISTORY, "DATE"),
                "hsa": parse_cell_bool(cols.cell(row, SheetType.HISTORY, "HSA")),
                "fiscalYearId": _text(cols.cell(row, SheetType.HISTORY, "FISCAL_YEAR_ID")) or None,
                "fiscalMonthId": _text(cols.cell(row, SheetType.HISTORY, "FISCAL_MONTH_ID")) or None,
                "fiscalWeekId": _text(cols.cell(row, SheetType.HISTORY, "FISCAL_WEEK_ID")) or None,
            })
            if fields["id"]:
                fields.update(hsa.get(fields["id"], {}))
            items.append(HistoryRow.model_validate(fields))
        return items

    async def list_recurring(self) -> list[RecurringRow]:
        try:
            rows = await self._rows(SheetType.RECURRING)
        except Exception as e:
            raise StorageError(f"Failed to list recurring: {e}")

        return [
            RecurringRow.model_validate(self._ledger_fields(row, SheetType.RECURRING, idx + 2))
            for idx, row in enumerate(rows)
            if any(_text(cell) for cell in row)
        ]

    @staticmethod
    def _sheet_type_for(item: LedgerItem) -> SheetType:
        if isinstance(item, HistoryItem):
            return SheetType.HISTORY
        if isinstance(item, RecurringItem):
            return SheetType.RECURRING
        raise StorageError(f"Unsupported ledger item: {type(item).__name__}")

    @staticmethod
    def _item_fields(item: LedgerItem, edit_url: str, item_id: str) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "TYPE": item.type,
            "CATEGORY": item.category,
            "TAGS": join_tags(item.tags),
            "VALUE": item.value,
            "DESCRIPTION": item.description or "",
            "EDIT_URL": edit_url,
            "HYPERLINK": hyperlink_formula(edit_url),
            "ID": item_id,
        }
        if isinstance(item, HistoryItem):
            fields.update({
                "DATE": format_sheet_date(item.date),
                "HSA": item.hsa,
                "FISCAL_YEAR_ID": item.fiscal_year_id or "",
                "FISCAL_MONTH_ID": item.fiscal_month_id or "",
                "FISCAL_WEEK_ID": item.fiscal_week_id or "",
            })
        return fields

    async def insert_item(self, item: LedgerItem) -> None:
        sheet = self._sheet_type_for(item)
        try:
            await self.add_missing_tags(item.tags)
            row = self._columns.create_sheet_row(
                self._item_fields(item, item.edit_url, item.id),
                sheet,
            )
            await self._client.append_rows(sheet_range(self._title(sheet)), [row])
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to insert {sheet.value.lower()} item: {e}")

        logger.info("ledger_item_inserted", sheet=sheet.value, id=item.id)

    async def update_item(self, item: LedgerItem) -> list:
        sheet = self._sheet_type_for(item)
        if item.row_index is None:
            raise NotFoundError(f"{sheet.value.lower()} item {item.id} has no rowIndex")

        row_range = self._row_range(sheet, item.row_index)
        try:
            existing = await self._client.get_sheet_data(row_range, remove_header=False)
        except Exception as e:
            raise StorageError(f"Failed to read {row_range}: {e}")

        if not existing or not existing[0]:
            raise NotFoundError(
                f"{sheet.value.lower()} item not found at rowIndex {item.row_index}"
            )
        original = existing[0]

        existing_id = _text(self._columns.cell(original, sheet, "ID"))
        if not existing_id:
            raise NotFoundError(f"ID not found in the existing {sheet.value.lower()} row")
        existing_url = _text(self._columns.cell(original, sheet, "EDIT_URL"))

        if isinstance(item, HistoryItem):
            # Fiscal ids the caller didn't send stay as they were
            item = item.model_copy(update={
                "fiscal_year_id": item.fiscal_year_id
                or _text(self._columns.cell(original, sheet, "FISCAL_YEAR_ID")),
                "fiscal_month_id": item.fiscal_month_id
                or _text(self._columns.cell(original, sheet, "FISCAL_MONTH_ID")),
                "fiscal_week_id": item.fiscal_week_id
                or _text(self._columns.cell(original, sheet, "FISCAL_WEEK_ID")),
            })

        try:
            await self.add_missing_tags(item.tags)
            row = self._columns.create_sheet_row(
                self._item_fields(item, existing_url, existing_id),
                sheet,
            )
            await self._client.update_row(row_range, [row])
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update {row_range}: {e}")

        logger.info(
            "ledger_item_updated",
            sheet=sheet.value,
            id=existing_id,
            row_index=item.row_index,
        )
        return original

    @staticmethod
    def _sheet_type_for_item_type(item_type: ItemType) -> SheetType:
        if item_type == ItemType.HISTORY:
            return SheetType.HISTORY
        if item_type == ItemType.RECURRING:
            return SheetType.RECURRING
        raise StorageError(f"No ledger sheet for item type {item_type}")

    def value_from_row(self, item_type: ItemType, row: list) -> float:
        sheet = self._sheet_type_for_item_type(item_type)
        return parse_cell_value(self._columns.cell(row, sheet, "VALUE"))

    async def delete_item(self, item_type: ItemType, item_id: str) -> None:
        sheet = self._sheet_type_for_item_type(item_type)

        try:
            rows = await self._rows(sheet)
        except Exception as e:
            raise StorageError(f"Failed to read {sheet.value.lower()} rows: {e}")

        idx = find_row_index_by_id(rows, item_id, self._columns.index(sheet, "ID"))
        if idx == -1:
            raise NotFoundError(f"{sheet.value.lower()} item with ID {item_id} not found.")

        # Data index -> 1-based sheet row below the header
        try:
            await self._client.delete_row(self._title(sheet), idx + 2)
        except Exception as e:
            raise StorageError(f"Failed to delete {sheet.value.lower()} item {item_id}: {e}")

        logger.info("ledger_item_deleted", sheet=sheet.value, id=item_id)

    # -------------------------------------------------------------------------
    # HSA
    # -------------------------------------------------------------------------

    async def upsert_hsa_item(self, reimbursement: HsaReimbursement) -> None:
        row = self._columns.create_sheet_row(
            {
                "HISTORY_ID": reimbursement.history_id,
                "REIMBURSEMENT_AMOUNT": reimbursement.amount,
                "REIMBURSEMENT_DATE": (
                    format_sheet_date(reimbursement.reimbursement_date)
                    if reimbursement.reimbursement_date
                    else ""
                ),
                "NOTES": reimbursement.notes,
            },
            SheetType.HSA,
        )
        try:
            rows = await self._rows(SheetType.HSA)
            idx = find_row_index_by_id(
                rows,
                reimbursement.history_id,
                self._columns.index(SheetType.HSA, "HISTORY_ID"),
            )
            if idx == -1:
                await self._client.append_rows(sheet_range(self._title(SheetType.HSA)), [row])
            else:
                await self._client.update_row(self._row_range(SheetType.HSA, idx + 2), [row])
        except Exception as e:
            raise StorageError(
                f"Failed to save HSA reimbursement for {reimbursement.history_id}: {e}"
            )

    async def delete_hsa_item(self, history_id: str) -> bool:
        try:
            rows = await self._rows(SheetType.HSA)
            idx = find_row_index_by_id(
                rows,
                history_id,
                self._columns.index(SheetType.HSA, "HISTORY_ID"),
            )
            if idx == -1:
                return False
            await self._client.delete_row(self._title(SheetType.HSA), idx + 2)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete HSA reimbursement for {history_id}: {e}")

    # -------------------------------------------------------------------------
    # Metadata
    # -------------------------------------------------------------------------

    async def get_categories_and_tags(self) -> tuple[list[str], list[str]]:
        try:
            rows = await self._rows(SheetType.METADATA)
        except Exception as e:
            raise StorageError(f"Failed to read metadata: {e}")

        categories: list[str] = []
        tags: list[str] = []
        for row in rows:
            category = _text(self._columns.cell(row, SheetType.METADATA, "CATEGORY"))
            tag = _text(self._columns.cell(row, SheetType.METADATA, "TAG"))
            if category and category not in categories:
                categories.append(category)
            if tag and tag not in tags:
                tags.append(tag)
        return categories, tags

    async def add_missing_tags(self, tags: list[str]) -> list[str]:
        if not tags:
            return []

        _, existing = await self.get_categories_and_tags()
        missing: list[str] = []
        for tag in tags:
            if tag and tag not in existing and tag not in missing:
                missing.append(tag)
        if not missing:
            return []

        rows = [
            self._columns.create_sheet_row({"TAG": tag}, SheetType.METADATA)
            for tag in missing
        ]
        try:
            await self._client.append_rows(sheet_range(self._title(SheetType.METADATA)), rows)
        except Exception as e:
            raise StorageError(f"Failed to add tags: {e}")

        logger.info("metadata_tags_added", tags=missing)
        return missing

    # -------------------------------------------------------------------------
    # Goals
    # -------------------------------------------------------------------------

    async def read_goal(self, period: GoalPeriod) -> float:
        try:
            return parse_cell_value(await self._client.read_single_cell(self._goal_range(period)))
        except Exception as e:
            raise StorageError(f"Failed to read {period.value} goal: {e}")

    async def read_goals(self) -> Goals:
        return Goals(
            weekly=await self.read_goal(GoalPeriod.WEEKLY),
            monthly=await self.read_goal(GoalPeriod.MONTHLY),
        )

    async def write_goal(self, period: GoalPeriod, value: float) -> None:
        try:
            await self._client.update_single_cell(self._goal_range(period), value)
        except Exception as e:
            raise StorageError(f"Failed to write {period.value} goal: {e}")

    # -------------------------------------------------------------------------
    # Fiscal tables
    # -------------------------------------------------------------------------

    def _period_fields(self, row: list, sheet: SheetType) -> Optional[dict]:
        period_id = _text(self._columns.cell(row, sheet, "ID"))
        if not period_id or _is_header_like(period_id):
            return None
        return {
            "id": period_id,
            "start_date": parse_sheet_date(self._columns.cell(row, sheet, "START_DATE")),
            "end_date": parse_sheet_date(self._columns.cell(row, sheet, "END_DATE")),
        }

    async def load_fiscal_tables(
        self,
    ) -> tuple[list[FiscalYear], list[FiscalMonth], list[FiscalWeek]]:
        try:
            year_rows = await self._rows(SheetType.FISCAL_YEARS)
            month_rows = await self._rows(SheetType.FISCAL_MONTHS)
            week_rows = await self._rows(SheetType.FISCAL_WEEKS)
        except Exception as e:
            raise StorageError(f"Failed to read fiscal tables: {e}")

        cols = self._columns
        years: list[FiscalYear] = []
        for row in year_rows:
            fields = self._period_fields(row, SheetType.FISCAL_YEARS)
            if fields:
                years.append(FiscalYear(
                    title=_text(cols.cell(row, SheetType.FISCAL_YEARS, "TITLE")),
                    **fields,
                ))

        months: list[FiscalMonth] = []
        for row in month_rows:
            fields = self._period_fields(row, SheetType.FISCAL_MONTHS)
            if fields:
                months.append(FiscalMonth(
                    year_title=_text(cols.cell(row, SheetType.FISCAL_MONTHS, "YEAR_TITLE")),
                    **fields,
                ))

        weeks: list[FiscalWeek] = []
        for row in week_rows:
            fields = self._period_fields(row, SheetType.FISCAL_WEEKS)
            if fields:
                weeks.append(FiscalWeek(
                    number=_text(cols.cell(row, SheetType.FISCAL_WEEKS, "NUMBER")),
                    year_title=_text(cols.cell(row, SheetType.FISCAL_WEEKS, "YEAR_TITLE")),
                    month_id=_text(cols.cell(row, SheetType.FISCAL_WEEKS, "MONTH_ID")),
                    **fields,
                ))

        logger.info(
            "fiscal_tables_loaded",
            years=len(years),
            months=len(months),
            weeks=len(weeks),
        )
        return years, months, weeks


class GoogleSheetsActionLogStorage(ActionLogStorageInterface):
    """
    Google Sheets implementation of the action log.

    Entries are append-only.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        columns: Optional[ColumnMappings] = None,
    ):
        self._client = client or GoogleSheetsClient()
        self._columns = columns or ColumnMappings()

    async def append_entry(self, entry: ActionLogEntry) -> bool:
        """Append an entry. Failures are logged, never raised."""
        try:
            row = self._columns.create_sheet_row(entry.to_sheet_fields(), SheetType.LOGS)
            await self._client.append_rows(
                sheet_range(self._client.settings.logs_sheet_name),
                [row],
            )
            return True
        except Exception as e:
            # Logging must not break the request that triggered it
            logger.error(
                "action_log_write_failed",
                action=entry.action.value,
                error=str(e),
            )
            return False
