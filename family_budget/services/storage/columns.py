"""
Column Mappings

DESIGN DECISION: Rows are never built or read by fixed position.
Each sheet's header row is read at request time and turned into a
{HEADER_NAME: column_index} mapping, so family members can reorder or
insert columns in the spreadsheet without breaking the service.

When a header row can't be read, the defaults below are used. Defaults are
also merged underneath a discovered mapping so a renamed header doesn't
lose its column entirely.
"""

import re
from enum import Enum
from typing import Any, Callable, Iterable, Optional

import structlog


logger = structlog.get_logger(__name__)


class SheetType(str, Enum):
    """Sheets that have a header row and a column mapping."""
    HISTORY = "HISTORY"
    RECURRING = "RECURRING"
    FISCAL_WEEKS = "FISCAL_WEEKS"
    FISCAL_MONTHS = "FISCAL_MONTHS"
    FISCAL_YEARS = "FISCAL_YEARS"
    LOGS = "LOGS"
    METADATA = "METADATA"
    HSA = "HSA"


ColumnMapping = dict[str, int]


DEFAULT_COLUMN_MAPPINGS: dict[SheetType, ColumnMapping] = {
    SheetType.HISTORY: {
        "DATE": 0,
        "TYPE": 1,
        "CATEGORY": 2,
        "TAGS": 3,
        "VALUE": 4,
        "HSA": 5,
        "DESCRIPTION": 6,
        "EDIT_URL": 7,
        "HYPERLINK": 8,
        "ID": 9,
        "FISCAL_YEAR_ID": 10,
        "FISCAL_MONTH_ID": 11,
        "FISCAL_WEEK_ID": 12,
    },
    SheetType.RECURRING: {
        "TYPE": 0,
        "CATEGORY": 1,
        "TAGS": 2,
        "VALUE": 3,
        "DESCRIPTION": 4,
        "EDIT_URL": 5,
        "HYPERLINK": 6,
        "ID": 7,
    },
    SheetType.FISCAL_WEEKS: {
        "ID": 0,
        "NUMBER": 1,
        "START_DATE": 2,
        "END_DATE": 3,
        "YEAR_TITLE": 4,
        "MONTH_ID": 5,
    },
    SheetType.FISCAL_MONTHS: {
        "ID": 0,
        "START_DATE": 1,
        "END_DATE": 2,
        "YEAR_TITLE": 3,
    },
    SheetType.FISCAL_YEARS: {
        "ID": 0,
        "TITLE": 1,
        "START_DATE": 2,
        "END_DATE": 3,
    },
    SheetType.LOGS: {
        "TIMESTAMP": 0,
        "USER_EMAIL": 1,
        "ACTION": 2,
        "DATA": 3,
        "ERROR": 4,
    },
    SheetType.METADATA: {
        "CATEGORY": 0,
        "TAG": 1,
    },
    SheetType.HSA: {
        "HISTORY_ID": 0,
        "REIMBURSEMENT_AMOUNT": 1,
        "REIMBURSEMENT_DATE": 2,
        "NOTES": 3,
    },
}


def normalize_key(key: str) -> str:
    """Data keys become header names: 'edit url' -> 'EDIT_URL'."""
    return re.sub(r"\s+", "_", str(key).strip().upper())


def mapping_from_headers(headers: Iterable[Any]) -> ColumnMapping:
    """
    Build a mapping from a header row.

    Headers are uppercased and trimmed; blank headers are skipped.
    """
    mapping: ColumnMapping = {}
    for index, header in enumerate(headers):
        if header is None:
            continue
        name = str(header).strip().upper()
        if name:
            mapping[name] = index
    return mapping


class ColumnMappings:
    """
    Per-sheet column mappings, rebuilt from header rows on demand.
    """

    def __init__(self):
        self._mappings: dict[SheetType, ColumnMapping] = {
            sheet: dict(mapping) for sheet, mapping in DEFAULT_COLUMN_MAPPINGS.items()
        }

    def initialize(self, header_rows: dict[SheetType, Optional[list]]) -> None:
        """
        Rebuild mappings from header rows.

        Args:
            header_rows: {sheet_type: header_row}. A missing or empty
                header row falls back to that sheet's defaults.
        """
        try:
            mappings: dict[SheetType, ColumnMapping] = {}
            for sheet, defaults in DEFAULT_COLUMN_MAPPINGS.items():
                headers = header_rows.get(sheet)
                discovered = mapping_from_headers(headers) if headers else {}
                # Discovered columns win over defaults
                mappings[sheet] = {**defaults, **discovered}
            self._mappings = mappings
        except Exception as e:
            logger.error("column_mappings_fallback", error=str(e))
            self.reset()

    def reset(self) -> None:
        """Go back to the default mappings."""
        self._mappings = {
            sheet: dict(mapping) for sheet, mapping in DEFAULT_COLUMN_MAPPINGS.items()
        }

    def __getitem__(self, sheet: SheetType) -> ColumnMapping:
        return self._mappings[sheet]

    def index(self, sheet: SheetType, field: str) -> Optional[int]:
        return self._mappings[sheet].get(normalize_key(field))

    def cell(self, row: list, sheet: SheetType, field: str) -> Optional[Any]:
        """Read a named field from a row. Missing columns/cells give None."""
        idx = self.index(sheet, field)
        if idx is None or idx >= len(row):
            return None
        return row[idx]

    def create_sheet_row(
        self,
        data: dict[str, Any],
        sheet: SheetType,
        value_mapper: Optional[Callable[[str, Any], Any]] = None,
    ) -> list:
        """
        Build a row with every value in its mapped column.

        The row is as wide as the highest mapped column and padded with "".
        Keys with no mapped column are ignored.
        """
        mapping = self._mappings[sheet]
        width = max(mapping.values()) + 1 if mapping else 0
        row: list = [""] * width

        for key, value in data.items():
            idx = mapping.get(normalize_key(key))
            if idx is None:
                continue
            row[idx] = value_mapper(key, value) if value_mapper else value

        return row


# =============================================================================
# CELL HELPERS
# =============================================================================

_LEADING_NUMBER = re.compile(r"-?(?:\d+\.?\d*|\.\d+)")


def parse_cell_value(cell: Any) -> float:
    """
    Parse a numeric cell ("$1,234.50", "-12", "") into a float.

    Everything except digits, '.' and '-' is stripped, then the leading
    number is read ("12.5.3" -> 12.5, "1-2" -> 1). No number gives 0.
    """
    if cell is None or cell == "":
        return 0.0
    if isinstance(cell, bool):
        return 0.0
    if isinstance(cell, (int, float)):
        return float(cell)
    cleaned = re.sub(r"[^0-9.\-]", "", str(cell))
    match = _LEADING_NUMBER.match(cleaned)
    return float(match.group(0)) if match else 0.0


def split_tags(cell: Any) -> list[str]:
    """'a, b,,c' -> ['a', 'b', 'c']"""
    if not cell:
        return []
    return [tag.strip() for tag in str(cell).split(",") if tag.strip()]


def join_tags(tags: Iterable[str]) -> str:
    return ", ".join(tags)


def parse_cell_bool(cell: Any) -> bool:
    """Checkbox / USER_ENTERED booleans come back as TRUE/FALSE text."""
    if isinstance(cell, bool):
        return cell
    return str(cell or "").strip().lower() in ("true", "yes", "1", "y")


def hyperlink_formula(url: str, label: str = "Edit") -> str:
    return f'=HYPERLINK("{url}", "{label}")'


def objects_by_id(items: Iterable[dict]) -> dict[str, dict]:
    """[{'id': 'a', 'x': 1}] -> {'a': {'x': 1}}"""
    result: dict[str, dict] = {}
    for item in items:
        item = dict(item)
        item_id = item.pop("id")
        result[item_id] = item
    return result


def find_row_index_by_id(rows: list[list], item_id: str, id_col: Optional[int]) -> int:
    """Index of the first row whose ID column equals `item_id`, or -1."""
    if id_col is None:
        return -1
    for idx, row in enumerate(rows):
        if id_col < len(row) and str(row[id_col]) == str(item_id):
            return idx
    return -1
