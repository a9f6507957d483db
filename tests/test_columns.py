"""
Tests for header-driven column mapping and the cell helpers.
"""

from family_budget.services.storage.columns import (
    ColumnMappings,
    DEFAULT_COLUMN_MAPPINGS,
    SheetType,
    find_row_index_by_id,
    hyperlink_formula,
    join_tags,
    mapping_from_headers,
    normalize_key,
    objects_by_id,
    parse_cell_bool,
    parse_cell_value,
    split_tags,
)


class TestMappingFromHeaders:
    """Header rows become {NAME: index} mappings."""

    def test_uppercases_and_trims(self):
        mapping = mapping_from_headers([" date ", "Type", "edit_url"])
        assert mapping == {"DATE": 0, "TYPE": 1, "EDIT_URL": 2}

    def test_skips_blank_headers(self):
        mapping = mapping_from_headers(["ID", "", None, "VALUE"])
        assert mapping == {"ID": 0, "VALUE": 3}

    def test_normalize_key(self):
        assert normalize_key("edit url") == "EDIT_URL"
        assert normalize_key("fiscalWeekId") == "FISCALWEEKID"


class TestColumnMappings:
    """Per-sheet mappings with defaults underneath."""

    def test_defaults_before_initialize(self):
        columns = ColumnMappings()
        assert columns[SheetType.HISTORY] == DEFAULT_COLUMN_MAPPINGS[SheetType.HISTORY]

    def test_reordered_header_wins(self):
        columns = ColumnMappings()
        columns.initialize({SheetType.LOGS: ["ACTION", "TIMESTAMP", "USER_EMAIL", "DATA", "ERROR"]})
        assert columns.index(SheetType.LOGS, "ACTION") == 0
        assert columns.index(SheetType.LOGS, "TIMESTAMP") == 1

    def test_missing_header_row_falls_back_to_defaults(self):
        columns = ColumnMappings()
        columns.initialize({SheetType.HSA: None, SheetType.METADATA: []})
        assert columns[SheetType.HSA] == DEFAULT_COLUMN_MAPPINGS[SheetType.HSA]
        assert columns[SheetType.METADATA] == DEFAULT_COLUMN_MAPPINGS[SheetType.METADATA]

    def test_extra_columns_are_kept(self):
        columns = ColumnMappings()
        columns.initialize({SheetType.METADATA: ["CATEGORY", "TAG", "COLOR"]})
        assert columns.index(SheetType.METADATA, "color") == 2

    def test_cell_handles_short_rows(self):
        columns = ColumnMappings()
        assert columns.cell(["Groceries"], SheetType.METADATA, "TAG") is None
        assert columns.cell(["Groceries"], SheetType.METADATA, "UNKNOWN") is None
        assert columns.cell(["Groceries"], SheetType.METADATA, "category") == "Groceries"

    def test_create_sheet_row_places_values_by_header(self):
        columns = ColumnMappings()
        columns.initialize({SheetType.HSA: ["NOTES", "HISTORY_ID", "REIMBURSEMENT_AMOUNT"]})
        row = columns.create_sheet_row(
            {"history_id": "h1", "reimbursement amount": 12.5, "notes": "x", "ignored": 1},
            SheetType.HSA,
        )
        assert row == ["x", "h1", 12.5]

    def test_create_sheet_row_pads_with_blanks(self):
        columns = ColumnMappings()
        row = columns.create_sheet_row({"TAG": "food"}, SheetType.METADATA)
        assert row == ["", "food"]

    def test_value_mapper(self):
        columns = ColumnMappings()
        row = columns.create_sheet_row(
            {"CATEGORY": "rent"},
            SheetType.METADATA,
            value_mapper=lambda key, value: value.upper(),
        )
        assert row == ["RENT", ""]


class TestCellHelpers:
    """Parsing helpers for raw cell values."""

    def test_parse_cell_value(self):
        assert parse_cell_value("$1,234.50") == 1234.5
        assert parse_cell_value("-12") == -12.0
        assert parse_cell_value(7) == 7.0
        assert parse_cell_value("") == 0.0
        assert parse_cell_value(None) == 0.0
        assert parse_cell_value("n/a") == 0.0

    def test_parse_cell_value_reads_leading_number(self):
        assert parse_cell_value("12.5.3") == 12.5
        assert parse_cell_value("1-2") == 1.0
        assert parse_cell_value("$-.5") == -0.5
        assert parse_cell_value("--5") == 0.0

    def test_tags(self):
        assert split_tags("a, b,,c ") == ["a", "b", "c"]
        assert split_tags("") == []
        assert join_tags(["a", "b"]) == "a, b"

    def test_parse_cell_bool(self):
        assert parse_cell_bool("TRUE") is True
        assert parse_cell_bool(True) is True
        assert parse_cell_bool("FALSE") is False
        assert parse_cell_bool(None) is False

    def test_hyperlink_formula(self):
        assert hyperlink_formula("https://x") == '=HYPERLINK("https://x", "Edit")'

    def test_objects_by_id(self):
        result = objects_by_id([{"id": "W1", "number": "1"}, {"id": "W2", "number": "2"}])
        assert result == {"W1": {"number": "1"}, "W2": {"number": "2"}}

    def test_find_row_index_by_id(self):
        rows = [["a", "1"], ["b"], ["c", "3"]]
        assert find_row_index_by_id(rows, "3", 1) == 2
        assert find_row_index_by_id(rows, 1, 1) == 0
        assert find_row_index_by_id(rows, "missing", 1) == -1
        assert find_row_index_by_id(rows, "1", None) == -1
