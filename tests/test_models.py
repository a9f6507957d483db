"""
Tests for Family Budget models

Test strategy:
1. Unit tests for individual components (models, validators, helpers)
2. Flow tests against an in-memory spreadsheet (see conftest.py)
3. No real API calls in tests (fakes and httpx.MockTransport)
"""

import json
from datetime import date, datetime, timezone

import pytest

from family_budget.models.audit import ActionLogEntry, ActionType, log_timestamp
from family_budget.models.fiscal import (
    FiscalIds,
    FiscalWeek,
    format_sheet_date,
    parse_sheet_date,
)
from family_budget.models.ledger import (
    DeleteRequest,
    Goals,
    HistoryItem,
    HsaReimbursement,
    ItemType,
    RecurringItem,
)


class TestFiscalModels:
    """Tests for fiscal calendar models and date helpers."""

    def test_parse_sheet_date_formats(self):
        """Test the date formats seen in sheets and requests."""
        assert parse_sheet_date("01/06/2025") == date(2025, 1, 6)
        assert parse_sheet_date("1/6/2025") == date(2025, 1, 6)
        assert parse_sheet_date("2025-01-06") == date(2025, 1, 6)
        assert parse_sheet_date("2025-01-06T07:00:00.000Z") == date(2025, 1, 6)
        assert parse_sheet_date(datetime(2025, 1, 6, 12, 0)) == date(2025, 1, 6)

    def test_parse_sheet_date_invalid(self):
        """Test that unparseable input gives None instead of raising."""
        assert parse_sheet_date("") is None
        assert parse_sheet_date("yesterday") is None
        assert parse_sheet_date(None) is None

    def test_format_sheet_date(self):
        """Test History sheet date format."""
        assert format_sheet_date(date(2025, 1, 6)) == "01/06/2025"

    def test_period_contains_is_inclusive(self):
        """Test both ends of a period count."""
        week = FiscalWeek(id="W1", start_date=date(2025, 1, 5), end_date=date(2025, 1, 11))
        assert week.contains(date(2025, 1, 5))
        assert week.contains(date(2025, 1, 11))
        assert not week.contains(date(2025, 1, 12))

    def test_period_without_dates_never_matches(self):
        """Test that half-filled fiscal rows are ignored."""
        assert not FiscalWeek(id="W1", start_date=date(2025, 1, 5)).contains(date(2025, 1, 5))

    def test_fiscal_ids_serialize_with_aliases(self):
        """Test FiscalIds uses the frontend's field names."""
        ids = FiscalIds(fiscal_year_id="FY", fiscal_month_id="M", fiscal_week_id="W")
        assert ids.model_dump(by_alias=True) == {
            "fiscalYearId": "FY",
            "fiscalMonthId": "M",
            "fiscalWeekId": "W",
        }


class TestLedgerModels:
    """Tests for history, recurring and HSA models."""

    def test_history_from_frontend_json(self):
        """Test a POST body validates as-is."""
        item = HistoryItem.model_validate({
            "itemType": "history",
            "id": 1736200000000,
            "date": "2025-01-06",
            "type": "Expense",
            "category": "Groceries",
            "tags": [" food ", "", "weekly"],
            "value": 12.5,
            "editURL": "https://example.com/edit",
        })
        assert item.id == "1736200000000"
        assert item.tags == ["food", "weekly"]
        assert item.edit_url == "https://example.com/edit"
        assert item.description == ""

    def test_history_rejects_string_value(self):
        """Test that values must be JSON numbers."""
        with pytest.raises(ValueError):
            HistoryItem.model_validate({
                "id": "h1",
                "date": "2025-01-06",
                "type": "Expense",
                "category": "Groceries",
                "tags": [],
                "value": "12.5",
            })

    def test_history_serializes_sheet_dates(self):
        """Test GET responses carry MM/DD/YYYY dates."""
        item = HistoryItem(
            id="h1",
            date=date(2025, 1, 6),
            type="Expense",
            category="Groceries",
            tags=[],
            value=1,
            hsa_date=date(2025, 2, 1),
        )
        dumped = item.model_dump(mode="json", by_alias=True, exclude_none=True)
        assert dumped["date"] == "01/06/2025"
        assert dumped["hsaDate"] == "02/01/2025"
        assert "fiscalWeekId" not in dumped

    def test_with_fiscal_ids(self):
        """Test fiscal ids are attached without mutating the original."""
        item = HistoryItem(id="h1", date=date(2025, 1, 6), type="Expense",
                           category="x", tags=[], value=1)
        ids = FiscalIds(fiscal_year_id="FY", fiscal_month_id="M", fiscal_week_id="W")
        updated = item.with_fiscal_ids(ids)
        assert updated.fiscal_ids == ids
        assert item.fiscal_ids is None

    def test_row_index_must_skip_header(self):
        """Test rowIndex 1 (the header) is rejected."""
        with pytest.raises(ValueError):
            RecurringItem(id="r1", type="Expense", category="x", tags=[], value=1, row_index=1)

    def test_hsa_reimbursement_aliases(self):
        """Test HSA bodies use historyId/hsaAmount/hsaDate/hsaNotes."""
        hsa = HsaReimbursement.model_validate({
            "historyId": 7,
            "hsaAmount": 20,
            "hsaDate": "",
            "hsaNotes": None,
        })
        assert hsa.history_id == "7"
        assert hsa.amount == 20.0
        assert hsa.reimbursement_date is None
        assert hsa.notes == ""

    def test_goals_aliases(self):
        """Test goal serialization."""
        assert Goals(weekly=1, monthly=2).model_dump(by_alias=True) == {
            "weeklyGoal": 1.0,
            "monthlyGoal": 2.0,
        }

    def test_delete_request_is_lenient(self):
        """Test DELETE bodies tolerate missing descriptive fields."""
        request = DeleteRequest.model_validate({
            "itemType": "history",
            "id": 5,
            "value": "oops",
            "date": "not a date",
            "category": None,
        })
        assert request.item_type == ItemType.HISTORY
        assert request.target_id == "5"
        assert request.value is None
        assert request.entry_date is None
        assert request.category == ""


class TestAuditModels:
    """Tests for Logs sheet models."""

    def test_log_timestamp_uses_fixed_offset(self):
        """Test timestamps are rendered in MST regardless of server tz."""
        now = datetime(2025, 1, 3, 21, 5, 6, tzinfo=timezone.utc)
        assert log_timestamp(-7, now) == "2025-01-03T14:05:06"

    def test_log_timestamp_naive_is_utc(self):
        """Test naive datetimes are treated as UTC."""
        assert log_timestamp(0, datetime(2025, 1, 3, 21, 5, 6)) == "2025-01-03T21:05:06"

    def test_error_actions(self):
        """Test which actions are logged at error level."""
        assert ActionType.POST_ERROR.is_error
        assert ActionType.BASIC_NOTIFICATION_UNAUTHORIZED.is_error
        assert not ActionType.ADD_HISTORY.is_error

    def test_to_sheet_fields(self):
        """Test conversion to Logs sheet fields."""
        entry = ActionLogEntry(
            timestamp="2025-01-03T14:05:06",
            action=ActionType.PUT_ERROR,
            user_email="sam@example.com",
            data={"id": "h1", "when": date(2025, 1, 3)},
            error_message='Row "5" missing',
        )
        fields = entry.to_sheet_fields()
        assert fields["ACTION"] == "PUT_ERROR"
        assert json.loads(fields["DATA"]) == {"id": "h1", "when": "2025-01-03"}
        assert fields["DATA"].startswith("{\n  ")
        assert fields["ERROR"] == '"Row \\"5\\" missing"'

    def test_to_sheet_fields_empty(self):
        """Test blank DATA and ERROR cells."""
        fields = ActionLogEntry(timestamp="t", action=ActionType.ADD_HISTORY).to_sheet_fields()
        assert fields["DATA"] == ""
        assert fields["ERROR"] == ""
        assert fields["USER_EMAIL"] == ""


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
