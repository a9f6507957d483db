"""
Main Orchestrator for Family Budget

This module ties together all the components and defines the
end-to-end flows for:
1. /expenses (GET everything; POST/PUT/DELETE ledger entries, HSA, goals)
2. /notifications (basic, test-expense and legacy senders)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Every request re-reads the sheet headers before touching rows
- Validation runs before any write
- Every write is logged to the Logs sheet
- Goal adjustments and notifications never fail the write that caused them

Flows return (status_code, body) pairs and know nothing about HTTP
frameworks, so they can be driven directly from tests.
"""

from typing import Any, Awaitable, Callable, NamedTuple, Optional

import structlog

from family_budget.audit import ActionLogger
from family_budget.config import Settings, get_settings
from family_budget.fiscal import FiscalCalendar, FiscalCalendarCache
from family_budget.goals import GoalAdjuster
from family_budget.models.audit import ActionType
from family_budget.models.ledger import (
    DeleteRequest,
    GoalPeriod,
    HsaReimbursement,
    ItemType,
    NotificationAction,
)
from family_budget.services.notifications import (
    ExpenseNotice,
    FcmClient,
    FirestoreTokenStore,
    NotificationError,
    NotificationService,
)
from family_budget.services.storage import (
    GoogleSheetsActionLogStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    LedgerStorageInterface,
    NotFoundError,
)
from family_budget.services.storage.columns import objects_by_id
from family_budget.validation import RequestRejected, RequestValidator


logger = structlog.get_logger(__name__)


INTERNAL_ERROR = {"error": "Internal Server Error"}

# Schedules a coroutine function to run after the response is sent
# (FastAPI's BackgroundTasks.add_task has this shape)
Defer = Callable[..., None]


class FlowResult(NamedTuple):
    status_code: int
    body: Any


def _error(message: str, status_code: int = 400) -> FlowResult:
    return FlowResult(status_code, {"error": message})


_METHOD_ERRORS = {
    "POST": ActionType.POST_ERROR,
    "PUT": ActionType.PUT_ERROR,
    "DELETE": ActionType.DELETE_ERROR,
}

_GOAL_ACTIONS = {
    GoalPeriod.WEEKLY: ActionType.UPDATE_WEEKLY_GOAL,
    GoalPeriod.MONTHLY: ActionType.UPDATE_MONTHLY_GOAL,
}


class ExpensesFlow:
    """
    Orchestrates the /expenses endpoint.

    Flow for every request:
    1. Refresh column mappings from the header rows
    2. Make sure the fiscal calendar is loaded (once per process)
    3. Dispatch on the HTTP method
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        action_logger: ActionLogger,
        calendars: Optional[FiscalCalendarCache] = None,
        goal_adjuster: Optional[GoalAdjuster] = None,
        notifications: Optional[NotificationService] = None,
        validator: Optional[RequestValidator] = None,
        fiscal_window_days: int = 365,
    ):
        self._storage = storage
        self._action_logger = action_logger
        self._calendars = calendars or FiscalCalendarCache()
        self._goals = goal_adjuster or GoalAdjuster(storage, self._calendars, action_logger)
        self._notifications = notifications
        self._validator = validator or RequestValidator()
        self._fiscal_window_days = fiscal_window_days

    async def handle(
        self,
        method: str,
        body: Any = None,
        defer: Optional[Defer] = None,
    ) -> FlowResult:
        method = method.upper()
        try:
            await self._storage.refresh_column_mappings()
            calendar = await self._calendars.get(self._storage)

            if method == "GET":
                return await self.handle_get(calendar)
            if method not in _METHOD_ERRORS:
                return _error("Method Not Allowed", 405)
        except Exception as e:
            logger.exception("expenses_request_failed", method=method)
            await self._action_logger.log(
                ActionType.TOP_LEVEL_ERROR,
                {"method": method},
                str(e),
            )
            return FlowResult(500, INTERNAL_ERROR)

        data = body if isinstance(body, dict) else {}
        try:
            if method == "POST":
                return await self.handle_post(body, calendar, defer)
            if method == "PUT":
                return await self.handle_put(body, defer)
            return await self.handle_delete(body, calendar, defer)
        except RequestRejected as e:
            return _error(e.message, e.status_code)
        except NotFoundError as e:
            return _error(str(e), 404)
        except Exception as e:
            logger.exception("expenses_write_failed", method=method)
            await self._action_logger.log(_METHOD_ERRORS[method], data, str(e))
            return FlowResult(500, INTERNAL_ERROR)

    async def _notify(
        self,
        notice: ExpenseNotice,
        action: NotificationAction,
        defer: Optional[Defer],
    ) -> None:
        if self._notifications is None:
            return
        if defer is not None:
            defer(self._notifications.send_expense_notification, notice, action)
        else:
            await self._notifications.send_expense_notification(notice, action)

    # -------------------------------------------------------------------------
    # GET
    # -------------------------------------------------------------------------

    async def handle_get(self, calendar: FiscalCalendar) -> FlowResult:
        history = await self._storage.list_history()
        recurring = await self._storage.list_recurring()
        goals = await self._storage.read_goals()
        categories, tags = await self._storage.get_categories_and_tags()
        years, months, weeks = calendar.within_window(self._fiscal_window_days)

        def dump(models) -> list[dict]:
            return [m.model_dump(mode="json", by_alias=True, exclude_none=True) for m in models]

        return FlowResult(200, {
            "history": dump(history),
            "recurring": dump(recurring),
            "weeklyGoal": goals.weekly,
            "monthlyGoal": goals.monthly,
            "categories": categories,
            "tags": tags,
            "fiscalWeeks": objects_by_id(dump(weeks)),
            "fiscalMonths": objects_by_id(dump(months)),
            "fiscalYears": objects_by_id(dump(years)),
        })

    # -------------------------------------------------------------------------
    # POST
    # -------------------------------------------------------------------------

    async def handle_post(
        self,
        body: Any,
        calendar: FiscalCalendar,
        defer: Optional[Defer] = None,
    ) -> FlowResult:
        item_type = self._validator.item_type(body, (ItemType.HISTORY, ItemType.RECURRING))

        if item_type == ItemType.RECURRING:
            item = self._validator.new_recurring(body)
            await self._storage.insert_item(item)
            await self._action_logger.log(ActionType.ADD_RECURRING, body)
            return FlowResult(200, {"status": "success", "id": item.id})

        item = self._validator.new_history(body)
        fiscal_ids = calendar.resolve(item.date)
        if fiscal_ids is None:
            raise RequestRejected("Invalid date or no matching fiscal period.")
        item = item.with_fiscal_ids(fiscal_ids)

        await self._storage.insert_item(item)
        fiscal_json = fiscal_ids.model_dump(by_alias=True)
        await self._action_logger.log(ActionType.ADD_HISTORY, {**body, **fiscal_json})
        await self._goals.on_added(item)
        await self._notify(ExpenseNotice.from_history(item), NotificationAction.ADDED, defer)

        return FlowResult(200, {"status": "success", "id": item.id, "fiscalIDs": fiscal_json})

    # -------------------------------------------------------------------------
    # PUT
    # -------------------------------------------------------------------------

    async def handle_put(self, body: Any, defer: Optional[Defer] = None) -> FlowResult:
        item_type = self._validator.item_type(body, ItemType)

        if item_type == ItemType.HISTORY:
            return await self._put_history(body, defer)

        if item_type == ItemType.RECURRING:
            item = self._validator.edited_recurring(body)
            await self._storage.update_item(item)
            await self._action_logger.log(ActionType.UPDATE_RECURRING, body)
            return FlowResult(200, {"status": "success", "id": item.id})

        if item_type == ItemType.HSA:
            reimbursement = self._validator.hsa_reimbursement(body)
            await self._storage.upsert_hsa_item(reimbursement)
            await self._action_logger.log(ActionType.UPDATE_HSA, body)
            return FlowResult(200, {"status": "success", "historyId": reimbursement.history_id})

        goal = self._validator.goal_update(body)
        await self._storage.write_goal(goal.period, goal.value)
        await self._action_logger.log(_GOAL_ACTIONS[goal.period], body)
        return FlowResult(200, {"status": "success"})

    async def _put_history(self, body: dict, defer: Optional[Defer]) -> FlowResult:
        item = self._validator.edited_history(body)

        original_row = await self._storage.update_item(item)
        original_value = self._storage.value_from_row(ItemType.HISTORY, original_row)
        await self._goals.on_edited(item, original_value)

        await self._action_logger.log(ActionType.UPDATE_HISTORY, body)

        if item.hsa_amount is not None:
            await self._storage.upsert_hsa_item(HsaReimbursement(
                history_id=item.id,
                amount=item.hsa_amount,
                reimbursement_date=item.hsa_date,
                notes=item.hsa_notes or "",
                user_email=item.user_email,
            ))
            await self._action_logger.log(ActionType.UPDATE_HSA, {
                "historyId": item.id,
                "hsaAmount": item.hsa_amount,
                "userEmail": item.user_email,
            })

        await self._notify(ExpenseNotice.from_history(item), NotificationAction.UPDATED, defer)
        return FlowResult(200, {"status": "success", "id": item.id})

    # -------------------------------------------------------------------------
    # DELETE
    # -------------------------------------------------------------------------

    async def handle_delete(
        self,
        body: Any,
        calendar: FiscalCalendar,
        defer: Optional[Defer] = None,
    ) -> FlowResult:
        request = self._validator.deletion(body)

        if request.item_type == ItemType.HSA:
            deleted = await self._storage.delete_hsa_item(request.history_id)
            if not deleted:
                return _error("HSA item not found", 404)
            await self._action_logger.log(ActionType.DELETE_HSA, body)
            return FlowResult(200, {"status": "success", "historyId": request.history_id})

        notice = ExpenseNotice.from_deletion(request)
        await self._storage.delete_item(request.item_type, request.id)

        if request.item_type == ItemType.RECURRING:
            await self._action_logger.log(ActionType.DELETE_RECURRING, body)
            return FlowResult(200, {"status": "success", "id": request.id})

        await self._delete_linked_hsa(request)
        await self._reverse_goals(request, calendar)
        await self._action_logger.log(ActionType.DELETE_HISTORY, body)
        await self._notify(notice, NotificationAction.DELETED, defer)
        return FlowResult(200, {"status": "success", "id": request.id})

    async def _delete_linked_hsa(self, request: DeleteRequest) -> None:
        try:
            if await self._storage.delete_hsa_item(request.id):
                await self._action_logger.log(ActionType.DELETE_HSA_AUTO, {
                    "historyId": request.id,
                    "userEmail": request.user_email or "unknown",
                })
        except Exception as e:
            # The history row is already gone; a stray HSA row is harmless
            logger.warning("linked_hsa_delete_failed", history_id=request.id, error=str(e))

    async def _reverse_goals(self, request: DeleteRequest, calendar: FiscalCalendar) -> None:
        week_id = request.fiscal_week_id
        month_id = request.fiscal_month_id
        if not (week_id or month_id) and request.entry_date:
            resolved = calendar.resolve(request.entry_date)
            if resolved:
                week_id = resolved.fiscal_week_id
                month_id = resolved.fiscal_month_id

        await self._goals.on_deleted(
            request.type,
            request.value,
            week_id,
            month_id,
            user_email=request.user_email,
        )


class NotificationFlow:
    """
    Orchestrates the /notifications endpoints.

    All three require a shared secret; the legacy sender answers in
    plain text the way its old clients expect.
    """

    def __init__(self, notifications: Optional[NotificationService]):
        self._notifications = notifications

    def _unavailable(self) -> FlowResult:
        return _error("Notifications are not configured", 503)

    async def handle_basic(self, secret: Optional[str], body: Any) -> FlowResult:
        if self._notifications is None:
            return self._unavailable()
        if not self._notifications.is_authorized(secret):
            await self._notifications.log_unauthorized(
                ActionType.BASIC_NOTIFICATION_UNAUTHORIZED, secret
            )
            return _error("Unauthorized", 403)

        data = body if isinstance(body, dict) else {}
        title, text, extra = data.get("title"), data.get("body"), data.get("data")
        if not title or not text:
            return _error("Title and body are required")

        try:
            result = await self._notifications.send_basic(
                str(title),
                str(text),
                extra if isinstance(extra, dict) else None,
            )
        except NotificationError as e:
            return FlowResult(500, {"error": "Internal server error", "message": str(e)})
        return FlowResult(200, result)

    async def handle_test_expense(self, secret: Optional[str]) -> FlowResult:
        if self._notifications is None:
            return self._unavailable()
        if not self._notifications.is_authorized(secret):
            await self._notifications.log_unauthorized(
                ActionType.TEST_EXPENSE_NOTIFICATION_UNAUTHORIZED, secret
            )
            return _error("Unauthorized", 403)

        try:
            result = await self._notifications.send_test_expense()
        except NotificationError as e:
            return FlowResult(500, {
                "error": "Failed to send test notification",
                "details": str(e),
            })
        return FlowResult(200, result)

    async def handle_legacy(self, secret: Optional[str], body: Any) -> FlowResult:
        if self._notifications is None:
            return self._unavailable()
        if not self._notifications.is_authorized(secret):
            return FlowResult(403, "Forbidden")

        data = body if isinstance(body, dict) else {}
        title, text = data.get("title"), data.get("body")
        if not title or not text:
            return FlowResult(400, "Missing title or body")

        try:
            result = await self._notifications.send_legacy(str(title), str(text))
        except Exception as e:
            logger.exception("legacy_notification_failed")
            return FlowResult(500, {
                "success": False,
                "error": f"Failed to send notification: {e}",
            })
        if result is None:
            return FlowResult(200, "No tokens found")
        return FlowResult(200, result)


def create_app_components(
    settings: Optional[Settings] = None,
) -> tuple[ExpensesFlow, NotificationFlow, GoogleSheetsClient]:
    """
    Factory function to create all application components.

    Google Sheets settings are required. Firebase settings are optional:
    without them the expenses flow works and notifications answer 503.

    Returns:
        (expenses_flow, notification_flow, sheets_client)
    """
    settings = settings or get_settings()
    app_settings = settings.app

    sheets_client = GoogleSheetsClient(settings.google_sheets)
    ledger_storage = GoogleSheetsLedgerStorage(sheets_client)
    # Shares the ledger's mappings so LOGS follows its header row too
    log_storage = GoogleSheetsActionLogStorage(sheets_client, ledger_storage.columns)
    action_logger = ActionLogger(log_storage, utc_offset_hours=app_settings.log_utc_offset_hours)

    notifications = None
    try:
        firebase = settings.firebase
        notifications = NotificationService(
            token_store=FirestoreTokenStore(firebase),
            fcm=FcmClient.from_settings(firebase),
            action_logger=action_logger,
            secret=app_settings.notification_secret,
            utc_offset_hours=app_settings.log_utc_offset_hours,
        )
    except Exception as e:
        # Firebase not configured - continue without notifications
        logger.warning("notifications_not_configured", error=str(e))

    calendars = FiscalCalendarCache(utc_offset_hours=app_settings.log_utc_offset_hours)
    expenses_flow = ExpensesFlow(
        storage=ledger_storage,
        action_logger=action_logger,
        calendars=calendars,
        notifications=notifications,
        fiscal_window_days=app_settings.fiscal_window_days,
    )
    notification_flow = NotificationFlow(notifications)

    return expenses_flow, notification_flow, sheets_client
