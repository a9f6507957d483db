"""
Notification Service

Everything that pushes to family members' devices:
- expense notifications after history changes (fire-and-forget)
- the basic and test-expense debugging endpoints
- the legacy data-only sender

Every attempt is written to the action log, including skips.
"""

import hmac
import time
from typing import Any, Optional

import structlog

from family_budget.audit import ActionLogger
from family_budget.fiscal.calendar import local_today
from family_budget.models.audit import ActionType
from family_budget.models.ledger import NotificationAction
from family_budget.services.notifications.fcm import (
    FcmClient,
    NotificationError,
    SendResult,
    TokenStoreInterface,
    filter_valid_tokens,
)
from family_budget.services.notifications.messages import (
    ExpenseNotice,
    basic_message,
    dummy_expense_message,
    dummy_expense_notice,
    expense_body,
    expense_message,
    expense_title,
    legacy_message,
)


logger = structlog.get_logger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _summary(results: list[SendResult]) -> dict[str, int]:
    successful = sum(1 for r in results if r.success)
    return {
        "successful": successful,
        "failed": len(results) - successful,
        "total": len(results),
    }


class NotificationService:
    """
    Sends FCM notifications to every registered device.
    """

    def __init__(
        self,
        token_store: TokenStoreInterface,
        fcm: FcmClient,
        action_logger: ActionLogger,
        secret: str = "",
        utc_offset_hours: int = -7,
    ):
        self._tokens = token_store
        self._fcm = fcm
        self._action_logger = action_logger
        self._secret = secret
        self._utc_offset_hours = utc_offset_hours

    def is_authorized(self, provided: Optional[str]) -> bool:
        """Constant-time secret check. No configured secret rejects everything."""
        if not self._secret or not provided:
            return False
        return hmac.compare_digest(provided.encode(), self._secret.encode())

    async def log_unauthorized(self, action: ActionType, provided: Optional[str]) -> None:
        await self._action_logger.log(
            action,
            {"providedSecret": "provided" if provided else "missing"},
            "Invalid or missing notification secret",
        )

    async def _valid_tokens(self) -> tuple[list[str], int]:
        raw = await self._tokens.list_raw_tokens()
        tokens = filter_valid_tokens(raw)
        logger.info("fcm_tokens_loaded", valid=len(tokens), total=len(raw))
        return tokens, len(raw)

    # -------------------------------------------------------------------------
    # Expense notifications
    # -------------------------------------------------------------------------

    async def send_expense_notification(
        self,
        notice: ExpenseNotice,
        action: NotificationAction = NotificationAction.ADDED,
    ) -> None:
        """
        Notify every device about a history change.

        Never raises; outcomes go to the action log.
        """
        expense_info = {
            "category": notice.category,
            "value": notice.value,
            "actionType": action.value,
        }
        try:
            tokens, _ = await self._valid_tokens()
            if not tokens:
                await self._action_logger.log(
                    ActionType.NOTIFICATION_SKIPPED,
                    {"reason": "No FCM tokens found", "expense": expense_info},
                )
                return

            title = expense_title(notice, action)
            body = expense_body(notice, action, today=local_today(self._utc_offset_hours))
            sent_at = _now_ms()
            results = await self._fcm.send_to_tokens(
                tokens,
                lambda token: expense_message(token, title, body, notice, action, sent_at),
            )

            await self._action_logger.log(
                ActionType.NOTIFICATION_SENT,
                {
                    "expense": {
                        **expense_info,
                        "description": notice.description,
                        "userEmail": notice.user_email,
                    },
                    "tokensCount": len(tokens),
                    "results": _summary(results),
                    "title": title,
                    "body": body,
                },
            )
        except Exception as e:
            logger.error("expense_notification_failed", error=str(e))
            await self._action_logger.log(
                ActionType.NOTIFICATION_ERROR,
                {"expense": expense_info},
                str(e),
            )

    # -------------------------------------------------------------------------
    # Endpoint senders
    # -------------------------------------------------------------------------

    async def send_basic(
        self,
        title: str,
        body: str,
        data: Optional[dict[str, Any]] = None,
    ) -> dict:
        """
        Minimal notification for debugging device registration.

        Raises:
            NotificationError: After logging BASIC_NOTIFICATION_ERROR
        """
        try:
            tokens, total_docs = await self._valid_tokens()
            if not tokens:
                reason = "No FCM tokens found" if total_docs == 0 else "No valid FCM tokens found"
                await self._action_logger.log(
                    ActionType.BASIC_NOTIFICATION_SKIPPED,
                    {"reason": reason, "title": title, "body": body, "totalDocs": total_docs},
                )
                return {
                    "status": "skipped",
                    "message": reason,
                    "tokenCount": 0,
                    "totalDocs": total_docs,
                }

            results = await self._fcm.send_to_tokens(
                tokens,
                lambda token: basic_message(token, title, body, data),
            )
        except Exception as e:
            await self._action_logger.log(
                ActionType.BASIC_NOTIFICATION_ERROR,
                {"title": title, "body": body},
                str(e),
            )
            raise NotificationError(str(e)) from e

        summary = _summary(results)
        await self._action_logger.log(
            ActionType.BASIC_NOTIFICATION_SENT,
            {"title": title, "body": body, "data": data or {}, "tokensCount": len(tokens), **summary},
        )
        return {
            "status": "sent",
            "message": f"Basic notification sent to {len(tokens)} tokens",
            "results": summary,
        }

    async def send_test_expense(self) -> dict:
        """
        Rich notification built from dummy expense data. Nothing is saved.

        Raises:
            NotificationError: No tokens, or no device accepted the message
        """
        today = local_today(self._utc_offset_hours)
        sent_at = _now_ms()
        notice = dummy_expense_notice(today, sent_at)
        test_data = notice.model_dump(mode="json", by_alias=True)

        try:
            await self._action_logger.log(
                ActionType.TEST_EXPENSE_NOTIFICATION,
                {
                    "testData": test_data,
                    "note": "Test notification sent - no data saved to database",
                },
            )

            tokens, _ = await self._valid_tokens()
            if not tokens:
                raise NotificationError("No valid FCM tokens found")

            title = expense_title(notice)
            body = expense_body(notice, today=today)
            results = await self._fcm.send_to_tokens(
                tokens,
                lambda token: dummy_expense_message(token, title, body, notice, sent_at),
            )
            summary = _summary(results)
            if summary["successful"] == 0:
                raise NotificationError(
                    f"Failed to send notification to any of the {len(tokens)} tokens"
                )
        except Exception as e:
            await self._action_logger.log(
                ActionType.TEST_EXPENSE_NOTIFICATION_ERROR,
                {"error": str(e), "errorType": type(e).__name__},
                "Test expense notification failed",
            )
            if isinstance(e, NotificationError):
                raise
            raise NotificationError(str(e)) from e

        return {
            "status": "success",
            "message": "Rich test expense notification sent successfully",
            "testData": test_data,
            "notificationPreview": {"title": title, "body": body},
            "tokensNotified": summary["successful"],
            "totalTokens": summary["total"],
        }

    async def send_legacy(self, title: str, body: str) -> Optional[dict]:
        """Data-only notification with per-token results; None when no device is registered."""
        tokens, _ = await self._valid_tokens()
        if not tokens:
            return None

        results = await self._fcm.send_to_tokens(
            tokens,
            lambda token: legacy_message(token, title, body),
        )
        return {
            "success": True,
            "message": f"Notification sent to {len(tokens)} devices",
            "results": [r.model_dump(exclude_none=True) for r in results],
        }
