"""
Action Logger

DESIGN DECISION: Every write to the ledger, every goal change and every
notification attempt is logged. This provides:
1. A who-changed-what trail the family can read in the Logs sheet
2. Debugging capability (the same entry goes to the local structured log)

The action logger:
- Is async so it fits the request flows
- Gracefully handles failures (a failed Logs write never fails a request)
"""

from typing import Any, Optional

import structlog

from family_budget.models.audit import ActionLogEntry, ActionType, log_timestamp
from family_budget.services.storage import ActionLogStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class ActionLogger:
    """
    Central action logging service.

    Logs entries both to:
    1. Structured local log (for debugging)
    2. The Logs sheet (for persistence and family visibility)
    """

    def __init__(
        self,
        storage: Optional[ActionLogStorageInterface] = None,
        utc_offset_hours: int = -7,
    ):
        """
        Initialize action logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
            utc_offset_hours: Fixed offset for Logs sheet timestamps.
        """
        self._storage = storage
        self._utc_offset_hours = utc_offset_hours
        self._logger = structlog.get_logger(__name__)

    async def write(self, entry: ActionLogEntry) -> bool:
        """
        Log an entry.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = entry.to_log_dict()

        if entry.action.is_error:
            self._logger.error("action_logged", **log_dict)
        else:
            self._logger.info("action_logged", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_entry(entry)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "action_log_storage_failed",
                    error=str(e),
                    action=entry.action.value,
                )
                return False

        return True

    async def log(
        self,
        action: ActionType,
        data: Optional[dict[str, Any]] = None,
        error_message: Optional[str] = None,
    ) -> bool:
        """
        Build and write an entry.

        The user email is taken from data["userEmail"] when present.
        """
        data = dict(data or {})
        entry = ActionLogEntry(
            timestamp=log_timestamp(self._utc_offset_hours),
            action=action,
            user_email=str(data.get("userEmail") or ""),
            data=data,
            error_message=error_message,
        )
        return await self.write(entry)
