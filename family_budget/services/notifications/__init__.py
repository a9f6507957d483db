"""Push notification services (Firestore tokens + FCM)."""

from family_budget.services.notifications.fcm import (
    AccessTokenProvider,
    FcmClient,
    FirestoreTokenStore,
    NotificationError,
    SendResult,
    TokenStoreInterface,
)
from family_budget.services.notifications.messages import ExpenseNotice
from family_budget.services.notifications.service import NotificationService

__all__ = [
    "AccessTokenProvider",
    "ExpenseNotice",
    "FcmClient",
    "FirestoreTokenStore",
    "NotificationError",
    "NotificationService",
    "SendResult",
    "TokenStoreInterface",
]
