"""
Firebase Cloud Messaging Transport

Device tokens live in Firestore (one document per device, `token` field);
messages go out through the FCM HTTP v1 API, one request per token.

DESIGN DECISION: Sends are concurrent and per-token failures are collected,
never raised. One stale token must not stop the rest of the family from
getting the notification.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

import firebase_admin
import google.auth
import httpx
import structlog
from firebase_admin import credentials, firestore
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2 import service_account
from pydantic import BaseModel

from family_budget.config import FirebaseSettings


logger = structlog.get_logger(__name__)


MESSAGING_SCOPE = "https://www.googleapis.com/auth/firebase.messaging"


class NotificationError(Exception):
    """Base exception for notification delivery."""
    pass


class SendResult(BaseModel):
    """Outcome of one FCM request."""
    token: str
    success: bool
    status_code: Optional[int] = None
    error: Optional[str] = None


def filter_valid_tokens(raw_tokens: list[Any]) -> list[str]:
    """Keep non-empty string tokens."""
    tokens = []
    for token in raw_tokens:
        if isinstance(token, str) and token.strip():
            tokens.append(token)
        else:
            logger.debug("invalid_fcm_token_skipped", token=repr(token))
    return tokens


# =============================================================================
# TOKENS
# =============================================================================

class TokenStoreInterface(ABC):
    """Where device tokens are registered."""

    @abstractmethod
    async def list_raw_tokens(self) -> list[Any]:
        """
        The `token` field of every registered device, unfiltered.

        Documents without a token contribute None.
        """
        pass


class FirestoreTokenStore(TokenStoreInterface):
    """Reads tokens from a Firestore collection (fcmTokens by default)."""

    def __init__(self, settings: FirebaseSettings):
        self._settings = settings
        self._db = None

    def _client(self):
        if self._db is None:
            if not firebase_admin._apps:
                if self._settings.credentials_path:
                    cred = credentials.Certificate(self._settings.credentials_path)
                else:
                    cred = credentials.ApplicationDefault()
                firebase_admin.initialize_app(cred, {"projectId": self._settings.project_id})
            self._db = firestore.client()
        return self._db

    def _fetch_tokens(self) -> list[Any]:
        docs = self._client().collection(self._settings.tokens_collection).get()
        return [(doc.to_dict() or {}).get("token") for doc in docs]

    async def list_raw_tokens(self) -> list[Any]:
        # The Firestore client blocks
        return await asyncio.to_thread(self._fetch_tokens)


# =============================================================================
# ACCESS TOKENS
# =============================================================================

class AccessTokenProvider:
    """
    OAuth2 access tokens for the FCM API.

    Uses the Firebase service account file when configured, application
    default credentials otherwise. Tokens are refreshed only when expired.
    """

    def __init__(self, settings: FirebaseSettings):
        self._settings = settings
        self._credentials = None

    def _load(self):
        if self._settings.credentials_path:
            return service_account.Credentials.from_service_account_file(
                self._settings.credentials_path,
                scopes=[MESSAGING_SCOPE],
            )
        creds, _ = google.auth.default(scopes=[MESSAGING_SCOPE])
        return creds

    def __call__(self) -> str:
        if self._credentials is None:
            self._credentials = self._load()
        if not self._credentials.valid:
            self._credentials.refresh(GoogleAuthRequest())
        if not self._credentials.token:
            raise NotificationError("Failed to obtain access token")
        return self._credentials.token


# =============================================================================
# SENDING
# =============================================================================

class FcmClient:
    """
    FCM HTTP v1 sender.

    Args:
        send_url: messages:send endpoint for the project
        access_token: Callable returning a bearer token
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (tests use httpx.MockTransport)
    """

    def __init__(
        self,
        send_url: str,
        access_token: Callable[[], str],
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._send_url = send_url
        self._access_token = access_token
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: FirebaseSettings) -> "FcmClient":
        return cls(
            send_url=settings.send_url,
            access_token=AccessTokenProvider(settings),
            timeout=settings.request_timeout_seconds,
        )

    async def _send_one(
        self,
        client: httpx.AsyncClient,
        token: str,
        message: dict,
        bearer: str,
    ) -> SendResult:
        response = await client.post(
            self._send_url,
            headers={
                "Authorization": f"Bearer {bearer}",
                "Content-Type": "application/json",
            },
            json={"message": message},
        )
        if response.is_success:
            return SendResult(token=token, success=True, status_code=response.status_code)

        logger.warning(
            "fcm_send_failed",
            status_code=response.status_code,
            body=response.text[:500],
        )
        return SendResult(
            token=token,
            success=False,
            status_code=response.status_code,
            error=f"{response.status_code}: {response.text}",
        )

    async def send_to_tokens(
        self,
        tokens: list[str],
        build_message: Callable[[str], dict],
    ) -> list[SendResult]:
        """
        Send one message per token, concurrently.

        Raises:
            NotificationError: Only when no access token can be obtained
        """
        if not tokens:
            return []

        try:
            # Refreshing credentials is a blocking HTTP call
            bearer = await asyncio.to_thread(self._access_token)
        except NotificationError:
            raise
        except Exception as e:
            raise NotificationError(f"Failed to obtain access token: {e}")

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            outcomes = await asyncio.gather(
                *(self._send_one(client, token, build_message(token), bearer) for token in tokens),
                return_exceptions=True,
            )

        results: list[SendResult] = []
        for token, outcome in zip(tokens, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning("fcm_send_error", error=str(outcome))
                results.append(SendResult(token=token, success=False, error=str(outcome)))
            else:
                results.append(outcome)
        return results
