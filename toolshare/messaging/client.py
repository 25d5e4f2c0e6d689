"""
HTTP client for the messaging endpoints.
Credentials are passed into every call rather than looked up from shared state.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from jose import JWTError, jwt
from toolshare.messaging.thread import LocalMessage
import httpx
import logging

logger = logging.getLogger(__name__)


class MessagingError(Exception):
    """An API call failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class SessionExpiredError(MessagingError):
    """The access token is expired or rejected."""

    def __init__(self, message: str = "Session expired, please log in again"):
        super().__init__(message, status_code=401)


class SendFailedError(MessagingError):
    """A send failed. ``text`` holds the message so it can be retried."""

    def __init__(self, text: str, cause: Exception):
        status_code = getattr(cause, "status_code", None)
        super().__init__(f"Failed to send message: {cause}", status_code=status_code)
        self.text = text
        self.cause = cause


@dataclass(frozen=True)
class Credentials:
    """Bearer token for API calls."""

    token: str

    @property
    def headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    def expires_at(self) -> Optional[datetime]:
        """Expiry claim of the token. Not verified; the server does that."""
        try:
            claims = jwt.get_unverified_claims(self.token)
        except JWTError:
            return None
        exp = claims.get("exp")
        if exp is None:
            return None
        return datetime.fromtimestamp(exp, tz=timezone.utc)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """True once the token's ``exp`` has passed. Unreadable tokens count as expired."""
        try:
            jwt.get_unverified_claims(self.token)
        except JWTError:
            return True
        expires_at = self.expires_at()
        if expires_at is None:
            return False
        return (now or datetime.now(timezone.utc)) >= expires_at


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return body["error"].get("message", response.reason_phrase)
    return response.reason_phrase


class MessagingClient:
    """
    Thin wrapper over ``httpx.AsyncClient`` for conversations and messages.

    Args:
        base_url: API root, e.g. ``http://localhost:8000``
        transport: Optional transport, tests pass ``httpx.ASGITransport``
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        base_url: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0
    ):
        self._client = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)

    async def __aenter__(self) -> "MessagingClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def list_conversations(self, credentials: Credentials) -> List[Dict[str, Any]]:
        body = await self._request("GET", "/message/conversations", credentials)
        return body["conversations"]

    async def create_conversation(
        self,
        credentials: Credentials,
        buyer_id: str,
        seller_id: str,
        listing_id: Optional[str] = None
    ) -> Dict[str, Any]:
        payload = {"buyerId": str(buyer_id), "sellerId": str(seller_id)}
        if listing_id is not None:
            payload["listingId"] = str(listing_id)
        body = await self._request("POST", "/message/conversations", credentials, json=payload)
        return body["conversation"]

    async def fetch_messages(
        self,
        credentials: Credentials,
        conversation_id: str,
        since: Optional[datetime] = None,
        limit: Optional[int] = None
    ) -> List[LocalMessage]:
        params = {}
        if since is not None:
            params["since"] = since.isoformat()
        if limit is not None:
            params["limit"] = limit
        body = await self._request(
            "GET", f"/message/conversations/{conversation_id}/messages", credentials, params=params
        )
        return [LocalMessage.from_api(m) for m in body["messages"]]

    async def send_message(
        self,
        credentials: Credentials,
        conversation_id: str,
        sender_id: str,
        text: str
    ) -> LocalMessage:
        payload = {"conversationId": str(conversation_id), "senderId": str(sender_id), "text": text}
        body = await self._request("POST", "/message/messages", credentials, json=payload)
        return LocalMessage.from_api(body["data"])

    async def mark_read(self, credentials: Credentials, conversation_id: str) -> None:
        await self._request("PATCH", f"/message/conversations/{conversation_id}/read", credentials)

    async def unread_count(self, credentials: Credentials) -> int:
        body = await self._request("GET", "/message/unread-count", credentials)
        return body["unreadCount"]

    async def _request(self, method: str, url: str, credentials: Credentials, **kwargs) -> Dict[str, Any]:
        """
        Issue an authenticated request and decode the JSON body.

        Raises:
            SessionExpiredError: On 401
            MessagingError: On any other error status
        """
        response = await self._client.request(method, url, headers=credentials.headers, **kwargs)
        if response.status_code == 401:
            raise SessionExpiredError()
        if response.is_error:
            message = _error_message(response)
            logger.debug(f"{method} {url} failed with {response.status_code}: {message}")
            raise MessagingError(message, status_code=response.status_code)
        return response.json()
