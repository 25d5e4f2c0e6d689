"""
Polling loop for near-real-time message delivery.

``ConversationPoller`` owns the currently selected conversation: it fetches
new messages on a fixed interval, merges them into a ``MessageThread`` and
performs optimistic sends. While the view is visible, the server-side read
marker follows what has been shown. Only one polling task exists at a time
and it is cancelled whenever the selection changes or the poller is closed.
"""

from typing import Any, Callable, Dict, List, Optional
from toolshare.messaging.client import (
    Credentials,
    MessagingClient,
    MessagingError,
    SendFailedError,
    SessionExpiredError,
)
from toolshare.messaging.thread import LocalMessage, MessageThread, UnreadTracker
import asyncio
import httpx
import logging
import time

logger = logging.getLogger(__name__)

POLL_INTERVAL = 2.0
MIN_POLL_GAP = 1.0
NEW_FLAG_TTL = 2.0


class ConversationPoller:
    """
    Keeps the selected conversation's thread current.

    Args:
        client: Messaging API client
        credentials: Bearer credentials for every call
        user_id: The signed-in user, used as sender and for unread counting
        interval: Seconds between polls
        min_gap: Polls closer together than this are skipped
        new_flag_ttl: Seconds before ``is_new`` highlights are cleared
        on_update: Called with the novel messages after each merge
        on_session_expired: Called once when the token expires
        is_visible: Reports whether the conversation view is on screen
        clock: Monotonic clock, replaceable in tests
    """

    def __init__(
        self,
        client: MessagingClient,
        credentials: Credentials,
        user_id: str,
        interval: float = POLL_INTERVAL,
        min_gap: float = MIN_POLL_GAP,
        new_flag_ttl: float = NEW_FLAG_TTL,
        on_update: Optional[Callable[[List[LocalMessage]], None]] = None,
        on_session_expired: Optional[Callable[[], None]] = None,
        is_visible: Callable[[], bool] = lambda: True,
        clock: Callable[[], float] = time.monotonic
    ):
        self.client = client
        self.credentials = credentials
        self.user_id = str(user_id)
        self.interval = interval
        self.min_gap = min_gap
        self.new_flag_ttl = new_flag_ttl
        self.on_update = on_update
        self.on_session_expired = on_session_expired
        self.is_visible = is_visible
        self.clock = clock

        self.thread = MessageThread()
        self.unread = UnreadTracker(self.user_id)
        self.selected_id: Optional[str] = None
        self.session_expired = False

        self._task: Optional[asyncio.Task] = None
        self._flag_task: Optional[asyncio.Task] = None
        self._last_poll: Optional[float] = None
        self._read_synced = False

    @property
    def is_polling(self) -> bool:
        return self._task is not None and not self._task.done()

    async def load_conversations(self) -> List[Dict[str, Any]]:
        """
        Fetch the conversation list.
        Errors propagate since there is nothing to fall back to.
        """
        return await self.client.list_conversations(self.credentials)

    async def select(self, conversation_id: str) -> None:
        """
        Switch to a conversation: reset local state, poll once, then keep polling.
        """
        conversation_id = str(conversation_id)
        await self._cancel_polling()
        self.selected_id = conversation_id
        self.thread.clear()
        self._last_poll = None
        self._read_synced = False
        self.unread.open(conversation_id)

        await self.poll()
        self._start_polling(conversation_id)

    async def poll(self) -> List[LocalMessage]:
        """
        Fetch messages newer than the latest one held and merge them.

        Returns:
            The novel messages, empty when the poll was skipped or failed
        """
        conversation_id = self.selected_id
        if conversation_id is None or self.session_expired:
            return []

        now = self.clock()
        if self._last_poll is not None and now - self._last_poll < self.min_gap:
            return []

        if self.credentials.is_expired():
            self._expire_session()
            return []

        self._last_poll = now
        try:
            messages = await self.client.fetch_messages(
                self.credentials, conversation_id, since=self.thread.latest_timestamp()
            )
        except SessionExpiredError:
            self._expire_session()
            return []
        except (MessagingError, httpx.HTTPError) as e:
            logger.warning(f"Poll of conversation {conversation_id} failed: {e}")
            return []

        # The user may have switched threads while the request was in flight
        if self.selected_id != conversation_id:
            return []

        novel = self.thread.merge(messages)
        if novel:
            self.unread.record(conversation_id, novel, self.selected_id, visible=self.is_visible())
            self._schedule_flag_clear()
            if self.on_update is not None:
                self.on_update(novel)

        incoming = any(m.sender_id != self.user_id for m in novel)
        if self.is_visible() and (incoming or not self._read_synced):
            await self._mark_read(conversation_id)
        return novel

    async def send(self, text: str) -> LocalMessage:
        """
        Send a message with an optimistic local echo.

        Raises:
            ValueError: If no conversation is selected or the text is blank
            SendFailedError: If the server rejected the message; ``text`` is returned on it
        """
        conversation_id = self.selected_id
        if conversation_id is None:
            raise ValueError("No conversation selected")
        if not text or not text.strip():
            raise ValueError("Message cannot be empty")

        temp = self.thread.add_optimistic(text, self.user_id, conversation_id)
        try:
            confirmed = await self.client.send_message(self.credentials, conversation_id, self.user_id, text)
        except (MessagingError, httpx.HTTPError) as e:
            self.thread.discard(temp.id)
            if isinstance(e, SessionExpiredError):
                self._expire_session()
            raise SendFailedError(text, e) from e

        if self.selected_id == conversation_id:
            self.thread.confirm(temp.id, confirmed)
        return confirmed

    def observe(self, conversation_id: str, messages: List[LocalMessage]) -> int:
        """Count messages seen for any conversation, e.g. from a list refresh."""
        return self.unread.record(conversation_id, messages, self.selected_id, visible=self.is_visible())

    async def resume(self, credentials: Credentials) -> None:
        """Continue polling with fresh credentials after a re-login."""
        self.credentials = credentials
        self.session_expired = False
        conversation_id = self.selected_id
        if conversation_id is not None and not self.is_polling:
            self._last_poll = None
            await self.poll()
            self._start_polling(conversation_id)

    async def close(self) -> None:
        """Stop polling and pending highlight clearing."""
        await self._cancel_polling()
        if self._flag_task is not None:
            self._flag_task.cancel()
            await asyncio.gather(self._flag_task, return_exceptions=True)
            self._flag_task = None
        self.selected_id = None

    async def _run(self, conversation_id: str) -> None:
        while self.selected_id == conversation_id and not self.session_expired:
            await asyncio.sleep(self.interval)
            await self.poll()

    def _start_polling(self, conversation_id: str) -> None:
        # The selection may have moved on while the first poll was awaited
        if self.selected_id != conversation_id or self.session_expired:
            return
        if self._task is not None and self._task is not asyncio.current_task():
            self._task.cancel()
        self._task = asyncio.create_task(self._run(conversation_id))

    async def _mark_read(self, conversation_id: str) -> None:
        """Advance the server-side read marker; failures only cost a stale badge."""
        try:
            await self.client.mark_read(self.credentials, conversation_id)
        except SessionExpiredError:
            self._expire_session()
            return
        except (MessagingError, httpx.HTTPError) as e:
            logger.warning(f"Marking conversation {conversation_id} read failed: {e}")
            return
        if self.selected_id == conversation_id:
            self._read_synced = True

    async def _cancel_polling(self) -> None:
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    def _expire_session(self) -> None:
        if self.session_expired:
            return
        self.session_expired = True
        logger.info("Session expired, polling stopped")
        if self.on_session_expired is not None:
            self.on_session_expired()

    def _schedule_flag_clear(self) -> None:
        if self._flag_task is not None:
            self._flag_task.cancel()
        self._flag_task = asyncio.create_task(self._clear_flags_later())

    async def _clear_flags_later(self) -> None:
        await asyncio.sleep(self.new_flag_ttl)
        self.thread.clear_new_flags()
