"""
Client-side message state.

``MessageThread`` is the local, id-keyed view of one conversation that polled
results and optimistic echoes are merged into. Every message id appears at
most once and the list is always ordered by (created_at, id).
"""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
from collections import defaultdict
from pydantic import TypeAdapter
import itertools

TEMP_PREFIX = "temp-"

_datetime_adapter = TypeAdapter(datetime)


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass
class LocalMessage:
    """A message as held in client memory."""

    id: str
    conversation_id: str
    sender_id: str
    text: str
    created_at: datetime
    sender_name: Optional[str] = None
    optimistic: bool = False
    is_new: bool = False

    @property
    def is_temporary(self) -> bool:
        return self.id.startswith(TEMP_PREFIX)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "LocalMessage":
        """Build from a camelCase message payload returned by the API."""
        sender = data.get("sender") or {}
        return cls(
            id=str(data["id"]),
            conversation_id=str(data["conversationId"]),
            sender_id=str(data["senderId"]),
            text=data["text"],
            created_at=_utc(_datetime_adapter.validate_python(data["createdAt"])),
            sender_name=sender.get("name"),
        )


def _sort_key(message: LocalMessage):
    return (message.created_at, message.id)


class MessageThread:
    """Ordered, de-duplicated messages of a single conversation."""

    def __init__(self):
        self._messages: List[LocalMessage] = []
        self._temp_ids = itertools.count(1)

    @property
    def messages(self) -> List[LocalMessage]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __contains__(self, message_id: str) -> bool:
        return self._index_of(message_id) is not None

    def clear(self) -> None:
        self._messages = []

    def add_optimistic(
        self,
        text: str,
        sender_id: str,
        conversation_id: str,
        sender_name: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> LocalMessage:
        """
        Append a locally generated echo of a message being sent.

        Returns:
            The temporary entry, its id starts with ``temp-``
        """
        message = LocalMessage(
            id=f"{TEMP_PREFIX}{next(self._temp_ids)}",
            conversation_id=str(conversation_id),
            sender_id=str(sender_id),
            text=text,
            created_at=_utc(now or datetime.now(timezone.utc)),
            sender_name=sender_name,
            optimistic=True,
        )
        self._messages.append(message)
        return message

    def confirm(self, temp_id: str, confirmed: LocalMessage) -> Optional[LocalMessage]:
        """
        Swap a temporary entry for the server-confirmed message.

        If a poll already delivered the confirmed id, the temporary entry is
        dropped instead so the message is not shown twice.

        Returns:
            The entry now in the thread, or None if the temporary entry is gone
        """
        temp_index = self._index_of(temp_id)
        existing_index = self._index_of(confirmed.id)

        if existing_index is not None:
            if temp_index is not None:
                del self._messages[temp_index]
            return self._messages[self._index_of(confirmed.id)]

        if temp_index is None:
            return None

        entry = replace(confirmed, optimistic=False, is_new=False)
        self._messages[temp_index] = entry
        self._messages.sort(key=_sort_key)
        return entry

    def discard(self, temp_id: str) -> bool:
        """Remove a temporary entry after a failed send."""
        index = self._index_of(temp_id)
        if index is None:
            return False
        del self._messages[index]
        return True

    def merge(self, incoming: Iterable[LocalMessage]) -> List[LocalMessage]:
        """
        Merge polled messages into the thread.

        Known ids and temporary ids are skipped. Novel entries are flagged
        ``is_new`` and the thread is re-sorted.

        Returns:
            The novel entries in thread order
        """
        known = {m.id for m in self._messages}
        novel = []
        for message in incoming:
            if message.id in known or message.id.startswith(TEMP_PREFIX):
                continue
            entry = replace(message, optimistic=False, is_new=True)
            known.add(entry.id)
            novel.append(entry)

        if novel:
            self._messages.extend(novel)
            self._messages.sort(key=_sort_key)
            novel.sort(key=_sort_key)
        return novel

    def clear_new_flags(self) -> None:
        for message in self._messages:
            message.is_new = False

    def latest_timestamp(self) -> Optional[datetime]:
        """Creation time of the newest server-confirmed message."""
        confirmed = [m.created_at for m in self._messages if not m.optimistic]
        return max(confirmed) if confirmed else None

    def _index_of(self, message_id: str) -> Optional[int]:
        for index, message in enumerate(self._messages):
            if message.id == message_id:
                return index
        return None


class UnreadTracker:
    """
    Client-local unread counters per conversation.
    Derived state only; the server's read markers are authoritative.
    """

    def __init__(self, user_id: str):
        self.user_id = str(user_id)
        self._counts: Dict[str, int] = defaultdict(int)

    def record(
        self,
        conversation_id: str,
        messages: Iterable[LocalMessage],
        open_conversation_id: Optional[str],
        visible: bool = True
    ) -> int:
        """
        Count newly discovered messages from the other participant.

        Messages only count when their conversation is not open or the view
        is hidden.

        Returns:
            The conversation's updated counter
        """
        conversation_id = str(conversation_id)
        is_open = open_conversation_id is not None and str(open_conversation_id) == conversation_id
        if is_open and visible:
            return self._counts[conversation_id]

        incoming = sum(1 for m in messages if m.sender_id != self.user_id)
        self._counts[conversation_id] += incoming
        return self._counts[conversation_id]

    def open(self, conversation_id: str) -> None:
        self._counts[str(conversation_id)] = 0

    def count(self, conversation_id: str) -> int:
        return self._counts.get(str(conversation_id), 0)

    def total(self) -> int:
        return sum(self._counts.values())
