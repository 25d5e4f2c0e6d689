"""
Client side of the polling message protocol.
"""

from .thread import LocalMessage, MessageThread, UnreadTracker, TEMP_PREFIX
from .client import (
    Credentials,
    MessagingClient,
    MessagingError,
    SendFailedError,
    SessionExpiredError,
)
from .poller import ConversationPoller

__all__ = [
    "LocalMessage",
    "MessageThread",
    "UnreadTracker",
    "TEMP_PREFIX",
    "Credentials",
    "MessagingClient",
    "MessagingError",
    "SendFailedError",
    "SessionExpiredError",
    "ConversationPoller",
]
