"""
Tests for the client side of the polling message protocol.
"""

import asyncio
import pytest
import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from httpx import ASGITransport

from toolshare.main import app
from toolshare.messaging import (
    ConversationPoller,
    Credentials,
    LocalMessage,
    MessageThread,
    MessagingClient,
    MessagingError,
    SendFailedError,
    SessionExpiredError,
    UnreadTracker,
)
from toolshare.utils.auth import create_access_token


BASE_TIME = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _message(message_id: str, seconds: int = 0, sender_id: str = "other", text: str = "hi", conversation_id: str = "conv-1"):
    return LocalMessage(
        id=message_id,
        conversation_id=conversation_id,
        sender_id=sender_id,
        text=text,
        created_at=BASE_TIME + timedelta(seconds=seconds),
    )


def _token(expires_delta: timedelta = None) -> str:
    return create_access_token(uuid.uuid4(), "user@example.com", expires_delta=expires_delta)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class FakeMessagingClient:
    """Stands in for the HTTP client; stores messages in memory."""

    def __init__(self):
        self.server_messages = []
        self.conversations = []
        self.fetch_calls = []
        self.fail_fetch = None
        self.fail_send = None
        self.fail_list = None
        self.before_fetch_returns = None
        self.after_store = None
        self.read_marks = []
        self.fail_mark_read = None

    async def list_conversations(self, credentials):
        if self.fail_list is not None:
            raise self.fail_list
        return self.conversations

    async def fetch_messages(self, credentials, conversation_id, since=None, limit=None):
        self.fetch_calls.append((conversation_id, since))
        if self.fail_fetch is not None:
            raise self.fail_fetch
        if self.before_fetch_returns is not None:
            hook, self.before_fetch_returns = self.before_fetch_returns, None
            await hook()
        cutoff = since - timedelta(seconds=1) if since is not None else None
        return [
            replace(m) for m in self.server_messages
            if m.conversation_id == conversation_id and (cutoff is None or m.created_at > cutoff)
        ]

    async def send_message(self, credentials, conversation_id, sender_id, text):
        if self.fail_send is not None:
            raise self.fail_send
        stored = LocalMessage(
            id=str(uuid.uuid4()),
            conversation_id=conversation_id,
            sender_id=sender_id,
            text=text.strip(),
            created_at=datetime.now(timezone.utc),
        )
        self.server_messages.append(stored)
        if self.after_store is not None:
            hook, self.after_store = self.after_store, None
            await hook()
        return replace(stored)

    async def mark_read(self, credentials, conversation_id):
        if self.fail_mark_read is not None:
            raise self.fail_mark_read
        self.read_marks.append(conversation_id)


class TestMessageThread:
    """Local ordered view."""

    def test_merging_the_same_message_twice_keeps_one(self):
        thread = MessageThread()

        thread.merge([_message("m1")])
        thread.merge([_message("m1")])

        assert [m.id for m in thread.messages] == ["m1"]

    def test_merge_deduplicates_within_a_batch(self):
        thread = MessageThread()

        novel = thread.merge([_message("m1"), _message("m1")])

        assert len(novel) == 1
        assert len(thread) == 1

    def test_merge_sorts_and_flags_new(self):
        thread = MessageThread()
        thread.merge([_message("m2", seconds=5)])

        novel = thread.merge([_message("m3", seconds=9), _message("m1", seconds=1)])

        assert [m.id for m in thread.messages] == ["m1", "m2", "m3"]
        assert [m.id for m in novel] == ["m1", "m3"]
        assert all(m.is_new for m in thread.messages)

        thread.clear_new_flags()
        assert not any(m.is_new for m in thread.messages)

    def test_equal_timestamps_are_ordered_by_id(self):
        thread = MessageThread()

        thread.merge([_message("b", seconds=1), _message("a", seconds=1)])

        assert [m.id for m in thread.messages] == ["a", "b"]

    def test_merge_skips_temporary_ids(self):
        thread = MessageThread()

        assert thread.merge([_message("temp-99")]) == []
        assert len(thread) == 0

    def test_optimistic_echo_then_confirm_replaces_in_place(self):
        thread = MessageThread()
        temp = thread.add_optimistic("hello", "me", "conv-1", now=BASE_TIME)

        assert temp.id.startswith("temp-")
        assert temp.optimistic is True

        confirmed = _message("real-1", seconds=0, sender_id="me", text="hello")
        thread.confirm(temp.id, confirmed)

        assert [m.id for m in thread.messages] == ["real-1"]
        assert thread.messages[0].optimistic is False

    def test_confirm_after_poll_already_delivered_the_message(self):
        """Echo, then poll sees the real message, then the POST returns."""
        thread = MessageThread()
        temp = thread.add_optimistic("hello", "me", "conv-1", now=BASE_TIME)
        real = _message("real-1", sender_id="me", text="hello")

        thread.merge([real])
        thread.confirm(temp.id, real)

        assert [m.id for m in thread.messages] == ["real-1"]
        assert [m.text for m in thread.messages].count("hello") == 1

    def test_poll_after_confirm_does_not_duplicate(self):
        thread = MessageThread()
        temp = thread.add_optimistic("hello", "me", "conv-1", now=BASE_TIME)
        real = _message("real-1", sender_id="me", text="hello")

        thread.confirm(temp.id, real)
        assert thread.merge([real]) == []

        assert [m.id for m in thread.messages] == ["real-1"]

    def test_temporary_ids_are_unique(self):
        thread = MessageThread()

        first = thread.add_optimistic("a", "me", "conv-1")
        second = thread.add_optimistic("b", "me", "conv-1")

        assert first.id != second.id

    def test_discard(self):
        thread = MessageThread()
        temp = thread.add_optimistic("hello", "me", "conv-1")

        assert thread.discard(temp.id) is True
        assert thread.discard(temp.id) is False
        assert len(thread) == 0

    def test_latest_timestamp_ignores_optimistic_entries(self):
        thread = MessageThread()
        assert thread.latest_timestamp() is None

        thread.merge([_message("m1", seconds=3)])
        thread.add_optimistic("pending", "me", "conv-1", now=BASE_TIME + timedelta(minutes=5))

        assert thread.latest_timestamp() == BASE_TIME + timedelta(seconds=3)

    def test_from_api_payload(self):
        message = LocalMessage.from_api({
            "id": "abc",
            "conversationId": "conv-1",
            "senderId": "u1",
            "text": "hey",
            "createdAt": "2024-06-01T12:00:00Z",
            "sender": {"id": "u1", "name": "Sam"},
        })

        assert message.created_at == BASE_TIME
        assert message.sender_name == "Sam"


class TestUnreadTracker:
    def test_counts_only_other_participants_in_closed_conversations(self):
        tracker = UnreadTracker("me")
        incoming = [_message("m1", sender_id="them"), _message("m2", sender_id="me")]

        assert tracker.record("conv-1", incoming, open_conversation_id="conv-2") == 1
        assert tracker.record("conv-2", incoming, open_conversation_id="conv-2") == 0
        assert tracker.total() == 1

    def test_hidden_view_counts_open_conversation(self):
        tracker = UnreadTracker("me")

        tracker.record("conv-1", [_message("m1", sender_id="them")], open_conversation_id="conv-1", visible=False)

        assert tracker.count("conv-1") == 1

    def test_opening_resets(self):
        tracker = UnreadTracker("me")
        tracker.record("conv-1", [_message("m1", sender_id="them")], open_conversation_id=None)

        tracker.open("conv-1")

        assert tracker.count("conv-1") == 0


class TestCredentials:
    def test_fresh_token(self):
        credentials = Credentials(_token())

        assert credentials.is_expired() is False
        assert credentials.expires_at() > datetime.now(timezone.utc)
        assert credentials.headers["Authorization"].startswith("Bearer ")

    def test_expired_token(self):
        assert Credentials(_token(timedelta(seconds=-30))).is_expired() is True

    def test_malformed_token_counts_as_expired(self):
        assert Credentials("not-a-jwt").is_expired() is True


class TestConversationPoller:
    """Polling loop behaviour against an in-memory client."""

    def _poller(self, fake, clock=None, credentials=None, **kwargs):
        kwargs.setdefault("interval", 3600)
        return ConversationPoller(
            fake,
            credentials or Credentials(_token()),
            user_id="me",
            clock=clock or FakeClock(),
            **kwargs,
        )

    @pytest.mark.asyncio
    async def test_select_clears_state_and_polls_immediately(self):
        fake = FakeMessagingClient()
        fake.server_messages = [_message("a1", conversation_id="conv-1"), _message("b1", conversation_id="conv-2")]
        clock = FakeClock()
        poller = self._poller(fake, clock)

        await poller.select("conv-1")
        assert [m.id for m in poller.thread.messages] == ["a1"]
        assert poller.is_polling

        await poller.select("conv-2")
        assert [m.id for m in poller.thread.messages] == ["b1"]
        assert fake.fetch_calls[-1] == ("conv-2", None)

        await poller.close()
        assert not poller.is_polling

    @pytest.mark.asyncio
    async def test_poll_uses_latest_timestamp_and_deduplicates(self):
        fake = FakeMessagingClient()
        fake.server_messages = [_message("m1", seconds=1, conversation_id="conv-1")]
        clock = FakeClock()
        poller = self._poller(fake, clock)
        await poller.select("conv-1")

        fake.server_messages.append(_message("m2", seconds=1, conversation_id="conv-1"))
        clock.now += 2
        novel = await poller.poll()

        assert fake.fetch_calls[-1] == ("conv-1", BASE_TIME + timedelta(seconds=1))
        assert [m.id for m in novel] == ["m2"]
        assert [m.id for m in poller.thread.messages] == ["m1", "m2"]
        await poller.close()

    @pytest.mark.asyncio
    async def test_polls_closer_than_min_gap_are_skipped(self):
        fake = FakeMessagingClient()
        clock = FakeClock()
        poller = self._poller(fake, clock)
        await poller.select("conv-1")

        clock.now += 0.5
        await poller.poll()
        assert len(fake.fetch_calls) == 1

        clock.now += 1.0
        await poller.poll()
        assert len(fake.fetch_calls) == 2
        await poller.close()

    @pytest.mark.asyncio
    async def test_stale_response_is_not_applied(self):
        """A response for a conversation that is no longer selected is dropped."""
        fake = FakeMessagingClient()
        fake.server_messages = [_message("a1", conversation_id="conv-1")]
        clock = FakeClock()
        poller = self._poller(fake, clock)
        await poller.select("conv-1")
        poller.thread.clear()

        async def switch_away():
            poller.selected_id = "conv-2"

        fake.server_messages.append(_message("a2", seconds=5, conversation_id="conv-1"))
        fake.before_fetch_returns = switch_away
        clock.now += 2
        novel = await poller.poll()

        assert novel == []
        assert len(poller.thread) == 0
        await poller.close()

    @pytest.mark.asyncio
    async def test_expired_token_stops_polling_and_notifies_once(self):
        fake = FakeMessagingClient()
        expired_calls = []
        clock = FakeClock()
        poller = self._poller(
            fake,
            clock,
            credentials=Credentials(_token(timedelta(seconds=-5))),
            on_session_expired=lambda: expired_calls.append(True),
        )

        await poller.select("conv-1")
        clock.now += 5
        await poller.poll()

        assert expired_calls == [True]
        assert poller.session_expired is True
        assert fake.fetch_calls == []
        assert not poller.is_polling

        await poller.resume(Credentials(_token()))
        assert poller.session_expired is False
        assert poller.is_polling
        assert len(fake.fetch_calls) == 1
        await poller.close()

    @pytest.mark.asyncio
    async def test_server_rejecting_token_expires_session(self):
        fake = FakeMessagingClient()
        fake.fail_fetch = SessionExpiredError()
        expired_calls = []
        poller = self._poller(fake, on_session_expired=lambda: expired_calls.append(True))

        await poller.select("conv-1")

        assert expired_calls == [True]
        assert not poller.is_polling

    @pytest.mark.asyncio
    async def test_poll_errors_are_swallowed(self):
        fake = FakeMessagingClient()
        fake.fail_fetch = MessagingError("Internal server error", status_code=500)
        poller = self._poller(fake)

        await poller.select("conv-1")

        assert len(poller.thread) == 0
        assert poller.is_polling
        await poller.close()

    @pytest.mark.asyncio
    async def test_load_conversations_propagates_errors(self):
        fake = FakeMessagingClient()
        fake.fail_list = MessagingError("Service unavailable", status_code=503)
        poller = self._poller(fake)

        with pytest.raises(MessagingError):
            await poller.load_conversations()

    @pytest.mark.asyncio
    async def test_send_echoes_then_confirms(self):
        fake = FakeMessagingClient()
        poller = self._poller(fake)
        await poller.select("conv-1")

        confirmed = await poller.send("hello")

        assert [m.id for m in poller.thread.messages] == [confirmed.id]
        assert not confirmed.id.startswith("temp-")
        await poller.close()

    @pytest.mark.asyncio
    async def test_poll_landing_before_send_response_keeps_one_entry(self):
        """The poll sees the stored message before the POST response arrives."""
        fake = FakeMessagingClient()
        clock = FakeClock()
        poller = self._poller(fake, clock)
        await poller.select("conv-1")

        async def poll_mid_send():
            clock.now += 2
            await poller.poll()

        fake.after_store = poll_mid_send
        confirmed = await poller.send("hello")

        assert [m.id for m in poller.thread.messages] == [confirmed.id]

        clock.now += 2
        await poller.poll()
        assert [m.id for m in poller.thread.messages] == [confirmed.id]
        await poller.close()

    @pytest.mark.asyncio
    async def test_failed_send_removes_echo_and_returns_text(self):
        fake = FakeMessagingClient()
        fake.fail_send = MessagingError("Message cannot be empty", status_code=400)
        poller = self._poller(fake)
        await poller.select("conv-1")

        with pytest.raises(SendFailedError) as exc_info:
            await poller.send("hello")

        assert exc_info.value.text == "hello"
        assert exc_info.value.status_code == 400
        assert len(poller.thread) == 0
        await poller.close()

    @pytest.mark.asyncio
    async def test_send_requires_selection_and_text(self):
        poller = self._poller(FakeMessagingClient())

        with pytest.raises(ValueError):
            await poller.send("hello")
        await poller.select("conv-1")
        with pytest.raises(ValueError):
            await poller.send("   ")
        await poller.close()

    @pytest.mark.asyncio
    async def test_new_flags_clear_after_ttl(self):
        fake = FakeMessagingClient()
        fake.server_messages = [_message("m1", conversation_id="conv-1")]
        poller = self._poller(fake, new_flag_ttl=0.01)

        await poller.select("conv-1")
        assert poller.thread.messages[0].is_new is True

        await asyncio.sleep(0.1)
        assert poller.thread.messages[0].is_new is False
        await poller.close()

    @pytest.mark.asyncio
    async def test_background_loop_picks_up_new_messages(self):
        fake = FakeMessagingClient()
        updates = []
        poller = ConversationPoller(
            fake,
            Credentials(_token()),
            user_id="me",
            interval=0.01,
            min_gap=0,
            on_update=updates.append,
        )
        await poller.select("conv-1")

        fake.server_messages.append(_message("m1", sender_id="them", conversation_id="conv-1"))
        for _ in range(50):
            if len(poller.thread):
                break
            await asyncio.sleep(0.01)

        assert [m.id for m in poller.thread.messages] == ["m1"]
        assert [m.id for m in updates[0]] == ["m1"]
        await poller.close()

    @pytest.mark.asyncio
    async def test_hidden_view_counts_unread(self):
        fake = FakeMessagingClient()
        fake.server_messages = [_message("m1", sender_id="them", conversation_id="conv-1")]
        poller = self._poller(fake, is_visible=lambda: False)

        await poller.select("conv-1")

        assert poller.unread.count("conv-1") == 1
        await poller.close()

    @pytest.mark.asyncio
    async def test_opening_a_conversation_marks_it_read_on_the_server(self):
        fake = FakeMessagingClient()
        fake.server_messages = [_message("m1", sender_id="them", conversation_id="conv-1")]
        clock = FakeClock()
        poller = self._poller(fake, clock)

        await poller.select("conv-1")
        assert fake.read_marks == ["conv-1"]

        fake.server_messages.append(_message("m2", seconds=5, sender_id="me", conversation_id="conv-1"))
        clock.now += 2
        await poller.poll()
        assert fake.read_marks == ["conv-1"]

        fake.server_messages.append(_message("m3", seconds=9, sender_id="them", conversation_id="conv-1"))
        clock.now += 2
        await poller.poll()
        assert fake.read_marks == ["conv-1", "conv-1"]
        await poller.close()

    @pytest.mark.asyncio
    async def test_hidden_view_marks_read_once_visible_again(self):
        fake = FakeMessagingClient()
        fake.server_messages = [_message("m1", sender_id="them", conversation_id="conv-1")]
        clock = FakeClock()
        visible = {"value": False}
        poller = self._poller(fake, clock, is_visible=lambda: visible["value"])

        await poller.select("conv-1")
        assert fake.read_marks == []

        visible["value"] = True
        clock.now += 2
        await poller.poll()
        assert fake.read_marks == ["conv-1"]
        await poller.close()

    @pytest.mark.asyncio
    async def test_mark_read_failures_do_not_stop_polling(self):
        fake = FakeMessagingClient()
        fake.fail_mark_read = MessagingError("Internal server error", status_code=500)
        clock = FakeClock()
        poller = self._poller(fake, clock)

        await poller.select("conv-1")
        assert poller.is_polling

        fake.fail_mark_read = None
        clock.now += 2
        await poller.poll()
        assert fake.read_marks == ["conv-1"]
        await poller.close()

    @pytest.mark.asyncio
    async def test_overlapping_selects_leave_a_single_polling_task(self):
        """The second select finishes first while the first is still fetching."""
        fake = FakeMessagingClient()
        gate = asyncio.Event()
        fake.before_fetch_returns = gate.wait
        poller = self._poller(fake)

        def live_loops():
            return [
                task for task in asyncio.all_tasks()
                if task.get_coro().__qualname__ == "ConversationPoller._run" and not task.done()
            ]

        first = asyncio.create_task(poller.select("conv-1"))
        await asyncio.sleep(0)
        second = asyncio.create_task(poller.select("conv-2"))
        await asyncio.sleep(0)
        gate.set()
        await asyncio.gather(first, second)
        await asyncio.sleep(0)

        assert poller.selected_id == "conv-2"
        assert len(live_loops()) == 1

        await poller.close()
        await asyncio.sleep(0)
        assert live_loops() == []

    @pytest.mark.asyncio
    async def test_overlapping_selects_of_the_same_conversation(self):
        fake = FakeMessagingClient()
        gate = asyncio.Event()
        fake.before_fetch_returns = gate.wait
        poller = self._poller(fake)

        first = asyncio.create_task(poller.select("conv-1"))
        await asyncio.sleep(0)
        second = asyncio.create_task(poller.select("conv-1"))
        await asyncio.sleep(0)
        gate.set()
        await asyncio.gather(first, second)
        await asyncio.sleep(0)

        loops = [
            task for task in asyncio.all_tasks()
            if task.get_coro().__qualname__ == "ConversationPoller._run" and not task.done()
        ]
        assert loops == [poller._task]
        await poller.close()

    @pytest.mark.asyncio
    async def test_observe_counts_other_conversations_only(self):
        fake = FakeMessagingClient()
        poller = self._poller(fake)
        await poller.select("conv-1")

        refreshed = [
            _message("x1", sender_id="them", conversation_id="conv-2"),
            _message("x2", sender_id="me", conversation_id="conv-2"),
        ]

        assert poller.observe("conv-2", refreshed) == 1
        assert poller.observe("conv-1", [_message("y1", sender_id="them")]) == 0
        assert poller.unread.total() == 1
        await poller.close()


class TestEndToEnd:
    """Scenario: the sender's own message shows immediately and once."""

    @pytest.mark.asyncio
    async def test_optimistic_send_then_poll_against_the_api(self, client, owner, renter):
        create = await client.post(
            "/message/conversations",
            json={"buyerId": str(renter.id), "sellerId": str(owner.id)},
            headers={"Authorization": f"Bearer {create_access_token(renter.id, renter.email)}"},
        )
        conversation_id = create.json()["conversation"]["id"]

        clock = FakeClock()
        messaging_client = MessagingClient("http://test", transport=ASGITransport(app=app))
        poller = ConversationPoller(
            messaging_client,
            Credentials(create_access_token(renter.id, renter.email)),
            user_id=str(renter.id),
            interval=3600,
            clock=clock,
        )
        try:
            await poller.select(conversation_id)
            assert len(poller.thread) == 0

            confirmed = await poller.send("hello")
            clock.now += 2
            await poller.poll()

            hellos = [m for m in poller.thread.messages if m.text == "hello"]
            assert len(hellos) == 1
            assert hellos[0].id == confirmed.id
            assert not hellos[0].id.startswith("temp-")

            owner_client = Credentials(create_access_token(owner.id, owner.email))
            assert await messaging_client.unread_count(owner_client) == 1
            await messaging_client.mark_read(owner_client, conversation_id)
            assert await messaging_client.unread_count(owner_client) == 0
        finally:
            await poller.close()
            await messaging_client.aclose()
