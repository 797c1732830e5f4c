import re
from datetime import datetime, timedelta
from typing import List, Optional
from uuid import UUID, uuid4

import pytest

from app.client.optimistic import (
    CommittedId,
    DeliveryState,
    LocalId,
    OptimisticConversation,
    new_temp_id,
)
from app.client.transport import ChatTransport, TransportError
from app.models.enums import MessageType
from app.schemas.feed import MessageFeedResponse
from app.schemas.message import MessagePage, MessageResponse
from app.utils.time_utils import utc_now


class FakeTransport(ChatTransport):
    """In-memory server; set `fail` to make the next calls raise"""

    def __init__(self, conversation_id: UUID):
        self.conversation_id = conversation_id
        self.messages: List[MessageResponse] = []
        self.fail = False
        self.read_calls = []

    def _check(self):
        if self.fail:
            raise TransportError("network down")

    def add(self, sender_id: str, content: str) -> MessageResponse:
        created_at = utc_now() + timedelta(microseconds=len(self.messages))
        message = MessageResponse(
            id=uuid4(),
            conversation_id=self.conversation_id,
            sender_id=sender_id,
            content=content,
            type=MessageType.TEXT,
            created_at=created_at,
            updated_at=created_at,
        )
        self.messages.append(message)
        return message

    def _replace(self, message_id: UUID, **changes) -> MessageResponse:
        for i, message in enumerate(self.messages):
            if message.id == message_id:
                updated = message.model_copy(update={**changes, "updated_at": utc_now()})
                self.messages[i] = updated
                return updated
        raise TransportError("Message not found", status_code=404, code="MESSAGE_NOT_FOUND")

    async def send_message(self, conversation_id, content, message_type=MessageType.TEXT, reply_to_id=None):
        self._check()
        return self.add("me", content)

    async def edit_message(self, message_id, content):
        self._check()
        return self._replace(message_id, content=content, edited=True)

    async def delete_message(self, message_id):
        self._check()
        return self._replace(message_id, content="", deleted=True)

    async def mark_read(self, conversation_id, message_ids):
        self._check()
        self.read_calls.append(list(message_ids))

    async def fetch_page(self, conversation_id, limit, cursor: Optional[str] = None):
        self._check()
        visible = [m for m in self.messages if not m.deleted]
        if cursor:
            before = datetime.fromisoformat(cursor)
            visible = [m for m in visible if m.created_at < before]
        page = visible[-limit:]
        has_more = len(page) == limit
        return MessagePage(
            messages=page,
            next_cursor=page[0].created_at.isoformat() if has_more else None,
            has_more=has_more,
        )

    async def fetch_message_changes(self, conversation_id, since=None):
        self._check()
        changed = [m for m in self.messages if since is None or m.updated_at > since]
        return MessageFeedResponse(conversation_id=conversation_id, messages=changed, server_time=utc_now())


@pytest.fixture
def transport():
    return FakeTransport(uuid4())


@pytest.fixture
def chat(transport):
    return OptimisticConversation(transport, transport.conversation_id, "me", page_size=2)


def test_temp_id_format():
    first, second = new_temp_id(), new_temp_id()
    assert re.fullmatch(r"temp_\d+_[0-9a-f]{8}", first)
    assert first != second


@pytest.mark.asyncio
async def test_send_swaps_local_id_for_server_id(chat, transport):
    row = await chat.send("hello")

    assert row.state == DeliveryState.SENT
    assert isinstance(row.key, CommittedId)
    assert row.key.server_id == transport.messages[0].id
    assert chat.get(LocalId(row.temp_id)) is None
    assert chat.resolve(LocalId(row.temp_id)) == row.key
    assert [m.content for m in chat.messages] == ["hello"]


@pytest.mark.asyncio
async def test_failed_send_keeps_content_for_retry(chat, transport):
    transport.fail = True
    row = await chat.send("  exact text  ")

    assert row.state == DeliveryState.FAILED
    assert row.content == "  exact text  "
    assert row.error == "network down"
    local_id = row.key
    assert isinstance(local_id, LocalId)
    assert chat.messages == [row]

    transport.fail = False
    retried = await chat.retry(local_id)

    assert retried is row
    assert row.state == DeliveryState.SENT
    assert isinstance(row.key, CommittedId)
    assert len(chat.messages) == 1


@pytest.mark.asyncio
async def test_discard_failed_message(chat, transport):
    transport.fail = True
    row = await chat.send("never mind")

    chat.discard(row.key)

    assert chat.messages == []
    with pytest.raises(KeyError):
        chat.discard(row.key)


@pytest.mark.asyncio
async def test_retry_only_for_failed_rows(chat):
    row = await chat.send("fine")

    with pytest.raises(KeyError):
        await chat.retry(LocalId(row.temp_id))


@pytest.mark.asyncio
async def test_edit_rolls_back_on_error(chat, transport):
    row = await chat.send("original")

    transport.fail = True
    with pytest.raises(TransportError):
        await chat.edit(row.key, "changed")

    assert row.content == "original"
    assert row.edited is False

    transport.fail = False
    await chat.edit(row.key, "changed")
    assert row.content == "changed"
    assert row.edited is True


@pytest.mark.asyncio
async def test_delete_rolls_back_on_error(chat, transport):
    row = await chat.send("keep?")

    transport.fail = True
    with pytest.raises(TransportError):
        await chat.delete(row.key)
    assert row.deleted is False
    assert row.content == "keep?"

    transport.fail = False
    await chat.delete(row.key)
    assert row.deleted is True
    assert chat.messages == []


@pytest.mark.asyncio
async def test_mark_read_rolls_back_on_error(chat, transport):
    incoming = transport.add("friend", "did you see this?")
    await chat.poll()
    key = CommittedId(incoming.id)

    transport.fail = True
    with pytest.raises(TransportError):
        await chat.mark_read([key])
    assert chat.get(key).read is False

    transport.fail = False
    await chat.mark_read([key])
    assert chat.get(key).read is True
    assert transport.read_calls == [[incoming.id]]


@pytest.mark.asyncio
async def test_poll_merge_is_idempotent(chat, transport):
    transport.add("friend", "one")
    transport.add("friend", "two")

    first = await chat.poll()
    assert len(first) == 2
    watermark = chat.watermark
    assert watermark is not None

    snapshot = [(m.key, m.content) for m in chat.messages]
    for message in transport.messages:
        chat.merge(message)
    assert [(m.key, m.content) for m in chat.messages] == snapshot

    assert await chat.poll() == []
    assert chat.watermark >= watermark


@pytest.mark.asyncio
async def test_poll_applies_remote_edits(chat, transport):
    message = transport.add("friend", "typo")
    await chat.poll()

    transport._replace(message.id, content="fixed", edited=True)
    await chat.poll()

    row = chat.get(CommittedId(message.id))
    assert row.content == "fixed"
    assert row.edited is True
    assert len(chat.messages) == 1


@pytest.mark.asyncio
async def test_load_latest_then_older(chat, transport):
    for i in range(5):
        transport.add("friend", f"m{i}")

    latest = await chat.load_latest()
    assert [r.content for r in latest] == ["m3", "m4"]
    assert chat.has_more is True

    older = await chat.load_older()
    assert [r.content for r in older] == ["m1", "m2"]

    oldest = await chat.load_older()
    assert [r.content for r in oldest] == ["m0"]
    assert chat.has_more is False
    assert await chat.load_older() == []

    assert [m.content for m in chat.messages] == ["m0", "m1", "m2", "m3", "m4"]
