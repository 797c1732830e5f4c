import pytest

from app.core.config import settings
from app.core.errors import AccessDenied, ValidationFailed
from app.services.message_service import message_service

from tests.helpers import direct_chat


def _fill(db, conversation_id, count):
    senders = ("alice", "bob")
    return [
        message_service.send_message(db, conversation_id, senders[i % 2], f"message {i}")
        for i in range(count)
    ]


def test_pages_are_complete_ordered_and_unique(db, users):
    chat = direct_chat(db, "alice", "bob")
    sent = _fill(db, chat.id, 45)

    pages = []
    cursor = None
    while True:
        page = message_service.get_messages(db, chat.id, "alice", limit=20, cursor=cursor)
        pages.append(page)
        if not page.has_more:
            break
        cursor = page.next_cursor

    assert [len(p.messages) for p in pages] == [20, 20, 5]
    assert pages[-1].next_cursor is None

    # Pages walk backwards; each page is ascending
    collected = []
    for page in reversed(pages):
        stamps = [m.created_at for m in page.messages]
        assert stamps == sorted(stamps)
        collected.extend(m.id for m in page.messages)

    assert collected == [m.id for m in sent]
    assert len(set(collected)) == len(collected)


def test_full_last_page_reports_more_then_empty(db, users):
    chat = direct_chat(db, "alice", "bob")
    _fill(db, chat.id, 10)

    first = message_service.get_messages(db, chat.id, "bob", limit=10)
    assert first.has_more is True
    assert first.next_cursor is not None

    second = message_service.get_messages(db, chat.id, "bob", limit=10, cursor=first.next_cursor)
    assert second.messages == []
    assert second.has_more is False
    assert second.next_cursor is None


def test_deleted_messages_are_skipped(db, users):
    chat = direct_chat(db, "alice", "bob")
    sent = _fill(db, chat.id, 6)
    message_service.delete_message(db, sent[2].id, "alice")

    page = message_service.get_messages(db, chat.id, "alice", limit=50)

    assert sent[2].id not in {m.id for m in page.messages}
    assert len(page.messages) == 5


def test_limit_is_clamped(db, users):
    chat = direct_chat(db, "alice", "bob")
    _fill(db, chat.id, 3)

    page = message_service.get_messages(db, chat.id, "alice", limit=settings.MESSAGES_PAGE_MAX + 500)
    assert len(page.messages) == 3

    page = message_service.get_messages(db, chat.id, "alice", limit=0)
    assert len(page.messages) == 1
    assert page.has_more is True


def test_malformed_cursor(db, users):
    chat = direct_chat(db, "alice", "bob")

    with pytest.raises(ValidationFailed):
        message_service.get_messages(db, chat.id, "alice", cursor="yesterday-ish")


def test_outsider_cannot_page(db, users):
    chat = direct_chat(db, "alice", "bob")

    with pytest.raises(AccessDenied):
        message_service.get_messages(db, chat.id, "carol")
