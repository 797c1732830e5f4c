from datetime import timedelta

import pytest

from app.core.config import settings
from app.core.errors import AccessDenied
from app.models.enums import FriendRequestStatus, PresenceStatus
from app.schemas.feed import FriendRequestDirection, ParticipantEventType
from app.services.conversation_service import conversation_service
from app.services.feed_service import feed_service
from app.services.message_service import message_service
from app.services.read_service import read_service
from app.services.social_service import social_service
from app.services.user_service import user_service

from tests.helpers import direct_chat, group_chat


def test_message_feed_delivers_new_edited_and_deleted(db, users):
    chat = direct_chat(db, "alice", "bob")
    keep = message_service.send_message(db, chat.id, "alice", "keep me")
    drop = message_service.send_message(db, chat.id, "alice", "drop me")

    initial = feed_service.message_changes(db, chat.id, "bob")
    assert [m.id for m in initial.messages] == [keep.id, drop.id]

    quiet = feed_service.message_changes(db, chat.id, "bob", since=initial.server_time)
    assert quiet.messages == []
    assert quiet.server_time == initial.server_time

    message_service.edit_message(db, keep.id, "alice", "kept")
    message_service.delete_message(db, drop.id, "alice")

    changes = feed_service.message_changes(db, chat.id, "bob", since=initial.server_time)
    by_id = {m.id: m for m in changes.messages}
    assert set(by_id) == {keep.id, drop.id}
    assert by_id[keep.id].edited and by_id[keep.id].content == "kept"
    assert by_id[drop.id].deleted and by_id[drop.id].content == ""


def test_message_feed_requires_participation(db, users):
    chat = direct_chat(db, "alice", "bob")

    with pytest.raises(AccessDenied):
        feed_service.message_changes(db, chat.id, "carol")


def test_conversation_feed(db, users):
    chat = direct_chat(db, "alice", "bob")

    initial = feed_service.conversation_changes(db, "bob")
    assert [c.id for c in initial.conversations] == [chat.id]

    assert feed_service.conversation_changes(db, "bob", since=initial.server_time).conversations == []

    message_service.send_message(db, chat.id, "alice", "new activity")
    changed = feed_service.conversation_changes(db, "bob", since=initial.server_time)
    assert [c.id for c in changed.conversations] == [chat.id]
    assert changed.conversations[0].unread_count == 1
    assert changed.conversations[0].last_message_preview == "new activity"


def test_read_state_feed(db, users):
    chat = group_chat(db, "alice", ["bob", "carol"])
    message = message_service.send_message(db, chat.id, "alice", "read me")
    watermark = feed_service.read_state_changes(db, chat.id, "alice").server_time

    read_service.mark_as_read(db, chat.id, "bob", [message.id])

    changes = feed_service.read_state_changes(db, chat.id, "alice", since=watermark)
    assert [(r.message_id, r.user_id) for r in changes.receipts] == [(message.id, "bob")]
    assert [c.user_id for c in changes.cursors] == ["bob"]


def test_presence_feed_shows_other_participants(db, users):
    chat = direct_chat(db, "alice", "bob")
    watermark = feed_service.presence_changes(db, chat.id, "alice").server_time

    user_service.heartbeat(db, "bob", PresenceStatus.ONLINE)
    user_service.heartbeat(db, "alice", PresenceStatus.ONLINE)

    changes = feed_service.presence_changes(db, chat.id, "alice", since=watermark)
    assert [u.user_id for u in changes.users] == ["bob"]
    assert changes.users[0].presence == PresenceStatus.ONLINE


def test_participant_feed_merges_joins_and_leaves(db, users):
    chat = group_chat(db, "alice", ["bob", "carol"])

    initial = feed_service.participant_changes(db, chat.id, "alice")
    assert {e.user_id for e in initial.events} == {"alice", "bob", "carol"}
    assert all(e.type == ParticipantEventType.JOINED for e in initial.events)

    conversation_service.leave_conversation(db, chat.id, "carol")
    conversation_service.add_participants(db, chat.id, ["dave"], "alice")

    changes = feed_service.participant_changes(db, chat.id, "alice", since=initial.server_time)
    assert [(e.type, e.user_id) for e in changes.events] == [
        (ParticipantEventType.LEFT, "carol"),
        (ParticipantEventType.JOINED, "dave"),
    ]


def test_friend_request_feed(db, users):
    request, _, _ = social_service.send_friend_request(db, "alice", friend_user_id="bob")

    incoming = feed_service.friend_request_changes(db, "bob")
    assert [(e.direction, e.request_id) for e in incoming.requests] == [
        (FriendRequestDirection.RECEIVED, request.id)
    ]
    assert incoming.requests[0].user.user_id == "alice"

    watermark = feed_service.friend_request_changes(db, "alice").server_time
    social_service.accept_friend_request(db, "bob", request.id)

    resolved = feed_service.friend_request_changes(db, "alice", since=watermark)
    assert len(resolved.requests) == 1
    assert resolved.requests[0].direction == FriendRequestDirection.SENT
    assert resolved.requests[0].status == FriendRequestStatus.ACCEPTED


def test_message_feed_watermark_trails_newest_row(db, users, monkeypatch):
    monkeypatch.setattr(settings, "FEED_WATERMARK_OVERLAP_SECONDS", 2.0)
    chat = direct_chat(db, "alice", "bob")
    message_service.send_message(db, chat.id, "alice", "first")
    second = message_service.send_message(db, chat.id, "alice", "second")

    feed = feed_service.message_changes(db, chat.id, "bob")
    assert feed.server_time == second.updated_at - timedelta(seconds=2)

    # Stamped before the poll above but committed after it
    late = message_service.send_message(db, chat.id, "alice", "late")
    late.updated_at = second.updated_at - timedelta(milliseconds=500)
    db.commit()

    assert late.id not in {
        m.id for m in feed_service.message_changes(db, chat.id, "bob", since=second.updated_at).messages
    }
    changes = feed_service.message_changes(db, chat.id, "bob", since=feed.server_time)
    assert late.id in {m.id for m in changes.messages}
    assert changes.server_time >= feed.server_time


def test_watermark_never_moves_backwards(db, users, monkeypatch):
    monkeypatch.setattr(settings, "FEED_WATERMARK_OVERLAP_SECONDS", 2.0)
    chat = direct_chat(db, "alice", "bob")
    message = message_service.send_message(db, chat.id, "alice", "only one")

    since = message.updated_at - timedelta(milliseconds=1)
    feed = feed_service.message_changes(db, chat.id, "bob", since=since)

    assert [m.id for m in feed.messages] == [message.id]
    assert feed.server_time == since
