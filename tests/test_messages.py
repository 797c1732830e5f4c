import pytest

from app.core.config import settings
from app.core.errors import AccessDenied, Conflict, ValidationFailed, ErrorCode
from app.models.enums import MessageType, ParticipantRole, UploadStatus
from app.models.message import ReadReceipt
from app.services.conversation_service import conversation_service
from app.services.ledger import DELETED_PREVIEW
from app.services.message_service import message_service
from app.services.read_service import read_service

from tests.helpers import direct_chat, group_chat


def test_send_trims_and_updates_preview(db, users):
    conversation = direct_chat(db, "alice", "bob")

    message = message_service.send_message(db, conversation.id, "alice", "   hello there  ")

    assert message.content == "hello there"
    assert message.type == MessageType.TEXT
    db.refresh(conversation)
    assert conversation.last_message_preview == "hello there"
    assert conversation.last_message_at == message.created_at


def test_long_preview_is_truncated(db, users):
    conversation = direct_chat(db, "alice", "bob")

    message_service.send_message(db, conversation.id, "alice", "x" * 500)

    db.refresh(conversation)
    assert len(conversation.last_message_preview) == settings.MESSAGE_PREVIEW_LENGTH
    assert conversation.last_message_preview.endswith("...")


def test_send_validation(db, users):
    conversation = direct_chat(db, "alice", "bob")

    with pytest.raises(ValidationFailed) as exc:
        message_service.send_message(db, conversation.id, "alice", "   ")
    assert exc.value.code == ErrorCode.EMPTY_CONTENT

    with pytest.raises(ValidationFailed) as exc:
        message_service.send_message(db, conversation.id, "alice", "y" * (settings.MESSAGE_MAX_LENGTH + 1))
    assert exc.value.code == ErrorCode.CONTENT_TOO_LONG

    with pytest.raises(ValidationFailed):
        message_service.send_message(db, conversation.id, "alice", "hi", message_type=MessageType.SYSTEM)

    with pytest.raises(AccessDenied):
        message_service.send_message(db, conversation.id, "carol", "let me in")


def test_created_at_strictly_increasing(db, users):
    conversation = direct_chat(db, "alice", "bob")

    messages = [message_service.send_message(db, conversation.id, "alice", f"m{i}") for i in range(25)]

    stamps = [m.created_at for m in messages]
    assert all(earlier < later for earlier, later in zip(stamps, stamps[1:]))


def test_reply_must_be_in_same_conversation_and_visible(db, users):
    chat = direct_chat(db, "alice", "bob")
    other = direct_chat(db, "alice", "carol")
    original = message_service.send_message(db, chat.id, "bob", "question?")
    elsewhere = message_service.send_message(db, other.id, "carol", "unrelated")

    reply = message_service.send_message(db, chat.id, "alice", "answer", reply_to_id=original.id)
    assert reply.reply_to_id == original.id

    with pytest.raises(ValidationFailed) as exc:
        message_service.send_message(db, chat.id, "alice", "wrong room", reply_to_id=elsewhere.id)
    assert exc.value.code == ErrorCode.INVALID_REPLY

    message_service.delete_message(db, original.id, "bob")
    with pytest.raises(ValidationFailed) as exc:
        message_service.send_message(db, chat.id, "alice", "too late", reply_to_id=original.id)
    assert exc.value.code == ErrorCode.INVALID_REPLY


def test_reply_preview_in_response(db, users):
    chat = direct_chat(db, "alice", "bob")
    original = message_service.send_message(db, chat.id, "bob", "question?")
    reply = message_service.send_message(db, chat.id, "alice", "answer", reply_to_id=original.id)

    response = message_service.to_response(db, reply, "alice")

    assert response.reply_to.id == original.id
    assert response.reply_to.content == "question?"
    assert response.sender.display_name == "Alice"


def test_edit_rules(db, users):
    chat = direct_chat(db, "alice", "bob")
    message = message_service.send_message(db, chat.id, "alice", "helo")

    with pytest.raises(AccessDenied):
        message_service.edit_message(db, message.id, "bob", "hijacked")

    edited = message_service.edit_message(db, message.id, "alice", "hello")
    assert edited.content == "hello"
    assert edited.edited is True
    assert edited.edited_at is not None
    assert edited.updated_at >= edited.created_at
    db.refresh(chat)
    assert chat.last_message_preview == "hello"

    with pytest.raises(ValidationFailed) as exc:
        message_service.edit_message(db, message.id, "alice", " ")
    assert exc.value.code == ErrorCode.EMPTY_CONTENT

    message_service.delete_message(db, message.id, "alice")
    with pytest.raises(Conflict) as exc:
        message_service.edit_message(db, message.id, "alice", "resurrect")
    assert exc.value.code == ErrorCode.ALREADY_DELETED


def test_delete_is_a_tombstone(db, users):
    chat = group_chat(db, "alice", ["bob", "carol"])
    message = message_service.send_message(db, chat.id, "bob", "oops")
    read_service.mark_as_read(db, chat.id, "carol", [message.id])
    assert db.query(ReadReceipt).count() == 1

    deleted = message_service.delete_message(db, message.id, "bob")

    assert deleted.deleted is True
    assert deleted.content == ""
    assert deleted.deleted_at is not None
    assert db.query(ReadReceipt).count() == 0
    db.refresh(chat)
    assert chat.last_message_preview == DELETED_PREVIEW

    with pytest.raises(Conflict):
        message_service.delete_message(db, message.id, "bob")


def test_delete_permissions(db, users):
    chat = group_chat(db, "alice", ["bob", "carol"])
    message = message_service.send_message(db, chat.id, "bob", "spam")

    with pytest.raises(AccessDenied) as exc:
        message_service.delete_message(db, message.id, "carol")
    assert exc.value.code == ErrorCode.INSUFFICIENT_PERMISSIONS

    conversation_service.change_role(db, chat.id, "carol", ParticipantRole.ADMIN, "alice")
    assert message_service.delete_message(db, message.id, "carol").deleted


def test_search_is_case_insensitive_and_newest_first(db, users):
    chat = direct_chat(db, "alice", "bob")
    first = message_service.send_message(db, chat.id, "alice", "Lunch at noon?")
    message_service.send_message(db, chat.id, "bob", "sure")
    second = message_service.send_message(db, chat.id, "bob", "LUNCH is great")
    hidden = message_service.send_message(db, chat.id, "alice", "lunch again")
    message_service.delete_message(db, hidden.id, "alice")

    results = message_service.search_messages(db, chat.id, "alice", "lunch")

    assert [r.id for r in results] == [second.id, first.id]
    assert message_service.search_messages(db, chat.id, "alice", "   ") == []
    assert len(message_service.search_messages(db, chat.id, "alice", "lunch", limit=1)) == 1


def test_stats(db, users):
    chat = direct_chat(db, "alice", "bob")
    message_service.send_message(db, chat.id, "alice", "one")
    message_service.send_message(db, chat.id, "bob", "two")
    last = message_service.send_message(db, chat.id, "bob", "three")

    stats = message_service.get_stats(db, chat.id, "alice")

    assert stats.total_count == 3
    assert stats.my_message_count == 1
    assert stats.unread_count == 2
    assert stats.last_message_at == last.created_at


def test_media_message(db, users):
    chat = direct_chat(db, "alice", "bob")
    key = message_service.create_media_key(db, chat.id, "alice", "holiday photo.jpg", MessageType.IMAGE)
    assert key.startswith(f"images/{chat.id}/")
    assert key.endswith("holiday_photo.jpg")

    message = message_service.send_media_message(
        db, chat.id, "alice", MessageType.IMAGE, key,
        metadata={"width": 800, "height": 600},
        upload_status=UploadStatus.UPLOADING,
    )

    db.refresh(chat)
    assert chat.last_message_preview == "[Image]"
    response = message_service.to_response(db, message, "bob")
    assert response.media_url == f"{settings.MEDIA_BASE_URL.rstrip('/')}/{key}"
    assert response.media_metadata == {"width": 800, "height": 600}

    with pytest.raises(AccessDenied):
        message_service.update_upload_status(db, message.id, "bob", UploadStatus.COMPLETED)

    updated = message_service.update_upload_status(
        db, message.id, "alice", UploadStatus.COMPLETED, {"size": 1024}
    )
    assert updated.upload_status == UploadStatus.COMPLETED
    assert updated.media_metadata == {"width": 800, "height": 600, "size": 1024}


def test_media_requires_media_type(db, users):
    chat = direct_chat(db, "alice", "bob")

    with pytest.raises(ValidationFailed):
        message_service.send_media_message(db, chat.id, "alice", MessageType.TEXT, "images/x.png")
