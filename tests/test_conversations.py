import pytest

from app.core.errors import AccessDenied, Conflict, NotFound, ValidationFailed, ErrorCode
from app.models.enums import ConversationType, MessageType, ParticipantRole
from app.models.message import Message
from app.services.conversation_service import conversation_service
from app.services.message_service import message_service

from tests.helpers import befriend, direct_chat, group_chat


def test_direct_requires_friendship(db, users):
    with pytest.raises(Conflict) as exc:
        conversation_service.create_conversation(db, "alice", ConversationType.DIRECT, ["bob"])
    assert exc.value.code == ErrorCode.NOT_FRIENDS


def test_direct_conversation_is_deduplicated(db, users):
    befriend(db, "alice", "bob")

    first, created = conversation_service.create_conversation(db, "alice", ConversationType.DIRECT, ["bob"])
    again, created_again = conversation_service.create_conversation(db, "alice", ConversationType.DIRECT, ["bob"])
    reverse, created_reverse = conversation_service.create_conversation(db, "bob", ConversationType.DIRECT, ["alice"])

    assert created is True
    assert created_again is False
    assert created_reverse is False
    assert first.id == again.id == reverse.id


def test_direct_needs_exactly_two_people(db, users):
    with pytest.raises(ValidationFailed) as exc:
        conversation_service.create_conversation(db, "alice", ConversationType.DIRECT, ["bob", "carol"])
    assert exc.value.code == ErrorCode.INVALID_GROUP_PARAMS

    with pytest.raises(ValidationFailed):
        conversation_service.create_conversation(db, "alice", ConversationType.DIRECT, ["alice"])


def test_group_validation(db, users):
    with pytest.raises(ValidationFailed) as exc:
        conversation_service.create_conversation(db, "alice", ConversationType.GROUP, ["bob"], name="  ")
    assert exc.value.code == ErrorCode.INVALID_GROUP_PARAMS

    with pytest.raises(ValidationFailed):
        conversation_service.create_conversation(db, "alice", ConversationType.GROUP, [], name="Solo")


def test_group_creation_roles_and_notice(db, users):
    conversation = group_chat(db, "alice", ["bob", "carol"], name="Weekend")

    participants = conversation_service.active_participants(db, conversation.id)
    roles = {p.user_id: p.role for p in participants}
    assert roles == {
        "alice": ParticipantRole.OWNER,
        "bob": ParticipantRole.MEMBER,
        "carol": ParticipantRole.MEMBER,
    }

    notices = db.query(Message).filter(Message.conversation_id == conversation.id).all()
    assert len(notices) == 1
    assert notices[0].type == MessageType.SYSTEM
    assert notices[0].content == "Alice created this group"
    assert conversation.last_message_preview == "Alice created this group"


def test_add_participants_requires_manager(db, users):
    conversation = group_chat(db, "alice", ["bob"])

    with pytest.raises(AccessDenied) as exc:
        conversation_service.add_participants(db, conversation.id, ["carol"], "bob")
    assert exc.value.code == ErrorCode.INSUFFICIENT_PERMISSIONS

    added = conversation_service.add_participants(db, conversation.id, ["carol", "bob", "carol"], "alice")
    assert added == ["carol"]

    with pytest.raises(Conflict) as exc:
        conversation_service.add_participants(db, conversation.id, ["bob", "carol"], "alice")
    assert exc.value.code == ErrorCode.ALREADY_PARTICIPANT


def test_add_participants_only_for_groups(db, users):
    conversation = direct_chat(db, "alice", "bob")

    with pytest.raises(ValidationFailed):
        conversation_service.add_participants(db, conversation.id, ["carol"], "alice")


def test_admin_can_add(db, users):
    conversation = group_chat(db, "alice", ["bob"])
    conversation_service.change_role(db, conversation.id, "bob", ParticipantRole.ADMIN, "alice")

    assert conversation_service.add_participants(db, conversation.id, ["dave"], "bob") == ["dave"]


def test_leave_and_rejoin(db, users):
    conversation = group_chat(db, "alice", ["bob", "carol"])

    conversation_service.leave_conversation(db, conversation.id, "bob")

    with pytest.raises(AccessDenied):
        conversation_service.get_by_id(db, conversation.id, "bob")
    with pytest.raises(AccessDenied):
        message_service.send_message(db, conversation.id, "bob", "still here?")

    active = {p.user_id for p in conversation_service.active_participants(db, conversation.id)}
    assert active == {"alice", "carol"}

    conversation_service.add_participants(db, conversation.id, ["bob"], "alice")
    participation = conversation_service.get_participation(db, conversation.id, "bob")
    assert participation.left_at is None
    assert participation.role == ParticipantRole.MEMBER


def test_cannot_leave_direct(db, users):
    conversation = direct_chat(db, "alice", "bob")

    with pytest.raises(Conflict) as exc:
        conversation_service.leave_conversation(db, conversation.id, "alice")
    assert exc.value.code == ErrorCode.CANNOT_LEAVE_DIRECT


def test_get_by_id_for_outsider(db, users):
    conversation = group_chat(db, "alice", ["bob"])

    with pytest.raises(AccessDenied):
        conversation_service.get_by_id(db, conversation.id, "carol")

    detail = conversation_service.get_by_id(db, conversation.id, "bob")
    assert detail.name == "Team"
    assert {p.user_id for p in detail.participants} == {"alice", "bob"}


def test_unknown_conversation(db, users):
    from uuid import uuid4

    with pytest.raises(NotFound) as exc:
        conversation_service.get_conversation(db, uuid4())
    assert exc.value.code == ErrorCode.CONVERSATION_NOT_FOUND


def test_list_orders_pinned_first_then_activity(db, users):
    older = group_chat(db, "alice", ["bob"], name="Older")
    newer = group_chat(db, "alice", ["carol"], name="Newer")
    message_service.send_message(db, newer.id, "carol", "latest news")

    listing = conversation_service.list_for_user(db, "alice")
    assert [c.id for c in listing] == [newer.id, older.id]
    assert listing[0].unread_count == 1

    conversation_service.update_settings(db, older.id, "alice", pinned=True, muted=True)
    listing = conversation_service.list_for_user(db, "alice")
    assert [c.id for c in listing] == [older.id, newer.id]
    assert listing[0].pinned and listing[0].muted


def test_only_owner_changes_roles(db, users):
    conversation = group_chat(db, "alice", ["bob", "carol"])

    with pytest.raises(AccessDenied):
        conversation_service.change_role(db, conversation.id, "carol", ParticipantRole.ADMIN, "bob")

    with pytest.raises(Conflict):
        conversation_service.change_role(db, conversation.id, "alice", ParticipantRole.MEMBER, "alice")

    updated = conversation_service.change_role(db, conversation.id, "carol", ParticipantRole.ADMIN, "alice")
    assert updated.role == ParticipantRole.ADMIN
