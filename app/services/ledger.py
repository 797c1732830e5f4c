"""
Ledger primitives shared by the conversation and message services.

Every visible message goes through append_message so the conversation's
denormalized last_message_at / last_message_preview are derived in one place.
"""
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.conversation import Conversation
from app.models.enums import MessageType, UploadStatus
from app.models.message import Message
from app.utils.time_utils import utc_now

PREVIEW_PLACEHOLDERS = {
    MessageType.IMAGE: "[Image]",
    MessageType.FILE: "[File]",
}


def message_preview(message_type: MessageType, content: str) -> str:
    """Conversation list preview for a message"""
    if message_type in PREVIEW_PLACEHOLDERS:
        return PREVIEW_PLACEHOLDERS[message_type]
    limit = settings.MESSAGE_PREVIEW_LENGTH
    if len(content) <= limit:
        return content
    return content[:limit - 3].rstrip() + "..."


def next_created_at(db: Session, conversation_id: UUID) -> datetime:
    """
    Creation time for a new message: now, or one microsecond after the newest
    message in the conversation if the clock has not moved past it. Keeps
    created_at strictly increasing so the pagination cursor is unambiguous.
    """
    now = utc_now()
    latest = db.query(func.max(Message.created_at)).filter(
        Message.conversation_id == conversation_id
    ).scalar()
    if latest is not None and latest >= now:
        return latest + timedelta(microseconds=1)
    return now


def touch_conversation(conversation: Conversation, message: Message) -> None:
    conversation.last_message_at = message.created_at
    conversation.last_message_preview = message_preview(message.type, message.content)
    conversation.updated_at = max(message.created_at, utc_now())


DELETED_PREVIEW = "This message was deleted"


def refresh_preview_if_latest(conversation: Conversation, message: Message) -> None:
    """Keep the listing preview in sync when the newest message is edited or deleted"""
    if conversation.last_message_at != message.created_at:
        return
    if message.deleted:
        conversation.last_message_preview = DELETED_PREVIEW
    else:
        conversation.last_message_preview = message_preview(message.type, message.content)
    conversation.updated_at = utc_now()


def append_message(
    db: Session,
    conversation: Conversation,
    sender_id: str,
    content: str,
    message_type: MessageType = MessageType.TEXT,
    reply_to_id: Optional[UUID] = None,
    media_key: Optional[str] = None,
    media_metadata: Optional[dict] = None,
    upload_status: Optional[UploadStatus] = None,
) -> Message:
    """
    Insert a message and update the parent conversation. Does not commit;
    the caller commits once so both rows land atomically.
    """
    created_at = next_created_at(db, conversation.id)
    # Messages must sort after the participants' joined_at, which equals created_at
    if conversation.created_at is not None and created_at <= conversation.created_at:
        created_at = conversation.created_at + timedelta(microseconds=1)
    message = Message(
        conversation_id=conversation.id,
        sender_id=sender_id,
        content=content,
        type=message_type,
        reply_to_id=reply_to_id,
        edited=False,
        deleted=False,
        media_key=media_key,
        media_metadata=media_metadata,
        upload_status=upload_status,
        created_at=created_at,
        updated_at=created_at,
    )
    db.add(message)
    touch_conversation(conversation, message)
    db.flush()
    return message


def append_system_message(db: Session, conversation: Conversation, actor_id: str, text: str) -> Message:
    """System notices (created/added/left) are attributed to the acting user"""
    return append_message(db, conversation, actor_id, text, MessageType.SYSTEM)
