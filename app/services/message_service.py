"""
Message ledger service - send, edit, soft-delete, search and cursor pagination
"""
import logging
from typing import Optional, List, Sequence
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import AccessDenied, Conflict, NotFound, ValidationFailed, ErrorCode
from app.models.conversation import Conversation
from app.models.enums import MessageType, UploadStatus
from app.models.message import Message, ReadReceipt
from app.schemas.message import (
    MessageResponse,
    MessagePage,
    MessageStatsResponse,
    ReplyPreview,
)
from app.schemas.user import UserSummary
from app.services.conversation_service import conversation_service
from app.services.ledger import append_message, refresh_preview_if_latest
from app.services.read_service import read_service
from app.services.storage_service import storage_service
from app.services.user_service import user_service
from app.utils.time_utils import utc_now, parse_timestamp, to_utc_isoformat

logger = logging.getLogger(__name__)

SENDABLE_TYPES = (MessageType.TEXT, MessageType.IMAGE, MessageType.FILE)
MEDIA_TYPES = (MessageType.IMAGE, MessageType.FILE)


def validate_content(content: Optional[str], allow_empty: bool = False) -> str:
    """Trim and validate message content"""
    content = (content or "").strip()
    if not content and not allow_empty:
        raise ValidationFailed("Message content cannot be empty", ErrorCode.EMPTY_CONTENT)
    if len(content) > settings.MESSAGE_MAX_LENGTH:
        raise ValidationFailed(
            f"Message content cannot exceed {settings.MESSAGE_MAX_LENGTH} characters",
            ErrorCode.CONTENT_TOO_LONG
        )
    return content


class MessageService:
    """Service for message ledger operations"""

    def get_message(self, db: Session, message_id: UUID) -> Message:
        message = db.query(Message).filter(Message.id == message_id).first()
        if not message:
            raise NotFound("Message not found", ErrorCode.MESSAGE_NOT_FOUND)
        return message

    def _validate_reply(self, db: Session, conversation_id: UUID, reply_to_id: Optional[UUID]) -> None:
        # A reply target must already exist, so it is always strictly older than the new message
        if reply_to_id is None:
            return
        target = db.query(Message).filter(Message.id == reply_to_id).first()
        if not target or target.conversation_id != conversation_id or target.deleted:
            raise ValidationFailed("Invalid reply message", ErrorCode.INVALID_REPLY)

    def send_message(
        self,
        db: Session,
        conversation_id: UUID,
        sender_id: str,
        content: str,
        message_type: MessageType = MessageType.TEXT,
        reply_to_id: Optional[UUID] = None
    ) -> Message:
        """Append a message and update the conversation preview in one commit"""
        conversation_service.require_participant(db, conversation_id, sender_id)

        if message_type not in SENDABLE_TYPES:
            raise ValidationFailed(f"Cannot send messages of type '{message_type.value}'")

        content = validate_content(content)
        self._validate_reply(db, conversation_id, reply_to_id)

        conversation = conversation_service.get_conversation(db, conversation_id)
        message = append_message(
            db, conversation, sender_id, content,
            message_type=message_type,
            reply_to_id=reply_to_id,
        )
        db.commit()
        db.refresh(message)

        logger.info(f"Message {message.id} sent to conversation {conversation_id} by {sender_id}")
        return message

    def send_media_message(
        self,
        db: Session,
        conversation_id: UUID,
        sender_id: str,
        message_type: MessageType,
        media_key: str,
        metadata: Optional[dict] = None,
        caption: str = "",
        reply_to_id: Optional[UUID] = None,
        upload_status: UploadStatus = UploadStatus.COMPLETED
    ) -> Message:
        """Append an image/file message that references an object storage key"""
        conversation_service.require_participant(db, conversation_id, sender_id)

        if message_type not in MEDIA_TYPES:
            raise ValidationFailed("Media messages must be of type 'image' or 'file'")
        if not media_key or not media_key.strip():
            raise ValidationFailed("Media key is required")

        caption = validate_content(caption, allow_empty=True)
        self._validate_reply(db, conversation_id, reply_to_id)

        conversation = conversation_service.get_conversation(db, conversation_id)
        message = append_message(
            db, conversation, sender_id, caption,
            message_type=message_type,
            reply_to_id=reply_to_id,
            media_key=media_key.strip(),
            media_metadata=metadata or {},
            upload_status=upload_status,
        )
        db.commit()
        db.refresh(message)

        logger.info(f"Media message {message.id} ({message_type.value}) sent to {conversation_id}")
        return message

    def create_media_key(self, db: Session, conversation_id: UUID, user_id: str, file_name: str, message_type: MessageType) -> str:
        """Name a write-once storage key for an upload into this conversation"""
        conversation_service.require_participant(db, conversation_id, user_id)
        if message_type not in MEDIA_TYPES:
            raise ValidationFailed("Media keys are only issued for 'image' or 'file'")
        return storage_service.build_media_key(conversation_id, file_name, message_type)

    def update_upload_status(
        self,
        db: Session,
        message_id: UUID,
        user_id: str,
        status: UploadStatus,
        metadata: Optional[dict] = None
    ) -> Message:
        """Sender-only update of a media message's upload state"""
        message = self.get_message(db, message_id)

        if message.sender_id != user_id:
            raise AccessDenied("Only the sender can update this message")
        if message.deleted:
            raise Conflict("Message has been deleted", ErrorCode.ALREADY_DELETED)
        if message.type not in MEDIA_TYPES:
            raise ValidationFailed("Only media messages have an upload status")

        message.upload_status = status
        if metadata:
            message.media_metadata = {**(message.media_metadata or {}), **metadata}
        message.updated_at = utc_now()
        db.commit()
        db.refresh(message)
        return message

    def edit_message(self, db: Session, message_id: UUID, user_id: str, new_content: str) -> Message:
        """Edit a message (sender only)"""
        message = self.get_message(db, message_id)

        if message.sender_id != user_id:
            raise AccessDenied("Only the sender can edit this message")

        if message.deleted:
            raise Conflict("Cannot edit deleted message", ErrorCode.ALREADY_DELETED)

        if message.type == MessageType.SYSTEM:
            raise ValidationFailed("System messages cannot be edited")

        content = validate_content(new_content, allow_empty=message.type in MEDIA_TYPES)

        now = utc_now()
        message.content = content
        message.edited = True
        message.edited_at = now
        message.updated_at = now

        conversation = conversation_service.get_conversation(db, message.conversation_id)
        refresh_preview_if_latest(conversation, message)

        db.commit()
        db.refresh(message)

        logger.info(f"Message {message_id} edited by {user_id}")
        return message

    def delete_message(self, db: Session, message_id: UUID, user_id: str) -> Message:
        """
        Soft-delete a message. Allowed for the sender and for active owners/admins.
        Content is cleared and read receipts are removed; the row stays.
        """
        message = self.get_message(db, message_id)

        can_delete = message.sender_id == user_id
        if not can_delete:
            participation = conversation_service.get_participation(db, message.conversation_id, user_id)
            can_delete = bool(
                participation
                and participation.left_at is None
                and participation.role.can_manage
            )

        if not can_delete:
            raise AccessDenied(
                "Insufficient permissions to delete this message",
                ErrorCode.INSUFFICIENT_PERMISSIONS
            )

        if message.deleted:
            raise Conflict("Message already deleted", ErrorCode.ALREADY_DELETED)

        now = utc_now()
        message.deleted = True
        message.deleted_at = now
        message.content = ""
        message.updated_at = now

        db.query(ReadReceipt).filter(ReadReceipt.message_id == message_id).delete(synchronize_session=False)

        conversation = conversation_service.get_conversation(db, message.conversation_id)
        refresh_preview_if_latest(conversation, message)

        db.commit()
        db.refresh(message)

        logger.info(f"Message {message_id} deleted by {user_id}")
        return message

    def get_messages(
        self,
        db: Session,
        conversation_id: UUID,
        user_id: str,
        limit: Optional[int] = None,
        cursor: Optional[str] = None
    ) -> MessagePage:
        """
        Backward cursor pagination over visible messages.

        Returns up to `limit` of the newest messages created strictly before
        `cursor`, in ascending order. `next_cursor` is the created_at of the
        oldest message returned and is only set when `has_more` is true.
        """
        conversation_service.require_participant(db, conversation_id, user_id)
        conversation = conversation_service.get_conversation(db, conversation_id)

        if limit is None:
            limit = settings.MESSAGES_PAGE_DEFAULT
        limit = max(1, min(limit, settings.MESSAGES_PAGE_MAX))

        query = db.query(Message).filter(
            Message.conversation_id == conversation_id,
            Message.deleted.is_(False)
        )
        if cursor:
            try:
                before = parse_timestamp(cursor)
            except ValueError:
                raise ValidationFailed("Invalid pagination cursor")
            query = query.filter(Message.created_at < before)

        rows = query.order_by(Message.created_at.desc()).limit(limit).all()

        has_more = len(rows) == limit
        next_cursor = to_utc_isoformat(rows[-1].created_at) if has_more else None

        rows.reverse()
        return MessagePage(
            messages=self.to_responses(db, conversation, rows, user_id),
            next_cursor=next_cursor,
            has_more=has_more,
        )

    def search_messages(
        self,
        db: Session,
        conversation_id: UUID,
        user_id: str,
        query: str,
        limit: Optional[int] = None
    ) -> List[MessageResponse]:
        """Case-insensitive substring scan over visible messages, newest first"""
        conversation_service.require_participant(db, conversation_id, user_id)
        conversation = conversation_service.get_conversation(db, conversation_id)

        needle = (query or "").strip().lower()
        if not needle:
            return []
        limit = limit or settings.SEARCH_RESULTS_DEFAULT

        messages = db.query(Message).filter(
            Message.conversation_id == conversation_id,
            Message.deleted.is_(False)
        ).order_by(Message.created_at.desc()).all()

        results = [m for m in messages if needle in m.content.lower()][:limit]
        return self.to_responses(db, conversation, results, user_id)

    def get_stats(self, db: Session, conversation_id: UUID, user_id: str) -> MessageStatsResponse:
        """Counts for the conversation header"""
        conversation_service.require_participant(db, conversation_id, user_id)

        visible = db.query(Message).filter(
            Message.conversation_id == conversation_id,
            Message.deleted.is_(False)
        )
        total_count = visible.count()
        my_count = visible.filter(Message.sender_id == user_id).count()
        last_message_at = db.query(func.max(Message.created_at)).filter(
            Message.conversation_id == conversation_id,
            Message.deleted.is_(False)
        ).scalar()

        return MessageStatsResponse(
            total_count=total_count,
            unread_count=read_service.get_unread_count(db, conversation_id, user_id),
            my_message_count=my_count,
            last_message_at=last_message_at,
        )

    def to_response(self, db: Session, message: Message, viewer_id: str) -> MessageResponse:
        conversation = conversation_service.get_conversation(db, message.conversation_id)
        return self.to_responses(db, conversation, [message], viewer_id)[0]

    def to_responses(
        self,
        db: Session,
        conversation: Conversation,
        messages: Sequence[Message],
        viewer_id: str
    ) -> List[MessageResponse]:
        """Attach sender, reply preview, media URL and per-viewer status"""
        if not messages:
            return []

        profiles = user_service.get_profiles(db, {m.sender_id for m in messages})

        reply_ids = {m.reply_to_id for m in messages if m.reply_to_id}
        replies = {}
        if reply_ids:
            replies = {r.id: r for r in db.query(Message).filter(Message.id.in_(reply_ids)).all()}

        statuses = read_service.derive_statuses(db, conversation, messages, viewer_id)

        responses = []
        for m in messages:
            profile = profiles.get(m.sender_id)
            reply = replies.get(m.reply_to_id) if m.reply_to_id else None
            responses.append(MessageResponse(
                id=m.id,
                conversation_id=m.conversation_id,
                sender_id=m.sender_id,
                sender=UserSummary.model_validate(profile) if profile else UserSummary(
                    user_id=m.sender_id, display_name="Unknown User"
                ),
                content=m.content,
                type=m.type,
                reply_to_id=m.reply_to_id,
                reply_to=ReplyPreview(
                    id=reply.id,
                    sender_id=reply.sender_id,
                    content=reply.content,
                    type=reply.type,
                    deleted=reply.deleted,
                ) if reply else None,
                edited=m.edited,
                edited_at=m.edited_at,
                deleted=m.deleted,
                deleted_at=m.deleted_at,
                created_at=m.created_at,
                updated_at=m.updated_at,
                media_key=m.media_key,
                media_url=storage_service.resolve_url(m.media_key),
                media_metadata=m.media_metadata,
                upload_status=m.upload_status,
                status=statuses.get(m.id),
            ))
        return responses


message_service = MessageService()
