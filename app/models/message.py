"""
Message ledger models - messages and per-message read receipts
"""
from uuid import uuid4
from sqlalchemy import (
    Column, String, Boolean, DateTime, Text, ForeignKey, Uuid, JSON,
    UniqueConstraint, Index
)
from app.database import Base
from app.models.enums import MessageType, UploadStatus, enum_column
from app.utils.time_utils import utc_now


class Message(Base):
    """
    Append-only message row. After creation only content, edited*, deleted*
    and the media/upload fields change. Deleting clears content and keeps the
    row so ids and ordering stay stable.
    """
    __tablename__ = "messages"

    id = Column(Uuid, primary_key=True, default=uuid4)
    conversation_id = Column(Uuid, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False)
    sender_id = Column(String(255), nullable=False, index=True)
    content = Column(Text, nullable=False, default="")
    type = Column(enum_column(MessageType), nullable=False, default=MessageType.TEXT)
    reply_to_id = Column(Uuid, ForeignKey("messages.id"), nullable=True, index=True)

    # Edit / soft-delete state
    edited = Column(Boolean, nullable=False, default=False)
    edited_at = Column(DateTime, nullable=True)
    deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime, nullable=True)

    # Media (object storage key + client supplied metadata)
    media_key = Column(Text, nullable=True)
    media_metadata = Column(JSON, nullable=True)
    upload_status = Column(enum_column(UploadStatus), nullable=True)

    # Timestamps. created_at is strictly increasing per conversation;
    # updated_at moves on every mutation and drives the change feed.
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now)

    __table_args__ = (
        Index("ix_messages_conversation_created", "conversation_id", "created_at"),
        Index("ix_messages_conversation_updated", "conversation_id", "updated_at"),
    )

    def __repr__(self):
        return f"<Message(id={self.id}, conversation_id={self.conversation_id}, type={self.type})>"


class ReadReceipt(Base):
    """Per-message read receipt, written for group conversations only"""
    __tablename__ = "read_receipts"

    id = Column(Uuid, primary_key=True, default=uuid4)
    message_id = Column(Uuid, ForeignKey("messages.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(255), nullable=False, index=True)
    read_at = Column(DateTime, nullable=False, default=utc_now)

    __table_args__ = (
        UniqueConstraint("message_id", "user_id", name="uq_read_receipt_message_user"),
    )
