"""
Conversation models - direct and group conversations and their participants
"""
from uuid import uuid4
from sqlalchemy import (
    Column, String, Boolean, DateTime, Text, ForeignKey, Uuid,
    UniqueConstraint, Index
)
from sqlalchemy.orm import relationship
from app.database import Base
from app.models.enums import ConversationType, ParticipantRole, enum_column
from app.utils.time_utils import utc_now


class Conversation(Base):
    """Direct (1:1) or group conversation"""
    __tablename__ = "conversations"

    id = Column(Uuid, primary_key=True, default=uuid4)
    type = Column(enum_column(ConversationType), nullable=False, index=True)

    # Group-only metadata
    name = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    avatar = Column(Text, nullable=True)

    created_by = Column(String(255), nullable=False, index=True)
    archived = Column(Boolean, nullable=False, default=False)

    # Denormalized for conversation listing
    last_message_at = Column(DateTime, nullable=True, index=True)
    last_message_preview = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, index=True)

    # Relationships
    participants = relationship(
        "Participant",
        back_populates="conversation",
        order_by="Participant.joined_at",
    )


class Participant(Base):
    """Membership of a user in a conversation. left_at is a tombstone, rows are never deleted."""
    __tablename__ = "conversation_participants"

    id = Column(Uuid, primary_key=True, default=uuid4)
    conversation_id = Column(Uuid, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(255), nullable=False, index=True)
    role = Column(enum_column(ParticipantRole), nullable=False, default=ParticipantRole.MEMBER)

    joined_at = Column(DateTime, nullable=False, default=utc_now)
    left_at = Column(DateTime, nullable=True)

    # Read cursor
    last_read_message_id = Column(Uuid, ForeignKey("messages.id"), nullable=True)
    last_read_at = Column(DateTime, nullable=True)

    # Per-user settings
    muted = Column(Boolean, nullable=False, default=False)
    pinned = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint("conversation_id", "user_id", name="uq_participant_conversation_user"),
        Index("ix_participants_user_active", "user_id", "left_at"),
    )

    # Relationships
    conversation = relationship("Conversation", back_populates="participants")

    @property
    def read_watermark(self):
        """Everything created at or before this instant counts as read"""
        return self.last_read_at or self.joined_at
