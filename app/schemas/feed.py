"""
Change-feed schemas. Every response carries server_time, usable as the next watermark.
"""
import enum
from datetime import datetime
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel

from app.models.enums import FriendRequestStatus, ParticipantRole, PresenceStatus
from app.schemas.conversation import ConversationListItem
from app.schemas.message import MessageResponse
from app.schemas.social import FriendInfo


class ParticipantEventType(str, enum.Enum):
    JOINED = "joined"
    LEFT = "left"


class FriendRequestDirection(str, enum.Enum):
    RECEIVED = "received"
    SENT = "sent"


class MessageFeedResponse(BaseModel):
    conversation_id: UUID
    messages: List[MessageResponse]
    server_time: datetime


class ConversationFeedResponse(BaseModel):
    conversations: List[ConversationListItem]
    server_time: datetime


class ReadReceiptInfo(BaseModel):
    message_id: UUID
    user_id: str
    read_at: datetime

    class Config:
        from_attributes = True


class ReadCursorInfo(BaseModel):
    user_id: str
    last_read_message_id: Optional[UUID] = None
    last_read_at: datetime

    class Config:
        from_attributes = True


class ReadStateFeedResponse(BaseModel):
    conversation_id: UUID
    receipts: List[ReadReceiptInfo]
    cursors: List[ReadCursorInfo]
    server_time: datetime


class PresenceInfo(BaseModel):
    user_id: str
    display_name: Optional[str] = None
    avatar: Optional[str] = None
    presence: PresenceStatus
    last_seen_at: Optional[datetime] = None
    updated_at: datetime

    class Config:
        from_attributes = True


class PresenceFeedResponse(BaseModel):
    conversation_id: UUID
    users: List[PresenceInfo]
    server_time: datetime


class ParticipantEvent(BaseModel):
    type: ParticipantEventType
    user_id: str
    display_name: Optional[str] = None
    avatar: Optional[str] = None
    role: ParticipantRole
    at: datetime


class ParticipantFeedResponse(BaseModel):
    conversation_id: UUID
    events: List[ParticipantEvent]
    server_time: datetime


class FriendRequestEvent(BaseModel):
    direction: FriendRequestDirection
    request_id: UUID
    status: FriendRequestStatus
    message: Optional[str] = None
    user: FriendInfo
    created_at: datetime
    updated_at: Optional[datetime] = None


class FriendRequestFeedResponse(BaseModel):
    requests: List[FriendRequestEvent]
    server_time: datetime
