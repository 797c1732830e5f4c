"""
Message schemas
"""
from datetime import datetime
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel, Field

from app.models.enums import MessageType, UploadStatus, DeliveryStatus
from app.schemas.user import UserSummary


class MessageCreate(BaseModel):
    """Send a text/image/file message"""
    content: str
    type: MessageType = MessageType.TEXT
    reply_to_id: Optional[UUID] = None


class MediaMetadata(BaseModel):
    """Client supplied metadata for an uploaded object"""
    width: Optional[int] = None
    height: Optional[int] = None
    size: Optional[int] = None
    mime_type: Optional[str] = None
    file_name: Optional[str] = None


class MediaMessageCreate(BaseModel):
    """Message pointing at an object already written to storage"""
    type: MessageType = MessageType.IMAGE
    media_key: str = Field(..., min_length=1)
    metadata: MediaMetadata = Field(default_factory=MediaMetadata)
    caption: str = ""
    reply_to_id: Optional[UUID] = None
    upload_status: UploadStatus = UploadStatus.COMPLETED


class MessageEdit(BaseModel):
    content: str


class UploadStatusUpdate(BaseModel):
    status: UploadStatus
    metadata: Optional[MediaMetadata] = None


class MarkReadRequest(BaseModel):
    message_ids: List[UUID] = Field(default_factory=list)


class ReplyPreview(BaseModel):
    """Compact view of the message being replied to"""
    id: UUID
    sender_id: str
    content: str
    type: MessageType
    deleted: bool = False


class MessageResponse(BaseModel):
    """Message as seen by one viewer"""
    id: UUID
    conversation_id: UUID
    sender_id: str
    sender: Optional[UserSummary] = None
    content: str
    type: MessageType
    reply_to_id: Optional[UUID] = None
    reply_to: Optional[ReplyPreview] = None
    edited: bool = False
    edited_at: Optional[datetime] = None
    deleted: bool = False
    deleted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    media_key: Optional[str] = None
    media_url: Optional[str] = None
    media_metadata: Optional[dict] = None
    upload_status: Optional[UploadStatus] = None
    status: Optional[DeliveryStatus] = None


class MessagePage(BaseModel):
    """One page of the backward pagination protocol, in ascending order"""
    messages: List[MessageResponse]
    next_cursor: Optional[str] = None
    has_more: bool


class MessageSendResponse(BaseModel):
    message_id: UUID
    created_at: datetime


class MessageStatsResponse(BaseModel):
    total_count: int
    unread_count: int
    my_message_count: int
    last_message_at: Optional[datetime] = None


class MessageStatusResponse(BaseModel):
    message_id: UUID
    status: DeliveryStatus


class MessageSearchResponse(BaseModel):
    messages: List[MessageResponse]
    total_count: int


class MediaKeyRequest(BaseModel):
    file_name: str = Field(..., min_length=1, max_length=255)
    type: MessageType = MessageType.IMAGE


class MediaKeyResponse(BaseModel):
    """Where the client should upload before sending the media message"""
    media_key: str
    media_url: str


class MarkReadResponse(BaseModel):
    conversation_id: UUID
    last_read_message_id: Optional[UUID] = None
    last_read_at: Optional[datetime] = None
    unread_count: int
