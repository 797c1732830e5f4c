"""
Conversation schemas
"""
from datetime import datetime
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel, Field

from app.models.enums import ConversationType, ParticipantRole, PresenceStatus


class ConversationCreate(BaseModel):
    """Create a direct or group conversation. The caller is always a participant."""
    type: ConversationType
    participant_ids: List[str] = Field(default_factory=list)
    name: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None


class ConversationCreateResponse(BaseModel):
    """Id of the new (or pre-existing direct) conversation"""
    conversation_id: UUID
    created: bool


class ParticipantInfo(BaseModel):
    """Active participant with profile data"""
    user_id: str
    handle: Optional[str] = None
    display_name: Optional[str] = None
    avatar: Optional[str] = None
    presence: Optional[PresenceStatus] = None
    role: ParticipantRole
    joined_at: datetime


class ConversationResponse(BaseModel):
    """Conversation with its active participants"""
    id: UUID
    type: ConversationType
    name: Optional[str] = None
    description: Optional[str] = None
    avatar: Optional[str] = None
    created_by: str
    archived: bool = False
    last_message_at: Optional[datetime] = None
    last_message_preview: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    participants: List[ParticipantInfo] = []


class ConversationListItem(ConversationResponse):
    """Conversation as seen by one participant"""
    unread_count: int = 0
    role: ParticipantRole
    muted: bool = False
    pinned: bool = False


class ConversationListResponse(BaseModel):
    conversations: List[ConversationListItem]
    total_count: int


class AddParticipantsRequest(BaseModel):
    user_ids: List[str] = Field(..., min_length=1)


class AddParticipantsResponse(BaseModel):
    added_count: int
    added_user_ids: List[str]


class ConversationSettingsUpdate(BaseModel):
    muted: Optional[bool] = None
    pinned: Optional[bool] = None


class ParticipantSettingsResponse(BaseModel):
    conversation_id: UUID
    muted: bool
    pinned: bool


class RoleUpdate(BaseModel):
    role: ParticipantRole


class UnreadCountResponse(BaseModel):
    conversation_id: UUID
    unread_count: int


class ActionResponse(BaseModel):
    success: bool
    message: str
