"""
User profile schemas
"""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field

from app.models.enums import PresenceStatus


class UserProfileCreate(BaseModel):
    """Register a chat profile for the authenticated user"""
    display_name: Optional[str] = Field(None, max_length=255)
    handle: Optional[str] = None
    avatar: Optional[str] = None
    bio: Optional[str] = None


class UserProfileUpdate(BaseModel):
    """Profile update (last write wins)"""
    display_name: Optional[str] = Field(None, max_length=255)
    handle: Optional[str] = None
    avatar: Optional[str] = None
    bio: Optional[str] = None
    status_message: Optional[str] = Field(None, max_length=255)


class PresenceUpdate(BaseModel):
    """Presence heartbeat"""
    presence: PresenceStatus = PresenceStatus.ONLINE


class UserSummary(BaseModel):
    """Minimal profile embedded in messages and conversations"""
    user_id: str
    handle: Optional[str] = None
    display_name: Optional[str] = None
    avatar: Optional[str] = None

    class Config:
        from_attributes = True


class UserProfileResponse(BaseModel):
    """Full profile"""
    user_id: str
    handle: Optional[str] = None
    display_name: Optional[str] = None
    avatar: Optional[str] = None
    bio: Optional[str] = None
    status_message: Optional[str] = None
    presence: PresenceStatus
    last_seen_at: Optional[datetime] = None
    is_online: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserSearchResponse(BaseModel):
    """Handle search results"""
    users: List[UserSummary]
    total_count: int
