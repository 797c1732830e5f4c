"""
Social and friends schemas
"""
import enum
from datetime import datetime
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel, Field

from app.models.enums import FriendRequestStatus, PresenceStatus, RelationshipStatus


class FriendRequestAction(str, enum.Enum):
    ACCEPT = "accept"
    REJECT = "reject"


class FriendRequestCreate(BaseModel):
    """Create friend request"""
    friend_handle: Optional[str] = None
    friend_user_id: Optional[str] = None
    message: Optional[str] = Field(None, max_length=500)


class FriendRequestRespond(BaseModel):
    """Accept or reject a received request"""
    action: FriendRequestAction


class FriendInfo(BaseModel):
    """Friend basic info"""
    user_id: str
    handle: Optional[str] = None
    display_name: Optional[str] = None
    avatar: Optional[str] = None
    presence: Optional[PresenceStatus] = None
    last_seen_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FriendWithInfo(BaseModel):
    """Friend with friendship metadata"""
    friend: FriendInfo
    friendship_id: UUID
    since: datetime


class FriendRequestWithUser(BaseModel):
    """Friend request with the other party's info"""
    request_id: UUID
    user: FriendInfo
    status: FriendRequestStatus
    message: Optional[str] = None
    created_at: datetime


class FriendListResponse(BaseModel):
    """Response with list of friends"""
    friends: List[FriendWithInfo]
    total_count: int


class PendingRequestsResponse(BaseModel):
    """Response with pending friend requests"""
    incoming: List[FriendRequestWithUser]
    outgoing: List[FriendRequestWithUser]
    incoming_count: int
    outgoing_count: int


class FriendActionResponse(BaseModel):
    """Response after friend action (send/accept/reject/cancel/remove)"""
    success: bool
    message: str
    request_id: Optional[UUID] = None
    friendship_id: Optional[UUID] = None
    auto_accepted: bool = False


class RelationshipResponse(BaseModel):
    """Relationship of the caller to another user"""
    status: RelationshipStatus
    friendship_id: Optional[UUID] = None
    request_id: Optional[UUID] = None
