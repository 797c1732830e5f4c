"""
Social/Friends API endpoints
"""
from uuid import UUID
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.core.dependencies import get_current_user_id
from app.schemas.social import (
    FriendRequestCreate,
    FriendRequestRespond,
    FriendRequestAction,
    FriendListResponse,
    PendingRequestsResponse,
    FriendActionResponse,
    RelationshipResponse,
)
from app.services.social_service import social_service

router = APIRouter(prefix="/social", tags=["social"])


@router.get("/friends", response_model=FriendListResponse)
async def get_friends(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """Get current user's friends list"""
    return social_service.get_friends(db, user_id)


@router.get("/requests", response_model=PendingRequestsResponse)
async def get_pending_requests(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """Get pending friend requests (incoming and outgoing)"""
    return social_service.get_pending_requests(db, user_id)


@router.post("/friends/request", response_model=FriendActionResponse)
async def send_friend_request(
    request: FriendRequestCreate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """Send a friend request to another user"""
    friend_request, friendship, message = social_service.send_friend_request(
        db,
        user_id,
        friend_handle=request.friend_handle,
        friend_user_id=request.friend_user_id,
        message=request.message
    )
    return FriendActionResponse(
        success=True,
        message=message,
        request_id=friend_request.id if friend_request else None,
        friendship_id=friendship.id if friendship else None,
        auto_accepted=friendship is not None
    )


@router.post("/requests/{request_id}/respond", response_model=FriendActionResponse)
async def respond_to_friend_request(
    request_id: UUID,
    response: FriendRequestRespond,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """Accept or reject a received friend request"""
    accept = response.action == FriendRequestAction.ACCEPT
    friend_request, friendship = social_service.respond_to_request(db, user_id, request_id, accept)
    return FriendActionResponse(
        success=True,
        message="Friend request accepted" if accept else "Friend request rejected",
        request_id=friend_request.id,
        friendship_id=friendship.id if friendship else None
    )


@router.post("/requests/{request_id}/cancel", response_model=FriendActionResponse)
async def cancel_friend_request(
    request_id: UUID,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """Cancel a sent friend request"""
    social_service.cancel_friend_request(db, user_id, request_id)
    return FriendActionResponse(
        success=True,
        message="Friend request cancelled",
        request_id=request_id
    )


@router.delete("/friends/{friend_id}", response_model=FriendActionResponse)
async def remove_friend(
    friend_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """Remove a friend"""
    social_service.remove_friend(db, user_id, friend_id)
    return FriendActionResponse(
        success=True,
        message="Friend removed"
    )


@router.get("/relationship/{other_user_id}", response_model=RelationshipResponse)
async def check_relationship(
    other_user_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """Relationship of the caller towards another user"""
    return social_service.check_relationship(db, user_id, other_user_id)
