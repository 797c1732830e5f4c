"""
User profile and presence endpoints
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.user import (
    UserProfileCreate,
    UserProfileUpdate,
    UserProfileResponse,
    PresenceUpdate,
    UserSummary,
    UserSearchResponse,
)
from app.core.dependencies import get_current_user_id
from app.services.user_service import user_service
import logging

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/me", response_model=UserProfileResponse, status_code=201)
async def register_profile(
    profile_data: UserProfileCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Create the chat profile for the authenticated user
    """
    profile = user_service.register(
        db,
        user_id,
        display_name=profile_data.display_name,
        handle=profile_data.handle,
        avatar=profile_data.avatar,
        bio=profile_data.bio,
    )
    return user_service.to_response(profile)


@router.get("/me", response_model=UserProfileResponse)
async def get_my_profile(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Get current user's profile
    """
    return user_service.to_response(user_service.require_profile(db, user_id))


@router.put("/me", response_model=UserProfileResponse)
async def update_my_profile(
    update_data: UserProfileUpdate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Update current user's profile
    """
    fields = update_data.model_dump(exclude_unset=True)
    profile = user_service.update_profile(db, user_id, **fields)
    return user_service.to_response(profile)


@router.post("/me/presence", response_model=UserProfileResponse)
async def heartbeat(
    presence_data: PresenceUpdate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Presence heartbeat. Clients that stop calling this go offline after the timeout.
    """
    profile = user_service.heartbeat(db, user_id, presence_data.presence)
    return user_service.to_response(profile)


@router.get("/search", response_model=UserSearchResponse)
async def search_users(
    q: str = Query(..., min_length=1, max_length=50),
    limit: int = Query(20, ge=1, le=50),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Search users by handle prefix
    """
    profiles = user_service.search_by_handle(db, q, limit=limit)
    users = [UserSummary.model_validate(p) for p in profiles if p.user_id != user_id]
    return UserSearchResponse(users=users, total_count=len(users))


@router.get("/{profile_user_id}", response_model=UserProfileResponse)
async def get_user_profile(
    profile_user_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Get another user's public profile
    """
    return user_service.to_response(user_service.require_profile(db, profile_user_id))
