"""
Change-feed (polling) endpoints. Pass the previous response's server_time as `since`.
"""
from datetime import datetime
from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.core.dependencies import get_current_user_id
from app.schemas.feed import (
    MessageFeedResponse,
    ConversationFeedResponse,
    ReadStateFeedResponse,
    PresenceFeedResponse,
    ParticipantFeedResponse,
    FriendRequestFeedResponse,
)
from app.services.feed_service import feed_service

router = APIRouter(prefix="/feed", tags=["feed"])


@router.get("/conversations", response_model=ConversationFeedResponse)
async def conversation_changes(
    since: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    return feed_service.conversation_changes(db, user_id, since)


@router.get("/conversations/{conversation_id}/messages", response_model=MessageFeedResponse)
async def message_changes(
    conversation_id: UUID,
    since: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """New, edited and deleted messages"""
    return feed_service.message_changes(db, conversation_id, user_id, since)


@router.get("/conversations/{conversation_id}/read-state", response_model=ReadStateFeedResponse)
async def read_state_changes(
    conversation_id: UUID,
    since: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    return feed_service.read_state_changes(db, conversation_id, user_id, since)


@router.get("/conversations/{conversation_id}/presence", response_model=PresenceFeedResponse)
async def presence_changes(
    conversation_id: UUID,
    since: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    return feed_service.presence_changes(db, conversation_id, user_id, since)


@router.get("/conversations/{conversation_id}/participants", response_model=ParticipantFeedResponse)
async def participant_changes(
    conversation_id: UUID,
    since: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    return feed_service.participant_changes(db, conversation_id, user_id, since)


@router.get("/friend-requests", response_model=FriendRequestFeedResponse)
async def friend_request_changes(
    since: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    return feed_service.friend_request_changes(db, user_id, since)
