"""
Conversation directory endpoints
"""
from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.core.dependencies import get_current_user_id
from app.schemas.conversation import (
    ConversationCreate,
    ConversationCreateResponse,
    ConversationResponse,
    ConversationListResponse,
    AddParticipantsRequest,
    AddParticipantsResponse,
    ConversationSettingsUpdate,
    ParticipantSettingsResponse,
    RoleUpdate,
    ParticipantInfo,
    ActionResponse,
)
from app.services.conversation_service import conversation_service

router = APIRouter(prefix="/conversations", tags=["conversations"])


@router.post("", response_model=ConversationCreateResponse)
async def create_conversation(
    request: ConversationCreate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """Create a conversation; direct conversations are de-duplicated per pair"""
    conversation, created = conversation_service.create_conversation(
        db,
        user_id,
        request.type,
        request.participant_ids,
        name=request.name,
        description=request.description
    )
    return ConversationCreateResponse(conversation_id=conversation.id, created=created)


@router.get("", response_model=ConversationListResponse)
async def list_conversations(
    limit: Optional[int] = Query(None, ge=1, le=100),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """Active conversations of the caller, pinned first, then by last activity"""
    conversations = conversation_service.list_for_user(db, user_id, limit=limit)
    return ConversationListResponse(conversations=conversations, total_count=len(conversations))


@router.get("/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(
    conversation_id: UUID,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """Conversation detail with active participants"""
    return conversation_service.get_by_id(db, conversation_id, user_id)


@router.post("/{conversation_id}/participants", response_model=AddParticipantsResponse)
async def add_participants(
    conversation_id: UUID,
    request: AddParticipantsRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """Add users to a group (owners and admins only)"""
    added = conversation_service.add_participants(db, conversation_id, request.user_ids, user_id)
    return AddParticipantsResponse(added_count=len(added), added_user_ids=added)


@router.post("/{conversation_id}/leave", response_model=ActionResponse)
async def leave_conversation(
    conversation_id: UUID,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """Leave a group conversation"""
    conversation_service.leave_conversation(db, conversation_id, user_id)
    return ActionResponse(success=True, message="Left conversation")


@router.patch("/{conversation_id}/settings", response_model=ParticipantSettingsResponse)
async def update_settings(
    conversation_id: UUID,
    request: ConversationSettingsUpdate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """Mute or pin a conversation for the caller"""
    participant = conversation_service.update_settings(
        db, conversation_id, user_id,
        muted=request.muted,
        pinned=request.pinned
    )
    return ParticipantSettingsResponse(
        conversation_id=conversation_id,
        muted=participant.muted,
        pinned=participant.pinned
    )


@router.patch("/{conversation_id}/participants/{target_user_id}", response_model=ParticipantInfo)
async def change_role(
    conversation_id: UUID,
    target_user_id: str,
    request: RoleUpdate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """Change a member's role (owner only)"""
    participant = conversation_service.change_role(db, conversation_id, target_user_id, request.role, user_id)
    return conversation_service.participant_infos(db, [participant])[0]
