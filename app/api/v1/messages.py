"""
Message ledger and read-tracking endpoints
"""
from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.database import get_db
from app.core.config import settings
from app.core.dependencies import get_current_user_id
from app.core.rate_limit import limiter
from app.schemas.conversation import UnreadCountResponse
from app.schemas.message import (
    MessageCreate,
    MediaMessageCreate,
    MediaKeyRequest,
    MediaKeyResponse,
    MessageEdit,
    UploadStatusUpdate,
    MarkReadRequest,
    MarkReadResponse,
    MessageResponse,
    MessagePage,
    MessageSearchResponse,
    MessageStatsResponse,
    MessageStatusResponse,
)
from app.services.message_service import message_service
from app.services.read_service import read_service
from app.services.storage_service import storage_service

router = APIRouter(tags=["messages"])


@router.post("/conversations/{conversation_id}/messages", response_model=MessageResponse, status_code=201)
@limiter.limit(settings.MESSAGE_RATE_LIMIT)
async def send_message(
    request: Request,
    conversation_id: UUID,
    message_data: MessageCreate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """Send a message to a conversation"""
    message = message_service.send_message(
        db,
        conversation_id,
        user_id,
        message_data.content,
        message_type=message_data.type,
        reply_to_id=message_data.reply_to_id
    )
    return message_service.to_response(db, message, user_id)


@router.post("/conversations/{conversation_id}/messages/media", response_model=MessageResponse, status_code=201)
@limiter.limit(settings.MESSAGE_RATE_LIMIT)
async def send_media_message(
    request: Request,
    conversation_id: UUID,
    message_data: MediaMessageCreate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """Send an image/file message for an object already uploaded to storage"""
    message = message_service.send_media_message(
        db,
        conversation_id,
        user_id,
        message_data.type,
        message_data.media_key,
        metadata=message_data.metadata.model_dump(exclude_none=True),
        caption=message_data.caption,
        reply_to_id=message_data.reply_to_id,
        upload_status=message_data.upload_status
    )
    return message_service.to_response(db, message, user_id)


@router.post("/conversations/{conversation_id}/media/key", response_model=MediaKeyResponse)
async def create_media_key(
    conversation_id: UUID,
    key_request: MediaKeyRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """Name a storage key to upload to before sending a media message"""
    key = message_service.create_media_key(db, conversation_id, user_id, key_request.file_name, key_request.type)
    return MediaKeyResponse(media_key=key, media_url=storage_service.resolve_url(key))


@router.get("/conversations/{conversation_id}/messages", response_model=MessagePage)
async def get_messages(
    conversation_id: UUID,
    limit: int = Query(settings.MESSAGES_PAGE_DEFAULT),
    cursor: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """Newest page first; pass next_cursor back to walk backwards through history"""
    return message_service.get_messages(db, conversation_id, user_id, limit=limit, cursor=cursor)


@router.get("/conversations/{conversation_id}/messages/search", response_model=MessageSearchResponse)
async def search_messages(
    conversation_id: UUID,
    q: str = Query(..., min_length=1, max_length=200),
    limit: int = Query(settings.SEARCH_RESULTS_DEFAULT, ge=1, le=100),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """Substring search over visible messages"""
    messages = message_service.search_messages(db, conversation_id, user_id, q, limit=limit)
    return MessageSearchResponse(messages=messages, total_count=len(messages))


@router.get("/conversations/{conversation_id}/stats", response_model=MessageStatsResponse)
async def get_stats(
    conversation_id: UUID,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    return message_service.get_stats(db, conversation_id, user_id)


@router.get("/conversations/{conversation_id}/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(
    conversation_id: UUID,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    return UnreadCountResponse(
        conversation_id=conversation_id,
        unread_count=read_service.get_unread_count(db, conversation_id, user_id)
    )


@router.post("/conversations/{conversation_id}/read", response_model=MarkReadResponse)
async def mark_as_read(
    conversation_id: UUID,
    read_request: MarkReadRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """Mark messages as read; an empty list marks the whole conversation read"""
    participant = read_service.mark_as_read(db, conversation_id, user_id, read_request.message_ids)
    return MarkReadResponse(
        conversation_id=conversation_id,
        last_read_message_id=participant.last_read_message_id,
        last_read_at=participant.last_read_at,
        unread_count=read_service.get_unread_count(db, conversation_id, user_id)
    )


@router.patch("/messages/{message_id}", response_model=MessageResponse)
async def edit_message(
    message_id: UUID,
    edit_data: MessageEdit,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """Edit a message (sender only)"""
    message = message_service.edit_message(db, message_id, user_id, edit_data.content)
    return message_service.to_response(db, message, user_id)


@router.delete("/messages/{message_id}", response_model=MessageResponse)
async def delete_message(
    message_id: UUID,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """Soft-delete a message (sender, owner or admin)"""
    message = message_service.delete_message(db, message_id, user_id)
    return message_service.to_response(db, message, user_id)


@router.patch("/messages/{message_id}/upload-status", response_model=MessageResponse)
async def update_upload_status(
    message_id: UUID,
    status_data: UploadStatusUpdate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    metadata = status_data.metadata.model_dump(exclude_none=True) if status_data.metadata else None
    message = message_service.update_upload_status(db, message_id, user_id, status_data.status, metadata)
    return message_service.to_response(db, message, user_id)


@router.get("/messages/{message_id}/status", response_model=MessageStatusResponse)
async def get_message_status(
    message_id: UUID,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """Delivery status of a message as seen by the caller"""
    return MessageStatusResponse(
        message_id=message_id,
        status=read_service.get_message_status(db, message_id, user_id)
    )
