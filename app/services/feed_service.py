"""
Change-feed service - "everything newer than a watermark" queries for polling clients.

Delivery is at-least-once and clients merge by id. Every response carries
server_time, the watermark to send back on the next poll. It is derived from
the rows returned, not from the clock: rows are stamped before their
transaction commits, so a row stamped at T1 may only become visible after a
poll at T2 > T1. The watermark therefore trails the newest returned timestamp
by FEED_WATERMARK_OVERLAP_SECONDS, never moves below `since`, and stays at
`since` when nothing changed. Rows inside the overlap are delivered again.
"""
import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional, List
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.config import settings

from app.models.conversation import Conversation, Participant
from app.models.enums import FriendRequestStatus
from app.models.message import Message, ReadReceipt
from app.models.social import FriendRequest
from app.models.user import UserProfile
from app.schemas.feed import (
    MessageFeedResponse,
    ConversationFeedResponse,
    ReadReceiptInfo,
    ReadCursorInfo,
    ReadStateFeedResponse,
    PresenceInfo,
    PresenceFeedResponse,
    ParticipantEvent,
    ParticipantEventType,
    ParticipantFeedResponse,
    FriendRequestDirection,
    FriendRequestEvent,
    FriendRequestFeedResponse,
)
from app.services.conversation_service import conversation_service
from app.services.message_service import message_service
from app.services.social_service import friend_info
from app.services.user_service import user_service
from app.utils.time_utils import normalize_watermark

logger = logging.getLogger(__name__)


def next_watermark(since: datetime, stamps: Iterable[Optional[datetime]]) -> datetime:
    """Watermark for the next poll given the timestamps of the rows just returned"""
    newest = max((s for s in stamps if s is not None), default=None)
    if newest is None:
        return since
    overlap = timedelta(seconds=settings.FEED_WATERMARK_OVERLAP_SECONDS)
    return max(since, newest - overlap)


class FeedService:
    """Service for watermark-based change feeds"""

    def message_changes(
        self,
        db: Session,
        conversation_id: UUID,
        user_id: str,
        since: Optional[datetime] = None
    ) -> MessageFeedResponse:
        """New, edited and deleted messages, ordered by last change"""
        conversation_service.require_participant(db, conversation_id, user_id)
        conversation = conversation_service.get_conversation(db, conversation_id)
        since = normalize_watermark(since)

        messages = db.query(Message).filter(
            Message.conversation_id == conversation_id,
            Message.updated_at > since
        ).order_by(Message.updated_at, Message.created_at).all()

        return MessageFeedResponse(
            conversation_id=conversation_id,
            messages=message_service.to_responses(db, conversation, messages, user_id),
            server_time=next_watermark(since, [m.updated_at for m in messages]),
        )

    def conversation_changes(
        self,
        db: Session,
        user_id: str,
        since: Optional[datetime] = None
    ) -> ConversationFeedResponse:
        """Active conversations of the user that changed after the watermark"""
        since = normalize_watermark(since)

        rows = db.query(Conversation, Participant).join(
            Participant, Participant.conversation_id == Conversation.id
        ).filter(
            Participant.user_id == user_id,
            Participant.left_at.is_(None),
            Conversation.updated_at > since
        ).order_by(Conversation.updated_at).all()

        return ConversationFeedResponse(
            conversations=[
                conversation_service.to_list_item(db, conversation, participation)
                for conversation, participation in rows
            ],
            server_time=next_watermark(since, [c.updated_at for c, _ in rows]),
        )

    def read_state_changes(
        self,
        db: Session,
        conversation_id: UUID,
        user_id: str,
        since: Optional[datetime] = None
    ) -> ReadStateFeedResponse:
        """Receipts and read cursors that moved after the watermark"""
        conversation_service.require_participant(db, conversation_id, user_id)
        since = normalize_watermark(since)

        receipts = db.query(ReadReceipt).join(
            Message, Message.id == ReadReceipt.message_id
        ).filter(
            Message.conversation_id == conversation_id,
            ReadReceipt.read_at > since
        ).order_by(ReadReceipt.read_at).all()

        cursors = db.query(Participant).filter(
            Participant.conversation_id == conversation_id,
            Participant.left_at.is_(None),
            Participant.last_read_at.isnot(None),
            Participant.last_read_at > since
        ).order_by(Participant.last_read_at).all()

        return ReadStateFeedResponse(
            conversation_id=conversation_id,
            receipts=[ReadReceiptInfo.model_validate(r) for r in receipts],
            cursors=[ReadCursorInfo.model_validate(p) for p in cursors],
            server_time=next_watermark(
                since,
                [r.read_at for r in receipts] + [p.last_read_at for p in cursors]
            ),
        )

    def presence_changes(
        self,
        db: Session,
        conversation_id: UUID,
        user_id: str,
        since: Optional[datetime] = None
    ) -> PresenceFeedResponse:
        """Profile/presence changes of the other active participants"""
        conversation_service.require_participant(db, conversation_id, user_id)
        since = normalize_watermark(since)

        others = [
            p.user_id for p in conversation_service.active_participants(db, conversation_id)
            if p.user_id != user_id
        ]
        profiles = []
        if others:
            profiles = db.query(UserProfile).filter(
                UserProfile.user_id.in_(others),
                UserProfile.updated_at > since
            ).order_by(UserProfile.updated_at).all()

        return PresenceFeedResponse(
            conversation_id=conversation_id,
            users=[PresenceInfo.model_validate(p) for p in profiles],
            server_time=next_watermark(since, [p.updated_at for p in profiles]),
        )

    def participant_changes(
        self,
        db: Session,
        conversation_id: UUID,
        user_id: str,
        since: Optional[datetime] = None
    ) -> ParticipantFeedResponse:
        """Join and leave events after the watermark, merged by time"""
        conversation_service.require_participant(db, conversation_id, user_id)
        since = normalize_watermark(since)

        participants = db.query(Participant).filter(
            Participant.conversation_id == conversation_id
        ).all()
        profiles = user_service.get_profiles(db, [p.user_id for p in participants])

        events: List[ParticipantEvent] = []
        for p in participants:
            profile = profiles.get(p.user_id)
            changes = []
            if p.joined_at > since:
                changes.append((ParticipantEventType.JOINED, p.joined_at))
            if p.left_at is not None and p.left_at > since:
                changes.append((ParticipantEventType.LEFT, p.left_at))
            for event_type, at in changes:
                events.append(ParticipantEvent(
                    type=event_type,
                    user_id=p.user_id,
                    display_name=profile.display_name if profile else None,
                    avatar=profile.avatar if profile else None,
                    role=p.role,
                    at=at,
                ))

        events.sort(key=lambda e: e.at)
        return ParticipantFeedResponse(
            conversation_id=conversation_id,
            events=events,
            server_time=next_watermark(since, [e.at for e in events]),
        )

    def friend_request_changes(
        self,
        db: Session,
        user_id: str,
        since: Optional[datetime] = None
    ) -> FriendRequestFeedResponse:
        """Incoming pending requests and resolutions of our own requests"""
        since = normalize_watermark(since)

        received = db.query(FriendRequest).filter(
            FriendRequest.to_user_id == user_id,
            FriendRequest.status == FriendRequestStatus.PENDING,
            FriendRequest.created_at > since
        ).all()

        resolved = db.query(FriendRequest).filter(
            FriendRequest.from_user_id == user_id,
            FriendRequest.status != FriendRequestStatus.PENDING,
            FriendRequest.updated_at > since
        ).all()

        profiles = user_service.get_profiles(
            db,
            [r.from_user_id for r in received] + [r.to_user_id for r in resolved]
        )

        events = [
            FriendRequestEvent(
                direction=FriendRequestDirection.RECEIVED,
                request_id=r.id,
                status=r.status,
                message=r.message,
                user=friend_info(r.from_user_id, profiles.get(r.from_user_id)),
                created_at=r.created_at,
                updated_at=r.updated_at,
            )
            for r in received
        ] + [
            FriendRequestEvent(
                direction=FriendRequestDirection.SENT,
                request_id=r.id,
                status=r.status,
                message=r.message,
                user=friend_info(r.to_user_id, profiles.get(r.to_user_id)),
                created_at=r.created_at,
                updated_at=r.updated_at,
            )
            for r in resolved
        ]
        events.sort(key=lambda e: e.updated_at or e.created_at)

        stamps = [r.created_at for r in received] + [r.updated_at for r in resolved]
        return FriendRequestFeedResponse(requests=events, server_time=next_watermark(since, stamps))


feed_service = FeedService()
