"""
Conversation directory service - direct/group lifecycle and membership
"""
import logging
from typing import Optional, List, Tuple, Iterable
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import AccessDenied, Conflict, NotFound, ValidationFailed, ErrorCode
from app.models.conversation import Conversation, Participant
from app.models.enums import ConversationType, ParticipantRole
from app.schemas.conversation import (
    ParticipantInfo,
    ConversationResponse,
    ConversationListItem,
)
from app.services.ledger import append_system_message
from app.services.social_service import social_service
from app.services.user_service import user_service
from app.utils.time_utils import utc_now

logger = logging.getLogger(__name__)


def _unique(user_ids: Iterable[str]) -> List[str]:
    """De-duplicate while keeping the caller's order"""
    seen = set()
    result = []
    for user_id in user_ids:
        if user_id and user_id not in seen:
            seen.add(user_id)
            result.append(user_id)
    return result


class ConversationService:
    """Service for conversation and participant operations"""

    def get_conversation(self, db: Session, conversation_id: UUID) -> Conversation:
        conversation = db.query(Conversation).filter(Conversation.id == conversation_id).first()
        if not conversation:
            raise NotFound("Conversation not found", ErrorCode.CONVERSATION_NOT_FOUND)
        return conversation

    def get_participation(self, db: Session, conversation_id: UUID, user_id: str) -> Optional[Participant]:
        return db.query(Participant).filter(
            Participant.conversation_id == conversation_id,
            Participant.user_id == user_id
        ).first()

    def require_participant(self, db: Session, conversation_id: UUID, user_id: str) -> Participant:
        """The caller must be an active participant"""
        participant = self.get_participation(db, conversation_id, user_id)
        if not participant or participant.left_at is not None:
            raise AccessDenied("Access denied: user is not a participant in this conversation")
        return participant

    def active_participants(self, db: Session, conversation_id: UUID) -> List[Participant]:
        return db.query(Participant).filter(
            Participant.conversation_id == conversation_id,
            Participant.left_at.is_(None)
        ).order_by(Participant.joined_at).all()

    def find_direct_conversation(self, db: Session, user_a: str, user_b: str) -> Optional[Conversation]:
        """Active two-participant direct conversation between exactly these users"""
        wanted = sorted([user_a, user_b])
        candidates = db.query(Conversation).join(
            Participant, Participant.conversation_id == Conversation.id
        ).filter(
            Conversation.type == ConversationType.DIRECT,
            Participant.user_id == user_a,
            Participant.left_at.is_(None)
        ).all()

        for conversation in candidates:
            members = sorted(p.user_id for p in self.active_participants(db, conversation.id))
            if members == wanted:
                return conversation
        return None

    def create_conversation(
        self,
        db: Session,
        created_by: str,
        conversation_type: ConversationType,
        participant_ids: List[str],
        name: Optional[str] = None,
        description: Optional[str] = None
    ) -> Tuple[Conversation, bool]:
        """
        Create a conversation.

        Returns: (conversation, created). For direct conversations an existing
        conversation between the same pair is returned with created=False.
        """
        members = _unique([created_by] + list(participant_ids))

        if conversation_type == ConversationType.DIRECT:
            if len(members) != 2:
                raise ValidationFailed(
                    "Direct conversations need exactly two distinct participants",
                    ErrorCode.INVALID_GROUP_PARAMS
                )
            if not social_service.are_friends(db, members[0], members[1]):
                raise Conflict("Direct conversations are only allowed between friends", ErrorCode.NOT_FRIENDS)

            existing = self.find_direct_conversation(db, members[0], members[1])
            if existing:
                return existing, False
        else:
            name = (name or "").strip()
            if not name:
                raise ValidationFailed("Group name is required", ErrorCode.INVALID_GROUP_PARAMS)
            if len(members) < 2:
                raise ValidationFailed(
                    "Group chat requires at least 2 participants",
                    ErrorCode.INVALID_GROUP_PARAMS
                )

        is_group = conversation_type == ConversationType.GROUP
        now = utc_now()
        conversation = Conversation(
            type=conversation_type,
            name=name if is_group else None,
            description=((description or "").strip() or None) if is_group else None,
            created_by=created_by,
            archived=False,
            last_message_at=now,
            created_at=now,
            updated_at=now,
        )
        db.add(conversation)
        db.flush()

        for user_id in members:
            db.add(Participant(
                conversation_id=conversation.id,
                user_id=user_id,
                role=ParticipantRole.OWNER if user_id == created_by else ParticipantRole.MEMBER,
                joined_at=now,
                muted=False,
                pinned=False,
            ))
        db.flush()

        if conversation_type == ConversationType.GROUP:
            creator_name = user_service.display_name(db, created_by)
            append_system_message(db, conversation, created_by, f"{creator_name} created this group")

        db.commit()
        db.refresh(conversation)

        logger.info(f"Created {conversation_type.value} conversation {conversation.id} by {created_by}")
        return conversation, True

    def add_participants(self, db: Session, conversation_id: UUID, user_ids: List[str], added_by: str) -> List[str]:
        """Add users to a group. Previously-left users are re-activated as members."""
        adder = self.require_participant(db, conversation_id, added_by)
        conversation = self.get_conversation(db, conversation_id)

        if conversation.type != ConversationType.GROUP:
            raise ValidationFailed(
                "Can only add participants to group conversations",
                ErrorCode.INVALID_GROUP_PARAMS
            )

        if not adder.role.can_manage:
            raise AccessDenied("Insufficient permissions to add participants", ErrorCode.INSUFFICIENT_PERMISSIONS)

        now = utc_now()
        added = []
        for user_id in _unique(user_ids):
            existing = self.get_participation(db, conversation_id, user_id)
            if existing and existing.left_at is None:
                continue
            if existing:
                # Re-join
                existing.left_at = None
                existing.joined_at = now
                existing.role = ParticipantRole.MEMBER
            else:
                db.add(Participant(
                    conversation_id=conversation_id,
                    user_id=user_id,
                    role=ParticipantRole.MEMBER,
                    joined_at=now,
                    muted=False,
                    pinned=False,
                ))
            added.append(user_id)

        if not added:
            raise Conflict("All users are already participants", ErrorCode.ALREADY_PARTICIPANT)

        db.flush()
        profiles = user_service.get_profiles(db, added + [added_by])
        adder_name = profiles[added_by].name_for_display if added_by in profiles else "User"
        added_names = ", ".join(
            profiles[user_id].name_for_display if user_id in profiles else "User"
            for user_id in added
        )
        append_system_message(db, conversation, added_by, f"{adder_name} added {added_names} to the group")

        db.commit()
        logger.info(f"{added_by} added {len(added)} participants to conversation {conversation_id}")
        return added

    def leave_conversation(self, db: Session, conversation_id: UUID, user_id: str) -> bool:
        """Leave a group conversation. Direct conversations cannot be left."""
        participant = self.require_participant(db, conversation_id, user_id)
        conversation = self.get_conversation(db, conversation_id)

        if conversation.type == ConversationType.DIRECT:
            raise Conflict("Cannot leave direct conversations", ErrorCode.CANNOT_LEAVE_DIRECT)

        participant.left_at = utc_now()
        append_system_message(
            db, conversation, user_id,
            f"{user_service.display_name(db, user_id)} left the group"
        )

        db.commit()
        logger.info(f"{user_id} left conversation {conversation_id}")
        return True

    def update_settings(
        self,
        db: Session,
        conversation_id: UUID,
        user_id: str,
        muted: Optional[bool] = None,
        pinned: Optional[bool] = None
    ) -> Participant:
        """Update per-user conversation settings (mute, pin)"""
        participant = self.require_participant(db, conversation_id, user_id)

        if muted is not None:
            participant.muted = muted
        if pinned is not None:
            participant.pinned = pinned

        db.commit()
        db.refresh(participant)
        return participant

    def change_role(
        self,
        db: Session,
        conversation_id: UUID,
        target_user_id: str,
        role: ParticipantRole,
        changed_by: str
    ) -> Participant:
        """Owner-only role change for an active member of a group"""
        actor = self.require_participant(db, conversation_id, changed_by)
        conversation = self.get_conversation(db, conversation_id)

        if conversation.type != ConversationType.GROUP:
            raise ValidationFailed("Roles only apply to group conversations", ErrorCode.INVALID_GROUP_PARAMS)
        if actor.role != ParticipantRole.OWNER:
            raise AccessDenied("Only the owner can change roles", ErrorCode.INSUFFICIENT_PERMISSIONS)

        target = self.get_participation(db, conversation_id, target_user_id)
        if not target or target.left_at is not None:
            raise NotFound("Participant not found", ErrorCode.USER_NOT_FOUND)

        if target.user_id == changed_by and role != ParticipantRole.OWNER:
            owners = [
                p for p in self.active_participants(db, conversation_id)
                if p.role == ParticipantRole.OWNER
            ]
            if len(owners) <= 1:
                raise Conflict("A group must keep at least one owner", ErrorCode.INVALID_GROUP_PARAMS)

        target.role = role
        conversation.updated_at = utc_now()
        db.commit()
        db.refresh(target)

        logger.info(f"{changed_by} set role of {target_user_id} to {role.value} in {conversation_id}")
        return target

    def participant_infos(self, db: Session, participants: List[Participant]) -> List[ParticipantInfo]:
        profiles = user_service.get_profiles(db, [p.user_id for p in participants])
        infos = []
        for p in participants:
            profile = profiles.get(p.user_id)
            infos.append(ParticipantInfo(
                user_id=p.user_id,
                handle=profile.handle if profile else None,
                display_name=profile.display_name if profile else "Unknown User",
                avatar=profile.avatar if profile else None,
                presence=profile.presence if profile else None,
                role=p.role,
                joined_at=p.joined_at,
            ))
        return infos

    def to_response(self, db: Session, conversation: Conversation) -> ConversationResponse:
        return ConversationResponse(
            id=conversation.id,
            type=conversation.type,
            name=conversation.name,
            description=conversation.description,
            avatar=conversation.avatar,
            created_by=conversation.created_by,
            archived=conversation.archived,
            last_message_at=conversation.last_message_at,
            last_message_preview=conversation.last_message_preview,
            created_at=conversation.created_at,
            updated_at=conversation.updated_at,
            participants=self.participant_infos(db, self.active_participants(db, conversation.id)),
        )

    def get_by_id(self, db: Session, conversation_id: UUID, user_id: str) -> ConversationResponse:
        """Conversation detail for an active participant"""
        self.require_participant(db, conversation_id, user_id)
        return self.to_response(db, self.get_conversation(db, conversation_id))

    def to_list_item(self, db: Session, conversation: Conversation, participation: Participant) -> ConversationListItem:
        from app.services.read_service import read_service

        base = self.to_response(db, conversation)
        return ConversationListItem(
            **base.model_dump(),
            unread_count=read_service.get_unread_count(db, conversation.id, participation.user_id),
            role=participation.role,
            muted=participation.muted,
            pinned=participation.pinned,
        )

    def active_participations(self, db: Session, user_id: str) -> List[Participant]:
        return db.query(Participant).filter(
            Participant.user_id == user_id,
            Participant.left_at.is_(None)
        ).all()

    def list_for_user(self, db: Session, user_id: str, limit: Optional[int] = None) -> List[ConversationListItem]:
        """Active conversations with unread counts, most recent activity first"""
        limit = limit or settings.CONVERSATIONS_PAGE_DEFAULT
        rows = db.query(Conversation, Participant).join(
            Participant, Participant.conversation_id == Conversation.id
        ).filter(
            Participant.user_id == user_id,
            Participant.left_at.is_(None)
        ).order_by(
            Participant.pinned.desc(),
            Conversation.last_message_at.desc()
        ).limit(limit).all()

        return [self.to_list_item(db, conversation, participation) for conversation, participation in rows]


conversation_service = ConversationService()
