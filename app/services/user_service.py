"""
User profile and presence service
"""
import logging
import re
from typing import Optional, List, Dict, Iterable

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import Conflict, NotFound, ValidationFailed, ErrorCode
from app.models.enums import PresenceStatus
from app.models.user import UserProfile
from app.schemas.user import UserProfileResponse
from app.utils.time_utils import utc_now, seconds_ago

logger = logging.getLogger(__name__)

# Reserved handles that cannot be used
RESERVED_HANDLES = {
    'admin', 'administrator', 'mod', 'moderator', 'system', 'bot',
    'support', 'help', 'official', 'null', 'undefined', 'anonymous',
    'guest', 'user', 'me',
}

HANDLE_PATTERN = re.compile(r'^[a-zA-Z0-9_]+$')


def validate_handle(handle: str) -> tuple[bool, str]:
    """
    Validate handle format

    Returns:
        Tuple of (is_valid, error_message)
    """
    if len(handle) < 3:
        return False, "Handle must be at least 3 characters"
    if len(handle) > 20:
        return False, "Handle must be at most 20 characters"
    if not HANDLE_PATTERN.match(handle):
        return False, "Handle can only contain letters, numbers, and underscores"
    if handle.lower() in RESERVED_HANDLES:
        return False, "This handle is reserved"
    return True, ""


class UserService:
    """Service for profile and presence operations"""

    def get_profile(self, db: Session, user_id: str) -> Optional[UserProfile]:
        return db.query(UserProfile).filter(UserProfile.user_id == user_id).first()

    def require_profile(self, db: Session, user_id: str) -> UserProfile:
        profile = self.get_profile(db, user_id)
        if not profile:
            raise NotFound("User not found", ErrorCode.USER_NOT_FOUND)
        return profile

    def get_profiles(self, db: Session, user_ids: Iterable[str]) -> Dict[str, UserProfile]:
        """Batch lookup keyed by user id; unknown ids are simply absent"""
        ids = set(user_ids)
        if not ids:
            return {}
        profiles = db.query(UserProfile).filter(UserProfile.user_id.in_(ids)).all()
        return {p.user_id: p for p in profiles}

    def find_by_handle(self, db: Session, handle: str) -> Optional[UserProfile]:
        return db.query(UserProfile).filter(UserProfile.handle == handle).first()

    def display_name(self, db: Session, user_id: str) -> str:
        profile = self.get_profile(db, user_id)
        return profile.name_for_display if profile else "User"

    def _check_handle(self, db: Session, handle: str, user_id: str) -> None:
        is_valid, error_msg = validate_handle(handle)
        if not is_valid:
            raise ValidationFailed(error_msg, ErrorCode.INVALID_HANDLE)

        existing = db.query(UserProfile).filter(
            UserProfile.handle == handle,
            UserProfile.user_id != user_id
        ).first()
        if existing:
            raise Conflict("Handle already taken", ErrorCode.HANDLE_TAKEN)

    def register(
        self,
        db: Session,
        user_id: str,
        display_name: Optional[str] = None,
        handle: Optional[str] = None,
        avatar: Optional[str] = None,
        bio: Optional[str] = None
    ) -> UserProfile:
        """Create the chat profile for a freshly registered user"""
        if self.get_profile(db, user_id):
            raise Conflict("Profile already exists", ErrorCode.PROFILE_EXISTS)
        if handle is not None:
            self._check_handle(db, handle, user_id)

        now = utc_now()
        profile = UserProfile(
            user_id=user_id,
            handle=handle,
            display_name=display_name,
            avatar=avatar,
            bio=bio,
            presence=PresenceStatus.OFFLINE,
            created_at=now,
            updated_at=now,
        )
        db.add(profile)
        db.commit()
        db.refresh(profile)

        logger.info(f"Registered profile for user: {user_id}")
        return profile

    def update_profile(self, db: Session, user_id: str, **fields) -> UserProfile:
        """Apply a profile update; concurrent writers resolve last-write-wins"""
        profile = self.require_profile(db, user_id)

        handle = fields.get("handle")
        if handle is not None and handle != profile.handle:
            self._check_handle(db, handle, user_id)

        for field, value in fields.items():
            setattr(profile, field, value)

        profile.updated_at = utc_now()
        db.commit()
        db.refresh(profile)

        logger.info(f"Updated profile for user: {user_id}")
        return profile

    def heartbeat(
        self,
        db: Session,
        user_id: str,
        presence: PresenceStatus = PresenceStatus.ONLINE
    ) -> UserProfile:
        """Record a presence heartbeat"""
        profile = self.require_profile(db, user_id)
        now = utc_now()
        profile.presence = presence
        profile.last_seen_at = now
        profile.updated_at = now
        db.commit()
        db.refresh(profile)
        return profile

    def is_online(self, profile: UserProfile) -> bool:
        """Online means an online heartbeat within the presence timeout"""
        if profile.presence != PresenceStatus.ONLINE or profile.last_seen_at is None:
            return False
        return profile.last_seen_at > seconds_ago(settings.PRESENCE_TIMEOUT_SECONDS)

    def sweep_stale_presence(self, db: Session) -> int:
        """Mark users offline whose last heartbeat is older than the timeout"""
        cutoff = seconds_ago(settings.PRESENCE_TIMEOUT_SECONDS)
        stale = db.query(UserProfile).filter(
            UserProfile.presence != PresenceStatus.OFFLINE,
            UserProfile.last_seen_at < cutoff
        ).all()

        now = utc_now()
        for profile in stale:
            profile.presence = PresenceStatus.OFFLINE
            profile.updated_at = now
        db.commit()

        if stale:
            logger.info(f"Marked {len(stale)} users offline after presence timeout")
        return len(stale)

    def search_by_handle(self, db: Session, query: str, limit: int = 20) -> List[UserProfile]:
        """Prefix search on handles"""
        query = query.strip()
        if not query:
            return []
        return db.query(UserProfile).filter(
            UserProfile.handle.ilike(f"{query}%")
        ).order_by(UserProfile.handle).limit(limit).all()

    def to_response(self, profile: UserProfile) -> UserProfileResponse:
        response = UserProfileResponse.model_validate(profile)
        response.is_online = self.is_online(profile)
        return response


user_service = UserService()
