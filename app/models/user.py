"""
User profile model

Authentication lives with the identity provider; this table only extends the
opaque user id with chat-facing profile and presence data.
"""
from sqlalchemy import Column, String, DateTime, Text
from app.database import Base
from app.models.enums import PresenceStatus, enum_column
from app.utils.time_utils import utc_now


class UserProfile(Base):
    """Chat profile for an authenticated user"""
    __tablename__ = "user_profiles"

    # Opaque id supplied by the identity provider
    user_id = Column(String(255), primary_key=True)
    handle = Column(String(20), unique=True, nullable=True, index=True)
    display_name = Column(String(255), nullable=True)
    avatar = Column(Text, nullable=True)
    bio = Column(Text, nullable=True)
    status_message = Column(String(255), nullable=True)

    # Presence
    presence = Column(enum_column(PresenceStatus), nullable=False, default=PresenceStatus.OFFLINE)
    last_seen_at = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, index=True)

    @property
    def name_for_display(self) -> str:
        return self.display_name or self.handle or "User"

    def __repr__(self):
        return f"<UserProfile(user_id={self.user_id}, handle={self.handle})>"
