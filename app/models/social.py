"""
Social graph models - canonical friendships and friend requests
"""
from uuid import uuid4
from sqlalchemy import (
    Column, String, DateTime, Text, Uuid,
    UniqueConstraint, CheckConstraint, Index, text
)
from app.database import Base
from app.models.enums import FriendRequestStatus, enum_column
from app.utils.time_utils import utc_now


def canonical_pair(user_a: str, user_b: str) -> tuple:
    """Sort two user ids so (A, B) and (B, A) map to the same row"""
    return (user_a, user_b) if user_a < user_b else (user_b, user_a)


class Friendship(Base):
    """
    One row per unordered pair of users, stored as (user_low, user_high)
    with user_low < user_high. Symmetry is structural.
    """
    __tablename__ = "friendships"

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_low = Column(String(255), nullable=False, index=True)
    user_high = Column(String(255), nullable=False, index=True)

    created_at = Column(DateTime, default=utc_now)

    __table_args__ = (
        UniqueConstraint("user_low", "user_high", name="uq_friendship_pair"),
        CheckConstraint("user_low < user_high", name="ck_friendship_low_lt_high"),
    )

    def other(self, user_id: str) -> str:
        return self.user_high if self.user_low == user_id else self.user_low

    def __repr__(self):
        return f"<Friendship(user_low={self.user_low}, user_high={self.user_high})>"


class FriendRequest(Base):
    """Friend request workflow: pending -> accepted | rejected | cancelled"""
    __tablename__ = "friend_requests"

    id = Column(Uuid, primary_key=True, default=uuid4)
    from_user_id = Column(String(255), nullable=False, index=True)
    to_user_id = Column(String(255), nullable=False, index=True)
    status = Column(enum_column(FriendRequestStatus), nullable=False, default=FriendRequestStatus.PENDING)
    message = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now)

    __table_args__ = (
        # At most one pending request per ordered (from, to) pair
        Index(
            "uq_friend_requests_pending_pair",
            "from_user_id",
            "to_user_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        Index("ix_friend_requests_to_status", "to_user_id", "status"),
    )
