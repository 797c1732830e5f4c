"""
Database models for Chat Core Backend

All models should be imported here for Alembic to detect them.
"""
from app.models.user import UserProfile
from app.models.social import Friendship, FriendRequest
from app.models.conversation import Conversation, Participant
from app.models.message import Message, ReadReceipt

__all__ = [
    # User
    "UserProfile",
    # Social
    "Friendship",
    "FriendRequest",
    # Conversation
    "Conversation",
    "Participant",
    # Message
    "Message",
    "ReadReceipt",
]
