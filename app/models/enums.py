"""
Closed status types shared by models, schemas and services
"""
import enum

from sqlalchemy import Enum as SAEnum


class PresenceStatus(str, enum.Enum):
    ONLINE = "online"
    AWAY = "away"
    OFFLINE = "offline"


class FriendRequestStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class RelationshipStatus(str, enum.Enum):
    SELF = "self"
    FRIEND = "friend"
    SENT_PENDING = "sent_pending"
    RECEIVED_PENDING = "received_pending"
    STRANGER = "stranger"


class ConversationType(str, enum.Enum):
    DIRECT = "direct"
    GROUP = "group"


class ParticipantRole(str, enum.Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"

    @property
    def can_manage(self) -> bool:
        """Owners and admins may add members and delete others' messages"""
        return self in (ParticipantRole.OWNER, ParticipantRole.ADMIN)


class MessageType(str, enum.Enum):
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    SYSTEM = "system"


class UploadStatus(str, enum.Enum):
    UPLOADING = "uploading"
    COMPLETED = "completed"
    FAILED = "failed"


class DeliveryStatus(str, enum.Enum):
    """Per-viewer status of a message, derived by the read-tracking engine"""
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"


def enum_column(enum_cls):
    """Store an enum by value as a plain string column (no native DB enum)"""
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=20,
        validate_strings=True,
        values_callable=lambda members: [member.value for member in members],
    )
