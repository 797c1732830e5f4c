"""
Social service for managing friends and friend requests
"""
import logging
from typing import Optional, Tuple
from uuid import UUID
from sqlalchemy.orm import Session
from sqlalchemy import or_

from app.core.errors import AccessDenied, Conflict, NotFound, ValidationFailed, ErrorCode
from app.models.enums import FriendRequestStatus, RelationshipStatus
from app.models.social import Friendship, FriendRequest, canonical_pair
from app.models.user import UserProfile
from app.schemas.social import (
    FriendInfo,
    FriendWithInfo,
    FriendListResponse,
    FriendRequestWithUser,
    PendingRequestsResponse,
    RelationshipResponse,
)
from app.services.user_service import user_service
from app.utils.time_utils import utc_now

logger = logging.getLogger(__name__)


def friend_info(user_id: str, profile: Optional[UserProfile]) -> FriendInfo:
    if profile is None:
        return FriendInfo(user_id=user_id, display_name="Unknown User")
    return FriendInfo.model_validate(profile)


class SocialService:
    """Service for social/friend operations"""

    def get_friendship(self, db: Session, user_a: str, user_b: str) -> Optional[Friendship]:
        """Canonical pair lookup; argument order does not matter"""
        low, high = canonical_pair(user_a, user_b)
        return db.query(Friendship).filter(
            Friendship.user_low == low,
            Friendship.user_high == high
        ).first()

    def are_friends(self, db: Session, user_id: str, other_user_id: str) -> bool:
        """Check if two users are friends"""
        if user_id == other_user_id:
            return False
        return self.get_friendship(db, user_id, other_user_id) is not None

    def _pending_request(self, db: Session, from_user_id: str, to_user_id: str) -> Optional[FriendRequest]:
        return db.query(FriendRequest).filter(
            FriendRequest.from_user_id == from_user_id,
            FriendRequest.to_user_id == to_user_id,
            FriendRequest.status == FriendRequestStatus.PENDING
        ).first()

    def _ensure_friendship(self, db: Session, user_a: str, user_b: str) -> Friendship:
        """Create the canonical row unless it already exists (stays in the caller's transaction)"""
        existing = self.get_friendship(db, user_a, user_b)
        if existing:
            return existing

        low, high = canonical_pair(user_a, user_b)
        friendship = Friendship(user_low=low, user_high=high, created_at=utc_now())
        db.add(friendship)
        db.flush()
        return friendship

    def send_friend_request(
        self,
        db: Session,
        user_id: str,
        friend_handle: Optional[str] = None,
        friend_user_id: Optional[str] = None,
        message: Optional[str] = None
    ) -> Tuple[Optional[FriendRequest], Optional[Friendship], str]:
        """
        Send a friend request.

        If the target already has a pending request to us, that request is
        accepted and the friendship is created immediately instead.

        Returns: (request, friendship, status_message); exactly one of
        request/friendship is set.
        """
        # Find target user
        if friend_user_id:
            target = user_service.get_profile(db, friend_user_id)
        elif friend_handle:
            target = user_service.find_by_handle(db, friend_handle)
        else:
            raise ValidationFailed("Must provide friend_handle or friend_user_id")

        if not target:
            raise NotFound("User not found", ErrorCode.USER_NOT_FOUND)

        if target.user_id == user_id:
            raise ValidationFailed("Cannot send friend request to yourself")

        if self.get_friendship(db, user_id, target.user_id):
            raise Conflict("Already friends", ErrorCode.ALREADY_FRIENDS)

        # They already sent us a request - accept it
        reverse = self._pending_request(db, target.user_id, user_id)
        if reverse:
            now = utc_now()
            reverse.status = FriendRequestStatus.ACCEPTED
            reverse.updated_at = now
            friendship = self._ensure_friendship(db, user_id, target.user_id)
            db.commit()
            db.refresh(friendship)
            logger.info(f"Mutual friend request between {user_id} and {target.user_id} auto-accepted")
            return None, friendship, "Friend request accepted (they already sent you one)"

        if self._pending_request(db, user_id, target.user_id):
            raise Conflict("Friend request already sent", ErrorCode.DUPLICATE_PENDING)

        now = utc_now()
        request = FriendRequest(
            from_user_id=user_id,
            to_user_id=target.user_id,
            status=FriendRequestStatus.PENDING,
            message=message,
            created_at=now,
            updated_at=now,
        )
        db.add(request)
        db.commit()
        db.refresh(request)

        logger.info(f"Friend request {request.id} sent from {user_id} to {target.user_id}")
        return request, None, "Friend request sent"

    def _get_request(self, db: Session, request_id: UUID) -> FriendRequest:
        request = db.query(FriendRequest).filter(FriendRequest.id == request_id).first()
        if not request:
            raise NotFound("Friend request not found", ErrorCode.REQUEST_NOT_FOUND)
        return request

    def respond_to_request(
        self,
        db: Session,
        user_id: str,
        request_id: UUID,
        accept: bool
    ) -> Tuple[FriendRequest, Optional[Friendship]]:
        """Accept or reject a received friend request"""
        request = self._get_request(db, request_id)

        if request.to_user_id != user_id:
            raise AccessDenied("Only the recipient can respond to this request")

        if request.status != FriendRequestStatus.PENDING:
            raise Conflict("Friend request already resolved", ErrorCode.ALREADY_RESOLVED)

        request.status = FriendRequestStatus.ACCEPTED if accept else FriendRequestStatus.REJECTED
        request.updated_at = utc_now()

        friendship = None
        if accept:
            friendship = self._ensure_friendship(db, request.from_user_id, request.to_user_id)

        db.commit()
        db.refresh(request)

        logger.info(f"Friend request {request_id} {request.status.value} by {user_id}")
        return request, friendship

    def accept_friend_request(self, db: Session, user_id: str, request_id: UUID) -> Friendship:
        """Accept a friend request"""
        _, friendship = self.respond_to_request(db, user_id, request_id, accept=True)
        return friendship

    def reject_friend_request(self, db: Session, user_id: str, request_id: UUID) -> bool:
        """Reject a friend request"""
        self.respond_to_request(db, user_id, request_id, accept=False)
        return True

    def cancel_friend_request(self, db: Session, user_id: str, request_id: UUID) -> bool:
        """Cancel a sent friend request"""
        request = self._get_request(db, request_id)

        if request.from_user_id != user_id:
            raise AccessDenied("Only the sender can cancel this request")

        if request.status != FriendRequestStatus.PENDING:
            raise Conflict("Friend request already resolved", ErrorCode.ALREADY_RESOLVED)

        request.status = FriendRequestStatus.CANCELLED
        request.updated_at = utc_now()
        db.commit()
        return True

    def remove_friend(self, db: Session, user_id: str, friend_id: str) -> bool:
        """Remove a friend. Either side hits the same canonical row."""
        friendship = self.get_friendship(db, user_id, friend_id)
        if not friendship:
            raise NotFound("Friendship not found", ErrorCode.FRIENDSHIP_NOT_FOUND)

        db.delete(friendship)
        db.commit()

        logger.info(f"Friendship between {user_id} and {friend_id} removed")
        return True

    def get_friends(self, db: Session, user_id: str) -> FriendListResponse:
        """Get list of friends"""
        friendships = db.query(Friendship).filter(
            or_(
                Friendship.user_low == user_id,
                Friendship.user_high == user_id
            )
        ).order_by(Friendship.created_at).all()

        profiles = user_service.get_profiles(db, [fs.other(user_id) for fs in friendships])

        friends = []
        for fs in friendships:
            # Get the friend (the other person)
            friend_id = fs.other(user_id)
            friends.append(FriendWithInfo(
                friend=friend_info(friend_id, profiles.get(friend_id)),
                friendship_id=fs.id,
                since=fs.created_at
            ))

        return FriendListResponse(
            friends=friends,
            total_count=len(friends)
        )

    def get_pending_requests(self, db: Session, user_id: str) -> PendingRequestsResponse:
        """Get pending friend requests (both incoming and outgoing)"""
        # Incoming requests (we are to_user_id)
        incoming = db.query(FriendRequest).filter(
            FriendRequest.to_user_id == user_id,
            FriendRequest.status == FriendRequestStatus.PENDING
        ).order_by(FriendRequest.created_at).all()

        # Outgoing requests (we are from_user_id)
        outgoing = db.query(FriendRequest).filter(
            FriendRequest.from_user_id == user_id,
            FriendRequest.status == FriendRequestStatus.PENDING
        ).order_by(FriendRequest.created_at).all()

        profiles = user_service.get_profiles(
            db,
            [r.from_user_id for r in incoming] + [r.to_user_id for r in outgoing]
        )

        incoming_requests = [
            FriendRequestWithUser(
                request_id=r.id,
                user=friend_info(r.from_user_id, profiles.get(r.from_user_id)),
                status=r.status,
                message=r.message,
                created_at=r.created_at
            )
            for r in incoming
        ]
        outgoing_requests = [
            FriendRequestWithUser(
                request_id=r.id,
                user=friend_info(r.to_user_id, profiles.get(r.to_user_id)),
                status=r.status,
                message=r.message,
                created_at=r.created_at
            )
            for r in outgoing
        ]

        return PendingRequestsResponse(
            incoming=incoming_requests,
            outgoing=outgoing_requests,
            incoming_count=len(incoming_requests),
            outgoing_count=len(outgoing_requests)
        )

    def check_relationship(self, db: Session, user_id: str, other_user_id: str) -> RelationshipResponse:
        """Relationship of user_id towards other_user_id"""
        if user_id == other_user_id:
            return RelationshipResponse(status=RelationshipStatus.SELF)

        friendship = self.get_friendship(db, user_id, other_user_id)
        if friendship:
            return RelationshipResponse(status=RelationshipStatus.FRIEND, friendship_id=friendship.id)

        sent = self._pending_request(db, user_id, other_user_id)
        if sent:
            return RelationshipResponse(status=RelationshipStatus.SENT_PENDING, request_id=sent.id)

        received = self._pending_request(db, other_user_id, user_id)
        if received:
            return RelationshipResponse(status=RelationshipStatus.RECEIVED_PENDING, request_id=received.id)

        return RelationshipResponse(status=RelationshipStatus.STRANGER)


social_service = SocialService()
