"""
Read-tracking service - read cursors, group read receipts, unread counts and
per-viewer delivery status.

Direct conversations track reads with the participant cursor only; group
conversations additionally record one receipt per (message, reader), since a
cursor cannot express "read by some but not all members".
"""
import logging
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import func, exists
from sqlalchemy.orm import Session

from app.core.errors import NotFound, ErrorCode
from app.models.conversation import Conversation, Participant
from app.models.enums import ConversationType, DeliveryStatus, MessageType
from app.models.message import Message, ReadReceipt
from app.services.conversation_service import conversation_service
from app.utils.time_utils import utc_now

logger = logging.getLogger(__name__)


class ReadService:
    """Service for read state"""

    def mark_as_read(
        self,
        db: Session,
        conversation_id: UUID,
        user_id: str,
        message_ids: Sequence[UUID]
    ) -> Participant:
        """
        Mark messages as read. Safe to repeat: receipts are inserted only once
        per (message, user), and a repeated call that covers nothing new leaves
        the cursor untouched. An empty id list marks the whole conversation read.
        """
        participant = conversation_service.require_participant(db, conversation_id, user_id)
        conversation = conversation_service.get_conversation(db, conversation_id)
        is_group = conversation.type == ConversationType.GROUP
        now = utc_now()

        marked: List[Message] = []
        if message_ids:
            marked = db.query(Message).filter(
                Message.id.in_(set(message_ids)),
                Message.conversation_id == conversation_id,
                Message.deleted.is_(False)
            ).all()
        elif is_group:
            marked = self._unreceipted_messages(db, participant)

        inserted = 0
        if is_group:
            others = [m for m in marked if m.sender_id != user_id]
            already = set()
            if others:
                already = {
                    row.message_id for row in db.query(ReadReceipt.message_id).filter(
                        ReadReceipt.user_id == user_id,
                        ReadReceipt.message_id.in_([m.id for m in others])
                    ).all()
                }
            for message in others:
                if message.id in already:
                    continue
                db.add(ReadReceipt(message_id=message.id, user_id=user_id, read_at=now))
                inserted += 1

        targets = marked
        if not message_ids:
            latest = db.query(Message).filter(
                Message.conversation_id == conversation_id,
                Message.deleted.is_(False)
            ).order_by(Message.created_at.desc()).first()
            targets = [latest] if latest else []

        newest = max(targets, key=lambda m: m.created_at, default=None)
        covered = not targets or (
            participant.last_read_at is not None
            and all(m.created_at <= participant.last_read_at for m in targets)
        )
        if newest is not None and (inserted or not covered):
            # created_at may run a few microseconds ahead of the clock (see ledger.next_created_at)
            read_until = max(now, newest.created_at)
            if participant.last_read_at is None or read_until > participant.last_read_at:
                participant.last_read_at = read_until

        if newest is not None and self._is_newer_than_cursor(db, participant, newest):
            participant.last_read_message_id = newest.id

        db.commit()
        db.refresh(participant)

        if inserted:
            logger.info(f"{user_id} read {inserted} messages in conversation {conversation_id}")
        return participant

    def _unreceipted_messages(self, db: Session, participant: Participant) -> List[Message]:
        """Everything a group member could still count as unread"""
        return db.query(Message).filter(
            Message.conversation_id == participant.conversation_id,
            Message.deleted.is_(False),
            Message.type != MessageType.SYSTEM,
            Message.sender_id != participant.user_id,
            Message.created_at > participant.joined_at,
            ~exists().where(
                ReadReceipt.message_id == Message.id,
                ReadReceipt.user_id == participant.user_id
            )
        ).order_by(Message.created_at).all()

    def _is_newer_than_cursor(self, db: Session, participant: Participant, message: Message) -> bool:
        if participant.last_read_message_id is None:
            return True
        current = db.query(Message.created_at).filter(
            Message.id == participant.last_read_message_id
        ).scalar()
        return current is None or message.created_at > current

    def get_unread_count(self, db: Session, conversation_id: UUID, user_id: str) -> int:
        """Unread messages from others (system notices excluded); 0 for users who are not active participants"""
        participant = conversation_service.get_participation(db, conversation_id, user_id)
        if not participant or participant.left_at is not None:
            return 0

        conversation = conversation_service.get_conversation(db, conversation_id)
        query = db.query(func.count(Message.id)).filter(
            Message.conversation_id == conversation_id,
            Message.deleted.is_(False),
            Message.type != MessageType.SYSTEM,
            Message.sender_id != user_id
        )

        if conversation.type == ConversationType.DIRECT:
            query = query.filter(Message.created_at > participant.read_watermark)
        else:
            query = query.filter(
                Message.created_at > participant.joined_at,
                ~exists().where(
                    ReadReceipt.message_id == Message.id,
                    ReadReceipt.user_id == user_id
                )
            )

        return query.scalar() or 0

    def derive_statuses(
        self,
        db: Session,
        conversation: Conversation,
        messages: Sequence[Message],
        viewer_id: str,
        participants: Optional[List[Participant]] = None
    ) -> Dict[UUID, DeliveryStatus]:
        """
        Delivery status of each message as seen by viewer_id.

        Group, own message: receipts vs. other active participants
        (none -> sent, some -> delivered, all -> read).
        Group, someone else's message: read if the viewer has a receipt.
        Direct: compare against the peer's (own message) or the viewer's cursor.
        """
        if not messages:
            return {}
        if participants is None:
            participants = conversation_service.active_participants(db, conversation.id)

        statuses: Dict[UUID, DeliveryStatus] = {}

        if conversation.type == ConversationType.GROUP:
            own_ids = [m.id for m in messages if m.sender_id == viewer_id]
            other_ids = [m.id for m in messages if m.sender_id != viewer_id]

            # Receipts from members who have left do not count towards "read"
            active_others = [p.user_id for p in participants if p.user_id != viewer_id]
            receipt_counts = {}
            if own_ids and active_others:
                receipt_counts = dict(
                    db.query(ReadReceipt.message_id, func.count(ReadReceipt.id)).filter(
                        ReadReceipt.message_id.in_(own_ids),
                        ReadReceipt.user_id.in_(active_others)
                    ).group_by(ReadReceipt.message_id).all()
                )
            viewer_receipts = set()
            if other_ids:
                viewer_receipts = {
                    row.message_id for row in db.query(ReadReceipt.message_id).filter(
                        ReadReceipt.user_id == viewer_id,
                        ReadReceipt.message_id.in_(other_ids)
                    ).all()
                }

            total_others = len(active_others)
            for message in messages:
                if message.sender_id == viewer_id:
                    count = receipt_counts.get(message.id, 0)
                    if count == 0:
                        statuses[message.id] = DeliveryStatus.SENT
                    elif count < total_others:
                        statuses[message.id] = DeliveryStatus.DELIVERED
                    else:
                        statuses[message.id] = DeliveryStatus.READ
                else:
                    statuses[message.id] = (
                        DeliveryStatus.READ if message.id in viewer_receipts else DeliveryStatus.DELIVERED
                    )
            return statuses

        viewer = next((p for p in participants if p.user_id == viewer_id), None)
        peer = next((p for p in participants if p.user_id != viewer_id), None)
        for message in messages:
            if message.sender_id == viewer_id:
                read = peer is not None and peer.last_read_at is not None and peer.last_read_at >= message.created_at
                statuses[message.id] = DeliveryStatus.READ if read else DeliveryStatus.SENT
            else:
                read = viewer is not None and viewer.last_read_at is not None and viewer.last_read_at >= message.created_at
                statuses[message.id] = DeliveryStatus.READ if read else DeliveryStatus.DELIVERED
        return statuses

    def derive_status(self, db: Session, message: Message, viewer_id: str) -> DeliveryStatus:
        conversation = conversation_service.get_conversation(db, message.conversation_id)
        return self.derive_statuses(db, conversation, [message], viewer_id)[message.id]

    def get_message_status(self, db: Session, message_id: UUID, viewer_id: str) -> DeliveryStatus:
        """Status of a single message for an active participant"""
        message = db.query(Message).filter(Message.id == message_id).first()
        if not message:
            raise NotFound("Message not found", ErrorCode.MESSAGE_NOT_FOUND)
        conversation_service.require_participant(db, message.conversation_id, viewer_id)
        return self.derive_status(db, message, viewer_id)


read_service = ReadService()
