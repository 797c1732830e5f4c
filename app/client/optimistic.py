"""
Client-side optimistic reconciliation for one conversation.

Messages are staged locally under a temporary id before the network call and
re-keyed to the server id exactly once when the server acknowledges them.
Failed sends stay in the cache with their content so the user can retry or
discard them. Edits, deletes and read marks are applied locally first and
rolled back if the server rejects them.

All cache mutations are synchronous; the engine is meant to be driven from a
single asyncio loop.
"""
import enum
import itertools
import logging
import secrets
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Dict, List, Optional, Union, Iterable
from uuid import UUID

from app.client.transport import ChatTransport, TransportError
from app.models.enums import DeliveryStatus, MessageType
from app.schemas.message import MessageResponse
from app.utils.time_utils import utc_now

logger = logging.getLogger(__name__)

_temp_counter = itertools.count(1)


def new_temp_id() -> str:
    """temp_<counter>_<random hex>; unique for the lifetime of the process"""
    return f"temp_{next(_temp_counter)}_{secrets.token_hex(4)}"


class DeliveryState(str, enum.Enum):
    SENDING = "sending"
    SENT = "sent"
    FAILED = "failed"


@dataclass(frozen=True)
class LocalId:
    temp_id: str


@dataclass(frozen=True)
class CommittedId:
    server_id: UUID


MessageKey = Union[LocalId, CommittedId]


@dataclass
class CachedMessage:
    key: MessageKey
    conversation_id: UUID
    sender_id: str
    content: str
    type: MessageType
    state: DeliveryState
    created_at: datetime
    reply_to_id: Optional[UUID] = None
    edited: bool = False
    deleted: bool = False
    read: bool = False
    status: Optional[DeliveryStatus] = None
    error: Optional[str] = None
    temp_id: Optional[str] = None

    @property
    def is_committed(self) -> bool:
        return isinstance(self.key, CommittedId)


class OptimisticConversation:
    """Local message cache for one conversation, reconciled against a ChatTransport"""

    def __init__(self, transport: ChatTransport, conversation_id: UUID, user_id: str, page_size: int = 20):
        self.transport = transport
        self.conversation_id = conversation_id
        self.user_id = user_id
        self.page_size = page_size

        self._rows: Dict[MessageKey, CachedMessage] = {}
        self._committed_by_temp: Dict[str, CommittedId] = {}
        self.next_cursor: Optional[str] = None
        self.has_more = True
        self.watermark: Optional[datetime] = None

    # ---- views ----

    @property
    def messages(self) -> List[CachedMessage]:
        """Visible rows: committed in server order, then staged rows in send order"""
        committed = sorted(
            (r for r in self._rows.values() if r.is_committed and not r.deleted),
            key=lambda r: r.created_at
        )
        staged = [r for r in self._rows.values() if not r.is_committed]
        return committed + staged

    def get(self, key: MessageKey) -> Optional[CachedMessage]:
        return self._rows.get(key)

    def resolve(self, local_id: LocalId) -> Optional[CommittedId]:
        """Server id a staged message was committed under, if any"""
        return self._committed_by_temp.get(local_id.temp_id)

    # ---- reconciliation ----

    def _apply_server(self, row: CachedMessage, message: MessageResponse) -> None:
        row.content = message.content
        row.type = message.type
        row.sender_id = message.sender_id
        row.reply_to_id = message.reply_to_id
        row.created_at = message.created_at
        row.edited = message.edited
        row.deleted = message.deleted
        row.status = message.status
        if message.status == DeliveryStatus.READ and message.sender_id != self.user_id:
            row.read = True

    def merge(self, message: MessageResponse) -> CachedMessage:
        """Insert or update a server message. Applying the same message twice is a no-op."""
        key = CommittedId(message.id)
        row = self._rows.get(key)
        if row is None:
            row = CachedMessage(
                key=key,
                conversation_id=message.conversation_id,
                sender_id=message.sender_id,
                content=message.content,
                type=message.type,
                state=DeliveryState.SENT,
                created_at=message.created_at,
            )
            self._rows[key] = row
        self._apply_server(row, message)
        return row

    def _commit(self, row: CachedMessage, message: MessageResponse) -> None:
        # LocalId -> CommittedId happens once; a poll may have merged the row first
        self._rows.pop(row.key, None)
        key = CommittedId(message.id)
        row.key = key
        row.state = DeliveryState.SENT
        row.error = None
        self._apply_server(row, message)
        self._rows[key] = row
        self._committed_by_temp[row.temp_id] = key

    # ---- sending ----

    def _stage(self, content: str, message_type: MessageType, reply_to_id: Optional[UUID]) -> CachedMessage:
        temp_id = new_temp_id()
        row = CachedMessage(
            key=LocalId(temp_id),
            conversation_id=self.conversation_id,
            sender_id=self.user_id,
            content=content,
            type=message_type,
            state=DeliveryState.SENDING,
            created_at=utc_now(),
            reply_to_id=reply_to_id,
            temp_id=temp_id,
        )
        self._rows[row.key] = row
        return row

    async def _deliver(self, row: CachedMessage) -> CachedMessage:
        try:
            message = await self.transport.send_message(
                self.conversation_id, row.content, row.type, row.reply_to_id
            )
        except TransportError as e:
            row.state = DeliveryState.FAILED
            row.error = e.message
            logger.warning(f"Send of {row.temp_id} failed: {e.message}")
            return row

        self._commit(row, message)
        return row

    async def send(
        self,
        content: str,
        message_type: MessageType = MessageType.TEXT,
        reply_to_id: Optional[UUID] = None
    ) -> CachedMessage:
        """Stage the message, then send it. A failed send leaves a FAILED row, it does not raise."""
        row = self._stage(content, message_type, reply_to_id)
        return await self._deliver(row)

    def _failed_row(self, local_id: LocalId) -> CachedMessage:
        row = self._rows.get(local_id)
        if row is None or row.state != DeliveryState.FAILED:
            raise KeyError(f"No failed message staged as {local_id.temp_id}")
        return row

    async def retry(self, local_id: LocalId) -> CachedMessage:
        """Resend a failed message; the same row moves to SENDING and then SENT or FAILED"""
        row = self._failed_row(local_id)
        row.state = DeliveryState.SENDING
        row.error = None
        return await self._deliver(row)

    def discard(self, local_id: LocalId) -> None:
        """Drop a failed message from the cache"""
        self._failed_row(local_id)
        del self._rows[local_id]

    # ---- optimistic mutations ----

    def _committed_row(self, key: MessageKey) -> CachedMessage:
        row = self._rows.get(key)
        if row is None or not row.is_committed:
            raise KeyError("Message is not committed yet")
        return row

    def _rollback(self, row: CachedMessage, snapshot: CachedMessage) -> None:
        row.content = snapshot.content
        row.edited = snapshot.edited
        row.deleted = snapshot.deleted

    async def edit(self, key: CommittedId, content: str) -> CachedMessage:
        row = self._committed_row(key)
        snapshot = replace(row)
        row.content = content
        row.edited = True
        try:
            message = await self.transport.edit_message(key.server_id, content)
        except TransportError:
            self._rollback(row, snapshot)
            raise
        self._apply_server(row, message)
        return row

    async def delete(self, key: CommittedId) -> CachedMessage:
        row = self._committed_row(key)
        snapshot = replace(row)
        row.deleted = True
        row.content = ""
        try:
            message = await self.transport.delete_message(key.server_id)
        except TransportError:
            self._rollback(row, snapshot)
            raise
        self._apply_server(row, message)
        return row

    async def mark_read(self, keys: Iterable[CommittedId]) -> None:
        rows = [self._committed_row(key) for key in keys]
        previous = [(row, row.read) for row in rows]
        for row in rows:
            row.read = True
        try:
            await self.transport.mark_read(self.conversation_id, [row.key.server_id for row in rows])
        except TransportError:
            for row, was_read in previous:
                row.read = was_read
            raise

    # ---- loading ----

    async def load_latest(self) -> List[CachedMessage]:
        page = await self.transport.fetch_page(self.conversation_id, self.page_size)
        self.next_cursor = page.next_cursor
        self.has_more = page.has_more
        return [self.merge(m) for m in page.messages]

    async def load_older(self) -> List[CachedMessage]:
        """Next page back in history; empty once the start of the conversation is reached"""
        if not self.has_more or self.next_cursor is None:
            return []
        page = await self.transport.fetch_page(self.conversation_id, self.page_size, self.next_cursor)
        self.next_cursor = page.next_cursor
        self.has_more = page.has_more
        return [self.merge(m) for m in page.messages]

    async def poll(self) -> List[CachedMessage]:
        """Merge server changes since the watermark, then advance it"""
        feed = await self.transport.fetch_message_changes(self.conversation_id, self.watermark)
        merged = [self.merge(m) for m in feed.messages]
        self.watermark = feed.server_time
        return merged
