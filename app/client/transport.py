"""
Network seam for the client engine.

ChatTransport is the interface the optimistic engine talks to;
HttpChatTransport implements it against the v1 HTTP API with httpx.
"""
import logging
from datetime import datetime
from typing import Optional, List
from uuid import UUID

import httpx

from app.models.enums import MessageType
from app.schemas.feed import MessageFeedResponse
from app.schemas.message import MessageResponse, MessagePage
from app.utils.time_utils import to_utc_isoformat

logger = logging.getLogger(__name__)


class TransportError(Exception):
    """A request failed: network error or a non-2xx response"""

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


class ChatTransport:
    """Operations the client engine needs from the server"""

    async def send_message(
        self,
        conversation_id: UUID,
        content: str,
        message_type: MessageType = MessageType.TEXT,
        reply_to_id: Optional[UUID] = None
    ) -> MessageResponse:
        raise NotImplementedError

    async def edit_message(self, message_id: UUID, content: str) -> MessageResponse:
        raise NotImplementedError

    async def delete_message(self, message_id: UUID) -> MessageResponse:
        raise NotImplementedError

    async def mark_read(self, conversation_id: UUID, message_ids: List[UUID]) -> None:
        raise NotImplementedError

    async def fetch_page(
        self,
        conversation_id: UUID,
        limit: int,
        cursor: Optional[str] = None
    ) -> MessagePage:
        raise NotImplementedError

    async def fetch_message_changes(
        self,
        conversation_id: UUID,
        since: Optional[datetime] = None
    ) -> MessageFeedResponse:
        raise NotImplementedError


class HttpChatTransport(ChatTransport):
    """ChatTransport over the REST API"""

    def __init__(
        self,
        base_url: str,
        token: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0
    ):
        self.client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self.headers = {"Authorization": f"Bearer {token}"}

    async def aclose(self):
        await self.client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> dict:
        try:
            resp = await self.client.request(method, path, headers=self.headers, **kwargs)
        except httpx.RequestError as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise TransportError(f"Chat service unreachable: {e}")

        if resp.status_code >= 400:
            code = None
            detail = resp.text
            try:
                body = resp.json()
                code = body.get("code")
                detail = body.get("detail", detail)
            except ValueError:
                pass
            raise TransportError(str(detail), status_code=resp.status_code, code=code)

        return resp.json()

    async def send_message(
        self,
        conversation_id: UUID,
        content: str,
        message_type: MessageType = MessageType.TEXT,
        reply_to_id: Optional[UUID] = None
    ) -> MessageResponse:
        payload = {"content": content, "type": message_type.value}
        if reply_to_id:
            payload["reply_to_id"] = str(reply_to_id)
        data = await self._request("POST", f"/conversations/{conversation_id}/messages", json=payload)
        return MessageResponse.model_validate(data)

    async def edit_message(self, message_id: UUID, content: str) -> MessageResponse:
        data = await self._request("PATCH", f"/messages/{message_id}", json={"content": content})
        return MessageResponse.model_validate(data)

    async def delete_message(self, message_id: UUID) -> MessageResponse:
        data = await self._request("DELETE", f"/messages/{message_id}")
        return MessageResponse.model_validate(data)

    async def mark_read(self, conversation_id: UUID, message_ids: List[UUID]) -> None:
        await self._request(
            "POST",
            f"/conversations/{conversation_id}/read",
            json={"message_ids": [str(m) for m in message_ids]}
        )

    async def fetch_page(
        self,
        conversation_id: UUID,
        limit: int,
        cursor: Optional[str] = None
    ) -> MessagePage:
        params = {"limit": limit}
        if cursor:
            params["cursor"] = cursor
        data = await self._request("GET", f"/conversations/{conversation_id}/messages", params=params)
        return MessagePage.model_validate(data)

    async def fetch_message_changes(
        self,
        conversation_id: UUID,
        since: Optional[datetime] = None
    ) -> MessageFeedResponse:
        params = {}
        if since is not None:
            params["since"] = to_utc_isoformat(since)
        data = await self._request("GET", f"/feed/conversations/{conversation_id}/messages", params=params)
        return MessageFeedResponse.model_validate(data)
