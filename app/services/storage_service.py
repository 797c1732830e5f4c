"""
Object storage collaborator

Uploads happen directly between the client and the bucket. This service only
names write-once keys and turns stored keys into resolvable URLs.
"""
import re
import secrets
import time
from typing import Optional
from uuid import UUID

from app.core.config import settings
from app.models.enums import MessageType

_UNSAFE_CHARS = re.compile(r'[^A-Za-z0-9._-]+')


class StorageService:
    """URL rendering and key naming for media messages"""

    def __init__(self, base_url: Optional[str] = None):
        self.base_url = (base_url or settings.MEDIA_BASE_URL).rstrip("/")

    def build_media_key(self, conversation_id: UUID, file_name: str, kind: MessageType = MessageType.IMAGE) -> str:
        """images/<conversation>/<millis>_<random>_<file name>"""
        prefix = "images" if kind == MessageType.IMAGE else "files"
        timestamp = int(time.time() * 1000)
        safe_name = _UNSAFE_CHARS.sub("_", file_name).strip("_") or "upload"
        return f"{prefix}/{conversation_id}/{timestamp}_{secrets.token_hex(4)}_{safe_name}"

    def resolve_url(self, key: Optional[str]) -> Optional[str]:
        if not key:
            return None
        return f"{self.base_url}/{key.lstrip('/')}"


storage_service = StorageService()
