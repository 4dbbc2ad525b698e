from __future__ import annotations

import threading
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable

from werkzeug.utils import secure_filename

MIN_DOWNLOAD_ID_LENGTH = 32


def extension_for_mime(mime_type: str) -> str:
    if "audio" in mime_type:
        return "ogg"
    if "image" in mime_type:
        return "jpg"
    if "video" in mime_type:
        return "mp4"
    return "bin"


def attachment_name(mime_type: str, message_id: str | None = None) -> str:
    """Attachment filename; the message id is reduced to header-safe characters."""
    safe_id = secure_filename(message_id or "") or "file"
    return f"whatsapp-media-{safe_id}.{extension_for_mime(mime_type)}"


@dataclass(slots=True)
class CachedMedia:
    data: bytes
    mime_type: str
    file_name: str
    expires_at: float
    id: str = field(default_factory=lambda: uuid.uuid4().hex)


class DownloadCache:
    """Bounded TTL store of decrypted media, keyed by a random download id."""

    def __init__(
        self,
        ttl_s: float = 600.0,
        max_entries: int = 64,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_s = float(ttl_s)
        self._max_entries = max(1, int(max_entries))
        self._clock = clock
        self._entries: OrderedDict[str, CachedMedia] = OrderedDict()
        self._lock = threading.Lock()

    def put(self, data: bytes, mime_type: str, file_name: str) -> CachedMedia:
        entry = CachedMedia(
            data=data,
            mime_type=mime_type,
            file_name=file_name,
            expires_at=self._clock() + self._ttl_s,
        )
        with self._lock:
            self._purge_expired_locked()
            self._entries[entry.id] = entry
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)
        return entry

    def get(self, download_id: str) -> CachedMedia | None:
        with self._lock:
            entry = self._entries.get(download_id)
            if entry is None:
                return None
            if entry.expires_at <= self._clock():
                del self._entries[download_id]
                return None
            return entry

    def purge_expired(self) -> int:
        with self._lock:
            return self._purge_expired_locked()

    def _purge_expired_locked(self) -> int:
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
