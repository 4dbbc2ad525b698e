from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from wadecrypt.core.errors import UnsupportedMediaTypeError


class MediaType(str, Enum):
    AUDIO = "audio"
    IMAGE = "image"
    VIDEO = "video"
    DOCUMENT = "document"
    STICKER = "sticker"

    @property
    def label(self) -> str:
        """Domain-separation label mixed into the HKDF info string."""
        match self:
            case MediaType.AUDIO:
                return "Audio"
            case MediaType.IMAGE | MediaType.STICKER:
                return "Image"
            case MediaType.VIDEO:
                return "Video"
            case MediaType.DOCUMENT:
                return "Document"
        raise UnsupportedMediaTypeError(self)

    @classmethod
    def parse(cls, value: MediaType | str) -> MediaType:
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise UnsupportedMediaTypeError(value)

    @classmethod
    def from_mimetype(cls, mimetype: Optional[str]) -> MediaType:
        """Best-effort mapping from a MIME type; unknown families fall back to audio."""
        mime = (mimetype or "").strip().lower()
        if mime.startswith("audio"):
            return cls.AUDIO
        if mime == "image/webp":
            return cls.STICKER
        if mime.startswith("image"):
            return cls.IMAGE
        if mime.startswith("video"):
            return cls.VIDEO
        if mime.startswith(("application", "text")):
            return cls.DOCUMENT
        return cls.AUDIO


@dataclass(frozen=True, slots=True)
class DerivedKeySet:
    iv: bytes
    cipher_key: bytes
    mac_key: bytes
    ref_key: bytes = field(default=b"", repr=False)

    def __repr__(self) -> str:
        return f"DerivedKeySet(iv=<{len(self.iv)} bytes>, cipher_key=<redacted>, mac_key=<redacted>)"


@dataclass(frozen=True, slots=True)
class ExpectedDigests:
    file_sha256: bytes
    file_enc_sha256: Optional[bytes] = None


@dataclass(slots=True)
class DecryptResult:
    plaintext: bytes
    integrity_verified: bool
    content_verified: bool
    enc_digest_verified: Optional[bool] = None
    mac_scope: Optional[str] = None

    @property
    def verified(self) -> bool:
        return self.integrity_verified and self.content_verified and self.enc_digest_verified is not False


@dataclass(slots=True)
class EncryptedMedia:
    blob: bytes
    media_key: bytes
    media_type: MediaType
    file_sha256: bytes
    file_enc_sha256: bytes
    file_length: int

    @property
    def expected(self) -> ExpectedDigests:
        return ExpectedDigests(file_sha256=self.file_sha256, file_enc_sha256=self.file_enc_sha256)
