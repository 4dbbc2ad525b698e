"""One-shot decryption of a media blob from disk or a URL."""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from wadecrypt.client.media import fetch_encrypted_media, log_verification
from wadecrypt.core.entities import ExpectedDigests, MediaType
from wadecrypt.defaults.config import DEFAULT_SERVICE_CONFIG
from wadecrypt.utils.media_decrypt import decrypt_media
from wadecrypt.utils.media_utils import derive_media_keys

logger = logging.getLogger(__name__)


@dataclass
class DecryptJobConfig:
    media_key_b64: str
    file_sha256_b64: str
    output_path: str
    input_path: str | None = None
    url: str | None = None
    media_type: str = "audio"
    file_enc_sha256_b64: str | None = None
    strict: bool = False
    accept_iv_prefixed_mac: bool = False
    timeout_s: float = DEFAULT_SERVICE_CONFIG["fetch_timeout"]


@dataclass
class DecryptJobReport:
    output_path: str
    media_type: MediaType
    encrypted_size: int = 0
    plaintext_size: int = 0
    integrity_verified: bool = False
    content_verified: bool = False
    enc_digest_verified: bool | None = None


class DecryptJobError(ValueError):
    pass


def decode_b64_field(name: str, value: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecryptJobError(f"{name} is not valid base64") from exc


def run_decrypt_job(
    config: DecryptJobConfig,
    *,
    fetcher: Callable[..., bytes] = fetch_encrypted_media,
) -> DecryptJobReport:
    media_type = MediaType.parse(config.media_type)
    media_key = decode_b64_field("media key", config.media_key_b64)
    expected = ExpectedDigests(
        file_sha256=decode_b64_field("fileSha256", config.file_sha256_b64),
        file_enc_sha256=(
            decode_b64_field("fileEncSha256", config.file_enc_sha256_b64)
            if config.file_enc_sha256_b64
            else None
        ),
    )

    if config.input_path:
        blob = Path(config.input_path).read_bytes()
    elif config.url:
        blob = fetcher(config.url, timeout=config.timeout_s)
    else:
        raise DecryptJobError("either an input path or a url is required")

    result = decrypt_media(
        blob,
        derive_media_keys(media_key, media_type),
        expected,
        strict=config.strict,
        accept_iv_prefixed_mac=config.accept_iv_prefixed_mac,
    )
    log_verification(result, source=config.input_path or config.url)

    out = Path(config.output_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(result.plaintext)
    logger.info("wrote decrypted media", extra={"path": str(out), "size": len(result.plaintext)})

    return DecryptJobReport(
        output_path=str(out),
        media_type=media_type,
        encrypted_size=len(blob),
        plaintext_size=len(result.plaintext),
        integrity_verified=result.integrity_verified,
        content_verified=result.content_verified,
        enc_digest_verified=result.enc_digest_verified,
    )
