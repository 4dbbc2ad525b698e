from __future__ import annotations

import argparse
import base64
import binascii
import hmac
import logging
import traceback
from functools import wraps
from typing import Any, Protocol

from flask import Flask, Response, jsonify, request, url_for
from werkzeug.exceptions import HTTPException

from wadecrypt.client.media import fetch_encrypted_media, log_verification
from wadecrypt.core.entities import ExpectedDigests, MediaType
from wadecrypt.core.errors import CipherError, MediaFetchError, MediaInputError, VerificationError
from wadecrypt.infra.logger import get_logger
from wadecrypt.utils.media_decrypt import decrypt_media
from wadecrypt.utils.media_utils import derive_media_keys

from .config import ServiceConfig, config_from_env
from .state import MIN_DOWNLOAD_ID_LENGTH, DownloadCache, attachment_name

logger = logging.getLogger(__name__)

_REQUIRED_FIELDS = ("url", "mediaKey", "fileEncSha256", "fileSha256")


class MediaFetcherLike(Protocol):
    def __call__(self, url: str, *, timeout: float) -> bytes: ...


class _BadRequest(ValueError):
    pass


def _decode_b64(name: str, value: Any) -> bytes:
    if not isinstance(value, str):
        raise _BadRequest(f"`{name}` must be a base64 string")
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise _BadRequest(f"`{name}` is not valid base64") from exc


def _attachment(data: bytes, mime_type: str, file_name: str) -> Response:
    res = Response(data, mimetype=mime_type)
    res.headers["Content-Type"] = mime_type
    res.headers["Content-Disposition"] = f'attachment; filename="{file_name}"'
    res.headers["Content-Length"] = str(len(data))
    return res


def create_app(
    *,
    testing: bool = False,
    config: ServiceConfig | None = None,
    fetcher: MediaFetcherLike | None = None,
    cache: DownloadCache | None = None,
) -> Flask:
    app = Flask(__name__)
    app.config["TESTING"] = testing
    service_config = config or config_from_env()
    media_fetcher = fetcher or fetch_encrypted_media
    download_cache = cache or DownloadCache(
        ttl_s=service_config.cache_ttl_s,
        max_entries=service_config.cache_max_entries,
    )
    app.config["SERVICE_CONFIG"] = service_config
    app.config["DOWNLOAD_CACHE"] = download_cache

    def _error(status: int, error: str, message: str, exc: BaseException | None = None):
        body: dict[str, Any] = {"success": False, "error": error, "message": message}
        if service_config.debug and exc is not None:
            body["stack"] = "".join(traceback.format_exception(exc))
        return jsonify(body), status

    def requires_api_key(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            provided = request.headers.get("X-API-Key") or request.args.get("apiKey")
            if not provided:
                return _error(401, "Unauthorized", "API key not provided")
            expected = service_config.api_key
            if not expected or not hmac.compare_digest(provided.encode(), expected.encode()):
                return _error(403, "Forbidden", "Invalid API key")
            return f(*args, **kwargs)

        return decorated

    @app.get("/health")
    def health():
        return jsonify({"status": "ok", "message": "Service is running"})

    @app.post("/decrypt-media")
    @app.post("/decrypt-audio", endpoint="decrypt_audio")
    @requires_api_key
    def decrypt_media_route():
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            data = {}
        missing = [name for name in _REQUIRED_FIELDS if not data.get(name)]
        if missing:
            return _error(
                400,
                "Incomplete parameters",
                "All of (url, mediaKey, fileEncSha256, fileSha256) are required",
            )

        url = str(data["url"])
        if not url.startswith(("http://", "https://")):
            return _error(400, "Invalid URL", "The URL must start with http:// or https://")

        for name in ("mimetype", "messageId"):
            if data.get(name) is not None and not isinstance(data[name], str):
                return _error(400, "Invalid parameters", f"`{name}` must be a string")

        mime_type = data.get("mimetype") or "audio/ogg"
        message_id = data.get("messageId")
        strict = data.get("strict")
        if not isinstance(strict, bool):
            strict = service_config.strict

        try:
            media_key = _decode_b64("mediaKey", data["mediaKey"])
            expected = ExpectedDigests(
                file_sha256=_decode_b64("fileSha256", data["fileSha256"]),
                file_enc_sha256=_decode_b64("fileEncSha256", data["fileEncSha256"]),
            )
        except _BadRequest as exc:
            return _error(400, "Invalid parameters", str(exc), exc)

        media_type = MediaType.from_mimetype(data.get("mimetype"))
        logger.info(
            "decrypt request",
            extra={"media_type": media_type.value, "message_id": message_id, "url": url},
        )

        try:
            encrypted = media_fetcher(url, timeout=service_config.fetch_timeout_s)
        except MediaFetchError as exc:
            return _error(502, "Failed to download the file", str(exc), exc)

        try:
            keys = derive_media_keys(media_key, media_type)
            result = decrypt_media(
                encrypted,
                keys,
                expected,
                strict=strict,
                accept_iv_prefixed_mac=service_config.accept_iv_prefixed_mac,
            )
        except VerificationError as exc:
            return _error(422, "Verification failed", str(exc), exc)
        except (MediaInputError, CipherError) as exc:
            return _error(400, "Decryption error", str(exc), exc)

        log_verification(result, url=url, message_id=message_id)
        plaintext = result.plaintext
        file_name = attachment_name(mime_type, message_id)

        if request.args.get("download") == "true":
            return _attachment(plaintext, mime_type, file_name)

        entry = download_cache.put(plaintext, mime_type, file_name)
        return jsonify(
            {
                "success": True,
                "base64": base64.b64encode(plaintext).decode("ascii"),
                "mimeType": mime_type,
                "size": len(plaintext),
                "messageId": message_id,
                "downloadId": entry.id,
                "downloadUrl": url_for("download", download_id=entry.id, _external=True),
                "integrityVerified": result.integrity_verified,
                "contentVerified": result.content_verified,
                "encDigestVerified": result.enc_digest_verified,
            }
        )

    @app.get("/download/<download_id>")
    @requires_api_key
    def download(download_id: str):
        if len(download_id) < MIN_DOWNLOAD_ID_LENGTH:
            return _error(400, "Invalid download id", "Download ids are at least 32 characters")
        entry = download_cache.get(download_id)
        if entry is None:
            return _error(404, "Not found", "File not found or expired")
        return _attachment(entry.data, entry.mime_type, entry.file_name)

    @app.errorhandler(Exception)
    def internal_error(exc: Exception):
        if isinstance(exc, HTTPException):
            return exc
        logger.exception("unhandled error")
        return _error(500, "Internal server error", str(exc) if service_config.debug else "", exc)

    return app


def _parse_args(config: ServiceConfig) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the WhatsApp media decrypt service.")
    parser.add_argument("--host", default=config.host)
    parser.add_argument("--port", default=config.port, type=int)
    parser.add_argument("--debug", action="store_true", default=config.debug)
    return parser.parse_args()


def main() -> None:
    get_logger("wadecrypt")
    get_logger("tools.media_service")
    config = config_from_env()
    args = _parse_args(config)
    config.debug = args.debug
    if not config.api_key:
        logger.warning("no API key configured; every protected request will be rejected")
    app = create_app(config=config)
    app.run(host=args.host, port=args.port, debug=args.debug)


if __name__ == "__main__":
    main()
