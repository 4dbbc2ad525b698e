from __future__ import annotations

import logging

import httpx

from wadecrypt.core.entities import DecryptResult, ExpectedDigests, MediaType
from wadecrypt.core.errors import MediaFetchError
from wadecrypt.defaults.config import DEFAULT_SERVICE_CONFIG, FETCH_USER_AGENT
from wadecrypt.utils.media_decrypt import decrypt_media
from wadecrypt.utils.media_utils import derive_media_keys

logger = logging.getLogger(__name__)

_FETCH_HEADERS = {"User-Agent": FETCH_USER_AGENT}


def _check_url(url: str) -> None:
    if not url.startswith(("http://", "https://")):
        raise MediaFetchError(f"media url must start with http:// or https://: {url!r}")


def _response_bytes(res: httpx.Response, url: str) -> bytes:
    if res.status_code != 200:
        raise MediaFetchError(f"media fetch returned status {res.status_code} for {url}", res.status_code)
    return res.content


def fetch_encrypted_media(
    url: str,
    *,
    timeout: float = DEFAULT_SERVICE_CONFIG["fetch_timeout"],
    client: httpx.Client | None = None,
) -> bytes:
    """Download an encrypted media blob synchronously."""
    _check_url(url)
    try:
        if client is not None:
            res = client.get(url, headers=_FETCH_HEADERS, timeout=timeout)
        else:
            with httpx.Client(follow_redirects=True) as owned:
                res = owned.get(url, headers=_FETCH_HEADERS, timeout=timeout)
    except httpx.HTTPError as exc:
        raise MediaFetchError(f"media fetch failed for {url}: {exc}") from exc
    data = _response_bytes(res, url)
    logger.debug("fetched encrypted media", extra={"url": url, "size": len(data)})
    return data


class MediaManager:
    """Downloads encrypted media and decrypts it with the caller's media key."""

    def __init__(
        self,
        http: httpx.AsyncClient | None = None,
        *,
        timeout: float = DEFAULT_SERVICE_CONFIG["fetch_timeout"],
    ) -> None:
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(follow_redirects=True)
        self.timeout = timeout

    async def fetch(self, url: str) -> bytes:
        _check_url(url)
        try:
            res = await self.http.get(url, headers=_FETCH_HEADERS, timeout=self.timeout)
        except httpx.HTTPError as exc:
            raise MediaFetchError(f"media fetch failed for {url}: {exc}") from exc
        return _response_bytes(res, url)

    async def download_and_decrypt(
        self,
        url: str,
        media_key: bytes,
        media_type: MediaType | str,
        expected: ExpectedDigests,
        *,
        strict: bool = False,
        accept_iv_prefixed_mac: bool = False,
    ) -> DecryptResult:
        encrypted_data = await self.fetch(url)
        keys = derive_media_keys(media_key, media_type)
        result = decrypt_media(
            encrypted_data,
            keys,
            expected,
            strict=strict,
            accept_iv_prefixed_mac=accept_iv_prefixed_mac,
        )
        log_verification(result, url=url)
        return result

    async def aclose(self) -> None:
        """Close the HTTP client if this manager created it."""
        if self._owns_http:
            await self.http.aclose()


def log_verification(result: DecryptResult, **context: object) -> None:
    """Surface non-fatal verification anomalies at WARNING."""
    if not result.integrity_verified:
        logger.warning("media MAC mismatch, continuing with decrypted payload", extra=context)
    if not result.content_verified:
        logger.warning("media sha256 mismatch, continuing with decrypted payload", extra=context)
    if result.enc_digest_verified is False:
        logger.warning("encrypted blob sha256 mismatch", extra=context)
