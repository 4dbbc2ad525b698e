import base64

import pytest

from tools.media_service.config import ServiceConfig, config_from_env
from tools.media_service.server import create_app
from tools.media_service.state import DownloadCache
from wadecrypt.core.errors import MediaFetchError
from wadecrypt.utils.media_utils import encrypt_media

API_KEY = "test-api-key"
MEDIA_URL = "https://mmg.whatsapp.net/d/f/voice.enc"


def _b64(value: bytes) -> str:
    return base64.b64encode(value).decode("ascii")


class _FakeFetcher:
    def __init__(self, payload: bytes = b"", error: Exception | None = None) -> None:
        self.payload = payload
        self.error = error
        self.calls: list[tuple[str, float]] = []

    def __call__(self, url: str, *, timeout: float) -> bytes:
        self.calls.append((url, timeout))
        if self.error is not None:
            raise self.error
        return self.payload


@pytest.fixture
def media():
    return encrypt_media(b"OggS fake voice note" * 8, "audio")


@pytest.fixture
def fetcher(media):
    return _FakeFetcher(media.blob)


@pytest.fixture
def client(fetcher):
    app = create_app(
        testing=True,
        config=ServiceConfig(api_key=API_KEY, fetch_timeout_s=5.0, accept_iv_prefixed_mac=True),
        fetcher=fetcher,
        cache=DownloadCache(ttl_s=60.0),
    )
    with app.test_client() as test_client:
        yield test_client


def _body(media, **overrides):
    body = {
        "url": MEDIA_URL,
        "mediaKey": _b64(media.media_key),
        "fileEncSha256": _b64(media.file_enc_sha256),
        "fileSha256": _b64(media.file_sha256),
        "mimetype": "audio/ogg; codecs=opus",
        "messageId": "3EB0ABCDEF",
    }
    body.update(overrides)
    return body


def test_health_needs_no_api_key(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.get_json()["status"] == "ok"


def test_missing_api_key_is_401(client, media):
    res = client.post("/decrypt-media", json=_body(media))
    assert res.status_code == 401
    assert res.get_json()["success"] is False


def test_wrong_api_key_is_403(client, media):
    res = client.post("/decrypt-media", json=_body(media), headers={"X-API-Key": "nope"})
    assert res.status_code == 403


def test_api_key_accepted_from_query_param(client, media):
    res = client.post(f"/decrypt-media?apiKey={API_KEY}", json=_body(media))
    assert res.status_code == 200


def test_unconfigured_api_key_rejects_everything(media):
    app = create_app(testing=True, config=ServiceConfig(api_key=None), fetcher=_FakeFetcher(media.blob))
    with app.test_client() as test_client:
        res = test_client.post("/decrypt-media", json=_body(media), headers={"X-API-Key": "anything"})
    assert res.status_code == 403


def test_missing_fields_are_400(client, media):
    body = _body(media)
    del body["fileSha256"]
    res = client.post("/decrypt-media", json=body, headers={"X-API-Key": API_KEY})
    assert res.status_code == 400
    assert res.get_json()["error"] == "Incomplete parameters"


def test_non_http_url_is_400(client, media):
    res = client.post("/decrypt-media", json=_body(media, url="ftp://x/y.enc"), headers={"X-API-Key": API_KEY})
    assert res.status_code == 400
    assert res.get_json()["error"] == "Invalid URL"


def test_invalid_base64_is_400(client, media, fetcher):
    res = client.post("/decrypt-media", json=_body(media, mediaKey="***"), headers={"X-API-Key": API_KEY})
    assert res.status_code == 400
    assert fetcher.calls == []


def test_decrypt_returns_base64_and_flags(client, media, fetcher):
    res = client.post("/decrypt-media", json=_body(media), headers={"X-API-Key": API_KEY})
    assert res.status_code == 200
    body = res.get_json()
    assert body["success"] is True
    assert base64.b64decode(body["base64"]) == b"OggS fake voice note" * 8
    assert body["size"] == len(b"OggS fake voice note" * 8)
    assert body["mimeType"] == "audio/ogg; codecs=opus"
    assert body["messageId"] == "3EB0ABCDEF"
    assert body["integrityVerified"] is True
    assert body["contentVerified"] is True
    assert body["encDigestVerified"] is True
    assert body["downloadUrl"].endswith(f"/download/{body['downloadId']}")
    assert fetcher.calls == [(MEDIA_URL, 5.0)]


def test_decrypt_audio_alias(client, media):
    res = client.post("/decrypt-audio", json=_body(media), headers={"X-API-Key": API_KEY})
    assert res.status_code == 200
    assert res.get_json()["success"] is True


def test_download_query_streams_attachment(client, media):
    res = client.post("/decrypt-media?download=true", json=_body(media), headers={"X-API-Key": API_KEY})
    assert res.status_code == 200
    assert res.data == b"OggS fake voice note" * 8
    assert res.headers["Content-Type"] == "audio/ogg; codecs=opus"
    assert res.headers["Content-Disposition"] == 'attachment; filename="whatsapp-media-3EB0ABCDEF.ogg"'
    assert res.headers["Content-Length"] == str(len(res.data))


def test_download_by_id_after_decrypt(client, media):
    res = client.post("/decrypt-media", json=_body(media, messageId=None), headers={"X-API-Key": API_KEY})
    download_id = res.get_json()["downloadId"]
    res = client.get(f"/download/{download_id}", headers={"X-API-Key": API_KEY})
    assert res.status_code == 200
    assert res.data == b"OggS fake voice note" * 8
    assert res.headers["Content-Disposition"] == 'attachment; filename="whatsapp-media-file.ogg"'


def test_download_rejects_short_and_unknown_ids(client):
    res = client.get("/download/abc", headers={"X-API-Key": API_KEY})
    assert res.status_code == 400
    res = client.get("/download/" + "0" * 32, headers={"X-API-Key": API_KEY})
    assert res.status_code == 404


def test_download_requires_api_key(client):
    res = client.get("/download/" + "0" * 32)
    assert res.status_code == 401


def test_fetch_failure_is_502(media):
    failing = _FakeFetcher(error=MediaFetchError("status 404", 404))
    app = create_app(testing=True, config=ServiceConfig(api_key=API_KEY), fetcher=failing)
    with app.test_client() as test_client:
        res = test_client.post("/decrypt-media", json=_body(media), headers={"X-API-Key": API_KEY})
    assert res.status_code == 502


def test_short_blob_is_400(media):
    app = create_app(testing=True, config=ServiceConfig(api_key=API_KEY), fetcher=_FakeFetcher(b"tiny"))
    with app.test_client() as test_client:
        res = test_client.post("/decrypt-media", json=_body(media), headers={"X-API-Key": API_KEY})
    assert res.status_code == 400
    assert res.get_json()["error"] == "Decryption error"
    assert "stack" not in res.get_json()


def test_mismatch_is_lenient_by_default_and_422_in_strict_mode(client, media):
    body = _body(media, fileSha256=_b64(bytes(32)))
    res = client.post("/decrypt-media", json=body, headers={"X-API-Key": API_KEY})
    assert res.status_code == 200
    assert res.get_json()["contentVerified"] is False

    res = client.post("/decrypt-media", json=dict(body, strict=True), headers={"X-API-Key": API_KEY})
    assert res.status_code == 422
    assert res.get_json()["error"] == "Verification failed"


def test_debug_mode_includes_stack(media):
    app = create_app(
        testing=True,
        config=ServiceConfig(api_key=API_KEY, debug=True),
        fetcher=_FakeFetcher(b"tiny"),
    )
    with app.test_client() as test_client:
        res = test_client.post("/decrypt-media", json=_body(media), headers={"X-API-Key": API_KEY})
    assert "BlobTooShortError" in res.get_json()["stack"]


def test_config_from_env(monkeypatch):
    monkeypatch.delenv("WADECRYPT_API_KEY", raising=False)
    monkeypatch.delenv("WADECRYPT_PORT", raising=False)
    monkeypatch.delenv("WADECRYPT_DEBUG", raising=False)
    monkeypatch.setenv("API_KEY", "legacy-key")
    monkeypatch.setenv("PORT", "8081")
    monkeypatch.setenv("WADECRYPT_STRICT", "1")
    monkeypatch.setenv("WADECRYPT_CACHE_TTL", "5")
    monkeypatch.setenv("WADECRYPT_ACCEPT_IV_MAC", "true")
    monkeypatch.setenv("NODE_ENV", "development")
    config = config_from_env()
    assert config.api_key == "legacy-key"
    assert config.port == 8081
    assert config.strict is True
    assert config.cache_ttl_s == 5.0
    assert config.accept_iv_prefixed_mac is True
    assert config.debug is True


def test_config_from_env_defaults(monkeypatch):
    names = (
        "WADECRYPT_API_KEY",
        "API_KEY",
        "WADECRYPT_PORT",
        "PORT",
        "WADECRYPT_STRICT",
        "NODE_ENV",
        "WADECRYPT_DEBUG",
        "WADECRYPT_ACCEPT_IV_MAC",
    )
    for name in names:
        monkeypatch.delenv(name, raising=False)
    config = config_from_env()
    assert config.api_key is None
    assert config.port == 3000
    assert config.strict is False
    assert config.accept_iv_prefixed_mac is False
    assert config.debug is False


def test_non_object_json_body_is_400(client, fetcher):
    res = client.post("/decrypt-media", json=[1, 2], headers={"X-API-Key": API_KEY})
    assert res.status_code == 400
    assert res.get_json()["error"] == "Incomplete parameters"
    assert fetcher.calls == []


@pytest.mark.parametrize("field, value", [("mimetype", 5), ("messageId", {"id": 1}), ("mimetype", ["audio/ogg"])])
def test_non_string_optional_fields_are_400(client, media, fetcher, field, value):
    res = client.post("/decrypt-media", json=_body(media, **{field: value}), headers={"X-API-Key": API_KEY})
    assert res.status_code == 400
    assert res.get_json()["error"] == "Invalid parameters"
    assert fetcher.calls == []


def test_message_id_is_sanitised_in_attachment_name(client, media):
    res = client.post(
        "/decrypt-media?download=true",
        json=_body(media, messageId='3EB0"; evil=1\r\nX: y'),
        headers={"X-API-Key": API_KEY},
    )
    assert res.status_code == 200
    disposition = res.headers["Content-Disposition"]
    assert disposition.startswith('attachment; filename="whatsapp-media-')
    assert disposition.count('"') == 2
    assert "\r" not in disposition and "\n" not in disposition


def test_wire_form_mac_is_unverified_with_default_config(media):
    app = create_app(testing=True, config=ServiceConfig(api_key=API_KEY), fetcher=_FakeFetcher(media.blob))
    with app.test_client() as test_client:
        res = test_client.post("/decrypt-media", json=_body(media), headers={"X-API-Key": API_KEY})
        assert res.status_code == 200
        assert res.get_json()["integrityVerified"] is False
        assert res.get_json()["contentVerified"] is True

        res = test_client.post("/decrypt-media", json=_body(media, strict=True), headers={"X-API-Key": API_KEY})
        assert res.status_code == 422
