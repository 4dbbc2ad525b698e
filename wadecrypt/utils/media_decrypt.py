"""Authenticated decryption of WhatsApp media blobs.

The pipeline is a pure function of its inputs: it holds no state, performs no
I/O and does not log. Verification anomalies are reported on the result
unless ``strict`` is set, in which case they are raised.
"""

from __future__ import annotations

from wadecrypt.core.entities import DecryptResult, DerivedKeySet, ExpectedDigests
from wadecrypt.core.errors import (
    BlobTooShortError,
    CipherError,
    ContentMismatchError,
    EncryptedDigestMismatchError,
    IntegrityMismatchError,
    InvalidKeyMaterialError,
)
from wadecrypt.defaults.config import AES_BLOCK_SIZE, CIPHER_KEY_SIZE, IV_SIZE, MAC_KEY_SIZE, MAC_TAG_SIZE
from wadecrypt.utils.crypto import aes_cbc_decrypt, constant_time_equal, hmac_sha256, sha256

MAC_SCOPE_CIPHERTEXT = "ciphertext"
MAC_SCOPE_IV_CIPHERTEXT = "iv+ciphertext"


def split_blob(blob: bytes) -> tuple[bytes, bytes]:
    """Return ``(ciphertext, tag)``."""
    if len(blob) < MAC_TAG_SIZE:
        raise BlobTooShortError(len(blob), MAC_TAG_SIZE)
    cut = len(blob) - MAC_TAG_SIZE
    return blob[:cut], blob[cut:]


def _check_key_material(keys: DerivedKeySet) -> None:
    for name, value, expected in (
        ("iv", keys.iv, IV_SIZE),
        ("cipher_key", keys.cipher_key, CIPHER_KEY_SIZE),
        ("mac_key", keys.mac_key, MAC_KEY_SIZE),
    ):
        if len(value) != expected:
            raise InvalidKeyMaterialError(name, len(value), expected)


def verify_mac(
    ciphertext: bytes,
    tag: bytes,
    keys: DerivedKeySet,
    *,
    accept_iv_prefixed_mac: bool = False,
) -> str | None:
    """Check the truncated HMAC tag and return the scope it matched, if any.

    The tag covers ``ciphertext``. The ``iv || ciphertext`` form written by
    WhatsApp clients is only tried when ``accept_iv_prefixed_mac`` is set.
    """
    if constant_time_equal(tag, hmac_sha256(keys.mac_key, ciphertext)[:MAC_TAG_SIZE]):
        return MAC_SCOPE_CIPHERTEXT
    if accept_iv_prefixed_mac and constant_time_equal(
        tag, hmac_sha256(keys.mac_key, keys.iv + ciphertext)[:MAC_TAG_SIZE]
    ):
        return MAC_SCOPE_IV_CIPHERTEXT
    return None


def decrypt_ciphertext(ciphertext: bytes, keys: DerivedKeySet) -> bytes:
    if len(ciphertext) % AES_BLOCK_SIZE:
        raise CipherError(
            f"ciphertext length {len(ciphertext)} is not a multiple of {AES_BLOCK_SIZE}"
        )
    try:
        return aes_cbc_decrypt(ciphertext, keys.cipher_key, keys.iv)
    except ValueError as exc:
        raise CipherError(f"AES-256-CBC decryption failed: {exc}") from exc


def decrypt_media(
    blob: bytes,
    keys: DerivedKeySet,
    expected: ExpectedDigests,
    *,
    strict: bool = False,
    accept_iv_prefixed_mac: bool = False,
) -> DecryptResult:
    """Verify, decrypt and check an encrypted media blob.

    Raises:
        BlobTooShortError: the blob is shorter than the MAC tag.
        InvalidKeyMaterialError: an IV or key has the wrong length.
        CipherError: misaligned ciphertext, bad padding or a cipher failure.
        VerificationError: only with ``strict=True``, on any digest mismatch.

    ``accept_iv_prefixed_mac`` also counts a tag over ``iv || ciphertext`` as
    verified; ``mac_scope`` on the result says which form matched.
    """
    ciphertext, tag = split_blob(blob)
    _check_key_material(keys)

    enc_digest_verified: bool | None = None
    if expected.file_enc_sha256 is not None:
        enc_digest_verified = constant_time_equal(sha256(blob), expected.file_enc_sha256)
        if strict and not enc_digest_verified:
            raise EncryptedDigestMismatchError("encrypted blob does not match fileEncSha256")

    mac_scope = verify_mac(ciphertext, tag, keys, accept_iv_prefixed_mac=accept_iv_prefixed_mac)
    if strict and mac_scope is None:
        raise IntegrityMismatchError("media MAC does not match")

    plaintext = decrypt_ciphertext(ciphertext, keys)

    content_verified = constant_time_equal(sha256(plaintext), expected.file_sha256)
    if strict and not content_verified:
        raise ContentMismatchError("decrypted media does not match fileSha256")

    return DecryptResult(
        plaintext=plaintext,
        integrity_verified=mac_scope is not None,
        content_verified=content_verified,
        enc_digest_verified=enc_digest_verified,
        mac_scope=mac_scope,
    )
