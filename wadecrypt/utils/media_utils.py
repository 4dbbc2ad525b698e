"""Media key derivation and encryption helpers."""

from __future__ import annotations

from wadecrypt.core.entities import DerivedKeySet, EncryptedMedia, MediaType
from wadecrypt.defaults.config import (
    CIPHER_KEY_SIZE,
    IV_SIZE,
    MAC_KEY_SIZE,
    MAC_TAG_SIZE,
    MEDIA_KEY_EXPANSION_SIZE,
    MEDIA_KEY_INFO_TEMPLATE,
    MEDIA_KEY_SIZE,
)
from wadecrypt.utils.crypto import aes_cbc_encrypt, generate_random_bytes, hkdf, hmac_sha256, sha256


def media_key_info(media_type: MediaType | str) -> bytes:
    label = MediaType.parse(media_type).label
    return MEDIA_KEY_INFO_TEMPLATE.format(label=label).encode("ascii")


def derive_media_keys(media_key: bytes, media_type: MediaType | str) -> DerivedKeySet:
    """Expand a media key into the IV, cipher key and MAC key for one media item."""
    info = media_key_info(media_type)
    expanded = hkdf(media_key, MEDIA_KEY_EXPANSION_SIZE, b"", info)
    mac_end = IV_SIZE + CIPHER_KEY_SIZE + MAC_KEY_SIZE
    return DerivedKeySet(
        iv=expanded[:IV_SIZE],
        cipher_key=expanded[IV_SIZE : IV_SIZE + CIPHER_KEY_SIZE],
        mac_key=expanded[IV_SIZE + CIPHER_KEY_SIZE : mac_end],
        ref_key=expanded[mac_end:],
    )


def generate_media_key() -> bytes:
    return generate_random_bytes(MEDIA_KEY_SIZE)


def encrypt_media(
    plaintext: bytes,
    media_type: MediaType | str,
    media_key: bytes | None = None,
) -> EncryptedMedia:
    """Encrypt a payload the way WhatsApp clients upload it.

    The 10-byte tag covers ``iv || ciphertext``.
    """
    kind = MediaType.parse(media_type)
    key = media_key if media_key is not None else generate_media_key()
    keys = derive_media_keys(key, kind)

    enc_media = aes_cbc_encrypt(plaintext, keys.cipher_key, keys.iv)
    mac = hmac_sha256(keys.mac_key, keys.iv + enc_media)[:MAC_TAG_SIZE]
    blob = enc_media + mac

    return EncryptedMedia(
        blob=blob,
        media_key=key,
        media_type=kind,
        file_sha256=sha256(plaintext),
        file_enc_sha256=sha256(blob),
        file_length=len(plaintext),
    )
