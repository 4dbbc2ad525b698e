"""Decryption of WhatsApp end-to-end encrypted media."""

__version__ = "0.1.0"

__all__ = [
    "MediaType",
    "DerivedKeySet",
    "ExpectedDigests",
    "DecryptResult",
    "EncryptedMedia",
    "derive_media_keys",
    "decrypt_media",
    "encrypt_media",
    "WADecryptError",
    "MediaInputError",
    "BlobTooShortError",
    "UnsupportedMediaTypeError",
    "InvalidKeyMaterialError",
    "CipherError",
    "VerificationError",
    "MediaManager",
]


def __getattr__(name: str) -> object:
    """Lazy exports to avoid importing the HTTP client at package import time."""
    if name in {"MediaType", "DerivedKeySet", "ExpectedDigests", "DecryptResult", "EncryptedMedia"}:
        from .core import entities

        return getattr(entities, name)

    if name in {"derive_media_keys", "encrypt_media"}:
        from .utils import media_utils

        return getattr(media_utils, name)

    if name == "decrypt_media":
        from .utils.media_decrypt import decrypt_media

        return decrypt_media

    if name in {
        "WADecryptError",
        "MediaInputError",
        "BlobTooShortError",
        "UnsupportedMediaTypeError",
        "InvalidKeyMaterialError",
        "CipherError",
        "VerificationError",
    }:
        from .core import errors

        return getattr(errors, name)

    if name == "MediaManager":
        from .client.media import MediaManager

        return MediaManager

    raise AttributeError(f"module 'wadecrypt' has no attribute {name!r}")
