from typing import Optional


class WADecryptError(Exception):
    """Base exception for wadecrypt."""
    pass


class MediaInputError(WADecryptError):
    """Raised when the inputs to a decrypt call have the wrong shape."""
    pass


class UnsupportedMediaTypeError(MediaInputError, ValueError):
    """Raised when a media type has no key-derivation label."""
    def __init__(self, media_type: object):
        super().__init__(f"unsupported media type: {media_type!r}")
        self.media_type = media_type


class BlobTooShortError(MediaInputError):
    """Raised when an encrypted blob cannot even hold the MAC tag."""
    def __init__(self, length: int, minimum: int):
        super().__init__(f"encrypted blob is {length} bytes, need at least {minimum}")
        self.length = length
        self.minimum = minimum


class InvalidKeyMaterialError(MediaInputError):
    """Raised when an IV or key of the wrong length reaches the cipher."""
    def __init__(self, name: str, actual: int, expected: int):
        super().__init__(f"{name} must be {expected} bytes, got {actual}")
        self.name = name
        self.actual = actual
        self.expected = expected


class CipherError(WADecryptError):
    """Raised when well-shaped ciphertext cannot be decrypted with the given keys."""
    pass


class VerificationError(WADecryptError):
    """Raised by strict-mode decryption when a digest or MAC does not match."""
    pass


class IntegrityMismatchError(VerificationError):
    pass


class ContentMismatchError(VerificationError):
    pass


class EncryptedDigestMismatchError(VerificationError):
    pass


class MediaFetchError(WADecryptError):
    """Raised when the encrypted blob cannot be retrieved."""
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
