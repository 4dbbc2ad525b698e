"""Crypto primitives for media encryption, backed by `cryptography` and hashlib."""
from __future__ import annotations

import hashlib
import hmac
import os

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.padding import PKCS7

HASH_LEN = hashlib.sha256().digest_size
HKDF_MAX_LENGTH = 255 * HASH_LEN


def hmac_sha256(key: bytes, data: bytes) -> bytes:
    """HMAC-SHA256."""
    return hmac.new(key, data, hashlib.sha256).digest()


def sha256(data: bytes) -> bytes:
    """SHA256 digest."""
    return hashlib.sha256(data).digest()


def constant_time_equal(a: bytes, b: bytes) -> bool:
    """Timing-safe comparison; inputs of different lengths simply compare unequal."""
    return hmac.compare_digest(a, b)


def hkdf_extract(salt: bytes, input_key: bytes) -> bytes:
    return hmac_sha256(salt, input_key)


def hkdf_expand(prk: bytes, info: bytes, length: int) -> bytes:
    if length < 0 or length > HKDF_MAX_LENGTH:
        raise ValueError(f"hkdf length must be between 0 and {HKDF_MAX_LENGTH}, got {length}")
    okm = bytearray()
    block = b""
    counter = 1
    while len(okm) < length:
        block = hmac_sha256(prk, block + info + bytes([counter]))
        okm += block
        counter += 1
    return bytes(okm[:length])


def hkdf(input_key: bytes, length: int, salt: bytes = b"", info: bytes = b"") -> bytes:
    """HKDF-SHA256 (RFC 5869). An empty salt is used as-is."""
    return hkdf_expand(hkdf_extract(salt, input_key), info, length)


def aes_cbc_encrypt(plaintext: bytes, key: bytes, iv: bytes) -> bytes:
    """AES-CBC encryption with PKCS#7 padding."""
    algorithm = algorithms.AES(key)
    padder = PKCS7(algorithm.block_size).padder()
    padded = padder.update(plaintext) + padder.finalize()
    encryptor = Cipher(algorithm, modes.CBC(iv)).encryptor()
    return encryptor.update(padded) + encryptor.finalize()


def aes_cbc_decrypt(ciphertext: bytes, key: bytes, iv: bytes) -> bytes:
    """AES-CBC decryption with PKCS#7 unpadding.

    Raises ``ValueError`` for misaligned input, bad padding or bad key sizes.
    """
    algorithm = algorithms.AES(key)
    decryptor = Cipher(algorithm, modes.CBC(iv)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()
    unpadder = PKCS7(algorithm.block_size).unpadder()
    return unpadder.update(padded) + unpadder.finalize()


def generate_random_bytes(length: int = 32) -> bytes:
    """Generates random bytes."""
    return os.urandom(length)
