"""Low-level cryptographic primitives for callreveal.

Pure functions with no domain knowledge.
"""

from __future__ import annotations

import base64
import binascii
import os

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

KEY_LENGTH = 32  # AES-256
NONCE_LENGTH = 12


def pad_key(raw_key: str) -> bytes:
    """Fit raw key material to a 256-bit AES key.

    Pads with ASCII "0" and truncates to 32 characters. Deterministic and
    never raises, including for an empty string. This is not a KDF; see
    DESIGN.md for why it is kept.
    """
    key = raw_key.ljust(KEY_LENGTH, "0")[:KEY_LENGTH].encode("utf-8")
    # Multi-byte characters can push the encoded key past 32 bytes
    return key[:KEY_LENGTH]


def aes_gcm_encrypt(key: bytes, plaintext: bytes, aad: bytes | None = None) -> tuple[bytes, bytes]:
    """Encrypt plaintext with AES-256-GCM under a fresh random nonce.

    Returns (nonce, ciphertext+tag).
    """
    nonce = os.urandom(NONCE_LENGTH)
    aesgcm = AESGCM(key)
    return nonce, aesgcm.encrypt(nonce, plaintext, aad)


def aes_gcm_decrypt(
    key: bytes, nonce: bytes, ciphertext: bytes, aad: bytes | None = None
) -> bytes:
    """Decrypt data produced by aes_gcm_encrypt.

    Raises cryptography.exceptions.InvalidTag on tampered data or wrong key.
    """
    aesgcm = AESGCM(key)
    return aesgcm.decrypt(nonce, ciphertext, aad)


def b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def b64decode(data: str) -> bytes:
    """Strict standard base64 decode. Raises ValueError on invalid input."""
    try:
        return base64.b64decode(data.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise ValueError(f"Invalid base64: {exc}") from exc
