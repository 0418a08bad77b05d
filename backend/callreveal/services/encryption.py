"""Field-level encryption service for the reveal record.

Each sensitive field is encrypted on its own with AES-256-GCM and stored as
``base64(nonce):base64(ciphertext+tag)``. Encrypting field by field lets
the reveal service decrypt only what a projection needs and rewrite a
single field (e.g. the missionary name) without touching the others.
"""

from __future__ import annotations

from collections.abc import Mapping

from cryptography.exceptions import InvalidTag

from callreveal.utils.crypto import (
    NONCE_LENGTH,
    aes_gcm_decrypt,
    aes_gcm_encrypt,
    b64decode,
    b64encode,
    pad_key,
)

SENSITIVE_FIELDS: tuple[str, ...] = (
    "missionary_name",
    "missionary_address",
    "mission_name",
    "language",
    "training_center",
    "entry_date",
)


class DecryptionError(Exception):
    """Raised when a blob is malformed or fails authentication."""


def encrypt_field(key: bytes, plaintext: str) -> str:
    """Encrypt one string field into an ``iv:ciphertext`` blob."""
    nonce, ciphertext = aes_gcm_encrypt(key, plaintext.encode("utf-8"))
    return f"{b64encode(nonce)}:{b64encode(ciphertext)}"


def decrypt_field(key: bytes, blob: str) -> str:
    """Decrypt a blob produced by encrypt_field.

    Raises DecryptionError on a wrong segment count, invalid base64, a
    nonce of the wrong length, or a tag that does not verify.
    """
    nonce_b64, sep, ciphertext_b64 = blob.partition(":")
    if not sep or ":" in ciphertext_b64:
        raise DecryptionError("Malformed blob: expected exactly two segments")
    try:
        nonce = b64decode(nonce_b64)
        ciphertext = b64decode(ciphertext_b64)
    except ValueError as exc:
        raise DecryptionError(f"Malformed blob: {exc}") from exc
    if len(nonce) != NONCE_LENGTH:
        raise DecryptionError(
            f"Malformed blob: nonce is {len(nonce)} bytes, expected {NONCE_LENGTH}"
        )
    try:
        plaintext = aes_gcm_decrypt(key, nonce, ciphertext)
    except InvalidTag as exc:
        raise DecryptionError("Authentication tag did not verify") from exc
    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecryptionError("Decrypted payload is not valid UTF-8") from exc


class FieldCipher:
    """Encrypts and decrypts the reveal record's sensitive fields.

    The raw key material is fitted to a 256-bit key by padding/truncation
    (see utils.crypto.pad_key), so any string, including an empty one,
    yields a usable cipher.
    """

    __slots__ = ("_key",)

    def __init__(self, raw_key: str) -> None:
        self._key = pad_key(raw_key)

    def encrypt(self, plaintext: str) -> str:
        return encrypt_field(self._key, plaintext)

    def decrypt(self, blob: str) -> str:
        return decrypt_field(self._key, blob)

    def encrypt_record(self, fields: Mapping[str, str]) -> dict[str, str]:
        """Encrypt every field in SENSITIVE_FIELDS independently.

        Raises KeyError if a sensitive field is missing or an unknown field
        is supplied.
        """
        _check_field_names(fields)
        return {name: self.encrypt(fields[name]) for name in SENSITIVE_FIELDS}

    def decrypt_record(self, fields: Mapping[str, str]) -> dict[str, str]:
        """Decrypt every field in SENSITIVE_FIELDS independently.

        A single corrupt field raises DecryptionError for the whole call;
        no field is ever returned as undecrypted text.
        """
        _check_field_names(fields)
        return {name: self.decrypt(fields[name]) for name in SENSITIVE_FIELDS}


def _check_field_names(fields: Mapping[str, str]) -> None:
    missing = [name for name in SENSITIVE_FIELDS if name not in fields]
    unknown = sorted(set(fields) - set(SENSITIVE_FIELDS))
    if missing or unknown:
        raise KeyError(f"Bad sensitive field set (missing={missing}, unknown={unknown})")
