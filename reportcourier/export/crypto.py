"""Decryption of stored Power BI secrets.

Stored values are ``base64(iv || ciphertext)`` where ``iv`` is 12 bytes and
the ciphertext carries its AES-GCM tag. The key is the configured string,
UTF-8 encoded, right-padded with ``"0"`` and truncated to 32 bytes.
"""

from __future__ import annotations

import base64
import binascii

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from reportcourier.logging import get_logger, log_warning

logger = get_logger(__name__)

_KEY_BYTES = 32
_IV_BYTES = 12


def derive_key(key_string: str) -> bytes:
    """Return the 32-byte AES key derived from *key_string*."""
    return key_string.ljust(_KEY_BYTES, "0").encode("utf-8")[:_KEY_BYTES]


def encrypt_secret(plaintext: str, key_string: str, *, iv: bytes) -> str:
    """Encrypt *plaintext* in the stored credential format.

    Only tests and fixtures call this; the service itself only decrypts.
    """
    ciphertext = AESGCM(derive_key(key_string)).encrypt(
        iv, plaintext.encode("utf-8"), None
    )
    return base64.b64encode(iv + ciphertext).decode("ascii")


def decrypt_secret(ciphertext: str | None, key_string: str) -> str:
    """Decrypt a stored credential value.

    Values that do not decode or authenticate are returned unchanged; rows
    written before encryption was enabled hold plain text.

    Parameters
    ----------
    ciphertext
        Stored value; ``None`` and empty strings decrypt to ``""``.
    key_string
        Configured encryption key.

    Returns
    -------
    str
        The plaintext secret.

    """
    if not ciphertext:
        return ""
    try:
        combined = base64.b64decode(ciphertext, validate=True)
        iv, data = combined[:_IV_BYTES], combined[_IV_BYTES:]
        plaintext = AESGCM(derive_key(key_string)).decrypt(iv, data, None)
        return plaintext.decode("utf-8")
    except (binascii.Error, InvalidTag, ValueError):
        log_warning(
            logger, "Credential decryption failed; using stored value as plain text"
        )
        return ciphertext
