"""
Encrypted Storage — AES-256-GCM wrapper around another storage backend.

Each value is encrypted with a fresh 12-byte nonce; the stored text is
urlsafe base64 of ``nonce || ciphertext``. Keys are never stored encrypted.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
import secrets
from pathlib import Path

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from riskregister.storage.backends import StorageBackend, UnreadableValueError

logger = logging.getLogger("riskregister.storage.encrypted")

NONCE_SIZE = 12
KEY_SIZE = 32


def generate_key() -> str:
    """New random AES-256 key as urlsafe base64 text."""
    return base64.urlsafe_b64encode(secrets.token_bytes(KEY_SIZE)).decode("ascii")


def decode_key(key: str) -> bytes:
    """Decode a urlsafe-base64 key; raises ValueError if it is not 32 bytes."""
    try:
        raw = base64.urlsafe_b64decode(key.encode("ascii"))
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ValueError(f"Encryption key is not valid base64: {e}") from e
    if len(raw) != KEY_SIZE:
        raise ValueError(f"Encryption key must be {KEY_SIZE} bytes, got {len(raw)}")
    return raw


def load_or_create_key(key_path: str | os.PathLike[str]) -> str:
    """Read the key file, or generate one and save it with owner-only permissions."""
    path = Path(key_path)
    if path.exists():
        key = path.read_text(encoding="utf-8").strip()
        decode_key(key)
        return key
    key = generate_key()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(key, encoding="utf-8")
    os.chmod(path, 0o600)
    logger.info(f"Generated new storage encryption key at {path}")
    return key


class EncryptedStorage:
    """
    Encrypts values on ``set`` and decrypts them on ``get``.

    A value that does not decrypt under the current key raises
    UnreadableValueError carrying the stored ciphertext.
    """

    def __init__(self, inner: StorageBackend, key: str) -> None:
        self.inner = inner
        self._aead = AESGCM(decode_key(key))

    def get(self, key: str) -> str | None:
        token = self.inner.get(key)
        if token is None:
            return None
        try:
            blob = base64.urlsafe_b64decode(token.encode("ascii"))
            nonce, ciphertext = blob[:NONCE_SIZE], blob[NONCE_SIZE:]
            return self._aead.decrypt(nonce, ciphertext, key.encode("utf-8")).decode("utf-8")
        except (InvalidTag, binascii.Error, UnicodeError, ValueError) as e:
            logger.error(f"Could not decrypt stored value for '{key}'")
            raise UnreadableValueError(key, token) from e

    def set(self, key: str, value: str) -> None:
        nonce = secrets.token_bytes(NONCE_SIZE)
        ciphertext = self._aead.encrypt(nonce, value.encode("utf-8"), key.encode("utf-8"))
        self.inner.set(key, base64.urlsafe_b64encode(nonce + ciphertext).decode("ascii"))

    def remove(self, key: str) -> None:
        self.inner.remove(key)

    def clear(self) -> None:
        self.inner.clear()
