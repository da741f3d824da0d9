"""
Storage Factory — builds the configured backend with in-memory fallback.
"""

from __future__ import annotations

import logging

from riskregister.config import Settings
from riskregister.storage.backends import FileStorage, MemoryStorage, StorageBackend
from riskregister.storage.encrypted import EncryptedStorage, load_or_create_key

logger = logging.getLogger("riskregister.storage")


def create_storage(settings: Settings) -> StorageBackend:
    """
    Build the storage backend named by ``settings.storage_backend``.

    Falls back to MemoryStorage when the file location cannot be used.
    """
    backend = settings.storage_backend
    if backend == "memory":
        return MemoryStorage()
    if backend not in ("file", "encrypted"):
        raise ValueError(f"Unknown storage backend: {backend}")

    file_storage = FileStorage(settings.storage_path)
    if not file_storage.is_usable():
        logger.warning(
            f"Storage path {settings.storage_path} is not writable; "
            f"falling back to in-memory storage"
        )
        return MemoryStorage()

    if backend == "file":
        return file_storage

    try:
        key = settings.encryption_key or load_or_create_key(settings.encryption_key_path)
    except OSError as e:
        logger.warning(f"Encryption key unavailable ({e}); using unencrypted file storage")
        return file_storage
    return EncryptedStorage(file_storage, key)
