"""
Storage Backends — synchronous key/value persistence.

The store only needs ``get`` / ``set`` / ``remove`` / ``clear``; any object
with those methods can be passed in its place.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol, runtime_checkable

logger = logging.getLogger("riskregister.storage")


class UnreadableValueError(ValueError):
    """A stored value exists but cannot be read back (wrong key, tampering)."""

    def __init__(self, key: str, raw: str) -> None:
        super().__init__(f"Stored value for '{key}' cannot be read")
        self.key = key
        self.raw = raw


@runtime_checkable
class StorageBackend(Protocol):
    def get(self, key: str) -> str | None:
        """Stored value, or None if absent. Raises UnreadableValueError if unreadable."""
        ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...

    def clear(self) -> None: ...


class MemoryStorage:
    """Dict-backed storage; the fallback when nothing persistent is usable."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._store.get(key)

    def set(self, key: str, value: str) -> None:
        self._store[key] = value

    def remove(self, key: str) -> None:
        self._store.pop(key, None)

    def clear(self) -> None:
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)


class FileStorage:
    """
    Key/value pairs kept in a single JSON object file.

    Writes go to a temp file in the same directory and are moved into place,
    so a crash mid-write never leaves a half-written file behind.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)

    def _read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read storage file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.error(f"Storage file {self.path} does not hold a JSON object; ignoring")
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _write_all(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp_name, self.path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get(self, key: str) -> str | None:
        return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def remove(self, key: str) -> None:
        data = self._read_all()
        if key in data:
            del data[key]
            self._write_all(data)

    def clear(self) -> None:
        self._write_all({})

    def is_usable(self) -> bool:
        """True if the file's directory exists (or can be made) and is writable."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError:
            return False
        if self.path.exists():
            return os.access(self.path, os.R_OK | os.W_OK)
        return os.access(self.path.parent, os.W_OK)
