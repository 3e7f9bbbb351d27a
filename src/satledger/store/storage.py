"""Key/value persistence backends for the report collection.

Values are JSON text stored under fixed keys. The file backend writes each key to
`<directory>/<key>.json` atomically (temp file + fsync + rename).
"""

from __future__ import annotations

import os
import uuid
from pathlib import Path
from typing import Protocol

import structlog

logger = structlog.get_logger()


class StorageBackend(Protocol):
    """Protocol for durable string storage keyed by name."""

    def get(self, key: str) -> str | None:
        """Return the stored value, or None when the key is absent."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        ...

    def delete(self, key: str) -> None:
        """Remove a key (no-op when absent)."""
        ...


class InMemoryStorage:
    """Dictionary-backed storage (tests, ephemeral sessions)."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)


class JsonFileStorage:
    """One JSON file per key inside a directory."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def _path_for_key(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.directory / f"{key}.json"

    def get(self, key: str) -> str | None:
        path = self._path_for_key(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        path = self._path_for_key(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(f"{path.suffix}.tmp.{uuid.uuid4().hex}")
        try:
            with tmp_path.open("w", encoding="utf-8") as f:
                f.write(value)
                f.flush()
                os.fsync(f.fileno())
            tmp_path.replace(path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise
        logger.debug("Storage write", key=key, bytes=len(value))

    def delete(self, key: str) -> None:
        self._path_for_key(key).unlink(missing_ok=True)
