"""Key-value persistence backends.

Values are JSON-compatible structures. Two backends are provided:
- JsonFileStore: one JSON file per key with atomic writes and a backup
- MemoryStore: process-local, for tests and ephemeral sessions
"""

from __future__ import annotations

import contextlib
import copy
import json
import os
import shutil
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from doc_agent.core.errors import StorageCorruptedError, StorageError
from doc_agent.core.logging import get_logger

logger = get_logger("storage.backend")


class KeyValueStore(ABC):
    """Durable key-value storage for JSON-compatible values."""

    @abstractmethod
    def load(self, key: str) -> Any | None:
        """Load the value stored under ``key``.

        Returns:
            The decoded value, or None if the key is absent.

        Raises:
            StorageCorruptedError: If the stored data cannot be decoded.
            StorageError: If reading fails.
        """
        ...

    @abstractmethod
    def save(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``, replacing any previous value.

        Raises:
            StorageError: If writing fails.
        """
        ...

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove ``key``. Returns True if it existed."""
        ...


class MemoryStore(KeyValueStore):
    """In-process store. Values are deep-copied on the way in and out."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}

    def load(self, key: str) -> Any | None:
        value = self._data.get(key)
        return copy.deepcopy(value) if value is not None else None

    def save(self, key: str, value: Any) -> None:
        try:
            self._data[key] = json.loads(json.dumps(value))
        except (TypeError, ValueError) as e:
            raise StorageError(f"Failed to serialize {key}: {e}") from e

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None


class JsonFileStore(KeyValueStore):
    """Stores each key as ``<key>.json`` in a directory.

    Writes go to a temp file that is then renamed over the target. The
    previous version is kept as ``<key>.backup`` and used to recover
    from a corrupted file.

    Attributes:
        storage_dir: Directory holding the files.
    """

    FILE_EXTENSION = ".json"
    BACKUP_EXTENSION = ".backup"

    def __init__(self, storage_dir: Path | str | None = None) -> None:
        if storage_dir is None:
            storage_dir = self.get_default_dir()
        elif isinstance(storage_dir, str):
            storage_dir = Path(storage_dir)

        self.storage_dir = storage_dir.expanduser()
        self._ensure_directory()

    def _ensure_directory(self) -> None:
        try:
            self.storage_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create storage directory {self.storage_dir}: {e}") from e
        with contextlib.suppress(OSError):
            self.storage_dir.chmod(0o700)

    @classmethod
    def get_default_dir(cls) -> Path:
        """Default storage directory, honoring XDG_DATA_HOME."""
        xdg_data = os.environ.get("XDG_DATA_HOME")
        base = Path(xdg_data) if xdg_data else Path.home() / ".local" / "share"
        return base / "doc-agent"

    def get_path(self, key: str) -> Path:
        return self.storage_dir / f"{key}{self.FILE_EXTENSION}"

    def get_backup_path(self, key: str) -> Path:
        return self.storage_dir / f"{key}{self.BACKUP_EXTENSION}"

    def load(self, key: str, auto_recover: bool = True) -> Any | None:
        path = self.get_path(key)
        if not path.exists():
            return None

        try:
            with path.open(encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            if auto_recover and self.recover_from_backup(key):
                logger.warning(f"{key} was corrupted, recovered from backup")
                return self.load(key, auto_recover=False)
            raise StorageCorruptedError(f"Stored data corrupted: {key}") from e
        except OSError as e:
            raise StorageError(f"Failed to read {key}: {e}") from e

    def save(self, key: str, value: Any) -> None:
        path = self.get_path(key)
        backup_path = self.get_backup_path(key)

        try:
            data = json.dumps(value, indent=2)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Failed to serialize {key}: {e}") from e

        if path.exists():
            try:
                shutil.copy2(path, backup_path)
            except OSError as e:
                logger.warning(f"Failed to create backup: {e}")

        try:
            fd, temp_path = tempfile.mkstemp(suffix=self.FILE_EXTENSION, dir=self.storage_dir)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(data)
                Path(temp_path).replace(path)
                with contextlib.suppress(OSError):
                    path.chmod(0o600)
            except Exception:
                with contextlib.suppress(OSError):
                    Path(temp_path).unlink()
                raise
        except OSError as e:
            raise StorageError(f"Failed to save {key}: {e}") from e

        logger.debug(f"Saved {key}")

    def delete(self, key: str) -> bool:
        path = self.get_path(key)
        deleted = False

        if path.exists():
            try:
                path.unlink()
                deleted = True
            except OSError as e:
                raise StorageError(f"Failed to delete {key}: {e}") from e

        backup_path = self.get_backup_path(key)
        if backup_path.exists():
            with contextlib.suppress(OSError):
                backup_path.unlink()

        return deleted

    def recover_from_backup(self, key: str) -> bool:
        """Restore ``key`` from its backup file. Returns True on success."""
        backup_path = self.get_backup_path(key)
        if not backup_path.exists():
            return False

        try:
            shutil.copy2(backup_path, self.get_path(key))
            logger.info(f"Recovered {key} from backup")
            return True
        except OSError as e:
            logger.error(f"Failed to recover {key}: {e}")
            return False
