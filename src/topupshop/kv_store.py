"""Key-value storage for topupshop."""

import fcntl
import json
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterable, Iterator

from .errors import StorageError
from .log import get_logger

log = get_logger("kv_store")


class KeyValueStore:
    """Persistent mapping from string keys to JSON values.

    The whole map lives in one JSON document. Every operation takes an
    exclusive file lock, so writes from several processes never interleave,
    but there is no versioning: the last ``set`` on a key wins.
    """

    def __init__(self, path: Path):
        """
        Initialize KeyValueStore.

        Args:
            path: JSON file backing the store. Created on first write.
        """
        self.path = Path(path)
        self.lock_path = self.path.with_name(f".{self.path.name}.lock")

    def _ensure_dir(self) -> None:
        """Ensure the store directory exists."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def _lock(self) -> Iterator[None]:
        """Hold an exclusive lock on the store for the duration of an operation."""
        try:
            self._ensure_dir()
            lock_file = open(self.lock_path, "w")
        except OSError as e:
            raise StorageError("lock", str(e)) from e
        with lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def _load_data(self) -> dict[str, Any]:
        """Load the full map from disk."""
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError("read", str(e)) from e
        if not isinstance(data, dict):
            raise StorageError("read", f"{self.path} does not hold a JSON object")
        return data

    def _save_data(self, data: dict[str, Any]) -> None:
        """Save the full map to disk atomically."""
        try:
            payload = json.dumps(data, indent=2, allow_nan=False)
        except (TypeError, ValueError) as e:
            raise StorageError("write", f"value is not JSON-serializable: {e}") from e

        fd, temp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".kv_", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.write("\n")
            os.replace(temp_path, self.path)
        except OSError as e:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise StorageError("write", str(e)) from e

    def get(self, key: str) -> Any | None:
        """Return the value stored at key, or None if absent."""
        with self._lock():
            return self._load_data().get(key)

    def set(self, key: str, value: Any) -> None:
        """Insert or replace the value at key."""
        with self._lock():
            data = self._load_data()
            data[key] = value
            self._save_data(data)
        log.debug("set {}", key)

    def get_by_prefix(self, prefix: str) -> list[Any]:
        """Return the values of every key starting with prefix, in no particular order."""
        with self._lock():
            data = self._load_data()
        return [value for key, value in data.items() if key.startswith(prefix)]

    def keys_with_prefix(self, prefix: str) -> list[str]:
        """Return every key starting with prefix."""
        with self._lock():
            data = self._load_data()
        return [key for key in data if key.startswith(prefix)]

    def delete_many(self, keys: Iterable[str]) -> int:
        """
        Remove the given keys in one write.

        Returns:
            Number of keys that existed and were removed.
        """
        with self._lock():
            data = self._load_data()
            count = 0
            for key in set(keys):
                if key in data:
                    del data[key]
                    count += 1
            if count:
                self._save_data(data)
        log.debug("deleted {} key(s)", count)
        return count
