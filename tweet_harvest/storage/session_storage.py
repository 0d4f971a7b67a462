# tweet_harvest/storage/session_storage.py

"""Size-bounded string key-value stores backing the result cache."""

import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path

from tweet_harvest.config.settings import Settings
from tweet_harvest.models.errors import (
    StorageError,
    StorageQuotaExceededError,
)

logger = logging.getLogger("tweet_harvest.storage")


def byte_size(value: str) -> int:
    """UTF-8 encoded size of ``value``."""
    return len(value.encode("utf-8"))


class KeyValueStorage(ABC):
    """String-to-string storage with an optional total byte quota."""

    def __init__(self, quota_bytes: int | None = None) -> None:
        self.quota_bytes = quota_bytes

    @abstractmethod
    def read(self, key: str) -> str | None:
        """Return the stored value or ``None``."""
        ...

    @abstractmethod
    def write(self, key: str, value: str) -> None:
        """Store ``value``; raises ``StorageQuotaExceededError`` over quota."""
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete ``key``; missing keys are ignored."""
        ...

    @abstractmethod
    def used_bytes(self) -> int:
        """Total bytes currently stored."""
        ...

    def _check_quota(self, key: str, value: str) -> None:
        if self.quota_bytes is None:
            return
        current = self.read(key)
        projected = (
            self.used_bytes()
            - (byte_size(current) if current is not None else 0)
            + byte_size(value)
        )
        if projected > self.quota_bytes:
            raise StorageQuotaExceededError(
                f"Writing '{key}' needs {projected} bytes, "
                f"quota is {self.quota_bytes}"
            )


class MemoryStorage(KeyValueStorage):
    """Process-lifetime storage, the equivalent of a browser session store."""

    def __init__(self, quota_bytes: int | None = None) -> None:
        super().__init__(quota_bytes)
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def read(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def write(self, key: str, value: str) -> None:
        self._check_quota(key, value)
        with self._lock:
            self._data[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def used_bytes(self) -> int:
        with self._lock:
            return sum(byte_size(v) for v in self._data.values())


class FileStorage(KeyValueStorage):
    """One UTF-8 file per key inside ``directory``.

    Survives restarts, which lets the CLI reuse collections between runs
    until the cache expiry passes.
    """

    _SUFFIX = ".json"

    def __init__(
        self,
        directory: Path | None = None,
        quota_bytes: int | None = None,
    ) -> None:
        super().__init__(quota_bytes)
        self.directory: Path = directory or Settings.CACHE_DIR
        self.directory.mkdir(parents=True, exist_ok=True)
        logger.debug("FileStorage initialised, directory=%s", self.directory)

    def _path(self, key: str) -> Path:
        safe = "".join(c if c.isalnum() or c in "-_" else "_" for c in key)
        return self.directory / f"{safe}{self._SUFFIX}"

    def read(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise StorageError(f"Cannot read '{key}': {exc}") from exc

    def write(self, key: str, value: str) -> None:
        self._check_quota(key, value)
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        try:
            tmp.write_text(value, encoding="utf-8")
            tmp.replace(path)
        except OSError as exc:
            raise StorageError(f"Cannot write '{key}': {exc}") from exc

    def remove(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(f"Cannot remove '{key}': {exc}") from exc

    def used_bytes(self) -> int:
        return sum(
            p.stat().st_size
            for p in self.directory.glob(f"*{self._SUFFIX}")
        )
