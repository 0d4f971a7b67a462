# tweet_harvest/storage/result_cache.py

"""Expiring, size-bounded cache of collection results keyed by account."""

import json
import logging
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from tweet_harvest.config.settings import Settings
from tweet_harvest.models.collection import CollectionResult
from tweet_harvest.models.errors import (
    StorageCorruptionError,
    StorageError,
    StorageQuotaExceededError,
)
from tweet_harvest.models.post import Post
from tweet_harvest.storage.eviction import EvictionPolicy
from tweet_harvest.storage.session_storage import (
    KeyValueStorage,
    MemoryStorage,
    byte_size,
)

logger = logging.getLogger("tweet_harvest.cache")

# Room left for the expiry key when the storage quota is the limit
_EXPIRY_RESERVE_BYTES = 64


def normalize_key(key: str) -> str:
    """Account keys are case-insensitive and ignore surrounding blanks."""
    return key.strip().lower()


@dataclass
class CacheEntry:
    """A cached collection plus the fields eviction scores it by."""

    key: str
    result: CollectionResult
    collection_time: float
    record_count: int
    time_span_days: int
    total_engagement: int

    @classmethod
    def from_result(cls, key: str, result: CollectionResult) -> "CacheEntry":
        return cls(
            key=key,
            result=result,
            collection_time=result.metadata.collection_time.timestamp(),
            record_count=len(result.records),
            time_span_days=result.metadata.time_span_days,
            total_engagement=result.stats.total_engagement,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "r": self.result.to_dict(),
            "ct": self.collection_time,
            "rc": self.record_count,
            "ts": self.time_span_days,
            "te": self.total_engagement,
        }

    @classmethod
    def from_dict(cls, key: str, data: dict[str, Any]) -> "CacheEntry":
        return cls(
            key=key,
            result=CollectionResult.from_dict(data["r"]),
            collection_time=float(data["ct"]),
            record_count=int(data["rc"]),
            time_span_days=int(data["ts"]),
            total_engagement=int(data["te"]),
        )


@dataclass
class CacheSnapshot:
    """Everything persisted by the cache at one point in time."""

    entries: dict[str, CacheEntry] = field(
        default_factory=lambda: dict[str, CacheEntry]()
    )
    total_entries: int = 0
    total_records: int = 0
    last_updated: float = 0.0
    expiry: float = 0.0
    version: str = Settings.CACHE_VERSION
    strategy: str = Settings.COLLECTION_STRATEGY

    def recount(self) -> None:
        self.total_entries = len(self.entries)
        self.total_records = sum(
            e.record_count for e in self.entries.values()
        )


@dataclass(frozen=True)
class EntrySummary:
    """Per-account line of :class:`CacheStats`."""

    key: str
    record_count: int
    time_span_days: int
    collection_time: datetime


@dataclass(frozen=True)
class CacheStats:
    """Cache health overview."""

    is_valid: bool
    total_entries: int = 0
    total_records: int = 0
    size_bytes: int = 0
    last_updated: datetime | None = None
    entries: tuple[EntrySummary, ...] = ()


class ResultCache:
    """Stores one :class:`CollectionResult` per account.

    The whole cache is one serialized payload plus an expiry timestamp
    in a :class:`KeyValueStorage`. Reads after expiry, or of a payload
    that fails to decode, clear the storage and report no data. Writes
    evict the lowest-scoring entries first when the payload would exceed
    ``max_storage_bytes``; read-modify-write runs under one lock so
    concurrent writers never commit over budget.
    """

    def __init__(
        self,
        storage: KeyValueStorage | None = None,
        eviction: EvictionPolicy | None = None,
        max_storage_bytes: int = Settings.MAX_STORAGE_BYTES,
        cache_duration: float = Settings.CACHE_DURATION,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.storage = storage or MemoryStorage()
        self._clock = clock or time.time
        self.eviction = eviction or EvictionPolicy(clock=self._clock)
        self.max_storage_bytes = max_storage_bytes
        self.cache_duration = cache_duration
        self._lock = threading.RLock()

    # ── Encoding ─────────────────────────────────────────

    @staticmethod
    def _encode(snapshot: CacheSnapshot) -> str:
        payload = {
            "a": {k: e.to_dict() for k, e in snapshot.entries.items()},
            "g": {
                "l": snapshot.last_updated,
                "v": snapshot.version,
                "ta": snapshot.total_entries,
                "tt": snapshot.total_records,
                "s": snapshot.strategy,
            },
        }
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)

    @staticmethod
    def _decode(raw: str, expiry: float) -> CacheSnapshot:
        try:
            payload = json.loads(raw)
            meta = payload["g"]
            snapshot = CacheSnapshot(
                entries={
                    k: CacheEntry.from_dict(k, v)
                    for k, v in payload["a"].items()
                },
                total_entries=int(meta["ta"]),
                total_records=int(meta["tt"]),
                last_updated=float(meta["l"]),
                expiry=expiry,
                version=meta["v"],
                strategy=meta["s"],
            )
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            raise StorageCorruptionError(
                f"Cache payload cannot be decoded: {exc}"
            ) from exc
        return snapshot

    def _size_of(self, entries: Mapping[str, CacheEntry]) -> int:
        snapshot = CacheSnapshot(
            entries=dict(entries), last_updated=self._clock()
        )
        snapshot.recount()
        return byte_size(self._encode(snapshot))

    # ── Reads ────────────────────────────────────────────

    def _load(self) -> CacheSnapshot | None:
        """Read the stored snapshot, clearing on expiry or corruption."""
        with self._lock:
            try:
                raw_expiry = self.storage.read(Settings.CACHE_EXPIRY_KEY)
                raw = self.storage.read(Settings.CACHE_KEY)
                if raw_expiry is None and raw is None:
                    return None
                expiry = float(raw_expiry) if raw_expiry else 0.0
                if self._clock() > expiry:
                    logger.info("Cache expired, clearing")
                    self.clear()
                    return None
                if raw is None:
                    return None
                snapshot = self._decode(raw, expiry)
            except (StorageError, ValueError) as exc:
                logger.error(
                    "Failed to read cache, clearing: %s", exc, exc_info=True
                )
                self.clear()
                return None
            logger.debug(
                "Retrieved cache with %d accounts, %d posts",
                snapshot.total_entries,
                snapshot.total_records,
            )
            return snapshot

    def get_entry(self, key: str) -> CacheEntry | None:
        snapshot = self._load()
        if snapshot is None:
            return None
        return snapshot.entries.get(normalize_key(key))

    def get(self, key: str) -> CollectionResult | None:
        """Cached result for ``key`` or ``None`` when absent or expired."""
        entry = self.get_entry(key)
        return entry.result if entry else None

    def get_all(self) -> CacheSnapshot | None:
        """The full stored snapshot or ``None`` when empty or expired."""
        return self._load()

    def records_for(self, key: str) -> list[Post]:
        result = self.get(key)
        return list(result.records) if result else []

    def get_all_records(self) -> list[Post]:
        """Every cached post across all accounts."""
        snapshot = self._load()
        if snapshot is None:
            return []
        return [
            post
            for entry in snapshot.entries.values()
            for post in entry.result.records
        ]

    def has_recent(
        self,
        key: str,
        max_age_hours: float = Settings.RECENT_DATA_MAX_AGE_HOURS,
    ) -> bool:
        """True if ``key`` was collected less than ``max_age_hours`` ago."""
        entry = self.get_entry(key)
        if entry is None:
            return False
        age = self._clock() - entry.collection_time
        return age < max_age_hours * 60 * 60

    def is_valid(self) -> bool:
        try:
            raw_expiry = self.storage.read(Settings.CACHE_EXPIRY_KEY)
            return bool(raw_expiry) and self._clock() <= float(raw_expiry)
        except (StorageError, ValueError):
            return False

    def stats(self) -> CacheStats:
        snapshot = self._load()
        if snapshot is None:
            return CacheStats(is_valid=False)
        try:
            raw = self.storage.read(Settings.CACHE_KEY) or ""
        except StorageError:
            raw = ""
        return CacheStats(
            is_valid=True,
            total_entries=snapshot.total_entries,
            total_records=snapshot.total_records,
            size_bytes=byte_size(raw),
            last_updated=datetime.fromtimestamp(
                snapshot.last_updated, tz=timezone.utc
            ),
            entries=tuple(
                EntrySummary(
                    key=key,
                    record_count=entry.record_count,
                    time_span_days=entry.time_span_days,
                    collection_time=datetime.fromtimestamp(
                        entry.collection_time, tz=timezone.utc
                    ),
                )
                for key, entry in snapshot.entries.items()
            ),
        )

    # ── Writes ───────────────────────────────────────────

    def _commit(self, snapshot: CacheSnapshot) -> int:
        snapshot.recount()
        snapshot.last_updated = self._clock()
        snapshot.expiry = snapshot.last_updated + self.cache_duration
        encoded = self._encode(snapshot)
        self.storage.write(Settings.CACHE_KEY, encoded)
        self.storage.write(
            Settings.CACHE_EXPIRY_KEY, repr(snapshot.expiry)
        )
        return byte_size(encoded)

    def put(self, key: str, result: CollectionResult) -> bool:
        """Upsert ``result`` under ``key``; returns False if it could not be stored."""
        norm = normalize_key(key)
        with self._lock:
            snapshot = self._load() or CacheSnapshot()
            snapshot.entries[norm] = CacheEntry.from_result(norm, result)
            snapshot.recount()
            snapshot.last_updated = self._clock()

            size = byte_size(self._encode(snapshot))
            if size > self.max_storage_bytes:
                logger.warning(
                    "Cache payload %d bytes exceeds %d, evicting",
                    size,
                    self.max_storage_bytes,
                )
                snapshot.entries = self.eviction.evict(
                    snapshot.entries, self._size_of, self.max_storage_bytes
                )

            try:
                try:
                    size = self._commit(snapshot)
                except StorageQuotaExceededError as exc:
                    quota = self.storage.quota_bytes or self.max_storage_bytes
                    logger.warning("%s, evicting and retrying", exc)
                    snapshot.entries = self.eviction.evict(
                        snapshot.entries,
                        self._size_of,
                        quota - _EXPIRY_RESERVE_BYTES,
                    )
                    size = self._commit(snapshot)
            except StorageError as exc:
                logger.error(
                    "Failed to cache @%s, clearing: %s",
                    norm,
                    exc,
                    exc_info=True,
                )
                self.clear()
                return False

            logger.info(
                "Cached @%s: %d posts, %d days span; "
                "%d accounts, %d posts, %d KB total",
                norm,
                len(result.records),
                result.metadata.time_span_days,
                snapshot.total_entries,
                snapshot.total_records,
                round(size / 1024),
            )
            return norm in snapshot.entries

    def clear(self) -> None:
        """Remove all persisted state; storage errors are logged only."""
        with self._lock:
            try:
                self.storage.remove(Settings.CACHE_KEY)
                self.storage.remove(Settings.CACHE_EXPIRY_KEY)
                logger.info("Cache cleared")
            except StorageError as exc:
                logger.error("Failed to clear cache: %s", exc, exc_info=True)
