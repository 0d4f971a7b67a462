# tweet_harvest/storage/eviction.py

"""Score-based eviction of cached collections."""

import logging
import math
import time
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING

from tweet_harvest.config.settings import Settings

if TYPE_CHECKING:
    from tweet_harvest.storage.result_cache import CacheEntry

logger = logging.getLogger("tweet_harvest.cache")

_SECONDS_PER_HOUR = 60 * 60


class EvictionPolicy:
    """Keeps the most valuable fraction of cache entries.

    An entry's score is the sum of:

    - recency: ``max(0, 1 - hours_since_collection / 24)``
    - volume: ``record_count / 1000``
    - span: ``time_span_days / 365``
    - engagement: ``total_engagement / 10000``

    One pass keeps the top ``ceil(keep_fraction * n)`` entries. When a
    size function and budget are given, passes repeat until the entries
    fit; a pass that would keep everything drops the lowest entry
    instead. A single entry larger than the budget is never split.
    """

    def __init__(
        self,
        keep_fraction: float = Settings.EVICTION_KEEP_FRACTION,
        clock: Callable[[], float] | None = None,
    ) -> None:
        if not 0 < keep_fraction <= 1:
            raise ValueError("keep_fraction must be in (0, 1]")
        self.keep_fraction = keep_fraction
        self._clock = clock or time.time

    def score(self, entry: "CacheEntry", now: float | None = None) -> float:
        current = self._clock() if now is None else now
        hours = (current - entry.collection_time) / _SECONDS_PER_HOUR
        recency = max(0.0, 1 - hours / 24)
        volume = entry.record_count / 1000
        span = entry.time_span_days / 365
        engagement = entry.total_engagement / 10000
        return recency + volume + span + engagement

    def rank(
        self, entries: Mapping[str, "CacheEntry"],
    ) -> list[tuple[str, "CacheEntry"]]:
        """Entries sorted by descending score (stable for ties)."""
        now = self._clock()
        return sorted(
            entries.items(),
            key=lambda item: self.score(item[1], now),
            reverse=True,
        )

    def evict(
        self,
        entries: Mapping[str, "CacheEntry"],
        size_of: Callable[[Mapping[str, "CacheEntry"]], int] | None = None,
        budget: int | None = None,
    ) -> dict[str, "CacheEntry"]:
        """Return the surviving entries, highest scores first."""
        ranked = self.rank(entries)
        keep = math.ceil(len(ranked) * self.keep_fraction)
        survivors = dict(ranked[:keep])
        logger.info(
            "Eviction keeping %d/%d entries", len(survivors), len(ranked)
        )

        if size_of is None or budget is None:
            return survivors

        while len(survivors) > 1 and size_of(survivors) > budget:
            kept = list(survivors.items())
            keep = math.ceil(len(kept) * self.keep_fraction)
            if keep >= len(kept):
                keep = len(kept) - 1
            survivors = dict(kept[:keep])
            logger.info(
                "Still over budget, keeping %d/%d entries",
                len(survivors),
                len(kept),
            )

        if size_of(survivors) > budget:
            logger.warning(
                "Single cache entry exceeds the %d byte budget", budget
            )
        return survivors
