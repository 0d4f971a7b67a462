# tests/test_eviction.py

"""Tests for score-based cache eviction."""

import unittest
from collections.abc import Mapping
from unittest.mock import MagicMock

from tweet_harvest.storage.eviction import EvictionPolicy
from tweet_harvest.storage.result_cache import CacheEntry

_NOW = 1_700_000_000.0
_HOUR = 3600.0


def _entry(
    key: str,
    hours_ago: float = 0.0,
    records: int = 0,
    span_days: int = 0,
    engagement: int = 0,
) -> CacheEntry:
    return CacheEntry(
        key=key,
        result=MagicMock(),
        collection_time=_NOW - hours_ago * _HOUR,
        record_count=records,
        time_span_days=span_days,
        total_engagement=engagement,
    )


def _policy(keep_fraction: float = 0.7) -> EvictionPolicy:
    return EvictionPolicy(keep_fraction=keep_fraction, clock=lambda: _NOW)


class TestScore(unittest.TestCase):
    """Score = recency + volume + span + engagement."""

    def test_all_components(self) -> None:
        entry = _entry("a", records=1000, span_days=365, engagement=10000)
        self.assertAlmostEqual(_policy().score(entry), 4.0)

    def test_recency_decays_linearly(self) -> None:
        self.assertAlmostEqual(_policy().score(_entry("a", 12)), 0.5)
        self.assertAlmostEqual(_policy().score(_entry("a", 24)), 0.0)

    def test_recency_floor_is_zero(self) -> None:
        self.assertEqual(_policy().score(_entry("a", 100)), 0.0)

    def test_rank_descending(self) -> None:
        entries = {
            "old": _entry("old", hours_ago=20),
            "big": _entry("big", hours_ago=20, records=5000),
            "new": _entry("new"),
        }
        ranked = [key for key, _ in _policy().rank(entries)]
        self.assertEqual(ranked, ["big", "new", "old"])


class TestEvict(unittest.TestCase):

    def test_three_entries_all_kept(self) -> None:
        """ceil(0.7 * 3) = 3."""
        entries = {k: _entry(k) for k in "abc"}
        self.assertEqual(len(_policy().evict(entries)), 3)

    def test_ten_entries_keep_top_seven(self) -> None:
        entries = {
            f"k{i}": _entry(f"k{i}", records=i * 100) for i in range(10)
        }
        survivors = _policy().evict(entries)
        self.assertEqual(
            set(survivors), {f"k{i}" for i in range(3, 10)}
        )
        self.assertEqual(list(survivors)[0], "k9")

    def test_repeats_until_within_budget(self) -> None:
        entries = {
            f"k{i}": _entry(f"k{i}", records=i) for i in range(10)
        }

        def size_of(subset: Mapping[str, CacheEntry]) -> int:
            return len(subset) * 100

        survivors = _policy().evict(entries, size_of, budget=350)
        self.assertLessEqual(size_of(survivors), 350)
        self.assertEqual(set(survivors), {"k9", "k8", "k7"})

    def test_small_sets_still_shrink(self) -> None:
        """A pass that would keep everything drops the lowest instead."""
        entries = {k: _entry(k, records=r) for k, r in zip("abc", (3, 2, 1))}
        survivors = _policy().evict(
            entries, lambda s: len(s) * 100, budget=150
        )
        self.assertEqual(list(survivors), ["a"])

    def test_single_oversized_entry_kept(self) -> None:
        entries = {"a": _entry("a"), "b": _entry("b", hours_ago=30)}
        survivors = _policy().evict(entries, lambda s: 1000, budget=10)
        self.assertEqual(list(survivors), ["a"])

    def test_keep_fraction_validated(self) -> None:
        for bad in (0, -0.5, 1.5):
            with self.subTest(keep_fraction=bad):
                with self.assertRaises(ValueError):
                    EvictionPolicy(keep_fraction=bad)


if __name__ == "__main__":
    unittest.main()
