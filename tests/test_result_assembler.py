# tests/test_result_assembler.py

"""Tests for ResultAssembler media joins, metadata, and stats."""

import unittest
from datetime import datetime, timezone
from typing import Any

from tweet_harvest.models.collection import CollectionResult
from tweet_harvest.services.result_assembler import ResultAssembler

_NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _raw(
    post_id: int,
    created_at: str = "2024-05-01T00:00:00.000Z",
    likes: int = 0,
    text: str = "post",
    **extra: Any,
) -> dict[str, Any]:
    raw: dict[str, Any] = {
        "id": str(post_id),
        "author_id": "99",
        "created_at": created_at,
        "text": text,
        "public_metrics": {
            "like_count": likes,
            "retweet_count": 0,
            "reply_count": 0,
            "quote_count": 0,
        },
    }
    raw.update(extra)
    return raw


def _assembler() -> ResultAssembler:
    return ResultAssembler(
        strategy="test",
        post_url_template="https://twitter.com/{owner}/status/{id}",
        now=lambda: _NOW,
    )


class TestMediaJoin(unittest.TestCase):

    def test_media_resolved_and_dangling_keys_dropped(self) -> None:
        """Unknown media keys vanish without an error."""
        records = [
            _raw(1, attachments={"media_keys": ["m1", "missing"]}),
        ]
        pool = [{"media_key": "m1", "type": "photo", "url": "https://x/1"}]
        result = _assembler().assemble(records, pool, [], 1, False, "nasa")
        post = result.records[0]
        self.assertEqual([m.media_key for m in post.media], ["m1"])
        self.assertEqual(post.media[0].url, "https://x/1")

    def test_media_from_later_page_resolves(self) -> None:
        """The pool is joined after collection, not per page."""
        records = [_raw(1, attachments={"media_keys": ["m9"]})]
        pool = [
            {"media_key": "m0", "type": "photo"},
            {"media_key": "m9", "type": "animated_gif"},
        ]
        result = _assembler().assemble(records, pool, [], 2, False)
        self.assertEqual(result.records[0].media[0].type, "animated_gif")


class TestAssemble(unittest.TestCase):

    def test_empty_input(self) -> None:
        result = _assembler().assemble([], [], [], 0, False, "nasa")
        self.assertEqual(result.records, ())
        self.assertEqual(result.metadata.total_collected, 0)
        self.assertIsNone(result.metadata.oldest_date)
        self.assertEqual(result.metadata.time_span_days, 0)
        self.assertEqual(result.stats.total_records, 0)
        self.assertEqual(result.stats.avg_likes, 0)
        self.assertEqual(dict(result.stats.languages), {})

    def test_span_rounds_up_to_whole_days(self) -> None:
        records = [
            _raw(2, "2024-01-03T01:00:00.000Z"),
            _raw(1, "2024-01-01T00:00:00.000Z"),
        ]
        result = _assembler().assemble(records, [], [], 1, False)
        meta = result.metadata
        self.assertEqual(meta.time_span_days, 3)
        self.assertEqual(meta.oldest_date.day, 1)  # type: ignore[union-attr]
        self.assertEqual(meta.newest_date.day, 3)  # type: ignore[union-attr]

    def test_order_follows_page_arrival(self) -> None:
        records = [_raw(i) for i in (5, 3, 9)]
        result = _assembler().assemble(records, [], [], 1, False)
        self.assertEqual([p.id for p in result.records], ["5", "3", "9"])

    def test_stats(self) -> None:
        records = [
            _raw(1, likes=10, text="abcd", lang="en",
                 attachments={"media_keys": ["m1"]}),
            _raw(2, likes=5, text="ab", lang="en"),
            _raw(3, likes=0, text="abcdef"),
        ]
        pool = [{"media_key": "m1", "type": "photo"}]
        stats = _assembler().assemble(records, pool, [], 1, False).stats
        self.assertEqual(stats.total_records, 3)
        self.assertEqual(stats.media_records, 1)
        self.assertEqual(stats.has_media_percent, 33)
        self.assertEqual(stats.avg_length, 4)
        self.assertEqual(stats.avg_likes, 5)
        self.assertEqual(stats.total_engagement, 15)
        self.assertEqual(dict(stats.languages), {"en": 2, "unknown": 1})

    def test_metadata_fields(self) -> None:
        result = _assembler().assemble(
            [_raw(1)],
            [],
            ["Rate limit on page 2"],
            pages_processed=1,
            has_more_data=True,
            owner_name="nasa",
            rate_limit_hits=1,
        )
        meta = result.metadata
        self.assertEqual(meta.pages_processed, 1)
        self.assertTrue(meta.has_more_data)
        self.assertEqual(meta.rate_limit_hits, 1)
        self.assertEqual(meta.errors, ("Rate limit on page 2",))
        self.assertEqual(meta.strategy, "test")
        self.assertEqual(meta.collection_time, _NOW)
        self.assertFalse(result.is_complete)

    def test_collection_time_truncated_to_milliseconds(self) -> None:
        """Timestamps survive a serialize round trip unchanged."""
        precise = datetime(2024, 6, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)
        assembler = ResultAssembler(now=lambda: precise)
        result = assembler.assemble([_raw(1)], [], [], 1, False, "nasa")
        meta = result.metadata
        self.assertEqual(meta.collection_time.microsecond, 123000)
        self.assertEqual(
            result.records[0].collection_timestamp, meta.collection_time
        )
        restored = CollectionResult.from_dict(result.to_dict())
        self.assertEqual(restored.metadata, meta)
        self.assertEqual(restored.records, result.records)

    def test_unparseable_date_is_missing(self) -> None:
        result = _assembler().assemble(
            [_raw(1, created_at="not a date"), _raw(2)], [], [], 1, False
        )
        self.assertIsNone(result.records[0].created_at)
        self.assertEqual(result.metadata.time_span_days, 0)
        self.assertEqual(result.metadata.errors, ())

    def test_post_fields_from_raw(self) -> None:
        raw = _raw(
            7,
            entities={
                "hashtags": [{"tag": "space"}],
                "mentions": [{"username": "esa"}],
            },
            referenced_tweets=[{"type": "replied_to", "id": 3}],
            conversation_id="3",
        )
        post = _assembler().assemble([raw], [], [], 1, False, "nasa").records[0]
        self.assertEqual(post.url, "https://twitter.com/nasa/status/7")
        self.assertEqual(post.hashtags, ("space",))
        self.assertEqual(post.mentions, ("esa",))
        self.assertEqual(post.referenced_posts[0].id, "3")
        self.assertEqual(post.collection_timestamp, _NOW)
        self.assertEqual(post.lang, "unknown")


if __name__ == "__main__":
    unittest.main()
