# tweet_harvest/services/result_assembler.py

"""Turns raw collected pages into an immutable CollectionResult."""

import logging
import math
from collections import Counter
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any

from tweet_harvest.config.settings import Settings
from tweet_harvest.models.collection import (
    CollectionMetadata,
    CollectionResult,
    DerivedStats,
)
from tweet_harvest.models.post import (
    Engagement,
    MediaRef,
    Post,
    ReferencedPost,
    parse_timestamp,
)

logger = logging.getLogger("tweet_harvest.assembler")

_SECONDS_PER_DAY = 24 * 60 * 60


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _lenient_timestamp(value: Any) -> datetime | None:
    """Parse a record timestamp, treating anything unparseable as missing."""
    try:
        return parse_timestamp(value)
    except (ValueError, TypeError, AttributeError):
        logger.debug("Unparseable created_at %r, leaving it empty", value)
        return None


class ResultAssembler:
    """Joins records with media and computes run metadata and stats."""

    def __init__(
        self,
        strategy: str = Settings.COLLECTION_STRATEGY,
        post_url_template: str = Settings.POST_URL_TEMPLATE,
        now: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.strategy = strategy
        self.post_url_template = post_url_template
        self._now = now

    # ── Record building ──────────────────────────────────

    @staticmethod
    def index_media(
        media_pool: Sequence[dict[str, Any]],
    ) -> dict[str, MediaRef]:
        """Key media objects by ``media_key``; later duplicates win."""
        index: dict[str, MediaRef] = {}
        for raw in media_pool:
            if raw.get("media_key"):
                index[str(raw["media_key"])] = MediaRef.from_api(raw)
        return index

    def build_post(
        self,
        raw: dict[str, Any],
        media_index: dict[str, MediaRef],
        owner_name: str,
        collected_at: datetime,
    ) -> Post:
        """Merge one raw record with its resolved media.

        Media keys missing from the index are dropped silently.
        """
        attachments: dict[str, Any] = raw.get("attachments") or {}
        media = tuple(
            media_index[key]
            for key in attachments.get("media_keys") or []
            if key in media_index
        )
        entities: dict[str, Any] = raw.get("entities") or {}
        post_id = str(raw["id"])
        return Post(
            id=post_id,
            author_id=str(raw.get("author_id", "")),
            created_at=_lenient_timestamp(raw.get("created_at")),
            text=raw.get("text") or "",
            engagement=Engagement.from_api(raw.get("public_metrics")),
            lang=raw.get("lang") or "unknown",
            media=media,
            referenced_posts=tuple(
                ReferencedPost(type=str(ref["type"]), id=str(ref["id"]))
                for ref in raw.get("referenced_tweets") or []
                if isinstance(ref, dict)
                and ref.get("type") and ref.get("id") is not None
            ),
            conversation_id=raw.get("conversation_id"),
            in_reply_to_user_id=raw.get("in_reply_to_user_id"),
            possibly_sensitive=bool(raw.get("possibly_sensitive", False)),
            source=raw.get("source"),
            hashtags=tuple(
                h["tag"] for h in entities.get("hashtags") or []
                if "tag" in h
            ),
            mentions=tuple(
                m["username"] for m in entities.get("mentions") or []
                if "username" in m
            ),
            url=self.post_url_template.format(
                owner=owner_name, id=post_id
            ),
            collection_timestamp=collected_at,
        )

    # ── Aggregates ───────────────────────────────────────

    @staticmethod
    def date_range(
        posts: Sequence[Post],
    ) -> tuple[datetime | None, datetime | None, int]:
        """Return ``(oldest, newest, span_in_days)`` over dated posts."""
        dated = sorted(
            (p.created_at for p in posts if p.created_at is not None)
        )
        if not dated:
            return None, None, 0
        oldest, newest = dated[0], dated[-1]
        span = math.ceil(
            (newest - oldest).total_seconds() / _SECONDS_PER_DAY
        )
        return oldest, newest, span

    @staticmethod
    def derive_stats(
        posts: Sequence[Post], time_span_days: int,
    ) -> DerivedStats:
        """Compute engagement averages, media ratio, and language counts."""
        total = len(posts)
        if not total:
            return DerivedStats(
                time_span_days=time_span_days,
                time_span_months=round(time_span_days / 30),
                time_span_years=round(time_span_days / 365),
            )

        likes = sum(p.engagement.likes for p in posts)
        reposts = sum(p.engagement.reposts for p in posts)
        replies = sum(p.engagement.replies for p in posts)
        media_records = sum(1 for p in posts if p.has_media)
        text_length = sum(len(p.text) for p in posts)
        languages = Counter(p.lang or "unknown" for p in posts)

        return DerivedStats(
            total_records=total,
            media_records=media_records,
            has_media_percent=round(media_records / total * 100),
            avg_length=round(text_length / total),
            avg_likes=round(likes / total),
            avg_reposts=round(reposts / total),
            avg_replies=round(replies / total),
            total_engagement=likes + reposts + replies,
            languages=MappingProxyType(dict(languages)),
            time_span_days=time_span_days,
            time_span_months=round(time_span_days / 30),
            time_span_years=round(time_span_days / 365),
        )

    # ── Entry point ──────────────────────────────────────

    def assemble(
        self,
        records: Sequence[dict[str, Any]],
        media_pool: Sequence[dict[str, Any]],
        errors: Sequence[str],
        pages_processed: int,
        has_more_data: bool,
        owner_name: str = "",
        rate_limit_hits: int = 0,
    ) -> CollectionResult:
        """Build the final result; record order follows page arrival."""
        now = self._now()
        # Serialized timestamps keep milliseconds only
        collected_at = now.replace(
            microsecond=now.microsecond // 1000 * 1000
        )
        media_index = self.index_media(media_pool)
        all_errors = list(errors)
        built: list[Post] = []
        for index, raw in enumerate(records):
            try:
                built.append(
                    self.build_post(raw, media_index, owner_name, collected_at)
                )
            except (KeyError, TypeError, ValueError, AttributeError) as exc:
                logger.warning(
                    "Skipping malformed record %d for @%s: %r",
                    index,
                    owner_name,
                    exc,
                )
                all_errors.append(
                    f"Skipped malformed record {index}: {exc!r}"
                )
        posts = tuple(built)
        oldest, newest, span = self.date_range(posts)

        metadata = CollectionMetadata(
            total_collected=len(posts),
            pages_processed=pages_processed,
            oldest_date=oldest,
            newest_date=newest,
            time_span_days=span,
            has_more_data=has_more_data,
            rate_limit_hits=rate_limit_hits,
            errors=tuple(all_errors),
            strategy=self.strategy,
            collection_time=collected_at,
        )
        stats = self.derive_stats(posts, span)

        logger.info(
            "Assembled %d posts for @%s: %d pages, %d days span, "
            "%d rate limits, %d errors, more data: %s",
            metadata.total_collected,
            owner_name,
            pages_processed,
            span,
            rate_limit_hits,
            len(metadata.errors),
            "yes" if has_more_data else "no",
        )
        return CollectionResult(
            records=posts, metadata=metadata, stats=stats
        )
