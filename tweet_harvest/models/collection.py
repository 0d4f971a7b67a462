# tweet_harvest/models/collection.py

"""Collection run containers: upstream pages, run metadata, and results."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any

from tweet_harvest.models.post import Post, format_timestamp, parse_timestamp


@dataclass(frozen=True)
class Page:
    """One raw page returned by a paginated source."""

    items: list[dict[str, Any]] = field(
        default_factory=lambda: list[dict[str, Any]]()
    )
    auxiliary: list[dict[str, Any]] = field(
        default_factory=lambda: list[dict[str, Any]]()
    )
    next_token: str | None = None


@dataclass(frozen=True)
class CollectionMetadata:
    """Summary of one collection run."""

    total_collected: int
    pages_processed: int
    oldest_date: datetime | None
    newest_date: datetime | None
    time_span_days: int
    has_more_data: bool
    rate_limit_hits: int
    errors: tuple[str, ...]
    strategy: str
    collection_time: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_collected": self.total_collected,
            "pages_processed": self.pages_processed,
            "oldest_date": format_timestamp(self.oldest_date),
            "newest_date": format_timestamp(self.newest_date),
            "time_span_days": self.time_span_days,
            "has_more_data": self.has_more_data,
            "rate_limit_hits": self.rate_limit_hits,
            "errors": list(self.errors),
            "strategy": self.strategy,
            "collection_time": format_timestamp(self.collection_time),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CollectionMetadata":
        collection_time = parse_timestamp(data["collection_time"])
        if collection_time is None:
            raise ValueError("collection_time is required")
        return cls(
            total_collected=int(data["total_collected"]),
            pages_processed=int(data["pages_processed"]),
            oldest_date=parse_timestamp(data.get("oldest_date")),
            newest_date=parse_timestamp(data.get("newest_date")),
            time_span_days=int(data["time_span_days"]),
            has_more_data=bool(data["has_more_data"]),
            rate_limit_hits=int(data["rate_limit_hits"]),
            errors=tuple(data.get("errors", [])),
            strategy=data["strategy"],
            collection_time=collection_time,
        )


@dataclass(frozen=True)
class DerivedStats:
    """Aggregates computed once from a finished record set."""

    total_records: int = 0
    media_records: int = 0
    has_media_percent: int = 0
    avg_length: int = 0
    avg_likes: int = 0
    avg_reposts: int = 0
    avg_replies: int = 0
    total_engagement: int = 0
    languages: Mapping[str, int] = field(
        default_factory=lambda: MappingProxyType({})
    )
    time_span_days: int = 0
    time_span_months: int = 0
    time_span_years: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_records": self.total_records,
            "media_records": self.media_records,
            "has_media_percent": self.has_media_percent,
            "avg_length": self.avg_length,
            "avg_likes": self.avg_likes,
            "avg_reposts": self.avg_reposts,
            "avg_replies": self.avg_replies,
            "total_engagement": self.total_engagement,
            "languages": dict(self.languages),
            "time_span_days": self.time_span_days,
            "time_span_months": self.time_span_months,
            "time_span_years": self.time_span_years,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DerivedStats":
        values = dict(data)
        values["languages"] = MappingProxyType(
            dict(values.get("languages", {}))
        )
        return cls(**values)


@dataclass(frozen=True)
class CollectionResult:
    """Records, run metadata, and derived stats for one account."""

    records: tuple[Post, ...]
    metadata: CollectionMetadata
    stats: DerivedStats

    @property
    def is_complete(self) -> bool:
        """No errors and upstream signalled no further pages."""
        return not self.metadata.errors and not self.metadata.has_more_data

    def to_dict(self) -> dict[str, Any]:
        return {
            "records": [r.to_dict() for r in self.records],
            "metadata": self.metadata.to_dict(),
            "stats": self.stats.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CollectionResult":
        return cls(
            records=tuple(Post.from_dict(r) for r in data["records"]),
            metadata=CollectionMetadata.from_dict(data["metadata"]),
            stats=DerivedStats.from_dict(data["stats"]),
        )
