# tweet_harvest/models/post.py

"""Post (collection record) data model and its media references."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an upstream ISO-8601 timestamp such as ``2024-05-01T10:00:00.000Z``."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime | None) -> str | None:
    """Render a timestamp the way the upstream API does (UTC, ``Z`` suffix)."""
    if value is None:
        return None
    utc = value.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


@dataclass(frozen=True)
class MediaRef:
    """A photo, video, or GIF attached to a post."""

    media_key: str
    type: str
    url: str = ""
    width: int | None = None
    height: int | None = None
    duration_ms: int | None = None
    alt_text: str | None = None

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> "MediaRef":
        """Build from an ``includes.media`` object; previews stand in for URLs."""
        return cls(
            media_key=str(raw["media_key"]),
            type=str(raw.get("type", "")),
            url=raw.get("url") or raw.get("preview_image_url") or "",
            width=raw.get("width"),
            height=raw.get("height"),
            duration_ms=raw.get("duration_ms"),
            alt_text=raw.get("alt_text"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "media_key": self.media_key,
            "type": self.type,
            "url": self.url,
            "width": self.width,
            "height": self.height,
            "duration_ms": self.duration_ms,
            "alt_text": self.alt_text,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MediaRef":
        return cls(**data)


@dataclass(frozen=True)
class ReferencedPost:
    """Reply/quote/repost linkage to another post."""

    type: str
    id: str


@dataclass(frozen=True)
class Engagement:
    """Public engagement counters of a post."""

    likes: int = 0
    reposts: int = 0
    replies: int = 0
    quotes: int = 0
    impressions: int | None = None

    @property
    def total(self) -> int:
        """Likes + reposts + replies; quotes and impressions are excluded."""
        return self.likes + self.reposts + self.replies

    @classmethod
    def from_api(cls, raw: dict[str, Any] | None) -> "Engagement":
        metrics = raw or {}
        return cls(
            likes=int(metrics.get("like_count") or 0),
            reposts=int(metrics.get("retweet_count") or 0),
            replies=int(metrics.get("reply_count") or 0),
            quotes=int(metrics.get("quote_count") or 0),
            impressions=metrics.get("impression_count"),
        )


@dataclass(frozen=True)
class Post:
    """One collected post, merged with its resolved media.

    Instances are built once by the result assembler and never
    mutated afterwards.
    """

    id: str
    author_id: str
    created_at: datetime | None
    text: str
    engagement: Engagement = field(default_factory=Engagement)
    lang: str = "unknown"
    media: tuple[MediaRef, ...] = ()
    referenced_posts: tuple[ReferencedPost, ...] = ()
    conversation_id: str | None = None
    in_reply_to_user_id: str | None = None
    possibly_sensitive: bool = False
    source: str | None = None
    hashtags: tuple[str, ...] = ()
    mentions: tuple[str, ...] = ()
    url: str = ""
    collection_timestamp: datetime | None = None

    @property
    def has_media(self) -> bool:
        return bool(self.media)

    def to_dict(self) -> dict[str, Any]:
        """Serialise to plain JSON-compatible types."""
        return {
            "id": self.id,
            "author_id": self.author_id,
            "created_at": format_timestamp(self.created_at),
            "text": self.text,
            "public_metrics": {
                "like_count": self.engagement.likes,
                "retweet_count": self.engagement.reposts,
                "reply_count": self.engagement.replies,
                "quote_count": self.engagement.quotes,
                "impression_count": self.engagement.impressions,
            },
            "lang": self.lang,
            "media": [m.to_dict() for m in self.media],
            "referenced_tweets": [
                {"type": r.type, "id": r.id}
                for r in self.referenced_posts
            ],
            "conversation_id": self.conversation_id,
            "in_reply_to_user_id": self.in_reply_to_user_id,
            "possibly_sensitive": self.possibly_sensitive,
            "source": self.source,
            "hashtags": list(self.hashtags),
            "mentions": list(self.mentions),
            "url": self.url,
            "collection_timestamp": format_timestamp(
                self.collection_timestamp
            ),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Post":
        """Rebuild a post previously produced by :meth:`to_dict`."""
        return cls(
            id=str(data["id"]),
            author_id=str(data.get("author_id", "")),
            created_at=parse_timestamp(data.get("created_at")),
            text=data.get("text", ""),
            engagement=Engagement.from_api(data.get("public_metrics")),
            lang=data.get("lang") or "unknown",
            media=tuple(
                MediaRef.from_dict(m) for m in data.get("media", [])
            ),
            referenced_posts=tuple(
                ReferencedPost(type=r["type"], id=str(r["id"]))
                for r in data.get("referenced_tweets", [])
            ),
            conversation_id=data.get("conversation_id"),
            in_reply_to_user_id=data.get("in_reply_to_user_id"),
            possibly_sensitive=bool(data.get("possibly_sensitive", False)),
            source=data.get("source"),
            hashtags=tuple(data.get("hashtags", [])),
            mentions=tuple(data.get("mentions", [])),
            url=data.get("url", ""),
            collection_timestamp=parse_timestamp(
                data.get("collection_timestamp")
            ),
        )
