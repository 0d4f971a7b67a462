# tweet_harvest/models/account.py

"""Account profile data model."""

from dataclasses import dataclass
from typing import Any


@dataclass
class UserProfile:
    """A resolved upstream account."""

    id: str
    username: str
    name: str = ""
    description: str = ""
    profile_image_url: str = ""
    followers_count: int = 0
    following_count: int = 0
    post_count: int = 0
    verified: bool = False
    protected: bool = False
    created_at: str = ""
    url: str = ""
    location: str = ""

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> "UserProfile":
        metrics: dict[str, Any] = raw.get("public_metrics") or {}
        return cls(
            id=str(raw["id"]),
            username=raw.get("username", ""),
            name=raw.get("name", ""),
            description=raw.get("description", ""),
            profile_image_url=raw.get("profile_image_url", ""),
            followers_count=int(metrics.get("followers_count", 0)),
            following_count=int(metrics.get("following_count", 0)),
            post_count=int(metrics.get("tweet_count", 0)),
            verified=bool(raw.get("verified", False)),
            protected=bool(raw.get("protected", False)),
            created_at=raw.get("created_at", ""),
            url=raw.get("url", ""),
            location=raw.get("location", ""),
        )
