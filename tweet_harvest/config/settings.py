# tweet_harvest/config/settings.py

"""Central configuration for the tweet_harvest collector."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Central configuration for the tweet_harvest collector."""

    # --- Throttling ---
    MAX_REQUESTS_PER_WINDOW: int = 50   # Local quota estimate per window
    WINDOW_DURATION: float = 15 * 60.0  # Seconds in one quota window
    WINDOW_SAFETY_MARGIN: float = 1.0   # Extra wait after a full window

    # --- Retry ---
    MAX_ATTEMPTS: int = 2               # Attempts per upstream call
    RATE_LIMIT_RETRY_DELAY: float = 3.0
    RETRY_BASE_DELAY: float = 2.0       # Multiplied by attempt number

    # --- Pagination ---
    MAX_PAGES: int = 200                # Absolute circuit breaker
    PAGE_SIZE: int = 100                # Upstream maximum per page
    TARGET_RECORD_COUNT: int = 15000
    MAX_EMPTY_PAGES: int = 3            # Consecutive empty pages = end
    RATE_LIMIT_COOLDOWN: float = 5.0    # Wait when limited with no data
    MAX_RATE_LIMIT_COOLDOWNS: int = 10
    COLLECTION_STRATEGY: str = "maximum_unlimited_historical"

    # --- Cache ---
    CACHE_DURATION: float = 4 * 60 * 60.0
    MAX_STORAGE_BYTES: int = 50 * 1024 * 1024
    EVICTION_KEEP_FRACTION: float = 0.7
    RECENT_DATA_MAX_AGE_HOURS: float = 2.0
    CACHE_KEY: str = "twitter_maximized_cache_v2"
    CACHE_EXPIRY_KEY: str = "twitter_maximized_cache_expiry_v2"
    CACHE_VERSION: str = "v2_maximum_collection"

    # --- Upstream API ---
    TWITTER_BEARER_TOKEN: str | None = os.getenv("TWITTER_BEARER_TOKEN")
    API_BASE_URL: str = "https://api.twitter.com/2"
    POST_URL_TEMPLATE: str = "https://twitter.com/{owner}/status/{id}"
    REQUEST_TIMEOUT: int = 30           # Seconds before a request times out
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": "application/json",
        "Accept-Language": "en-US,en;q=0.9",
    }
    TWEET_FIELDS: list[str] = [
        "id",
        "text",
        "created_at",
        "author_id",
        "conversation_id",
        "public_metrics",
        "attachments",
        "referenced_tweets",
        "lang",
        "context_annotations",
        "entities",
        "geo",
        "in_reply_to_user_id",
        "possibly_sensitive",
        "source",
    ]
    MEDIA_FIELDS: list[str] = [
        "media_key",
        "type",
        "url",
        "preview_image_url",
        "width",
        "height",
        "duration_ms",
        "alt_text",
        "public_metrics",
    ]
    USER_FIELDS: list[str] = [
        "id",
        "name",
        "username",
        "description",
        "location",
        "url",
        "profile_image_url",
        "public_metrics",
        "verified",
        "created_at",
        "protected",
    ]
    EXPANSIONS: list[str] = [
        "attachments.media_keys",
        "author_id",
        "referenced_tweets.id",
        "referenced_tweets.id.author_id",
    ]

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    DATA_DIR: Path = BASE_DIR / "data"
    CACHE_DIR: Path = DATA_DIR / "cache"
    LOGS_DIR: Path = BASE_DIR / "logs"
