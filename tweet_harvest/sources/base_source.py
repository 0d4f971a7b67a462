# tweet_harvest/sources/base_source.py

"""Abstract base class for paginated record sources."""

import logging
from abc import ABC, abstractmethod

from tweet_harvest.models.account import UserProfile
from tweet_harvest.models.collection import Page


class PageSource(ABC):
    """A rate-limited upstream that serves records one page at a time.

    Implementations raise the classified errors from
    :mod:`tweet_harvest.models.errors`; throttling and retrying are the
    caller's job, so a single call maps to a single upstream request.
    """

    def __init__(self, source_name: str) -> None:
        self.source_name = source_name
        self.logger = logging.getLogger(
            f"tweet_harvest.{source_name}"
        )

    @abstractmethod
    def fetch_page(
        self,
        resource_id: str,
        continuation_token: str | None = None,
    ) -> Page:
        """Fetch the page after ``continuation_token`` (first page if None)."""
        ...

    @abstractmethod
    def get_user_by_username(self, username: str) -> UserProfile:
        """Resolve an account name to its profile."""
        ...
