# tweet_harvest/services/collection_orchestrator.py

"""Collects several accounts concurrently through one shared throttle and cache."""

import asyncio
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field

from tweet_harvest.models.account import UserProfile
from tweet_harvest.models.collection import CollectionResult
from tweet_harvest.services.collector import (
    CollectionObserver,
    PaginatedCollector,
)
from tweet_harvest.services.retry_policy import RetryPolicy
from tweet_harvest.services.throttle_gate import ThrottleGate
from tweet_harvest.sources.base_source import PageSource
from tweet_harvest.storage.result_cache import ResultCache, normalize_key

logger = logging.getLogger("tweet_harvest.orchestrator")


@dataclass
class AccountCollection:
    """Outcome of collecting one account."""

    username: str
    result: CollectionResult
    user: UserProfile | None = None
    from_cache: bool = False


@dataclass
class HarvestReport:
    """Container for a multi-account collection run."""

    usernames: list[str]
    collections: list[AccountCollection] = field(
        default_factory=lambda: list[AccountCollection]()
    )
    cache_hits: int = 0
    errors: list[str] = field(
        default_factory=lambda: list[str]()
    )

    @property
    def total_records(self) -> int:
        return sum(len(c.result.records) for c in self.collections)


class CollectionOrchestrator:
    """Resolves accounts, runs collectors, and caches their results.

    All collectors built here share one :class:`ThrottleGate`, so the
    request quota holds across accounts collected in parallel.
    """

    def __init__(
        self,
        source_factory: Callable[[], PageSource],
        gate: ThrottleGate | None = None,
        cache: ResultCache | None = None,
        retry: RetryPolicy | None = None,
        observer: CollectionObserver | None = None,
        collector_options: dict[str, int | float] | None = None,
    ) -> None:
        self._source_factory = source_factory
        self.gate = gate or ThrottleGate()
        self.cache = cache or ResultCache()
        self.retry = retry or RetryPolicy()
        self.observer = observer
        self.collector_options = collector_options or {}
        self._stop_event = threading.Event()

    def request_stop(self) -> None:
        """Ask every running collection to stop at its next page boundary."""
        logger.warning("Stop requested, finishing current pages")
        self._stop_event.set()

    def _build_collector(self, source: PageSource) -> PaginatedCollector:
        return PaginatedCollector(
            source,
            gate=self.gate,
            retry=self.retry,
            observer=self.observer,
            **self.collector_options,  # type: ignore[arg-type]
        )

    def collect_account(
        self, username: str, use_cache: bool = True,
    ) -> AccountCollection:
        """Collect one account, preferring a recent cached result.

        Raises the classified upstream error when the account cannot be
        resolved or nothing at all could be collected.
        """
        key = normalize_key(username).lstrip("@")
        if use_cache and self.cache.has_recent(key):
            cached = self.cache.get(key)
            if cached is not None:
                logger.info(
                    "Cache hit for @%s (%d posts)", key, len(cached.records)
                )
                return AccountCollection(
                    username=key, result=cached, from_cache=True
                )

        source = self._source_factory()
        self.gate.acquire()
        user = self.retry.execute(
            lambda: source.get_user_by_username(key),
            f"getUserByUsername({key})",
        )
        logger.info("Resolved @%s to user %s", user.username, user.id)

        collector = self._build_collector(source)
        result = collector.collect(
            user.id, user.username or key, self._stop_event
        )
        if not self.cache.put(key, result):
            logger.warning("Result for @%s was not cached", key)
        return AccountCollection(username=key, result=result, user=user)

    async def collect_accounts(
        self,
        usernames: list[str],
        use_cache: bool = True,
    ) -> HarvestReport:
        """Collect every account concurrently; failures land in ``errors``."""
        report = HarvestReport(usernames=list(usernames))
        if not usernames:
            return report
        self._stop_event.clear()

        outcomes = await asyncio.gather(
            *(
                asyncio.to_thread(self.collect_account, name, use_cache)
                for name in usernames
            ),
            return_exceptions=True,
        )

        for name, outcome in zip(usernames, outcomes):
            if isinstance(outcome, AccountCollection):
                report.collections.append(outcome)
                if outcome.from_cache:
                    report.cache_hits += 1
            elif isinstance(outcome, Exception):
                report.errors.append(f"@{name}: {outcome}")
                logger.error(
                    "Collection failed for @%s: %s",
                    name,
                    outcome,
                    exc_info=outcome,
                )
            else:
                raise outcome
        return report
