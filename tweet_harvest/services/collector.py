# tweet_harvest/services/collector.py

"""Paginated bulk collector that never loses already-fetched records."""

import logging
import threading
import time
from collections.abc import Callable
from enum import Enum
from typing import Any

from tweet_harvest.config.settings import Settings
from tweet_harvest.models.collection import CollectionResult, Page
from tweet_harvest.models.errors import RateLimitedError, UpstreamError
from tweet_harvest.services.result_assembler import ResultAssembler
from tweet_harvest.services.retry_policy import RetryPolicy
from tweet_harvest.services.throttle_gate import ThrottleGate
from tweet_harvest.sources.base_source import PageSource

logger = logging.getLogger("tweet_harvest.collector")


class StopReason(str, Enum):
    """Why a collection loop ended."""

    END_OF_DATA = "end_of_data"          # no continuation token
    TARGET_REACHED = "target_reached"
    EMPTY_PAGES = "empty_pages"          # end of history
    MAX_PAGES = "max_pages"
    RATE_LIMITED = "rate_limited"        # stopped to keep partial data
    ERROR = "error"
    CANCELLED = "cancelled"
    GLOBAL_ERROR = "global_error"


class CollectionObserver:
    """Receives page-boundary events from the collector.

    The default implementation ignores everything; subclass and
    override the hooks you care about.
    """

    def on_start(self, owner_name: str, resource_id: str) -> None:
        pass

    def on_page_collected(
        self,
        owner_name: str,
        page_number: int,
        item_count: int,
        total: int,
        media_count: int,
    ) -> None:
        pass

    def on_empty_page(
        self,
        owner_name: str,
        page_number: int,
        consecutive: int,
        limit: int,
    ) -> None:
        pass

    def on_rate_limited(
        self,
        owner_name: str,
        page_number: int,
        collected: int,
        cooldown: float | None,
    ) -> None:
        pass

    def on_page_error(
        self,
        owner_name: str,
        page_number: int,
        error: Exception,
    ) -> None:
        pass

    def on_stop(
        self,
        owner_name: str,
        reason: StopReason,
        total: int,
        pages: int,
    ) -> None:
        pass


class LoggingObserver(CollectionObserver):
    """Writes collector progress to the ``tweet_harvest.collector`` log."""

    def on_start(self, owner_name: str, resource_id: str) -> None:
        logger.info(
            "Starting collection for @%s (%s)", owner_name, resource_id
        )

    def on_page_collected(
        self,
        owner_name: str,
        page_number: int,
        item_count: int,
        total: int,
        media_count: int,
    ) -> None:
        logger.info(
            "@%s page %d: %d posts, %d media (total %d)",
            owner_name,
            page_number,
            item_count,
            media_count,
            total,
        )

    def on_empty_page(
        self,
        owner_name: str,
        page_number: int,
        consecutive: int,
        limit: int,
    ) -> None:
        logger.warning(
            "@%s page %d: no posts returned (empty pages: %d/%d)",
            owner_name,
            page_number,
            consecutive,
            limit,
        )

    def on_rate_limited(
        self,
        owner_name: str,
        page_number: int,
        collected: int,
        cooldown: float | None,
    ) -> None:
        if cooldown is None:
            logger.warning(
                "@%s rate limited on page %d, keeping %d posts",
                owner_name,
                page_number,
                collected,
            )
        else:
            logger.warning(
                "@%s rate limited on page %d with no data yet, "
                "cooling down %.0fs",
                owner_name,
                page_number,
                cooldown,
            )

    def on_page_error(
        self,
        owner_name: str,
        page_number: int,
        error: Exception,
    ) -> None:
        logger.error(
            "@%s error on page %d: %s", owner_name, page_number, error
        )

    def on_stop(
        self,
        owner_name: str,
        reason: StopReason,
        total: int,
        pages: int,
    ) -> None:
        logger.info(
            "@%s collection stopped (%s): %d posts from %d pages",
            owner_name,
            reason.value,
            total,
            pages,
        )


class PaginatedCollector:
    """Walks a paginated source through the throttle and retry policy.

    The loop ends on whichever comes first: no continuation token,
    ``target_count`` records reached (checked after each whole page),
    ``max_empty_pages`` consecutive empty pages, ``max_pages`` pages, an
    error, or a stop request. Records fetched before a failure are
    always returned; the only exception raised to the caller is the
    classified upstream error of a run that collected nothing.
    """

    def __init__(
        self,
        source: PageSource,
        gate: ThrottleGate | None = None,
        retry: RetryPolicy | None = None,
        assembler: ResultAssembler | None = None,
        observer: CollectionObserver | None = None,
        max_pages: int = Settings.MAX_PAGES,
        target_count: int = Settings.TARGET_RECORD_COUNT,
        max_empty_pages: int = Settings.MAX_EMPTY_PAGES,
        rate_limit_cooldown: float = Settings.RATE_LIMIT_COOLDOWN,
        max_rate_limit_cooldowns: int = (
            Settings.MAX_RATE_LIMIT_COOLDOWNS
        ),
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.source = source
        self.gate = gate or ThrottleGate()
        self.retry = retry or RetryPolicy()
        self.assembler = assembler or ResultAssembler()
        self.observer = observer or LoggingObserver()
        self.max_pages = max_pages
        self.target_count = target_count
        self.max_empty_pages = max_empty_pages
        self.rate_limit_cooldown = rate_limit_cooldown
        self.max_rate_limit_cooldowns = max_rate_limit_cooldowns
        self._sleep = sleep or time.sleep

    def _fetch(
        self,
        resource_id: str,
        token: str | None,
        page_number: int,
    ) -> Page:
        self.gate.acquire()
        return self.retry.execute(
            lambda: self.source.fetch_page(resource_id, token),
            f"userTimeline page {page_number}",
        )

    def collect(
        self,
        resource_id: str,
        owner_name: str,
        stop_event: threading.Event | None = None,
    ) -> CollectionResult:
        """Collect every reachable page for ``resource_id``.

        ``stop_event`` lets another thread end the run at the next page
        boundary while keeping what was gathered so far.
        """
        stop = stop_event or threading.Event()
        records: list[dict[str, Any]] = []
        media_pool: list[dict[str, Any]] = []
        errors: list[str] = []
        pages = 0
        next_token: str | None = None
        started = False
        empty_pages = 0
        rate_limit_hits = 0
        cooldowns = 0
        fatal: UpstreamError | None = None
        reason = StopReason.END_OF_DATA

        self.observer.on_start(owner_name, resource_id)
        try:
            while (not started or next_token) and pages < self.max_pages:
                if stop.is_set():
                    reason = StopReason.CANCELLED
                    break
                page_number = pages + 1

                try:
                    page = self._fetch(resource_id, next_token, page_number)
                except RateLimitedError as exc:
                    rate_limit_hits += 1
                    errors.append(f"Rate limit on page {page_number}")
                    if records:
                        self.observer.on_rate_limited(
                            owner_name, page_number, len(records), None
                        )
                        reason = StopReason.RATE_LIMITED
                        break
                    if cooldowns >= self.max_rate_limit_cooldowns:
                        fatal = exc
                        reason = StopReason.RATE_LIMITED
                        break
                    cooldowns += 1
                    self.observer.on_rate_limited(
                        owner_name,
                        page_number,
                        0,
                        self.rate_limit_cooldown,
                    )
                    self._sleep(self.rate_limit_cooldown)
                    continue
                except UpstreamError as exc:
                    errors.append(f"Page {page_number}: {exc}")
                    self.observer.on_page_error(
                        owner_name, page_number, exc
                    )
                    if not records:
                        fatal = exc
                    reason = StopReason.ERROR
                    break

                started = True
                pages += 1
                next_token = page.next_token
                media_pool.extend(page.auxiliary)

                if page.items:
                    records.extend(page.items)
                    empty_pages = 0
                    self.observer.on_page_collected(
                        owner_name,
                        page_number,
                        len(page.items),
                        len(records),
                        len(page.auxiliary),
                    )
                    if len(records) >= self.target_count:
                        reason = StopReason.TARGET_REACHED
                        break
                else:
                    empty_pages += 1
                    self.observer.on_empty_page(
                        owner_name,
                        page_number,
                        empty_pages,
                        self.max_empty_pages,
                    )
                    if empty_pages >= self.max_empty_pages:
                        reason = StopReason.EMPTY_PAGES
                        break
            else:
                if pages >= self.max_pages and next_token:
                    reason = StopReason.MAX_PAGES
        except Exception as exc:
            logger.error(
                "Global collection error for @%s: %s",
                owner_name,
                exc,
                exc_info=True,
            )
            errors.append(f"Global error: {exc}")
            reason = StopReason.GLOBAL_ERROR

        self.observer.on_stop(owner_name, reason, len(records), pages)

        if fatal is not None and not records:
            raise fatal

        return self.assembler.assemble(
            records,
            media_pool,
            errors,
            pages_processed=pages,
            has_more_data=bool(next_token),
            owner_name=owner_name,
            rate_limit_hits=rate_limit_hits,
        )
