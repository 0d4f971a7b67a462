# tweet_harvest/services/retry_policy.py

"""Classified retry policy for single upstream calls."""

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from tweet_harvest.config.settings import Settings
from tweet_harvest.models.errors import (
    RateLimitedError,
    TransientError,
    UpstreamError,
)

logger = logging.getLogger("tweet_harvest.retry")

T = TypeVar("T")


class RetryPolicy:
    """Run an operation up to ``max_attempts`` times.

    - Rate limits wait a fixed ``rate_limit_delay`` before the next try.
    - Auth, forbidden, and not-found errors are raised at once.
    - Anything else waits ``base_delay * attempt`` before the next try.

    Exceptions that are not :class:`UpstreamError` are treated as
    transient and re-raised as :class:`TransientError` once attempts run
    out. The final error carries the attempt count and operation name.
    """

    def __init__(
        self,
        max_attempts: int = Settings.MAX_ATTEMPTS,
        rate_limit_delay: float = Settings.RATE_LIMIT_RETRY_DELAY,
        base_delay: float = Settings.RETRY_BASE_DELAY,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self.rate_limit_delay = rate_limit_delay
        self.base_delay = base_delay
        self._sleep = sleep or time.sleep

    def execute(
        self,
        operation: Callable[[], T],
        operation_name: str = "operation",
        max_attempts: int | None = None,
    ) -> T:
        """Return the operation's result or raise the last classified error."""
        attempts = max_attempts or self.max_attempts

        for attempt in range(1, attempts + 1):
            error: UpstreamError
            try:
                return operation()
            except UpstreamError as exc:
                error = exc
            except Exception as exc:
                error = TransientError(str(exc) or type(exc).__name__)
                error.__cause__ = exc

            logger.info(
                "%s: attempt %d/%d failed: %s",
                operation_name,
                attempt,
                attempts,
                error.message,
            )

            if not error.retryable:
                logger.warning(
                    "%s: %s (HTTP %s), not retrying",
                    operation_name,
                    type(error).__name__,
                    error.status_code,
                )
                raise self._annotate(error, operation_name, attempt)

            if attempt == attempts:
                logger.error(
                    "%s failed after %d attempts",
                    operation_name,
                    attempts,
                )
                raise self._annotate(error, operation_name, attempt)

            if isinstance(error, RateLimitedError):
                delay = self.rate_limit_delay
                logger.info(
                    "%s: rate limited, waiting %.0fs before retry",
                    operation_name,
                    delay,
                )
            else:
                delay = self.base_delay * attempt
                logger.info(
                    "%s: retrying in %.0fs",
                    operation_name,
                    delay,
                )
            self._sleep(delay)

        # The final attempt always returns or raises.
        raise RuntimeError("unreachable")

    @staticmethod
    def _annotate(
        error: UpstreamError,
        operation_name: str,
        attempt: int,
    ) -> UpstreamError:
        error.operation = operation_name
        error.attempts = attempt
        return error
