# tweet_harvest/models/errors.py

"""Exception taxonomy shared by the collector, sources, and cache."""


class HarvestError(Exception):
    """Base class for every error raised by tweet_harvest."""


class UpstreamError(HarvestError):
    """An upstream API call failed.

    ``attempts`` and ``operation`` are filled in by the retry policy
    once it gives up, so the final error says what was tried and how
    many times.
    """

    retryable: bool = True
    status_code: int | None = None

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        operation: str = "",
        attempts: int = 0,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.operation = operation
        self.attempts = attempts

    def __str__(self) -> str:
        if self.operation and self.attempts:
            return (
                f"{self.message} "
                f"({self.operation} failed after {self.attempts} "
                f"attempt{'s' if self.attempts != 1 else ''})"
            )
        return self.message


class RateLimitedError(UpstreamError):
    """Upstream reported its quota as exhausted (HTTP 429)."""

    status_code = 429


class AuthFailureError(UpstreamError):
    """Credentials were missing or rejected (HTTP 401)."""

    retryable = False
    status_code = 401


class ForbiddenError(AuthFailureError):
    """Credentials lack access to the resource (HTTP 403)."""

    status_code = 403


class NotFoundError(UpstreamError):
    """The requested resource does not exist (HTTP 404)."""

    retryable = False
    status_code = 404


class TransientError(UpstreamError):
    """Any other failure; worth another attempt after a short delay."""


_STATUS_CLASSES: dict[int, type[UpstreamError]] = {
    401: AuthFailureError,
    403: ForbiddenError,
    404: NotFoundError,
    429: RateLimitedError,
}


def classify_status(
    status_code: int,
    message: str = "",
    operation: str = "",
) -> UpstreamError:
    """Build the error matching an HTTP status code."""
    error_cls = _STATUS_CLASSES.get(status_code, TransientError)
    return error_cls(
        message or f"HTTP {status_code}",
        status_code=status_code,
        operation=operation,
    )


class StorageError(HarvestError):
    """The client-side key-value storage misbehaved."""


class StorageCorruptionError(StorageError):
    """A persisted payload could not be decoded."""


class StorageQuotaExceededError(StorageError):
    """A write would push the storage past its byte quota."""
