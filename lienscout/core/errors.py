"""
Error taxonomy for the ingestion/enrichment pipeline.

Fetch errors carry the source id so a failure can be attributed after it has
crossed the retry and circuit-breaker layers.
"""
from typing import List, Optional


class LienScoutError(Exception):
    """Base class for all pipeline errors."""


class ConfigError(LienScoutError):
    """Invalid pipeline configuration (YAML or settings)."""


class FetchError(LienScoutError):
    """A filing source could not be fetched."""

    retryable = False

    def __init__(self, message: str, source_id: str = "", status: Optional[int] = None):
        super().__init__(message)
        self.source_id = source_id
        self.status = status


class TransientFetchError(FetchError):
    """Network failure, timeout, HTTP 5xx or HTTP 429. Safe to retry."""

    retryable = True


class PermanentFetchError(FetchError):
    """HTTP 4xx other than 429. Retrying will not help."""

    retryable = False


class CircuitOpenError(FetchError):
    """The source is isolated by its circuit breaker; no call was attempted."""

    retryable = False

    def __init__(self, source_id: str, retry_after_seconds: float = 0.0):
        super().__init__(
            f"Circuit open for source {source_id} (retry in {retry_after_seconds:.1f}s)",
            source_id=source_id,
        )
        self.retry_after_seconds = retry_after_seconds


class RetryExhaustedError(FetchError):
    """Every retry attempt failed. Wraps the last underlying error."""

    def __init__(
        self,
        source_id: str,
        attempts: int,
        last_error: BaseException,
        attempt_errors: Optional[List[str]] = None,
    ):
        super().__init__(
            f"Failed after {attempts} attempt{'s' if attempts != 1 else ''}: {last_error}",
            source_id=source_id,
            status=getattr(last_error, "status", None),
        )
        self.attempts = attempts
        self.last_error = last_error
        self.attempt_errors = list(attempt_errors or [])
        self.retryable = getattr(last_error, "retryable", False)


class RecordValidationError(LienScoutError):
    """A malformed upstream record. Skipped, never retried."""

    def __init__(self, message: str, record: Optional[dict] = None):
        super().__init__(message)
        self.record = record


class PartialBatchFailure(LienScoutError):
    """
    Describes a batch where some items failed and others succeeded.
    Used as a summary value; ingestion and enrichment never raise it.
    """

    def __init__(self, failed: int, succeeded: int, errors: Optional[List[str]] = None):
        super().__init__(f"{failed} of {failed + succeeded} items failed")
        self.failed = failed
        self.succeeded = succeeded
        self.errors = list(errors or [])


def classify_http_status(status: int, source_id: str = "", detail: str = "") -> FetchError:
    """Map a non-2xx HTTP status to the matching fetch error."""
    message = f"HTTP error! status: {status}"
    if detail:
        message = f"{message} ({detail[:200]})"
    if status == 429 or status >= 500:
        return TransientFetchError(message, source_id=source_id, status=status)
    if 400 <= status < 500:
        return PermanentFetchError(message, source_id=source_id, status=status)
    return TransientFetchError(message, source_id=source_id, status=status)
