"""Retry logic with exponential backoff and jitter for Confluence reads.

This module provides the RetryableFetchClient that every remote read goes
through. Failures are classified as transient (timeouts, connection errors,
HTTP 5xx, 429 rate limits) or permanent (other 4xx, malformed responses).
Transient failures are retried with capped exponential backoff and jitter;
permanent failures fail fast.

The delay computation is kept as pure functions so it can be tested without
sleeping. Waiting is done on the run-level cancellation event, so cancelling
a run aborts any backoff immediately.
"""

import logging
import random
import threading
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from atlassian.errors import ApiNotFoundError, ApiPermissionError
from requests.exceptions import ConnectionError, Timeout

from .errors import (
    FetchCancelledError,
    FetchError,
    PermanentFetchError,
    TransientFetchError,
    TransientFetchExhausted,
)

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff settings.

    Attributes:
        max_attempts: Total attempts including the first one
        base_delay_ms: Delay before the second attempt
        max_delay_ms: Upper bound for any single delay
        jitter_ratio: Fraction (0..1) of the delay used as +/- random jitter
    """
    max_attempts: int = 5
    base_delay_ms: int = 500
    max_delay_ms: int = 30_000
    jitter_ratio: float = 0.2

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay_ms < 0 or self.max_delay_ms < 0:
            raise ValueError("retry delays cannot be negative")
        if not 0 <= self.jitter_ratio <= 1:
            raise ValueError("jitter_ratio must be between 0 and 1")


def compute_backoff_delay(attempt: int, base_delay_ms: int, max_delay_ms: int) -> int:
    """Return the un-jittered delay after the given (1-based) attempt.

    Example:
        >>> [compute_backoff_delay(a, 500, 3000) for a in (1, 2, 3, 4)]
        [500, 1000, 2000, 3000]
    """
    return min(max_delay_ms, base_delay_ms * 2 ** (attempt - 1))


def compute_retry_delay(
    attempt: int,
    policy: RetryPolicy,
    retry_after_ms: Optional[int] = None,
    rand: Callable[[], float] = random.random,
) -> int:
    """Return the jittered delay in milliseconds before the next attempt.

    A server supplied Retry-After hint replaces the exponential value but is
    still capped by max_delay_ms. The result is clamped to [0, max_delay_ms].

    Args:
        attempt: The attempt that just failed (1-based)
        policy: Retry policy
        retry_after_ms: Optional Retry-After hint
        rand: Source of uniform randomness in [0, 1)
    """
    delay = compute_backoff_delay(attempt, policy.base_delay_ms, policy.max_delay_ms)
    if retry_after_ms is not None and retry_after_ms >= 0:
        delay = min(retry_after_ms, policy.max_delay_ms)
    if policy.jitter_ratio > 0:
        delta = (rand() * 2 - 1) * delay * policy.jitter_ratio
        delay = max(0, min(policy.max_delay_ms, round(delay + delta)))
    return int(delay)


def classify_error(exception: Exception, operation: str) -> FetchError:
    """Classify a raw exception as a transient or permanent fetch error.

    Already classified errors are returned unchanged.

    Args:
        exception: The exception raised by the remote call
        operation: Description of the remote operation

    Returns:
        TransientFetchError or PermanentFetchError
    """
    if isinstance(exception, (TransientFetchError, PermanentFetchError)):
        return exception

    if isinstance(exception, (Timeout, ConnectionError)):
        return TransientFetchError(f"Network failure: {exception}", operation)

    status_code = _status_code_of(exception)

    # atlassian-python-api reports some 403/404 responses with its own types
    if status_code is None and isinstance(exception, ApiPermissionError):
        status_code = 403
    if status_code is None and isinstance(exception, ApiNotFoundError):
        status_code = 404

    if status_code is not None:
        if status_code == 429 or status_code >= 500:
            return TransientFetchError(
                f"HTTP {status_code} during {operation}",
                operation,
                status_code=status_code,
                retry_after_ms=_retry_after_ms(exception),
            )
        if 400 <= status_code < 500:
            return PermanentFetchError(
                f"HTTP {status_code} during {operation}",
                operation,
                status_code=status_code,
            )

    if _is_rate_limit_error(exception):
        return TransientFetchError(f"Rate limited during {operation}", operation, status_code=429)

    error_msg = str(exception).lower()
    if any(keyword in error_msg for keyword in ('timed out', 'timeout', 'connection reset')):
        return TransientFetchError(f"Network failure: {exception}", operation)

    # Malformed responses and anything unrecognized fail fast
    return PermanentFetchError(f"{type(exception).__name__}: {exception}", operation)


class RetryableFetchClient:
    """Runs idempotent remote reads with bounded, cancellable retries.

    Example:
        >>> cancel = threading.Event()
        >>> client = RetryableFetchClient(RetryPolicy(max_attempts=3), cancel)
        >>> page = client.fetch(lambda: api.get_page_by_id("123"), "get_document(123)")
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        cancel_event: Optional[threading.Event] = None,
        rand: Callable[[], float] = random.random,
    ):
        """Initialize the fetch client.

        Args:
            policy: Retry policy (defaults to RetryPolicy())
            cancel_event: Run-level cancellation event shared with the pipeline
            rand: Randomness source for jitter (injectable for tests)
        """
        self.policy = policy or RetryPolicy()
        self._cancel_event = cancel_event or threading.Event()
        self._rand = rand

    def fetch(self, operation: Callable[[], T], description: str = "remote read") -> T:
        """Execute a remote read, retrying transient failures.

        Args:
            operation: Zero-argument callable performing one idempotent read
            description: Operation description used in errors and logs

        Returns:
            The value returned by the operation

        Raises:
            PermanentFetchError: On the first permanent failure
            TransientFetchExhausted: When every attempt failed transiently
            FetchCancelledError: When the run was cancelled before or during backoff
        """
        attempt = 1
        while True:
            if self._cancel_event.is_set():
                raise FetchCancelledError(description)

            try:
                return operation()
            except (PermanentFetchError, FetchCancelledError):
                raise
            except Exception as e:
                error = classify_error(e, description)
                if isinstance(error, PermanentFetchError):
                    if error is e:
                        raise
                    raise error from e

                if attempt >= self.policy.max_attempts:
                    logger.error(
                        f"{description} still failing after {attempt} attempts, giving up"
                    )
                    raise TransientFetchExhausted(description, attempt, error) from e

                delay_ms = compute_retry_delay(
                    attempt, self.policy, getattr(error, 'retry_after_ms', None), self._rand
                )
                logger.info(
                    f"Transient failure during {description} ({error}), "
                    f"retrying in {delay_ms}ms (attempt {attempt + 1}/{self.policy.max_attempts})"
                )
                if self._wait(delay_ms / 1000.0):
                    raise FetchCancelledError(description)
                attempt += 1

    def _wait(self, seconds: float) -> bool:
        """Block for the backoff delay; return True if the run was cancelled."""
        return self._cancel_event.wait(seconds)


def _status_code_of(exception: Exception) -> Optional[int]:
    """Extract an HTTP status code from common exception shapes."""
    status_code = getattr(exception, 'status_code', None)
    if isinstance(status_code, int):
        return status_code

    response = getattr(exception, 'response', None)
    if response is not None:
        status_code = getattr(response, 'status_code', None)
        if isinstance(status_code, int):
            return status_code

    # atlassian-python-api wraps the original HTTPError in `reason`
    reason = getattr(exception, 'reason', None)
    if isinstance(reason, Exception) and reason is not exception:
        return _status_code_of(reason)
    return None


def _retry_after_ms(exception: Exception) -> Optional[int]:
    """Read a Retry-After header (in seconds) from the exception's response."""
    response = getattr(exception, 'response', None)
    headers = getattr(response, 'headers', None)
    if not headers:
        return None
    value = headers.get('Retry-After')
    if value is None:
        return None
    try:
        return int(float(value) * 1000)
    except (TypeError, ValueError):
        return None


def _is_rate_limit_error(exception: Exception) -> bool:
    """Check if an exception message describes a rate limit (429) error.

    Checks for specific rate limit phrases, not just "rate limit", which
    could appear in other error messages (e.g., "Not a rate limit error").
    """
    error_msg = str(exception).lower()
    rate_limit_patterns = [
        '429',
        'too many requests',
        'rate limit exceeded',
        'rate limit hit',
        'rate limited',
    ]
    return any(pattern in error_msg for pattern in rate_limit_patterns)
