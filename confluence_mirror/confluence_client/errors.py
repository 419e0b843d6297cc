"""Typed exception hierarchy for Confluence-related errors.

This module defines the exceptions raised while reading from Confluence.
All exceptions inherit from MirrorError so callers can catch any
application-level error with a single clause. Fetch errors are split into
transient (retried) and permanent (never retried) families so the pipeline
can decide how to record a failed item.
"""

from typing import Optional


class MirrorError(Exception):
    """Base exception for all confluence-mirror errors.

    Use this to catch any application-level error from the mirror tool.
    """
    pass


class ConfluenceError(MirrorError):
    """Base exception for all Confluence-related errors."""
    pass


class InvalidCredentialsError(ConfluenceError):
    """Raised when API credentials are missing or authentication fails."""

    def __init__(self, user: str, endpoint: str):
        super().__init__(
            f"API key is invalid (user: {user}, endpoint: {endpoint})"
        )
        self.user = user
        self.endpoint = endpoint


class FetchError(ConfluenceError):
    """Base exception for failed remote reads.

    Attributes:
        operation: Description of the remote operation (e.g. "get_document(123)")
    """

    def __init__(self, message: str, operation: str = "unknown"):
        super().__init__(message)
        self.operation = operation


class TransientFetchError(FetchError):
    """Raised for a single failed attempt that is worth retrying.

    Covers timeouts, connection failures, HTTP 5xx and rate limiting (429).

    Attributes:
        status_code: HTTP status code if one was received
        retry_after_ms: Server supplied Retry-After hint in milliseconds
    """

    def __init__(
        self,
        message: str,
        operation: str = "unknown",
        status_code: Optional[int] = None,
        retry_after_ms: Optional[int] = None,
    ):
        super().__init__(message, operation)
        self.status_code = status_code
        self.retry_after_ms = retry_after_ms


class PermanentFetchError(FetchError):
    """Raised when a remote read fails in a way retrying cannot fix.

    Covers 4xx responses other than 429 and malformed responses.

    Attributes:
        status_code: HTTP status code if one was received
    """

    def __init__(
        self,
        message: str,
        operation: str = "unknown",
        status_code: Optional[int] = None,
    ):
        super().__init__(message, operation)
        self.status_code = status_code

    @property
    def is_permission_denied(self) -> bool:
        """True when the failure is an authorization refusal (401/403)."""
        return self.status_code in (401, 403)


class TransientFetchExhausted(FetchError):
    """Raised when a transient failure persisted for every allowed attempt."""

    def __init__(self, operation: str, attempts: int, last_error: Optional[Exception] = None):
        message = f"Confluence API failure during {operation} (after {attempts} attempts)"
        if last_error is not None:
            message += f": {last_error}"
        super().__init__(message, operation)
        self.attempts = attempts
        self.last_error = last_error


class FetchCancelledError(FetchError):
    """Raised when the run was cancelled while a fetch was backing off."""

    def __init__(self, operation: str):
        super().__init__(f"Fetch cancelled: {operation}", operation)


class TransformError(MirrorError):
    """Raised when a fetched document cannot be converted to markdown."""

    def __init__(self, message: str, remote_id: Optional[str] = None):
        if remote_id:
            message = f"Transform failed for {remote_id}: {message}"
        super().__init__(message)
        self.remote_id = remote_id
