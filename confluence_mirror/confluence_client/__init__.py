"""Confluence client library for the mirror.

This package wraps the Confluence Cloud REST API behind a small set of
idempotent reads, each routed through a retrying fetch client.
"""

from .errors import (
    MirrorError,
    ConfluenceError,
    InvalidCredentialsError,
    FetchError,
    TransientFetchError,
    PermanentFetchError,
    TransientFetchExhausted,
    FetchCancelledError,
    TransformError,
)
from .retry_logic import RetryPolicy, RetryableFetchClient

__all__ = [
    "MirrorError",
    "ConfluenceError",
    "InvalidCredentialsError",
    "FetchError",
    "TransientFetchError",
    "PermanentFetchError",
    "TransientFetchExhausted",
    "FetchCancelledError",
    "TransformError",
    "RetryPolicy",
    "RetryableFetchClient",
]
