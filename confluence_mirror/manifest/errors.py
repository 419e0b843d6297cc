"""Typed exceptions for manifest and checkpoint persistence."""

from typing import Optional

from confluence_mirror.confluence_client.errors import MirrorError


class ManifestError(MirrorError):
    """Base exception for all manifest errors."""
    pass


class ManifestCorruptionError(ManifestError):
    """Raised when a persisted manifest or checkpoint cannot be parsed.

    Never fatal: callers treat the file as absent.
    """

    def __init__(self, file_path: str, reason: str):
        super().__init__(f"Manifest file {file_path} is unreadable: {reason}")
        self.file_path = file_path
        self.reason = reason


class ManifestPersistError(ManifestError):
    """Raised when a manifest or checkpoint cannot be written.

    Fatal to the run: without a persisted manifest the output cannot be
    trusted as resumable.
    """

    def __init__(self, file_path: str, reason: Optional[str] = None):
        message = f"Failed to persist {file_path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.file_path = file_path
        self.reason = reason
