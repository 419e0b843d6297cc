"""Typed exceptions for local file and path handling."""

from typing import Optional

from confluence_mirror.confluence_client.errors import MirrorError


class FileMapperError(MirrorError):
    """Base exception for all file mapper errors."""
    pass


class StorageError(FileMapperError):
    """Raised when a filesystem operation on the output tree fails."""

    def __init__(self, file_path: str, operation: str, reason: Optional[str] = None):
        message = f"Filesystem operation '{operation}' failed for {file_path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.file_path = file_path
        self.operation = operation
        self.reason = reason


class UnsafePathError(StorageError):
    """Raised when a path would resolve outside the output directory."""

    def __init__(self, file_path: str, root: str):
        super().__init__(file_path, 'resolve', f"path escapes output directory {root}")
        self.root = root
