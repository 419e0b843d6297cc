"""Mapping of remote items onto the local output tree.

This package decides where each mirrored item lives locally and performs
the staged, atomic writes into the output directory.
"""

from .content_store import ContentStore
from .errors import FileMapperError, StorageError, UnsafePathError
from .filesafe_converter import FilesafeConverter
from .path_allocator import (
    IdPathMap,
    attachment_path,
    page_path,
    relative_link,
    user_path,
)

__all__ = [
    'ContentStore',
    'FileMapperError',
    'FilesafeConverter',
    'IdPathMap',
    'StorageError',
    'UnsafePathError',
    'attachment_path',
    'page_path',
    'relative_link',
    'user_path',
]
