"""Manifest of exported items and the resume checkpoint."""

from .errors import ManifestCorruptionError, ManifestError, ManifestPersistError
from .manifest_store import ManifestStore, content_hash
from .models import (
    Checkpoint,
    CheckpointRecord,
    EntryStatus,
    Manifest,
    ManifestEntry,
)

__all__ = [
    'Checkpoint',
    'CheckpointRecord',
    'EntryStatus',
    'Manifest',
    'ManifestCorruptionError',
    'ManifestEntry',
    'ManifestError',
    'ManifestPersistError',
    'ManifestStore',
    'content_hash',
]
