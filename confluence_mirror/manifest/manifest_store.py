"""Persisted manifest and resume checkpoint.

The manifest (`manifest.yaml`) is the previous run's record of every item,
consumed by the next run to compute added/changed/unchanged/removed. The
checkpoint (`checkpoint.yaml`) journals the items an unfinished run
completed. Both are written atomically: content goes to a temporary file in
the same directory which then replaces the target, so a crash mid-write
leaves the previous file intact.

Manifest file structure:
    version: 1
    timestamp: "2024-01-15T10:30:00+00:00"
    space_key: "TEAM"
    root_page_id: "123456"
    entries:
      - id: "123456"
        kind: page
        title: Home
        path: Home.md
        hash: 3f2a9c0d1b4e
        version: 7
        status: unchanged
        parent_id: null
        error: null
"""

import hashlib
import logging
import os
import tempfile
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple, Union

import yaml

from confluence_mirror.discovery.models import DiscoveryItem, SourceEdge
from confluence_mirror.links.models import PendingReference
from confluence_mirror.models import ItemKind

from .errors import ManifestCorruptionError, ManifestPersistError
from .models import (
    MANIFEST_FORMAT_VERSION,
    Checkpoint,
    CheckpointRecord,
    EntryStatus,
    Manifest,
    ManifestEntry,
)

logger = logging.getLogger(__name__)

# Length of the truncated sha256 hex digest used as content hash
HASH_LENGTH = 12


def content_hash(content: Union[str, bytes]) -> str:
    """Return the truncated sha256 hex digest of some content.

    Example:
        >>> content_hash("hello")
        '2cf24dba5fb0'
    """
    if isinstance(content, str):
        content = content.encode('utf-8')
    return hashlib.sha256(content).hexdigest()[:HASH_LENGTH]


class ManifestStore:
    """Loads, diffs and atomically persists the manifest and checkpoint.

    Example:
        >>> store = ManifestStore("./confluence-export/.confluence-mirror")
        >>> prior = store.load()
        >>> status = ManifestStore.diff_status(prior.get(ItemKind.PAGE, "123"), "3f2a9c0d1b4e")
    """

    MANIFEST_FILE = 'manifest.yaml'
    CHECKPOINT_FILE = 'checkpoint.yaml'

    def __init__(self, state_dir: str):
        """Initialize the store.

        Args:
            state_dir: Directory holding manifest.yaml and checkpoint.yaml
        """
        self.state_dir = state_dir

    @property
    def manifest_path(self) -> str:
        return os.path.join(self.state_dir, self.MANIFEST_FILE)

    @property
    def checkpoint_path(self) -> str:
        return os.path.join(self.state_dir, self.CHECKPOINT_FILE)

    # ------------------------------------------------------------------
    # Manifest
    # ------------------------------------------------------------------

    def load(self) -> Manifest:
        """Load the previous run's manifest.

        A missing file is a fresh first run. An unreadable or malformed file
        is logged and treated the same way; it never fails the run.

        Returns:
            The prior Manifest (possibly empty)
        """
        try:
            data = self._read_yaml(self.manifest_path)
            if data is None:
                return Manifest()
            return self._parse_manifest(data)
        except ManifestCorruptionError as e:
            logger.warning(f"{e}; treating as no prior state")
            return Manifest()

    def persist(self, manifest: Manifest) -> None:
        """Write the full manifest atomically.

        Raises:
            ManifestPersistError: If the file cannot be written
        """
        manifest.timestamp = manifest.timestamp or _now()
        data = {
            'version': MANIFEST_FORMAT_VERSION,
            'timestamp': manifest.timestamp,
            'space_key': manifest.space_key,
            'root_page_id': manifest.root_page_id,
            'entries': [_entry_to_dict(entry) for entry in manifest.sorted_entries()],
        }
        self._atomic_write_yaml(self.manifest_path, data)
        logger.info(f"Persisted manifest with {len(manifest)} entries to {self.manifest_path}")

    @staticmethod
    def diff_status(prior: Optional[ManifestEntry], computed_hash: str) -> EntryStatus:
        """Compare a freshly computed content hash against the prior entry.

        Args:
            prior: Entry from the previous run, if any
            computed_hash: Hash of the content produced in this run

        Returns:
            ADDED when there is no usable prior entry, UNCHANGED when the hash
            matches, CHANGED otherwise
        """
        if prior is None or prior.status == EntryStatus.REMOVED or prior.hash is None:
            return EntryStatus.ADDED
        if prior.hash == computed_hash:
            return EntryStatus.UNCHANGED
        return EntryStatus.CHANGED

    @staticmethod
    def compute_removed(
        prior: Manifest,
        seen: Iterable[Tuple[ItemKind, str]],
    ) -> List[ManifestEntry]:
        """Return removed entries for prior items absent from this traversal.

        Prior entries already marked removed are not reported again.

        Args:
            prior: The previous run's manifest
            seen: Identities reached by the current traversal

        Returns:
            New entries with status REMOVED, in persisted order
        """
        seen_set: Set[Tuple[ItemKind, str]] = set(seen)
        removed = []
        for entry in prior.sorted_entries():
            if entry.key in seen_set or entry.status == EntryStatus.REMOVED:
                continue
            removed.append(ManifestEntry(
                id=entry.id,
                kind=entry.kind,
                title=entry.title,
                path=entry.path,
                hash=entry.hash,
                version=entry.version,
                status=EntryStatus.REMOVED,
                parent_id=entry.parent_id,
            ))
        return removed

    # ------------------------------------------------------------------
    # Checkpoint
    # ------------------------------------------------------------------

    def has_checkpoint(self) -> bool:
        return os.path.exists(self.checkpoint_path)

    def load_checkpoint(self) -> Optional[Checkpoint]:
        """Load the resume journal, or None if there is no usable one."""
        try:
            data = self._read_yaml(self.checkpoint_path)
            if data is None:
                return None
            return self._parse_checkpoint(data)
        except ManifestCorruptionError as e:
            logger.warning(f"{e}; ignoring checkpoint")
            return None

    def save_checkpoint(self, checkpoint: Checkpoint) -> None:
        """Write the resume journal atomically.

        Raises:
            ManifestPersistError: If the file cannot be written
        """
        checkpoint.timestamp = _now()
        data = {
            'version': MANIFEST_FORMAT_VERSION,
            'timestamp': checkpoint.timestamp,
            'space_key': checkpoint.space_key,
            'root_page_id': checkpoint.root_page_id,
            'fresh': checkpoint.fresh,
            'records': [_record_to_dict(record) for record in checkpoint.records],
        }
        self._atomic_write_yaml(self.checkpoint_path, data)
        logger.debug(f"Saved checkpoint with {len(checkpoint.records)} completed item(s)")

    def clear_checkpoint(self) -> None:
        """Delete the resume journal if it exists."""
        try:
            os.remove(self.checkpoint_path)
            logger.debug(f"Removed checkpoint {self.checkpoint_path}")
        except FileNotFoundError:
            pass
        except OSError as e:
            raise ManifestPersistError(self.checkpoint_path, str(e)) from e

    # ------------------------------------------------------------------
    # File helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _read_yaml(path: str) -> Optional[Dict[str, Any]]:
        """Read a YAML mapping; None for a missing or empty file.

        Raises:
            ManifestCorruptionError: If the file is unreadable or not a mapping
        """
        try:
            with open(path, 'r', encoding='utf-8') as f:
                content = f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise ManifestCorruptionError(path, str(e)) from e

        if not content.strip():
            return None

        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ManifestCorruptionError(path, f"Invalid YAML syntax: {e}") from e

        if not isinstance(data, dict):
            raise ManifestCorruptionError(
                path, f"expected a YAML dictionary, got {type(data).__name__}"
            )
        return data

    @staticmethod
    def _atomic_write_yaml(path: str, data: Dict[str, Any]) -> None:
        """Write YAML to a temp file in the target directory, then replace."""
        yaml_str = yaml.safe_dump(
            data,
            default_flow_style=False,
            allow_unicode=True,
            sort_keys=False,
        )
        directory = os.path.dirname(path) or '.'
        tmp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=directory, prefix=f".{os.path.basename(path)}.", suffix='.tmp'
            )
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(yaml_str)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except OSError as e:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise ManifestPersistError(path, str(e)) from e

    def _parse_manifest(self, data: Dict[str, Any]) -> Manifest:
        entries_raw = data.get('entries') or []
        if not isinstance(entries_raw, list):
            raise ManifestCorruptionError(self.manifest_path, "'entries' must be a list")

        manifest = Manifest(
            space_key=_optional_str(data.get('space_key')),
            root_page_id=_optional_str(data.get('root_page_id')),
            timestamp=_optional_str(data.get('timestamp')),
        )
        for i, raw in enumerate(entries_raw):
            try:
                manifest.add(_entry_from_dict(raw))
            except (KeyError, TypeError, ValueError) as e:
                raise ManifestCorruptionError(
                    self.manifest_path, f"invalid entry at index {i}: {e}"
                ) from e
        return manifest

    def _parse_checkpoint(self, data: Dict[str, Any]) -> Checkpoint:
        try:
            records = [_record_from_dict(raw) for raw in data.get('records') or []]
            return Checkpoint(
                space_key=str(data['space_key']),
                root_page_id=_optional_str(data.get('root_page_id')),
                fresh=bool(data.get('fresh', False)),
                timestamp=_optional_str(data.get('timestamp')),
                records=records,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ManifestCorruptionError(self.checkpoint_path, f"invalid checkpoint: {e}") from e


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec='seconds')


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _entry_to_dict(entry: ManifestEntry) -> Dict[str, Any]:
    return {
        'id': entry.id,
        'kind': entry.kind.value,
        'title': entry.title,
        'path': entry.path,
        'hash': entry.hash,
        'version': entry.version,
        'status': entry.status.value,
        'parent_id': entry.parent_id,
        'error': entry.error,
    }


def _entry_from_dict(raw: Dict[str, Any]) -> ManifestEntry:
    if not isinstance(raw, dict):
        raise TypeError(f"entry must be a dictionary, got {type(raw).__name__}")
    version = raw.get('version')
    return ManifestEntry(
        id=str(raw['id']),
        kind=ItemKind(raw.get('kind', ItemKind.PAGE.value)),
        title=str(raw.get('title') or ''),
        path=_optional_str(raw.get('path')),
        hash=_optional_str(raw.get('hash')),
        version=None if version is None else int(version),
        status=EntryStatus(raw.get('status', EntryStatus.EXPORTED.value)),
        parent_id=_optional_str(raw.get('parent_id')),
        error=_optional_str(raw.get('error')),
    )


def _record_to_dict(record: CheckpointRecord) -> Dict[str, Any]:
    return {
        'entry': _entry_to_dict(record.entry),
        'space_key': record.space_key,
        'discovered': [
            {
                'kind': item.kind.value,
                'remote_id': item.remote_id,
                'discovered_from': item.discovered_from,
                'source_edge': item.source_edge.value,
            }
            for item in record.discovered
        ],
        'pending_refs': [
            {
                'source_id': ref.source_id,
                'target_kind': ref.target_kind.value,
                'token': ref.token,
                'target_remote_id': ref.target_remote_id,
                'target_title': ref.target_title,
                'target_space': ref.target_space,
            }
            for ref in record.pending_refs
        ],
    }


def _record_from_dict(raw: Dict[str, Any]) -> CheckpointRecord:
    discovered = [
        DiscoveryItem(
            kind=ItemKind(item['kind']),
            remote_id=str(item['remote_id']),
            discovered_from=_optional_str(item.get('discovered_from')),
            source_edge=SourceEdge(item.get('source_edge', SourceEdge.RESUME.value)),
        )
        for item in raw.get('discovered') or []
    ]
    pending_refs = [
        PendingReference(
            source_id=str(ref['source_id']),
            target_kind=ItemKind(ref['target_kind']),
            token=str(ref['token']),
            target_remote_id=_optional_str(ref.get('target_remote_id')),
            target_title=_optional_str(ref.get('target_title')),
            target_space=_optional_str(ref.get('target_space')),
        )
        for ref in raw.get('pending_refs') or []
    ]
    return CheckpointRecord(
        entry=_entry_from_dict(raw['entry']),
        discovered=discovered,
        pending_refs=pending_refs,
        space_key=_optional_str(raw.get('space_key')),
    )
