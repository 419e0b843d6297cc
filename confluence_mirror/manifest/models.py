"""Data models for the export manifest and the resume checkpoint.

The manifest records every item a run processed, with the status computed
against the previous run. The checkpoint is a journal of the items an
in-progress run completed, so an interrupted run can be resumed.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple

from confluence_mirror.discovery.models import DiscoveryItem
from confluence_mirror.links.models import PendingReference
from confluence_mirror.models import ItemKind, SpaceScope

MANIFEST_FORMAT_VERSION = 1


class EntryStatus(str, Enum):
    """Status of an item in the current run relative to the previous one."""
    EXPORTED = "exported"
    ADDED = "added"
    CHANGED = "changed"
    UNCHANGED = "unchanged"
    REMOVED = "removed"
    DENIED = "denied"
    SKIPPED = "skipped"
    FAILED = "failed"

    @property
    def is_success(self) -> bool:
        """True for statuses that mean the item's content is on disk."""
        return self in SUCCESS_STATUSES


SUCCESS_STATUSES = frozenset({
    EntryStatus.EXPORTED,
    EntryStatus.ADDED,
    EntryStatus.CHANGED,
    EntryStatus.UNCHANGED,
})


@dataclass
class ManifestEntry:
    """One processed item.

    Attributes:
        id: Remote ID
        kind: Item kind
        title: Page title, attachment filename or user display name
        path: Local path relative to the output directory (None if never written)
        hash: Content hash of the staged content (None if never written)
        version: Remote version number (None for user profiles)
        status: Status in this run
        parent_id: Parent page ID (owning page for attachments)
        error: One-line reason for denied/failed/skipped entries
    """
    id: str
    kind: ItemKind
    title: str = ""
    path: Optional[str] = None
    hash: Optional[str] = None
    version: Optional[int] = None
    status: EntryStatus = EntryStatus.EXPORTED
    parent_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def key(self) -> Tuple[ItemKind, str]:
        return (self.kind, self.id)


@dataclass
class Manifest:
    """The full entry set of one run plus the scope it was produced for.

    Example:
        >>> manifest = Manifest(space_key="TEAM")
        >>> manifest.add(ManifestEntry(id="123", kind=ItemKind.PAGE, title="Home"))
        >>> manifest.get(ItemKind.PAGE, "123").title
        'Home'
    """
    space_key: Optional[str] = None
    root_page_id: Optional[str] = None
    timestamp: Optional[str] = None
    entries: Dict[Tuple[ItemKind, str], ManifestEntry] = field(default_factory=dict)

    @property
    def scope(self) -> Optional[SpaceScope]:
        if not self.space_key:
            return None
        return SpaceScope(space_key=self.space_key, root_page_id=self.root_page_id)

    def add(self, entry: ManifestEntry) -> None:
        """Add or replace the entry for the entry's (kind, id)."""
        self.entries[entry.key] = entry

    def get(self, kind: ItemKind, remote_id: str) -> Optional[ManifestEntry]:
        return self.entries.get((kind, remote_id))

    def sorted_entries(self) -> List[ManifestEntry]:
        """Entries ordered by (kind, id), the persisted order."""
        return [self.entries[key] for key in sorted(self.entries, key=_sort_key)]

    def count(self, status: EntryStatus) -> int:
        return sum(1 for entry in self.entries.values() if entry.status == status)

    def __iter__(self) -> Iterator[ManifestEntry]:
        return iter(self.sorted_entries())

    def __len__(self) -> int:
        return len(self.entries)


@dataclass
class CheckpointRecord:
    """Journal record for one completed item.

    Holds what a resumed run needs to skip the item without fetching it:
    its manifest entry, the items it led to, and the references its staged
    content still carries.

    Attributes:
        entry: Manifest entry produced for the item
        discovered: Items enqueued because of this item
        pending_refs: Placeholders left in the item's staged content
        space_key: Space of a page, used to rebuild the title index
    """
    entry: ManifestEntry
    discovered: List[DiscoveryItem] = field(default_factory=list)
    pending_refs: List[PendingReference] = field(default_factory=list)
    space_key: Optional[str] = None


@dataclass
class Checkpoint:
    """Resume journal of an unfinished run.

    Attributes:
        space_key: Space of the interrupted run
        root_page_id: Root page of the interrupted run
        fresh: Whether the interrupted run ignored the previous manifest
        timestamp: When the checkpoint was written
        records: Completed items in completion order
    """
    space_key: str
    root_page_id: Optional[str] = None
    fresh: bool = False
    timestamp: Optional[str] = None
    records: List[CheckpointRecord] = field(default_factory=list)

    @property
    def scope(self) -> SpaceScope:
        return SpaceScope(space_key=self.space_key, root_page_id=self.root_page_id)


def _sort_key(key: Tuple[ItemKind, str]) -> Tuple[str, int, str]:
    kind, remote_id = key
    # Numeric IDs sort numerically, others lexically after them
    if remote_id.isdigit():
        return (kind.value, 0, remote_id.zfill(20))
    return (kind.value, 1, remote_id)
