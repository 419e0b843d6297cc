"""Data models for the export pipeline.

This module defines the run options, the ExportJob aggregate shared by the
workers of one run, run counters, structured progress events and the run
result.
"""

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, NamedTuple, Optional, Tuple

from confluence_mirror.discovery import DiscoveryItem, DiscoveryQueue, QueueStats
from confluence_mirror.file_mapper import IdPathMap
from confluence_mirror.links.models import BrokenReference, PendingReference
from confluence_mirror.manifest import CheckpointRecord, EntryStatus, Manifest, ManifestEntry
from confluence_mirror.models import ItemKind, SpaceScope

from .thresholds import FailureThreshold


class RunMode(str, Enum):
    """How a run treats the previous manifest and an unfinished checkpoint."""
    NORMAL = "normal"
    RESUME = "resume"
    FRESH = "fresh"


class Phase(str, Enum):
    """Run phases reported through phase-transition events."""
    DISCOVERY = "discovery"
    RESOLUTION = "resolution"
    PERSIST = "persist"
    COMPLETE = "complete"


class EventType(str, Enum):
    ITEM_STARTED = "item-started"
    ITEM_COMPLETED = "item-completed"
    ITEM_FAILED = "item-failed"
    PHASE_TRANSITION = "phase-transition"


@dataclass(frozen=True)
class PipelineEvent:
    """Structured progress event; the pipeline never formats output itself.

    Attributes:
        type: Event type
        item: Item the event is about (item events only)
        status: Resulting entry status (completed/failed events)
        phase: New phase (phase-transition events only)
        message: Error text for failed items, detail otherwise
        stats: Queue counters at the time of the event
    """
    type: EventType
    item: Optional[DiscoveryItem] = None
    status: Optional[EntryStatus] = None
    phase: Optional[Phase] = None
    message: Optional[str] = None
    stats: Optional[QueueStats] = None


EventSink = Callable[[PipelineEvent], None]


@dataclass
class ExportOptions:
    """Run-level settings for one export.

    Attributes:
        scope: Space and optional root page to mirror
        concurrency: Number of worker threads
        limit: Maximum number of pages to export (None for no limit)
        checkpoint_interval: Completed items between checkpoint saves
        mode: Normal, resume or fresh run
        follow_links: Enqueue pages referenced from page content
        include_attachments: Download page attachments
        include_users: Export profiles of mentioned users
        threshold: Failure threshold deciding when the run has failed
        dry_run: Plan the export without writing files, checkpoints or the manifest
    """
    scope: SpaceScope
    concurrency: int = 4
    limit: Optional[int] = None
    checkpoint_interval: int = 25
    mode: RunMode = RunMode.NORMAL
    follow_links: bool = True
    include_attachments: bool = True
    include_users: bool = True
    threshold: FailureThreshold = field(default_factory=FailureThreshold)
    dry_run: bool = False

    def __post_init__(self) -> None:
        if self.concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if self.limit is not None and self.limit < 0:
            raise ValueError("limit cannot be negative")
        if self.checkpoint_interval < 1:
            raise ValueError("checkpoint_interval must be at least 1")
        if self.dry_run and self.mode == RunMode.RESUME:
            raise ValueError("a dry run cannot resume an unfinished export")


@dataclass
class RunCounters:
    """Counts of terminated items by status.

    Attributes:
        by_status: Items per entry status
        restored: Items restored from a checkpoint instead of processed
    """
    by_status: Dict[EntryStatus, int] = field(default_factory=dict)
    restored: int = 0

    def record(self, status: EntryStatus) -> None:
        self.by_status[status] = self.by_status.get(status, 0) + 1

    def get(self, status: EntryStatus) -> int:
        return self.by_status.get(status, 0)

    @property
    def processed(self) -> int:
        return sum(self.by_status.values())

    @property
    def failed(self) -> int:
        return self.get(EntryStatus.FAILED)

    @property
    def denied(self) -> int:
        return self.get(EntryStatus.DENIED)

    @property
    def failure_ratio(self) -> float:
        return self.failed / self.processed if self.processed else 0.0


@dataclass
class ItemOutcome:
    """What processing one item produced.

    Attributes:
        entry: Manifest entry for the item
        discovered: Items to enqueue because of this item
        pending_refs: Placeholders left in the staged content
        space_key: Space of a page, for the title index
        journal: Whether a resumed run may skip this item
    """
    entry: ManifestEntry
    discovered: List[DiscoveryItem] = field(default_factory=list)
    pending_refs: List[PendingReference] = field(default_factory=list)
    space_key: Optional[str] = None
    journal: bool = True


class RecordedOutcome(NamedTuple):
    """Run state right after an outcome was recorded, read under the job lock."""
    checkpoint_due: bool
    failed: int
    processed: int


class ExportJob:
    """Aggregate root owned by one Pipeline run.

    Holds the discovery queue (and its visited set), the baseline manifest,
    the accumulating entries, the id -> path map, pending references, the
    checkpoint journal, run counters and the cancellation event. Mutations of
    shared state go through the narrow locks kept here.
    """

    def __init__(
        self,
        options: ExportOptions,
        prior: Manifest,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.options = options
        self.scope = options.scope
        self.prior = prior
        self.fresh = options.mode == RunMode.FRESH
        self.queue = DiscoveryQueue()
        self.cancel_event = cancel_event or threading.Event()
        self.manifest = Manifest(space_key=self.scope.space_key, root_page_id=self.scope.root_page_id)
        self.paths = IdPathMap(reserved=_reserved_paths(prior))
        self.pending_refs: List[PendingReference] = []
        self.journal: List[CheckpointRecord] = []
        self.counters = RunCounters()
        self.broken_references: List[BrokenReference] = []
        self.abort_reason: Optional[str] = None
        self.fatal_error: Optional[BaseException] = None
        self.limit_reached = False

        self._lock = threading.Lock()
        self._pages_claimed = 0
        self._since_checkpoint = 0

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def claim_page_slot(self) -> bool:
        """Reserve one page against the limit; False once the limit is reached."""
        with self._lock:
            limit = self.options.limit
            if limit is not None and self._pages_claimed >= limit:
                self.limit_reached = True
                return False
            self._pages_claimed += 1
            return True

    def record_outcome(self, outcome: ItemOutcome) -> RecordedOutcome:
        """Add an item's outcome to the run state.

        Returns:
            Whether a checkpoint is due, with the failure counts at that point
        """
        with self._lock:
            self.manifest.add(outcome.entry)
            self.counters.record(outcome.entry.status)
            self.pending_refs.extend(outcome.pending_refs)
            if outcome.journal:
                self.journal.append(CheckpointRecord(
                    entry=outcome.entry,
                    discovered=list(outcome.discovered),
                    pending_refs=list(outcome.pending_refs),
                    space_key=outcome.space_key,
                ))
                self._since_checkpoint += 1
            checkpoint_due = self._since_checkpoint >= self.options.checkpoint_interval
            if checkpoint_due:
                self._since_checkpoint = 0
            return RecordedOutcome(checkpoint_due, self.counters.failed, self.counters.processed)

    def restore(self, record: CheckpointRecord) -> None:
        """Re-apply a journal record of an interrupted run."""
        entry = record.entry
        with self._lock:
            self.manifest.add(entry)
            self.counters.record(entry.status)
            self.counters.restored += 1
            self.pending_refs.extend(record.pending_refs)
            self.journal.append(record)
            if entry.kind == ItemKind.PAGE:
                self._pages_claimed += 1

    def snapshot_journal(self) -> List[CheckpointRecord]:
        with self._lock:
            return list(self.journal)

    def abort(self, reason: str) -> None:
        """Declare the run failed and stop handing out work."""
        with self._lock:
            if self.abort_reason is None:
                self.abort_reason = reason
        self.cancel()

    def fail(self, error: BaseException) -> None:
        """Record an error that makes the run's output untrustworthy."""
        with self._lock:
            if self.fatal_error is None:
                self.fatal_error = error
        self.cancel()

    def cancel(self) -> None:
        self.cancel_event.set()
        self.queue.close()


@dataclass
class RunResult:
    """Outcome of a completed run.

    Attributes:
        manifest: The persisted manifest
        counters: Item counts by status
        broken_references: References rewritten to the broken marker
        removed: Entries removed since the previous run
        carried_forward: Prior entries kept because removal was not decided
        dry_run: Nothing was written; statuses and paths are the plan
    """
    manifest: Manifest
    counters: RunCounters
    broken_references: List[BrokenReference] = field(default_factory=list)
    removed: List[ManifestEntry] = field(default_factory=list)
    carried_forward: int = 0
    dry_run: bool = False


def _reserved_paths(prior: Manifest) -> Dict[Tuple[ItemKind, str], str]:
    return {
        entry.key: entry.path
        for entry in prior.entries.values()
        if entry.path and entry.status != EntryStatus.REMOVED
    }
