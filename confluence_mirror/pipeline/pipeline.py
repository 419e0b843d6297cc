"""Export pipeline: concurrent discovery, staging, link resolution, manifest.

A run proceeds in two phases separated by a join barrier:

1. Discovery. A fixed pool of workers drains the DiscoveryQueue. Each item is
   fetched, converted, given its local path, and staged with placeholder
   tokens; the items it references are enqueued and its manifest entry is
   recorded. Completed items are journaled into a periodic checkpoint.
2. Resolution. Once the queue is quiescent, the LinkResolver rewrites every
   placeholder using the complete id -> path map, documents are finalized,
   removed items are reconciled, and the manifest is persisted atomically.

Per-item failures become denied/failed entries. The run itself fails only
when the failure threshold is exceeded or the manifest cannot be persisted;
in every abort path the checkpoint is written so the run can be resumed.

A dry run goes through the same traversal and diff but writes nothing: no
staging, checkpoint, finalized document, deletion or manifest. Its RunResult
carries the planned statuses and paths.
"""

import logging
import threading
from typing import List, Optional, Tuple

from confluence_mirror.confluence_client.errors import FetchCancelledError
from confluence_mirror.content_converter import MarkdownConverter
from confluence_mirror.discovery import DiscoveryItem, SourceEdge
from confluence_mirror.file_mapper import ContentStore, StorageError
from confluence_mirror.links import LinkResolver
from confluence_mirror.manifest import (
    Checkpoint,
    EntryStatus,
    Manifest,
    ManifestEntry,
    ManifestPersistError,
    ManifestStore,
)
from confluence_mirror.models import ItemKind

from .errors import RunCancelledError, RunFailedError
from .item_processor import ItemProcessor, RemoteSource
from .models import (
    EventSink,
    EventType,
    ExportJob,
    ExportOptions,
    Phase,
    PipelineEvent,
    RunMode,
    RunResult,
)
from .resume_guard import ResumeGuard
from .worker_pool import WorkerPool

logger = logging.getLogger(__name__)


class Pipeline:
    """Drives one export run to completion.

    Example:
        >>> pipeline = Pipeline(api, ContentStore(out), ManifestStore(state_dir), options)
        >>> result = pipeline.run()
        >>> result.counters.get(EntryStatus.ADDED)
        3
    """

    def __init__(
        self,
        source: RemoteSource,
        store: ContentStore,
        manifest_store: ManifestStore,
        options: ExportOptions,
        converter: Optional[MarkdownConverter] = None,
        event_sink: Optional[EventSink] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        """Initialize the pipeline.

        Args:
            source: Remote source; its reads should share cancel_event
            store: Storage collaborator for the output directory
            manifest_store: Manifest and checkpoint persistence
            options: Run options
            converter: Transform collaborator (default MarkdownConverter())
            event_sink: Receiver of structured progress events
            cancel_event: Run-level cancellation event
        """
        self._source = source
        self._store = store
        self._manifest_store = manifest_store
        self.options = options
        self._converter = converter or MarkdownConverter()
        self._event_sink = event_sink
        self._cancel_event = cancel_event or threading.Event()
        self._event_lock = threading.Lock()
        self._checkpoint_lock = threading.Lock()
        self.job: Optional[ExportJob] = None

    def cancel(self) -> None:
        """Request cancellation: backoff waits and blocked dequeues return promptly."""
        logger.info("Cancellation requested; draining workers")
        self._cancel_event.set()
        if self.job is not None:
            self.job.queue.close()

    def run(self) -> RunResult:
        """Run the export.

        Returns:
            RunResult with the persisted manifest

        Raises:
            ResumeRequiredError: If an unfinished run exists and no mode was chosen
            RunFailedError: If the failure threshold was exceeded
            RunCancelledError: If the run was cancelled
            ManifestPersistError: If the manifest or checkpoint cannot be written
            FetchError: If the scope listing itself cannot be fetched
        """
        options = self.options
        if options.dry_run:
            # Planning leaves an unfinished run's checkpoint and staging alone
            checkpoint = None
            if self._manifest_store.has_checkpoint():
                logger.info("Dry run: ignoring the checkpoint of an unfinished export")
        else:
            checkpoint = ResumeGuard(self._manifest_store).check(options.mode, options.scope)
        fresh = options.mode == RunMode.FRESH or (checkpoint is not None and checkpoint.fresh)
        prior = Manifest() if fresh else self._manifest_store.load()

        job = ExportJob(options, prior, self._cancel_event)
        job.fresh = fresh
        self.job = job
        if self._cancel_event.is_set():
            job.queue.close()

        if checkpoint is not None:
            self._restore(job, checkpoint)
        elif not options.dry_run:
            self._store.clear_staging()

        self._emit_phase(Phase.DISCOVERY)
        try:
            self._seed(job)
        except FetchCancelledError:
            job.cancel()

        processor = ItemProcessor(job, self._source, self._store, self._converter)
        WorkerPool(options.concurrency, lambda index: self._worker_loop(job, processor)).run()

        self._check_run_state(job)

        self._emit_phase(Phase.RESOLUTION)
        self._resolve_and_finalize(job)
        removed, carried_forward = self._reconcile_removed(job)

        if not options.dry_run:
            self._emit_phase(Phase.PERSIST)
            try:
                self._manifest_store.persist(job.manifest)
            except ManifestPersistError:
                self._save_checkpoint_after_abort(job)
                raise
            self._manifest_store.clear_checkpoint()
            self._store.clear_staging()

        self._emit_phase(Phase.COMPLETE)
        logger.info(
            f"{'Dry run' if options.dry_run else 'Export'} complete: {job.counters.processed} item(s), "
            f"{job.counters.failed} failed, {job.counters.denied} denied"
        )
        return RunResult(
            manifest=job.manifest,
            counters=job.counters,
            broken_references=job.broken_references,
            removed=removed,
            carried_forward=carried_forward,
            dry_run=options.dry_run,
        )

    # ------------------------------------------------------------------
    # Phase 1: discovery
    # ------------------------------------------------------------------

    def _restore(self, job: ExportJob, checkpoint: Checkpoint) -> None:
        """Re-apply an interrupted run's journal before any new work."""
        for record in checkpoint.records:
            entry = record.entry
            job.queue.restore_completed(DiscoveryItem(entry.kind, entry.id, source_edge=SourceEdge.RESUME))
            if entry.path and entry.status.is_success:
                job.paths.restore(entry.kind, entry.id, entry.path)
                if entry.kind == ItemKind.PAGE and record.space_key:
                    job.paths.record_title(record.space_key, entry.title, entry.id)
            job.restore(record)

        # Enqueue after every restoration so completed items are not re-enqueued
        for record in checkpoint.records:
            for item in record.discovered:
                job.queue.enqueue(item)

        logger.info(f"Restored {len(checkpoint.records)} item(s) from checkpoint")

    def _seed(self, job: ExportJob) -> None:
        ids = self._source.list_children(job.scope)
        logger.info(f"Scope listing returned {len(ids)} page(s)")
        for page_id in ids:
            job.queue.enqueue(DiscoveryItem(ItemKind.PAGE, page_id, None, SourceEdge.LISTING))

    def _worker_loop(self, job: ExportJob, processor: ItemProcessor) -> None:
        while True:
            item = job.queue.dequeue()
            if item is None:
                return
            try:
                self._process_item(job, processor, item)
            except Exception as e:
                logger.exception(f"Unexpected error processing {item.kind.value} {item.remote_id}")
                job.fail(e)
            finally:
                job.queue.task_done(item)

    def _process_item(self, job: ExportJob, processor: ItemProcessor, item: DiscoveryItem) -> None:
        if job.cancelled:
            return

        self._emit(EventType.ITEM_STARTED, item=item)
        try:
            outcome = processor.process(item)
        except FetchCancelledError:
            logger.debug(f"Fetch of {item.kind.value} {item.remote_id} cancelled")
            return

        # Discoveries go in before task_done so quiescence cannot be reached early
        for discovered in outcome.discovered:
            job.queue.enqueue(discovered)

        recorded = job.record_outcome(outcome)
        entry = outcome.entry
        if entry.status in (EntryStatus.FAILED, EntryStatus.DENIED):
            self._emit(EventType.ITEM_FAILED, item=item, status=entry.status, message=entry.error)
        else:
            self._emit(EventType.ITEM_COMPLETED, item=item, status=entry.status)

        reason = job.options.threshold.check(recorded.failed, recorded.processed)
        if reason:
            logger.error(f"Failure threshold exceeded: {reason}")
            job.abort(reason)

        if recorded.checkpoint_due:
            self._save_checkpoint(job)

    def _check_run_state(self, job: ExportJob) -> None:
        """Raise for a run that must not proceed to resolution."""
        if job.fatal_error is not None:
            self._save_checkpoint_after_abort(job)
            raise job.fatal_error

        if job.abort_reason is None and not job.cancelled:
            job.abort_reason = job.options.threshold.check(
                job.counters.failed, job.counters.processed, final=True
            )

        if job.abort_reason is not None:
            self._save_checkpoint_after_abort(job)
            raise RunFailedError(job.abort_reason, job.counters.failed, job.counters.processed)

        if job.cancelled:
            self._save_checkpoint(job)
            raise RunCancelledError(
                completed=len(job.snapshot_journal()),
                checkpoint_path=None if job.options.dry_run else self._manifest_store.checkpoint_path,
            )

    # ------------------------------------------------------------------
    # Phase 2: resolution
    # ------------------------------------------------------------------

    def _resolve_and_finalize(self, job: ExportJob) -> None:
        resolver = LinkResolver(self._store)
        if job.options.dry_run:
            job.broken_references = resolver.check(job.pending_refs, job.paths)
            return

        rewritten = resolver.resolve(job.pending_refs, job.paths)
        job.broken_references = resolver.broken_references

        for entry in job.manifest.sorted_entries():
            if entry.kind == ItemKind.ATTACHMENT or not entry.status.is_success or not entry.path:
                continue
            try:
                content = rewritten.get(entry.id) if entry.kind == ItemKind.PAGE else None
                if content is None:
                    content = self._store.read_staged(entry.path)
                self._store.finalize(entry.path, content)
            except StorageError as e:
                logger.error(f"Failed to write {entry.path}: {e}")
                self._mark_failed(job, entry, str(e))
                continue
            self._remove_moved(job, entry)

        for entry in job.manifest.sorted_entries():
            if entry.kind == ItemKind.ATTACHMENT and entry.status.is_success:
                self._remove_moved(job, entry)

    def _mark_failed(self, job: ExportJob, entry: ManifestEntry, error: str) -> None:
        prior = None if job.fresh else job.prior.get(entry.kind, entry.id)
        job.counters.by_status[entry.status] -= 1
        job.counters.record(EntryStatus.FAILED)
        entry.status = EntryStatus.FAILED
        entry.error = error
        entry.path = prior.path if prior else None
        entry.hash = prior.hash if prior else None

    def _remove_moved(self, job: ExportJob, entry: ManifestEntry) -> None:
        """Delete the previous file of an item whose path changed."""
        prior = None if job.fresh else job.prior.get(entry.kind, entry.id)
        if prior is None or not prior.path or prior.path == entry.path:
            return
        if job.paths.owner_of(prior.path) is not None:
            return
        try:
            if self._store.remove(prior.path):
                logger.info(f"Moved {entry.kind.value} {entry.id}: {prior.path} -> {entry.path}")
        except StorageError as e:
            logger.warning(f"Could not remove old file {prior.path}: {e}")

    def _reconcile_removed(self, job: ExportJob) -> Tuple[List[ManifestEntry], int]:
        """Mark prior items the traversal did not reach as removed.

        Removal is only decided when the previous manifest covers the same
        scope and no item was skipped by the limit; otherwise the unseen
        prior entries are carried forward unchanged.
        """
        prior = job.prior
        if job.fresh or not prior.entries:
            return [], 0

        unseen = [
            entry for entry in prior.sorted_entries()
            if entry.key not in job.manifest.entries and entry.status != EntryStatus.REMOVED
        ]
        if not unseen:
            return [], 0

        if prior.scope != job.scope or job.limit_reached:
            logger.warning(
                f"{len(unseen)} previously exported item(s) were not reached; "
                "keeping their entries because the scope changed or the run was limited"
            )
            for entry in unseen:
                job.manifest.add(entry)
            return [], len(unseen)

        removed = ManifestStore.compute_removed(prior, job.manifest.entries.keys())
        for entry in removed:
            job.manifest.add(entry)
            job.counters.record(EntryStatus.REMOVED)
            if job.options.dry_run:
                continue
            if entry.path and job.paths.owner_of(entry.path) is None:
                try:
                    self._store.remove(entry.path)
                except StorageError as e:
                    logger.warning(f"Could not remove {entry.path}: {e}")
        logger.info(f"{len(removed)} item(s) removed since the previous export")
        return removed, 0

    # ------------------------------------------------------------------
    # Checkpoint and events
    # ------------------------------------------------------------------

    def _save_checkpoint(self, job: ExportJob) -> None:
        if job.options.dry_run:
            return
        with self._checkpoint_lock:
            self._manifest_store.save_checkpoint(Checkpoint(
                space_key=job.scope.space_key,
                root_page_id=job.scope.root_page_id,
                fresh=job.fresh,
                records=job.snapshot_journal(),
            ))

    def _save_checkpoint_after_abort(self, job: ExportJob) -> None:
        """Best-effort checkpoint while another error is already propagating."""
        try:
            self._save_checkpoint(job)
        except ManifestPersistError as e:
            logger.error(f"Could not save checkpoint: {e}")

    def _emit(self, event_type: EventType, **fields) -> None:
        if self._event_sink is None:
            return
        stats = self.job.queue.stats() if self.job is not None else None
        event = PipelineEvent(type=event_type, stats=stats, **fields)
        with self._event_lock:
            self._event_sink(event)

    def _emit_phase(self, phase: Phase) -> None:
        logger.debug(f"Entering phase: {phase.value}")
        self._emit(EventType.PHASE_TRANSITION, phase=phase)
